"""Fake routing adapter: deterministic distances for testing and development.

Keeps stops in the given order and charges a fixed distance per leg unless a
total distance has been configured explicitly.
"""

from logistics.routing.port import RoutingPort


class FakeRouter(RoutingPort):
    def __init__(self, meters_per_leg: int = 5000):
        self.meters_per_leg = meters_per_leg
        self.total_distance_meters = None

    def configure(self, total_distance_meters: int | None = None, meters_per_leg: int = 5000):
        """Configure the fake router behavior for testing."""
        self.total_distance_meters = total_distance_meters
        self.meters_per_leg = meters_per_leg

    def optimize_route(self, starting_point: str, stops: list[dict]) -> dict:
        ordered = [str(stop["id"]) for stop in stops]
        if self.total_distance_meters is not None:
            distance = self.total_distance_meters
        else:
            # Depot to each stop in sequence, then back
            distance = self.meters_per_leg * (len(stops) + 1) if stops else 0
        return {
            "total_distance_meters": distance,
            "ordered_stop_ids": ordered,
        }
