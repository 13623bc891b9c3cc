"""Routing port: abstract interface for route optimization and distance.

The distance-based freight strategy programs against this port; adapters
for a real maps provider are swapped in via configuration.
"""

from abc import ABC, abstractmethod


class RoutingPort(ABC):
    """Abstract interface for routing adapters."""

    @abstractmethod
    def optimize_route(self, starting_point: str, stops: list[dict]) -> dict:
        """Compute the optimized route from ``starting_point`` through ``stops``.

        Each stop is a dict with keys: id, address, postal_code.

        Returns:
            dict with keys: total_distance_meters (int), ordered_stop_ids (list)
        """
        ...
