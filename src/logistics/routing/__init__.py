"""Route distance for the distance-based freight strategy.

The adapter is chosen by ``ROUTING_ADAPTER`` and built once per process.
Only ``fake`` ships here; the fake's per-leg distance can be tuned with
``ROUTING_FAKE_METERS_PER_LEG`` for local runs.
"""

import os
from decimal import Decimal

import structlog

from logistics.errors import UnsupportedConfigurationError
from logistics.routing.fake_adapter import FakeRouter

logger = structlog.get_logger(__name__)

METERS_PER_KM = Decimal("1000")

_router_instance = None


def _fake_router():
    return FakeRouter(meters_per_leg=int(os.environ.get("ROUTING_FAKE_METERS_PER_LEG", "5000")))


_ADAPTERS = {
    "fake": _fake_router,
}


def get_router():
    """Return the configured routing adapter, building it on first use."""
    global _router_instance
    if _router_instance is None:
        name = os.environ.get("ROUTING_ADAPTER", "fake")
        factory = _ADAPTERS.get(name)
        if factory is None:
            raise UnsupportedConfigurationError(
                {"ROUTING_ADAPTER": [f"Adaptador de rotas desconhecido: '{name}'. Opções: {', '.join(sorted(_ADAPTERS))}."]}
            )
        _router_instance = factory()
        logger.info("Routing adapter configured", adapter=name)
    return _router_instance


def reset_router():
    """Drop the cached adapter so the next call re-reads the environment."""
    global _router_instance
    _router_instance = None


def route_distance_km(depot_address: str, orders) -> Decimal:
    """Length of the optimized route from the depot through every order, in km."""
    stops = [{"id": str(o.id), "address": o.address, "postal_code": o.postal_code} for o in orders]
    route = get_router().optimize_route(depot_address, stops)
    distance_km = Decimal(str(route["total_distance_meters"])) / METERS_PER_KM
    logger.debug("Route optimized", stops=len(stops), distance_km=str(distance_km))
    return distance_km
