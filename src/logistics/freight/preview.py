"""Freight preview: price a prospective batch without creating a delivery."""

from decimal import Decimal

import structlog

from logistics.fleet.vehicle import Vehicle
from logistics.freight.selector import calculate_freight
from logistics.order.order import Order
from logistics.utils.repositories import get_for_tenant

logger = structlog.get_logger(__name__)


def preview_freight(tenant_id: str, order_ids: list[str], vehicle_id: str) -> Decimal:
    orders = [get_for_tenant(Order, order_id, tenant_id) for order_id in order_ids]
    vehicle = get_for_tenant(Vehicle, vehicle_id, tenant_id)
    value = calculate_freight(orders, vehicle, tenant_id)
    logger.info(
        "Freight preview calculated",
        tenant_id=str(tenant_id),
        order_count=len(orders),
        freight_value=str(value),
    )
    return value
