"""Direction lookup: the surcharge that applies to a batch of orders.

For each order the highest-valued matching range wins; across the batch the
largest surcharge is kept, so the hardest zone in the batch sets the price.
"""

from decimal import Decimal

from protean.utils.globals import current_domain

from logistics.directions.direction import Direction


def directions_for_tenant(tenant_id: str) -> list[Direction]:
    repo = current_domain.repository_for(Direction)
    return repo._dao.query.filter(tenant_id=str(tenant_id)).all().items


def direction_value_for(postal_code: str | None, directions: list[Direction]) -> Decimal:
    """Highest surcharge among ranges covering ``postal_code``; 0 when none match."""
    matches = [Decimal(str(d.value)) for d in directions if d.covers(postal_code)]
    return max(matches, default=Decimal("0"))


def max_direction_value(orders, tenant_id: str) -> Decimal:
    directions = directions_for_tenant(tenant_id)
    return max(
        (direction_value_for(order.postal_code, directions) for order in orders),
        default=Decimal("0"),
    )
