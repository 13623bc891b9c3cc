"""Freight calculator selection: strategy dispatch on the tenant's freight type.

The tenant is re-read on every call so pricing changes apply immediately.
"""

from decimal import Decimal

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from logistics.errors import UnsupportedConfigurationError
from logistics.freight.strategies import (
    direction_and_category,
    direction_and_delivery_fee,
    distance_based,
)
from logistics.tenant.tenant import FreightType, Tenant

_CALCULATORS = {
    FreightType.DIRECTION_AND_CATEGORY: direction_and_category,
    FreightType.DIRECTION_AND_DELIVERY_FEE: direction_and_delivery_fee,
    FreightType.DISTANCE_BASED: distance_based,
}


def select_calculator(tenant_id: str):
    """Return the freight strategy configured for the tenant."""
    try:
        tenant = current_domain.repository_for(Tenant).get(str(tenant_id))
    except ObjectNotFoundError:
        raise UnsupportedConfigurationError({"tenant_id": [f"Tenant com ID {tenant_id} não encontrado."]}) from None

    try:
        freight_type = FreightType(tenant.freight_type)
    except ValueError:
        raise UnsupportedConfigurationError(
            {"freight_type": [f"Tipo de frete '{tenant.freight_type}' não suportado."]}
        ) from None
    return _CALCULATORS[freight_type]


def calculate_freight(orders, vehicle, tenant_id: str) -> Decimal:
    return select_calculator(tenant_id)(orders, vehicle, tenant_id)
