"""Freight calculation strategies.

Each strategy maps a batch of orders, the vehicle carrying them and the
tenant to a freight value with two decimal places (half-up rounding):

    DIRECTION_AND_CATEGORY      max direction surcharge + vehicle category value
    DIRECTION_AND_DELIVERY_FEE  max direction surcharge + orders x price per delivery
    DISTANCE_BASED              optimized route distance (km) x price per km
"""

from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from logistics.directions.lookup import max_direction_value
from logistics.errors import ConfigurationError
from logistics.fleet.vehicle import VehicleCategory
from logistics.routing import route_distance_km
from logistics.tenant.tenant import Tenant

TWO_PLACES = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _require_vehicle(vehicle, tenant_id: str) -> None:
    if vehicle is None or str(vehicle.tenant_id) != str(tenant_id):
        raise ObjectNotFoundError(f"Vehicle not found in tenant {tenant_id}.")


def _category_value(vehicle) -> Decimal:
    if not vehicle.category_id:
        raise ObjectNotFoundError(f"Vehicle {vehicle.id} has no pricing category.")
    category = current_domain.repository_for(VehicleCategory).get(str(vehicle.category_id))
    return Decimal(str(category.value))


def direction_and_category(orders, vehicle, tenant_id: str) -> Decimal:
    _require_vehicle(vehicle, tenant_id)
    return to_money(max_direction_value(orders, tenant_id) + _category_value(vehicle))


def direction_and_delivery_fee(orders, vehicle, tenant_id: str) -> Decimal:
    tenant = current_domain.repository_for(Tenant).get(str(tenant_id))
    if tenant.price_per_delivery is None:
        raise ConfigurationError(
            {
                "price_per_delivery": [
                    "Cálculo por taxa de entrega não pode ser executado. "
                    "O valor por entrega não está configurado para o tenant."
                ]
            }
        )
    delivery_fee = len(orders) * Decimal(str(tenant.price_per_delivery))
    return to_money(max_direction_value(orders, tenant_id) + delivery_fee)


def distance_based(orders, vehicle, tenant_id: str) -> Decimal:
    tenant = current_domain.repository_for(Tenant).get(str(tenant_id))
    if not tenant.address or tenant.price_per_km is None:
        raise ConfigurationError(
            {
                "price_per_km": [
                    "Cálculo por distância não pode ser executado. Verifique se o "
                    "endereço e o valor por KM estão configurados para o tenant."
                ]
            }
        )
    distance_km = route_distance_km(tenant.address, orders)
    return to_money(distance_km * Decimal(str(tenant.price_per_km)))
