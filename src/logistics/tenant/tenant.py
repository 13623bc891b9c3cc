"""Tenant aggregate: pricing and approval settings read by the delivery core.

Tenants are provisioned elsewhere; this aggregate only holds the settings the
freight strategies and the delivery rules validator consume.
"""

from enum import Enum

from protean.fields import Float, Integer, String

from logistics.domain import logistics


class FreightType(Enum):
    DIRECTION_AND_CATEGORY = "DIRECTION_AND_CATEGORY"
    DIRECTION_AND_DELIVERY_FEE = "DIRECTION_AND_DELIVERY_FEE"
    DISTANCE_BASED = "DISTANCE_BASED"


@logistics.aggregate
class Tenant:
    name = String(required=True, max_length=255)
    address = String(max_length=500)  # depot, starting point for distance pricing
    freight_type = String(max_length=50, choices=FreightType)
    price_per_km = Float(min_value=0.0)
    price_per_delivery = Float(min_value=0.0)

    # Approval thresholds; None means "not enforced"
    min_delivery_percentage = Float(min_value=0.0)
    min_value = Float(min_value=0.0)
    min_weight = Float(min_value=0.0)
    min_orders = Integer(min_value=0)
