"""Fleet records: vehicles, their pricing categories, and drivers."""

from protean.fields import Float, Identifier, String

from logistics.domain import logistics


@logistics.aggregate
class VehicleCategory:
    """Pricing category; its value is the flat freight component of a vehicle."""

    tenant_id = Identifier(required=True)
    name = String(required=True, max_length=100)
    value = Float(required=True, min_value=0.0)


@logistics.aggregate
class Vehicle:
    tenant_id = Identifier(required=True)
    plate = String(required=True, max_length=10)
    model = String(max_length=100)
    category_id = Identifier()


@logistics.aggregate
class Driver:
    tenant_id = Identifier(required=True)
    name = String(required=True, max_length=100)
