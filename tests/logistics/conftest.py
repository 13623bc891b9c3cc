"""Shared fixtures for the logistics context: seeded collaborator records."""

import json

import pytest
from logistics.delivery.creation import CreateDelivery
from logistics.directions.direction import Direction
from logistics.fleet.vehicle import Driver, Vehicle, VehicleCategory
from logistics.order.order import Order
from logistics.tenant.tenant import FreightType, Tenant
from protean import current_domain


class Seeder:
    """Persists the records a delivery needs, one call per record."""

    def tenant(self, **overrides):
        values = {
            "name": "Transportes Andrade",
            "address": "Rua das Flores, 100 - São Paulo",
            "freight_type": FreightType.DIRECTION_AND_CATEGORY.value,
        }
        values.update(overrides)
        tenant = Tenant(**values)
        current_domain.repository_for(Tenant).add(tenant)
        return tenant

    def category(self, tenant, value=100.0, name="Van"):
        category = VehicleCategory(tenant_id=str(tenant.id), name=name, value=value)
        current_domain.repository_for(VehicleCategory).add(category)
        return category

    def vehicle(self, tenant, category=None, plate="ABC1D23"):
        vehicle = Vehicle(
            tenant_id=str(tenant.id),
            plate=plate,
            model="Sprinter",
            category_id=str(category.id) if category else None,
        )
        current_domain.repository_for(Vehicle).add(vehicle)
        return vehicle

    def driver(self, tenant, name="Carlos Souza"):
        driver = Driver(tenant_id=str(tenant.id), name=name)
        current_domain.repository_for(Driver).add(driver)
        return driver

    def direction(self, tenant, range_start, range_end, value, region=None):
        direction = Direction(
            tenant_id=str(tenant.id),
            range_start=range_start,
            range_end=range_end,
            value=value,
            region=region,
        )
        current_domain.repository_for(Direction).add(direction)
        return direction

    def order(self, tenant, number, value=100.0, weight=10.0, postal_code="01310-100"):
        order = Order.create(
            tenant_id=str(tenant.id),
            number=number,
            customer_name=f"Cliente {number}",
            address="Av. Paulista, 1000",
            postal_code=postal_code,
            weight=weight,
            value=value,
        )
        current_domain.repository_for(Order).add(order)
        return order


@pytest.fixture()
def seed():
    return Seeder()


@pytest.fixture()
def fleet(seed):
    """A tenant priced by direction and category, with one vehicle and driver."""
    tenant = seed.tenant()
    category = seed.category(tenant, value=100.0)
    return {
        "tenant": tenant,
        "category": category,
        "vehicle": seed.vehicle(tenant, category),
        "driver": seed.driver(tenant),
    }


@pytest.fixture()
def create_delivery(fleet):
    """Process a CreateDelivery for a batch of orders; returns the delivery id.

    ``orders=`` overrides the JSON payload built from the batch.
    """

    def _create(batch, driver=None, **overrides):
        values = {
            "tenant_id": str(fleet["tenant"].id),
            "driver_id": str((driver or fleet["driver"]).id),
            "vehicle_id": str(fleet["vehicle"].id),
            "orders": json.dumps([{"id": str(o.id), "sorting": i + 1} for i, o in enumerate(batch)]),
        }
        values.update(overrides)
        return current_domain.process(CreateDelivery(**values), asynchronous=False)

    return _create
