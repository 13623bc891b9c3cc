"""Shared BDD fixtures and step definitions for the logistics context."""

import json

from logistics.delivery.creation import CreateDelivery
from logistics.delivery.delivery import Delivery
from logistics.order.order import Order
from protean import current_domain
from pytest_bdd import given, parsers, then, when


def _reload(cls, identifier):
    return current_domain.repository_for(cls).get(str(identifier))


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse("a tenant with a minimum delivery value of {min_value:d}"),
    target_fixture="ctx",
)
def tenant_with_minimum_value(seed, min_value):
    tenant = seed.tenant(min_value=float(min_value))
    category = seed.category(tenant, value=100.0)
    return {
        "tenant": tenant,
        "vehicle": seed.vehicle(tenant, category),
        "driver": seed.driver(tenant),
    }


@given("a tenant without approval thresholds", target_fixture="ctx")
def tenant_without_thresholds(seed):
    tenant = seed.tenant()
    category = seed.category(tenant, value=100.0)
    return {
        "tenant": tenant,
        "vehicle": seed.vehicle(tenant, category),
        "driver": seed.driver(tenant),
    }


@given(
    parsers.cfparse("{count:d} unassigned orders worth {value:d} each"),
    target_fixture="ctx",
)
def unassigned_orders(seed, ctx, count, value):
    ctx["orders"] = [seed.order(ctx["tenant"], f"PED-{i:03d}", value=float(value)) for i in range(1, count + 1)]
    return ctx


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("a delivery is created for the orders", target_fixture="ctx")
def create_delivery_for_orders(ctx):
    command = CreateDelivery(
        tenant_id=str(ctx["tenant"].id),
        driver_id=str(ctx["driver"].id),
        vehicle_id=str(ctx["vehicle"].id),
        orders=json.dumps([{"id": str(o.id), "sorting": i + 1} for i, o in enumerate(ctx["orders"])]),
    )
    ctx["delivery_id"] = current_domain.process(command, asynchronous=False)
    return ctx


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the delivery status is "{status}"'))
def delivery_status_is(ctx, status):
    assert _reload(Delivery, ctx["delivery_id"]).status == status


@then(parsers.cfparse('every order status is "{status}"'))
def every_order_status_is(ctx, status):
    assert [_reload(Order, o.id).status for o in ctx["orders"]] == [status] * len(ctx["orders"])
