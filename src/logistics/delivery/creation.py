"""Delivery creation: command and handler.

Creating a delivery is a strict sequence inside one unit of work: load the
batch, compute freight with the tenant's strategy, run the delivery rules,
then commit the delivery and every order's new status together.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Text
from protean.utils.globals import current_domain

from logistics.delivery.delivery import Delivery, DeliveryStatus
from logistics.domain import logistics
from logistics.errors import ConflictError
from logistics.fleet.vehicle import Driver, Vehicle
from logistics.freight.selector import calculate_freight
from logistics.order.order import Order, OrderStatus
from logistics.rules.validator import RulesContext, validate
from logistics.tenant.tenant import Tenant
from logistics.utils.repositories import get_for_tenant

logger = structlog.get_logger(__name__)


@logistics.command(part_of="Delivery")
class CreateDelivery:
    """Create a delivery manifest for a batch of unassigned orders."""

    tenant_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    vehicle_id = Identifier(required=True)
    orders = Text(required=True)  # JSON list of {"id": ..., "sorting": ...}
    observation = Text()


def _parse_order_refs(raw) -> list[dict]:
    refs = json.loads(raw) if isinstance(raw, str) else raw
    refs = [ref if isinstance(ref, dict) else {"id": ref} for ref in refs or []]
    if not refs:
        raise ValidationError({"orders": ["Um roteiro precisa de pelo menos um pedido."]})

    ids = [str(ref["id"]) for ref in refs]
    duplicates = sorted({order_id for order_id in ids if ids.count(order_id) > 1})
    if duplicates:
        raise ValidationError({"orders": [f"Pedidos repetidos no roteiro: {', '.join(duplicates)}."]})
    return refs


def _assert_driver_available(driver, tenant_id: str) -> None:
    existing = (
        current_domain.repository_for(Delivery)
        ._dao.query.filter(driver_id=str(driver.id), tenant_id=str(tenant_id))
        .all()
        .items
    )
    active = [d for d in existing if DeliveryStatus(d.status) in (DeliveryStatus.A_LIBERAR, DeliveryStatus.INICIADO)]
    if active:
        raise ConflictError(
            {
                "driver_id": [
                    f"Motorista {driver.name} já possui um roteiro '{active[0].status}' (ID: {active[0].id})."
                ]
            }
        )


def _load_orders(refs: list[dict], tenant_id: str) -> list[Order]:
    orders, missing = [], []
    for ref in refs:
        try:
            orders.append(get_for_tenant(Order, ref["id"], tenant_id))
        except ObjectNotFoundError:
            missing.append(str(ref["id"]))
    if missing:
        raise ObjectNotFoundError(f"Pedidos não encontrados ou não pertencem ao tenant: {', '.join(missing)}.")

    unavailable = [o for o in orders if OrderStatus(o.status) != OrderStatus.SEM_ROTA]
    if unavailable:
        listing = ", ".join(f"{o.number} (status: {o.status})" for o in unavailable)
        raise ConflictError(
            {"orders": [f"Os seguintes pedidos não estão com status '{OrderStatus.SEM_ROTA.value}': {listing}"]}
        )
    return orders


@logistics.command_handler(part_of=Delivery)
class CreateDeliveryHandler:
    @handle(CreateDelivery)
    def create_delivery(self, command):
        tenant_id = str(command.tenant_id)
        tenant = current_domain.repository_for(Tenant).get(tenant_id)
        driver = get_for_tenant(Driver, command.driver_id, tenant_id)
        vehicle = get_for_tenant(Vehicle, command.vehicle_id, tenant_id)
        _assert_driver_available(driver, tenant_id)

        refs = _parse_order_refs(command.orders)
        orders = _load_orders(refs, tenant_id)

        total_weight = sum(o.weight or 0.0 for o in orders)
        total_value = sum(o.value or 0.0 for o in orders)
        freight_value = calculate_freight(orders, vehicle, tenant_id)
        rules = validate(
            RulesContext.for_tenant(
                tenant,
                total_value=total_value,
                total_weight=total_weight,
                order_count=len(orders),
                freight_value=freight_value,
            )
        )

        delivery = Delivery.create(
            tenant_id=tenant_id,
            driver_id=str(driver.id),
            vehicle_id=str(vehicle.id),
            order_ids=[str(o.id) for o in orders],
            freight_value=float(freight_value),
            total_weight=total_weight,
            total_value=total_value,
            needs_approval=rules.needs_approval,
            approval_reasons=rules.reasons,
            observation=command.observation,
        )
        for order, ref in zip(orders, refs, strict=True):
            order.assign_to_delivery(str(delivery.id), rules.needs_approval, ref.get("sorting"))

        current_domain.repository_for(Delivery).add(delivery)
        order_repo = current_domain.repository_for(Order)
        for order in orders:
            order_repo.add(order)

        logger.info(
            "Delivery created",
            delivery_id=str(delivery.id),
            tenant_id=tenant_id,
            status=delivery.status,
            freight_value=str(freight_value),
            order_count=len(orders),
            approval_reasons=rules.reasons,
        )
        return str(delivery.id)
