"""Driver actions on orders: commands and handler.

Drivers start and complete the orders of their own active delivery. A
delivery is finalized as soon as every order it still carries has reached a
terminal status; that check runs after each completion.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from logistics.delivery.delivery import Delivery, DeliveryStatus
from logistics.domain import logistics
from logistics.errors import ConflictError
from logistics.fleet.vehicle import Driver
from logistics.order.order import DeliveryOutcome, Order, OrderStatus
from logistics.utils.repositories import get_for_tenant

logger = structlog.get_logger(__name__)


@logistics.command(part_of="Order")
class StartOrder:
    """Driver sets out to deliver an order."""

    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)


@logistics.command(part_of="Order")
class CompleteOrder:
    """Driver reports the outcome of an order."""

    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    outcome = String(required=True, max_length=20, choices=DeliveryOutcome)
    reason = String(max_length=500)
    reason_code = String(max_length=50)


@logistics.command(part_of="Order")
class AttachDeliveryProof:
    """Driver attaches a proof of delivery to an order."""

    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    proof_url = String(required=True, max_length=2048)


def _load_for_driver(order_id: str, driver_id: str) -> tuple[Driver, Order, Delivery]:
    """Load the order and its delivery, checking the driver owns that delivery."""
    driver = current_domain.repository_for(Driver).get(str(driver_id))
    order = get_for_tenant(Order, order_id, driver.tenant_id)
    if not order.delivery_id:
        raise ConflictError({"order_id": [f"Pedido {order.number} não está em um roteiro."]})

    delivery = current_domain.repository_for(Delivery).get(str(order.delivery_id))
    if str(delivery.driver_id) != str(driver.id):
        raise ValidationError({"driver_id": ["Motorista não autorizado para este roteiro."]})
    return driver, order, delivery


def _finalize_if_complete(delivery: Delivery, completed: Order) -> bool:
    order_repo = current_domain.repository_for(Order)
    carried = []
    for order_id in delivery.manifest:
        order = completed if order_id == str(completed.id) else order_repo.get(order_id)
        if str(order.delivery_id) == str(delivery.id):
            carried.append(order)

    if not all(o.is_terminal for o in carried):
        return False

    delivered = sum(1 for o in carried if OrderStatus(o.status) == OrderStatus.ENTREGUE)
    delivery.finalize(delivered_count=delivered, not_delivered_count=len(carried) - delivered)
    return True


@logistics.command_handler(part_of=Order)
class DriverActionsHandler:
    @handle(StartOrder)
    def start_order(self, command):
        driver, order, delivery = _load_for_driver(command.order_id, command.driver_id)

        if OrderStatus(order.status) == OrderStatus.EM_ENTREGA:
            logger.info("Order already started", order_id=str(order.id), started_at=str(order.started_at))
            return str(order.id)

        if DeliveryStatus(delivery.status) != DeliveryStatus.INICIADO:
            raise ConflictError(
                {
                    "delivery": [
                        f"Roteiro {delivery.id} não está '{DeliveryStatus.INICIADO.value}'. "
                        f"Status atual: {delivery.status}."
                    ]
                }
            )

        order.start(str(driver.id))
        current_domain.repository_for(Order).add(order)
        logger.info("Order delivery started", order_id=str(order.id), delivery_id=str(delivery.id))
        return str(order.id)

    @handle(CompleteOrder)
    def complete_order(self, command):
        driver, order, delivery = _load_for_driver(command.order_id, command.driver_id)
        if DeliveryStatus(delivery.status) != DeliveryStatus.INICIADO:
            raise ConflictError(
                {
                    "delivery": [
                        f"Roteiro {delivery.id} não está '{DeliveryStatus.INICIADO.value}'. "
                        f"Status atual: {delivery.status}."
                    ]
                }
            )

        order.complete(
            str(driver.id),
            DeliveryOutcome(command.outcome),
            reason=command.reason,
            reason_code=command.reason_code,
        )
        current_domain.repository_for(Order).add(order)

        if _finalize_if_complete(delivery, order):
            current_domain.repository_for(Delivery).add(delivery)
            logger.info("Delivery finalized", delivery_id=str(delivery.id))

        logger.info(
            "Order completed",
            order_id=str(order.id),
            delivery_id=str(delivery.id),
            status=order.status,
            failure_code=order.failure_code,
        )
        return str(order.id)

    @handle(AttachDeliveryProof)
    def attach_proof(self, command):
        driver, order, _ = _load_for_driver(command.order_id, command.driver_id)
        proof = order.attach_proof(command.proof_url, str(driver.id))
        current_domain.repository_for(Order).add(order)
        logger.info("Delivery proof attached", order_id=str(order.id), proof_id=str(proof.id))
        return str(proof.id)
