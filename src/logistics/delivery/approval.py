"""Delivery approval decisions: command and handler.

A decision moves the delivery and, in the same unit of work, every order it
still carries:

    APPROVED            A_LIBERAR → INICIADO     orders awaiting release → EM_ROTA
    REJECTED            A_LIBERAR → REJEITADO    orders awaiting release → SEM_ROTA, detached
    RE_APPROVAL_NEEDED  INICIADO  → A_LIBERAR    orders EM_ROTA → awaiting release

Callers go through ``submit_approval`` so that of two racing decisions exactly
one commits and the other raises ``ConflictError``.
"""

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from logistics.delivery.delivery import APPROVAL_TARGETS, ApprovalAction, Delivery
from logistics.domain import logistics
from logistics.errors import transition_conflict
from logistics.order.order import Order, OrderStatus
from logistics.utils.repositories import get_for_tenant

logger = structlog.get_logger(__name__)


@logistics.command(part_of="Delivery")
class RecordApproval:
    """Record a manager decision on a delivery."""

    delivery_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    action = String(required=True, max_length=50, choices=ApprovalAction)
    reason = String(max_length=500)
    actor_id = Identifier(required=True)
    actor_name = String(max_length=100)
    expected_revision = Integer()  # optimistic-concurrency token, optional


def _sync_order(order: Order, action: ApprovalAction) -> bool:
    """Apply the decision to one order; returns True when the order changed."""
    status = OrderStatus(order.status)
    if action == ApprovalAction.APPROVED and status == OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO:
        order.release()
    elif action == ApprovalAction.REJECTED and status == OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO:
        order.return_to_pool()
    elif action == ApprovalAction.RE_APPROVAL_NEEDED and status == OrderStatus.EM_ROTA:
        order.hold_for_approval()
    else:
        return False
    return True


@logistics.command_handler(part_of=Delivery)
class ApprovalHandler:
    @handle(RecordApproval)
    def record_approval(self, command):
        repo = current_domain.repository_for(Delivery)
        delivery = get_for_tenant(Delivery, command.delivery_id, command.tenant_id)
        delivery.assert_revision(command.expected_revision)

        action = ApprovalAction(command.action)
        delivery.record_approval(
            action,
            actor_id=command.actor_id,
            reason=command.reason,
            actor_name=command.actor_name,
        )

        order_repo = current_domain.repository_for(Order)
        changed = []
        for order_id in delivery.manifest:
            order = order_repo.get(order_id)
            if str(order.delivery_id) != str(delivery.id):
                continue
            if _sync_order(order, action):
                changed.append(order)

        repo.add(delivery)
        for order in changed:
            order_repo.add(order)

        logger.info(
            "Delivery approval recorded",
            delivery_id=str(delivery.id),
            action=action.value,
            status=delivery.status,
            revision=delivery.revision,
            orders_updated=len(changed),
        )
        return str(delivery.id)


def submit_approval(command: RecordApproval) -> str:
    """Process an approval decision synchronously.

    The handler's unit of work commits after it returns. A decision that lost
    the write to a concurrent one, and is still stale after Protean's version
    retries, surfaces here as a ``ConflictError`` naming the delivery's
    current status.
    """
    try:
        return current_domain.process(command, asynchronous=False)
    except ExpectedVersionError:
        delivery = current_domain.repository_for(Delivery).get(str(command.delivery_id))
        requested = APPROVAL_TARGETS[ApprovalAction(command.action)]
        logger.warning(
            "Delivery approval lost a concurrent write",
            delivery_id=str(delivery.id),
            action=command.action,
            status=delivery.status,
            revision=delivery.revision,
        )
        raise transition_conflict("Roteiro", delivery.id, delivery.status, requested.value) from None
