"""Order history: rebuilt on every read from the current state of the records.

There is no stored event log. The trail is derived from the order, every
delivery that ever carried it, those deliveries' approvals and the order's
delivery proofs. The derivation is pure: the same rows always give the same
list, and nothing is written back.

Each event carries the order status it leaves behind (``details["status"]``)
when it changes status at all. An approval only counts when the order was in
the status that decision moves from. A final "status updated" event is added
when the order's current status was reached by some path the trail cannot see.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import NamedTuple

import structlog
from protean.utils.globals import current_domain

from logistics.delivery.delivery import ApprovalAction, Delivery, DeliveryStatus
from logistics.order.order import TERMINAL_STATUSES, Order, OrderStatus
from logistics.utils.repositories import get_for_tenant

logger = structlog.get_logger(__name__)

SYSTEM_ACTOR = "Sistema"


class HistoryEventType(Enum):
    PEDIDO_CRIADO = "PEDIDO_CRIADO"
    ROTEIRO_ASSOCIADO_AGUARDANDO_LIBERACAO = "ROTEIRO_ASSOCIADO_AGUARDANDO_LIBERACAO"
    ROTEIRO_ASSOCIADO = "ROTEIRO_ASSOCIADO"
    ROTEIRO_LIBERADO_PARA_PEDIDO = "ROTEIRO_LIBERADO_PARA_PEDIDO"
    ROTEIRO_REJEITADO_PARA_PEDIDO = "ROTEIRO_REJEITADO_PARA_PEDIDO"
    ROTEIRO_REQUER_NOVA_LIBERACAO_PARA_PEDIDO = "ROTEIRO_REQUER_NOVA_LIBERACAO_PARA_PEDIDO"
    ROTEIRO_FINALIZADO = "ROTEIRO_FINALIZADO"
    ENTREGA_INICIADA = "ENTREGA_INICIADA"
    PEDIDO_ENTREGUE = "PEDIDO_ENTREGUE"
    PEDIDO_NAO_ENTREGUE = "PEDIDO_NAO_ENTREGUE"
    COMPROVANTE_ANEXADO = "COMPROVANTE_ANEXADO"
    STATUS_PEDIDO_ATUALIZADO = "STATUS_PEDIDO_ATUALIZADO"


class HistoryEvent(NamedTuple):
    id: str
    timestamp: datetime
    event_type: str
    description: str
    actor: str
    details: str  # JSON object, keys sorted

    @property
    def detail_map(self) -> dict:
        return json.loads(self.details)

    @property
    def resulting_status(self) -> str | None:
        return self.detail_map.get("status")


# event type, order status it moves from, order status it moves to, description template
_APPROVAL_EVENTS = {
    ApprovalAction.APPROVED: (
        HistoryEventType.ROTEIRO_LIBERADO_PARA_PEDIDO,
        OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO,
        OrderStatus.EM_ROTA,
        "Roteiro {delivery} liberado para o pedido.",
    ),
    ApprovalAction.REJECTED: (
        HistoryEventType.ROTEIRO_REJEITADO_PARA_PEDIDO,
        OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO,
        OrderStatus.SEM_ROTA,
        "Roteiro {delivery} rejeitado; pedido voltou para sem rota.",
    ),
    ApprovalAction.RE_APPROVAL_NEEDED: (
        HistoryEventType.ROTEIRO_REQUER_NOVA_LIBERACAO_PARA_PEDIDO,
        OrderStatus.EM_ROTA,
        OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO,
        "Roteiro {delivery} requer nova liberação.",
    ),
}


def _utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _dumps(details: dict) -> str:
    return json.dumps(details, sort_keys=True, ensure_ascii=False)


def _event(event_id, timestamp, event_type, description, actor, **details) -> HistoryEvent:
    payload = {key: value for key, value in details.items() if value is not None}
    return HistoryEvent(
        id=event_id,
        timestamp=_utc(timestamp),
        event_type=event_type.value,
        description=description,
        actor=str(actor) if actor else SYSTEM_ACTOR,
        details=_dumps(payload),
    )


def _started_awaiting_release(delivery: Delivery) -> bool:
    """Whether the delivery was created waiting for a manager release."""
    approvals = delivery.ordered_approvals
    if approvals:
        return ApprovalAction(approvals[0].action) != ApprovalAction.RE_APPROVAL_NEEDED
    return DeliveryStatus(delivery.status) == DeliveryStatus.A_LIBERAR


def _association_time(order: Order, delivery: Delivery) -> datetime:
    created = _utc(order.created_at)
    delivery_created = _utc(delivery.created_at)
    if delivery_created is not None and delivery_created >= created:
        return delivery_created
    if str(order.delivery_id) == str(delivery.id):
        return _utc(order.updated_at) or created
    return created


def _delivery_events(order: Order, delivery: Delivery) -> list[HistoryEvent]:
    delivery_id = str(delivery.id)
    events = []

    if _started_awaiting_release(delivery):
        event_type, status = HistoryEventType.ROTEIRO_ASSOCIADO_AGUARDANDO_LIBERACAO, OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO
        description = f"Pedido associado ao roteiro {delivery_id}, aguardando liberação."
    else:
        event_type, status = HistoryEventType.ROTEIRO_ASSOCIADO, OrderStatus.EM_ROTA
        description = f"Pedido associado ao roteiro {delivery_id}."
    events.append(
        _event(
            f"delivery-associated-{delivery_id}-{order.id}",
            _association_time(order, delivery),
            event_type,
            description,
            SYSTEM_ACTOR,
            delivery_id=delivery_id,
            driver_id=str(delivery.driver_id),
            vehicle_id=str(delivery.vehicle_id),
            freight_value=delivery.freight_value,
            approval_reasons=delivery.reasons or None,
            status=status.value,
        )
    )

    for approval in delivery.ordered_approvals:
        event_type, _, _, template = _APPROVAL_EVENTS[ApprovalAction(approval.action)]
        events.append(
            _event(
                f"approval-{approval.id}",
                approval.created_at,
                event_type,
                template.format(delivery=delivery_id),
                approval.actor_name or approval.actor_id,
                delivery_id=delivery_id,
                action=approval.action,
                reason=approval.reason,
            )
        )

    if DeliveryStatus(delivery.status) == DeliveryStatus.FINALIZADO and delivery.finished_at:
        events.append(
            _event(
                f"route-finalized-{delivery_id}",
                delivery.finished_at,
                HistoryEventType.ROTEIRO_FINALIZADO,
                f"Roteiro {delivery_id} finalizado.",
                SYSTEM_ACTOR,
                delivery_id=delivery_id,
            )
        )
    return events


def _order_events(order: Order) -> list[HistoryEvent]:
    order_id = str(order.id)
    events = []

    if order.started_at:
        events.append(
            _event(
                f"delivery-started-{order_id}",
                order.started_at,
                HistoryEventType.ENTREGA_INICIADA,
                f"Entrega do pedido {order.number} iniciada.",
                order.driver_id,
                delivery_id=str(order.delivery_id) if order.delivery_id else None,
                status=OrderStatus.EM_ENTREGA.value,
            )
        )

    if order.completed_at and OrderStatus(order.status) in TERMINAL_STATUSES:
        if OrderStatus(order.status) == OrderStatus.ENTREGUE:
            events.append(
                _event(
                    f"order-completed-{order_id}",
                    order.completed_at,
                    HistoryEventType.PEDIDO_ENTREGUE,
                    f"Pedido {order.number} entregue.",
                    order.driver_id,
                    status=OrderStatus.ENTREGUE.value,
                )
            )
        else:
            events.append(
                _event(
                    f"order-completed-{order_id}",
                    order.completed_at,
                    HistoryEventType.PEDIDO_NAO_ENTREGUE,
                    f"Pedido {order.number} não entregue: {order.failure_reason}.",
                    order.driver_id,
                    reason=order.failure_reason,
                    reason_code=order.failure_code,
                    status=OrderStatus.NAO_ENTREGUE.value,
                )
            )

    proofs = sorted(order.proofs or [], key=lambda p: (_utc(p.created_at), p.sequence))
    for proof in proofs:
        events.append(
            _event(
                f"proof-{proof.id}",
                proof.created_at,
                HistoryEventType.COMPROVANTE_ANEXADO,
                f"Comprovante de entrega anexado ao pedido {order.number}.",
                proof.driver_id,
                proof_url=proof.proof_url,
            )
        )
    return events


def _settle_approvals(events: list[HistoryEvent]) -> list[HistoryEvent]:
    """Walk the sorted trail and give each approval the status it produced.

    A decision only moves the order when the order was in the decision's
    source status at that moment; otherwise the event carries no status.
    """
    settled, running = [], None
    for event in events:
        action = event.detail_map.get("action")
        if action is not None:
            _, source, target, _ = _APPROVAL_EVENTS[ApprovalAction(action)]
            if running == source.value:
                event = event._replace(details=_dumps({**event.detail_map, "status": target.value}))
        if event.resulting_status is not None:
            running = event.resulting_status
        settled.append(event)
    return settled


def _explained_status(events: list[HistoryEvent]) -> str | None:
    for event in reversed(events):
        if event.resulting_status is not None:
            return event.resulting_status
    return None


def _accounted_for(order: Order) -> bool:
    status = OrderStatus(order.status)
    if status == OrderStatus.EM_ENTREGA:
        return order.started_at is not None
    if status in TERMINAL_STATUSES:
        return order.completed_at is not None
    return False


def _by_time(events: list[HistoryEvent]) -> list[HistoryEvent]:
    return sorted(events, key=lambda e: e.timestamp)


def reconstruct_history(order: Order, deliveries: list[Delivery]) -> list[HistoryEvent]:
    """Derive the order's history from its current state.

    ``deliveries`` are the deliveries that ever carried the order; the ones
    not in ``order.delivery_history`` are ignored.
    """
    known = set(order.delivery_history)
    carried = {str(d.id): d for d in deliveries if str(d.id) in known}

    events = [
        _event(
            f"order-created-{order.id}",
            order.created_at,
            HistoryEventType.PEDIDO_CRIADO,
            f"Pedido {order.number} criado no sistema.",
            SYSTEM_ACTOR,
            status=OrderStatus.SEM_ROTA.value,
        )
    ]
    for delivery in sorted(carried.values(), key=lambda d: (_utc(d.created_at), str(d.id))):
        events.extend(_delivery_events(order, delivery))
    events.extend(_order_events(order))
    events = _settle_approvals(_by_time(events))

    updated_at = _utc(order.updated_at)
    explained = _explained_status(events)
    if (
        updated_at is not None
        and updated_at > events[-1].timestamp
        and order.status != explained
        and not _accounted_for(order)
    ):
        events.append(
            _event(
                f"status-updated-{order.id}-{updated_at.isoformat()}",
                updated_at,
                HistoryEventType.STATUS_PEDIDO_ATUALIZADO,
                f"Status do pedido alterado de {explained} para {order.status}.",
                SYSTEM_ACTOR,
                old_status=explained,
                status=order.status,
            )
        )
        events = _by_time(events)
    return events


def get_order_history(order_id: str, tenant_id: str) -> list[HistoryEvent]:
    """Load an order of the tenant and everything its history is derived from."""
    order = get_for_tenant(Order, order_id, tenant_id)
    delivery_repo = current_domain.repository_for(Delivery)
    deliveries = [delivery_repo.get(delivery_id) for delivery_id in order.delivery_history]

    events = reconstruct_history(order, deliveries)
    logger.info(
        "Order history reconstructed",
        order_id=str(order.id),
        tenant_id=str(tenant_id),
        event_count=len(events),
        last_event=events[-1].event_type,
    )
    return events
