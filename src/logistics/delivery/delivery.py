"""Delivery aggregate (CQRS): a manifest of orders for one driver and vehicle.

The freight value is computed once, when the delivery is created, and never
changes afterwards. Approval decisions are kept as immutable Approval
entities in the order they were recorded.

State Machine:
    A_LIBERAR → INICIADO → FINALIZADO
    A_LIBERAR → REJEITADO                   (orders released back to the pool)
    INICIADO → A_LIBERAR                    (re-approval needed)
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
)

from logistics.delivery.events import (
    DeliveryApproved,
    DeliveryCreated,
    DeliveryFinalized,
    DeliveryReapprovalRequested,
    DeliveryRejected,
)
from logistics.domain import logistics
from logistics.errors import ConflictError, transition_conflict


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class DeliveryStatus(Enum):
    A_LIBERAR = "A_LIBERAR"
    INICIADO = "INICIADO"
    FINALIZADO = "FINALIZADO"
    REJEITADO = "REJEITADO"


class ApprovalAction(Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RE_APPROVAL_NEEDED = "RE_APPROVAL_NEEDED"


ACTIVE_STATUSES = {DeliveryStatus.A_LIBERAR, DeliveryStatus.INICIADO}

_VALID_TRANSITIONS = {
    DeliveryStatus.A_LIBERAR: {DeliveryStatus.INICIADO, DeliveryStatus.REJEITADO},
    DeliveryStatus.INICIADO: {DeliveryStatus.A_LIBERAR, DeliveryStatus.FINALIZADO},
    DeliveryStatus.FINALIZADO: set(),  # terminal
    DeliveryStatus.REJEITADO: set(),  # terminal
}

APPROVAL_TARGETS = {
    ApprovalAction.APPROVED: DeliveryStatus.INICIADO,
    ApprovalAction.REJECTED: DeliveryStatus.REJEITADO,
    ApprovalAction.RE_APPROVAL_NEEDED: DeliveryStatus.A_LIBERAR,
}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@logistics.entity(part_of="Delivery")
class Approval:
    """A manager decision on the delivery. Never changed once recorded."""

    action = String(required=True, max_length=50, choices=ApprovalAction)
    reason = String(max_length=500)
    actor_id = Identifier(required=True)
    actor_name = String(max_length=100)
    created_at = DateTime(required=True)
    sequence = Integer(required=True, min_value=1)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@logistics.aggregate
class Delivery:
    tenant_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    vehicle_id = Identifier(required=True)
    order_ids = Text(required=True)  # JSON list; the manifest as created
    freight_value = Float(required=True, min_value=0.0)
    total_weight = Float(default=0.0)
    total_value = Float(default=0.0)
    status = String(
        choices=DeliveryStatus,
        default=DeliveryStatus.A_LIBERAR.value,
    )
    approvals = HasMany(Approval)
    approval_reasons = Text()  # JSON list of reasons the validator gave
    observation = Text()
    revision = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()
    released_at = DateTime()
    finished_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        tenant_id: str,
        driver_id: str,
        vehicle_id: str,
        order_ids: list[str],
        freight_value: float,
        total_weight: float,
        total_value: float,
        needs_approval: bool,
        approval_reasons: list[str] | None = None,
        observation: str | None = None,
    ):
        """Create a delivery; it waits for release when the rules demand approval."""
        if not order_ids:
            raise ValidationError({"order_ids": ["Um roteiro precisa de pelo menos um pedido."]})

        now = datetime.now(UTC)
        status = DeliveryStatus.A_LIBERAR if needs_approval else DeliveryStatus.INICIADO
        reasons = approval_reasons or []
        delivery = cls(
            tenant_id=tenant_id,
            driver_id=driver_id,
            vehicle_id=vehicle_id,
            order_ids=json.dumps([str(order_id) for order_id in order_ids]),
            freight_value=freight_value,
            total_weight=total_weight,
            total_value=total_value,
            status=status.value,
            approval_reasons=json.dumps(reasons),
            observation=observation or "",
            revision=0,
            created_at=now,
            updated_at=now,
            released_at=None if needs_approval else now,
        )
        delivery.raise_(
            DeliveryCreated(
                delivery_id=str(delivery.id),
                tenant_id=str(tenant_id),
                driver_id=str(driver_id),
                vehicle_id=str(vehicle_id),
                order_ids=delivery.order_ids,
                order_count=len(order_ids),
                freight_value=freight_value,
                status=status.value,
                approval_reasons=delivery.approval_reasons,
                created_at=now,
            )
        )
        return delivery

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def manifest(self) -> list[str]:
        return json.loads(self.order_ids) if self.order_ids else []

    @property
    def reasons(self) -> list[str]:
        return json.loads(self.approval_reasons) if self.approval_reasons else []

    @property
    def ordered_approvals(self) -> list[Approval]:
        """Approvals in the order they were recorded."""
        return sorted(self.approvals or [], key=lambda a: (a.created_at, a.sequence))

    @property
    def is_active(self) -> bool:
        return DeliveryStatus(self.status) in ACTIVE_STATUSES

    def _assert_can_transition(self, target_status: DeliveryStatus) -> None:
        current = DeliveryStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise transition_conflict("Roteiro", self.id, current.value, target_status.value)

    def assert_revision(self, expected_revision: int | None) -> None:
        """Optimistic-concurrency check against the revision the caller last read."""
        if expected_revision is not None and expected_revision != self.revision:
            raise ConflictError(
                {
                    "revision": [
                        f"Roteiro {self.id} foi alterado por outra operação "
                        f"(revisão esperada {expected_revision}, atual {self.revision})."
                    ]
                }
            )

    def _advance(self, target_status: DeliveryStatus, now: datetime) -> None:
        self.status = target_status.value
        self.revision = (self.revision or 0) + 1
        self.updated_at = now

    # -------------------------------------------------------------------
    # Approval decisions
    # -------------------------------------------------------------------
    def record_approval(
        self,
        action: ApprovalAction,
        actor_id: str,
        reason: str | None = None,
        actor_name: str | None = None,
    ) -> Approval:
        """Record a manager decision and move the delivery accordingly."""
        target = APPROVAL_TARGETS[action]
        self._assert_can_transition(target)
        if action == ApprovalAction.REJECTED and not reason:
            raise ValidationError({"reason": ["O motivo da rejeição é obrigatório."]})

        now = datetime.now(UTC)
        approval = Approval(
            action=action.value,
            reason=reason,
            actor_id=actor_id,
            actor_name=actor_name,
            created_at=now,
            sequence=len(self.approvals or []) + 1,
        )
        self.add_approvals(approval)
        self._advance(target, now)

        if action == ApprovalAction.APPROVED:
            self.released_at = now
            self.raise_(
                DeliveryApproved(
                    delivery_id=str(self.id),
                    actor_id=str(actor_id),
                    reason=reason,
                    approved_at=now,
                )
            )
        elif action == ApprovalAction.REJECTED:
            self.raise_(
                DeliveryRejected(
                    delivery_id=str(self.id),
                    actor_id=str(actor_id),
                    reason=reason,
                    rejected_at=now,
                )
            )
        else:
            self.raise_(
                DeliveryReapprovalRequested(
                    delivery_id=str(self.id),
                    actor_id=str(actor_id),
                    reason=reason,
                    requested_at=now,
                )
            )
        return approval

    # -------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------
    def finalize(self, delivered_count: int, not_delivered_count: int) -> None:
        """Close the delivery once every order on it is terminal."""
        self._assert_can_transition(DeliveryStatus.FINALIZADO)
        now = datetime.now(UTC)
        self._advance(DeliveryStatus.FINALIZADO, now)
        self.finished_at = now
        self.raise_(
            DeliveryFinalized(
                delivery_id=str(self.id),
                delivered_count=delivered_count,
                not_delivered_count=not_delivered_count,
                finished_at=now,
            )
        )
