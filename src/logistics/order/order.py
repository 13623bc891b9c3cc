"""Order aggregate (CQRS): a shippable unit owned by one tenant.

Orders are imported unassigned and then follow the delivery that carries
them. Order status is kept in step with the delivery's status by the
delivery command handlers; drivers move orders through delivery.

State Machine:
    SEM_ROTA → EM_ROTA_AGUARDANDO_LIBERACAO → EM_ROTA → EM_ENTREGA → {ENTREGUE, NAO_ENTREGUE}
    SEM_ROTA → EM_ROTA                          (delivery needs no approval)
    EM_ROTA_AGUARDANDO_LIBERACAO → SEM_ROTA     (delivery rejected)
    EM_ROTA → EM_ROTA_AGUARDANDO_LIBERACAO      (delivery needs a new release)
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

from logistics.domain import logistics
from logistics.errors import ConflictError, transition_conflict
from logistics.order.events import (
    DeliveryProofAttached,
    OrderAssignedToDelivery,
    OrderDelivered,
    OrderDeliveryStarted,
    OrderHeldForApproval,
    OrderImported,
    OrderNotDelivered,
    OrderReleased,
    OrderReturnedToPool,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    SEM_ROTA = "SEM_ROTA"
    EM_ROTA_AGUARDANDO_LIBERACAO = "EM_ROTA_AGUARDANDO_LIBERACAO"
    EM_ROTA = "EM_ROTA"
    EM_ENTREGA = "EM_ENTREGA"
    ENTREGUE = "ENTREGUE"
    NAO_ENTREGUE = "NAO_ENTREGUE"


class DeliveryOutcome(Enum):
    DELIVERED = "DELIVERED"
    NOT_DELIVERED = "NOT_DELIVERED"


TERMINAL_STATUSES = {OrderStatus.ENTREGUE, OrderStatus.NAO_ENTREGUE}

# Leaving SEM_ROTA happens only through assign_to_delivery.
_VALID_TRANSITIONS = {
    OrderStatus.SEM_ROTA: set(),
    OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO: {OrderStatus.EM_ROTA, OrderStatus.SEM_ROTA},
    OrderStatus.EM_ROTA: {OrderStatus.EM_ENTREGA, OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO},
    OrderStatus.EM_ENTREGA: {OrderStatus.ENTREGUE, OrderStatus.NAO_ENTREGUE},
    OrderStatus.ENTREGUE: set(),  # terminal
    OrderStatus.NAO_ENTREGUE: set(),  # terminal
}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@logistics.entity(part_of="Order")
class DeliveryProof:
    """A proof-of-delivery attachment. Append-only."""

    proof_url = String(required=True, max_length=2048)
    driver_id = Identifier(required=True)
    created_at = DateTime(required=True)
    sequence = Integer(required=True, min_value=1)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@logistics.aggregate
class Order:
    tenant_id = Identifier(required=True)
    number = String(required=True, max_length=50)
    customer_name = String(max_length=255)
    address = String(max_length=500)
    postal_code = String(max_length=20)
    weight = Float(default=0.0, min_value=0.0)
    value = Float(default=0.0, min_value=0.0)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.SEM_ROTA.value,
    )
    delivery_id = Identifier()
    delivery_ids = Text()  # JSON list of every delivery that carried this order
    driver_id = Identifier()
    sorting = Integer()
    failure_reason = String(max_length=500)
    failure_code = String(max_length=50)
    proofs = HasMany(DeliveryProof)
    created_at = DateTime()
    updated_at = DateTime()
    started_at = DateTime()
    completed_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        tenant_id: str,
        number: str,
        customer_name: str | None = None,
        address: str | None = None,
        postal_code: str | None = None,
        weight: float = 0.0,
        value: float = 0.0,
        sorting: int | None = None,
    ):
        """Create an unassigned order."""
        now = datetime.now(UTC)
        order = cls(
            tenant_id=tenant_id,
            number=number,
            customer_name=customer_name,
            address=address,
            postal_code=postal_code,
            weight=weight,
            value=value,
            sorting=sorting,
            status=OrderStatus.SEM_ROTA.value,
            delivery_ids=json.dumps([]),
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderImported(
                order_id=str(order.id),
                tenant_id=str(tenant_id),
                number=number,
                weight=weight,
                value=value,
                imported_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_STATUSES

    @property
    def delivery_history(self) -> list[str]:
        """Ids of every delivery that ever carried this order, oldest first."""
        return json.loads(self.delivery_ids) if self.delivery_ids else []

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise transition_conflict("Pedido", self.number, current.value, target_status.value)

    # -------------------------------------------------------------------
    # Assignment
    # -------------------------------------------------------------------
    def assign_to_delivery(self, delivery_id: str, awaiting_release: bool, sorting: int | None = None) -> None:
        """Place the order on a delivery manifest."""
        target = OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO if awaiting_release else OrderStatus.EM_ROTA
        if OrderStatus(self.status) != OrderStatus.SEM_ROTA:
            raise ConflictError(
                {"status": [f"Pedido {self.number} não está com status '{OrderStatus.SEM_ROTA.value}' (status: {self.status})."]}
            )

        now = datetime.now(UTC)
        self.status = target.value
        self.delivery_id = delivery_id
        self.delivery_ids = json.dumps(self.delivery_history + [str(delivery_id)])
        self.sorting = sorting
        self.started_at = None
        self.completed_at = None
        self.failure_reason = None
        self.failure_code = None
        self.updated_at = now
        self.raise_(
            OrderAssignedToDelivery(
                order_id=str(self.id),
                delivery_id=str(delivery_id),
                status=target.value,
                assigned_at=now,
            )
        )

    def release(self) -> None:
        """The carrying delivery was approved."""
        self._assert_can_transition(OrderStatus.EM_ROTA)
        now = datetime.now(UTC)
        self.status = OrderStatus.EM_ROTA.value
        self.updated_at = now
        self.raise_(OrderReleased(order_id=str(self.id), delivery_id=str(self.delivery_id), released_at=now))

    def hold_for_approval(self) -> None:
        """The carrying delivery needs a new release."""
        self._assert_can_transition(OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO)
        now = datetime.now(UTC)
        self.status = OrderStatus.EM_ROTA_AGUARDANDO_LIBERACAO.value
        self.updated_at = now
        self.raise_(OrderHeldForApproval(order_id=str(self.id), delivery_id=str(self.delivery_id), held_at=now))

    def return_to_pool(self) -> None:
        """The carrying delivery was rejected; detach and unassign."""
        self._assert_can_transition(OrderStatus.SEM_ROTA)
        now = datetime.now(UTC)
        delivery_id = self.delivery_id
        self.status = OrderStatus.SEM_ROTA.value
        self.delivery_id = None
        self.sorting = None
        self.updated_at = now
        self.raise_(OrderReturnedToPool(order_id=str(self.id), delivery_id=str(delivery_id), returned_at=now))

    # -------------------------------------------------------------------
    # Driver actions
    # -------------------------------------------------------------------
    def start(self, driver_id: str) -> bool:
        """Driver sets out with the order. Returns False when it was already started."""
        if OrderStatus(self.status) == OrderStatus.EM_ENTREGA:
            return False
        self._assert_can_transition(OrderStatus.EM_ENTREGA)

        now = datetime.now(UTC)
        self.status = OrderStatus.EM_ENTREGA.value
        self.driver_id = driver_id
        self.started_at = self.started_at or now
        self.completed_at = None
        self.failure_reason = None
        self.failure_code = None
        self.updated_at = now
        self.raise_(
            OrderDeliveryStarted(
                order_id=str(self.id),
                delivery_id=str(self.delivery_id),
                driver_id=str(driver_id),
                started_at=self.started_at,
            )
        )
        return True

    def complete(
        self,
        driver_id: str,
        outcome: DeliveryOutcome,
        reason: str | None = None,
        reason_code: str | None = None,
    ) -> None:
        """Driver finished with the order, delivered or not."""
        target = OrderStatus.ENTREGUE if outcome == DeliveryOutcome.DELIVERED else OrderStatus.NAO_ENTREGUE
        self._assert_can_transition(target)
        if target == OrderStatus.NAO_ENTREGUE and not reason:
            raise ValidationError({"reason": ["Motivo da não entrega é obrigatório."]})

        now = datetime.now(UTC)
        self.status = target.value
        self.driver_id = driver_id
        self.completed_at = now
        if target == OrderStatus.NAO_ENTREGUE:
            self.failure_reason = reason
            self.failure_code = reason_code
        self.updated_at = now

        if target == OrderStatus.ENTREGUE:
            self.raise_(
                OrderDelivered(
                    order_id=str(self.id),
                    delivery_id=str(self.delivery_id),
                    driver_id=str(driver_id),
                    completed_at=now,
                )
            )
        else:
            self.raise_(
                OrderNotDelivered(
                    order_id=str(self.id),
                    delivery_id=str(self.delivery_id),
                    driver_id=str(driver_id),
                    reason=reason,
                    reason_code=reason_code,
                    completed_at=now,
                )
            )

    def attach_proof(self, proof_url: str, driver_id: str) -> DeliveryProof:
        """Record a proof of delivery for the order."""
        if OrderStatus(self.status) not in (OrderStatus.EM_ENTREGA, *TERMINAL_STATUSES):
            raise ConflictError({"status": [f"Pedido {self.number} não está em entrega (status: {self.status})."]})

        now = datetime.now(UTC)
        proof = DeliveryProof(
            proof_url=proof_url,
            driver_id=driver_id,
            created_at=now,
            sequence=len(self.proofs or []) + 1,
        )
        self.add_proofs(proof)
        self.raise_(
            DeliveryProofAttached(
                order_id=str(self.id),
                proof_id=str(proof.id),
                driver_id=str(driver_id),
                proof_url=proof_url,
                attached_at=now,
            )
        )
        return proof
