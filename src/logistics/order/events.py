"""Order domain events: immutable facts about order state changes.

These are published for downstream consumers. The order history shown to
users is not built from them; it is re-derived from current record state.
"""

from protean.fields import DateTime, Float, Identifier, String

from logistics.domain import logistics


@logistics.event(part_of="Order")
class OrderImported:
    """An order was created by bulk import."""

    __version__ = 1

    order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    number = String(required=True)
    weight = Float()
    value = Float()
    imported_at = DateTime(required=True)


@logistics.event(part_of="Order")
class OrderAssignedToDelivery:
    """An order was placed on a delivery manifest."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivery_id = Identifier(required=True)
    status = String(required=True)
    assigned_at = DateTime(required=True)


@logistics.event(part_of="Order")
class OrderReleased:
    """The order's delivery was approved; it is ready to go out."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivery_id = Identifier(required=True)
    released_at = DateTime(required=True)


@logistics.event(part_of="Order")
class OrderHeldForApproval:
    """The order's delivery needs a new release before it can proceed."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivery_id = Identifier(required=True)
    held_at = DateTime(required=True)


@logistics.event(part_of="Order")
class OrderReturnedToPool:
    """The order's delivery was rejected; the order is unassigned again."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivery_id = Identifier(required=True)
    returned_at = DateTime(required=True)


@logistics.event(part_of="Order")
class OrderDeliveryStarted:
    """The driver set out to deliver the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivery_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    started_at = DateTime(required=True)


@logistics.event(part_of="Order")
class OrderDelivered:
    """The driver delivered the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivery_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    completed_at = DateTime(required=True)


@logistics.event(part_of="Order")
class OrderNotDelivered:
    """The driver could not deliver the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivery_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    reason = String(required=True)
    reason_code = String()
    completed_at = DateTime(required=True)


@logistics.event(part_of="Order")
class DeliveryProofAttached:
    """A proof of delivery was attached to the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    proof_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    proof_url = String(required=True)
    attached_at = DateTime(required=True)
