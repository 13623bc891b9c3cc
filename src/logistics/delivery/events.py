"""Delivery domain events: immutable facts about manifest state changes."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from logistics.domain import logistics


@logistics.event(part_of="Delivery")
class DeliveryCreated:
    """A delivery manifest was created for a batch of orders."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    vehicle_id = Identifier(required=True)
    order_ids = Text(required=True)  # JSON list of order ids
    order_count = Integer(required=True)
    freight_value = Float(required=True)
    status = String(required=True)
    approval_reasons = Text()  # JSON list of reasons
    created_at = DateTime(required=True)


@logistics.event(part_of="Delivery")
class DeliveryApproved:
    """A manager released the delivery."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    reason = String()
    approved_at = DateTime(required=True)


@logistics.event(part_of="Delivery")
class DeliveryRejected:
    """A manager rejected the delivery; its orders go back to the pool."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    reason = String(required=True)
    rejected_at = DateTime(required=True)


@logistics.event(part_of="Delivery")
class DeliveryReapprovalRequested:
    """An active delivery needs a new release."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    reason = String()
    requested_at = DateTime(required=True)


@logistics.event(part_of="Delivery")
class DeliveryFinalized:
    """Every order on the delivery reached a terminal status."""

    __version__ = 1

    delivery_id = Identifier(required=True)
    delivered_count = Integer(required=True)
    not_delivered_count = Integer(required=True)
    finished_at = DateTime(required=True)
