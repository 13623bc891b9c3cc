"""Logistics bounded context: Delivery Lifecycle and Order Audit Trail.

Computes freight for batches of orders, decides whether a delivery must be
held for manager approval, keeps Order and Delivery statuses in step, and
rebuilds each order's history from the current state of its records. Uses
CQRS without event sourcing: the history is derived, never stored.
"""

import structlog
from protean.domain import Domain

from logistics.utils.logging import configure_logging

configure_logging()

logger = structlog.get_logger(__name__)

logistics = Domain(name="logistics")
