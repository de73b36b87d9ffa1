"""Outbox event handlers for Orders domain events.

These run in the outbox publisher (``core.publish_outbox_events``), after
the transaction that produced the event has committed.  They are the
downstream, at-least-once counterpart of the inline hooks in ``hooks.py``.
"""

from __future__ import annotations

import structlog

from modules.orders.events import (
    OrderCancelled,
    OrderCompleted,
    OrderCreated,
    OrderPaid,
    OrderRefunded,
    OrderStatusChanged,
)
from shared.domain.bus import IEventHandler
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)


class OrderLifecycleLogHandler(IEventHandler[DomainEvent]):
    """Writes one structured audit line per delivered order event."""

    def handle(self, event: DomainEvent) -> None:
        logger.info(
            "order.event_delivered",
            event_type=event.event_name,
            order_id=str(event.aggregate_id),
            order_no=getattr(event, "order_no", ""),
            event_id=str(event.event_id),
        )


ORDER_EVENTS = (
    OrderCreated,
    OrderStatusChanged,
    OrderPaid,
    OrderCancelled,
    OrderCompleted,
    OrderRefunded,
)
