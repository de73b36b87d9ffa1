"""Asynchronous tasks of the core module."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.utils.module_loading import import_string

from modules.core.models import EventStatus, OutboxEvent
from shared.domain.events import DomainEvent

logger = structlog.get_logger(__name__)

OUTBOX_BATCH_SIZE = 100
OUTBOX_MAX_RETRIES = 10


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int = OUTBOX_BATCH_SIZE) -> dict:
    """Deliver pending outbox events to the in-process event bus.

    Rows are locked with ``skip_locked`` so concurrent workers never pick
    the same event.  A handler failure marks only that row as failed; it
    is retried on the next run until ``OUTBOX_MAX_RETRIES``.
    """
    bus = import_string(settings.OUTBOX_EVENT_BUS_FACTORY)()
    published = failed = 0

    with transaction.atomic():
        events = list(
            OutboxEvent.objects.select_for_update(skip_locked=True)
            .filter(
                status__in=[EventStatus.PENDING, EventStatus.FAILED],
                retry_count__lt=OUTBOX_MAX_RETRIES,
            )
            .order_by("created_at")[:batch_size]
        )
        for row in events:
            log = logger.bind(
                outbox_id=str(row.id),
                event_type=row.event_type,
                aggregate_id=row.aggregate_id,
            )
            try:
                with transaction.atomic():
                    event = DomainEvent.from_payload(row.event_type, row.payload)
                    bus.publish(event)
            except Exception as exc:
                log.exception("outbox.publish_failed")
                row.mark_as_failed(f"{type(exc).__name__}: {exc}")
                failed += 1
                continue
            row.mark_as_published()
            published += 1

    logger.info("outbox.batch_processed", published=published, failed=failed)
    return {"published": published, "failed": failed}
