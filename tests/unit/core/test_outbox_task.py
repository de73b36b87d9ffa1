"""Outbox publisher: delivery, failure bookkeeping and retry limits."""

from __future__ import annotations

import pytest

from modules.core.models import EventStatus, OutboxEvent
from modules.core.tasks import OUTBOX_MAX_RETRIES, publish_outbox_events
from modules.orders.handlers import OrderLifecycleLogHandler

pytestmark = pytest.mark.unit


@pytest.fixture()
def created_order(make_order, customer, make_product):
    return make_order(customer, [(make_product(), 1)])


def _rows(order):
    return OutboxEvent.objects.filter(aggregate_id=str(order.id))


class TestPublishOutboxEvents:
    def test_pending_events_are_published(self, created_order):
        assert _rows(created_order).filter(status=EventStatus.PENDING).exists()

        result = publish_outbox_events()

        assert result["failed"] == 0
        assert result["published"] >= 1
        rows = list(_rows(created_order))
        assert all(row.status == EventStatus.PUBLISHED for row in rows)
        assert all(row.processed_at is not None for row in rows)

    def test_published_events_are_not_sent_twice(self, created_order):
        publish_outbox_events()
        assert publish_outbox_events() == {"published": 0, "failed": 0}

    def test_handler_failure_marks_the_row_failed(self, created_order, monkeypatch):
        def explode(self, event):
            raise RuntimeError("downstream offline")

        monkeypatch.setattr(OrderLifecycleLogHandler, "handle", explode)

        result = publish_outbox_events()

        assert result["published"] == 0
        row = _rows(created_order).first()
        assert row.status == EventStatus.FAILED
        assert row.retry_count == 1
        assert "downstream offline" in row.error_message

    def test_unknown_event_type_fails_without_blocking_others(self, created_order):
        OutboxEvent.objects.create(
            event_type="NoSuchEvent",
            aggregate_id="x",
            payload={"aggregate_id": "00000000-0000-0000-0000-000000000000"},
            topic="orders",
        )

        result = publish_outbox_events()

        assert result["failed"] == 1
        assert _rows(created_order).filter(status=EventStatus.PUBLISHED).exists()

    def test_exhausted_rows_are_left_alone(self):
        OutboxEvent.objects.create(
            event_type="NoSuchEvent",
            aggregate_id="x",
            payload={},
            topic="orders",
            status=EventStatus.FAILED,
            retry_count=OUTBOX_MAX_RETRIES,
        )

        assert publish_outbox_events() == {"published": 0, "failed": 0}
