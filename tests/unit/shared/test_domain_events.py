from dataclasses import FrozenInstanceError
from uuid import uuid4

import pytest

from modules.core.outbox import serialize_event_payload
from modules.orders.events import OrderCancelled, OrderPaid
from shared.domain.bus import IEventHandler
from shared.domain.events import DomainEvent, DomainEventMixin
from shared.infrastructure.bus import InMemoryEventBus

pytestmark = pytest.mark.unit


class RecordingHandler(IEventHandler):
    def __init__(self):
        self.events = []

    def handle(self, event):
        self.events.append(event)


class TestDomainEvent:
    def test_event_name_is_class_name(self):
        event = OrderPaid(aggregate_id=uuid4(), order_no="M1", actual_amount="10.00")
        assert event.event_name == "OrderPaid"

    def test_events_are_immutable(self):
        event = OrderPaid(aggregate_id=uuid4())
        with pytest.raises(FrozenInstanceError):
            event.order_no = "changed"

    def test_subclasses_are_registered(self):
        assert DomainEvent.registry["OrderCancelled"] is OrderCancelled

    def test_payload_round_trip_rebuilds_the_event(self):
        original = OrderCancelled(aggregate_id=uuid4(), order_no="M1", reason="changed mind")
        payload = serialize_event_payload(original)

        rebuilt = DomainEvent.from_payload("OrderCancelled", payload)

        assert rebuilt == original

    def test_unknown_event_name_raises_key_error(self):
        with pytest.raises(KeyError):
            DomainEvent.from_payload("NoSuchEvent", {"aggregate_id": str(uuid4())})


class TestDomainEventMixin:
    def test_collects_and_clears_events(self):
        aggregate = DomainEventMixin()
        event = OrderPaid(aggregate_id=uuid4())
        aggregate.add_domain_event(event)

        assert aggregate.domain_events == [event]
        aggregate.clear_domain_events()
        assert aggregate.domain_events == []


class TestInMemoryEventBus:
    def test_publish_reaches_subscribers_of_the_event_type_only(self):
        bus = InMemoryEventBus()
        paid, cancelled = RecordingHandler(), RecordingHandler()
        bus.subscribe(OrderPaid, paid)
        bus.subscribe(OrderCancelled, cancelled)

        event = OrderPaid(aggregate_id=uuid4())
        bus.publish(event)

        assert paid.events == [event]
        assert cancelled.events == []

    def test_subscribe_is_idempotent(self):
        bus = InMemoryEventBus()
        handler = RecordingHandler()
        bus.subscribe(OrderPaid, handler)
        bus.subscribe(OrderPaid, handler)
        assert bus.handlers_for(OrderPaid) == [handler]
