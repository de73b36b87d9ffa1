"""Event bus contracts used by the outbox publisher."""

from __future__ import annotations

from typing import Generic, Protocol, Type, TypeVar

from shared.domain.events import DomainEvent

E = TypeVar("E", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol, Generic[E]):
    """Consumes one kind of domain event after it left the outbox."""

    def handle(self, event: E) -> None: ...


class IEventBus(Protocol):
    """Routes a published event to every subscribed handler."""

    def publish(self, event: DomainEvent) -> None: ...

    def subscribe(self, event_class: Type[E], handler: IEventHandler[E]) -> None: ...
