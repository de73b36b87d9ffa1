"""Domain events for the Orders bounded context.

Extra fields carry defaults because the base ``DomainEvent`` already
declares defaulted fields.
"""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    order_no: str = ""
    actual_amount: str = "0.00"


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    order_no: str = ""
    old_status: str = ""
    new_status: str = ""


@dataclass(frozen=True)
class OrderPaid(DomainEvent):
    order_no: str = ""
    actual_amount: str = "0.00"


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    order_no: str = ""
    reason: str = ""


@dataclass(frozen=True)
class OrderCompleted(DomainEvent):
    order_no: str = ""
    customer_id: str = ""
    actual_amount: str = "0.00"


@dataclass(frozen=True)
class OrderRefunded(DomainEvent):
    order_no: str = ""
    customer_id: str = ""
    actual_amount: str = "0.00"
