"""Order event hooks.

Side effects that run right after an order reaches ``completed`` or
``refunded`` (loyalty points today).  A hook can never undo, block or fail
the transition that triggered it: ``CompositeOrderEventHandler`` runs each
handler inside its own savepoint and logs-and-swallows any exception.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, List, Optional

import structlog
from django.db import transaction

from modules.orders.constants import OrderStatus, TransactionType

if TYPE_CHECKING:
    from modules.customers.loyalty import LoyaltyLedger
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)


class OrderEventHandler(ABC):
    @abstractmethod
    def on_order_completed(self, order: Order) -> None: ...

    @abstractmethod
    def on_order_refunded(self, order: Order) -> None: ...


class PointsHook(OrderEventHandler):
    """Credits points on completion and revokes them on refund.

    Member-package purchases earn no points; orders with nothing paid are
    skipped.
    """

    def __init__(self, loyalty_ledger: LoyaltyLedger) -> None:
        self._ledger = loyalty_ledger

    @staticmethod
    def _eligible(order: Order) -> bool:
        if order.transaction_type == TransactionType.MEMBER_PACKAGE:
            return False
        return order.actual_amount > 0

    def on_order_completed(self, order: Order) -> None:
        if order.status != OrderStatus.COMPLETED or not self._eligible(order):
            return
        self._ledger.credit_for_purchase(order.customer_id, order.actual_amount, order.order_number)

    def on_order_refunded(self, order: Order) -> None:
        if order.status != OrderStatus.REFUNDED or not self._eligible(order):
            return
        self._ledger.debit_for_refund(order.customer_id, order.actual_amount, order.order_number)


class CompositeOrderEventHandler(OrderEventHandler):
    """Fans an order event out to every registered handler, in order."""

    def __init__(self, handlers: Optional[Iterable[OrderEventHandler]] = None) -> None:
        self._handlers: List[OrderEventHandler] = list(handlers or [])

    def add_handler(self, handler: OrderEventHandler) -> None:
        self._handlers.append(handler)

    def on_order_completed(self, order: Order) -> None:
        self._dispatch("on_order_completed", order)

    def on_order_refunded(self, order: Order) -> None:
        self._dispatch("on_order_refunded", order)

    def _dispatch(self, method: str, order: Order) -> None:
        for handler in self._handlers:
            hook_name = type(handler).__name__
            try:
                with transaction.atomic():
                    getattr(handler, method)(order)
            except Exception:
                logger.exception(
                    "order.hook_failed",
                    hook=hook_name,
                    callback=method,
                    order_id=str(order.id),
                    order_no=order.order_number,
                )
