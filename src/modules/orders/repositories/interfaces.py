"""Order repository interface.

Extends ``IRepository[Order]`` with what the Order aggregate needs:
creation together with its item snapshots, row locking, status history
and idempotency-key look-up.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Insert an order and its items.

        ``data`` carries the order columns plus ``items``: a list of dicts
        with the snapshot fields of ``OrderItem``.
        """

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding its row lock (``SELECT ... FOR UPDATE``)."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def get_by_idempotency_key(self, customer_id: UUID, key: str) -> Optional[Order]:
        """Retrieve the order *customer_id* created with this idempotency key."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders (newest first) with optional ORM look-ups."""
