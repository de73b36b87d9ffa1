"""Payment and Refund repository interfaces."""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.payments.models import Payment, Refund


class IPaymentRepository(IRepository["Payment"]):
    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Payment:
        """Insert a pending payment."""

    @abstractmethod
    def get_by_payment_no(self, payment_no: str) -> Optional[Payment]:
        """Retrieve a payment by its external reference."""

    @abstractmethod
    def get_for_update_by_payment_no(self, payment_no: str) -> Optional[Payment]:
        """Retrieve a payment holding its row lock."""

    @abstractmethod
    def get_successful_for_order(self, order_id: UUID, lock: bool = False) -> Optional[Payment]:
        """The settled (``success`` or ``refunded``) payment of an order."""

    @abstractmethod
    def list_expired_pending_ids(self, now: datetime, limit: int) -> List[UUID]:
        """IDs of pending payments whose ``expired_at`` is in the past."""

    @abstractmethod
    def close_if_pending(self, payment_id: UUID, now: datetime) -> bool:
        """Conditionally move a pending, expired payment to ``closed``."""

    @abstractmethod
    def mark_refunded(self, payment_id: UUID) -> bool:
        """Conditionally move a successful payment to ``refunded``."""


class IRefundRepository(IRepository["Refund"]):
    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Refund:
        """Insert a pending refund."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Refund]:
        """Retrieve a refund holding its row lock."""

    @abstractmethod
    def get_for_update_by_refund_no(self, refund_no: str) -> Optional[Refund]:
        """Retrieve a refund by its external reference, holding its row lock."""

    @abstractmethod
    def exists_open_for_order(self, order_id: UUID) -> bool:
        """True while a pending/approved/processing refund exists for the order."""

    @abstractmethod
    def total_committed(self, payment_id: UUID) -> Decimal:
        """Sum of every non-rejected refund of a payment."""

    @abstractmethod
    def total_succeeded(self, payment_id: UUID) -> Decimal:
        """Sum of the successful refunds of a payment."""
