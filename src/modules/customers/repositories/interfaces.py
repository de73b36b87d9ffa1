"""Customer repository interface.

Extends ``IRepository[Customer]`` with the address and points-ledger
operations used by order creation and the loyalty hook.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.customers.models import Address, Customer, PointsTransaction


class ICustomerRepository(IRepository["Customer"]):
    """Repository contract for the Customer aggregate."""

    @abstractmethod
    def get_by_user_id(self, user_id: int) -> Optional[Customer]:
        """Resolve the customer linked to an auth user."""

    @abstractmethod
    def get_address(self, customer_id: UUID, address_id: UUID) -> Optional[Address]:
        """Retrieve an address only if it belongs to *customer_id*."""

    # ------------------------------------------------------------------
    # Points ledger
    # ------------------------------------------------------------------

    @abstractmethod
    def has_points_entry(self, customer_id: UUID, kind: str, order_no: str) -> bool:
        """Whether a ledger row already exists for this order and kind."""

    @abstractmethod
    def get_points_entry(
        self, customer_id: UUID, kind: str, order_no: str
    ) -> Optional[PointsTransaction]:
        """The ledger row for this order and kind, if any."""

    @abstractmethod
    def record_points(
        self,
        customer_id: UUID,
        kind: str,
        points: int,
        order_no: str,
        description: str = "",
    ) -> PointsTransaction:
        """Append a signed ledger row."""

    @abstractmethod
    def add_points(self, customer_id: UUID, points: int) -> bool:
        """Increase the balance.  Returns ``False`` if the customer is missing."""

    @abstractmethod
    def deduct_points(self, customer_id: UUID, points: int) -> bool:
        """Decrease the balance only if it stays non-negative."""
