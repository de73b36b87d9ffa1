"""Cart repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, List
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.cart.models import CartItem


class ICartRepository(IRepository["CartItem"]):
    @abstractmethod
    def list_selected(self, customer_id: UUID) -> List[CartItem]:
        """Selected lines of the customer's cart."""

    @abstractmethod
    def delete_lines(self, customer_id: UUID, line_ids: List[UUID]) -> int:
        """Remove the given lines of the customer's cart; returns how many were deleted."""
