"""Product repository interface.

Stock mutations are expressed as conditional operations returning whether
a row was updated, so the caller never reads-then-writes a stock value.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product, Sku


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate (products + skus)."""

    @abstractmethod
    def get_sku(self, id: str) -> Optional[Sku]:
        """Retrieve an alive variant by primary key."""

    @abstractmethod
    def decrease_stock(self, product_id: UUID, quantity: int) -> bool:
        """``stock -= quantity`` only if ``stock >= quantity``."""

    @abstractmethod
    def increase_stock(self, product_id: UUID, quantity: int) -> bool:
        """``stock += quantity``."""

    @abstractmethod
    def decrease_sku_stock(self, sku_id: UUID, quantity: int) -> bool:
        """Variant counterpart of ``decrease_stock``."""

    @abstractmethod
    def increase_sku_stock(self, sku_id: UUID, quantity: int) -> bool:
        """Variant counterpart of ``increase_stock``."""

    @abstractmethod
    def increase_sales_count(self, product_id: UUID, quantity: int) -> bool:
        """``sales_count += quantity``."""
