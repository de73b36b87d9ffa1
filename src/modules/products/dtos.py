"""Inventory DTOs.

``Reservation`` is what ``InventoryService.reserve`` hands back to order
creation: the units taken plus the price/display snapshot that the order
item freezes.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class Reservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    sku_id: Optional[UUID] = None
    quantity: int
    unit_price: Decimal
    product_name: str
    product_image: str = ""
    sku_info: str = ""

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity
