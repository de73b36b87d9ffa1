"""Order DTOs for the service layer.

Framework-agnostic, immutable (``frozen=True``) Pydantic v2 contracts
between the API layer (DRF serializers) and ``OrderService``.  Validation
errors raised here reject a request before any ledger row is touched.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from modules.orders.constants import TransactionType

# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """One requested line; price and snapshot come from the inventory."""

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    sku_id: Optional[UUID] = None
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class CreateOrderDTO(BaseModel):
    """Direct order creation request.

    Validates:
    - ``items`` must contain at least one line.
    - The same (product, variant) pair may appear only once.
    """

    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    items: List[CreateOrderItemDTO]
    transaction_type: TransactionType = TransactionType.RETAIL
    address_id: Optional[UUID] = None
    user_coupon_id: Optional[UUID] = None
    remark: str = ""
    idempotency_key: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @model_validator(mode="after")
    def no_duplicate_lines(self):
        keys = [(item.product_id, item.sku_id) for item in self.items]
        if len(keys) != len(set(keys)):
            raise ValueError("Duplicate product/variant lines are not allowed.")
        return self


class CreateOrderFromCartDTO(BaseModel):
    """Checkout of the customer's selected cart lines."""

    model_config = ConfigDict(frozen=True)

    customer_id: UUID
    address_id: Optional[UUID] = None
    user_coupon_id: Optional[UUID] = None
    remark: str = ""


class ShipOrderDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    express_company: str
    express_no: str

    @field_validator("express_company", "express_no")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("Must not be blank.")
        return v
