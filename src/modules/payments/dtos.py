"""Payment and refund DTOs.

Immutable Pydantic v2 contracts between the DRF serializers and the
payment/refund services.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.core.money import quantize
from modules.payments.constants import PaymentChannel, PaymentMethod


class CreatePaymentDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    payment_method: PaymentMethod = PaymentMethod.WECHAT
    payment_channel: PaymentChannel = PaymentChannel.MINIPROGRAM
    payer_id: Optional[str] = None


class PaymentIntentDTO(BaseModel):
    """Result of ``create_payment``: the ledger row plus client parameters."""

    model_config = ConfigDict(frozen=True)

    payment_id: UUID
    payment_no: str
    amount: Decimal
    status: str
    expired_at: Any
    channel_params: Dict[str, Any] = Field(default_factory=dict)


class CreateRefundDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    order_id: UUID
    amount: Decimal
    reason: str

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, v: Decimal) -> Decimal:
        v = quantize(v)
        if v <= 0:
            raise ValueError("Refund amount must be positive.")
        return v

    @field_validator("reason")
    @classmethod
    def reason_must_not_be_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("Refund reason is required.")
        return v
