"""Payment repositories package."""

from modules.payments.repositories.django_repository import (
    PaymentDjangoRepository,
    RefundDjangoRepository,
)
from modules.payments.repositories.interfaces import IPaymentRepository, IRefundRepository

__all__ = [
    "IPaymentRepository",
    "IRefundRepository",
    "PaymentDjangoRepository",
    "RefundDjangoRepository",
]
