"""Periodic payment tasks."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.conf import settings

from modules.payments.container import build_payment_service

logger = structlog.get_logger(__name__)


@shared_task(name="payments.close_expired_payments")
def close_expired_payments() -> int:
    """Close pending payments past their expiry (scheduled by celery beat)."""
    service = build_payment_service()
    closed = service.close_expired_payments(batch_size=settings.EXPIRED_PAYMENT_SWEEP_BATCH)
    logger.info("payment.expiry_sweep_finished", closed=closed)
    return closed
