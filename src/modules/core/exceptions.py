"""Domain error base class and its DRF translation.

Every bounded context raises subclasses of ``DomainError`` from its own
``exceptions.py``.  Each subclass declares a stable numeric ``code`` (shared
with API clients) and the HTTP status it maps to, so views never need a
per-exception ``try/except`` ladder.

Code ranges:
- 1xxx: customers / loyalty
- 5xxx: orders, products, cart
- 6xxx: payments, refunds, gateway
- 9xxx: coupons, campaigns
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from pydantic import ValidationError as DTOValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)


class DomainError(Exception):
    """Base class for business-rule violations raised by services."""

    code: int = 1000
    http_status: int = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message: str = "Business rule violated."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(DomainError):
    """Base for "entity does not exist (or is not yours)" errors."""

    code = 1404
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found."


class ConflictError(DomainError):
    """Base for errors caused by the current state of a ledger row."""

    code = 1409
    http_status = status.HTTP_409_CONFLICT
    default_message = "Resource state does not allow this operation."


class InfrastructureError(DomainError):
    """Base for failures of an external dependency (retryable)."""

    code = 1503
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "An external service is unavailable."


def domain_exception_handler(exc: Exception, context: dict[str, Any]) -> Optional[Response]:
    """DRF ``EXCEPTION_HANDLER`` rendering ``DomainError`` as ``{code, detail}``.

    DTO validation errors become HTTP 400 with the Pydantic error list.
    Anything else falls back to DRF's default handler (serializer
    validation, auth errors, 404s raised by DRF itself).
    Unknown exceptions return ``None`` and propagate as HTTP 500.
    """
    if isinstance(exc, DomainError):
        view = context.get("view")
        logger.warning(
            "api.domain_error",
            error=type(exc).__name__,
            code=exc.code,
            detail=exc.message,
            view=type(view).__name__ if view is not None else None,
        )
        return Response(
            {"code": exc.code, "detail": exc.message},
            status=exc.http_status,
        )
    if isinstance(exc, DTOValidationError):
        return Response(
            {"detail": exc.errors(include_url=False, include_context=False, include_input=False)},
            status=status.HTTP_400_BAD_REQUEST,
        )
    return exception_handler(exc, context)
