"""Django ORM implementation of the Cart repository."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError

from modules.cart.models import CartItem
from modules.cart.repositories.interfaces import ICartRepository

logger = structlog.get_logger(__name__)


class CartDjangoRepository(ICartRepository):
    def get_by_id(self, id: str) -> Optional[CartItem]:
        try:
            return CartItem.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[CartItem]:
        queryset = CartItem.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def save(self, entity: CartItem) -> CartItem:
        entity.save()
        return entity

    def list_selected(self, customer_id: UUID) -> List[CartItem]:
        return list(
            CartItem.objects.filter(customer_id=customer_id, selected=True).order_by(
                "product_id", "sku_id"
            )
        )

    def delete_lines(self, customer_id: UUID, line_ids: List[UUID]) -> int:
        deleted, _ = CartItem.objects.filter(customer_id=customer_id, id__in=line_ids).delete()
        logger.info("cart.lines_checked_out", customer_id=str(customer_id), lines=deleted)
        return deleted
