"""Django ORM implementation of the Product repository.

Every stock move is a single ``UPDATE ... SET stock = stock -/+ n`` built
with ``F()`` expressions.  The decrement carries the guard
``WHERE stock >= n`` so two concurrent reservations can never both consume
the last units: the loser updates zero rows.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from modules.products.models import Product, Sku
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Product]:
        """Retrieve an alive product.  ``None`` for missing or invalid IDs."""
        try:
            return Product.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_sku(self, id: str) -> Optional[Sku]:
        try:
            return Sku.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        queryset = Product.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Product) -> Product:
        entity.save()
        logger.info("product.saved", product_id=str(entity.id))
        return entity

    # ------------------------------------------------------------------
    # Stock moves
    # ------------------------------------------------------------------

    def decrease_stock(self, product_id: UUID, quantity: int) -> bool:
        updated = Product.objects.filter(id=product_id, stock__gte=quantity).update(
            stock=F("stock") - quantity, updated_at=timezone.now()
        )
        return updated == 1

    def increase_stock(self, product_id: UUID, quantity: int) -> bool:
        updated = Product.objects.filter(id=product_id).update(
            stock=F("stock") + quantity, updated_at=timezone.now()
        )
        return updated == 1

    def decrease_sku_stock(self, sku_id: UUID, quantity: int) -> bool:
        updated = Sku.objects.filter(id=sku_id, stock__gte=quantity).update(
            stock=F("stock") - quantity, updated_at=timezone.now()
        )
        return updated == 1

    def increase_sku_stock(self, sku_id: UUID, quantity: int) -> bool:
        updated = Sku.objects.filter(id=sku_id).update(
            stock=F("stock") + quantity, updated_at=timezone.now()
        )
        return updated == 1

    def increase_sales_count(self, product_id: UUID, quantity: int) -> bool:
        updated = Product.objects.filter(id=product_id).update(
            sales_count=F("sales_count") + quantity, updated_at=timezone.now()
        )
        return updated == 1
