"""Product and Sku (variant) models: the inventory ledger.

- Stock lives on the product and, for variant products, also on the sku.
  A reservation decrements both; check constraints keep both non-negative.
- Stock changes only go through ``ProductDjangoRepository`` conditional
  updates, never through ``save()`` of a stale instance.
- ``is_on_sale`` / ``Sku.is_active`` gate new reservations only; releasing
  stock of an off-shelf product is always allowed.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class Product(SoftDeleteModel):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    images = models.JSONField(default=list, blank=True)
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    stock = models.IntegerField(default=0)
    sales_count = models.PositiveIntegerField(default=0)
    is_on_sale = models.BooleanField(default=True)

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["is_on_sale"], name="products_on_sale_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock__gte=0),
                name="products_stock_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="products_price_non_negative",
            ),
        ]

    @property
    def main_image(self) -> str:
        return self.images[0] if self.images else ""

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        super().save(*args, **kwargs)
        if is_new:
            logger.info("product.created", product_id=str(self.id), name=self.name)

    def __str__(self) -> str:
        return self.name


class Sku(SoftDeleteModel):
    """A purchasable variant of a product (e.g. colour/size)."""

    product = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="skus",
    )
    code = models.CharField(max_length=64, unique=True)
    attributes = models.JSONField(default=dict, blank=True)
    image = models.CharField(max_length=500, blank=True, default="")
    price = models.DecimalField(max_digits=12, decimal_places=2)
    stock = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "product_skus"
        ordering = ["code"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock__gte=0),
                name="product_skus_stock_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="product_skus_price_non_negative",
            ),
        ]

    @property
    def description(self) -> str:
        """Display text such as ``color:red size:M`` (keys sorted)."""
        return " ".join(f"{key}:{self.attributes[key]}" for key in sorted(self.attributes))

    def save(self, *args, **kwargs) -> None:
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.code} ({self.description})"
