"""Inventory ledger service.

Reserves and releases stock for order creation and cancellation.  Every
operation is a conditional update against the product row (and the sku row
for variant purchases), executed inside a savepoint: a reservation either
takes units from both rows or from neither.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional
from uuid import UUID

import structlog
from django.db import transaction

from modules.products.dtos import Reservation
from modules.products.exceptions import InsufficientStock, ProductNotFound, ProductOffShelf

if TYPE_CHECKING:
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class InventoryService:
    """Application service for the inventory ledger.

    Receives an ``IProductRepository`` via constructor injection.
    """

    def __init__(self, product_repository: IProductRepository) -> None:
        self._repo = product_repository

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def reserve(
        self,
        product_id: UUID,
        sku_id: Optional[UUID],
        quantity: int,
    ) -> Reservation:
        """Atomically take *quantity* units of a product (and variant).

        Raises:
            ValueError: ``quantity`` is not positive.
            ProductNotFound: product or variant missing, or the variant
                belongs to another product.
            ProductOffShelf: product not on sale, or variant inactive.
            InsufficientStock: the conditional decrement matched no row.
        """
        _require_positive(quantity)
        log = logger.bind(
            product_id=str(product_id),
            sku_id=str(sku_id) if sku_id else None,
            quantity=quantity,
        )

        with transaction.atomic():
            product = self._repo.get_by_id(str(product_id))
            if not product:
                raise ProductNotFound(f"Product {product_id} not found.")
            if not product.is_on_sale:
                raise ProductOffShelf(f"Product {product.name} is off the shelf.")

            unit_price = product.price
            image = product.main_image
            sku_info = ""

            if sku_id is not None:
                sku = self._repo.get_sku(str(sku_id))
                if not sku or sku.product_id != product.id:
                    raise ProductNotFound(f"Variant {sku_id} not found.")
                if not sku.is_active:
                    raise ProductOffShelf(f"Variant {sku.code} is deactivated.")
                if not self._repo.decrease_sku_stock(sku.id, quantity):
                    log.warning("inventory.sku_stock_insufficient")
                    raise InsufficientStock(
                        f"Variant {sku.code}: requested {quantity}, "
                        f"available {sku.stock}."
                    )
                unit_price = sku.price
                image = sku.image or image
                sku_info = sku.description

            if not self._repo.decrease_stock(product.id, quantity):
                log.warning("inventory.stock_insufficient")
                raise InsufficientStock(
                    f"Product {product.name}: requested {quantity}, "
                    f"available {product.stock}."
                )

        log.info("inventory.reserved")
        return Reservation(
            product_id=product.id,
            sku_id=sku_id,
            quantity=quantity,
            unit_price=unit_price,
            product_name=product.name,
            product_image=image,
            sku_info=sku_info,
        )

    def release(self, product_id: UUID, sku_id: Optional[UUID], quantity: int) -> None:
        """Return *quantity* units taken by an earlier ``reserve``.

        Release ignores ``is_on_sale``: stock of a product taken off the
        shelf after the order was placed still comes back.
        """
        _require_positive(quantity)
        with transaction.atomic():
            if sku_id is not None:
                self._repo.increase_sku_stock(sku_id, quantity)
            if not self._repo.increase_stock(product_id, quantity):
                raise ProductNotFound(f"Product {product_id} not found.")
        logger.info(
            "inventory.released",
            product_id=str(product_id),
            sku_id=str(sku_id) if sku_id else None,
            quantity=quantity,
        )

    def increase_sales_counter(self, product_id: UUID, quantity: int) -> None:
        _require_positive(quantity)
        self._repo.increase_sales_count(product_id, quantity)


def _require_positive(quantity: int) -> None:
    if quantity <= 0:
        raise ValueError(f"Quantity must be positive, got {quantity}.")
