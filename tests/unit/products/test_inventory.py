"""InventoryService against the real ORM: conditional stock moves."""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest

from modules.products.exceptions import InsufficientStock, ProductNotFound, ProductOffShelf
from modules.products.models import Product, Sku
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import InventoryService

pytestmark = pytest.mark.unit


@pytest.fixture()
def inventory():
    return InventoryService(ProductDjangoRepository())


def _stock(product: Product) -> int:
    product.refresh_from_db()
    return product.stock


class TestReserve:
    def test_reserve_decrements_stock_and_snapshots_the_product(self, inventory, make_product):
        product = make_product(price="80.00", stock=5, name="Tent")

        reservation = inventory.reserve(product.id, None, 2)

        assert _stock(product) == 3
        assert reservation.unit_price == Decimal("80.00")
        assert reservation.product_name == "Tent"
        assert reservation.product_image == product.main_image
        assert reservation.sku_info == ""

    def test_reserve_variant_decrements_both_rows_at_variant_price(
        self, inventory, make_product, make_sku
    ):
        product = make_product(price="50.00", stock=10)
        sku = make_sku(product, price="55.00", stock=3, attributes={"size": "L", "color": "blue"})

        reservation = inventory.reserve(product.id, sku.id, 3)

        sku.refresh_from_db()
        assert sku.stock == 0
        assert _stock(product) == 7
        assert reservation.unit_price == Decimal("55.00")
        assert reservation.sku_info == "color:blue size:L"

    def test_insufficient_stock_changes_nothing(self, inventory, make_product):
        product = make_product(stock=1)
        with pytest.raises(InsufficientStock):
            inventory.reserve(product.id, None, 2)
        assert _stock(product) == 1

    def test_insufficient_product_stock_rolls_back_the_variant_decrement(
        self, inventory, make_product, make_sku
    ):
        product = make_product(stock=1)
        sku = make_sku(product, stock=5)

        with pytest.raises(InsufficientStock):
            inventory.reserve(product.id, sku.id, 2)

        sku.refresh_from_db()
        assert sku.stock == 5
        assert _stock(product) == 1

    def test_off_shelf_product_is_rejected(self, inventory, make_product):
        product = make_product(is_on_sale=False)
        with pytest.raises(ProductOffShelf):
            inventory.reserve(product.id, None, 1)

    def test_inactive_variant_is_rejected(self, inventory, make_product, make_sku):
        product = make_product()
        sku = make_sku(product, is_active=False)
        with pytest.raises(ProductOffShelf):
            inventory.reserve(product.id, sku.id, 1)

    def test_variant_of_another_product_is_not_found(self, inventory, make_product, make_sku):
        product, other = make_product(), make_product()
        sku = make_sku(other)
        with pytest.raises(ProductNotFound):
            inventory.reserve(product.id, sku.id, 1)

    def test_missing_or_deleted_product_is_not_found(self, inventory, make_product):
        with pytest.raises(ProductNotFound):
            inventory.reserve(uuid4(), None, 1)

        product = make_product()
        product.delete()
        with pytest.raises(ProductNotFound):
            inventory.reserve(product.id, None, 1)

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity_is_rejected(self, inventory, make_product, quantity):
        product = make_product(stock=5)
        with pytest.raises(ValueError):
            inventory.reserve(product.id, None, quantity)
        assert _stock(product) == 5


class TestRelease:
    def test_release_restores_exactly_what_was_reserved(self, inventory, make_product, make_sku):
        product = make_product(stock=10)
        sku = make_sku(product, stock=4)
        inventory.reserve(product.id, sku.id, 3)

        inventory.release(product.id, sku.id, 3)

        sku.refresh_from_db()
        assert sku.stock == 4
        assert _stock(product) == 10

    def test_release_ignores_the_on_sale_flag(self, inventory, make_product):
        product = make_product(stock=2)
        inventory.reserve(product.id, None, 2)
        Product.objects.filter(id=product.id).update(is_on_sale=False)

        inventory.release(product.id, None, 2)

        assert _stock(product) == 2

    def test_sales_counter(self, inventory, make_product):
        product = make_product()
        inventory.increase_sales_counter(product.id, 3)
        product.refresh_from_db()
        assert product.sales_count == 3


class TestSkuModel:
    def test_code_is_normalised(self, make_product):
        sku = Sku.objects.create(
            product=make_product(), code="  ab-1 ", price=Decimal("1.00"), stock=1
        )
        assert sku.code == "AB-1"
