from __future__ import annotations

import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from modules.customers.models import Customer
from modules.marketing.constants import CouponScope, CouponType
from modules.marketing.models import Campaign, Coupon, UserCoupon
from modules.orders.container import build_order_service
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.products.models import Product, Sku


class Command(BaseCommand):
    help = "Seed database with realistic development data."

    def add_arguments(self, parser):
        parser.add_argument("--orders", type=int, default=20, help="Pending orders to create.")

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users_created = self._seed_users()
        customers = self._seed_customers()
        products = self._seed_products()
        coupons = self._seed_marketing(customers)
        orders_created = self._seed_orders(customers, products, options["orders"])

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"customers={len(customers)}, "
                f"products={len(products)}, "
                f"coupons={coupons}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="operator").exists():
            User.objects.create_user("operator", password="operator123", is_staff=True)
            created += 1
        return created

    def _seed_customers(self) -> list[Customer]:
        self.stdout.write("Creating customers...")
        User = get_user_model()
        customers: list[Customer] = []
        seed_customers = [
            ("wang", "Wang Fang", "13800138001"),
            ("li", "Li Wei", "13900139002"),
            ("zhang", "Zhang Min", "15000150003"),
            ("liu", "Liu Yang", "18600186004"),
            ("chen", "Chen Jing", "17700177005"),
        ]
        for username, name, phone in seed_customers:
            user, user_created = User.objects.get_or_create(username=username)
            if user_created:
                user.set_password(f"{username}123")
                user.save()
            customer, _ = Customer.objects.get_or_create(
                user=user,
                defaults={
                    "name": name,
                    "email": f"{username}@example.com",
                    "phone": phone,
                    "is_active": True,
                },
            )
            customers.append(customer)
        self.stdout.write(self.style.SUCCESS("Creating customers... Done!"))
        return customers

    def _seed_products(self) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        catalog = [
            ("Camping Tent", Decimal("80.00"), [("TENT-2P", {"size": "2P"}, Decimal("80.00"))]),
            ("Gas Stove", Decimal("100.00"), []),
            ("Sleeping Bag", Decimal("129.00"), [
                ("BAG-S", {"size": "S"}, Decimal("119.00")),
                ("BAG-L", {"size": "L"}, Decimal("139.00")),
            ]),
            ("Headlamp", Decimal("39.90"), []),
            ("Folding Chair", Decimal("59.00"), []),
            ("Water Filter", Decimal("199.00"), []),
            ("Trekking Poles", Decimal("149.00"), []),
            ("Cooler Box", Decimal("249.00"), []),
        ]
        for name, price, variants in catalog:
            product, _ = Product.objects.get_or_create(
                name=name,
                defaults={
                    "price": price,
                    "stock": random.randint(100, 300),
                    "images": [f"https://cdn.example.com/{name.lower().replace(' ', '-')}.png"],
                },
            )
            for code, attributes, variant_price in variants:
                Sku.objects.get_or_create(
                    code=code,
                    defaults={
                        "product": product,
                        "attributes": attributes,
                        "price": variant_price,
                        "stock": random.randint(5, 50),
                    },
                )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_marketing(self, customers: list[Customer]) -> int:
        self.stdout.write("Creating campaign and coupons...")
        now = timezone.now()
        Campaign.objects.get_or_create(
            name="Spend 200 save 20",
            defaults={
                "rules": [
                    {"min_amount": "100", "discount": "5"},
                    {"min_amount": "200", "discount": "20"},
                ],
                "start_time": now - timedelta(days=1),
                "end_time": now + timedelta(days=30),
            },
        )
        templates = [
            Coupon.objects.get_or_create(
                name="Spend 150 save 10",
                defaults={
                    "coupon_type": CouponType.FIXED,
                    "value": Decimal("10.00"),
                    "min_amount": Decimal("150.00"),
                    "start_time": now - timedelta(days=1),
                    "end_time": now + timedelta(days=30),
                },
            )[0],
            Coupon.objects.get_or_create(
                name="10% off rentals",
                defaults={
                    "coupon_type": CouponType.PERCENT,
                    "value": Decimal("0.10"),
                    "max_discount": Decimal("50.00"),
                    "applicable_scope": CouponScope.RENTAL,
                    "start_time": now - timedelta(days=1),
                    "end_time": now + timedelta(days=30),
                },
            )[0],
        ]
        issued = 0
        for customer in customers:
            for coupon in templates:
                _, created = UserCoupon.objects.get_or_create(
                    customer=customer,
                    coupon=coupon,
                    defaults={"expired_at": now + timedelta(days=14)},
                )
                issued += int(created)
        self.stdout.write(self.style.SUCCESS("Creating campaign and coupons... Done!"))
        return issued

    def _seed_orders(self, customers: list[Customer], products: list[Product], count: int) -> int:
        self.stdout.write("Creating orders...")
        if not customers or not products:
            self.stdout.write(self.style.WARNING("Skipping orders (no customers/products)."))
            return 0

        service = build_order_service()
        plain_products = [p for p in products if not p.skus.exists()]
        created = 0
        for _ in range(count):
            picked = random.sample(plain_products, k=min(len(plain_products), random.randint(1, 3)))
            dto = CreateOrderDTO(
                customer_id=random.choice(customers).id,
                items=[
                    CreateOrderItemDTO(product_id=product.id, quantity=random.randint(1, 3))
                    for product in picked
                ],
            )
            order = service.create_order(dto)
            if random.random() < 0.4:
                service.mark_paid(order.id)
            created += 1
        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return created
