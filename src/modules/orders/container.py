"""Composition root for the Orders context.

Views and tasks build services here instead of reaching for module-level
singletons.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings

from modules.cart.repositories.django_repository import CartDjangoRepository
from modules.customers.loyalty import LoyaltyLedger
from modules.customers.repositories.django_repository import CustomerDjangoRepository
from modules.marketing.repositories.django_repository import MarketingDjangoRepository
from modules.marketing.services import CampaignService, CouponService, DiscountCalculator
from modules.orders.handlers import ORDER_EVENTS, OrderLifecycleLogHandler
from modules.orders.hooks import CompositeOrderEventHandler, PointsHook
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.repositories.django_repository import ProductDjangoRepository
from modules.products.services import InventoryService
from shared.infrastructure.bus import InMemoryEventBus


def build_coupon_service() -> CouponService:
    return CouponService(MarketingDjangoRepository())


def build_discount_calculator() -> DiscountCalculator:
    repository = MarketingDjangoRepository()
    return DiscountCalculator(CampaignService(repository), CouponService(repository))


def build_order_hooks() -> CompositeOrderEventHandler:
    ledger = LoyaltyLedger(
        CustomerDjangoRepository(),
        points_per_unit=Decimal(str(settings.LOYALTY_POINTS_PER_UNIT)),
    )
    return CompositeOrderEventHandler([PointsHook(ledger)])


def build_order_service() -> OrderService:
    return OrderService(
        order_repository=OrderDjangoRepository(),
        customer_repository=CustomerDjangoRepository(),
        inventory=InventoryService(ProductDjangoRepository()),
        discounts=build_discount_calculator(),
        cart_repository=CartDjangoRepository(),
        event_dispatcher=build_order_hooks(),
    )


def build_event_bus() -> InMemoryEventBus:
    """Event bus used by the outbox publisher (``OUTBOX_EVENT_BUS_FACTORY``)."""
    bus = InMemoryEventBus()
    audit = OrderLifecycleLogHandler()
    for event_class in ORDER_EVENTS:
        bus.subscribe(event_class, audit)
    return bus
