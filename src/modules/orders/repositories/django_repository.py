"""Django ORM implementation of the Order repository.

``save`` persists the aggregate and, in the same transaction, writes every
pending domain event of the order to the outbox.  Status changes are made
by the service on a row obtained through ``get_for_update``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import QuerySet

from modules.core.outbox import flush_domain_events
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

ORDER_TOPIC = "orders"

ORDER_COLUMNS = (
    "customer_id",
    "transaction_type",
    "user_coupon_id",
    "campaign_id",
    "address_snapshot",
    "remark",
    "idempotency_key",
)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its item snapshots.

        ``data`` keys: the ``ORDER_COLUMNS``, ``discount_amount`` and
        ``items`` (dicts with ``product_id``, ``sku_id``, ``product_name``,
        ``product_image``, ``sku_info``, ``unit_price``, ``quantity``).
        ``original_amount`` is the sum of item subtotals and
        ``actual_amount`` is derived from it.
        """
        items = data.get("items", [])
        original = sum(
            (Decimal(item["unit_price"]) * item["quantity"] for item in items),
            Decimal("0.00"),
        )
        discount = Decimal(data.get("discount_amount") or "0.00")

        order = Order(
            original_amount=original,
            discount_amount=discount,
            actual_amount=original - discount,
            **{key: data[key] for key in ORDER_COLUMNS if key in data},
        )
        order.save()

        for item_data in items:
            OrderItem(order=order, **item_data).save()

        logger.info("order.persisted", order_id=str(order.id), item_count=len(items))
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _queryset(self) -> QuerySet:
        return Order.objects.select_related("customer").prefetch_related(
            "items", "status_history"
        )

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded items and history.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return self._queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve the order holding its row lock (orders row only, no joins).

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.select_for_update()
                .prefetch_related("items")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        return list(self.queryset(filters))

    def queryset(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet:
        """Lazy variant of ``list`` for views that filter and paginate."""
        queryset = self._queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def get_by_idempotency_key(self, customer_id: UUID, key: str) -> Optional[Order]:
        return self._queryset().filter(customer_id=customer_id, idempotency_key=key).first()

    # ------------------------------------------------------------------
    # Save (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist the order and flush its domain events to the outbox."""
        entity.save()
        events = flush_domain_events(entity, ORDER_TOPIC)
        logger.info("order.saved", order_id=str(entity.id), event_count=len(events))
        return entity

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def add_history(
        self,
        order_id: UUID,
        status: str,
        notes: str = "",
        old_status: Optional[str] = None,
    ) -> OrderStatusHistory:
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=status,
            notes=notes,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=status,
        )
        return history
