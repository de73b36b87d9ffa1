"""Order service layer (use cases).

Owns every order status transition.  All commands are atomic: the service
defines the unit-of-work boundary and takes the order row lock before
reading its status.

State machine (see ``constants.VALID_TRANSITIONS``)::

    pending -> paid | cancelled
    paid -> pending_ship | shipped | refunding
    pending_ship -> shipped | refunding
    shipped -> completed | refunding
    refunding -> refunded | paid | pending_ship | shipped

Creation reserves stock through ``InventoryService`` item by item (sorted
by product/variant id so concurrent checkouts lock rows in the same
order).  Any failure rolls the whole transaction back, which returns
every unit reserved earlier in the same request.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.db import transaction
from django.utils import timezone

from modules.customers.exceptions import AddressNotFound, CustomerNotFound, InactiveCustomer
from modules.orders.constants import OrderStatus
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.events import (
    OrderCancelled,
    OrderCompleted,
    OrderCreated,
    OrderPaid,
    OrderRefunded,
    OrderStatusChanged,
)
from modules.orders.exceptions import CartEmpty, InvalidOrderStatus, OrderNotFound

if TYPE_CHECKING:
    from modules.cart.repositories.interfaces import ICartRepository
    from modules.customers.repositories.interfaces import ICustomerRepository
    from modules.marketing.services import DiscountCalculator
    from modules.orders.dtos import CreateOrderFromCartDTO, ShipOrderDTO
    from modules.orders.hooks import OrderEventHandler
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.services import InventoryService

logger = structlog.get_logger(__name__)


def status_name(status: str) -> str:
    """Display name of an order status (``paid`` -> ``Awaiting shipment``)."""
    return OrderStatus(status).label


class OrderService:
    """Application service for Order use cases.

    Receives its collaborators via constructor injection.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        customer_repository: ICustomerRepository,
        inventory: InventoryService,
        discounts: DiscountCalculator,
        cart_repository: ICartRepository,
        event_dispatcher: OrderEventHandler,
    ) -> None:
        self._order_repo = order_repository
        self._customer_repo = customer_repository
        self._inventory = inventory
        self._discounts = discounts
        self._cart_repo = cart_repository
        self._dispatcher = event_dispatcher

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Create a pending order: reserve stock, price it, redeem the coupon.

        Raises:
            CustomerNotFound / InactiveCustomer: invalid owner.
            AddressNotFound: the address does not belong to the owner.
            ProductNotFound / ProductOffShelf / InsufficientStock: from the
                inventory ledger; nothing stays reserved.
            CouponNotApplicable: the chosen coupon was consumed meanwhile.
        """
        log = logger.bind(customer_id=str(dto.customer_id))
        log.info("order.creation_started", item_count=len(dto.items))

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(
                dto.customer_id, dto.idempotency_key
            )
            if existing:
                log.info("order.idempotency_hit", order_id=str(existing.id))
                return existing

        customer = self._customer_repo.get_by_id(str(dto.customer_id))
        if not customer:
            raise CustomerNotFound(f"Customer {dto.customer_id} not found.")
        if not customer.is_active:
            raise InactiveCustomer(f"Customer {dto.customer_id} is inactive.")

        address_snapshot = None
        if dto.address_id is not None:
            address = self._customer_repo.get_address(customer.id, dto.address_id)
            if not address:
                raise AddressNotFound(f"Address {dto.address_id} not found.")
            address_snapshot = address.to_snapshot()

        sorted_items = sorted(
            dto.items, key=lambda i: (str(i.product_id), str(i.sku_id or ""))
        )
        item_rows: List[Dict[str, Any]] = []
        for item in sorted_items:
            reservation = self._inventory.reserve(item.product_id, item.sku_id, item.quantity)
            item_rows.append(
                {
                    "product_id": reservation.product_id,
                    "sku_id": reservation.sku_id,
                    "product_name": reservation.product_name,
                    "product_image": reservation.product_image,
                    "sku_info": reservation.sku_info,
                    "unit_price": reservation.unit_price,
                    "quantity": reservation.quantity,
                }
            )

        original_amount = sum(row["unit_price"] * row["quantity"] for row in item_rows)
        pricing = self._discounts.compose(
            customer.id, dto.transaction_type, original_amount, dto.user_coupon_id
        )

        order = self._order_repo.create(
            {
                "customer_id": customer.id,
                "transaction_type": dto.transaction_type,
                "discount_amount": pricing.total_discount,
                "user_coupon_id": pricing.user_coupon_id,
                "campaign_id": pricing.campaign_id,
                "address_snapshot": address_snapshot,
                "remark": dto.remark,
                "idempotency_key": dto.idempotency_key,
                "items": item_rows,
            }
        )

        if pricing.user_coupon_id is not None:
            self._discounts.redeem_coupon(pricing.user_coupon_id, order.id)

        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                order_no=order.order_number,
                actual_amount=str(order.actual_amount),
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(order_id=order.id, status=OrderStatus.PENDING, notes="Order created")

        log.info(
            "order.created",
            order_id=str(order.id),
            order_no=order.order_number,
            original_amount=str(order.original_amount),
            discount_amount=str(order.discount_amount),
            actual_amount=str(order.actual_amount),
        )
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def create_order_from_cart(self, dto: CreateOrderFromCartDTO) -> Order:
        """Check out the selected cart lines; unselected lines stay.

        Raises:
            CartEmpty: no selected lines.
            Any error of ``create_order`` (the cart is then left untouched).
        """
        lines = self._cart_repo.list_selected(dto.customer_id)
        if not lines:
            raise CartEmpty()

        order = self.create_order(
            CreateOrderDTO(
                customer_id=dto.customer_id,
                items=[
                    CreateOrderItemDTO(
                        product_id=line.product_id,
                        sku_id=line.sku_id,
                        quantity=line.quantity,
                    )
                    for line in lines
                ],
                address_id=dto.address_id,
                user_coupon_id=dto.user_coupon_id,
                remark=dto.remark,
            )
        )
        self._cart_repo.delete_lines(dto.customer_id, [line.id for line in lines])
        return order

    # ------------------------------------------------------------------
    # Customer transitions
    # ------------------------------------------------------------------

    @transaction.atomic
    def cancel_order(
        self,
        order_id: UUID,
        customer_id: Optional[UUID] = None,
        reason: str = "",
    ) -> Order:
        """Cancel a pending order, returning its stock and coupon.

        The row lock is taken first, so two concurrent cancellations can
        never release the stock twice.

        Raises:
            OrderNotFound: missing, or not owned by *customer_id*.
            InvalidOrderStatus: the order is no longer pending.
        """
        order = self.get_order_for_update(order_id, customer_id)
        log = logger.bind(order_id=str(order.id), current_status=order.status)

        if order.status != OrderStatus.PENDING:
            log.warning("order.cancel_not_allowed")
            raise InvalidOrderStatus(f"Cannot cancel order in status {order.status}.")

        for item in sorted(order.items.all(), key=lambda i: (str(i.product_id), str(i.sku_id or ""))):
            self._inventory.release(item.product_id, item.sku_id, item.quantity)
        self._discounts.restore_coupons(order.id)

        order.cancelled_at = timezone.now()
        order.cancel_reason = reason
        order.add_domain_event(
            OrderCancelled(aggregate_id=order.id, order_no=order.order_number, reason=reason)
        )
        self._transition(order, OrderStatus.CANCELLED, notes=reason or "Order cancelled")
        log.info("order.cancelled")
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def confirm_receive(self, order_id: UUID, customer_id: Optional[UUID] = None) -> Order:
        """Customer confirms delivery: ``shipped -> completed``.

        Completion hooks run after the transition; their failures are
        logged and never undo the completion.
        """
        order = self.get_order_for_update(order_id, customer_id)
        if order.status != OrderStatus.SHIPPED:
            logger.warning("order.confirm_not_allowed", order_id=str(order.id), status=order.status)
            raise InvalidOrderStatus(f"Cannot confirm receipt of order in status {order.status}.")

        now = timezone.now()
        order.received_at = now
        order.completed_at = now
        order.add_domain_event(
            OrderCompleted(
                aggregate_id=order.id,
                order_no=order.order_number,
                customer_id=str(order.customer_id),
                actual_amount=str(order.actual_amount),
            )
        )
        self._transition(order, OrderStatus.COMPLETED, notes="Receipt confirmed")
        logger.info("order.completed", order_id=str(order.id))

        self._dispatcher.on_order_completed(order)
        return self._order_repo.get_by_id(str(order.id)) or order

    # ------------------------------------------------------------------
    # System / operator transitions
    # ------------------------------------------------------------------

    @transaction.atomic
    def mark_paid(self, order_id: UUID, paid_at: Optional[datetime] = None) -> Order:
        """Payment cascade: ``pending -> paid`` and sales counters.

        An order that is already past ``pending`` (paid twice, or cancelled
        while the customer was paying) is left unchanged and logged.
        """
        order = self.get_order_for_update(order_id)
        log = logger.bind(order_id=str(order.id), current_status=order.status)
        if order.status != OrderStatus.PENDING:
            log.warning("order.paid_cascade_skipped")
            return order

        order.paid_at = paid_at or timezone.now()
        order.add_domain_event(
            OrderPaid(
                aggregate_id=order.id,
                order_no=order.order_number,
                actual_amount=str(order.actual_amount),
            )
        )
        self._transition(order, OrderStatus.PAID, notes="Payment confirmed")

        for item in order.items.all():
            self._inventory.increase_sales_counter(item.product_id, item.quantity)

        log.info("order.paid")
        return order

    @transaction.atomic
    def prepare_shipment(self, order_id: UUID) -> Order:
        order = self.get_order_for_update(order_id)
        self._require_transition(order, OrderStatus.PENDING_SHIP)
        self._transition(order, OrderStatus.PENDING_SHIP, notes="Preparing shipment")
        return order

    @transaction.atomic
    def ship_order(self, order_id: UUID, dto: ShipOrderDTO) -> Order:
        """``paid|pending_ship -> shipped`` with the carrier tracking data."""
        order = self.get_order_for_update(order_id)
        if order.status not in (OrderStatus.PAID, OrderStatus.PENDING_SHIP):
            raise InvalidOrderStatus(f"Cannot ship order in status {order.status}.")

        order.express_company = dto.express_company
        order.express_no = dto.express_no
        order.shipped_at = timezone.now()
        self._transition(
            order,
            OrderStatus.SHIPPED,
            notes=f"Shipped via {dto.express_company} ({dto.express_no})",
        )
        logger.info("order.shipped", order_id=str(order.id), express_company=dto.express_company)
        return order

    # ------------------------------------------------------------------
    # Refund transitions (driven by RefundService)
    # ------------------------------------------------------------------

    @transaction.atomic
    def begin_refund(self, order_id: UUID) -> Order:
        order = self.get_order_for_update(order_id)
        self._require_transition(order, OrderStatus.REFUNDING)
        self._transition(order, OrderStatus.REFUNDING, notes="Refund requested")
        return order

    @transaction.atomic
    def restore_after_refund(self, order_id: UUID, previous_status: str = "") -> Order:
        """Put a ``refunding`` order back where it was before the request.

        Without a recorded previous status: ``shipped`` if the order was
        ever shipped, ``paid`` otherwise.  No-op for orders that are not
        ``refunding``.
        """
        order = self.get_order_for_update(order_id)
        if order.status != OrderStatus.REFUNDING:
            logger.info("order.restore_skipped", order_id=str(order.id), status=order.status)
            return order

        target = previous_status or (
            OrderStatus.SHIPPED if order.shipped_at else OrderStatus.PAID
        )
        self._require_transition(order, target)
        self._transition(order, target, notes="Refund withdrawn")
        return order

    @transaction.atomic
    def mark_refunded(self, order_id: UUID) -> Order:
        """``refunding -> refunded`` and dispatch the refund hooks."""
        order = self.get_order_for_update(order_id)
        if order.status == OrderStatus.REFUNDED:
            return order
        self._require_transition(order, OrderStatus.REFUNDED)

        order.add_domain_event(
            OrderRefunded(
                aggregate_id=order.id,
                order_no=order.order_number,
                customer_id=str(order.customer_id),
                actual_amount=str(order.actual_amount),
            )
        )
        self._transition(order, OrderStatus.REFUNDED, notes="Refund completed")
        logger.info("order.refunded", order_id=str(order.id))

        self._dispatcher.on_order_refunded(order)
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: Any, customer_id: Optional[UUID] = None) -> Order:
        """Retrieve an order, scoped to *customer_id* when given.

        Raises:
            OrderNotFound: missing, or owned by someone else.
        """
        order = self._order_repo.get_by_id(str(order_id))
        if not order or (customer_id is not None and order.customer_id != customer_id):
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def get_order_for_update(self, order_id: Any, customer_id: Optional[UUID] = None) -> Order:
        """Lock and return an order (must be called inside a transaction)."""
        order = self._order_repo.get_for_update(str(order_id))
        if not order or (customer_id is not None and order.customer_id != customer_id):
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(
        self, customer_id: Optional[UUID] = None, status: Optional[str] = None
    ) -> List[Order]:
        filters: Dict[str, Any] = {}
        if customer_id is not None:
            filters["customer_id"] = customer_id
        if status:
            filters["status"] = status
        return self._order_repo.list(filters)

    status_name = staticmethod(status_name)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_transition(self, order: Order, new_status: str) -> None:
        if not order.can_transition_to(new_status):
            logger.warning(
                "order.invalid_transition",
                order_id=str(order.id),
                current_status=order.status,
                new_status=new_status,
            )
            raise InvalidOrderStatus(f"Cannot transition from {order.status} to {new_status}.")

    def _transition(self, order: Order, new_status: str, notes: str = "") -> None:
        """Apply a validated transition on a locked order: save, outbox, history."""
        old_status = order.status
        order.status = new_status
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                order_no=order.order_number,
                old_status=old_status,
                new_status=new_status,
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=new_status,
            notes=notes,
            old_status=old_status,
        )
