"""Django ORM implementation of the Customer repository.

Methods return ``None`` / ``False`` instead of raising: the service layer
decides how a missing entity becomes a domain error.  Balance changes are
single conditional ``UPDATE`` statements so concurrent hooks never lose an
increment or overdraw the balance.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from modules.customers.models import Address, Customer, PointsTransaction
from modules.customers.repositories.interfaces import ICustomerRepository

logger = structlog.get_logger(__name__)


class CustomerDjangoRepository(ICustomerRepository):
    """Concrete Customer repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Customer]:
        """Retrieve an alive customer by primary key.

        Returns ``None`` for non-existent or invalid IDs (e.g. malformed UUID).
        """
        try:
            return Customer.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_user_id(self, user_id: int) -> Optional[Customer]:
        return Customer.objects.alive().filter(user_id=user_id).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Customer]:
        queryset = Customer.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Customer) -> Customer:
        entity.save()
        logger.info("customer.saved", customer_id=str(entity.id))
        return entity

    def get_address(self, customer_id: UUID, address_id: UUID) -> Optional[Address]:
        try:
            return (
                Address.objects.alive()
                .filter(id=address_id, customer_id=customer_id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    # ------------------------------------------------------------------
    # Points ledger
    # ------------------------------------------------------------------

    def has_points_entry(self, customer_id: UUID, kind: str, order_no: str) -> bool:
        return PointsTransaction.objects.filter(
            customer_id=customer_id, kind=kind, order_no=order_no
        ).exists()

    def get_points_entry(
        self, customer_id: UUID, kind: str, order_no: str
    ) -> Optional[PointsTransaction]:
        return PointsTransaction.objects.filter(
            customer_id=customer_id, kind=kind, order_no=order_no
        ).first()

    def record_points(
        self,
        customer_id: UUID,
        kind: str,
        points: int,
        order_no: str,
        description: str = "",
    ) -> PointsTransaction:
        return PointsTransaction.objects.create(
            customer_id=customer_id,
            kind=kind,
            points=points,
            order_no=order_no,
            description=description,
        )

    def add_points(self, customer_id: UUID, points: int) -> bool:
        updated = Customer.objects.filter(id=customer_id).update(
            points=F("points") + points, updated_at=timezone.now()
        )
        return updated == 1

    def deduct_points(self, customer_id: UUID, points: int) -> bool:
        updated = Customer.objects.filter(id=customer_id, points__gte=points).update(
            points=F("points") - points, updated_at=timezone.now()
        )
        return updated == 1
