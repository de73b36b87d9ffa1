"""Resolve the customer that owns the current API request."""

from __future__ import annotations

from rest_framework.request import Request

from modules.customers.exceptions import CustomerProfileMissing, InactiveCustomer
from modules.customers.models import Customer
from modules.customers.repositories.django_repository import CustomerDjangoRepository


def current_customer(request: Request) -> Customer:
    """Return the customer linked to ``request.user``.

    Raises:
        CustomerProfileMissing: the user has no (alive) customer profile.
        InactiveCustomer: the profile is deactivated.
    """
    customer = CustomerDjangoRepository().get_by_user_id(request.user.pk)
    if customer is None:
        raise CustomerProfileMissing()
    if not customer.is_active:
        raise InactiveCustomer()
    return customer
