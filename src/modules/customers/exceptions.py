"""Customer and loyalty domain exceptions."""

from __future__ import annotations

from rest_framework import status

from modules.core.exceptions import DomainError, NotFoundError


class CustomerNotFound(NotFoundError):
    """The customer does not exist or has been soft-deleted."""

    code = 1001
    default_message = "Customer not found."


class InactiveCustomer(DomainError):
    """An inactive customer cannot place orders."""

    code = 1002
    default_message = "Customer is inactive."


class CustomerProfileMissing(DomainError):
    """The authenticated user is not linked to a customer."""

    code = 1003
    http_status = status.HTTP_403_FORBIDDEN
    default_message = "Authenticated user has no customer profile."


class AddressNotFound(NotFoundError):
    code = 1004
    default_message = "Address not found."


class InsufficientPoints(DomainError):
    """A points debit would drive the balance below zero."""

    code = 1101
    default_message = "Insufficient points balance."
