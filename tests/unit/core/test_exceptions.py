import pytest
from rest_framework import status
from rest_framework.exceptions import ValidationError

from modules.core.exceptions import domain_exception_handler
from modules.orders.dtos import CreateOrderDTO
from modules.orders.exceptions import InvalidOrderStatus, OrderNotFound
from modules.payments.exceptions import PaymentGatewayUnavailable
from modules.products.exceptions import InsufficientStock

pytestmark = pytest.mark.unit


class TestDomainExceptionHandler:
    @pytest.mark.parametrize(
        ("exc", "expected_status"),
        [
            (OrderNotFound(), status.HTTP_404_NOT_FOUND),
            (InvalidOrderStatus(), status.HTTP_409_CONFLICT),
            (InsufficientStock(), status.HTTP_409_CONFLICT),
            (PaymentGatewayUnavailable(), status.HTTP_503_SERVICE_UNAVAILABLE),
        ],
    )
    def test_domain_errors_render_code_and_detail(self, exc, expected_status):
        response = domain_exception_handler(exc, {"view": None})
        assert response.status_code == expected_status
        assert response.data == {"code": exc.code, "detail": exc.message}

    def test_custom_message_is_kept(self):
        response = domain_exception_handler(OrderNotFound("Order X not found."), {})
        assert response.data["detail"] == "Order X not found."

    def test_dto_validation_error_is_400(self):
        with pytest.raises(Exception) as exc_info:
            CreateOrderDTO(customer_id="not-a-uuid", items=[])
        response = domain_exception_handler(exc_info.value, {})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert isinstance(response.data["detail"], list)

    def test_drf_errors_fall_back_to_default_handler(self):
        response = domain_exception_handler(ValidationError({"amount": ["required"]}), {})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data == {"amount": ["required"]}

    def test_unknown_errors_propagate(self):
        assert domain_exception_handler(RuntimeError("boom"), {}) is None
