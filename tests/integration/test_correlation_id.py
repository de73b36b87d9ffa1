import logging
import uuid

import pytest

pytestmark = pytest.mark.integration


class TestCorrelationIdMiddleware:
    def test_echoes_provided_request_id(self, api_client_with_correlation):
        client, cid = api_client_with_correlation
        response = client.get("/health")
        assert response["X-Request-ID"] == cid

    def test_generates_uuid_when_missing(self, client):
        request_id = client.get("/health")["X-Request-ID"]
        assert str(uuid.UUID(request_id, version=4)) == request_id

    def test_correlation_id_reaches_the_logs(self, client, caplog):
        cid = "webhook-delivery-789"
        with caplog.at_level(logging.INFO):
            client.get("/health", HTTP_X_REQUEST_ID=cid)
        assert any(cid in record.getMessage() for record in caplog.records)

    def test_webhook_responses_carry_the_id(self, api_client):
        response = api_client.post(
            "/api/v1/payments/webhook/",
            data=b"not-a-token",
            content_type="application/jose",
            HTTP_X_REQUEST_ID="gw-retry-1",
        )
        assert response.status_code == 400
        assert response["X-Request-ID"] == "gw-retry-1"
