"""Payment gateway bridge.

``IPaymentGateway`` is the only seam through which money moves in or out.
``HttpPaymentGateway`` talks to a WeChat-Pay-v3-style HTTP API with
``httpx`` and verifies asynchronous notifications, which arrive as a
compact JWS (HS256) signed with the merchant webhook secret.

Security decisions
------------------
* ``algorithms`` is hard-coded to ``HS256``, never taken from the token.
* Any decode, signature or claim error becomes ``CallbackIntegrityError``;
  the caller must not touch the ledger in that case.
* Amounts cross this boundary as integer minor units only.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx
import jwt as pyjwt
import structlog
from jwt.exceptions import PyJWTError

from modules.payments.constants import PaymentChannel, TradeState
from modules.payments.exceptions import CallbackIntegrityError, PaymentGatewayUnavailable

logger = structlog.get_logger(__name__)

SIGNATURE_ALGORITHM = "HS256"
CURRENCY = "CNY"


@dataclass(frozen=True)
class GatewayNotification:
    """Verified payment result pushed by the gateway."""

    out_trade_no: str
    transaction_id: str
    trade_state: str
    amount_minor: int
    trade_state_desc: str = ""

    @property
    def is_success(self) -> bool:
        return self.trade_state == TradeState.SUCCESS


@dataclass(frozen=True)
class RefundNotification:
    """Verified refund result pushed by the gateway."""

    out_refund_no: str
    refund_id: str
    refund_status: str
    message: str = ""

    @property
    def is_success(self) -> bool:
        return self.refund_status == TradeState.SUCCESS


class IPaymentGateway(ABC):
    @abstractmethod
    def create_intent(
        self,
        reference: str,
        description: str,
        amount_minor: int,
        channel: str,
        payer_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Register a payment and return the channel parameters for the client."""

    @abstractmethod
    def verify_and_parse(
        self, raw_payload: bytes, headers: Mapping[str, str]
    ) -> GatewayNotification:
        """Authenticate a payment notification.  Raises ``CallbackIntegrityError``."""

    @abstractmethod
    def verify_refund_notification(
        self, raw_payload: bytes, headers: Mapping[str, str]
    ) -> RefundNotification:
        """Authenticate a refund notification.  Raises ``CallbackIntegrityError``."""

    @abstractmethod
    def request_refund(
        self,
        original_reference: str,
        refund_reference: str,
        total_minor: int,
        refund_minor: int,
        reason: str,
    ) -> str:
        """Ask the gateway to return money.  Returns the external refund id.

        ``refund_reference`` doubles as the gateway idempotency key.
        """


class HttpPaymentGateway(IPaymentGateway):
    CHANNEL_ENDPOINTS = {
        PaymentChannel.MINIPROGRAM: "/v3/pay/transactions/jsapi",
        PaymentChannel.NATIVE: "/v3/pay/transactions/native",
        PaymentChannel.H5: "/v3/pay/transactions/h5",
        PaymentChannel.APP: "/v3/pay/transactions/app",
    }
    REFUND_ENDPOINT = "/v3/refund/domestic/refunds"

    def __init__(
        self,
        base_url: str,
        app_id: str,
        merchant_id: str,
        api_key: str,
        webhook_secret: str,
        notify_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._app_id = app_id
        self._merchant_id = merchant_id
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._notify_url = notify_url
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    # ------------------------------------------------------------------
    # Outbound calls
    # ------------------------------------------------------------------

    def create_intent(
        self,
        reference: str,
        description: str,
        amount_minor: int,
        channel: str,
        payer_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        endpoint = self.CHANNEL_ENDPOINTS.get(channel)
        if endpoint is None:
            raise ValueError(f"Unsupported payment channel: {channel}")

        body: Dict[str, Any] = {
            "appid": self._app_id,
            "mchid": self._merchant_id,
            "description": description,
            "out_trade_no": reference,
            "notify_url": self._notify_url,
            "amount": {"total": amount_minor, "currency": CURRENCY},
        }
        if channel == PaymentChannel.MINIPROGRAM and payer_id:
            body["payer"] = {"openid": payer_id}

        data = self._post(endpoint, body)
        logger.info("gateway.intent_created", reference=reference, channel=channel)

        if channel == PaymentChannel.NATIVE:
            return {"code_url": data.get("code_url", "")}
        if channel == PaymentChannel.H5:
            return {"h5_url": data.get("h5_url", "")}
        return self._sign_prepay(data.get("prepay_id", ""))

    def request_refund(
        self,
        original_reference: str,
        refund_reference: str,
        total_minor: int,
        refund_minor: int,
        reason: str,
    ) -> str:
        data = self._post(
            self.REFUND_ENDPOINT,
            {
                "out_trade_no": original_reference,
                "out_refund_no": refund_reference,
                "reason": reason,
                "notify_url": self._notify_url,
                "amount": {
                    "refund": refund_minor,
                    "total": total_minor,
                    "currency": CURRENCY,
                },
            },
        )
        logger.info("gateway.refund_requested", refund_reference=refund_reference)
        return str(data.get("refund_id", ""))

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = self._client.post(
                path,
                json=body,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            logger.warning("gateway.request_failed", path=path, error=str(exc))
            raise PaymentGatewayUnavailable(f"Gateway call {path} failed.") from exc
        except ValueError as exc:
            logger.warning("gateway.invalid_response", path=path)
            raise PaymentGatewayUnavailable(f"Gateway call {path} returned invalid JSON.") from exc

    def _sign_prepay(self, prepay_id: str) -> Dict[str, Any]:
        params = {
            "appId": self._app_id,
            "timeStamp": str(int(time.time())),
            "nonceStr": secrets.token_hex(16),
            "package": f"prepay_id={prepay_id}",
            "signType": "HMAC-SHA256",
        }
        message = "\n".join(
            [params["appId"], params["timeStamp"], params["nonceStr"], params["package"]]
        ) + "\n"
        params["paySign"] = hmac.new(
            self._api_key.encode(), message.encode(), hashlib.sha256
        ).hexdigest()
        return params

    # ------------------------------------------------------------------
    # Inbound notifications
    # ------------------------------------------------------------------

    def verify_and_parse(
        self, raw_payload: bytes, headers: Mapping[str, str]
    ) -> GatewayNotification:
        claims = self._decode(raw_payload, required=["out_trade_no", "trade_state", "amount"])
        try:
            return GatewayNotification(
                out_trade_no=str(claims["out_trade_no"]),
                transaction_id=str(claims.get("transaction_id", "")),
                trade_state=str(claims["trade_state"]),
                amount_minor=int(claims["amount"]["total"]),
                trade_state_desc=str(claims.get("trade_state_desc", "")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise CallbackIntegrityError("Malformed payment notification.") from exc

    def verify_refund_notification(
        self, raw_payload: bytes, headers: Mapping[str, str]
    ) -> RefundNotification:
        claims = self._decode(raw_payload, required=["out_refund_no", "refund_status"])
        return RefundNotification(
            out_refund_no=str(claims["out_refund_no"]),
            refund_id=str(claims.get("refund_id", "")),
            refund_status=str(claims["refund_status"]),
            message=str(claims.get("message", "")),
        )

    def _decode(self, raw_payload: bytes, required: list[str]) -> Dict[str, Any]:
        try:
            token = raw_payload.decode("utf-8").strip()
            return pyjwt.decode(
                token,
                self._webhook_secret,
                algorithms=[SIGNATURE_ALGORITHM],
                options={"require": required},
            )
        except (PyJWTError, UnicodeDecodeError) as exc:
            logger.warning("gateway.notification_rejected", error=type(exc).__name__)
            raise CallbackIntegrityError("Notification signature verification failed.") from exc
