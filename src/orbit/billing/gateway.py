"""Razorpay gateway client: order creation and signature checks.

Orders are created over the REST API with HTTP basic auth. Signatures are
HMAC-SHA256 hex digests:
- checkout callback: ``HMAC(key_secret, "{order_id}|{payment_id}")``
- webhook: ``HMAC(webhook_secret, raw_request_body)``
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any

import httpx
import structlog

from orbit.config import get_settings
from orbit.economy.exceptions import EconomyError

logger = structlog.get_logger()


class PaymentGatewayError(EconomyError):
    """Gateway unreachable, misconfigured or rejected the request."""

    status_code = 502


class SignatureMismatch(EconomyError):
    """Payment or webhook signature did not verify."""

    status_code = 400


class RazorpayGateway:
    """Thin async client for the Razorpay Orders API."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_base: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def create_order(self, amount_minor_units: int, receipt: str, notes: dict[str, Any]) -> dict[str, Any]:
        """Create an INR order. Returns the gateway's order document (``id``, ``amount``, ``currency``...)."""
        if not self.key_id or not self.key_secret:
            raise PaymentGatewayError("Razorpay credentials are not configured")

        transport = self._transport or httpx.AsyncHTTPTransport(retries=1)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=transport,
                auth=(self.key_id, self.key_secret),
            ) as client:
                response = await client.post(
                    f"{self.api_base}/orders",
                    json={
                        "amount": amount_minor_units,
                        "currency": "INR",
                        "receipt": receipt,
                        "notes": {key: str(value) for key, value in notes.items() if value is not None},
                    },
                )
        except httpx.HTTPError as exc:
            logger.warning("razorpay_order_request_failed", receipt=receipt, error=str(exc))
            raise PaymentGatewayError("Payment gateway unavailable") from exc

        if response.status_code >= 400:
            logger.warning(
                "razorpay_order_rejected",
                receipt=receipt,
                status=response.status_code,
                body=response.text[:500],
            )
            raise PaymentGatewayError("Payment gateway rejected the order")

        order = response.json()
        logger.info("razorpay_order_created", order_id=order.get("id"), receipt=receipt, amount=amount_minor_units)
        return order


def _hex_hmac(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: str, key_secret: str | None = None) -> bool:
    """Check the signature returned to the client after checkout."""
    secret = key_secret if key_secret is not None else get_settings().razorpay_key_secret
    if not secret:
        raise PaymentGatewayError("Razorpay key secret missing")
    expected = _hex_hmac(secret, f"{order_id}|{payment_id}".encode("utf-8"))
    return hmac.compare_digest(expected, signature or "")


def verify_webhook_signature(body: bytes, signature: str, webhook_secret: str | None = None) -> bool:
    """Check the ``X-Razorpay-Signature`` header against the raw webhook body."""
    secret = webhook_secret if webhook_secret is not None else get_settings().razorpay_webhook_secret
    if not secret:
        raise PaymentGatewayError("Razorpay webhook secret is not configured")
    return hmac.compare_digest(_hex_hmac(secret, body), signature or "")


def get_gateway() -> RazorpayGateway:
    """FastAPI dependency: gateway client built from settings."""
    settings = get_settings()
    return RazorpayGateway(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        api_base=settings.razorpay_api_base,
        timeout=settings.razorpay_timeout_seconds,
    )
