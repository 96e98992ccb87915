"""Razorpay signature verification and order creation."""

import hashlib
import hmac
import json

import httpx
import pytest

from orbit.billing.gateway import (
    PaymentGatewayError,
    RazorpayGateway,
    verify_payment_signature,
    verify_webhook_signature,
)


def _sign(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class TestPaymentSignature:
    def test_valid_signature(self):
        sig = _sign("s3cret", b"order_1|pay_1")
        assert verify_payment_signature("order_1", "pay_1", sig, key_secret="s3cret")

    def test_swapped_ids_fail(self):
        sig = _sign("s3cret", b"order_1|pay_1")
        assert not verify_payment_signature("pay_1", "order_1", sig, key_secret="s3cret")

    def test_wrong_secret_fails(self):
        sig = _sign("other", b"order_1|pay_1")
        assert not verify_payment_signature("order_1", "pay_1", sig, key_secret="s3cret")

    def test_uses_configured_secret(self):
        sig = _sign("rzp_test_secret", b"order_9|pay_9")
        assert verify_payment_signature("order_9", "pay_9", sig)

    def test_missing_secret_raises(self):
        with pytest.raises(PaymentGatewayError):
            verify_payment_signature("o", "p", "sig", key_secret="")


class TestWebhookSignature:
    def test_valid_body(self):
        body = json.dumps({"event": "payment.captured"}).encode()
        assert verify_webhook_signature(body, _sign("hook", body), webhook_secret="hook")

    def test_tampered_body_fails(self):
        body = b'{"event":"payment.captured"}'
        sig = _sign("hook", body)
        assert not verify_webhook_signature(body + b" ", sig, webhook_secret="hook")

    def test_empty_signature_fails(self):
        assert not verify_webhook_signature(b"{}", "", webhook_secret="hook")


class TestCreateOrder:
    @pytest.mark.asyncio
    async def test_posts_order_with_basic_auth(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "order_abc", "amount": 19900, "currency": "INR"})

        gateway = RazorpayGateway("key", "secret", transport=httpx.MockTransport(handler))
        order = await gateway.create_order(19900, "ref-1", {"user_id": 7, "pack_id": "starter", "skip": None})

        assert order["id"] == "order_abc"
        assert seen["url"] == "https://api.razorpay.com/v1/orders"
        assert seen["auth"].startswith("Basic ")
        assert seen["body"] == {
            "amount": 19900,
            "currency": "INR",
            "receipt": "ref-1",
            "notes": {"user_id": "7", "pack_id": "starter"},
        }

    @pytest.mark.asyncio
    async def test_gateway_rejection_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "bad"}))
        gateway = RazorpayGateway("key", "secret", transport=transport)
        with pytest.raises(PaymentGatewayError):
            await gateway.create_order(100, "ref", {})

    @pytest.mark.asyncio
    async def test_missing_credentials_raise(self):
        with pytest.raises(PaymentGatewayError):
            await RazorpayGateway("", "").create_order(100, "ref", {})
