"""
Unit tests for the Razorpay gateway client.
"""

import hashlib
import hmac
from unittest.mock import patch

import pytest
import requests

from courierhub.services.payment_service import PaymentGatewayError, RazorpayService


def _sign(secret, message):
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def gateway(app):
    return RazorpayService()


class TestConfiguration:

    def test_reads_app_config(self, gateway):
        assert gateway.key_id == "rzp_test_key"
        assert gateway.webhook_secret == "rzp_webhook_secret"

    def test_missing_key_raises(self, app):
        app.config["RAZORPAY_KEY_ID"] = None
        with pytest.raises(ValueError, match="RAZORPAY_KEY_ID"):
            RazorpayService()


class TestCreateOrder:

    @patch("courierhub.services.payment_service.requests.post")
    def test_creates_order(self, mock_post, gateway, http_response):
        mock_post.return_value = http_response(body={"id": "order_1", "amount": 15000, "status": "created"})

        order = gateway.create_order(15000, receipt="SS1", notes={"order_id": "1"})

        assert order["id"] == "order_1"
        kwargs = mock_post.call_args.kwargs
        assert kwargs["json"] == {
            "amount": 15000, "currency": "INR", "receipt": "SS1", "notes": {"order_id": "1"},
        }
        assert kwargs["auth"] == ("rzp_test_key", "rzp_test_secret")

    @patch("courierhub.services.payment_service.requests.post")
    def test_rejected_order(self, mock_post, gateway, http_response):
        mock_post.return_value = http_response(status_code=400, body={"error": {"code": "BAD_REQUEST_ERROR"}})

        with pytest.raises(PaymentGatewayError) as exc_info:
            gateway.create_order(100)
        assert exc_info.value.status_code == 400

    @patch("courierhub.services.payment_service.requests.post")
    def test_transport_error(self, mock_post, gateway):
        mock_post.side_effect = requests.exceptions.Timeout("slow")
        with pytest.raises(PaymentGatewayError):
            gateway.create_order(100)


class TestSignatures:

    def test_valid_payment_signature(self, gateway):
        signature = _sign("rzp_test_secret", "order_1|pay_1")
        assert gateway.verify_payment_signature("order_1", "pay_1", signature) is True

    def test_tampered_payment_signature(self, gateway):
        signature = _sign("rzp_test_secret", "order_1|pay_2")
        assert gateway.verify_payment_signature("order_1", "pay_1", signature) is False

    def test_missing_parts(self, gateway):
        assert gateway.verify_payment_signature("order_1", None, "sig") is False

    def test_webhook_signature_over_raw_body(self, gateway):
        body = b'{"event":"payment.captured"}'
        signature = hmac.new(b"rzp_webhook_secret", body, hashlib.sha256).hexdigest()
        assert gateway.verify_webhook_signature(body, signature) is True
        assert gateway.verify_webhook_signature(body + b" ", signature) is False

    def test_webhook_without_secret(self, app):
        app.config["RAZORPAY_WEBHOOK_SECRET"] = None
        service = RazorpayService()
        assert service.verify_webhook_signature(b"{}", "sig") is False
