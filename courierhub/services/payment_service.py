"""
Razorpay API Integration
Creates gateway orders and verifies payment and webhook signatures
"""
import hashlib
import hmac
import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Raised when the payment gateway rejects or fails a request"""

    def __init__(self, message, status_code=None, response=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


def _hmac_sha256_hex(secret, message):
    if isinstance(message, str):
        message = message.encode('utf-8')
    return hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()


class RazorpayService:
    """Razorpay Orders API Service"""

    BASE_URL = 'https://api.razorpay.com/v1'

    def __init__(self, key_id=None, key_secret=None, webhook_secret=None):
        config = current_app.config

        # Key credentials - REQUIRED for the gateway to work
        self.key_id = key_id or config.get('RAZORPAY_KEY_ID')
        if not self.key_id:
            raise ValueError("RAZORPAY_KEY_ID is not configured")

        self.key_secret = key_secret or config.get('RAZORPAY_KEY_SECRET')
        if not self.key_secret:
            raise ValueError("RAZORPAY_KEY_SECRET is not configured")

        self.webhook_secret = webhook_secret or config.get('RAZORPAY_WEBHOOK_SECRET')

    def create_order(self, amount_paise, currency='INR', receipt=None, notes=None):
        """
        Create a Razorpay order

        Args:
            amount_paise (int): Amount in paise
            currency (str): ISO currency code
            receipt (str): Merchant receipt reference
            notes (dict): Free-form notes stored on the gateway order

        Returns:
            dict: The gateway order (id, amount, currency, status, ...)
        """
        payload = {
            'amount': int(amount_paise),
            'currency': currency,
            'receipt': receipt,
            'notes': notes or {},
        }

        try:
            response = requests.post(
                f"{self.BASE_URL}/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=30,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Razorpay order request failed: {e}")
            raise PaymentGatewayError(f"Payment gateway request failed: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            logger.error(f"Razorpay rejected order for receipt {receipt}: {response.status_code} {body}")
            raise PaymentGatewayError('Payment gateway rejected the order',
                                      status_code=response.status_code, response=body)

        order = response.json()
        logger.info(f"Razorpay order {order.get('id')} created for receipt {receipt}")
        return order

    def verify_payment_signature(self, order_id, payment_id, signature):
        """Check the checkout signature: HMAC-SHA256 of 'order_id|payment_id' with the key secret"""
        if not (order_id and payment_id and signature):
            return False
        expected = _hmac_sha256_hex(self.key_secret, f"{order_id}|{payment_id}")
        return hmac.compare_digest(expected, signature)

    def verify_webhook_signature(self, raw_body, signature, secret=None):
        """Check a webhook signature: HMAC-SHA256 hex of the raw request body"""
        secret = secret or self.webhook_secret
        if not (secret and signature):
            return False
        expected = _hmac_sha256_hex(secret, raw_body)
        return hmac.compare_digest(expected, signature)


# Singleton instance
_razorpay_service = None


def get_razorpay_service():
    """Get or create Razorpay service instance"""
    global _razorpay_service
    if _razorpay_service is None:
        _razorpay_service = RazorpayService()
    return _razorpay_service
