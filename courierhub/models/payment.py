from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum as PyEnum

from sqlalchemy import Enum

from extensions import db


class PaymentStatus(PyEnum):
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'


class Payment(db.Model):
    """Payment for an order through the payment gateway.

    Amounts are stored in paise (1/100 rupee), the unit the gateway uses.
    """
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)

    amount = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), default='INR')
    status = db.Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)

    # Gateway references
    gateway = db.Column(db.String(30), default='razorpay')
    gateway_ref = db.Column(db.String(100), index=True)  # gateway order id
    gateway_payment_id = db.Column(db.String(100))
    notes = db.Column(db.JSON)
    failure_reason = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    paid_at = db.Column(db.DateTime)

    @staticmethod
    def to_paise(amount):
        """Convert a rupee amount (int, float, str) to integer paise"""
        return int((Decimal(str(amount)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    @property
    def amount_rupees(self):
        return float(Decimal(self.amount) / 100)

    def is_paid(self):
        """Check if payment is completed"""
        return self.status == PaymentStatus.COMPLETED

    def mark_as_completed(self, gateway_payment_id=None):
        self.status = PaymentStatus.COMPLETED
        self.paid_at = datetime.utcnow()
        if gateway_payment_id:
            self.gateway_payment_id = gateway_payment_id

    def mark_as_failed(self, reason=None):
        self.status = PaymentStatus.FAILED
        if reason:
            self.failure_reason = reason

    def to_dict(self):
        """Convert payment to dictionary"""
        return {
            'id': self.id,
            'order_id': self.order_id,
            'amount': self.amount_rupees,
            'currency': self.currency,
            'status': self.status.value if self.status else None,
            'gateway': self.gateway,
            'gateway_ref': self.gateway_ref,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
        }
