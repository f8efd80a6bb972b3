import random
import string
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Enum

from extensions import db


class OrderStatus(PyEnum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    PICKUP_SCHEDULED = 'pickup_scheduled'
    PICKED_UP = 'picked_up'
    IN_TRANSIT = 'in_transit'
    OUT_FOR_DELIVERY = 'out_for_delivery'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'
    RETURNED = 'returned'
    FAILED = 'failed'

    @classmethod
    def parse(cls, value):
        """Accept 'in_transit', 'IN_TRANSIT' or an OrderStatus"""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


CANCELLABLE_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PICKUP_SCHEDULED,
)

TERMINAL_STATUSES = (
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.RETURNED,
)

STATUS_FLOW = {
    OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.PICKUP_SCHEDULED,
                          OrderStatus.CANCELLED, OrderStatus.FAILED],
    OrderStatus.CONFIRMED: [OrderStatus.PICKUP_SCHEDULED, OrderStatus.PICKED_UP,
                            OrderStatus.CANCELLED],
    OrderStatus.PICKUP_SCHEDULED: [OrderStatus.PICKED_UP, OrderStatus.CANCELLED],
    OrderStatus.PICKED_UP: [OrderStatus.IN_TRANSIT, OrderStatus.OUT_FOR_DELIVERY,
                            OrderStatus.RETURNED],
    OrderStatus.IN_TRANSIT: [OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED,
                             OrderStatus.RETURNED],
    OrderStatus.OUT_FOR_DELIVERY: [OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED,
                                   OrderStatus.RETURNED],
    OrderStatus.DELIVERED: [],
    OrderStatus.CANCELLED: [],
    OrderStatus.RETURNED: [],
    OrderStatus.FAILED: [OrderStatus.PENDING],
}


class Order(db.Model):
    """Shipment order booked through the marketplace"""
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    tracking_number = db.Column(db.String(50), unique=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    courier_partner_id = db.Column(db.Integer, db.ForeignKey('courier_partners.id'), nullable=False)
    pickup_address_id = db.Column(db.Integer, db.ForeignKey('addresses.id'), nullable=False)
    delivery_address_id = db.Column(db.Integer, db.ForeignKey('addresses.id'), nullable=False)

    # Parcel details
    package_type = db.Column(db.String(50))
    weight = db.Column(db.Float, nullable=False)
    dimensions = db.Column(db.JSON)  # {"length", "width", "height"} in cm
    declared_value = db.Column(db.Float)
    cod_amount = db.Column(db.Float, default=0)
    parcel_contents = db.Column(db.Text)
    delivery_instructions = db.Column(db.Text)
    service_type = db.Column(db.String(50))

    actual_weight = db.Column(db.Float)
    volumetric_weight = db.Column(db.Float)
    chargeable_weight = db.Column(db.Float)
    total_amount = db.Column(db.Float, nullable=False)

    # Courier booking
    status = db.Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False)
    courier_order_id = db.Column(db.String(100))
    courier_tracking_id = db.Column(db.String(100), index=True)
    courier_status = db.Column(db.String(100))
    courier_response = db.Column(db.JSON)
    label_url = db.Column(db.String(500))
    manifest_url = db.Column(db.String(500))

    booked_at = db.Column(db.DateTime)
    dispatched_at = db.Column(db.DateTime)
    estimated_delivery = db.Column(db.DateTime)
    actual_delivery = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    tracking_updates = db.relationship('OrderTracking', backref='order', lazy=True,
                                       order_by='desc(OrderTracking.timestamp)',
                                       cascade='all, delete-orphan')
    order_logs = db.relationship('OrderLog', backref='order', lazy=True,
                                 order_by='desc(OrderLog.timestamp)',
                                 cascade='all, delete-orphan')
    payments = db.relationship('Payment', backref='order', lazy=True)
    customer = db.relationship('User', foreign_keys=[user_id], backref='orders')
    pickup_address = db.relationship('Address', foreign_keys=[pickup_address_id])
    delivery_address = db.relationship('Address', foreign_keys=[delivery_address_id])

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.tracking_number:
            self.tracking_number = self.generate_tracking_number()
        if self.status is None:
            self.status = OrderStatus.PENDING

    @staticmethod
    def generate_tracking_number():
        """Generate unique tracking number"""
        timestamp = int(datetime.utcnow().timestamp() * 1000)
        random_part = ''.join(random.choices(string.ascii_uppercase + string.digits, k=4))
        return f"SS{timestamp}{random_part}"

    @property
    def is_booked(self):
        return bool(self.courier_order_id)

    def can_cancel(self):
        """Orders can be cancelled until the parcel is picked up"""
        return self.status in CANCELLABLE_STATUSES

    def update_status(self, new_status):
        """Update order status with validation"""
        new_status = OrderStatus.parse(new_status)

        if new_status not in STATUS_FLOW.get(self.status, []):
            raise ValueError(f"Cannot change status from {self.status.value} to {new_status.value}")

        self.status = new_status
        self.updated_at = datetime.utcnow()

        if new_status == OrderStatus.DELIVERED and not self.actual_delivery:
            self.actual_delivery = datetime.utcnow()

    def apply_courier_update(self, update):
        """Mirror the latest courier-reported state onto the order.

        Courier data is authoritative, so the status flow is not enforced here.
        """
        self.status = OrderStatus.parse(update.status)
        self.courier_status = update.courier_status
        if update.expected_delivery:
            self.estimated_delivery = update.expected_delivery
        if self.status == OrderStatus.DELIVERED:
            self.actual_delivery = update.timestamp
        self.updated_at = datetime.utcnow()

    def to_dict(self, include_details=False):
        """Convert order to dictionary"""
        data = {
            'id': self.id,
            'tracking_number': self.tracking_number,
            'status': self.status.value if self.status else None,
            'user_id': self.user_id,
            'courier_partner_id': self.courier_partner_id,
            'courier_name': self.courier_partner.name if self.courier_partner else None,
            'package_type': self.package_type,
            'weight': self.weight,
            'declared_value': self.declared_value,
            'total_amount': self.total_amount,
            'service_type': self.service_type,
            'courier_tracking_id': self.courier_tracking_id,
            'estimated_delivery': self.estimated_delivery.isoformat() if self.estimated_delivery else None,
            'actual_delivery': self.actual_delivery.isoformat() if self.actual_delivery else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

        if include_details:
            data.update({
                'dimensions': self.dimensions,
                'cod_amount': self.cod_amount,
                'parcel_contents': self.parcel_contents,
                'delivery_instructions': self.delivery_instructions,
                'weights': {
                    'actual': self.actual_weight,
                    'volumetric': self.volumetric_weight,
                    'chargeable': self.chargeable_weight,
                },
                'courier': {
                    'order_id': self.courier_order_id,
                    'tracking_id': self.courier_tracking_id,
                    'status': self.courier_status,
                    'label_url': self.label_url,
                    'manifest_url': self.manifest_url,
                    'booked_at': self.booked_at.isoformat() if self.booked_at else None,
                    'dispatched_at': self.dispatched_at.isoformat() if self.dispatched_at else None,
                },
                'pickup_address': self.pickup_address.to_dict() if self.pickup_address else None,
                'delivery_address': self.delivery_address.to_dict() if self.delivery_address else None,
            })

        return data
