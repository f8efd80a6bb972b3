"""Top-level models package imports.

Importing model modules here ensures SQLAlchemy registers all models
when `courierhub.models` is imported. This prevents relationship
resolution errors (e.g., when a relationship references a class defined
in another module).
"""

from .user import User
from .address import Address
from .courier_partner import CourierPartner, CourierAPIConfig
from .order import Order, OrderStatus
from .payment import Payment, PaymentStatus
from .order_tracking import OrderTracking, OrderLog

__all__ = [
    "User",
    "Address",
    "CourierPartner",
    "CourierAPIConfig",
    "Order",
    "OrderStatus",
    "Payment",
    "PaymentStatus",
    "OrderTracking",
    "OrderLog",
]
