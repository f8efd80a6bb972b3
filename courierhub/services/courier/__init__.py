from .types import (
    CourierAPIError,
    CourierAuthenticationError,
    CourierCredentials,
    CourierRateLimitError,
    CourierService,
    CourierServiceUnavailableError,
    Dimensions,
    RateQuote,
    ServiceType,
    ShipmentAddress,
    ShipmentBooking,
    ShipmentDetails,
    TrackingUpdate,
)
from .manager import CourierManager, get_courier_manager, reset_courier_manager

__all__ = [
    "CourierAPIError",
    "CourierAuthenticationError",
    "CourierCredentials",
    "CourierRateLimitError",
    "CourierService",
    "CourierServiceUnavailableError",
    "Dimensions",
    "RateQuote",
    "ServiceType",
    "ShipmentAddress",
    "ShipmentBooking",
    "ShipmentDetails",
    "TrackingUpdate",
    "CourierManager",
    "get_courier_manager",
    "reset_courier_manager",
]
