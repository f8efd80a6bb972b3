"""
Courier service types and the base class every courier integration extends
"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, List, Optional

import requests

logger = logging.getLogger(__name__)

VOLUMETRIC_DIVISOR = 5000
DEFAULT_TIMEOUT = 30


class CourierAPIError(Exception):
    """Error raised by a courier integration"""

    def __init__(self, message, courier_code, status_code=None, raw_response=None):
        super().__init__(message)
        self.message = message
        self.courier_code = courier_code
        self.status_code = status_code
        self.raw_response = raw_response


class CourierServiceUnavailableError(CourierAPIError):
    def __init__(self, courier_code, message='Courier service is temporarily unavailable'):
        super().__init__(message, courier_code, status_code=503)


class CourierRateLimitError(CourierAPIError):
    def __init__(self, courier_code, retry_after=None):
        super().__init__('Rate limit exceeded', courier_code, status_code=429)
        self.retry_after = retry_after


class CourierAuthenticationError(CourierAPIError):
    def __init__(self, courier_code):
        super().__init__('Authentication failed with courier API', courier_code, status_code=401)


def parse_timestamp(value) -> Optional[datetime]:
    """Parse a courier timestamp into a naive UTC datetime"""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


@dataclass
class CourierCredentials:
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    auth_token: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    base_url: Optional[str] = None


@dataclass
class Dimensions:
    length: float
    width: float
    height: float

    def to_dict(self):
        return asdict(self)


@dataclass
class ShipmentAddress:
    name: str
    phone: str
    address_line1: str
    city: str
    state: str
    pincode: str
    email: Optional[str] = None
    address_line2: Optional[str] = None
    country: str = 'India'

    @property
    def full_address(self):
        return f"{self.address_line1} {self.address_line2 or ''}".strip()

    def to_dict(self):
        return asdict(self)


@dataclass
class ShipmentDetails:
    weight: float  # kg
    declared_value: float
    package_type: str  # document, package, fragile
    contents: str
    dimensions: Optional[Dimensions] = None
    cod_amount: float = 0

    def to_dict(self):
        return asdict(self)


@dataclass
class ServiceType:
    code: str
    name: str
    description: str
    estimated_days: int
    is_express_delivery: bool
    features: List[str] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


@dataclass
class RateQuote:
    courier_code: str
    courier_name: str
    service_type: ServiceType
    total_amount: float
    base_amount: float
    estimated_delivery: datetime
    transit_time: str
    features: List[str] = field(default_factory=list)
    fuel_surcharge: float = 0
    gst_amount: float = 0
    other_charges: float = 0

    def to_dict(self):
        return {
            'courier_code': self.courier_code,
            'courier_name': self.courier_name,
            'service_type': self.service_type.to_dict(),
            'total_amount': self.total_amount,
            'base_amount': self.base_amount,
            'fuel_surcharge': self.fuel_surcharge,
            'gst_amount': self.gst_amount,
            'other_charges': self.other_charges,
            'estimated_delivery': self.estimated_delivery.isoformat(),
            'transit_time': self.transit_time,
            'features': list(self.features),
        }


@dataclass
class ShipmentBooking:
    courier_order_id: str
    courier_tracking_id: str
    estimated_delivery: datetime
    total_amount: float
    raw_response: Any = None
    airway_bill: Optional[str] = None
    label_url: Optional[str] = None
    manifest_url: Optional[str] = None


@dataclass
class TrackingUpdate:
    status: str
    status_code: str
    timestamp: datetime
    description: str
    courier_status: str
    location: Optional[str] = None
    expected_delivery: Optional[datetime] = None
    raw_data: Any = None

    def to_dict(self):
        return {
            'status': self.status,
            'status_code': self.status_code,
            'timestamp': self.timestamp.isoformat(),
            'location': self.location,
            'description': self.description,
            'courier_status': self.courier_status,
            'expected_delivery': self.expected_delivery.isoformat() if self.expected_delivery else None,
        }


def transit_time_label(days):
    return f"{days} day{'s' if days > 1 else ''}"


class CourierService(ABC):
    """Base class all courier integrations must implement"""

    courier_code = None
    courier_name = None
    base_urls = {}

    def __init__(self, credentials: CourierCredentials, is_production: bool = False,
                 timeout: int = DEFAULT_TIMEOUT):
        self.credentials = credentials
        self.is_production = is_production
        self.timeout = timeout
        self.base_url = (
            credentials.base_url
            or self.base_urls.get('production' if is_production else 'sandbox')
        )
        self.session = requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })
        self.session.headers.update(self.auth_headers())

    def auth_headers(self) -> dict:
        return {'Authorization': f"Token {self.credentials.api_key}"}

    @abstractmethod
    def can_deliver(self, pincode: str) -> bool:
        ...

    @abstractmethod
    def get_service_types(self) -> List[ServiceType]:
        ...

    @abstractmethod
    def calculate_rate(self, pickup: ShipmentAddress, delivery: ShipmentAddress,
                       shipment: ShipmentDetails, service_type: Optional[str] = None) -> List[RateQuote]:
        ...

    @abstractmethod
    def book_shipment(self, pickup: ShipmentAddress, delivery: ShipmentAddress,
                      shipment: ShipmentDetails, service_type: str, order_id: str) -> ShipmentBooking:
        ...

    @abstractmethod
    def track_shipment(self, tracking_id: str) -> List[TrackingUpdate]:
        ...

    @abstractmethod
    def cancel_shipment(self, courier_order_id: str) -> bool:
        ...

    @abstractmethod
    def generate_label(self, courier_order_id: str) -> str:
        ...

    @abstractmethod
    def schedule_pickup(self, courier_order_id: str, pickup_date: datetime) -> bool:
        ...

    # Common utility methods
    @staticmethod
    def validate_pincode(pincode) -> bool:
        return bool(re.fullmatch(r'\d{6}', str(pincode or '')))

    @staticmethod
    def calculate_volumetric_weight(dimensions: Dimensions) -> float:
        return (dimensions.length * dimensions.width * dimensions.height) / VOLUMETRIC_DIVISOR

    @staticmethod
    def get_chargeable_weight(actual_weight: float, volumetric_weight: float) -> float:
        return max(actual_weight, volumetric_weight)

    def chargeable_weight_for(self, shipment: ShipmentDetails) -> float:
        volumetric = self.calculate_volumetric_weight(shipment.dimensions) if shipment.dimensions else 0
        return self.get_chargeable_weight(shipment.weight, volumetric)

    @staticmethod
    def format_phone_number(phone) -> str:
        cleaned = re.sub(r'\D', '', str(phone or ''))
        return cleaned if len(cleaned) == 10 else cleaned[-10:]

    def find_service_type(self, code) -> ServiceType:
        service_types = self.get_service_types()
        return next((s for s in service_types if s.code == code), service_types[0])

    def _request(self, method, path, **kwargs):
        """Send a request to the courier API and return the decoded JSON body"""
        url = f"{self.base_url}{path}"
        kwargs.setdefault('timeout', self.timeout)

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise CourierAPIError(
                f"{self.courier_name} API request failed: {e}", self.courier_code
            ) from e

        if response.status_code == 401:
            raise CourierAuthenticationError(self.courier_code)
        if response.status_code == 429:
            retry_after = response.headers.get('Retry-After')
            raise CourierRateLimitError(
                self.courier_code,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code == 503:
            raise CourierServiceUnavailableError(self.courier_code)
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = response.text
            raise CourierAPIError(
                f"{self.courier_name} API request failed with status {response.status_code}",
                self.courier_code,
                status_code=response.status_code,
                raw_response=body,
            )

        try:
            return response.json()
        except ValueError as e:
            raise CourierAPIError(
                f"{self.courier_name} API returned invalid JSON",
                self.courier_code,
                status_code=response.status_code,
                raw_response=response.text,
            ) from e

    def is_production_mode(self):
        return self.is_production
