"""
Pytest configuration and fixtures for the test suite.
"""

from contextlib import ExitStack
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from flask_jwt_extended import create_access_token

from config import TestConfig
from extensions import db
from courierhub import create_app
from courierhub.models import Address, CourierPartner, Order, OrderStatus, User
from courierhub.services.courier.manager import CourierManager, reset_courier_manager
from courierhub.services.courier.types import (
    CourierAPIError, CourierCredentials, CourierService, RateQuote, ServiceType,
    ShipmentAddress, ShipmentBooking, ShipmentDetails, TrackingUpdate,
)

PASSWORD = "Password@123"

# Every module that looks up the shared courier manager
MANAGER_LOOKUPS = (
    "courierhub.routes.quote_routes.get_courier_manager",
    "courierhub.routes.booking_routes.get_courier_manager",
    "courierhub.routes.tracking_routes.get_courier_manager",
    "courierhub.routes.order_routes.get_courier_manager",
)


class FakeCourierService(CourierService):
    """In-memory courier adapter with scripted responses."""

    def __init__(self, code="delhivery", name="Delhivery", total=120.0, days=2,
                 deliverable=True, fail=False, updates=None, features=None):
        super().__init__(CourierCredentials(api_key="test-key"))
        self.courier_code = code
        self.courier_name = name
        self.total = total
        self.days = days
        self.deliverable = deliverable
        self.fail = fail
        self.updates = updates or []
        self.features = features if features is not None else ["Express", "COD"]
        self.booked = []
        self.cancelled = []
        self.pickups = []

    def can_deliver(self, pincode):
        return self.deliverable and self.validate_pincode(pincode)

    def get_service_types(self):
        return [ServiceType(
            code="E", name="Express", description="Express delivery",
            estimated_days=self.days, is_express_delivery=True, features=list(self.features),
        )]

    def calculate_rate(self, pickup, delivery, shipment, service_type=None):
        if self.fail:
            raise CourierAPIError("Failed to calculate shipping rates", self.courier_code)
        selected = self.find_service_type(service_type)
        return [RateQuote(
            courier_code=self.courier_code,
            courier_name=self.courier_name,
            service_type=selected,
            total_amount=self.total,
            base_amount=round(self.total * 0.8, 2),
            gst_amount=round(self.total * 0.2, 2),
            estimated_delivery=datetime.utcnow() + timedelta(days=self.days),
            transit_time=f"{self.days} days",
            features=list(selected.features),
        )]

    def book_shipment(self, pickup, delivery, shipment, service_type, order_id):
        if self.fail:
            raise CourierAPIError("Booking failed", self.courier_code)
        self.booked.append(order_id)
        return ShipmentBooking(
            courier_order_id=f"{self.courier_code.upper()}-ORD-1",
            courier_tracking_id=f"{self.courier_code.upper()}-AWB-1",
            airway_bill=f"{self.courier_code.upper()}-AWB-1",
            label_url="https://labels.example.com/1.pdf",
            estimated_delivery=datetime.utcnow() + timedelta(days=self.days),
            total_amount=shipment.declared_value,
            raw_response={"success": True},
        )

    def track_shipment(self, tracking_id):
        if self.fail:
            raise CourierAPIError("Failed to track shipment", self.courier_code)
        return sorted(self.updates, key=lambda u: u.timestamp, reverse=True)

    def cancel_shipment(self, courier_order_id):
        self.cancelled.append(courier_order_id)
        return True

    def generate_label(self, courier_order_id):
        return f"https://labels.example.com/{courier_order_id}.pdf"

    def schedule_pickup(self, courier_order_id, pickup_date):
        self.pickups.append((courier_order_id, pickup_date))
        return True


def _make_update(status, hours_ago, location="Mumbai Hub", description=None):
    return TrackingUpdate(
        status=status,
        status_code=status.upper(),
        timestamp=datetime(2024, 1, 15, 12, 0, 0) - timedelta(hours=hours_ago),
        description=description or status.replace("_", " ").title(),
        courier_status=status.upper(),
        location=location,
    )


@pytest.fixture
def make_update():
    """Factory for courier tracking updates relative to a fixed reference time."""
    return _make_update


@pytest.fixture
def fake_courier():
    """The fake adapter class, for tests that need their own instances."""
    return FakeCourierService


@pytest.fixture
def http_response():
    """Factory for mocked requests.Response objects."""

    def _response(status_code=200, body=None, headers=None, text=""):
        response = MagicMock()
        response.status_code = status_code
        response.headers = headers or {}
        response.text = text
        if isinstance(body, Exception):
            response.json.side_effect = body
        else:
            response.json.return_value = {} if body is None else body
        return response

    return _response


@pytest.fixture
def app():
    """Application with a fresh in-memory database."""
    reset_courier_manager()
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

    reset_courier_manager()


@pytest.fixture
def client(app):
    return app.test_client()


def _create_user(email, role="USER", first_name="Asha", last_name="Rao", phone=None):
    user = User(email=email, first_name=first_name, last_name=last_name, phone=phone, role=role)
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def user(app):
    return _create_user("asha@example.com", phone="9876543210")


@pytest.fixture
def other_user(app):
    return _create_user("vikram@example.com", first_name="Vikram", last_name="Singh")


@pytest.fixture
def admin(app):
    return _create_user("admin@example.com", role="ADMIN", first_name="Admin", last_name="User")


def _headers(user):
    return {"Authorization": f"Bearer {create_access_token(identity=str(user.id))}"}


@pytest.fixture
def auth_headers(user):
    return _headers(user)


@pytest.fixture
def other_headers(other_user):
    return _headers(other_user)


@pytest.fixture
def admin_headers(admin):
    return _headers(admin)


@pytest.fixture
def courier_partners(app):
    partners = [
        CourierPartner(name="Delhivery", rating=4.2, is_active=True),
        CourierPartner(name="Shadowfax", rating=4.5, is_active=True),
    ]
    db.session.add_all(partners)
    db.session.commit()
    return {partner.code: partner for partner in partners}


@pytest.fixture
def addresses(user):
    pickup = Address(user_id=user.id, type="work", name="Asha Rao", phone="9876543210",
                     address_line1="12 MG Road", city="Mumbai", state="Maharashtra",
                     pincode="400001", is_default=True)
    delivery = Address(user_id=user.id, type="home", name="Ravi Kumar", phone="9123456780",
                       address_line1="44 Brigade Road", city="Bengaluru", state="Karnataka",
                       pincode="560001")
    db.session.add_all([pickup, delivery])
    db.session.commit()
    return pickup, delivery


@pytest.fixture
def make_order(user, addresses, courier_partners):
    """Factory for orders owned by the default user."""
    pickup, delivery = addresses

    def _make_order(status=OrderStatus.PENDING, courier="delhivery", owner=None, **kwargs):
        order = Order(
            user_id=(owner or user).id,
            courier_partner_id=courier_partners[courier].id,
            pickup_address_id=pickup.id,
            delivery_address_id=delivery.id,
            weight=kwargs.pop("weight", 2.0),
            total_amount=kwargs.pop("total_amount", 150.0),
            package_type=kwargs.pop("package_type", "package"),
            status=status,
            **kwargs,
        )
        db.session.add(order)
        db.session.commit()
        return order

    return _make_order


@pytest.fixture
def fake_couriers():
    return {
        "delhivery": FakeCourierService("delhivery", "Delhivery", total=120.0, days=2),
        "shadowfax": FakeCourierService("shadowfax", "Shadowfax", total=95.0, days=3,
                                        features=["Standard", "Insurance"]),
    }


@pytest.fixture
def courier_manager(app, fake_couriers):
    """A manager holding the fake adapters, returned by every route lookup."""
    manager = CourierManager()
    for service in fake_couriers.values():
        manager.register(service)

    with ExitStack() as stack:
        for target in MANAGER_LOOKUPS:
            stack.enter_context(patch(target, return_value=manager))
        yield manager


@pytest.fixture
def pickup_address():
    return ShipmentAddress(name="Asha Rao", phone="9876543210", address_line1="12 MG Road",
                           city="Mumbai", state="Maharashtra", pincode="400001")


@pytest.fixture
def delivery_address():
    return ShipmentAddress(name="Ravi Kumar", phone="+91 91234 56780", address_line1="44 Brigade Road",
                           city="Bengaluru", state="Karnataka", pincode="560001")


@pytest.fixture
def shipment():
    return ShipmentDetails(weight=2.0, declared_value=1500.0, package_type="package",
                           contents="Books")
