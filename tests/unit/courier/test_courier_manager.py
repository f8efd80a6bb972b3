"""
Unit tests for the courier manager and quote helpers.
"""

from datetime import datetime, timedelta

import pytest

from extensions import db
from courierhub.models import CourierAPIConfig, OrderStatus, OrderTracking
from courierhub.services.courier.delhivery import DelhiveryService
from courierhub.services.courier.manager import (
    CourierManager,
    decrypt_value,
    encrypt_value,
    enhance_quotes,
    summarize_quotes,
)
from courierhub.services.courier.types import CourierAPIError, CourierRateLimitError


@pytest.fixture
def manager(fake_couriers):
    manager = CourierManager()
    for service in fake_couriers.values():
        manager.register(service)
    return manager


class TestCredentialEncoding:

    def test_round_trip(self):
        assert decrypt_value(encrypt_value("secret-key")) == "secret-key"

    def test_plain_values_pass_through(self):
        assert decrypt_value("not base64!") == "not base64!"

    def test_empty_values(self):
        assert decrypt_value(None) is None
        assert encrypt_value("") is None


class TestInitialize:

    def test_builds_adapters_for_active_configs(self, app):
        db.session.add_all([
            CourierAPIConfig(courier_code="delhivery", courier_name="Delhivery", is_active=True,
                             environment="production", api_key=encrypt_value("dl-key")),
            CourierAPIConfig(courier_code="shadowfax", courier_name="Shadowfax", is_active=False),
            CourierAPIConfig(courier_code="bluedart", courier_name="Blue Dart", is_active=True),
        ])
        db.session.commit()

        manager = CourierManager()
        manager.initialize()

        assert manager.get_available_services() == ["delhivery"]
        service = manager.get_service("delhivery")
        assert isinstance(service, DelhiveryService)
        assert service.credentials.api_key == "dl-key"
        assert service.is_production_mode() is True


class TestGetAllRates:

    def test_sorted_cheapest_first(self, manager, pickup_address, delivery_address, shipment):
        quotes = manager.get_all_rates(pickup_address, delivery_address, shipment)
        assert [q.courier_code for q in quotes] == ["shadowfax", "delhivery"]

    def test_failing_courier_is_isolated(self, manager, fake_couriers,
                                         pickup_address, delivery_address, shipment):
        fake_couriers["shadowfax"].fail = True
        quotes = manager.get_all_rates(pickup_address, delivery_address, shipment)
        assert [q.courier_code for q in quotes] == ["delhivery"]

    def test_undeliverable_courier_is_skipped(self, manager, fake_couriers,
                                              pickup_address, delivery_address, shipment):
        fake_couriers["delhivery"].deliverable = False
        quotes = manager.get_all_rates(pickup_address, delivery_address, shipment)
        assert [q.courier_code for q in quotes] == ["shadowfax"]

    def test_no_services(self, pickup_address, delivery_address, shipment):
        assert CourierManager().get_all_rates(pickup_address, delivery_address, shipment) == []

    def test_all_couriers_rate_limited_raises(self, manager, fake_couriers,
                                              pickup_address, delivery_address, shipment):
        for service in fake_couriers.values():
            service.calculate_rate = _rate_limited(service.courier_code)

        with pytest.raises(CourierRateLimitError):
            manager.get_all_rates(pickup_address, delivery_address, shipment)

    def test_partial_rate_limit_still_returns_quotes(self, manager, fake_couriers,
                                                     pickup_address, delivery_address, shipment):
        fake_couriers["delhivery"].calculate_rate = _rate_limited("delhivery")
        quotes = manager.get_all_rates(pickup_address, delivery_address, shipment)
        assert [q.courier_code for q in quotes] == ["shadowfax"]


class TestTracking:

    def test_unknown_courier_raises(self, manager):
        with pytest.raises(CourierAPIError):
            manager.track_shipment("AWB1", "bluedart")

    def test_first_courier_with_updates_wins(self, manager, fake_couriers, make_update):
        fake_couriers["delhivery"].fail = True
        fake_couriers["shadowfax"].updates = [make_update("in_transit", 1)]
        updates = manager.track_shipment("AWB1")
        assert [u.status for u in updates] == ["in_transit"]

    def test_update_tracking_info_mirrors_updates(self, app, manager, fake_couriers,
                                                  make_order, make_update):
        order = make_order(OrderStatus.CONFIRMED, courier_tracking_id="DELHIVERY-AWB-1",
                           courier_order_id="DELHIVERY-ORD-1")
        fake_couriers["delhivery"].updates = [
            make_update("picked_up", 5),
            make_update("out_for_delivery", 1, location="Bengaluru"),
        ]

        assert manager.update_tracking_info(order.id) == 2
        # a second sync refreshes the same rows
        assert manager.update_tracking_info(order.id) == 2

        rows = OrderTracking.query.filter_by(order_id=order.id).all()
        assert len(rows) == 2
        assert order.status == OrderStatus.OUT_FOR_DELIVERY
        assert order.courier_status == "OUT_FOR_DELIVERY"

    def test_delivered_update_sets_actual_delivery(self, app, manager, fake_couriers,
                                                   make_order, make_update):
        order = make_order(OrderStatus.OUT_FOR_DELIVERY, courier_tracking_id="DELHIVERY-AWB-1")
        delivered = make_update("delivered", 0)
        fake_couriers["delhivery"].updates = [delivered]

        manager.update_tracking_info(order.id)

        assert order.status == OrderStatus.DELIVERED
        assert order.actual_delivery == delivered.timestamp

    def test_order_without_tracking_id(self, app, manager, make_order):
        order = make_order()
        assert manager.update_tracking_info(order.id) == 0


class TestOrderOperations:

    def test_book_shipment_updates_order(self, app, manager, make_order,
                                         pickup_address, delivery_address, shipment):
        order = make_order()
        booking = manager.book_shipment("delhivery", pickup_address, delivery_address,
                                        shipment, "E", order.id)

        assert booking.courier_tracking_id == "DELHIVERY-AWB-1"
        assert order.status == OrderStatus.CONFIRMED
        assert order.courier_order_id == "DELHIVERY-ORD-1"
        assert order.booked_at is not None

    def test_book_with_unknown_courier(self, app, manager, pickup_address, delivery_address, shipment):
        with pytest.raises(CourierAPIError):
            manager.book_shipment("bluedart", pickup_address, delivery_address, shipment, "E", 1)

    def test_cancel_booked_order(self, app, manager, fake_couriers, make_order):
        order = make_order(OrderStatus.CONFIRMED, courier_order_id="DELHIVERY-ORD-1")
        assert manager.cancel_shipment(order.id) is True
        assert order.status == OrderStatus.CANCELLED
        assert fake_couriers["delhivery"].cancelled == ["DELHIVERY-ORD-1"]

    def test_cancel_unbooked_order(self, app, manager, make_order):
        order = make_order()
        assert manager.cancel_shipment(order.id) is False

    def test_schedule_pickup(self, app, manager, fake_couriers, make_order):
        order = make_order(OrderStatus.CONFIRMED, courier_order_id="DELHIVERY-ORD-1")
        pickup_at = datetime.utcnow() + timedelta(days=1)

        assert manager.schedule_pickup(order.id, pickup_at) is True
        assert order.status == OrderStatus.PICKUP_SCHEDULED
        assert order.dispatched_at == pickup_at

    def test_generate_label_requires_booking(self, app, manager, make_order):
        order = make_order()
        with pytest.raises(ValueError):
            manager.generate_label(order.id)


class TestQuoteHelpers:

    def test_enhance_quotes(self, manager, pickup_address, delivery_address, shipment):
        quotes = manager.get_all_rates(pickup_address, delivery_address, shipment)
        enhanced = enhance_quotes(quotes, {"shadowfax": 4.5})

        cheapest, other = enhanced
        assert cheapest["is_recommended"] is True
        assert cheapest["savings_from_highest"] == 25.0
        assert cheapest["courier_rating"] == 4.5
        assert cheapest["insurance_included"] is True
        assert other["is_recommended"] is False
        assert other["savings_from_highest"] == 0
        assert other["courier_rating"] == 4.2
        assert other["cod_available"] is True

    def test_enhance_empty(self):
        assert enhance_quotes([]) == []

    def test_summarize(self, manager, pickup_address, delivery_address, shipment):
        quotes = manager.get_all_rates(pickup_address, delivery_address, shipment)
        assert summarize_quotes(quotes) == {
            "total_quotes": 2,
            "cheapest_price": 95.0,
            "fastest_delivery": 2,
        }

    def test_summarize_empty(self):
        assert summarize_quotes([]) == {
            "total_quotes": 0, "cheapest_price": None, "fastest_delivery": None,
        }


def _rate_limited(courier_code):
    def calculate_rate(*args, **kwargs):
        raise CourierRateLimitError(courier_code, retry_after=30)
    return calculate_rate
