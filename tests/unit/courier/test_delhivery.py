"""
Unit tests for the Delhivery integration.
"""

from datetime import datetime
from unittest.mock import patch

import pytest

from courierhub.services.courier.delhivery import DelhiveryService, map_delhivery_status
from courierhub.services.courier.types import (
    CourierAPIError, CourierCredentials, CourierRateLimitError, Dimensions, ShipmentDetails,
)


@pytest.fixture
def service():
    return DelhiveryService(CourierCredentials(api_key="dl-key"))


class TestDelhiveryConfiguration:

    def test_sandbox_url_by_default(self, service):
        assert service.base_url == "https://staging-express.delhivery.com"

    def test_production_url(self):
        service = DelhiveryService(CourierCredentials(api_key="k"), is_production=True)
        assert service.base_url == "https://track.delhivery.com"

    def test_token_auth_header(self, service):
        assert service.session.headers["Authorization"] == "Token dl-key"

    def test_service_types(self, service):
        assert [s.code for s in service.get_service_types()] == ["E", "S", "C"]


class TestDelhiveryServiceability:

    def test_invalid_pincode_skips_network(self, service):
        with patch.object(service.session, "request") as mock_request:
            assert service.can_deliver("1234") is False
        mock_request.assert_not_called()

    def test_serviceable_pincode(self, service, http_response):
        body = {"delivery_codes": [{"postal_code": {"pin": 560001}}]}
        with patch.object(service.session, "request", return_value=http_response(body=body)) as mock_request:
            assert service.can_deliver("560001") is True
        assert mock_request.call_args.kwargs["params"] == {"filter_codes": "560001"}

    def test_empty_delivery_codes(self, service, http_response):
        with patch.object(service.session, "request", return_value=http_response(body={"delivery_codes": []})):
            assert service.can_deliver("560001") is False

    def test_api_error_means_not_deliverable(self, service, http_response):
        with patch.object(service.session, "request", return_value=http_response(status_code=500)):
            assert service.can_deliver("560001") is False


class TestDelhiveryRates:

    def test_rate_breakdown(self, service, http_response, pickup_address, delivery_address, shipment):
        body = {"total_amount": 236.0, "delivery_charges": 180.0, "cod_charges": 20.0}
        with patch.object(service.session, "request", return_value=http_response(body=body)) as mock_request:
            quotes = service.calculate_rate(pickup_address, delivery_address, shipment, "S")

        quote = quotes[0]
        assert quote.courier_code == "delhivery"
        assert quote.service_type.code == "S"
        assert quote.total_amount == 236.0
        assert quote.base_amount == 180.0
        assert quote.other_charges == 20.0
        assert quote.gst_amount == 36.0
        assert quote.transit_time == "3 days"
        params = mock_request.call_args.kwargs["params"]
        assert params["mode"] == "S"
        assert params["weight"] == 2.0

    def test_defaults_to_express(self, service, http_response, pickup_address, delivery_address, shipment):
        body = {"total_amount": 100}
        with patch.object(service.session, "request", return_value=http_response(body=body)):
            quote = service.calculate_rate(pickup_address, delivery_address, shipment)[0]
        assert quote.service_type.code == "E"
        assert quote.transit_time == "1 day"

    def test_uses_volumetric_weight(self, service, http_response, pickup_address, delivery_address):
        shipment = ShipmentDetails(weight=1.0, declared_value=500, package_type="package",
                                   contents="Shoes", dimensions=Dimensions(50, 40, 30))
        with patch.object(service.session, "request",
                          return_value=http_response(body={"total_amount": 300})) as mock_request:
            service.calculate_rate(pickup_address, delivery_address, shipment)
        assert mock_request.call_args.kwargs["params"]["weight"] == 12.0

    def test_missing_total_raises(self, service, http_response, pickup_address, delivery_address, shipment):
        with patch.object(service.session, "request", return_value=http_response(body={})):
            with pytest.raises(CourierAPIError, match="Failed to calculate shipping rates"):
                service.calculate_rate(pickup_address, delivery_address, shipment)

    def test_rate_limit_propagates(self, service, http_response, pickup_address, delivery_address, shipment):
        with patch.object(service.session, "request", return_value=http_response(status_code=429)):
            with pytest.raises(CourierRateLimitError):
                service.calculate_rate(pickup_address, delivery_address, shipment)


class TestDelhiveryBooking:

    def test_booking_returns_waybill(self, service, http_response, pickup_address, delivery_address, shipment):
        body = {"success": True, "waybill": "DL123", "label_url": "https://dl/label.pdf"}
        with patch.object(service.session, "request", return_value=http_response(body=body)) as mock_request:
            booking = service.book_shipment(pickup_address, delivery_address, shipment, "E", "42")

        assert booking.courier_tracking_id == "DL123"
        assert booking.courier_order_id == "DL123"
        assert booking.label_url == "https://dl/label.pdf"
        assert booking.total_amount == 1500.0
        sent = mock_request.call_args.kwargs["json"]["shipments"][0]
        assert sent["phone"] == "9123456780"
        assert sent["payment_mode"] == "Prepaid"
        assert sent["order"] == "42"

    def test_rejected_booking_raises(self, service, http_response, pickup_address, delivery_address, shipment):
        with patch.object(service.session, "request",
                          return_value=http_response(body={"success": False, "rmk": "bad pin"})):
            with pytest.raises(CourierAPIError, match="Delhivery booking failed"):
                service.book_shipment(pickup_address, delivery_address, shipment, "E", "42")


class TestDelhiveryTracking:

    def test_status_mapping(self):
        assert map_delhivery_status("Out For Delivery") == "out_for_delivery"
        assert map_delhivery_status("RTO") == "returned"
        assert map_delhivery_status("Something new") == "in_transit"

    def test_updates_are_sorted_newest_first(self, service, http_response):
        body = {"ShipmentData": [{"Shipment": {
            "Status": {"Status": "In Transit", "StatusType": "UD", "StatusLocation": "Pune",
                       "StatusDateTime": "2024-01-15T10:00:00", "Instructions": "Reached hub"},
            "ScanDetail": [
                {"ScanType": "Shipped", "StatusCode": "X-PPOM", "ScanLocation": "Mumbai",
                 "ScanDateTime": "2024-01-14T09:00:00", "Instructions": "Picked up"},
                {"ScanType": "Pending", "StatusCode": "X-UCI", "ScanLocation": "Mumbai",
                 "ScanDateTime": "not a date"},
            ],
        }}]}
        with patch.object(service.session, "request", return_value=http_response(body=body)):
            updates = service.track_shipment("DL123")

        assert [u.status for u in updates] == ["in_transit", "picked_up"]
        assert updates[0].timestamp == datetime(2024, 1, 15, 10, 0)
        assert updates[0].location == "Pune"

    def test_no_shipment_data(self, service, http_response):
        with patch.object(service.session, "request", return_value=http_response(body={"ShipmentData": []})):
            assert service.track_shipment("DL123") == []

    def test_tracking_error_raises(self, service, http_response):
        with patch.object(service.session, "request", return_value=http_response(status_code=500)):
            with pytest.raises(CourierAPIError, match="Failed to track shipment"):
                service.track_shipment("DL123")


class TestDelhiveryOperations:

    def test_cancel_requires_explicit_success(self, service, http_response):
        with patch.object(service.session, "request", return_value=http_response(body={"success": True})):
            assert service.cancel_shipment("DL123") is True
        with patch.object(service.session, "request", return_value=http_response(body={"success": "yes"})):
            assert service.cancel_shipment("DL123") is False

    def test_cancel_failure_returns_false(self, service, http_response):
        with patch.object(service.session, "request", return_value=http_response(status_code=500)):
            assert service.cancel_shipment("DL123") is False

    def test_schedule_pickup_sends_date(self, service, http_response):
        with patch.object(service.session, "request",
                          return_value=http_response(body={"success": True})) as mock_request:
            assert service.schedule_pickup("DL123", datetime(2024, 2, 1, 10)) is True
        assert mock_request.call_args.kwargs["json"]["pickup_date"] == "2024-02-01"

    def test_generate_label(self, service, http_response):
        with patch.object(service.session, "request",
                          return_value=http_response(body={"label_url": "https://dl/l.pdf"})):
            assert service.generate_label("DL123") == "https://dl/l.pdf"
