"""
API tests for order creation, listing, updates and cancellation.
"""

from extensions import mail
from courierhub.models import Order, OrderLog, OrderStatus, OrderTracking


def _row_count(model, order_id):
    return model.query.filter_by(order_id=order_id).count()


class TestCreateOrder:

    def test_creates_order_with_price_estimate(self, client, addresses, courier_partners, auth_headers):
        pickup, delivery = addresses
        payload = {
            "pickupAddressId": pickup.id,
            "deliveryAddressId": delivery.id,
            "courierPartnerId": courier_partners["delhivery"].id,
            "weight": 3,
            "packageType": "fragile",
            "declaredValue": 2500,
        }

        response = client.post("/api/orders", headers=auth_headers, json=payload)

        assert response.status_code == 201
        body = response.get_json()
        assert body["price_breakdown"]["total_price"] == 92.0
        assert body["order"]["status"] == "pending"
        assert body["tracking_number"].startswith("SS")

        order = Order.query.filter_by(tracking_number=body["tracking_number"]).one()
        assert order.total_amount == 92.0
        assert OrderTracking.query.filter_by(order_id=order.id).count() == 1
        assert OrderLog.query.filter_by(order_id=order.id).count() == 1

    def test_rejects_foreign_address(self, client, addresses, courier_partners, other_headers):
        pickup, delivery = addresses
        response = client.post("/api/orders", headers=other_headers, json={
            "pickupAddressId": pickup.id,
            "deliveryAddressId": delivery.id,
            "courierPartnerId": courier_partners["delhivery"].id,
            "weight": 1,
        })
        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid address selection"

    def test_unknown_courier_partner(self, client, addresses, auth_headers):
        pickup, delivery = addresses
        response = client.post("/api/orders", headers=auth_headers, json={
            "pickupAddressId": pickup.id, "deliveryAddressId": delivery.id,
            "courierPartnerId": 999, "weight": 1,
        })
        assert response.status_code == 400

    def test_validation_errors(self, client, auth_headers):
        response = client.post("/api/orders", headers=auth_headers, json={"weight": 1})
        assert response.status_code == 400
        assert "pickup_address_id" in response.get_json()["errors"]


class TestListOrders:

    def test_user_sees_own_orders(self, client, make_order, other_user, auth_headers):
        mine = make_order()
        make_order(owner=other_user)

        response = client.get("/api/orders", headers=auth_headers)

        body = response.get_json()
        assert [o["id"] for o in body["orders"]] == [mine.id]
        assert body["pagination"]["total"] == 1

    def test_admin_sees_all(self, client, make_order, other_user, admin_headers):
        make_order()
        make_order(owner=other_user)

        response = client.get("/api/orders", headers=admin_headers)
        assert response.get_json()["pagination"]["total"] == 2

    def test_status_filter_and_paging(self, client, make_order, auth_headers):
        for _ in range(3):
            make_order(OrderStatus.IN_TRANSIT)
        make_order()

        response = client.get("/api/orders?status=IN_TRANSIT&limit=2&page=2", headers=auth_headers)

        body = response.get_json()
        assert len(body["orders"]) == 1
        assert body["pagination"] == {"total": 3, "page": 2, "limit": 2, "pages": 2}

    def test_unknown_status_filter(self, client, auth_headers):
        response = client.get("/api/orders?status=lost", headers=auth_headers)
        assert response.status_code == 400


class TestGetOrder:

    def test_detail_includes_history(self, client, make_order, auth_headers):
        order = make_order()

        response = client.get(f"/api/orders/{order.id}", headers=auth_headers)

        data = response.get_json()["order"]
        assert data["pickup_address"]["city"] == "Mumbai"
        assert data["tracking_history"] == []
        assert data["payments"] == []

    def test_other_users_order_is_hidden(self, client, make_order, other_headers):
        order = make_order()
        response = client.get(f"/api/orders/{order.id}", headers=other_headers)
        assert response.status_code == 404


class TestUpdateOrder:

    def test_allowed_transition(self, client, make_order, auth_headers):
        order = make_order(OrderStatus.CONFIRMED)

        with mail.record_messages() as outbox:
            response = client.put(f"/api/orders/{order.id}", headers=auth_headers,
                                  json={"status": "picked_up"})

        assert response.status_code == 200
        assert order.status == OrderStatus.PICKED_UP
        assert OrderLog.query.filter_by(order_id=order.id).one().message == \
            "Status changed from confirmed to picked_up"
        assert len(outbox) == 1
        assert "Update" in outbox[0].subject

    def test_invalid_transition(self, client, make_order, auth_headers):
        order = make_order(OrderStatus.PENDING)

        response = client.put(f"/api/orders/{order.id}", headers=auth_headers, json={"status": "delivered"})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Cannot change status from pending to delivered"
        assert order.status == OrderStatus.PENDING

    def test_delivered_sends_delivery_email(self, client, make_order, auth_headers):
        order = make_order(OrderStatus.OUT_FOR_DELIVERY)

        with mail.record_messages() as outbox:
            client.put(f"/api/orders/{order.id}", headers=auth_headers, json={"status": "delivered"})

        assert order.actual_delivery is not None
        assert outbox[0].subject.endswith("Delivered!")

    def test_instructions_only(self, client, make_order, auth_headers):
        order = make_order()
        response = client.put(f"/api/orders/{order.id}", headers=auth_headers,
                              json={"deliveryInstructions": "Leave at reception"})
        assert response.status_code == 200
        assert order.delivery_instructions == "Leave at reception"


class TestCancelOrder:

    def test_cancel_unbooked_order(self, client, make_order, auth_headers):
        order = make_order()

        response = client.delete(f"/api/orders/{order.id}", headers=auth_headers)

        assert response.status_code == 200
        body = response.get_json()
        assert body["courier_cancelled"] is None
        assert order.status == OrderStatus.CANCELLED
        assert _row_count(OrderTracking, order.id) == 1

    def test_cancel_booked_order_notifies_courier(self, client, make_order, auth_headers,
                                                  courier_manager, fake_couriers):
        order = make_order(OrderStatus.CONFIRMED, courier_order_id="DELHIVERY-ORD-1")

        response = client.delete(f"/api/orders/{order.id}", headers=auth_headers)

        assert response.get_json()["courier_cancelled"] is True
        assert fake_couriers["delhivery"].cancelled == ["DELHIVERY-ORD-1"]

    def test_cannot_cancel_after_pickup(self, client, make_order, auth_headers):
        order = make_order(OrderStatus.PICKED_UP)
        response = client.delete(f"/api/orders/{order.id}", headers=auth_headers)
        assert response.status_code == 400


class TestOrderTracking:

    def test_add_tracking_entry_moves_status(self, client, make_order, auth_headers):
        order = make_order(OrderStatus.IN_TRANSIT)

        response = client.put(f"/api/orders/{order.id}/tracking", headers=auth_headers, json={
            "status": "delivered",
            "location": "Bengaluru",
            "actualDelivery": "2024-01-20T15:30:00Z",
        })

        assert response.status_code == 200
        assert order.status == OrderStatus.DELIVERED
        assert order.actual_delivery.isoformat() == "2024-01-20T15:30:00"

        history = client.get(f"/api/orders/{order.id}/tracking", headers=auth_headers).get_json()
        assert history["tracking_updates"][0]["location"] == "Bengaluru"
        assert history["order"]["status"] == "delivered"

    def test_unknown_status(self, client, make_order, auth_headers):
        order = make_order()
        response = client.put(f"/api/orders/{order.id}/tracking", headers=auth_headers,
                              json={"status": "teleported"})
        assert response.status_code == 400