"""
Tests for the flask CLI commands and database seeding.
"""

from unittest.mock import patch

import pytest

from courierhub.models import CourierAPIConfig, CourierPartner, OrderStatus, User
from courierhub.services.courier.manager import CourierManager


@pytest.fixture
def seed_env(monkeypatch):
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    monkeypatch.delenv("SHADOWFAX_API_KEY", raising=False)
    monkeypatch.setenv("DELHIVERY_API_KEY", "dl-key")


class TestSeedCommand:

    def test_seeds_users_partners_and_configs(self, app, seed_env):
        result = app.test_cli_runner().invoke(args=["seed-db"])

        assert result.exit_code == 0
        assert "Database seeded" in result.output

        admin = User.query.filter_by(email="admin@courierhub.in").one()
        assert admin.role == "ADMIN"
        assert admin.check_password("Admin@12345")
        assert CourierPartner.query.count() == 4

        configs = {c.courier_code: c for c in CourierAPIConfig.query.all()}
        assert configs["delhivery"].is_active is True
        assert configs["shadowfax"].is_active is False
        assert configs["shadowfax"].api_key is None

    def test_seeding_twice_is_idempotent(self, app, seed_env):
        runner = app.test_cli_runner()
        runner.invoke(args=["seed-db"])
        result = runner.invoke(args=["seed-db"])

        assert result.exit_code == 0
        assert User.query.count() == 2
        assert CourierPartner.query.count() == 4
        assert CourierAPIConfig.query.count() == 2


class TestDatabaseCommands:

    def test_drop_db_can_be_cancelled(self, app):
        result = app.test_cli_runner().invoke(args=["drop-db"], input="n\n")
        assert "Operation cancelled" in result.output

    def test_create_db(self, app):
        result = app.test_cli_runner().invoke(args=["create-db"])
        assert result.exit_code == 0
        assert "Database tables created" in result.output


class TestSyncTrackingCommand:

    def test_refreshes_one_courier(self, app, make_order, fake_couriers, make_update):
        manager = CourierManager()
        for service in fake_couriers.values():
            manager.register(service)
        make_order(OrderStatus.CONFIRMED, courier_tracking_id="DELHIVERY-AWB-1")
        make_order(OrderStatus.DELIVERED, courier_tracking_id="DELHIVERY-AWB-2")
        make_order(OrderStatus.CONFIRMED, courier="shadowfax", courier_tracking_id="SF-1")
        fake_couriers["delhivery"].updates = [make_update("in_transit", 1)]

        with patch("courierhub.services.courier.manager.get_courier_manager", return_value=manager):
            result = app.test_cli_runner().invoke(args=["sync-tracking", "--courier", "delhivery"])

        assert result.exit_code == 0
        assert "delhivery: refreshed 1 order(s)" in result.output
        assert "shadowfax" not in result.output

    def test_refreshes_every_registered_courier(self, app, make_order, fake_couriers):
        manager = CourierManager()
        for service in fake_couriers.values():
            manager.register(service)
        make_order(OrderStatus.CONFIRMED, courier_tracking_id="DELHIVERY-AWB-1")
        make_order(OrderStatus.CONFIRMED, courier="shadowfax", courier_tracking_id="SF-1")

        with patch("courierhub.services.courier.manager.get_courier_manager", return_value=manager):
            result = app.test_cli_runner().invoke(args=["sync-tracking"])

        assert "Refreshed tracking for 2 order(s)" in result.output
