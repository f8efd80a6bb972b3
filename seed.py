import logging
import os
from typing import Optional

from extensions import db
from courierhub.models import CourierAPIConfig, CourierPartner, User
from courierhub.services.courier.manager import encrypt_value

logger = logging.getLogger(__name__)

COURIER_PARTNERS = [
    {
        "name": "Delhivery",
        "pricing_model": {"base_price": 40, "per_kg_rate": 20, "fuel_surcharge": 0.1},
        "coverage_areas": ["400001", "110001", "560001", "600001"],
        "api_endpoint": "https://staging-express.delhivery.com",
        "rating": 4.2,
    },
    {
        "name": "Shadowfax",
        "pricing_model": {"base_price": 50, "per_kg_rate": 25, "same_day_delivery": True, "express_charge": 30},
        "coverage_areas": ["400001", "110001", "560001", "411001"],
        "api_endpoint": "https://dale.staging.shadowfax.in",
        "rating": 4.5,
    },
    {
        "name": "Blue Dart",
        "pricing_model": {"base_price": 60, "per_kg_rate": 30, "priority": True},
        "coverage_areas": ["400001", "110001", "560001", "600001", "700001"],
        "api_endpoint": "https://api.bluedart.com",
        "rating": 4.4,
    },
    {
        "name": "Ekart",
        "pricing_model": {"base_price": 35, "per_kg_rate": 18, "budget_friendly": True},
        "coverage_areas": ["400001", "110001", "560001", "600001", "700001"],
        "rating": 4.0,
    },
]

# Integrations with an adapter; a config is only activated when its API key is set
COURIER_API_CONFIGS = [
    {
        "courier_code": "delhivery",
        "courier_name": "Delhivery",
        "api_url": "https://staging-express.delhivery.com",
        "key_env": "DELHIVERY_API_KEY",
        "capabilities": {
            "services": ["express", "surface", "cod"],
            "features": ["tracking", "cod", "insurance", "returns"],
            "max_weight": 50,
        },
        "service_types": [
            {"code": "E", "name": "Express", "estimated_days": 1, "is_express_delivery": True},
            {"code": "S", "name": "Surface", "estimated_days": 3, "is_express_delivery": False},
            {"code": "C", "name": "Cash on Delivery", "estimated_days": 2, "is_express_delivery": False},
        ],
        "rate_limit": 100,
    },
    {
        "courier_code": "shadowfax",
        "courier_name": "Shadowfax",
        "api_url": "https://dale.staging.shadowfax.in",
        "key_env": "SHADOWFAX_API_KEY",
        "capabilities": {
            "services": ["standard", "express", "hyperlocal"],
            "features": ["tracking", "cod", "same_day"],
            "max_weight": 30,
        },
        "service_types": [
            {"code": "standard", "name": "Standard Delivery", "estimated_days": 3, "is_express_delivery": False},
            {"code": "express", "name": "Express Delivery", "estimated_days": 1, "is_express_delivery": True},
            {"code": "hyperlocal", "name": "Hyperlocal Delivery", "estimated_days": 1, "is_express_delivery": True},
        ],
        "rate_limit": 100,
    },
]


def _seed_users(admin_email, admin_password):
    admin = User.query.filter_by(email=admin_email).first()
    if admin:
        logger.info(f"Admin user already exists: {admin_email}")
    else:
        admin = User(first_name="Admin", last_name="User", email=admin_email, role="ADMIN", is_active=True)
        admin.set_password(admin_password)
        db.session.add(admin)
        logger.info(f"Created admin user: {admin_email}")

    demo_email = "demo@courierhub.in"
    if not User.query.filter_by(email=demo_email).first():
        demo = User(first_name="Demo", last_name="Shipper", email=demo_email, role="USER", is_active=True)
        demo.set_password(os.getenv("SAMPLE_PASSWORD", "Password@123"))
        db.session.add(demo)
        logger.info(f"Created demo user: {demo_email}")


def _seed_courier_partners():
    for partner in COURIER_PARTNERS:
        code = CourierPartner.generate_code(partner["name"])
        if CourierPartner.query.filter_by(code=code).first():
            continue
        db.session.add(CourierPartner(is_active=True, **partner))
        logger.info(f"Created courier partner: {partner['name']}")


def _seed_courier_api_configs():
    for entry in COURIER_API_CONFIGS:
        if CourierAPIConfig.query.filter_by(courier_code=entry["courier_code"]).first():
            continue

        api_key = os.getenv(entry["key_env"])
        db.session.add(CourierAPIConfig(
            courier_code=entry["courier_code"],
            courier_name=entry["courier_name"],
            is_active=bool(api_key),
            environment=os.getenv("COURIER_ENVIRONMENT", "sandbox"),
            api_url=entry["api_url"],
            api_key=encrypt_value(api_key),
            capabilities=entry["capabilities"],
            service_types=entry["service_types"],
            rate_limit=entry["rate_limit"],
        ))
        logger.info(f"Created courier API config: {entry['courier_code']} (active={bool(api_key)})")


def seed_data(app=None, admin_email: Optional[str] = None, admin_password: Optional[str] = None):
    """Create initial users, courier partners and courier API configurations.

    - Uses ADMIN_EMAIL and ADMIN_PASSWORD environment variables when available.
    - Idempotent: existing rows are left untouched.
    - Ensures DB tables exist by calling db.create_all().
    """
    if app is None:
        from courierhub import create_app
        app = create_app()

    admin_email = admin_email or os.getenv("ADMIN_EMAIL", "admin@courierhub.in")
    admin_password = admin_password or os.getenv("ADMIN_PASSWORD", "Admin@12345")

    with app.app_context():
        db.create_all()

        try:
            _seed_users(admin_email, admin_password)
            _seed_courier_partners()
            _seed_courier_api_configs()
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Seeding failed: {e}")
            raise


if __name__ == "__main__":
    from dotenv import load_dotenv

    load_dotenv()
    seed_data()
