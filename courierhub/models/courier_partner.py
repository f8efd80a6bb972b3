import re
from datetime import datetime

from extensions import db


class CourierPartner(db.Model):
    """Courier partner listed on the marketplace"""
    __tablename__ = 'courier_partners'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(50), unique=True, nullable=False)
    pricing_model = db.Column(db.JSON)
    coverage_areas = db.Column(db.JSON)
    api_key = db.Column(db.String(255))
    api_endpoint = db.Column(db.String(255))
    rating = db.Column(db.Float, default=0)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    orders = db.relationship('Order', backref='courier_partner', lazy=True)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.code and self.name:
            self.code = self.generate_code(self.name)

    @staticmethod
    def generate_code(name):
        """Slug used to match a partner with its API integration"""
        return re.sub(r'[^a-z0-9]', '_', name.lower())

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'pricing_model': self.pricing_model,
            'coverage_areas': self.coverage_areas,
            'rating': self.rating,
            'api_endpoint': self.api_endpoint,
            'is_active': self.is_active,
        }


class CourierAPIConfig(db.Model):
    """Credentials and capabilities for a courier API integration.

    Secret columns hold base64-encoded values; the courier manager decodes
    them when it builds the service adapters.
    """
    __tablename__ = 'courier_api_configs'

    id = db.Column(db.Integer, primary_key=True)
    courier_code = db.Column(db.String(50), unique=True, nullable=False)
    courier_name = db.Column(db.String(100), nullable=False)
    is_active = db.Column(db.Boolean, default=False)
    environment = db.Column(db.String(20), default='sandbox')
    api_url = db.Column(db.String(255))

    api_key = db.Column(db.Text)
    api_secret = db.Column(db.Text)
    auth_token = db.Column(db.Text)
    client_id = db.Column(db.String(255))
    client_secret = db.Column(db.Text)

    capabilities = db.Column(db.JSON)
    service_types = db.Column(db.JSON)
    rate_limit = db.Column(db.Integer)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'courier_code': self.courier_code,
            'courier_name': self.courier_name,
            'is_active': self.is_active,
            'environment': self.environment,
            'api_url': self.api_url,
            'capabilities': self.capabilities,
            'service_types': self.service_types,
            'rate_limit': self.rate_limit,
        }
