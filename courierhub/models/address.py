from datetime import datetime

from sqlalchemy_serializer import SerializerMixin

from extensions import db


class Address(db.Model, SerializerMixin):
    """Saved address book entry, also used for per-booking pickup/delivery snapshots"""
    __tablename__ = 'addresses'

    TYPES = ('home', 'work', 'other', 'pickup', 'delivery')

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    type = db.Column(db.String(20), nullable=False, default='home')
    name = db.Column(db.String(120))
    phone = db.Column(db.String(20))
    email = db.Column(db.String(120))

    address_line1 = db.Column(db.String(255), nullable=False)
    address_line2 = db.Column(db.String(255))
    city = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(100), nullable=False)
    pincode = db.Column(db.String(6), nullable=False)
    country = db.Column(db.String(60), default='India')

    is_default = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('addresses', lazy='dynamic'))

    serialize_only = (
        'id', 'user_id', 'type', 'name', 'phone', 'email', 'address_line1',
        'address_line2', 'city', 'state', 'pincode', 'country', 'is_default',
        'created_at',
    )

    @property
    def short_label(self):
        """City, State label used in tracking and dashboard views"""
        return f"{self.city}, {self.state}"

    def to_shipment_address(self, fallback_name=None, fallback_phone=None):
        """Convert to the courier-facing address shape"""
        from courierhub.services.courier.types import ShipmentAddress

        return ShipmentAddress(
            name=self.name or fallback_name or '',
            phone=self.phone or fallback_phone or '',
            email=self.email,
            address_line1=self.address_line1,
            address_line2=self.address_line2,
            city=self.city,
            state=self.state,
            pincode=self.pincode,
            country=self.country or 'India',
        )

    @classmethod
    def from_shipment_address(cls, user_id, address, address_type):
        return cls(
            user_id=user_id,
            type=address_type,
            name=address.name,
            phone=address.phone,
            email=address.email,
            address_line1=address.address_line1,
            address_line2=address.address_line2,
            city=address.city,
            state=address.state,
            pincode=address.pincode,
            country=address.country or 'India',
        )
