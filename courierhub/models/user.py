from datetime import datetime

import phonenumbers
from sqlalchemy.orm import validates
from sqlalchemy_serializer import SerializerMixin

from extensions import db, bcrypt


class User(db.Model, SerializerMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    first_name = db.Column(db.String(60), nullable=False)
    last_name = db.Column(db.String(60), nullable=False)
    phone = db.Column(db.String(20), unique=True, nullable=True)
    company = db.Column(db.String(120))
    gstin = db.Column(db.String(15))
    role = db.Column(
        db.Enum("USER", "ADMIN", name="user_roles"),
        default="USER",
        nullable=False,
    )
    is_active = db.Column(db.Boolean, default=True)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    serialize_only = (
        "id", "email", "first_name", "last_name", "phone", "company",
        "gstin", "role", "is_active", "last_login_at", "created_at", "updated_at",
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode("utf-8")

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    @validates("email")
    def validate_email(self, key, address):
        if not address or "@" not in address:
            raise ValueError("Invalid email address")
        return address.strip().lower()

    @validates("phone")
    def validate_phone(self, key, number):
        # Skip validation if phone is None or empty
        if number is None or number == "":
            return None

        try:
            parsed = phonenumbers.parse(number, "IN")
        except phonenumbers.NumberParseException:
            raise ValueError("Enter a valid phone number")
        if not phonenumbers.is_valid_number(parsed):
            raise ValueError("Enter a valid phone number")
        return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
