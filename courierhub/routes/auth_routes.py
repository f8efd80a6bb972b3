import logging
from datetime import datetime

from flask import request
from flask_restful import Resource
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt_identity
)
from sqlalchemy.exc import IntegrityError

from courierhub.models.user import User
from courierhub.validators.auth_validators import AuthValidator
from courierhub.validators.payload import normalize_keys
from extensions import db

logger = logging.getLogger(__name__)


def _tokens_for(user):
    return {
        "access_token": create_access_token(identity=str(user.id)),
        "refresh_token": create_refresh_token(identity=str(user.id)),
    }


# POST /api/auth/signup -> create account and sign in
class SignupResource(Resource):
    def post(self):
        data = normalize_keys(request.get_json(silent=True) or {})
        if not data:
            return {"error": "Request body is required"}, 400

        is_valid, validated, errors = AuthValidator.validate_signup(data)
        if not is_valid:
            return {"error": "Validation failed", "errors": errors}, 400

        if User.query.filter_by(email=validated["email"]).first():
            return {"error": "User with this email already exists"}, 409

        try:
            password = validated.pop("password")
            user = User(**validated)
            user.set_password(password)

            if user.phone and User.query.filter_by(phone=user.phone).first():
                return {"error": "User with this phone number already exists"}, 409

            db.session.add(user)
            db.session.commit()
        except ValueError as e:
            db.session.rollback()
            return {"error": str(e)}, 400
        except IntegrityError:
            db.session.rollback()
            logger.warning(f"Signup conflict for {validated['email']}")
            return {"error": "User with this email or phone number already exists"}, 409

        logger.info(f"New user signed up: {user.email}")
        return {
            "message": "User created successfully",
            "user": user.to_dict(),
            **_tokens_for(user),
        }, 201


# POST /api/auth/signin -> tokens + user
class SigninResource(Resource):
    def post(self):
        data = request.get_json(silent=True) or {}

        email = (data.get("email") or "").strip().lower()
        password = data.get("password")

        if not all([email, password]):
            return {"error": "Email and password are required"}, 400

        user = User.query.filter_by(email=email).first()
        if not user or not user.check_password(password):
            return {"error": "Invalid email or password"}, 401
        if not user.is_active:
            return {"error": "Account is inactive. Please contact support."}, 403

        user.last_login_at = datetime.utcnow()
        db.session.commit()

        return {
            "message": "Login successful",
            "user": user.to_dict(),
            **_tokens_for(user),
        }, 200


class MeResource(Resource):
    @jwt_required()
    def get(self):
        user = db.session.get(User, int(get_jwt_identity()))

        if not user:
            return {"error": "User not found"}, 404

        return {
            "id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "phone": user.phone,
            "role": user.role,
            "is_active": user.is_active,
            "created_at": user.created_at.isoformat()
        }, 200


# refresh token endpoint
class RefreshResource(Resource):
    @jwt_required(refresh=True)
    def post(self):
        user = db.session.get(User, int(get_jwt_identity()))

        if not user:
            return {"error": "User not found"}, 404

        return {
            "access_token": create_access_token(identity=str(user.id))
        }, 200
