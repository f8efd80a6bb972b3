import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from extensions import db
from courierhub.models import CourierPartner
from courierhub.utils.role_guards import admin_required
from courierhub.validators.payload import normalize_keys

logger = logging.getLogger(__name__)

courier_partners_bp = Blueprint('courier_partners', __name__, url_prefix='/api/courier-partners')


@courier_partners_bp.route('', methods=['GET'])
def list_courier_partners():
    """
    Active courier partners ordered by name
    GET /api/courier-partners
    """
    partners = CourierPartner.query.filter_by(is_active=True).order_by(CourierPartner.name).all()
    return jsonify([partner.to_dict() for partner in partners]), 200


@courier_partners_bp.route('', methods=['POST'])
@jwt_required()
@admin_required
def create_courier_partner():
    data = normalize_keys(request.get_json(silent=True) or {})

    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'Name is required'}), 400

    code = data.get('code') or CourierPartner.generate_code(name)
    if CourierPartner.query.filter_by(code=code).first():
        return jsonify({'error': f'Courier partner with code {code} already exists'}), 409

    try:
        partner = CourierPartner(
            name=name,
            code=code,
            pricing_model=data.get('pricing_model'),
            coverage_areas=data.get('coverage_areas'),
            api_key=data.get('api_key'),
            api_endpoint=data.get('api_endpoint'),
            rating=float(data.get('rating') or 0),
            is_active=bool(data.get('is_active', True)),
        )
        db.session.add(partner)
        db.session.commit()
    except (TypeError, ValueError) as e:
        db.session.rollback()
        return jsonify({'error': f'Invalid courier partner data: {e}'}), 400

    logger.info(f"Courier partner {partner.code} created")
    return jsonify(partner.to_dict()), 201
