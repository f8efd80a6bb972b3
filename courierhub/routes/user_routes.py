import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
from sqlalchemy.exc import IntegrityError

from extensions import db
from courierhub.models import Address, User
from courierhub.validators.address_validators import AddressValidator
from courierhub.validators.auth_validators import AuthValidator
from courierhub.validators.payload import normalize_keys

logger = logging.getLogger(__name__)

user_bp = Blueprint('user', __name__, url_prefix='/api/user')


def _unset_other_defaults(user_id, keep_id=None):
    query = Address.query.filter_by(user_id=user_id, is_default=True)
    if keep_id is not None:
        query = query.filter(Address.id != keep_id)
    query.update({'is_default': False}, synchronize_session=False)


#  PROFILE
@user_bp.route('/profile', methods=['GET'])
@jwt_required()
def get_profile():
    user = db.session.get(User, int(get_jwt_identity()))
    if not user:
        return jsonify({'error': 'User not found'}), 404

    return jsonify({'success': True, 'user': user.to_dict()}), 200


@user_bp.route('/profile', methods=['PUT'])
@jwt_required()
def update_profile():
    user = db.session.get(User, int(get_jwt_identity()))
    if not user:
        return jsonify({'error': 'User not found'}), 404

    data = normalize_keys(request.get_json(silent=True) or {})
    is_valid, validated_data, errors = AuthValidator.validate_profile_update(data)
    if not is_valid:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    try:
        for field, value in validated_data.items():
            setattr(user, field, value)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Phone number is already in use'}), 409

    return jsonify({
        'success': True,
        'message': 'Profile updated successfully',
        'user': user.to_dict()
    }), 200


#  ADDRESSES
@user_bp.route('/addresses', methods=['GET'])
@jwt_required()
def get_addresses():
    """
    Saved addresses, default first then newest
    GET /api/user/addresses
    """
    user_id = int(get_jwt_identity())
    addresses = Address.query.filter_by(user_id=user_id)\
        .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())\
        .all()

    return jsonify({
        'success': True,
        'addresses': [address.to_dict() for address in addresses]
    }), 200


@user_bp.route('/addresses', methods=['POST'])
@jwt_required()
def create_address():
    user_id = int(get_jwt_identity())
    data = normalize_keys(request.get_json(silent=True) or {})

    is_valid, validated_data, errors = AddressValidator.validate_address(data)
    if not is_valid:
        return jsonify({'success': False, 'errors': errors}), 400

    try:
        if validated_data.get('is_default'):
            _unset_other_defaults(user_id)

        address = Address(user_id=user_id, **validated_data)
        db.session.add(address)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Address creation failed for user {user_id}: {e}")
        return jsonify({'error': 'Internal server error'}), 500

    return jsonify({
        'success': True,
        'message': 'Address created successfully',
        'address': address.to_dict()
    }), 201


@user_bp.route('/addresses/<int:address_id>', methods=['PUT'])
@jwt_required()
def update_address(address_id):
    user_id = int(get_jwt_identity())
    address = Address.query.filter_by(id=address_id, user_id=user_id).first()
    if not address:
        return jsonify({'error': 'Address not found'}), 404

    data = normalize_keys(request.get_json(silent=True) or {})
    is_valid, validated_data, errors = AddressValidator.validate_address(data, partial=True)
    if not is_valid:
        return jsonify({'success': False, 'errors': errors}), 400

    try:
        if validated_data.get('is_default'):
            _unset_other_defaults(user_id, keep_id=address.id)

        for field, value in validated_data.items():
            setattr(address, field, value)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Address update failed for address {address_id}: {e}")
        return jsonify({'error': 'Internal server error'}), 500

    return jsonify({
        'success': True,
        'message': 'Address updated successfully',
        'address': address.to_dict()
    }), 200


@user_bp.route('/addresses/<int:address_id>', methods=['DELETE'])
@jwt_required()
def delete_address(address_id):
    user_id = int(get_jwt_identity())
    address = Address.query.filter_by(id=address_id, user_id=user_id).first()
    if not address:
        return jsonify({'error': 'Address not found'}), 404

    try:
        db.session.delete(address)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Address is used by an existing order'}), 409

    return jsonify({'success': True, 'message': 'Address deleted successfully'}), 200
