import logging
from datetime import datetime

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from extensions import db
from courierhub.models import Address, CourierPartner, Order, OrderLog, OrderStatus, OrderTracking
from courierhub.services.courier.manager import get_courier_manager
from courierhub.services.courier.types import CourierAPIError
from courierhub.services.email_service import EmailService
from courierhub.services.pricing_service import PricingService
from courierhub.utils.role_guards import is_admin
from courierhub.validators.order_validators import OrderValidator
from courierhub.validators.payload import normalize_keys

logger = logging.getLogger(__name__)

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


def _owned_order(order_id):
    """Order visible to the current user; admins can see every order"""
    query = Order.query.filter_by(id=order_id)
    if not is_admin():
        query = query.filter_by(user_id=int(get_jwt_identity()))
    return query.first()


def _parse_datetime(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).replace(tzinfo=None)
    except ValueError:
        return None


#  CREATE ORDER
@orders_bp.route('', methods=['POST'])
@jwt_required()
def create_order():
    """
    Create an order from saved addresses with a local price estimate
    POST /api/orders
    """
    current_user_id = int(get_jwt_identity())
    data = normalize_keys(request.get_json(silent=True) or {}, OrderValidator.REQUEST_OBJECTS)

    is_valid, validated_data, errors = OrderValidator.validate_create_order(data)
    if not is_valid:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    pickup_address = Address.query.filter_by(
        id=validated_data['pickup_address_id'], user_id=current_user_id).first()
    delivery_address = Address.query.filter_by(
        id=validated_data['delivery_address_id'], user_id=current_user_id).first()
    if not pickup_address or not delivery_address:
        return jsonify({'error': 'Invalid address selection'}), 400

    courier_partner = db.session.get(CourierPartner, validated_data['courier_partner_id'])
    if not courier_partner:
        return jsonify({'error': 'Invalid courier partner'}), 400

    try:
        price = PricingService.calculate_price_breakdown(
            weight_kg=validated_data['weight'],
            package_type=validated_data['package_type'],
            dimensions=validated_data['dimensions'],
        )

        order = Order(
            user_id=current_user_id,
            courier_partner_id=courier_partner.id,
            pickup_address_id=pickup_address.id,
            delivery_address_id=delivery_address.id,
            package_type=validated_data['package_type'],
            weight=validated_data['weight'],
            dimensions=validated_data['dimensions'],
            declared_value=validated_data['declared_value'],
            parcel_contents=validated_data['parcel_contents'],
            delivery_instructions=validated_data['delivery_instructions'],
            service_type=validated_data['service_type'],
            actual_weight=price['weights']['actual'],
            volumetric_weight=price['weights']['volumetric'],
            chargeable_weight=price['weights']['chargeable'],
            total_amount=price['total_price'],
            status=OrderStatus.PENDING,
        )
        db.session.add(order)
        db.session.flush()  # Get order ID for tracking

        db.session.add(OrderTracking(
            order_id=order.id,
            status=OrderStatus.PENDING.value,
            location=pickup_address.city,
            message='Order created and pending pickup',
        ))
        db.session.add(OrderLog(
            order_id=order.id,
            status=OrderStatus.PENDING.value,
            message=f'Order created with {courier_partner.name}',
            created_by=str(current_user_id),
        ))

        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to create order for user {current_user_id}: {e}")
        return jsonify({'error': 'Failed to create order'}), 500

    logger.info(f"Order {order.tracking_number} created for user {current_user_id}")
    return jsonify({
        'message': 'Order created successfully',
        'order': order.to_dict(include_details=True),
        'price_breakdown': price,
        'tracking_number': order.tracking_number
    }), 201


#  GET ALL ORDERS
@orders_bp.route('', methods=['GET'])
@jwt_required()
def get_orders():
    """
    Get orders for the current user
    GET /api/orders
    Query parameters:
    - status: filter by status
    - limit: number of orders per page
    - page: page number
    """
    current_user_id = int(get_jwt_identity())

    status_filter = request.args.get('status')
    limit = max(1, min(request.args.get('limit', 20, type=int), 100))
    page = max(1, request.args.get('page', 1, type=int))

    query = Order.query if is_admin() else Order.query.filter_by(user_id=current_user_id)

    if status_filter:
        try:
            query = query.filter_by(status=OrderStatus.parse(status_filter))
        except ValueError:
            return jsonify({'error': f'Unknown status: {status_filter}'}), 400

    total = query.count()
    orders = query.order_by(Order.created_at.desc(), Order.id.desc())\
                 .limit(limit)\
                 .offset((page - 1) * limit)\
                 .all()

    return jsonify({
        'orders': [order.to_dict() for order in orders],
        'pagination': {
            'total': total,
            'page': page,
            'limit': limit,
            'pages': (total + limit - 1) // limit
        }
    }), 200


#  GET SINGLE ORDER
@orders_bp.route('/<int:order_id>', methods=['GET'])
@jwt_required()
def get_order(order_id):
    order = _owned_order(order_id)
    if not order:
        return jsonify({'error': 'Order not found'}), 404

    order_data = order.to_dict(include_details=True)
    order_data['tracking_history'] = [track.to_dict() for track in order.tracking_updates]
    order_data['logs'] = [log.to_dict() for log in order.order_logs]
    order_data['payments'] = [payment.to_dict() for payment in order.payments]

    return jsonify({'order': order_data}), 200


#  UPDATE ORDER
@orders_bp.route('/<int:order_id>', methods=['PUT'])
@jwt_required()
def update_order(order_id):
    """
    Change status (allowed transitions only) and/or delivery instructions
    PUT /api/orders/:id
    """
    order = _owned_order(order_id)
    if not order:
        return jsonify({'error': 'Order not found'}), 404

    data = normalize_keys(request.get_json(silent=True) or {})
    is_valid, validated_data, errors = OrderValidator.validate_update_order(data)
    if not is_valid:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    previous_status = order.status
    new_status = validated_data.get('status')

    try:
        if 'delivery_instructions' in validated_data:
            order.delivery_instructions = validated_data['delivery_instructions']
            order.updated_at = datetime.utcnow()

        if new_status and new_status != previous_status:
            order.update_status(new_status)
            db.session.add(OrderTracking(
                order_id=order.id,
                status=new_status.value,
                message=f'Order status updated to {new_status.value}',
            ))
            db.session.add(OrderLog(
                order_id=order.id,
                status=new_status.value,
                message=f'Status changed from {previous_status.value} to {new_status.value}',
                created_by=str(get_jwt_identity()),
            ))

        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to update order {order_id}: {e}")
        return jsonify({'error': 'Failed to update order'}), 500

    if new_status and new_status != previous_status and order.customer:
        EmailService.notify_status_change(order.customer.email, order.tracking_number, new_status.value)

    return jsonify({
        'message': 'Order updated successfully',
        'order': order.to_dict(include_details=True)
    }), 200


#  CANCEL ORDER
@orders_bp.route('/<int:order_id>', methods=['DELETE'])
@jwt_required()
def cancel_order(order_id):
    """
    Cancel an order before pickup; the order row is kept
    DELETE /api/orders/:id
    """
    order = _owned_order(order_id)
    if not order:
        return jsonify({'error': 'Order not found'}), 404

    if not order.can_cancel():
        return jsonify({'error': 'Order cannot be cancelled in current status'}), 400

    courier_cancelled = None
    if order.is_booked:
        try:
            courier_cancelled = get_courier_manager().cancel_shipment(order.id)
        except CourierAPIError as e:
            courier_cancelled = False
            logger.error(f"Courier cancellation failed for order {order_id}: {e}")
        if not courier_cancelled:
            logger.warning(f"Courier did not confirm cancellation of order {order.tracking_number}")

    try:
        order.status = OrderStatus.CANCELLED
        order.updated_at = datetime.utcnow()
        db.session.add(OrderTracking(
            order_id=order.id,
            status=OrderStatus.CANCELLED.value,
            message='Order cancelled by user',
        ))
        db.session.add(OrderLog(
            order_id=order.id,
            status=OrderStatus.CANCELLED.value,
            message='Order cancelled by user',
            created_by=str(get_jwt_identity()),
        ))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to cancel order {order_id}: {e}")
        return jsonify({'error': 'Failed to cancel order'}), 500

    return jsonify({
        'message': 'Order cancelled successfully',
        'order': order.to_dict(),
        'courier_cancelled': courier_cancelled,
    }), 200


#  ORDER TRACKING
@orders_bp.route('/<int:order_id>/tracking', methods=['GET'])
@jwt_required()
def get_order_tracking(order_id):
    order = _owned_order(order_id)
    if not order:
        return jsonify({'error': 'Order not found'}), 404

    return jsonify({
        'order': {
            'id': order.id,
            'tracking_number': order.tracking_number,
            'status': order.status.value,
            'estimated_delivery': order.estimated_delivery.isoformat() if order.estimated_delivery else None,
            'actual_delivery': order.actual_delivery.isoformat() if order.actual_delivery else None,
        },
        'tracking_updates': [track.to_dict() for track in order.tracking_updates],
    }), 200


@orders_bp.route('/<int:order_id>/tracking', methods=['PUT'])
@jwt_required()
def add_order_tracking(order_id):
    """
    Append a tracking entry; a new status is mirrored onto the order
    PUT /api/orders/:id/tracking
    """
    order = _owned_order(order_id)
    if not order:
        return jsonify({'error': 'Order not found'}), 404

    data = normalize_keys(request.get_json(silent=True) or {})

    status = order.status
    if data.get('status'):
        try:
            status = OrderStatus.parse(data['status'])
        except ValueError:
            return jsonify({'error': f"Unknown status: {data['status']}"}), 400

    estimated_delivery = _parse_datetime(data.get('estimated_delivery'))
    actual_delivery = _parse_datetime(data.get('actual_delivery'))

    try:
        tracking = OrderTracking(
            order_id=order.id,
            status=status.value,
            message=data.get('message') or f'Order status: {status.value}',
            location=data.get('location') or '',
            expected_delivery=estimated_delivery,
        )
        db.session.add(tracking)

        if status != order.status:
            order.status = status
            order.updated_at = datetime.utcnow()
            if status == OrderStatus.DELIVERED:
                order.actual_delivery = actual_delivery or datetime.utcnow()
        if estimated_delivery:
            order.estimated_delivery = estimated_delivery

        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to update tracking for order {order_id}: {e}")
        return jsonify({'error': 'Failed to update tracking'}), 500

    return jsonify({
        'message': 'Tracking updated successfully',
        'tracking': tracking.to_dict(),
        'order': order.to_dict()
    }), 200
