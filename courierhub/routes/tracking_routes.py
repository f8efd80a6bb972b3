import logging
from datetime import datetime

from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity, verify_jwt_in_request
from sqlalchemy import or_

from extensions import db
from courierhub.models import CourierPartner, Order, OrderLog, OrderStatus, OrderTracking
from courierhub.services.courier.manager import get_courier_manager
from courierhub.services.courier.types import CourierAPIError
from courierhub.services.email_service import EmailService
from courierhub.services.tracking_service import TrackingService
from courierhub.utils.role_guards import admin_required, is_admin
from courierhub.validators.payload import normalize_keys

logger = logging.getLogger(__name__)

tracking_bp = Blueprint('tracking', __name__, url_prefix='/api/tracking')


def _iso(value):
    return value.isoformat() if value else None


def _find_order(tracking_number=None, order_id=None):
    """Public lookup by tracking number or AWB; order ids only resolve for the owner or an admin"""
    if not tracking_number:
        order = db.session.get(Order, order_id)
        if order and (is_admin() or str(order.user_id) == get_jwt_identity()):
            return order
        return None
    return Order.query.filter(or_(
        Order.tracking_number == tracking_number,
        Order.courier_tracking_id == tracking_number,
    )).first()


def _live_updates(order):
    """Fetch live courier tracking, refreshing stored data when the courier has newer events"""
    manager = get_courier_manager()
    code = order.courier_partner.code

    if not manager.is_service_available(code):
        return None, None

    updates = manager.track_shipment(order.courier_tracking_id, code)
    if not updates:
        return [], None

    latest_live = updates[0]
    latest_stored = order.tracking_updates[0] if order.tracking_updates else None
    if latest_stored is None or latest_live.timestamp > latest_stored.timestamp:
        manager.update_tracking_info(order.id)
        db.session.expire(order)

    return [update.to_dict() for update in updates], latest_live


@tracking_bp.route('/enhanced', methods=['GET'])
def track_shipment():
    """
    Timeline, live courier updates and delivery progress for a shipment
    GET /api/tracking/enhanced?trackingNumber=SS123&includeRealTime=true
    """
    tracking_number = request.args.get('trackingNumber')
    order_id = request.args.get('orderId', type=int)
    include_real_time = request.args.get('includeRealTime', 'false').lower() == 'true'

    if not tracking_number and not order_id:
        return jsonify({'error': 'Tracking number or order ID is required'}), 400

    if not tracking_number:
        verify_jwt_in_request(optional=True)
        if get_jwt_identity() is None:
            return jsonify({'error': 'Authentication required to track by order ID'}), 401

    try:
        order = _find_order(tracking_number, order_id)
        if not order:
            return jsonify({'error': 'Shipment not found'}), 404

        live_updates = None
        latest_live = None
        if include_real_time and order.courier_tracking_id and order.courier_partner:
            try:
                live_updates, latest_live = _live_updates(order)
            except CourierAPIError as e:
                logger.error(f"Error fetching real-time tracking for order {order.id}: {e}")
                live_updates = []

        current_status = order.status.value
        estimated_delivery = order.estimated_delivery
        if latest_live is not None:
            current_status = latest_live.status
            estimated_delivery = latest_live.expected_delivery or estimated_delivery

        can_cancel = TrackingService.can_cancel(current_status)
        timeline = [
            {
                'status': update.status,
                'timestamp': _iso(update.timestamp),
                'location': update.location or None,
                'description': update.message or update.status,
                'is_current_status': index == 0,
            }
            for index, update in enumerate(order.tracking_updates)
        ]

        response = {
            'success': True,
            'shipment': {
                'id': order.id,
                'tracking_number': order.courier_tracking_id or order.tracking_number,
                'current_status': current_status,
                'courier_name': order.courier_partner.name if order.courier_partner else None,
                'estimated_delivery': _iso(estimated_delivery),
                'actual_delivery': _iso(order.actual_delivery),
                'origin': order.pickup_address.short_label if order.pickup_address else None,
                'destination': order.delivery_address.short_label if order.delivery_address else None,
            },
            'timeline': timeline,
            'metadata': {
                'last_updated': _iso(order.updated_at),
                'total_stops': len(timeline),
                'is_delivered': current_status == OrderStatus.DELIVERED.value,
                'can_cancel': can_cancel,
                'label_url': order.label_url,
            },
            'delivery_progress': TrackingService.delivery_progress(current_status),
            'status_description': TrackingService.status_description(current_status),
            'next_steps': TrackingService.next_steps(current_status, can_cancel),
        }
        if live_updates is not None:
            response['live_updates'] = live_updates

        return jsonify(response), 200

    except Exception as e:
        logger.error(f"Error tracking shipment: {e}")
        message = str(e) if current_app.config.get('EXPOSE_ERROR_DETAILS') else 'Internal server error'
        return jsonify({'error': 'Failed to track shipment', 'message': message}), 500


@tracking_bp.route('/enhanced', methods=['POST'])
@jwt_required()
@admin_required
def add_tracking_update():
    """
    Manual tracking update (operations use)
    POST /api/tracking/enhanced
    """
    data = normalize_keys(request.get_json(silent=True) or {})
    order_id = data.get('order_id')
    status = (data.get('status') or '').strip().lower()

    if not order_id or not status:
        return jsonify({'error': 'Order ID and status are required'}), 400

    order = db.session.get(Order, order_id)
    if not order:
        return jsonify({'error': 'Order not found'}), 404

    description = data.get('description')
    status_changed = False

    try:
        tracking = OrderTracking(
            order_id=order.id,
            status=status,
            location=data.get('location'),
            message=description or status,
            description=description,
            courier_data=data.get('courier_data') or {},
        )
        db.session.add(tracking)

        if TrackingService.is_significant(status):
            new_status = OrderStatus.parse(status)
            status_changed = new_status != order.status
            order.status = new_status
            order.updated_at = datetime.utcnow()
            if new_status == OrderStatus.DELIVERED:
                order.actual_delivery = datetime.utcnow()

        db.session.add(OrderLog(
            order_id=order.id,
            status=status,
            message=description or f'Status updated to {status}',
            created_by=str(get_jwt_identity()),
        ))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error adding tracking update for order {order_id}: {e}")
        return jsonify({'error': 'Failed to add tracking update'}), 500

    if status_changed and order.customer:
        EmailService.notify_status_change(order.customer.email, order.tracking_number, status)

    return jsonify({
        'success': True,
        'update': {
            'id': tracking.id,
            'status': tracking.status,
            'timestamp': _iso(tracking.timestamp),
            'description': tracking.message,
        },
    }), 200


def refresh_courier_orders(manager, courier_code):
    """Refresh live tracking for every undelivered booked order of a courier.

    Returns the number of orders refreshed.
    """
    orders = Order.query.join(CourierPartner, Order.courier_partner_id == CourierPartner.id)\
        .filter(CourierPartner.code == courier_code)\
        .filter(Order.status != OrderStatus.DELIVERED)\
        .filter(Order.courier_tracking_id.isnot(None))\
        .with_entities(Order.id)\
        .all()

    updated = 0
    for (order_id,) in orders:
        manager.update_tracking_info(order_id)
        updated += 1
    return updated


@tracking_bp.route('/enhanced', methods=['PUT'])
@jwt_required()
@admin_required
def bulk_refresh_tracking():
    """
    Refresh stored tracking from the courier APIs
    PUT /api/tracking/enhanced?orderId=1 or ?courierCode=delhivery
    """
    order_id = request.args.get('orderId', type=int)
    courier_code = request.args.get('courierCode')

    if not order_id and not courier_code:
        return jsonify({'error': 'Order ID or courier code is required'}), 400

    try:
        manager = get_courier_manager()

        if order_id:
            manager.update_tracking_info(order_id)
            updated_orders = 1
        else:
            updated_orders = refresh_courier_orders(manager, courier_code)
    except Exception as e:
        logger.error(f"Error bulk updating tracking: {e}")
        return jsonify({'error': 'Failed to update tracking'}), 500

    return jsonify({
        'success': True,
        'message': f'Updated tracking for {updated_orders} order(s)',
        'updated_orders': updated_orders,
    }), 200
