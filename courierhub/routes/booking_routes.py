import logging

from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from extensions import db
from courierhub.models import Address, CourierPartner, Order, OrderLog, OrderStatus, OrderTracking
from courierhub.services.courier.manager import get_courier_manager
from courierhub.services.courier.types import (
    CourierAPIError, CourierAuthenticationError, CourierRateLimitError,
)
from courierhub.services.email_service import EmailService
from courierhub.services.pricing_service import PricingService
from courierhub.services.tracking_service import TrackingService
from courierhub.utils.role_guards import get_current_user, is_admin
from courierhub.validators.payload import normalize_keys
from courierhub.validators.shipment_validators import ShipmentValidator

logger = logging.getLogger(__name__)

bookings_bp = Blueprint('bookings', __name__, url_prefix='/api/bookings')


def _resolve_address(entry, user, address_type):
    """Saved address for an address_id, otherwise a new snapshot row"""
    if 'address_id' in entry:
        address = Address.query.filter_by(id=entry['address_id'], user_id=user.id).first()
        if address is None:
            return None, None
        return address, address.to_shipment_address(user.full_name, user.phone)

    address = Address.from_shipment_address(user.id, entry['address'], address_type)
    db.session.add(address)
    return address, entry['address']


@bookings_bp.route('/enhanced', methods=['POST'])
@jwt_required()
def create_booking():
    """
    Price with the courier's live quote, create the order and book it
    POST /api/bookings/enhanced
    """
    user = get_current_user()
    if not user:
        return jsonify({'error': 'Authentication required'}), 401

    data = normalize_keys(request.get_json(silent=True) or {}, ShipmentValidator.REQUEST_OBJECTS)
    is_valid, validated, errors = ShipmentValidator.validate_booking_request(data)
    if not is_valid:
        return jsonify({'error': next(iter(errors.values())), 'errors': errors}), 400

    courier_code = validated['courier_code']
    service_type = validated['service_type']
    shipment = validated['shipment']
    order = None

    try:
        manager = get_courier_manager()

        if not manager.is_service_available(courier_code):
            return jsonify({'error': f'Courier service {courier_code} is not available'}), 400
        service = manager.get_service(courier_code)

        pickup_row, pickup = _resolve_address(validated['pickup'], user, 'pickup')
        delivery_row, delivery = _resolve_address(validated['delivery'], user, 'delivery')
        if pickup is None or delivery is None:
            db.session.rollback()
            return jsonify({'error': 'Invalid address selection'}), 400

        if not service.can_deliver(delivery.pincode):
            db.session.rollback()
            return jsonify({'error': 'Delivery not available to this pincode'}), 400

        courier_partner = CourierPartner.query.filter_by(code=courier_code).first()
        if not courier_partner:
            db.session.rollback()
            return jsonify({'error': 'Courier partner not found in database'}), 404

        quotes = service.calculate_rate(pickup, delivery, shipment, service_type)
        if not quotes:
            db.session.rollback()
            return jsonify({'error': 'Unable to calculate shipping cost for this booking'}), 400
        quote = quotes[0]

        weights = PricingService.calculate_weights(
            shipment.weight, shipment.dimensions.to_dict() if shipment.dimensions else None)

        new_order = Order(
            user_id=user.id,
            courier_partner_id=courier_partner.id,
            pickup_address=pickup_row,
            delivery_address=delivery_row,
            total_amount=quote.total_amount,
            weight=shipment.weight,
            package_type=shipment.package_type,
            declared_value=shipment.declared_value,
            cod_amount=shipment.cod_amount,
            parcel_contents=shipment.contents,
            dimensions=shipment.dimensions.to_dict() if shipment.dimensions else None,
            delivery_instructions=validated['delivery_instructions'],
            estimated_delivery=quote.estimated_delivery,
            actual_weight=weights['actual'],
            volumetric_weight=weights['volumetric'],
            chargeable_weight=weights['chargeable'],
            service_type=service_type,
            status=OrderStatus.PENDING,
        )
        db.session.add(new_order)
        db.session.commit()
        order = new_order

        booking = manager.book_shipment(courier_code, pickup, delivery, shipment, service_type, order.id)

        schedule = validated['schedule_pickup']
        pickup_scheduled = False
        if schedule and booking.courier_order_id:
            pickup_scheduled = manager.schedule_pickup(order.id, schedule['pickup_at'])

        db.session.add(OrderLog(
            order_id=order.id,
            status='booked',
            message=f'Order booked with {courier_code}',
            created_by=str(user.id),
        ))
        db.session.add(OrderTracking(
            order_id=order.id,
            status='booked',
            message='Order successfully booked with courier',
            courier_status='BOOKED',
            description=f'Shipment booked with {quote.courier_name}',
        ))
        db.session.commit()

    except CourierAPIError as e:
        _mark_failed(order, e)
        if isinstance(e, CourierAuthenticationError):
            return jsonify({'error': 'Courier authentication failed'}), 502
        if isinstance(e, CourierRateLimitError):
            return jsonify({'error': 'Service temporarily unavailable. Please try again later.'}), 429
        return jsonify({'error': 'Failed to create booking', 'message': _error_details(e)}), 500
    except Exception as e:
        _mark_failed(order, e)
        return jsonify({'error': 'Failed to create booking', 'message': _error_details(e)}), 500

    EmailService.send_booking_confirmation(
        user.email, order.tracking_number, quote.courier_name, booking.estimated_delivery)

    return jsonify({
        'success': True,
        'order': {
            'id': order.id,
            'tracking_number': order.tracking_number,
            'courier_tracking_id': booking.courier_tracking_id,
            'courier_order_id': booking.courier_order_id,
            'status': order.status.value,
            'estimated_delivery': booking.estimated_delivery.isoformat(),
            'total_amount': quote.total_amount,
            'courier_name': quote.courier_name,
            'service_type': quote.service_type.name,
            'label_url': booking.label_url,
            'manifest_url': booking.manifest_url,
        },
        'booking': {
            'courier_code': courier_code,
            'courier_name': quote.courier_name,
            'service_type': quote.service_type.to_dict(),
            'tracking_id': booking.courier_tracking_id,
            'estimated_delivery': booking.estimated_delivery.isoformat(),
            'transit_time': quote.transit_time,
            'features': quote.features,
            'pickup_scheduled': pickup_scheduled,
        },
        'next_steps': TrackingService.booking_next_steps(
            bool(booking.label_url), schedule['date'] if schedule else None),
    }), 201


def _error_details(e):
    if current_app.config.get('EXPOSE_ERROR_DETAILS'):
        return str(e)
    return 'Internal server error'


def _mark_failed(order, error):
    """Record a failed booking on an order that was already created"""
    db.session.rollback()
    logger.error(f"Courier booking failed: {error}")
    if order is None:
        return
    order.status = OrderStatus.FAILED
    db.session.add(OrderLog(
        order_id=order.id,
        status=OrderStatus.FAILED.value,
        message=f'Courier booking failed: {error}',
    ))
    db.session.commit()


@bookings_bp.route('/enhanced', methods=['GET'])
@jwt_required()
def get_booking():
    """
    Booking details with stored and live tracking
    GET /api/bookings/enhanced?orderId=1 or ?trackingId=AWB123
    """
    order_id = request.args.get('orderId', type=int)
    tracking_id = request.args.get('trackingId')

    if not order_id and not tracking_id:
        return jsonify({'error': 'Order ID or tracking ID is required'}), 400

    query = Order.query
    if order_id:
        query = query.filter_by(id=order_id)
    else:
        query = query.filter_by(courier_tracking_id=tracking_id)
    if not is_admin():
        query = query.filter_by(user_id=int(get_jwt_identity()))

    order = query.first()
    if not order:
        return jsonify({'error': 'Order not found'}), 404

    live_tracking = None
    if order.courier_tracking_id and order.courier_partner:
        try:
            updates = get_courier_manager().track_shipment(
                order.courier_tracking_id, order.courier_partner.code)
            live_tracking = [update.to_dict() for update in updates]
        except CourierAPIError as e:
            logger.error(f"Error fetching live tracking for order {order.id}: {e}")

    order_data = order.to_dict(include_details=True)
    order_data['courier'] = {
        **order_data['courier'],
        'name': order.courier_partner.name if order.courier_partner else None,
        'code': order.courier_partner.code if order.courier_partner else None,
    }

    return jsonify({
        'success': True,
        'order': order_data,
        'tracking': {
            'stored': [track.to_dict() for track in order.tracking_updates[:10]],
            'live': live_tracking,
        },
        'logs': [log.to_dict() for log in order.order_logs[:5]],
    }), 200
