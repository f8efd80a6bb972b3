"""
Payment Routes for CourierHub
Handles Razorpay order creation, checkout verification and webhooks
"""
import logging
import math

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from extensions import db
from courierhub.models import Order, OrderLog, OrderStatus, Payment, PaymentStatus
from courierhub.services.payment_service import PaymentGatewayError, get_razorpay_service
from courierhub.utils.role_guards import is_admin
from courierhub.validators.payload import normalize_keys

logger = logging.getLogger(__name__)

payments_bp = Blueprint('payments', __name__, url_prefix='/api/payments')


def _confirm_order(order, created_by='system'):
    """Move a pending order to confirmed once it has been paid"""
    if order and order.status == OrderStatus.PENDING:
        order.status = OrderStatus.CONFIRMED
        db.session.add(OrderLog(
            order_id=order.id,
            status=OrderStatus.CONFIRMED.value,
            message='Payment received',
            created_by=created_by,
        ))


@payments_bp.route('/create', methods=['POST'])
@jwt_required()
def create_payment():
    """
    Create a Razorpay order for an order's total

    Expected JSON:
    {
        "order_id": 123,
        "amount": 150.0        (optional, rupees; defaults to the order total)
    }
    """
    data = normalize_keys(request.get_json(silent=True) or {})
    order_id = data.get('order_id')

    if not order_id:
        return jsonify({'error': 'Order ID is required'}), 400

    amount = data.get('amount')
    if amount is not None:
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            return jsonify({'error': 'Amount must be a number'}), 400
        if not math.isfinite(amount) or amount <= 0:
            return jsonify({'error': 'Amount must be greater than zero'}), 400

    query = Order.query.filter_by(id=order_id)
    if not is_admin():
        query = query.filter_by(user_id=int(get_jwt_identity()))
    order = query.first()
    if not order:
        return jsonify({'error': 'Order not found'}), 404

    if any(payment.is_paid() for payment in order.payments):
        return jsonify({'error': 'Order already paid'}), 400

    amount_paise = Payment.to_paise(amount if amount is not None else order.total_amount)
    currency = data.get('currency') or 'INR'

    try:
        gateway_order = get_razorpay_service().create_order(
            amount_paise=amount_paise,
            currency=currency,
            receipt=order.tracking_number,
            notes={'order_id': str(order.id)},
        )
    except PaymentGatewayError as e:
        logger.error(f"Payment gateway error for order {order.id}: {e}")
        return jsonify({'error': 'Payment gateway error', 'message': e.message}), 502

    try:
        payment = Payment(
            order_id=order.id,
            amount=amount_paise,
            currency=currency,
            status=PaymentStatus.PENDING,
            gateway_ref=gateway_order.get('id'),
            notes=gateway_order.get('notes'),
        )
        db.session.add(payment)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to store payment for order {order.id}: {e}")
        return jsonify({'error': 'Failed to create payment'}), 500

    return jsonify({
        'success': True,
        'payment': payment.to_dict(),
        'razorpay_order': {
            'id': gateway_order.get('id'),
            'amount': gateway_order.get('amount', amount_paise),
            'currency': gateway_order.get('currency', currency),
            'status': gateway_order.get('status'),
        },
        'key_id': get_razorpay_service().key_id,
    }), 201


@payments_bp.route('/verify', methods=['POST'])
@jwt_required()
def verify_payment():
    """
    Verify the checkout signature returned to the client

    Expected JSON:
    {
        "razorpay_order_id": "order_...",
        "razorpay_payment_id": "pay_...",
        "razorpay_signature": "..."
    }
    """
    data = normalize_keys(request.get_json(silent=True) or {})
    gateway_order_id = data.get('razorpay_order_id')
    gateway_payment_id = data.get('razorpay_payment_id')
    signature = data.get('razorpay_signature')

    if not (gateway_order_id and gateway_payment_id and signature):
        return jsonify({'error': 'razorpay_order_id, razorpay_payment_id and razorpay_signature are required'}), 400

    payment = Payment.query.filter_by(gateway_ref=gateway_order_id).first()
    if not payment:
        return jsonify({'error': 'Payment not found'}), 404

    service = get_razorpay_service()
    if not service.verify_payment_signature(gateway_order_id, gateway_payment_id, signature):
        payment.mark_as_failed(reason='Invalid payment signature')
        db.session.commit()
        logger.warning(f"Invalid signature for payment {payment.id}")
        return jsonify({'error': 'Invalid payment signature'}), 400

    try:
        payment.mark_as_completed(gateway_payment_id)
        _confirm_order(payment.order, created_by=str(get_jwt_identity()))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to record payment {payment.id}: {e}")
        return jsonify({'error': 'Failed to verify payment'}), 500

    logger.info(f"Payment {payment.id} completed for order {payment.order_id}")
    return jsonify({
        'success': True,
        'message': 'Payment verified successfully',
        'payment': payment.to_dict(),
    }), 200


def _payment_entity(payload):
    return ((payload.get('payment') or {}).get('entity')) or {}


def _handle_payment_captured(payload):
    entity = _payment_entity(payload)
    payments = Payment.query.filter_by(gateway_ref=entity.get('order_id')).all()
    for payment in payments:
        payment.mark_as_completed(entity.get('id'))
        _confirm_order(payment.order)
    return len(payments)


def _handle_payment_failed(payload):
    entity = _payment_entity(payload)
    reason = entity.get('error_description') or 'Payment failed'
    payments = Payment.query.filter_by(gateway_ref=entity.get('order_id')).all()
    for payment in payments:
        if not payment.is_paid():
            payment.mark_as_failed(reason=reason)
    return len(payments)


def _handle_order_paid(payload):
    order_entity = ((payload.get('order') or {}).get('entity')) or {}
    payment_entity = _payment_entity(payload)
    payments = Payment.query.filter_by(gateway_ref=order_entity.get('id')).all()
    for payment in payments:
        payment.mark_as_completed(payment_entity.get('id'))
        _confirm_order(payment.order)
    return len(payments)


WEBHOOK_HANDLERS = {
    'payment.captured': _handle_payment_captured,
    'payment.failed': _handle_payment_failed,
    'order.paid': _handle_order_paid,
}


@payments_bp.route('/webhook', methods=['POST'])
def razorpay_webhook():
    """
    Razorpay webhook endpoint

    The signature is an HMAC-SHA256 of the raw body, sent in X-Razorpay-Signature.
    Must be publicly accessible.
    """
    raw_body = request.get_data()
    signature = request.headers.get('X-Razorpay-Signature')

    if not signature:
        return jsonify({'error': 'Missing signature'}), 400

    if not get_razorpay_service().verify_webhook_signature(raw_body, signature):
        logger.warning("Rejected Razorpay webhook with invalid signature")
        return jsonify({'error': 'Invalid signature'}), 400

    event = request.get_json(silent=True) or {}
    event_name = event.get('event')
    handler = WEBHOOK_HANDLERS.get(event_name)

    if handler is None:
        logger.info(f"Ignoring Razorpay webhook event {event_name}")
        return jsonify({'status': 'ok'}), 200

    try:
        updated = handler(event.get('payload') or {})
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Failed to process Razorpay webhook {event_name}: {e}")
        return jsonify({'error': 'Failed to process webhook'}), 500

    logger.info(f"Razorpay webhook {event_name} updated {updated} payment(s)")
    return jsonify({'status': 'ok', 'updated': updated}), 200


@payments_bp.route('/<int:payment_id>', methods=['GET'])
@jwt_required()
def get_payment(payment_id):
    """
    Get a payment (amount in rupees)

    GET /api/payments/<payment_id>
    """
    payment = db.session.get(Payment, payment_id)
    if not payment or (not is_admin() and payment.order.user_id != int(get_jwt_identity())):
        return jsonify({'error': 'Payment not found'}), 404

    return jsonify({
        'success': True,
        'payment': payment.to_dict()
    }), 200
