"""
Dashboard Routes
Operator aggregates: shipment statistics, courier performance, alerts and recent shipments
"""
import logging
from datetime import datetime, timedelta

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required
from sqlalchemy import func

from extensions import db
from courierhub.models import CourierPartner, Order, OrderStatus
from courierhub.models.order import TERMINAL_STATUSES
from courierhub.services.pricing_service import PricingService
from courierhub.utils.role_guards import admin_required

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/api/dashboard')

TIME_RANGES = {
    '1d': 1,
    '7d': 7,
    '30d': 30,
    '90d': 90,
}

# Placeholder until customer feedback is collected
CUSTOMER_SATISFACTION = 4.2

SEVERITY_ORDER = {'high': 3, 'medium': 2, 'low': 1}


def _start_date(time_range):
    return datetime.utcnow() - timedelta(days=TIME_RANGES.get(time_range, 7))


def _hours_between(start, end):
    return (end - start).total_seconds() / 3600


def courier_rating(on_time_rate, average_delivery_hours):
    """Performance rating out of 5, never below 1"""
    rating = 5.0
    if on_time_rate < 80:
        rating -= 1.0
    if on_time_rate < 60:
        rating -= 1.0
    if average_delivery_hours > 72:
        rating -= 0.5
    if average_delivery_hours > 120:
        rating -= 0.5
    return max(1.0, rating)


# ============================================================================
# DASHBOARD STATISTICS
# ============================================================================
@dashboard_bp.route('/stats', methods=['GET'])
@jwt_required()
@admin_required
def get_dashboard_stats():
    """
    Shipment statistics for a time range

    GET /api/dashboard/stats
    Query Parameters:
    - timeRange: '1d', '7d', '30d', '90d' (default: '7d')
    """
    time_range = request.args.get('timeRange', '7d')

    try:
        start_date = _start_date(time_range)
        in_range = Order.query.filter(Order.created_at >= start_date)

        total_shipments = in_range.count()
        active_shipments = in_range.filter(Order.status.notin_(TERMINAL_STATUSES)).count()
        pending_pickups = in_range.filter(Order.status.in_([
            OrderStatus.PENDING, OrderStatus.CONFIRMED,
        ])).count()

        today_start = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        delivered_today = Order.query.filter(
            Order.status == OrderStatus.DELIVERED,
            Order.updated_at >= today_start,
        ).count()

        total_revenue = db.session.query(func.coalesce(func.sum(Order.total_amount), 0))\
            .filter(Order.created_at >= start_date)\
            .filter(Order.status != OrderStatus.CANCELLED)\
            .scalar()

        delivered_orders = in_range.filter(Order.status == OrderStatus.DELIVERED).all()
        average_delivery_time = 0
        on_time_delivery_rate = 0
        if delivered_orders:
            hours = [
                _hours_between(order.created_at, order.actual_delivery or order.updated_at)
                for order in delivered_orders
            ]
            average_delivery_time = round(sum(hours) / len(hours))

            on_time = [
                order for order in delivered_orders
                if order.estimated_delivery and order.actual_delivery
                and order.actual_delivery <= order.estimated_delivery
            ]
            on_time_delivery_rate = round(len(on_time) / len(delivered_orders) * 100)

        return jsonify({
            'time_range': time_range if time_range in TIME_RANGES else '7d',
            'total_shipments': total_shipments,
            'active_shipments': active_shipments,
            'delivered_today': delivered_today,
            'pending_pickups': pending_pickups,
            'total_revenue': round(float(total_revenue or 0), 2),
            'average_delivery_time': average_delivery_time,
            'on_time_delivery_rate': on_time_delivery_rate,
            'customer_satisfaction': CUSTOMER_SATISFACTION,
        }), 200

    except Exception as e:
        logger.error(f"Dashboard stats error: {e}")
        return jsonify({'error': 'Failed to fetch dashboard stats'}), 500


# ============================================================================
# COURIER PERFORMANCE
# ============================================================================
@dashboard_bp.route('/courier-performance', methods=['GET'])
@jwt_required()
@admin_required
def get_courier_performance():
    time_range = request.args.get('timeRange', '7d')

    try:
        start_date = _start_date(time_range)
        performance = []

        for courier in CourierPartner.query.order_by(CourierPartner.name).all():
            orders = Order.query.filter(
                Order.courier_partner_id == courier.id,
                Order.created_at >= start_date,
            ).all()
            if not orders:
                continue

            delivered = [order for order in orders if order.status == OrderStatus.DELIVERED]
            on_time = [
                order for order in delivered
                if order.estimated_delivery and order.actual_delivery
                and order.actual_delivery <= order.estimated_delivery
            ]
            on_time_rate = round(len(on_time) / len(delivered) * 100) if delivered else 0

            average_delivery_time = 0
            if delivered:
                hours = [
                    _hours_between(order.created_at, order.actual_delivery)
                    for order in delivered if order.actual_delivery
                ]
                average_delivery_time = round(sum(hours) / len(delivered))

            performance.append({
                'courier_name': courier.name,
                'courier_code': courier.code,
                'total_shipments': len(orders),
                'on_time_rate': on_time_rate,
                'average_delivery_time': average_delivery_time,
                'rating': courier_rating(on_time_rate, average_delivery_time),
                'cost': round(sum(order.total_amount or 0 for order in orders), 2),
            })

        performance.sort(key=lambda item: item['total_shipments'], reverse=True)
        return jsonify(performance), 200

    except Exception as e:
        logger.error(f"Courier performance error: {e}")
        return jsonify({'error': 'Failed to fetch courier performance data'}), 500


# ============================================================================
# ALERTS
# ============================================================================
def _alert(alert_id, alert_type, message, order, timestamp, severity):
    return {
        'id': alert_id,
        'type': alert_type,
        'message': message,
        'shipment_id': order.tracking_number or str(order.id),
        'timestamp': timestamp,
        'severity': severity,
    }


def collect_alerts(now=None):
    """Delayed, stuck and high-value shipments, most severe and newest first"""
    now = now or datetime.utcnow()
    alerts = []

    delayed = Order.query.filter(
        Order.status.in_([OrderStatus.IN_TRANSIT, OrderStatus.OUT_FOR_DELIVERY]),
        Order.estimated_delivery < now,
    ).limit(10).all()
    for order in delayed:
        days_past_due = (now - order.estimated_delivery).days
        alerts.append(_alert(
            f'delay-{order.id}', 'delay',
            f'Shipment is {days_past_due} day(s) past estimated delivery',
            order, now, 'high' if days_past_due > 3 else 'medium',
        ))

    stuck = Order.query.filter(
        Order.status == OrderStatus.IN_TRANSIT,
        Order.created_at < now - timedelta(days=7),
    ).limit(5).all()
    for order in stuck:
        alerts.append(_alert(
            f'stuck-{order.id}', 'exception',
            'Shipment stuck in transit for more than 7 days',
            order, now, 'high',
        ))

    urgent = Order.query.filter(
        Order.status.in_([OrderStatus.PENDING, OrderStatus.CONFIRMED]),
        Order.declared_value > 100000,
        Order.created_at > now - timedelta(hours=24),
    ).limit(3).all()
    for order in urgent:
        alerts.append(_alert(
            f'urgent-{order.id}', 'urgent',
            'High-value shipment requires immediate attention',
            order, order.created_at, 'high',
        ))

    alerts.sort(key=lambda a: (SEVERITY_ORDER[a['severity']], a['timestamp']), reverse=True)
    return alerts


@dashboard_bp.route('/alerts', methods=['GET'])
@jwt_required()
@admin_required
def get_alerts():
    limit = max(1, request.args.get('limit', 5, type=int))

    try:
        alerts = collect_alerts()[:limit]
    except Exception as e:
        logger.error(f"Alerts error: {e}")
        return jsonify({'error': 'Failed to fetch alerts'}), 500

    for alert in alerts:
        alert['timestamp'] = alert['timestamp'].isoformat()
    return jsonify(alerts), 200


# ============================================================================
# RECENT SHIPMENTS
# ============================================================================
@dashboard_bp.route('/recent-shipments', methods=['GET'])
@jwt_required()
@admin_required
def get_recent_shipments():
    limit = max(1, min(request.args.get('limit', 10, type=int), 100))

    try:
        orders = Order.query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()

        shipments = []
        for order in orders:
            customer = order.customer
            destination = order.delivery_address
            shipments.append({
                'id': order.id,
                'tracking_number': order.tracking_number,
                'customer_name': (customer.full_name or customer.email) if customer else None,
                'destination': f'{destination.city}, {destination.state}' if destination else None,
                'status': order.status.value,
                'courier_name': order.courier_partner.name if order.courier_partner else None,
                'estimated_delivery': order.estimated_delivery.isoformat() if order.estimated_delivery else None,
                'value': order.total_amount,
                'priority': PricingService.determine_priority(order.package_type, order.declared_value),
            })
    except Exception as e:
        logger.error(f"Recent shipments error: {e}")
        return jsonify({'error': 'Failed to fetch recent shipments'}), 500

    return jsonify(shipments), 200
