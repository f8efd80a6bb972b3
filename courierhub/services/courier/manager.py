"""
Courier manager: builds courier adapters from the active API configurations
and fans rate and tracking requests out to all of them.
"""
import base64
import binascii
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from flask import current_app

from extensions import db
from courierhub.models import CourierAPIConfig, Order, OrderStatus, OrderTracking
from .delhivery import DelhiveryService
from .shadowfax import ShadowfaxService
from .types import CourierAPIError, CourierCredentials, CourierRateLimitError, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

SERVICE_REGISTRY = {
    'delhivery': DelhiveryService,
    'shadowfax': ShadowfaxService,
}

DEFAULT_COURIER_RATING = 4.2


def decrypt_value(value):
    """Decode a base64-encoded credential; values that are not base64 are returned as-is"""
    if not value:
        return None
    try:
        return base64.b64decode(value, validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return value


def encrypt_value(value):
    if not value:
        return None
    return base64.b64encode(value.encode('utf-8')).decode('ascii')


class CourierManager:
    def __init__(self, timeout=None):
        self.timeout = timeout or DEFAULT_TIMEOUT
        self.services = {}

    def initialize(self):
        """Build adapters for every active courier API configuration"""
        try:
            configs = CourierAPIConfig.query.filter_by(is_active=True).all()
        except Exception as e:
            logger.error(f"Error initializing courier services: {e}")
            raise

        for config in configs:
            self._initialize_courier_service(config)

        logger.info(f"Initialized {len(self.services)} courier services")

    def _initialize_courier_service(self, config):
        service_class = SERVICE_REGISTRY.get(config.courier_code)
        if service_class is None:
            logger.warning(f"Unknown courier service: {config.courier_code}")
            return

        try:
            credentials = CourierCredentials(
                api_key=decrypt_value(config.api_key),
                api_secret=decrypt_value(config.api_secret),
                auth_token=decrypt_value(config.auth_token),
                client_id=config.client_id,
                client_secret=decrypt_value(config.client_secret),
                base_url=config.api_url,
            )
            service = service_class(
                credentials,
                is_production=config.environment == 'production',
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error(f"Error initializing {config.courier_code} service: {e}")
            return

        self.register(service)
        logger.info(f"Initialized {config.courier_name} service")

    def register(self, service):
        self.services[service.courier_code] = service

    def get_service(self, courier_code):
        return self.services.get(courier_code)

    def is_service_available(self, courier_code):
        return courier_code in self.services

    def get_available_services(self):
        return list(self.services.keys())

    def _require_service(self, courier_code):
        service = self.services.get(courier_code)
        if service is None:
            raise CourierAPIError(f"Courier service {courier_code} not available", courier_code)
        return service

    def _rates_from(self, courier_code, service, pickup, delivery, shipment):
        """Returns (quotes, rate_limit_error) for one courier"""
        try:
            if not service.can_deliver(delivery.pincode):
                return [], None
            return service.calculate_rate(pickup, delivery, shipment), None
        except CourierRateLimitError as e:
            logger.warning(f"Rate limited by {courier_code}: {e}")
            return [], e
        except Exception as e:
            logger.error(f"Error getting rates from {courier_code}: {e}")
            return [], None

    def get_all_rates(self, pickup, delivery, shipment):
        """Collect quotes from every courier that serves the delivery pincode, cheapest first"""
        if not self.services:
            return []

        with ThreadPoolExecutor(max_workers=len(self.services)) as executor:
            futures = [
                executor.submit(self._rates_from, code, service, pickup, delivery, shipment)
                for code, service in self.services.items()
            ]
            results = [future.result() for future in futures]

        quotes = [quote for rates, _ in results for quote in rates]
        rate_limited = [error for _, error in results if error is not None]
        if not quotes and rate_limited:
            raise rate_limited[0]
        return sorted(quotes, key=lambda q: q.total_amount)

    def book_shipment(self, courier_code, pickup, delivery, shipment, service_type, order_id):
        service = self._require_service(courier_code)

        try:
            order = db.session.get(Order, order_id)
            booking = service.book_shipment(pickup, delivery, shipment, service_type,
                                            order.tracking_number if order else str(order_id))
        except Exception as e:
            logger.error(f"Error booking shipment with {courier_code}: {e}")
            raise

        if order is not None:
            order.courier_order_id = booking.courier_order_id
            order.courier_tracking_id = booking.courier_tracking_id
            order.courier_status = 'booked'
            order.courier_response = booking.raw_response
            order.booked_at = datetime.utcnow()
            order.estimated_delivery = booking.estimated_delivery
            order.label_url = booking.label_url
            order.manifest_url = booking.manifest_url
            order.status = OrderStatus.CONFIRMED
            db.session.commit()

        return booking

    def track_shipment(self, tracking_id, courier_code=None):
        if courier_code:
            return self._require_service(courier_code).track_shipment(tracking_id)

        for code, service in self.services.items():
            try:
                updates = service.track_shipment(tracking_id)
            except Exception as e:
                logger.error(f"Error tracking {tracking_id} with {code}: {e}")
                continue
            if updates:
                return updates

        return []

    def update_tracking_info(self, order_id):
        """Mirror live courier tracking for an order into the database.

        Returns the number of tracking updates applied.
        """
        try:
            order = db.session.get(Order, order_id)
            if order is None or not order.courier_tracking_id:
                return 0

            courier_code = order.courier_partner.code if order.courier_partner else None
            updates = self.track_shipment(order.courier_tracking_id, courier_code)
            if not updates:
                return 0

            order.apply_courier_update(updates[0])
            for update in updates:
                OrderTracking.upsert_from_update(order.id, update)

            db.session.commit()
            return len(updates)
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error updating tracking info for order {order_id}: {e}")
            return 0

    def _booked_order_service(self, order_id):
        order = db.session.get(Order, order_id)
        if order is None or not order.courier_order_id:
            return order, None
        code = order.courier_partner.code if order.courier_partner else None
        return order, self.services.get(code)

    def cancel_shipment(self, order_id):
        try:
            order, service = self._booked_order_service(order_id)
            if service is None:
                return False

            cancelled = service.cancel_shipment(order.courier_order_id)
            if cancelled:
                order.status = OrderStatus.CANCELLED
                order.courier_status = 'cancelled'
                db.session.commit()
            return cancelled
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error cancelling shipment for order {order_id}: {e}")
            return False

    def generate_label(self, order_id):
        order = db.session.get(Order, order_id)
        if order is None or not order.courier_order_id:
            raise ValueError('Order not found or not booked with courier')

        code = order.courier_partner.code if order.courier_partner else None
        service = self.services.get(code)
        if service is None:
            raise CourierAPIError(f"Courier service not available: {code}", code)

        try:
            return service.generate_label(order.courier_order_id)
        except CourierAPIError as e:
            logger.error(f"Error generating label for order {order_id}: {e}")
            raise

    def schedule_pickup(self, order_id, pickup_date):
        try:
            order, service = self._booked_order_service(order_id)
            if service is None:
                return False

            scheduled = service.schedule_pickup(order.courier_order_id, pickup_date)
            if scheduled:
                order.status = OrderStatus.PICKUP_SCHEDULED
                order.dispatched_at = pickup_date
                db.session.commit()
            return scheduled
        except Exception as e:
            db.session.rollback()
            logger.error(f"Error scheduling pickup for order {order_id}: {e}")
            return False


def enhance_quotes(quotes, courier_ratings=None):
    """Decorate sorted quotes with recommendation and comparison fields"""
    if not quotes:
        return []

    courier_ratings = courier_ratings or {}
    totals = [q.total_amount for q in quotes]
    cheapest, highest = min(totals), max(totals)

    enhanced = []
    for quote in quotes:
        data = quote.to_dict()
        features = quote.service_type.features or []
        data.update({
            'delivery_date': quote.estimated_delivery.date().isoformat(),
            'is_recommended': quote.total_amount == cheapest,
            'savings_from_highest': round(highest - quote.total_amount, 2),
            'courier_rating': courier_ratings.get(quote.courier_code) or DEFAULT_COURIER_RATING,
            'tracking_available': True,
            'insurance_included': 'Insurance' in features,
            'cod_available': 'COD' in features,
        })
        enhanced.append(data)
    return enhanced


def summarize_quotes(quotes):
    if not quotes:
        return {'total_quotes': 0, 'cheapest_price': None, 'fastest_delivery': None}
    return {
        'total_quotes': len(quotes),
        'cheapest_price': min(q.total_amount for q in quotes),
        'fastest_delivery': min(q.service_type.estimated_days for q in quotes),
    }


_courier_manager = None


def get_courier_manager():
    """Return the shared manager, creating and initializing it on first use"""
    global _courier_manager
    if _courier_manager is None:
        manager = CourierManager(timeout=current_app.config.get('COURIER_TIMEOUT_SECONDS'))
        manager.initialize()
        _courier_manager = manager
    return _courier_manager


def reset_courier_manager():
    global _courier_manager
    _courier_manager = None
