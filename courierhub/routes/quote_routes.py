import logging
from datetime import datetime

from flask import Blueprint, current_app, request, jsonify

from courierhub.models import CourierPartner
from courierhub.services.courier.manager import enhance_quotes, get_courier_manager, summarize_quotes
from courierhub.services.courier.types import CourierAPIError, CourierRateLimitError
from courierhub.services.maps_service import MapsService
from courierhub.validators.address_validators import AddressValidator
from courierhub.validators.payload import normalize_keys
from courierhub.validators.shipment_validators import ShipmentValidator

logger = logging.getLogger(__name__)

quotes_bp = Blueprint('quotes', __name__, url_prefix='/api/quotes')


def _error_details(e):
    if current_app.config.get('EXPOSE_ERROR_DETAILS'):
        return str(e)
    return 'Internal server error'


def _courier_ratings():
    return {
        partner.code: partner.rating
        for partner in CourierPartner.query.filter_by(is_active=True).all()
        if partner.rating
    }


def _route_label(address):
    return f"{address.city}, {address.state} - {address.pincode}"


@quotes_bp.route('/enhanced', methods=['POST'])
def get_quotes():
    """
    Live quotes from every courier serving the route, cheapest first
    POST /api/quotes/enhanced
    """
    data = normalize_keys(request.get_json(silent=True) or {}, ShipmentValidator.REQUEST_OBJECTS)

    is_valid, validated, errors = ShipmentValidator.validate_quote_request(data)
    if not is_valid:
        return jsonify({'error': next(iter(errors.values())), 'errors': errors}), 400

    pickup, delivery = validated['pickup'], validated['delivery']

    try:
        manager = get_courier_manager()

        available_services = manager.get_available_services()
        if not available_services:
            return jsonify({'error': 'No courier services available at the moment'}), 503

        quotes = manager.get_all_rates(pickup, delivery, validated['shipment'])

        preferred = validated['preferred_services']
        if preferred:
            quotes = [q for q in quotes if q.courier_code in preferred]

        if not quotes:
            return jsonify({
                'error': 'No quotes available for the specified route',
                'available_services': available_services,
                'message': 'This might be due to service unavailability in the delivery area '
                           'or temporary API issues',
            }), 404

        enhanced = enhance_quotes(quotes, _courier_ratings())

        return jsonify({
            'success': True,
            'quotes': enhanced,
            'metadata': {
                **summarize_quotes(quotes),
                'available_services': available_services,
                'timestamp': datetime.utcnow().isoformat(),
                'route': {
                    'from': _route_label(pickup),
                    'to': _route_label(delivery),
                    'distance': MapsService().route_distance(pickup, delivery),
                },
            },
        }), 200

    except CourierRateLimitError:
        return jsonify({
            'error': 'Service temporarily unavailable due to high demand. Please try again later.'
        }), 429
    except Exception as e:
        logger.error(f"Error getting quotes: {e}")
        return jsonify({'error': 'Failed to get shipping quotes', 'message': _error_details(e)}), 500


@quotes_bp.route('/enhanced', methods=['GET'])
def check_availability():
    """
    Which couriers deliver to a pincode
    GET /api/quotes/enhanced?pincode=560001
    """
    pincode = request.args.get('pincode')

    if not pincode:
        return jsonify({'error': 'Pincode parameter is required'}), 400

    if not AddressValidator.validate_pincode(pincode):
        return jsonify({'error': 'Invalid pincode format. Must be 6 digits.'}), 400

    try:
        manager = get_courier_manager()
        available_services = manager.get_available_services()

        service_availability = {}
        for code in available_services:
            service = manager.get_service(code)
            try:
                service_availability[code] = bool(service.can_deliver(pincode))
            except CourierAPIError as e:
                logger.error(f"Error checking {code} availability: {e}")
                service_availability[code] = False

        available_count = sum(1 for available in service_availability.values() if available)

        return jsonify({
            'success': True,
            'pincode': pincode,
            'service_availability': service_availability,
            'summary': {
                'total_services': len(available_services),
                'available_services': available_count,
                'delivery_available': available_count > 0,
            },
        }), 200
    except Exception as e:
        logger.error(f"Error checking service availability: {e}")
        return jsonify({'error': 'Failed to check service availability'}), 500
