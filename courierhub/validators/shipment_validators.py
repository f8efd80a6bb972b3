"""
Shipment Validators
Validates quote and booking requests before they reach the courier APIs
"""
from datetime import datetime

from courierhub.services.courier.types import Dimensions, ShipmentAddress, ShipmentDetails
from .address_validators import AddressValidator

MAX_WEIGHT = 50  # kg
PACKAGE_TYPES = ('document', 'package', 'fragile')
PICKUP_TIME_SLOTS = {
    'morning': 10,
    'afternoon': 14,
    'evening': 17,
}


class ShipmentValidator:

    # request objects whose keys are camelCase-normalized along with the top level
    REQUEST_OBJECTS = ('pickup', 'delivery', 'shipment', 'shipment.dimensions', 'schedule_pickup')

    @staticmethod
    def _positive_number(value):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
        return number if number > 0 else None

    @staticmethod
    def _validate_address(data, label, require_contact, errors):
        if not isinstance(data, dict):
            errors[label] = f'{label.capitalize()} address is required'
            return None

        if data.get('address_id') is not None:
            try:
                return {'address_id': int(data['address_id'])}
            except (TypeError, ValueError):
                errors[f'{label}.address_id'] = 'Address id must be an integer'
                return None

        pincode = str(data.get('pincode') or '').strip()
        if not AddressValidator.validate_pincode(pincode):
            errors[f'{label}.pincode'] = 'Invalid pincode format. Must be 6 digits.'

        required = ['city', 'state']
        if require_contact:
            required += ['name', 'phone', 'address_line1']
        for field in required:
            if not str(data.get(field) or '').strip():
                errors[f'{label}.{field}'] = f"{field.replace('_', ' ').capitalize()} is required"

        if any(key.startswith(f'{label}.') for key in errors):
            return None

        return {'address': ShipmentAddress(
            name=str(data.get('name') or '').strip(),
            phone=str(data.get('phone') or '').strip(),
            email=(data.get('email') or '').strip() or None,
            address_line1=str(data.get('address_line1') or '').strip(),
            address_line2=(data.get('address_line2') or '').strip() or None,
            city=str(data['city']).strip(),
            state=str(data['state']).strip(),
            pincode=pincode,
            country=data.get('country') or 'India',
        )}

    @staticmethod
    def _validate_shipment(data, errors):
        if not isinstance(data, dict):
            errors['shipment'] = 'Shipment details are required'
            return None

        weight = ShipmentValidator._positive_number(data.get('weight'))
        if weight is None or weight > MAX_WEIGHT:
            errors['shipment.weight'] = 'Weight must be between 0.1 and 50 kg'

        declared_value = ShipmentValidator._positive_number(data.get('declared_value'))
        if declared_value is None:
            errors['shipment.declared_value'] = 'Declared value must be greater than 0'

        dimensions = None
        if data.get('dimensions'):
            raw = data['dimensions']
            values = {}
            if isinstance(raw, dict):
                for field in ('length', 'width', 'height'):
                    values[field] = ShipmentValidator._positive_number(raw.get(field))
            if not isinstance(raw, dict) or None in values.values():
                errors['shipment.dimensions'] = 'Dimensions must be positive numbers (length, width, height in cm)'
            else:
                dimensions = Dimensions(**values)

        package_type = str(data.get('package_type') or 'package').strip().lower()
        if package_type not in PACKAGE_TYPES:
            errors['shipment.package_type'] = f"Package type must be one of: {', '.join(PACKAGE_TYPES)}"

        cod_amount = data.get('cod_amount') or 0
        try:
            cod_amount = float(cod_amount)
            if cod_amount < 0:
                raise ValueError
        except (TypeError, ValueError):
            errors['shipment.cod_amount'] = 'COD amount must be zero or a positive number'

        if any(key.startswith('shipment') for key in errors):
            return None

        return ShipmentDetails(
            weight=weight,
            declared_value=declared_value,
            package_type=package_type,
            contents=str(data.get('contents') or 'General goods').strip(),
            dimensions=dimensions,
            cod_amount=cod_amount,
        )

    @staticmethod
    def validate_quote_request(data: dict) -> tuple:
        """
        Validate a quote request

        Returns:
            tuple: (is_valid: bool, validated_data: dict, errors: dict)
            validated_data holds 'pickup' and 'delivery' ShipmentAddress values,
            'shipment' ShipmentDetails and 'preferred_services'.
        """
        if not data or not all(data.get(k) for k in ('pickup', 'delivery', 'shipment')):
            return (False, {}, {'request': 'Missing required fields: pickup, delivery, shipment'})

        errors = {}
        pickup = ShipmentValidator._validate_address(data['pickup'], 'pickup', False, errors)
        delivery = ShipmentValidator._validate_address(data['delivery'], 'delivery', False, errors)
        shipment = ShipmentValidator._validate_shipment(data['shipment'], errors)

        # Quotes are priced from the entered addresses, never from the address book
        for label, value in (('pickup', pickup), ('delivery', delivery)):
            if value is not None and 'address' not in value:
                errors[f'{label}.pincode'] = 'Invalid pincode format. Must be 6 digits.'

        preferred = data.get('preferred_services')
        if preferred is not None and not isinstance(preferred, list):
            errors['preferred_services'] = 'Preferred services must be a list of courier codes'

        if errors:
            return (False, {}, errors)

        return (True, {
            'pickup': pickup['address'],
            'delivery': delivery['address'],
            'shipment': shipment,
            'preferred_services': preferred,
        }, {})

    @staticmethod
    def validate_booking_request(data: dict) -> tuple:
        """
        Validate a booking request

        Returns:
            tuple: (is_valid: bool, validated_data: dict, errors: dict)
            'pickup'/'delivery' carry either {'address': ShipmentAddress}
            or {'address_id': int} for a saved address.
        """
        if not data or not all(data.get(k) for k in
                               ('courier_code', 'service_type', 'pickup', 'delivery', 'shipment')):
            return (False, {}, {'request': 'Missing required fields'})

        errors = {}
        pickup = ShipmentValidator._validate_address(data['pickup'], 'pickup', True, errors)
        delivery = ShipmentValidator._validate_address(data['delivery'], 'delivery', True, errors)
        shipment = ShipmentValidator._validate_shipment(data['shipment'], errors)

        schedule = None
        if data.get('schedule_pickup'):
            raw = data['schedule_pickup']
            try:
                pickup_date = datetime.strptime(str(raw.get('date')), '%Y-%m-%d')
            except (AttributeError, ValueError):
                errors['schedule_pickup.date'] = 'Pickup date must be in YYYY-MM-DD format'
            else:
                slot = str(raw.get('time_slot') or 'afternoon').lower()
                if slot not in PICKUP_TIME_SLOTS:
                    errors['schedule_pickup.time_slot'] = 'Time slot must be morning, afternoon or evening'
                else:
                    schedule = {
                        'date': raw.get('date'),
                        'time_slot': slot,
                        'pickup_at': pickup_date.replace(hour=PICKUP_TIME_SLOTS[slot]),
                    }

        if errors:
            return (False, {}, errors)

        return (True, {
            'courier_code': str(data['courier_code']).strip(),
            'service_type': str(data['service_type']).strip(),
            'pickup': pickup,
            'delivery': delivery,
            'shipment': shipment,
            'delivery_instructions': (data.get('delivery_instructions') or '').strip() or None,
            'schedule_pickup': schedule,
        }, {})


__all__ = ['ShipmentValidator', 'PICKUP_TIME_SLOTS']
