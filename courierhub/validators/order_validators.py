"""
Order Validators
Validates order data before creation and updates
"""
from courierhub.models.order import OrderStatus
from .shipment_validators import MAX_WEIGHT, PACKAGE_TYPES


class OrderValidator:
    """Validator for order creation and updates"""

    REQUEST_OBJECTS = ('dimensions',)

    @staticmethod
    def _to_int(value):
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def validate_create_order(data: dict) -> tuple:
        """
        Validate order creation request data

        Args:
            data: Order request data (snake_case keys)

        Returns:
            tuple: (is_valid: bool, validated_data: dict, errors: dict)
        """
        errors = {}

        # 1. VALIDATE REQUIRED FIELDS
        required_fields = {
            'pickup_address_id': 'Pickup address is required',
            'delivery_address_id': 'Delivery address is required',
            'courier_partner_id': 'Courier partner is required',
            'weight': 'Weight is required',
        }

        for field, error_msg in required_fields.items():
            if data.get(field) in (None, ''):
                errors[field] = error_msg

        if errors:
            return (False, {}, errors)

        # 2. VALIDATE REFERENCES
        ids = {}
        for field in ('pickup_address_id', 'delivery_address_id', 'courier_partner_id'):
            ids[field] = OrderValidator._to_int(data[field])
            if ids[field] is None:
                errors[field] = f"{field.replace('_', ' ').capitalize()} must be an integer"

        # 3. VALIDATE WEIGHT
        try:
            weight = float(data['weight'])
        except (ValueError, TypeError):
            errors['weight'] = 'Weight must be a valid number in kilograms'
            return (False, {}, errors)

        if weight <= 0 or weight > MAX_WEIGHT:
            errors['weight'] = f'Weight must be between 0.1 and {MAX_WEIGHT} kg'

        # 4. VALIDATE OPTIONAL FIELDS
        package_type = str(data.get('package_type') or 'package').strip().lower()
        if package_type not in PACKAGE_TYPES:
            errors['package_type'] = f"Package type must be one of: {', '.join(PACKAGE_TYPES)}"

        declared_value = data.get('declared_value')
        if declared_value not in (None, ''):
            try:
                declared_value = float(declared_value)
                if declared_value < 0:
                    raise ValueError
            except (TypeError, ValueError):
                errors['declared_value'] = 'Declared value must be a positive number'
        else:
            declared_value = None

        dimensions = data.get('dimensions')
        if dimensions:
            try:
                dimensions = {k: float(dimensions[k]) for k in ('length', 'width', 'height')}
                if min(dimensions.values()) <= 0:
                    raise ValueError
            except (KeyError, TypeError, ValueError):
                errors['dimensions'] = 'Dimensions must be positive numbers (length, width, height in cm)'
        else:
            dimensions = None

        if errors:
            return (False, {}, errors)

        validated_data = {
            **ids,
            'weight': weight,
            'package_type': package_type,
            'declared_value': declared_value,
            'dimensions': dimensions,
            'parcel_contents': (data.get('parcel_contents') or '').strip() or None,
            'delivery_instructions': (data.get('delivery_instructions') or '').strip() or None,
            'service_type': (data.get('service_type') or '').strip() or None,
        }

        return (True, validated_data, {})

    @staticmethod
    def validate_update_order(data: dict) -> tuple:
        """
        Validate an order update: a new status and/or delivery instructions

        Returns:
            tuple: (is_valid: bool, validated_data: dict, errors: dict)
        """
        errors = {}
        validated_data = {}

        if data.get('status'):
            try:
                validated_data['status'] = OrderStatus.parse(data['status'])
            except ValueError:
                errors['status'] = f"Unknown status: {data['status']}"

        if data.get('delivery_instructions'):
            validated_data['delivery_instructions'] = str(data['delivery_instructions']).strip()

        if not errors and not validated_data:
            errors['request'] = 'Nothing to update: provide status or delivery_instructions'

        if errors:
            return (False, {}, errors)
        return (True, validated_data, {})


__all__ = ['OrderValidator']
