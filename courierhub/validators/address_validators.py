"""
Address Validators
Validates saved address book entries
"""
import re

PINCODE_PATTERN = re.compile(r'^\d{6}$')

ADDRESS_BOOK_TYPES = ('home', 'work', 'other')
SNAPSHOT_TYPES = ('pickup', 'delivery')


class AddressValidator:

    @staticmethod
    def validate_pincode(pincode) -> bool:
        return bool(PINCODE_PATTERN.match(str(pincode or '').strip()))

    @staticmethod
    def validate_address(data: dict, allow_snapshot_types: bool = False, partial: bool = False) -> tuple:
        """
        Validate address book data

        Args:
            data: Address payload (snake_case keys)
            allow_snapshot_types: Accept 'pickup'/'delivery' types used for booking snapshots
            partial: Only validate the fields present (updates)

        Returns:
            tuple: (is_valid: bool, validated_data: dict, errors: dict)
        """
        errors = {}
        validated_data = {}
        allowed_types = ADDRESS_BOOK_TYPES + (SNAPSHOT_TYPES if allow_snapshot_types else ())

        if not partial or 'type' in data:
            address_type = str(data.get('type') or '').strip().lower()
            if address_type not in allowed_types:
                errors['type'] = 'Please select a valid address type'
            else:
                validated_data['type'] = address_type

        required_fields = {
            'address_line1': 'Address line 1 is required',
            'city': 'City is required',
            'state': 'State is required',
        }
        for field, error_msg in required_fields.items():
            if partial and field not in data:
                continue
            value = str(data.get(field) or '').strip()
            if not value:
                errors[field] = error_msg
            else:
                validated_data[field] = value

        if not partial or 'pincode' in data:
            pincode = str(data.get('pincode') or '').strip()
            if not AddressValidator.validate_pincode(pincode):
                errors['pincode'] = 'Please enter a valid 6-digit pincode'
            else:
                validated_data['pincode'] = pincode

        for field in ('address_line2', 'name', 'phone', 'email'):
            if field in data:
                validated_data[field] = str(data.get(field) or '').strip() or None

        if 'is_default' in data:
            validated_data['is_default'] = bool(data.get('is_default'))
        elif not partial:
            validated_data['is_default'] = False

        if errors:
            return (False, {}, errors)
        return (True, validated_data, {})


__all__ = ['AddressValidator']
