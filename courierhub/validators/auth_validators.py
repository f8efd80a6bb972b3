"""
Auth Validators
Validates signup, signin and profile payloads
"""
import re

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_PATTERN = re.compile(r'^[6-9]\d{9}$')
SPECIAL_CHARACTERS = re.compile(r'[!@#$%^&*(),.?":{}|<>]')


class AuthValidator:

    @staticmethod
    def validate_email(email) -> bool:
        return bool(email) and bool(EMAIL_PATTERN.match(str(email).strip()))

    @staticmethod
    def validate_password(password) -> list:
        """
        Check password strength

        Returns:
            list: Human readable problems, empty when the password is acceptable
        """
        password = password or ''
        errors = []

        if len(password) < 8:
            errors.append('Password must be at least 8 characters long')
        if not re.search(r'[A-Z]', password):
            errors.append('Password must contain at least one uppercase letter')
        if not re.search(r'[a-z]', password):
            errors.append('Password must contain at least one lowercase letter')
        if not re.search(r'\d', password):
            errors.append('Password must contain at least one number')
        if not SPECIAL_CHARACTERS.search(password):
            errors.append('Password must contain at least one special character')

        return errors

    @staticmethod
    def normalize_phone(phone):
        """Strip whitespace, dashes and an optional +91/91/0 prefix; None when not an Indian mobile"""
        digits = re.sub(r'[\s\-]', '', str(phone or ''))
        for prefix in ('+91', '91', '0'):
            if digits.startswith(prefix) and len(digits) - len(prefix) == 10:
                digits = digits[len(prefix):]
                break
        return digits if PHONE_PATTERN.match(digits) else None

    @staticmethod
    def validate_phone(phone) -> bool:
        return AuthValidator.normalize_phone(phone) is not None

    @staticmethod
    def validate_signup(data: dict) -> tuple:
        """
        Validate signup request data

        Returns:
            tuple: (is_valid: bool, validated_data: dict, errors: dict)
        """
        errors = {}

        required_fields = {
            'email': 'Email is required',
            'password': 'Password is required',
            'first_name': 'First name is required',
            'last_name': 'Last name is required',
        }
        for field, error_msg in required_fields.items():
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field] = error_msg

        if errors:
            return (False, {}, errors)

        email = str(data['email']).strip().lower()
        if not AuthValidator.validate_email(email):
            errors['email'] = 'Please enter a valid email address'

        password_errors = AuthValidator.validate_password(data['password'])
        if password_errors:
            errors['password'] = password_errors

        phone = None
        if data.get('phone'):
            phone = AuthValidator.normalize_phone(data['phone'])
            if phone is None:
                errors['phone'] = 'Please enter a valid 10-digit Indian mobile number'

        if errors:
            return (False, {}, errors)

        validated_data = {
            'email': email,
            'password': data['password'],
            'first_name': str(data['first_name']).strip(),
            'last_name': str(data['last_name']).strip(),
            'phone': phone,
            'company': (data.get('company') or '').strip() or None,
        }
        return (True, validated_data, {})

    @staticmethod
    def validate_profile_update(data: dict) -> tuple:
        """Validate the editable profile fields that are present"""
        errors = {}
        validated_data = {}

        for field in ('first_name', 'last_name'):
            if field in data:
                value = (data.get(field) or '').strip()
                if not value:
                    errors[field] = f"{field.replace('_', ' ').capitalize()} cannot be empty"
                else:
                    validated_data[field] = value

        if 'phone' in data:
            if data['phone']:
                phone = AuthValidator.normalize_phone(data['phone'])
                if phone is None:
                    errors['phone'] = 'Please enter a valid 10-digit Indian mobile number'
                else:
                    validated_data['phone'] = phone
            else:
                validated_data['phone'] = None

        for field in ('company', 'gstin'):
            if field in data:
                validated_data[field] = (data.get(field) or '').strip() or None

        if validated_data.get('gstin') and len(validated_data['gstin']) != 15:
            errors['gstin'] = 'GSTIN must be 15 characters'

        if errors:
            return (False, {}, errors)
        return (True, validated_data, {})


__all__ = ['AuthValidator']
