"""
Booking identifiers and attendee credential checks.
"""

import re
import uuid

from qrgo.errors import ValidationError

EMAIL_REGEX = re.compile(r'^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$')
PIN_REGEX = re.compile(r'[0-9]{4}')


def new_booking_id():
    return str(uuid.uuid4())


def normalize_email(email, field="user_email"):
    if email is None:
        return ""
    if not isinstance(email, str):
        raise ValidationError("Email must be a string", field=field)
    return email.strip().lower()


def validate_email(email, field="user_email"):
    if not isinstance(email, str) or not EMAIL_REGEX.match(email):
        raise ValidationError("Invalid email format", field=field)
    return email


def validate_pin(pin, confirm_pin=None):
    """
    PIN must be exactly 4 digits. When a confirmation is supplied it must
    match.
    """
    if not isinstance(pin, str) or not PIN_REGEX.fullmatch(pin):
        raise ValidationError("PIN must be exactly 4 digits.", field="pin")
    if confirm_pin is not None and confirm_pin != pin:
        raise ValidationError("PINs do not match.", field="confirm_pin")
    return pin
