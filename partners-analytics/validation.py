# validation.py
import re
from urllib.parse import urlparse

from errors import ValidationError

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
BTC_ADDRESS_PATTERN = re.compile(r'^(1|3|bc1)[a-zA-Z0-9]{25,62}$')
CHAIN_NAME_PATTERN = re.compile(r'^[a-z0-9-]{1,32}$')

SETUP_STATES = ('false', 'later', 'true')
MIN_PASSWORD_LENGTH = 6

# camelCase request keys -> project columns
PROJECT_FIELD_MAP = {
    'name': 'name',
    'logoUrl': 'logo_url',
    'dappUrl': 'dapp_url',
    'btcAddress': 'btc_address',
    'thorName': 'thor_name',
    'mayaName': 'maya_name',
    'chainflipAddress': 'chainflip_address',
    'setupCompleted': 'setup_completed',
}


def is_valid_email(email):
    return bool(EMAIL_PATTERN.match(email or ''))


def is_valid_btc_address(address):
    return bool(BTC_ADDRESS_PATTERN.match(address))


def is_valid_chain_name(name):
    """THORName / MayaName: lowercase letters, digits and dashes, 1-32 chars"""
    return bool(CHAIN_NAME_PATTERN.match(name))


def is_valid_https_url(url):
    if not url.startswith('https://'):
        return False
    parsed = urlparse(url)
    return bool(parsed.netloc) and ' ' not in url


def _string_field(data, key):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


def validate_registration(data):
    """Returns (name, email, password) or raises ValidationError with the first problem"""
    name = (_string_field(data, 'name') or '').strip()
    email = (_string_field(data, 'email') or '').strip()
    password = _string_field(data, 'password') or ''
    confirm_password = _string_field(data, 'confirmPassword')

    if not name:
        raise ValidationError("Name is required")
    if not is_valid_email(email):
        raise ValidationError("Invalid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if confirm_password is None:
        raise ValidationError("Please confirm your password")
    if password != confirm_password:
        raise ValidationError("Passwords don't match")

    return name, email, password


def validate_project_updates(data):
    """
    Map a PATCH /api/project body to column updates.

    Only keys present in the body are returned. Empty strings clear the
    field. Unknown keys are ignored.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    updates = {}
    for key, column in PROJECT_FIELD_MAP.items():
        if key not in data:
            continue
        value = _string_field(data, key)

        if key == 'setupCompleted':
            if value not in SETUP_STATES:
                raise ValidationError("setupCompleted must be one of: false, later, true")
            updates[column] = value
            continue

        if key == 'name' and (value is None or not value.strip()):
            raise ValidationError("Project name is required")
        if key == 'dappUrl' and value and not is_valid_https_url(value):
            raise ValidationError("Must be a valid HTTPS URL or empty")
        if key == 'btcAddress' and value and not is_valid_btc_address(value):
            raise ValidationError("Invalid Bitcoin address")
        if key == 'thorName' and value and not is_valid_chain_name(value):
            raise ValidationError("THORName must be lowercase letters, digits, and dashes only (1-32 chars)")
        if key == 'mayaName' and value and not is_valid_chain_name(value):
            raise ValidationError("MayaName must be lowercase letters, digits, and dashes only (1-32 chars)")

        updates[column] = value or None

    return updates
