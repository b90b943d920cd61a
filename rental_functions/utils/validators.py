import re
from datetime import date

from rental_functions.utils.date_utils import local_today, parse_date
from rental_functions.utils.money_utils import to_amount

CEDULA_RE = re.compile(r'^\d{3}-\d{7}-\d{1}$')
PHONE_RE = re.compile(r'^\(\d{3}\) \d{3}-\d{4}$')
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

PROPERTY_NAME_MAX_LENGTH = 50
TEXT_MAX_LENGTH = 255


def validate_property_name(name) -> str | None:
    if not name or not str(name).strip():
        return 'El nombre es obligatorio'
    if len(str(name)) > PROPERTY_NAME_MAX_LENGTH:
        return f'El nombre no puede exceder {PROPERTY_NAME_MAX_LENGTH} caracteres'
    return None


def validate_address(address) -> str | None:
    if not address or not str(address).strip():
        return 'La dirección es obligatoria'
    if len(str(address)) > TEXT_MAX_LENGTH:
        return f'La dirección no puede exceder {TEXT_MAX_LENGTH} caracteres'
    return None


def validate_tenant_name(name) -> str | None:
    if not name or not str(name).strip():
        return 'El nombre es obligatorio'
    if len(str(name)) > TEXT_MAX_LENGTH:
        return f'El nombre no puede exceder {TEXT_MAX_LENGTH} caracteres'
    return None


def validate_monthly_rent(rent) -> str | None:
    if to_amount(rent) <= 0:
        return 'El precio debe ser mayor a 0'
    return None


def validate_cedula(cedula) -> str | None:
    """Dominican cédula, XXX-XXXXXXX-X."""
    if not cedula:
        return 'La cédula es obligatoria'
    if not CEDULA_RE.match(str(cedula)):
        return 'Formato de cédula inválido (XXX-XXXXXXX-X)'
    return None


def validate_phone(phone) -> str | None:
    if not phone:
        return 'El teléfono es obligatorio'
    if not PHONE_RE.match(str(phone)):
        return 'Formato de teléfono inválido ((XXX) XXX-XXXX)'
    return None


def validate_email(email) -> str | None:
    # Email is optional
    if not email:
        return None
    if not EMAIL_RE.match(str(email)):
        return 'Formato de email inválido'
    return None


def validate_not_future_date(value, today: date | None = None) -> str | None:
    if not value:
        return 'La fecha es obligatoria'
    parsed = parse_date(value)
    if parsed is None:
        return 'Formato de fecha inválido'
    if parsed > (today or local_today()):
        return 'La fecha no puede ser futura'
    return None
