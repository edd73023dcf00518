"""Number parsing for form and JSON input (Brazilian or dotted decimals)."""
import re
from datetime import datetime, date
from decimal import Decimal, InvalidOperation
from typing import Optional

BR_NUMBER_PATTERN = re.compile(r"^-?(?:\d{1,3}(?:\.\d{3})+|\d+)(?:,\d+)?$")


def parse_decimal(value, field_label: str = 'Valor', allow_negative: bool = False) -> Optional[Decimal]:
    """
    Parse a money value to a 2-decimal Decimal.

    Accepts numbers, "1234.56" and Brazilian "1.234,56". Empty input
    returns None so callers decide whether the field is required.

    Raises:
        ValueError: if the value cannot be parsed or is negative.
    """
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        cleaned = str(value)
    else:
        cleaned = str(value).strip().replace('R$', '').strip()
        if not cleaned:
            return None
        if BR_NUMBER_PATTERN.match(cleaned) and (',' in cleaned or cleaned.count('.') > 1):
            cleaned = cleaned.replace('.', '').replace(',', '.')

    try:
        number = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        raise ValueError(f'{field_label} inválido')

    if not number.is_finite():
        raise ValueError(f'{field_label} inválido')
    if number < 0 and not allow_negative:
        raise ValueError(f'{field_label} não pode ser negativo')

    return number.quantize(Decimal('0.01'))


def parse_int(value, field_label: str = 'Valor', minimum: Optional[int] = None) -> Optional[int]:
    """Parse an optional integer; empty input returns None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'{field_label} inválido')
    if minimum is not None and number < minimum:
        raise ValueError(f'{field_label} deve ser maior ou igual a {minimum}')
    return number


def parse_datetime(value, field_label: str = 'Data') -> Optional[datetime]:
    """Parse an ISO date or datetime; a bare date becomes midnight."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    except ValueError:
        raise ValueError(f'{field_label} inválida')
    # Stored naive (local time), like every other timestamp compared in Python
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed
