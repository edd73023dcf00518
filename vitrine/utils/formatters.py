"""
Formatting helpers in Brazilian style.
Used in user-facing messages and the AI prompts.
"""
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Union


def money_br(value: Union[int, float, Decimal, str, None], symbol: bool = True) -> str:
    """
    Format an amount as Brazilian currency with exactly 2 decimals.
    
    Examples:
        money_br(1500) -> "R$ 1.500,00"
        money_br(Decimal('9.9')) -> "R$ 9,90"
        money_br(-3, symbol=False) -> "-3,00"
        money_br(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = "-" if num < 0 else ""
    num = abs(num)

    integer_part, decimal_part = f"{num:.2f}".split(".")
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    integer_formatted = '.'.join(groups)[::-1]

    formatted = f"{sign}{integer_formatted},{decimal_part}"
    return f"R$ {formatted}" if symbol else formatted


def date_br(value: Union[date, datetime, None]) -> str:
    """DD/MM/YYYY, or "-" when missing."""
    if value is None:
        return "-"
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        return "-"
    return value.strftime("%d/%m/%Y")


def datetime_br(value: Union[datetime, None], with_time: bool = True) -> str:
    if not isinstance(value, datetime):
        return "-"
    if with_time:
        return value.strftime("%d/%m/%Y %H:%M")
    return value.strftime("%d/%m/%Y")


def digits_only(value: Union[str, None]) -> str:
    """Strip everything but digits (phone numbers)."""
    return ''.join(ch for ch in (value or '') if ch.isdigit())
