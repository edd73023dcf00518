"""Helpers for reading JSON or form payloads and query args."""
from datetime import date, datetime
from typing import Optional

from flask import request

from vitrine.exceptions import BusinessLogicError


def get_payload() -> dict:
    """JSON body when sent as JSON, otherwise the submitted form."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def get_int_arg(name: str, source: Optional[dict] = None) -> Optional[int]:
    """Optional integer from query args (or the given dict); invalid values are ignored."""
    value = (source if source is not None else request.args).get(name)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def require_int(payload: dict, name: str, label: str) -> int:
    try:
        return int(payload.get(name))
    except (TypeError, ValueError):
        raise BusinessLogicError(f'{label} inválido')


def get_date_arg(name: str) -> Optional[date]:
    """YYYY-MM-DD query arg as a date."""
    value = (request.args.get(name) or '').strip()
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise BusinessLogicError(f'Data inválida: {value}')
