from __future__ import annotations
"""Reusable validation helpers for request payloads.

Field-level problems are collected and raised together as `ValidationFailed`
so the error handler can return them under `errors`.
"""
from datetime import date
from typing import Any, Dict, Iterable, List, Optional
from flask import abort
from werkzeug.exceptions import BadRequest


class ValidationFailed(BadRequest):
    def __init__(self, errors: List[Dict[str, str]], description: str = 'Validation failed'):
        super().__init__(description=description)
        self.errors = errors


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or aborts with 400.
    """
    if new_status not in allowed:
        abort(400, description=f"{field_name} invalid")
    return new_status


def require_fields(data: Dict[str, Any], *fields: str):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise ValidationFailed([{'field': f, 'message': f'{f} is required'} for f in missing])


def parse_date(value: Any, field_name: str) -> Optional[date]:
    if value in (None, ''):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationFailed([{'field': field_name, 'message': f'{field_name} must be an ISO date (YYYY-MM-DD)'}])


__all__ = ['ValidationFailed', 'validate_status', 'require_fields', 'parse_date']
