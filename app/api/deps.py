from datetime import date as DateType
from typing import Any

from fastapi import Header

from app.core.errors import AuthRequired, ValidationError


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """
    The auth layer in front of us puts the verified user id in X-User-Id.
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthRequired("Authentication required")
    return x_user_id.strip()


def parse_date(value: str | None, field: str = "date") -> DateType:
    if not value:
        raise ValidationError(f"{field} is required")
    try:
        return DateType.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid date format: {value}, expected YYYY-MM-DD")


def ok(data: Any = None, message: str | None = None) -> dict:
    body = {"status": "ok", "data": data}
    if message:
        body["message"] = message
    return body
