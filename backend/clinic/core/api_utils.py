"""
Common API utilities for consistent response formatting across all controllers.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from flask import jsonify, request

from clinic.core.exceptions import ValidationError


def api_response(
    success: bool, message: str, data: Optional[Any] = None, status_code: int = 200
) -> tuple:
    """
    Standardized API response format for all endpoints.

    Args:
        success: Whether the operation was successful
        message: Human-readable message about the operation
        data: Optional data payload
        status_code: HTTP status code

    Returns:
        Tuple of (json_response, status_code)
    """
    response = {"success": success, "message": message}

    if data is not None:
        response["data"] = to_json(data)

    return jsonify(response), status_code


def to_json(value: Any) -> Any:
    """Convert dates, decimals and nested containers into JSON-safe values."""
    if isinstance(value, dict):
        return {key: to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def get_json_payload() -> dict:
    """Return the JSON body as a dict or raise ValidationError."""
    if not request.is_json:
        raise ValidationError("Expected JSON payload")
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("JSON payload must be an object")
    return payload
