"""
Shared input validation for the booking engine services.
Every helper raises the engine's ValidationError so callers can report the
message verbatim before any state change happens.
"""

import math
from datetime import date
from typing import Any, Dict, Iterable, Optional, Union
from carwithdriver.services.errors import ValidationError
from carwithdriver.utils.timezone_utils import parse_date


def sanitize_string(value: Optional[str], max_length: int = 512, field_name: str = "field",
                    truncate: bool = False) -> Optional[str]:
    """
    Sanitize string input by stripping whitespace and validating length.

    Args:
        value: String to sanitize
        max_length: Maximum allowed length
        field_name: Name of field for error messages
        truncate: Cut over-long values to max_length instead of rejecting them

    Returns:
        Sanitized string or None if input is None/empty

    Raises:
        ValidationError: If string exceeds max length and truncate is False
    """
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)

    sanitized = value.strip()
    if not sanitized:
        return None

    if len(sanitized) > max_length:
        if truncate:
            return sanitized[:max_length]
        raise ValidationError(f"{field_name} exceeds maximum length of {max_length} characters")

    return sanitized


def require_fields(data: Dict[str, Any], fields: Iterable[str]) -> None:
    missing = [
        field for field in fields
        if data.get(field) is None or (isinstance(data.get(field), str) and not data[field].strip())
    ]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def to_date(value: Union[str, date, None], field_name: str) -> date:
    """Parse a required date, raising ValidationError on bad or missing input."""
    try:
        parsed = parse_date(value, field_name)
    except ValueError as e:
        raise ValidationError(str(e))
    if parsed is None:
        raise ValidationError(f"{field_name} is required")
    return parsed


def to_non_negative_float(value: Any, field_name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{field_name} must be a finite number")
    if number < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return number
