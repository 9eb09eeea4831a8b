from __future__ import annotations

from typing import Any


class ValidationError(ValueError):
    """400-level input problem."""


def coerce_int(value: Any, field: str, *, min_value: int | None = None) -> int:
    """
    Strict integer coercion for quantities and ids coming from JSON or CLI.

    Rejects bools, floats, decimals and scientific notation so that "12.5" or
    1e3 never silently become stock counts.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    # bool is an int subclass
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if min_value is not None and result < min_value:
        if min_value == 0:
            raise ValidationError(f"{field} cannot be negative")
        raise ValidationError(f"{field} must be at least {min_value}")

    return result


def coerce_optional_text(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    stripped = value.strip()
    if not stripped:
        return None
    if max_length is not None and len(stripped) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return stripped
