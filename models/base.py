"""
Base schemas for all models.
"""

from pydantic import BaseModel, ConfigDict
from typing import Optional


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


def lenient_float(value) -> Optional[float]:
    """
    Stored JSON / row value as a float, or None when it is not a number.

    Blank strings, booleans and unparsable text become None. NaN and
    negative numbers pass through for the conversion checks to reject.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None
    return None


def lenient_str(value) -> Optional[str]:
    """Scalar stored value as a string; None for missing or structured values."""
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)
