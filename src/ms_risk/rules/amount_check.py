import math

from src.ms_common.errors import InvalidInputError


def check_positive_amount(value: float, field: str = "amount") -> float:
    """Raise InvalidInputError(1001) unless value is a finite number > 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f"{field} must be a number")
    if not math.isfinite(value) or value <= 0:
        raise InvalidInputError(f"{field} must be a positive finite number")
    return float(value)
