"""Rounding helpers. Points are whole units, money has two decimal places."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from loyalman.exceptions import InvalidAmountError

CENT = Decimal("0.01")
ONE = Decimal("1")


def to_decimal(value, field: str = "amount") -> Decimal:
    """Coerce int/str/Decimal to Decimal. Floats go through str() to avoid binary noise."""
    if isinstance(value, bool):
        raise InvalidAmountError(message=f"{field} must be a number", field=field)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidAmountError(message=f"{field} must be a number", field=field, value=str(value))
    if not result.is_finite():
        raise InvalidAmountError(message=f"{field} must be finite", field=field, value=str(value))
    return result


def round_half_up(value) -> int:
    """Round to a whole number, 0.5 away from zero."""
    return int(to_decimal(value).quantize(ONE, rounding=ROUND_HALF_UP))


def quantize_money(value) -> Decimal:
    """Round to the currency minor unit (half-up)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
