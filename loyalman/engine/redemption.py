"""Points <-> money conversion and redemption eligibility."""

from decimal import Decimal

from loyalman.engine.money import quantize_money, round_half_up, to_decimal
from loyalman.engine.rules import ChannelRules
from loyalman.exceptions import InsufficientPointsError, InvalidAmountError


def cash_value(points: int, rules: ChannelRules) -> Decimal:
    """Money value of points, rounded half-up to the minor unit."""
    return quantize_money(Decimal(points) / Decimal(rules.points_to_money_ratio))


def points_for_cash(amount, rules: ChannelRules) -> int:
    """Whole points equivalent to a cash amount (operator cash-entry adjustments)."""
    return round_half_up(to_decimal(amount) * rules.points_to_money_ratio)


def check_redeemable(points: int, rules: ChannelRules) -> None:
    """
    Raise unless points can be redeemed under the channel rules.

    Raises:
        InvalidAmountError: points <= 0
        InsufficientPointsError: below minimum_redemption or above maximum_redemption
    """
    if points <= 0:
        raise InvalidAmountError("LOYALTY_INVALID_POINTS", points=points)

    if points < rules.minimum_redemption:
        raise InsufficientPointsError(
            "LOYALTY_BELOW_MINIMUM_REDEMPTION",
            requested=points,
            minimum=rules.minimum_redemption,
        )

    if rules.maximum_redemption is not None and points > rules.maximum_redemption:
        raise InsufficientPointsError(
            "LOYALTY_ABOVE_MAXIMUM_REDEMPTION",
            requested=points,
            maximum=rules.maximum_redemption,
        )


def is_redeemable(points: int, rules: ChannelRules) -> bool:
    """Check without raising (returns bool)."""
    try:
        check_redeemable(points, rules)
        return True
    except (InsufficientPointsError, InvalidAmountError):
        return False
