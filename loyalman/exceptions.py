"""Loyalman exceptions.

All errors carry a stable ``code`` plus structured ``data`` so the hosting
service can map them onto its own transport:

    try:
        LoyaltyService.redeem_points(member_id, 300)
    except InsufficientPointsError as e:
        if e.code == "LOYALTY_BELOW_MINIMUM_REDEMPTION":
            ...
"""


class BaseError(Exception):
    """
    Structured exception with code, message and data.

    Subclasses provide ``_default_messages`` keyed by code.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class LoyalmanError(BaseError):
    """Base class for every loyalty engine error."""

    _default_messages = {
        "LOYALTY_INVALID_CONFIG": "Invalid loyalty program configuration",
        "LOYALTY_EMPTY_TIERS": "Tier configuration must not be empty",
        "LOYALTY_DUPLICATE_TIER": "Duplicate tier names found",
        "LOYALTY_INVALID_TIER": "Invalid tier definition",
        "LOYALTY_OVERLAPPING_TIERS": "Tier ranges overlap",
        "LOYALTY_INVALID_RULES": "Invalid channel rules",
        "LOYALTY_INVALID_EXPIRATION": "Expiration months must be between 1 and 36",
        "LOYALTY_REASON_REQUIRED": "Reason for adjustment is required",
        "LOYALTY_INVALID_POINTS": "Points must be positive",
        "LOYALTY_INVALID_AMOUNT": "Invalid amount",
        "LOYALTY_INSUFFICIENT_POINTS": "Insufficient points for redemption",
        "LOYALTY_BELOW_MINIMUM_REDEMPTION": "Points below minimum redemption",
        "LOYALTY_ABOVE_MAXIMUM_REDEMPTION": "Points above maximum redemption",
        "LOYALTY_MEMBER_NOT_FOUND": "Loyalty member not found",
        "LOYALTY_PROGRAM_NOT_FOUND": "Loyalty program not found",
        "LOYALTY_CHANNEL_NOT_CONFIGURED": "Channel rules not configured",
        "LOYALTY_PROGRAM_INACTIVE": "Loyalty program is not active",
        "LOYALTY_CONCURRENT_UPDATE": "Member was modified concurrently",
        "LOYALTY_LOCK_TIMEOUT": "Timed out waiting for member lock",
        "LOYALTY_REWARD_NOT_FOUND": "Reward not found",
        "LOYALTY_REWARD_INACTIVE": "Reward is currently inactive",
        "LOYALTY_REWARD_NOT_STARTED": "Reward not yet available",
        "LOYALTY_REWARD_ENDED": "Reward is no longer available",
        "LOYALTY_REWARD_LIMIT_REACHED": "Reward usage limit reached",
        "LOYALTY_TIER_REQUIRED": "Reward requires a higher tier",
        "LOYALTY_INVALID_REWARD": "Invalid reward definition",
    }


class ValidationError(LoyalmanError):
    """Bad configuration or request. Raised before any mutation."""

    def __init__(self, code: str = "LOYALTY_INVALID_CONFIG", message: str | None = None, **data):
        super().__init__(code, message, **data)


class OverlappingTiersError(ValidationError):
    """Two adjacent tiers share part of their range."""

    def __init__(self, lower: str, upper: str, lower_max: int, upper_min: int):
        super().__init__(
            "LOYALTY_OVERLAPPING_TIERS",
            message=f"Overlap between {lower} (max: {lower_max}) and {upper} (min: {upper_min})",
            lower=lower,
            upper=upper,
            lower_max=lower_max,
            upper_min=upper_min,
        )


class InvalidAmountError(LoyalmanError):
    """Negative, zero or otherwise unusable point or money amount."""

    def __init__(self, code: str = "LOYALTY_INVALID_AMOUNT", message: str | None = None, **data):
        super().__init__(code, message, **data)


class InsufficientPointsError(LoyalmanError):
    """Redemption below minimum, above maximum, or exceeding the balance."""

    def __init__(self, code: str = "LOYALTY_INSUFFICIENT_POINTS", message: str | None = None, **data):
        super().__init__(code, message, **data)


class NotFoundError(LoyalmanError):
    """Unknown member, program or channel."""


class ConcurrencyConflict(LoyalmanError):
    """Lost update detected. Safe to retry the whole operation from fresh state."""

    def __init__(self, code: str = "LOYALTY_CONCURRENT_UPDATE", message: str | None = None, **data):
        super().__init__(code, message, **data)


class RewardUnavailableError(LoyalmanError):
    """Reward inactive, outside its availability window, sold out or above the member's tier."""

    def __init__(self, code: str = "LOYALTY_REWARD_INACTIVE", message: str | None = None, **data):
        super().__init__(code, message, **data)
