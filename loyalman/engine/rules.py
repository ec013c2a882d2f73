"""Per-channel accrual and redemption rules."""

from dataclasses import dataclass, field
from decimal import Decimal

from loyalman.choices import Channel, ServiceType
from loyalman.engine.money import CENT, to_decimal
from loyalman.exceptions import ValidationError

DEFAULT_MULTIPLIER = Decimal("1.0")

MIN_EXPIRATION_MONTHS = 1
MAX_EXPIRATION_MONTHS = 36

# ChannelProgram.points_per_dollar is DecimalField(max_digits=8, decimal_places=2)
MAX_POINTS_PER_DOLLAR = Decimal("1000000")


@dataclass(frozen=True)
class ChannelRules:
    """
    Accrual and redemption rules for one channel of one hotel.

    service_multipliers only lists the services that differ from 1.0;
    use multiplier() for lookups.
    """

    channel: str
    points_per_dollar: Decimal = Decimal("1")
    points_per_night: int = 0
    service_multipliers: dict[str, Decimal] = field(default_factory=dict)
    points_to_money_ratio: int = 100
    minimum_redemption: int = 500
    maximum_redemption: int | None = None

    def multiplier(self, service_type: str | None) -> Decimal:
        """Multiplier for a service type. Unlisted services earn at 1.0."""
        if service_type is None:
            return DEFAULT_MULTIPLIER
        return self.service_multipliers.get(ServiceType(service_type), DEFAULT_MULTIPLIER)

    def as_dict(self) -> dict:
        return {
            "channel": str(self.channel),
            "points_per_dollar": str(self.points_per_dollar),
            "points_per_night": self.points_per_night,
            "service_multipliers": {str(k): str(v) for k, v in self.service_multipliers.items()},
            "points_to_money_ratio": self.points_to_money_ratio,
            "minimum_redemption": self.minimum_redemption,
            "maximum_redemption": self.maximum_redemption,
        }


def _service_type(key) -> ServiceType:
    try:
        return ServiceType(key)
    except ValueError:
        raise ValidationError(
            "LOYALTY_INVALID_RULES",
            message=f"Unknown service type '{key}'",
            service_type=str(key),
        )


def build_channel_rules(
    channel: str,
    points_per_dollar=Decimal("1"),
    points_per_night: int = 0,
    service_multipliers: dict | None = None,
    points_to_money_ratio: int = 100,
    minimum_redemption: int = 500,
    maximum_redemption: int | None = None,
) -> ChannelRules:
    """
    Validate raw rule values and return ChannelRules.

    Raises:
        ValidationError: Unknown channel/service type or out-of-range value
    """
    try:
        channel = Channel(channel)
    except ValueError:
        raise ValidationError("LOYALTY_INVALID_RULES", message=f"Unknown channel '{channel}'")

    points_per_dollar = to_decimal(points_per_dollar, "points_per_dollar")
    if not 1 <= points_per_dollar < MAX_POINTS_PER_DOLLAR:
        raise ValidationError(
            "LOYALTY_INVALID_RULES",
            message=f"points_per_dollar must be >= 1 and < {MAX_POINTS_PER_DOLLAR}",
            points_per_dollar=str(points_per_dollar),
        )
    if points_per_dollar != points_per_dollar.quantize(CENT):
        raise ValidationError(
            "LOYALTY_INVALID_RULES",
            message="points_per_dollar allows at most 2 decimal places",
            points_per_dollar=str(points_per_dollar),
        )
    points_per_dollar = points_per_dollar.quantize(CENT)

    if int(points_per_night) != points_per_night or points_per_night < 0:
        raise ValidationError(
            "LOYALTY_INVALID_RULES",
            message="points_per_night must be a non-negative integer",
            points_per_night=points_per_night,
        )

    multipliers = {}
    for key, value in (service_multipliers or {}).items():
        value = to_decimal(value, "service_multiplier")
        if value < 0:
            raise ValidationError(
                "LOYALTY_INVALID_RULES",
                message=f"Multiplier for '{key}' must be >= 0",
                service_type=str(key),
            )
        multipliers[_service_type(key)] = value

    if int(points_to_money_ratio) != points_to_money_ratio or points_to_money_ratio < 1:
        raise ValidationError(
            "LOYALTY_INVALID_RULES",
            message="points_to_money_ratio must be an integer >= 1",
            points_to_money_ratio=points_to_money_ratio,
        )

    if int(minimum_redemption) != minimum_redemption or minimum_redemption < 1:
        raise ValidationError(
            "LOYALTY_INVALID_RULES",
            message="minimum_redemption must be an integer >= 1",
            minimum_redemption=minimum_redemption,
        )

    if maximum_redemption is not None and maximum_redemption < minimum_redemption:
        raise ValidationError(
            "LOYALTY_INVALID_RULES",
            message="maximum_redemption must be >= minimum_redemption",
            maximum_redemption=maximum_redemption,
        )

    return ChannelRules(
        channel=channel,
        points_per_dollar=points_per_dollar,
        points_per_night=int(points_per_night),
        service_multipliers=multipliers,
        points_to_money_ratio=int(points_to_money_ratio),
        minimum_redemption=int(minimum_redemption),
        maximum_redemption=int(maximum_redemption) if maximum_redemption is not None else None,
    )


def validate_expiration_months(months: int) -> int:
    """Raises ValidationError unless months is within [1, 36]."""
    if not isinstance(months, int) or not MIN_EXPIRATION_MONTHS <= months <= MAX_EXPIRATION_MONTHS:
        raise ValidationError("LOYALTY_INVALID_EXPIRATION", expiration_months=months)
    return months


_CHANNEL_DEFAULTS = {
    Channel.TRAVEL_AGENCY: {
        "points_per_dollar": Decimal("1"),
        "points_per_night": 50,
        "service_multipliers": {
            ServiceType.LAUNDRY: Decimal("1.2"),
            ServiceType.TRANSPORTATION: Decimal("1.5"),
            ServiceType.TOURISM: Decimal("2.0"),
            ServiceType.TRAVEL: Decimal("2.0"),
            ServiceType.HOUSEKEEPING: Decimal("1.0"),
        },
        "points_to_money_ratio": 100,
        "minimum_redemption": 500,
        "maximum_redemption": 10000,
    },
    Channel.CORPORATE: {
        "points_per_dollar": Decimal("1.5"),
        "points_per_night": 75,
        "service_multipliers": {
            ServiceType.LAUNDRY: Decimal("1.5"),
            ServiceType.TRANSPORTATION: Decimal("2.0"),
            ServiceType.TOURISM: Decimal("1.2"),
            ServiceType.TRAVEL: Decimal("1.2"),
            ServiceType.HOUSEKEEPING: Decimal("1.3"),
        },
        "points_to_money_ratio": 100,
        "minimum_redemption": 1000,
        "maximum_redemption": 20000,
    },
    Channel.DIRECT: {
        "points_per_dollar": Decimal("2"),
        "points_per_night": 100,
        "service_multipliers": {service: Decimal("1.5") for service in ServiceType},
        "points_to_money_ratio": 100,
        "minimum_redemption": 500,
        "maximum_redemption": None,
    },
}


def default_channel_rules(channel: str) -> ChannelRules:
    """Stock rules for a channel."""
    try:
        defaults = _CHANNEL_DEFAULTS[Channel(channel)]
    except ValueError:
        raise ValidationError("LOYALTY_INVALID_RULES", message=f"Unknown channel '{channel}'")
    return build_channel_rules(channel, **defaults)
