"""Points earned per transaction under one channel's rules."""

from dataclasses import dataclass
from decimal import Decimal

from loyalman.choices import ServiceType
from loyalman.engine.money import round_half_up, to_decimal
from loyalman.engine.rules import ChannelRules
from loyalman.exceptions import InvalidAmountError


@dataclass(frozen=True)
class Transaction:
    """A booking or POS event that earns points."""

    amount_spent: Decimal = Decimal("0")
    nights: int = 0
    service_type: str | None = None

    def __post_init__(self):
        amount = to_decimal(self.amount_spent, "amount_spent")
        if amount < 0:
            raise InvalidAmountError(message="amount_spent must be >= 0", amount_spent=str(amount))
        if isinstance(self.nights, bool) or not isinstance(self.nights, int):
            raise InvalidAmountError(message="nights must be a whole number", nights=str(self.nights))
        if self.nights < 0:
            raise InvalidAmountError(message="nights must be >= 0", nights=self.nights)
        if self.service_type is not None:
            try:
                object.__setattr__(self, "service_type", ServiceType(self.service_type))
            except ValueError:
                raise InvalidAmountError(
                    message=f"Unknown service type '{self.service_type}'",
                    service_type=str(self.service_type),
                )
        object.__setattr__(self, "amount_spent", amount)


@dataclass(frozen=True)
class AccrualBreakdown:
    """Unrounded spending and nights portions of an accrual."""

    spending_points: Decimal
    night_points: int
    total: int


def accrual_breakdown(rules: ChannelRules, txn: Transaction) -> AccrualBreakdown:
    base = txn.amount_spent * rules.points_per_dollar
    if txn.service_type is not None:
        base *= rules.multiplier(txn.service_type)
    night_bonus = txn.nights * rules.points_per_night
    return AccrualBreakdown(
        spending_points=base,
        night_points=night_bonus,
        total=round_half_up(base + night_bonus),
    )


def earned_points(rules: ChannelRules, txn: Transaction) -> int:
    """
    Points earned for one transaction.

    (amount_spent * points_per_dollar * multiplier) + nights * points_per_night,
    rounded half-up to whole points.
    """
    return accrual_breakdown(rules, txn).total
