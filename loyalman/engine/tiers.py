"""
Tier table validation and tier resolution.

A TierTable is an ordered, non-overlapping set of closed point ranges:

    BRONZE   [0, 999]
    SILVER   [1000, 2999]
    GOLD     [3000, 5999]
    PLATINUM [6000, 999999]   <- UNBOUNDED_POINTS sentinel

Validation runs when a program is saved. Resolution runs on every
tier-point change and never fails for a validated table.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from loyalman.choices import TierName
from loyalman.exceptions import OverlappingTiersError, ValidationError

UNBOUNDED_POINTS = 999_999


@dataclass(frozen=True)
class Tier:
    """A named status band with an inclusive points range."""

    name: str
    min_points: int
    max_points: int
    benefits: tuple[str, ...] = ()
    display_color: str = "#CD7F32"
    discount_percentage: Decimal = Decimal("0")

    @property
    def is_unbounded(self) -> bool:
        return self.max_points >= UNBOUNDED_POINTS

    def contains(self, points: int) -> bool:
        return self.min_points <= points <= self.max_points

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "min_points": self.min_points,
            "max_points": self.max_points,
            "benefits": list(self.benefits),
            "display_color": self.display_color,
            "discount_percentage": str(self.discount_percentage),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Tier":
        try:
            return cls(
                name=str(data["name"]),
                min_points=int(data["min_points"]),
                max_points=int(data["max_points"]),
                benefits=tuple(data.get("benefits") or ()),
                display_color=data.get("display_color") or "#CD7F32",
                discount_percentage=Decimal(str(data.get("discount_percentage") or "0")),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError("LOYALTY_INVALID_TIER", message=f"Invalid tier: {e}", tier=data)


@dataclass(frozen=True)
class TierTable:
    """Validated tiers, ascending by min_points. Build with validate_tiers()."""

    tiers: tuple[Tier, ...] = field(default_factory=tuple)

    def __iter__(self):
        return iter(self.tiers)

    def __len__(self):
        return len(self.tiers)

    @property
    def lowest(self) -> Tier:
        return self.tiers[0]

    @property
    def highest(self) -> Tier:
        return self.tiers[-1]

    def get(self, name: str) -> Tier | None:
        for tier in self.tiers:
            if tier.name == name:
                return tier
        return None

    def rank(self, name: str) -> int | None:
        """Position of a tier, lowest first. None for names not in the table."""
        for index, tier in enumerate(self.tiers):
            if tier.name == name:
                return index
        return None

    def meets(self, current: str, required: str) -> bool:
        """True when tier `current` is `required` or above."""
        current_rank = self.rank(current)
        required_rank = self.rank(required)
        if current_rank is None or required_rank is None:
            return False
        return current_rank >= required_rank

    def as_list(self) -> list[dict]:
        return [tier.as_dict() for tier in self.tiers]

    @classmethod
    def from_list(cls, data: Iterable[dict]) -> "TierTable":
        return validate_tiers(Tier.from_dict(item) for item in data)


@dataclass(frozen=True)
class TierProgress:
    """Where a points value sits relative to the next tier."""

    current: Tier
    next_tier: Tier | None
    points_to_next_tier: int
    progress_percentage: Decimal


def validate_tiers(tiers: Iterable[Tier | dict]) -> TierTable:
    """
    Validate tiers and return them as an ascending TierTable.

    Raises:
        ValidationError: Empty table, duplicate names, bad ranges or discounts
        OverlappingTiersError: Adjacent ranges overlap
    """
    items = [t if isinstance(t, Tier) else Tier.from_dict(t) for t in tiers]
    if not items:
        raise ValidationError("LOYALTY_EMPTY_TIERS")

    names = [t.name for t in items]
    if len(set(names)) != len(names):
        raise ValidationError("LOYALTY_DUPLICATE_TIER", names=names)

    ordered = sorted(items, key=lambda t: t.min_points)

    for tier in ordered:
        if not tier.name:
            raise ValidationError("LOYALTY_INVALID_TIER", message="Tier is missing name")
        if tier.min_points < 0:
            raise ValidationError(
                "LOYALTY_INVALID_TIER",
                message=f"Tier {tier.name} has invalid min_points",
                tier=tier.name,
            )
        if tier.max_points < tier.min_points:
            raise ValidationError(
                "LOYALTY_INVALID_TIER",
                message=f"Tier {tier.name}: max_points must be >= min_points",
                tier=tier.name,
            )
        if not Decimal("0") <= tier.discount_percentage <= Decimal("100"):
            raise ValidationError(
                "LOYALTY_INVALID_TIER",
                message=f"Tier {tier.name} has invalid discount percentage",
                tier=tier.name,
            )

    for lower, upper in zip(ordered, ordered[1:]):
        if lower.max_points >= upper.min_points:
            raise OverlappingTiersError(lower.name, upper.name, lower.max_points, upper.min_points)

    return TierTable(tuple(ordered))


def resolve_tier(points: int, table: TierTable) -> Tier:
    """
    Map a points value to its tier.

    Below the first tier resolves to the lowest tier, above the last to the
    highest. A value in a gap between tiers keeps the highest tier already
    reached.
    """
    if points < table.lowest.min_points:
        return table.lowest

    resolved = table.lowest
    for tier in table:
        if tier.contains(points):
            return tier
        if tier.min_points <= points:
            resolved = tier
    return resolved


def tier_progress(points: int, table: TierTable) -> TierProgress:
    """Progress towards the next tier, as points left and a percentage."""
    current = resolve_tier(points, table)
    index = table.tiers.index(current)

    if index == len(table) - 1:
        return TierProgress(current, None, 0, Decimal("100.0"))

    next_tier = table.tiers[index + 1]
    span = next_tier.min_points - current.min_points
    percent = Decimal(points - current.min_points) * 100 / Decimal(span)
    percent = min(Decimal("100"), max(Decimal("0"), percent))

    return TierProgress(
        current=current,
        next_tier=next_tier,
        points_to_next_tier=max(0, next_tier.min_points - points),
        progress_percentage=percent.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP),
    )


def default_tier_table() -> TierTable:
    """Stock four-tier table for new programs."""
    return validate_tiers([
        Tier(
            name=TierName.BRONZE.value,
            min_points=0,
            max_points=999,
            benefits=("Priority email support", "Birthday bonus points"),
            display_color="#CD7F32",
            discount_percentage=Decimal("5"),
        ),
        Tier(
            name=TierName.SILVER.value,
            min_points=1000,
            max_points=2999,
            benefits=(
                "10% discount on all services",
                "Free room upgrade (subject to availability)",
                "Priority phone support",
            ),
            display_color="#C0C0C0",
            discount_percentage=Decimal("10"),
        ),
        Tier(
            name=TierName.GOLD.value,
            min_points=3000,
            max_points=5999,
            benefits=(
                "15% discount on all services",
                "Late checkout",
                "Complimentary breakfast",
                "Premium support",
            ),
            display_color="#FFD700",
            discount_percentage=Decimal("15"),
        ),
        Tier(
            name=TierName.PLATINUM.value,
            min_points=6000,
            max_points=UNBOUNDED_POINTS,
            benefits=(
                "20% discount on all services",
                "Exclusive rewards access",
                "Personal concierge",
                "Airport transfer discount",
            ),
            display_color="#E5E4E2",
            discount_percentage=Decimal("20"),
        ),
    ])
