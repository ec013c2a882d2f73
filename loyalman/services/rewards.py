"""Rewards catalog service - create, update, deactivate and list rewards.

Redeeming a reward is a ledger mutation and lives in
services.ledger.redeem_reward, which uses check_reward_available() from here.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from loyalman.choices import RewardCategory
from loyalman.engine.money import quantize_money
from loyalman.engine.tiers import TierTable, resolve_tier
from loyalman.exceptions import (
    InsufficientPointsError,
    NotFoundError,
    RewardUnavailableError,
    ValidationError,
)
from loyalman.models import LoyaltyMember, Reward
from loyalman.services.program import get_program

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "category",
    "points_cost",
    "value",
    "required_tier",
    "validity_days",
    "usage_limit",
    "available_from",
    "available_until",
    "terms",
    "is_active",
)


@dataclass(frozen=True)
class RewardOption:
    """A catalog reward as seen by one member."""

    reward: Reward
    can_redeem: bool
    reason: str | None = None
    points_needed: int = 0


def _invalid(message: str, **data) -> ValidationError:
    return ValidationError("LOYALTY_INVALID_REWARD", message=message, **data)


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _validate(values: dict, table: TierTable) -> dict:
    """Check reward values against the program. Returns them with money quantized."""
    if not (values.get("name") or "").strip():
        raise _invalid("Reward name is required")
    if not (values.get("description") or "").strip():
        raise _invalid("Reward description is required")
    try:
        values["category"] = RewardCategory(values.get("category"))
    except ValueError:
        raise _invalid(f"Unknown reward category '{values.get('category')}'", category=str(values.get("category")))

    cost = values.get("points_cost")
    if not _is_count(cost) or cost < 1:
        raise _invalid("points_cost must be a whole number >= 1", points_cost=str(cost))

    values["value"] = quantize_money(values.get("value") or 0)
    if values["value"] < 0:
        raise _invalid("value must be >= 0", value=str(values["value"]))

    required = values.get("required_tier") or ""
    if required and table.get(required) is None:
        raise _invalid(f"Tier '{required}' is not in the program", required_tier=required)
    values["required_tier"] = required

    validity = values.get("validity_days", 30)
    if not _is_count(validity) or validity < 1:
        raise _invalid("validity_days must be a whole number >= 1", validity_days=str(validity))

    limit = values.get("usage_limit")
    if limit is not None and (not _is_count(limit) or limit < 0):
        raise _invalid("usage_limit must be empty or a whole number >= 0", usage_limit=str(limit))

    start, end = values.get("available_from"), values.get("available_until")
    if start and end and end <= start:
        raise _invalid("available_until must be after available_from")

    return values


# ======================================================================
# Catalog
# ======================================================================


def create_reward(
    hotel_id: str,
    name: str,
    description: str,
    category: str,
    points_cost: int,
    value=0,
    required_tier: str = "",
    validity_days: int = 30,
    usage_limit: int | None = None,
    available_from: datetime | None = None,
    available_until: datetime | None = None,
    terms: str = "",
    created_by: str = "",
) -> Reward:
    """
    Add a reward to a hotel's catalog.

    Raises:
        NotFoundError: Unknown program
        ValidationError: Missing or out-of-range values, unknown tier
    """
    program = get_program(hotel_id)
    values = _validate(
        {
            "name": name,
            "description": description,
            "category": category,
            "points_cost": points_cost,
            "value": value,
            "required_tier": required_tier,
            "validity_days": validity_days,
            "usage_limit": usage_limit,
            "available_from": available_from,
            "available_until": available_until,
            "terms": terms,
        },
        program.get_tier_table(),
    )
    reward = Reward.objects.create(program=program, created_by=created_by, **values)
    logger.info("Reward %s created for %s (%d pts)", reward.pk, hotel_id, reward.points_cost)
    return reward


def get_reward(hotel_id: str, reward_id: int) -> Reward:
    """Get a reward of the hotel or raise NotFoundError."""
    try:
        return Reward.objects.select_related("program").get(pk=reward_id, program__hotel_id=hotel_id)
    except Reward.DoesNotExist:
        raise NotFoundError("LOYALTY_REWARD_NOT_FOUND", hotel_id=hotel_id, reward_id=reward_id)


def update_reward(hotel_id: str, reward_id: int, **changes) -> Reward:
    """
    Update catalog fields of a reward.

    Statistics (times_redeemed, total_value_redeemed) are not editable.
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise _invalid("Fields cannot be updated", fields=sorted(unknown))

    reward = get_reward(hotel_id, reward_id)
    values = {field: getattr(reward, field) for field in EDITABLE_FIELDS}
    values.update(changes)
    values = _validate(values, reward.program.get_tier_table())

    for field in changes:
        setattr(reward, field, values[field])
    reward.save()
    logger.info("Reward %s updated (%s)", reward.pk, ", ".join(sorted(changes)))
    return reward


def deactivate_reward(hotel_id: str, reward_id: int) -> Reward:
    """Remove a reward from the catalog. Past redemptions keep referencing it."""
    reward = get_reward(hotel_id, reward_id)
    if reward.is_active:
        reward.is_active = False
        reward.save(update_fields=["is_active", "updated_at"])
        logger.info("Reward %s deactivated", reward.pk)
    return reward


def list_rewards(
    hotel_id: str,
    category: str | None = None,
    include_inactive: bool = False,
) -> list[Reward]:
    """Catalog of a hotel, cheapest first."""
    get_program(hotel_id)
    qs = Reward.objects.filter(program__hotel_id=hotel_id)
    if not include_inactive:
        qs = qs.filter(is_active=True)
    if category:
        qs = qs.filter(category=category)
    return list(qs)


# ======================================================================
# Eligibility
# ======================================================================


def check_reward_available(
    reward: Reward,
    current_tier: str,
    available_points: int,
    table: TierTable,
    now: datetime | None = None,
) -> None:
    """
    Raise unless a member with this tier and balance can redeem the reward.

    Raises:
        RewardUnavailableError: Inactive, outside its window, sold out, or tier too low
        InsufficientPointsError: Balance below points_cost
    """
    now = now or timezone.now()
    if not reward.is_active:
        raise RewardUnavailableError("LOYALTY_REWARD_INACTIVE", reward_id=reward.pk)
    if reward.available_from and reward.available_from > now:
        raise RewardUnavailableError("LOYALTY_REWARD_NOT_STARTED", reward_id=reward.pk)
    if reward.available_until and reward.available_until < now:
        raise RewardUnavailableError("LOYALTY_REWARD_ENDED", reward_id=reward.pk)
    if reward.is_sold_out:
        raise RewardUnavailableError("LOYALTY_REWARD_LIMIT_REACHED", reward_id=reward.pk)

    if available_points < reward.points_cost:
        raise InsufficientPointsError(
            "LOYALTY_INSUFFICIENT_POINTS",
            available=available_points,
            requested=reward.points_cost,
            points_needed=reward.points_cost - available_points,
        )

    if reward.required_tier and not table.meets(current_tier, reward.required_tier):
        raise RewardUnavailableError(
            "LOYALTY_TIER_REQUIRED",
            message=f"Requires {reward.required_tier} tier or higher",
            current_tier=current_tier,
            required_tier=reward.required_tier,
        )


def available_rewards(member_id: int, now: datetime | None = None) -> list[RewardOption]:
    """Active catalog of the member's hotel, each flagged redeemable or not (with the reason code)."""
    try:
        member = LoyaltyMember.objects.select_related("program").get(pk=member_id)
    except LoyaltyMember.DoesNotExist:
        raise NotFoundError("LOYALTY_MEMBER_NOT_FOUND", member_id=member_id)

    table = member.program.get_tier_table()
    tier = resolve_tier(member.tier_points, table).name
    options = []
    for reward in Reward.objects.filter(program=member.program, is_active=True):
        try:
            check_reward_available(reward, tier, member.available_points, table, now)
            options.append(RewardOption(reward, True))
        except (RewardUnavailableError, InsufficientPointsError) as e:
            options.append(RewardOption(reward, False, e.code, e.data.get("points_needed", 0)))
    return options
