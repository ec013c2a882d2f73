"""Program configuration service - tier tables and channel rules.

Validation runs before anything is written; a rejected configuration leaves
the stored program untouched.
"""

import logging
from dataclasses import dataclass

from django.db import transaction
from django.db.models import F

from loyalman.conf import loyalman_settings
from loyalman.engine.rules import (
    ChannelRules,
    build_channel_rules,
    default_channel_rules,
    validate_expiration_months,
)
from loyalman.engine.tiers import Tier, TierTable, default_tier_table, resolve_tier, validate_tiers
from loyalman.exceptions import NotFoundError, ValidationError
from loyalman.models import ChannelProgram, LoyaltyMember, LoyaltyProgram
from loyalman.signals import tier_changed

logger = logging.getLogger(__name__)


@dataclass
class ProgramConfigResult:
    """Outcome of upsert_program_config()."""

    program: LoyaltyProgram
    channel_program: ChannelProgram
    created: bool
    tier_table_changed: bool
    members_retiered: int = 0


def _coerce_rules(channel: str, rules) -> ChannelRules:
    if rules is None:
        return default_channel_rules(channel)
    if isinstance(rules, ChannelRules):
        if str(rules.channel) != str(channel):
            raise ValidationError(
                "LOYALTY_INVALID_RULES",
                message="Rules belong to another channel",
                channel=str(channel),
                rules_channel=str(rules.channel),
            )
        return rules
    values = dict(rules)
    values.pop("channel", None)
    return build_channel_rules(channel, **values)


def _coerce_tiers(tiers) -> TierTable:
    if isinstance(tiers, TierTable):
        return tiers
    return validate_tiers(tiers)


def upsert_program_config(
    hotel_id: str,
    channel: str,
    tiers: TierTable | list[Tier | dict] | None = None,
    rules: ChannelRules | dict | None = None,
    expiration_months: int | None = None,
    is_active: bool | None = None,
) -> ProgramConfigResult:
    """
    Create or update a hotel's program and one channel's rules.

    The tier table is shared by every channel of the hotel. When it changes,
    all members of the hotel are re-resolved against the new table.

    Args:
        hotel_id: Hotel identifier
        channel: Channel whose rules are written
        tiers: New tier table (None keeps the stored one, or the stock table for new programs)
        rules: ChannelRules or raw rule values (None uses the channel's stock rules)
        expiration_months: Points expiration, 1-36 (None keeps the stored value)
        is_active: Program status (None keeps the stored value, True for new programs)

    Raises:
        ValidationError: Overlapping tiers or out-of-range values
    """
    table = _coerce_tiers(tiers) if tiers is not None else None
    channel_rules = _coerce_rules(channel, rules)
    if expiration_months is not None:
        validate_expiration_months(expiration_months)

    with transaction.atomic():
        program = LoyaltyProgram.objects.select_for_update().filter(hotel_id=hotel_id).first()
        created = program is None

        if created:
            program = LoyaltyProgram(
                hotel_id=hotel_id,
                tier_table=(table or default_tier_table()).as_list(),
                expiration_months=validate_expiration_months(
                    expiration_months or loyalman_settings.DEFAULT_EXPIRATION_MONTHS
                ),
                is_active=True if is_active is None else is_active,
            )
            program.save()
            tier_table_changed = False
        else:
            new_table = table.as_list() if table is not None else program.tier_table
            tier_table_changed = new_table != program.tier_table
            program.tier_table = new_table
            if expiration_months is not None:
                program.expiration_months = expiration_months
            if is_active is not None:
                program.is_active = is_active
            program.save()

        channel_program, _ = ChannelProgram.objects.update_or_create(
            program=program,
            channel=channel_rules.channel,
            defaults={
                "points_per_dollar": channel_rules.points_per_dollar,
                "points_per_night": channel_rules.points_per_night,
                "service_multipliers": {
                    str(k): str(v) for k, v in channel_rules.service_multipliers.items()
                },
                "points_to_money_ratio": channel_rules.points_to_money_ratio,
                "minimum_redemption": channel_rules.minimum_redemption,
                "maximum_redemption": channel_rules.maximum_redemption,
            },
        )

        changes = []
        if tier_table_changed:
            changes = _retier_members(program, program.get_tier_table())

    for member, old_tier, new_tier in changes:
        tier_changed.send(sender=LoyaltyMember, member=member, old_tier=old_tier, new_tier=new_tier)

    logger.info(
        "Program %s %s (channel=%s, tier_table_changed=%s, retiered=%d)",
        hotel_id,
        "created" if created else "updated",
        channel_rules.channel,
        tier_table_changed,
        len(changes),
    )

    return ProgramConfigResult(
        program=program,
        channel_program=channel_program,
        created=created,
        tier_table_changed=tier_table_changed,
        members_retiered=len(changes),
    )


def _retier_members(program: LoyaltyProgram, table: TierTable) -> list[tuple]:
    """Re-resolve current_tier for every member of the program. MUST run inside atomic()."""
    changes = []
    members = LoyaltyMember.objects.select_for_update().filter(program=program)
    for member in members:
        new_tier = resolve_tier(member.tier_points, table).name
        if new_tier == member.current_tier:
            continue
        old_tier = member.current_tier
        LoyaltyMember.objects.filter(pk=member.pk).update(
            current_tier=new_tier,
            version=F("version") + 1,
        )
        member.current_tier = new_tier
        member.version += 1
        changes.append((member, old_tier, new_tier))
    return changes


def get_program(hotel_id: str) -> LoyaltyProgram:
    """Get hotel program or raise NotFoundError."""
    try:
        return LoyaltyProgram.objects.get(hotel_id=hotel_id)
    except LoyaltyProgram.DoesNotExist:
        raise NotFoundError("LOYALTY_PROGRAM_NOT_FOUND", hotel_id=hotel_id)


def get_tier_table(hotel_id: str) -> TierTable:
    return get_program(hotel_id).get_tier_table()


def get_channel_rules(hotel_id: str, channel: str) -> ChannelRules:
    """Get configured rules for a hotel channel or raise NotFoundError."""
    try:
        channel_program = ChannelProgram.objects.get(program__hotel_id=hotel_id, channel=channel)
    except ChannelProgram.DoesNotExist:
        raise NotFoundError("LOYALTY_CHANNEL_NOT_CONFIGURED", hotel_id=hotel_id, channel=channel)
    return channel_program.get_rules()


def list_channel_rules(hotel_id: str) -> list[ChannelRules]:
    """All configured channels of a hotel."""
    return [
        cp.get_rules()
        for cp in ChannelProgram.objects.filter(program__hotel_id=hotel_id).order_by("channel")
    ]
