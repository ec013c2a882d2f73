"""Ledger service - enrollment, earn, redeem, adjust and expire.

Every mutation:
1. locks the member row (select_for_update, bounded wait on PostgreSQL),
2. runs the pure PointsLedger operation,
3. writes the counters with a version compare-and-swap,
4. appends one LedgerEntry in the same transaction.

A lost compare-and-swap raises ConcurrencyConflict inside the transaction,
which rolls back both the counters and the entry; the whole operation is then
retried from fresh state up to MAX_RETRIES times.
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable

from django.db import OperationalError, connection, transaction
from django.db.models import F
from django.utils import timezone

from loyalman.choices import AdjustmentMode, EntryType
from loyalman.conf import loyalman_settings
from loyalman.engine.accrual import Transaction, accrual_breakdown
from loyalman.engine.ledger import LedgerOutcome, MemberState, PointsLedger
from loyalman.engine.redemption import cash_value, points_for_cash
from loyalman.engine.tiers import Tier, TierProgress, resolve_tier, tier_progress
from loyalman.exceptions import ConcurrencyConflict, NotFoundError, ValidationError
from loyalman.models import ChannelProgram, LedgerEntry, LoyaltyMember, LoyaltyProgram, Reward
from loyalman.services.program import get_channel_rules, get_program
from loyalman.services.rewards import check_reward_available
from loyalman.signals import points_adjusted, points_earned, points_redeemed, tier_changed

logger = logging.getLogger(__name__)

LOCK_NOT_AVAILABLE_SQLSTATE = "55P03"
MYSQL_LOCK_WAIT_TIMEOUT = 1205

MEMBER_ORDERINGS = (
    "tier_points",
    "available_points",
    "lifetime_points_earned",
    "lifetime_spending",
    "total_nights_stayed",
    "joined_at",
    "last_activity",
)


@dataclass(frozen=True)
class MemberView:
    """Read-only projection of a member."""

    member_id: int
    hotel_id: str
    guest_id: str
    channel: str
    tier_points: int
    available_points: int
    current_tier: str
    tier: Tier
    progress: TierProgress
    cash_value: Decimal | None
    lifetime_points_earned: int
    lifetime_points_redeemed: int
    lifetime_spending: Decimal
    total_nights_stayed: int
    joined_at: datetime
    last_activity: datetime | None
    is_active: bool


@dataclass(frozen=True)
class AdjustmentPreview:
    """What an adjustment would do, without writing it."""

    points: int
    mode: str
    tier_points: int
    available_points: int
    tier_before: str
    tier_after: str

    @property
    def tier_changed(self) -> bool:
        return self.tier_before != self.tier_after


# ======================================================================
# Reads
# ======================================================================


def get_member(member_id: int) -> LoyaltyMember:
    """Get member or raise NotFoundError."""
    try:
        return LoyaltyMember.objects.select_related("program").get(pk=member_id)
    except LoyaltyMember.DoesNotExist:
        raise NotFoundError("LOYALTY_MEMBER_NOT_FOUND", member_id=member_id)


def find_member(hotel_id: str, guest_id: str) -> LoyaltyMember | None:
    """Get a guest's membership in a hotel program."""
    try:
        return LoyaltyMember.objects.select_related("program").get(
            program__hotel_id=hotel_id,
            guest_id=guest_id,
        )
    except LoyaltyMember.DoesNotExist:
        return None


def get_member_view(member_id: int) -> MemberView:
    """Read-only view. The tier is resolved from tier_points, never read from the cache."""
    member = get_member(member_id)
    table = member.program.get_tier_table()
    tier = resolve_tier(member.tier_points, table)

    try:
        rules = get_channel_rules(member.program.hotel_id, member.channel)
        value = cash_value(member.available_points, rules)
    except NotFoundError:
        value = None

    return MemberView(
        member_id=member.pk,
        hotel_id=member.program.hotel_id,
        guest_id=member.guest_id,
        channel=member.channel,
        tier_points=member.tier_points,
        available_points=member.available_points,
        current_tier=tier.name,
        tier=tier,
        progress=tier_progress(member.tier_points, table),
        cash_value=value,
        lifetime_points_earned=member.lifetime_points_earned,
        lifetime_points_redeemed=member.lifetime_points_redeemed,
        lifetime_spending=member.lifetime_spending,
        total_nights_stayed=member.total_nights_stayed,
        joined_at=member.joined_at,
        last_activity=member.last_activity,
        is_active=member.is_active,
    )


def get_history(
    member_id: int,
    limit: int | None = None,
    entry_type: str | None = None,
) -> list[LedgerEntry]:
    """Ledger entries of a member, most recent first."""
    get_member(member_id)
    qs = LedgerEntry.objects.filter(member_id=member_id)
    if entry_type:
        qs = qs.filter(entry_type=entry_type)
    if limit is None:
        limit = loyalman_settings.HISTORY_LIMIT
    return list(qs[:limit])


def list_members(
    hotel_id: str,
    tier: str | None = None,
    channel: str | None = None,
    min_points: int | None = None,
    max_points: int | None = None,
    order_by: str = "-tier_points",
    limit: int | None = None,
    offset: int = 0,
) -> list[LoyaltyMember]:
    """
    Active members of a hotel program.

    Args:
        tier: Only members currently in this tier
        channel: Only members enrolled through this channel
        min_points / max_points: Bounds on available points
        order_by: One of MEMBER_ORDERINGS, optionally prefixed with "-"
        limit / offset: Page window (no limit returns every match)
    """
    if order_by.lstrip("-") not in MEMBER_ORDERINGS:
        raise ValidationError(message=f"Cannot order members by '{order_by}'", order_by=order_by)

    get_program(hotel_id)
    qs = LoyaltyMember.objects.filter(program__hotel_id=hotel_id, is_active=True)
    if tier:
        qs = qs.filter(current_tier=tier)
    if channel:
        qs = qs.filter(channel=channel)
    if min_points is not None:
        qs = qs.filter(available_points__gte=min_points)
    if max_points is not None:
        qs = qs.filter(available_points__lte=max_points)

    qs = qs.order_by(order_by, "id")
    end = offset + limit if limit is not None else None
    return list(qs[offset:end])


# ======================================================================
# Enrollment
# ======================================================================


def enroll(hotel_id: str, guest_id: str, channel: str) -> LoyaltyMember:
    """
    Enroll a guest in a hotel program.

    Idempotent - returns the existing membership if already enrolled.

    Raises:
        NotFoundError: Unknown program or channel not configured
        ValidationError: Program inactive
    """
    try:
        program = LoyaltyProgram.objects.get(hotel_id=hotel_id)
    except LoyaltyProgram.DoesNotExist:
        raise NotFoundError("LOYALTY_PROGRAM_NOT_FOUND", hotel_id=hotel_id)

    if not program.is_active:
        raise ValidationError("LOYALTY_PROGRAM_INACTIVE", hotel_id=hotel_id)
    if not ChannelProgram.objects.filter(program=program, channel=channel).exists():
        raise NotFoundError("LOYALTY_CHANNEL_NOT_CONFIGURED", hotel_id=hotel_id, channel=channel)

    member, created = LoyaltyMember.objects.get_or_create(
        program=program,
        guest_id=guest_id,
        defaults={
            "channel": channel,
            "current_tier": program.get_tier_table().lowest.name,
        },
    )
    if created:
        logger.info("Enrolled guest %s in %s via %s", guest_id, hotel_id, channel)
    return member


# ======================================================================
# Mutations
# ======================================================================


def record_transaction(
    member_id: int,
    txn: Transaction,
    channel: str | None = None,
    reference: str = "",
    actor_id: str = "",
    description: str = "",
) -> int:
    """
    Award points for a booking or POS transaction.

    Args:
        member_id: Member ID
        txn: Amount spent, nights and optional service type
        channel: Rules to earn under (defaults to the member's channel)
        reference: External reference (booking:123)
        actor_id: Who triggered the earn
        description: Audit text (generated when empty)

    Returns:
        Points earned
    """

    def apply(member, ledger, program):
        rules = get_channel_rules(program.hotel_id, channel or member.channel)
        breakdown = accrual_breakdown(rules, txn)
        outcome = ledger.earn(_state_of(member, ledger), breakdown.total)
        now = timezone.now()

        _write_member(
            member,
            outcome,
            lifetime_points_earned=member.lifetime_points_earned + breakdown.total,
            lifetime_spending=member.lifetime_spending + txn.amount_spent,
            total_nights_stayed=member.total_nights_stayed + txn.nights,
        )
        entry = _append_entry(
            member,
            EntryType.EARN,
            outcome,
            requested=breakdown.total,
            reason=description or _earn_description(txn, breakdown),
            reference=reference,
            actor_id=actor_id,
            amount_spent=txn.amount_spent,
            nights=txn.nights,
            service_type=txn.service_type or "",
            expires_at=_add_months(now, program.expiration_months) if breakdown.total else None,
        )
        return breakdown.total, [(points_earned, {"member": member, "entry": entry})]

    return _run_locked(member_id, apply)


def redeem_points(
    member_id: int,
    points: int,
    reason: str = "",
    reference: str = "",
    actor_id: str = "",
) -> Decimal:
    """
    Redeem points for their cash value.

    Raises:
        InvalidAmountError: points <= 0
        InsufficientPointsError: Below minimum, above maximum or over balance

    Returns:
        Cash value of the redeemed points
    """

    def apply(member, ledger, program):
        rules = get_channel_rules(program.hotel_id, member.channel)
        outcome = ledger.redeem(_state_of(member, ledger), points, rules)
        value = cash_value(points, rules)

        _write_member(
            member,
            outcome,
            lifetime_points_redeemed=member.lifetime_points_redeemed + points,
        )
        entry = _append_entry(
            member,
            EntryType.REDEEM,
            outcome,
            requested=-points,
            reason=reason or f"Redeemed {points} points",
            reference=reference,
            actor_id=actor_id,
            cash_value=value,
        )
        return value, [(points_redeemed, {"member": member, "entry": entry})]

    return _run_locked(member_id, apply)


def redeem_reward(
    member_id: int,
    reward_id: int,
    reference: str = "",
    actor_id: str = "",
    now: datetime | None = None,
) -> LedgerEntry:
    """
    Spend available points on a catalog reward.

    Channel redemption bounds do not apply; the reward's points_cost is the
    price. Tier gating uses the tier resolved from tier_points.

    Raises:
        NotFoundError: Reward not in the member's program
        RewardUnavailableError: Inactive, outside its window, sold out or tier too low
        InsufficientPointsError: points_cost above available points

    Returns:
        The REDEEM LedgerEntry, linked to the reward
    """

    def apply(member, ledger, program):
        try:
            reward = Reward.objects.select_for_update().get(pk=reward_id, program=program)
        except Reward.DoesNotExist:
            raise NotFoundError("LOYALTY_REWARD_NOT_FOUND", reward_id=reward_id)

        state = _state_of(member, ledger)
        check_reward_available(reward, state.current_tier, state.available_points, ledger.table, now)
        outcome = ledger.redeem(state, reward.points_cost)

        _write_member(
            member,
            outcome,
            lifetime_points_redeemed=member.lifetime_points_redeemed + reward.points_cost,
        )
        Reward.objects.filter(pk=reward.pk).update(
            times_redeemed=F("times_redeemed") + 1,
            total_value_redeemed=F("total_value_redeemed") + reward.value,
        )
        entry = _append_entry(
            member,
            EntryType.REDEEM,
            outcome,
            requested=-reward.points_cost,
            reason=f"Redeemed reward: {reward.name}",
            reference=reference,
            actor_id=actor_id,
            cash_value=reward.value,
            reward=reward,
        )
        logger.info("Member %s redeemed reward %s for %d points", member.pk, reward.pk, reward.points_cost)
        return entry, [(points_redeemed, {"member": member, "entry": entry})]

    return _run_locked(member_id, apply)


def adjust_points(
    member_id: int,
    amount: int,
    mode: str,
    reason: str,
    actor_id: str = "",
) -> LedgerEntry:
    """
    Admin correction of a member's points.

    mode=ALL moves both counters (and can change tier);
    mode=REDEEMABLE_ONLY moves available points only (tier untouched).

    Returns:
        The appended LedgerEntry (adjustment record)
    """

    def apply(member, ledger, program):
        outcome = ledger.adjust(_state_of(member, ledger), amount, mode, reason)
        extra = {}
        if outcome.tier_points_delta > 0:
            extra["lifetime_points_earned"] = member.lifetime_points_earned + outcome.tier_points_delta

        _write_member(member, outcome, **extra)
        entry = _append_entry(
            member,
            EntryType.ADJUST,
            outcome,
            requested=amount,
            reason=reason.strip(),
            actor_id=actor_id,
            mode=AdjustmentMode(mode),
        )
        return entry, [(points_adjusted, {"member": member, "entry": entry})]

    return _run_locked(member_id, apply)


def adjust_points_by_cash(
    member_id: int,
    cash_amount,
    mode: str,
    reason: str,
    actor_id: str = "",
) -> LedgerEntry:
    """Adjustment entered as money, converted with the member's channel ratio."""
    member = get_member(member_id)
    rules = get_channel_rules(member.program.hotel_id, member.channel)
    return adjust_points(member_id, points_for_cash(cash_amount, rules), mode, reason, actor_id)


def preview_adjustment(
    member_id: int,
    amount,
    mode: str = AdjustmentMode.ALL,
    cash: bool = False,
) -> AdjustmentPreview:
    """
    Resulting balances and tier of an adjustment, without writing anything.

    With cash=True, amount is money and is converted with the member's
    channel points_to_money_ratio.
    """
    member = get_member(member_id)
    if cash:
        rules = get_channel_rules(member.program.hotel_id, member.channel)
        amount = points_for_cash(amount, rules)

    ledger = _ledger_for(member.program)
    outcome = ledger.adjust(_state_of(member, ledger), amount, mode, "preview")
    return AdjustmentPreview(
        points=amount,
        mode=AdjustmentMode(mode),
        tier_points=outcome.state.tier_points,
        available_points=outcome.state.available_points,
        tier_before=outcome.tier_before,
        tier_after=outcome.tier_after,
    )


def expire_points(hotel_id: str | None = None, now: datetime | None = None) -> int:
    """
    Expire earned points past their expiration date.

    Only available points are removed; tier points and tier stay as they are.
    Each earn entry expires at most once.

    Returns:
        Total points removed
    """
    now = now or timezone.now()
    due = LedgerEntry.objects.filter(
        entry_type=EntryType.EARN,
        amount__gt=0,
        expires_at__lte=now,
        expiration__isnull=True,
        member__is_active=True,
        member__program__is_active=True,
    )
    if hotel_id:
        due = due.filter(member__program__hotel_id=hotel_id)

    total = 0
    for earn_entry in due.order_by("expires_at", "id"):
        try:
            total += _expire_entry(earn_entry)
        except NotFoundError:
            # Deactivated between the query and the lock
            logger.warning("Skipping expiry of entry %s: member %s is inactive", earn_entry.pk, earn_entry.member_id)

    if total:
        logger.info("Expired %d points (hotel=%s)", total, hotel_id or "*")
    return total


def _expire_entry(earn_entry: LedgerEntry) -> int:
    def apply(member, ledger, program):
        if LedgerEntry.objects.filter(expired_entry=earn_entry).exists():
            return 0, []
        outcome = ledger.expire(_state_of(member, ledger), earn_entry.amount)
        _write_member(member, outcome)
        _append_entry(
            member,
            EntryType.EXPIRE,
            outcome,
            requested=-earn_entry.amount,
            reason=f"Points expired from: {earn_entry.reason}",
            expired_entry=earn_entry,
        )
        return -outcome.available_points_delta, []

    return _run_locked(earn_entry.member_id, apply)


# ======================================================================
# Internals
# ======================================================================


def _run_locked(member_id: int, apply: Callable) -> object:
    """
    Run apply(member, ledger, program) on a locked member inside atomic().

    apply returns (result, [(signal, kwargs), ...]); signals are sent after
    commit. ConcurrencyConflict is retried from fresh state.
    """
    retries = loyalman_settings.MAX_RETRIES
    attempt = 0
    while True:
        try:
            with transaction.atomic():
                member = _get_member_for_update(member_id)
                program = LoyaltyProgram.objects.get(pk=member.program_id)
                result, events = apply(member, _ledger_for(program), program)
            break
        except ConcurrencyConflict:
            if attempt >= retries:
                logger.warning("Giving up on member %s after %d retries", member_id, retries)
                raise
            attempt += 1
            logger.warning("Concurrent update on member %s, retry %d/%d", member_id, attempt, retries)

    for signal, kwargs in events:
        signal.send(sender=LoyaltyMember, **kwargs)
        entry = kwargs.get("entry")
        if entry is not None and entry.tier_before != entry.tier_after:
            tier_changed.send(
                sender=LoyaltyMember,
                member=kwargs["member"],
                old_tier=entry.tier_before,
                new_tier=entry.tier_after,
            )
    return result


def _get_member_for_update(member_id: int) -> LoyaltyMember:
    """
    Get member with row-level lock for mutation.

    MUST be called inside transaction.atomic().
    """
    if connection.vendor == "postgresql":
        with connection.cursor() as cursor:
            cursor.execute(
                "SELECT set_config('lock_timeout', %s, true)",
                [f"{loyalman_settings.LOCK_TIMEOUT_MS}ms"],
            )
    try:
        return LoyaltyMember.objects.select_for_update().get(pk=member_id, is_active=True)
    except LoyaltyMember.DoesNotExist:
        raise NotFoundError("LOYALTY_MEMBER_NOT_FOUND", member_id=member_id)
    except OperationalError as e:
        if not _is_lock_timeout(e):
            raise
        raise ConcurrencyConflict("LOYALTY_LOCK_TIMEOUT", member_id=member_id) from e


def _is_lock_timeout(error: OperationalError) -> bool:
    """Lock wait errors only: PostgreSQL 55P03, MySQL 1205, SQLite 'database is locked'."""
    cause = error.__cause__
    sqlstate = getattr(cause, "pgcode", None) or getattr(cause, "sqlstate", None)
    if sqlstate == LOCK_NOT_AVAILABLE_SQLSTATE:
        return True
    args = getattr(cause, "args", None) or error.args
    if args and args[0] == MYSQL_LOCK_WAIT_TIMEOUT:
        return True
    return "database is locked" in str(error)


def _ledger_for(program: LoyaltyProgram) -> PointsLedger:
    return PointsLedger(program.get_tier_table(), loyalman_settings.OVERDEDUCTION_POLICY)


def _state_of(member: LoyaltyMember, ledger: PointsLedger) -> MemberState:
    return ledger.refresh(MemberState(member.tier_points, member.available_points, member.current_tier))


def _write_member(member: LoyaltyMember, outcome: LedgerOutcome, **fields) -> None:
    """Compare-and-swap the counters on version. Raises ConcurrencyConflict on a lost update."""
    state = outcome.state
    now = timezone.now()
    updated = LoyaltyMember.objects.filter(pk=member.pk, version=member.version).update(
        tier_points=state.tier_points,
        available_points=state.available_points,
        current_tier=state.current_tier,
        last_activity=now,
        version=F("version") + 1,
        **fields,
    )
    if not updated:
        raise ConcurrencyConflict(member_id=member.pk, version=member.version)

    member.tier_points = state.tier_points
    member.available_points = state.available_points
    member.current_tier = state.current_tier
    member.last_activity = now
    member.version += 1
    for name, value in fields.items():
        setattr(member, name, value)


def _append_entry(
    member: LoyaltyMember,
    entry_type: str,
    outcome: LedgerOutcome,
    requested: int,
    reason: str,
    **fields,
) -> LedgerEntry:
    return LedgerEntry.objects.create(
        member=member,
        entry_type=entry_type,
        requested_amount=requested,
        amount=outcome.available_points_delta,
        tier_points_delta=outcome.tier_points_delta,
        resulting_tier_points=outcome.state.tier_points,
        resulting_available_points=outcome.state.available_points,
        tier_before=outcome.tier_before,
        tier_after=outcome.tier_after,
        reason=reason,
        **fields,
    )


def _earn_description(txn: Transaction, breakdown) -> str:
    parts = [f"Earned {breakdown.total} points"]
    if txn.amount_spent:
        parts.append(f"for {txn.amount_spent} spent")
    if txn.service_type:
        parts.append(f"on {txn.service_type}")
    if txn.nights:
        parts.append(f"and {txn.nights} night(s) stayed")
    return " ".join(parts)


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)
