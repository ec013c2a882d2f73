"""
Two-counter points ledger.

Every member has:
    tier_points       status-determining; only earn, ALL adjustments and
                      nothing else move it
    available_points  redeemable balance

current_tier is always resolve_tier(tier_points). PointsLedger never mutates
its input: each operation returns a LedgerOutcome with the new state and the
deltas that were actually applied (which differ from the requested amount
when a deduction is clamped at zero).
"""

import logging
from dataclasses import dataclass, replace

from loyalman.choices import AdjustmentMode, OverdeductionPolicy
from loyalman.engine.redemption import check_redeemable
from loyalman.engine.rules import ChannelRules
from loyalman.engine.tiers import TierTable, resolve_tier
from loyalman.exceptions import InsufficientPointsError, InvalidAmountError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemberState:
    """Counters of one member."""

    tier_points: int = 0
    available_points: int = 0
    current_tier: str = ""


@dataclass(frozen=True)
class LedgerOutcome:
    """Result of one ledger operation."""

    state: MemberState
    tier_points_delta: int
    available_points_delta: int
    tier_before: str
    tier_after: str

    @property
    def tier_changed(self) -> bool:
        return self.tier_before != self.tier_after


class PointsLedger:
    """
    Earn / redeem / adjust / expire over MemberState.

    Args:
        table: Tier table used to recompute current_tier
        overdeduction: "clamp" floors deductions at zero, "reject" raises
    """

    def __init__(self, table: TierTable, overdeduction: str = OverdeductionPolicy.CLAMP):
        self.table = table
        self.overdeduction = OverdeductionPolicy(overdeduction)

    def initial_state(self) -> MemberState:
        return MemberState(0, 0, self.table.lowest.name)

    def refresh(self, state: MemberState) -> MemberState:
        """Recompute the cached tier from tier_points."""
        return replace(state, current_tier=resolve_tier(state.tier_points, self.table).name)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def earn(self, state: MemberState, points: int) -> LedgerOutcome:
        """Credit both counters and re-resolve the tier."""
        if points < 0:
            raise InvalidAmountError("LOYALTY_INVALID_POINTS", message="Points must be >= 0", points=points)

        new_state = self.refresh(replace(
            state,
            tier_points=state.tier_points + points,
            available_points=state.available_points + points,
        ))
        return self._outcome(state, new_state)

    def redeem(self, state: MemberState, points: int, rules: ChannelRules | None = None) -> LedgerOutcome:
        """
        Debit available points. Tier points and tier are never touched.

        With rules, the channel minimum and maximum apply (cash redemption).
        Without, only the balance is checked (catalog rewards carry their own price).
        """
        if rules is not None:
            check_redeemable(points, rules)
        elif points <= 0:
            raise InvalidAmountError("LOYALTY_INVALID_POINTS", points=points)
        if points > state.available_points:
            raise InsufficientPointsError(
                "LOYALTY_INSUFFICIENT_POINTS",
                available=state.available_points,
                requested=points,
            )

        new_state = replace(state, available_points=state.available_points - points)
        return self._outcome(state, new_state)

    def adjust(self, state: MemberState, amount: int, mode: str, reason: str) -> LedgerOutcome:
        """
        Admin correction.

        ALL moves both counters and can change tier either way.
        REDEEMABLE_ONLY moves available points only; tier points and the
        current tier stay exactly as they were (goodwill credits).

        Raises:
            ValidationError: Empty reason or unknown mode
            InvalidAmountError: Zero amount
            InsufficientPointsError: Over-deduction under the "reject" policy
        """
        if not reason or not reason.strip():
            raise ValidationError("LOYALTY_REASON_REQUIRED")
        try:
            mode = AdjustmentMode(mode)
        except ValueError:
            raise ValidationError("LOYALTY_INVALID_CONFIG", message=f"Unknown adjustment mode '{mode}'")
        if amount == 0:
            raise InvalidAmountError(message="Adjustment must be non-zero", amount=amount)

        available = self._apply(state.available_points, amount, "available_points")

        if mode == AdjustmentMode.REDEEMABLE_ONLY:
            new_state = replace(state, available_points=available)
            return self._outcome(state, new_state)

        tier_points = self._apply(state.tier_points, amount, "tier_points")
        new_state = self.refresh(replace(state, tier_points=tier_points, available_points=available))
        return self._outcome(state, new_state)

    def expire(self, state: MemberState, points: int) -> LedgerOutcome:
        """Remove up to `points` from the available balance. Status is unaffected."""
        if points <= 0:
            raise InvalidAmountError("LOYALTY_INVALID_POINTS", points=points)
        new_state = replace(state, available_points=max(0, state.available_points - points))
        return self._outcome(state, new_state)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply(self, balance: int, amount: int, counter: str) -> int:
        result = balance + amount
        if result >= 0:
            return result
        if self.overdeduction == OverdeductionPolicy.REJECT:
            raise InsufficientPointsError(
                "LOYALTY_INSUFFICIENT_POINTS",
                message=f"Deduction exceeds {counter}",
                counter=counter,
                available=balance,
                requested=-amount,
            )
        logger.info("Clamping %s deduction of %s at zero (balance %s)", counter, -amount, balance)
        return 0

    def _outcome(self, before: MemberState, after: MemberState) -> LedgerOutcome:
        return LedgerOutcome(
            state=after,
            tier_points_delta=after.tier_points - before.tier_points,
            available_points_delta=after.available_points - before.available_points,
            tier_before=before.current_tier,
            tier_after=after.current_tier,
        )
