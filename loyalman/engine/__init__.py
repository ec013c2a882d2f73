"""
Loyalman engine - pure tier, accrual, redemption and ledger logic.

No database access. The services layer loads state, runs these functions
and persists the outcome.
"""

from loyalman.engine.accrual import AccrualBreakdown, Transaction, accrual_breakdown, earned_points
from loyalman.engine.ledger import LedgerOutcome, MemberState, PointsLedger
from loyalman.engine.redemption import cash_value, check_redeemable, is_redeemable, points_for_cash
from loyalman.engine.rules import (
    ChannelRules,
    build_channel_rules,
    default_channel_rules,
    validate_expiration_months,
)
from loyalman.engine.tiers import (
    UNBOUNDED_POINTS,
    Tier,
    TierProgress,
    TierTable,
    default_tier_table,
    resolve_tier,
    tier_progress,
    validate_tiers,
)

__all__ = [
    "AccrualBreakdown",
    "ChannelRules",
    "LedgerOutcome",
    "MemberState",
    "PointsLedger",
    "Tier",
    "TierProgress",
    "TierTable",
    "Transaction",
    "UNBOUNDED_POINTS",
    "accrual_breakdown",
    "build_channel_rules",
    "cash_value",
    "check_redeemable",
    "default_channel_rules",
    "default_tier_table",
    "earned_points",
    "is_redeemable",
    "points_for_cash",
    "resolve_tier",
    "tier_progress",
    "validate_expiration_months",
    "validate_tiers",
]
