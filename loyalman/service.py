"""
Loyalman public API.

CONFIG:
    LoyaltyService.upsert_program_config(hotel_id, channel, tiers, rules)
    LoyaltyService.get_program(hotel_id)
    LoyaltyService.get_channel_rules(hotel_id, channel)

MEMBERS:
    LoyaltyService.enroll(hotel_id, guest_id, channel)
    LoyaltyService.get_member_view(member_id)
    LoyaltyService.get_history(member_id)
    LoyaltyService.list_members(hotel_id, tier=None, channel=None)

LEDGER:
    LoyaltyService.record_transaction(member_id, txn)
    LoyaltyService.redeem_points(member_id, points)
    LoyaltyService.adjust_points(member_id, amount, mode, reason, actor_id)
    LoyaltyService.adjust_points_by_cash(member_id, cash, mode, reason, actor_id)
    LoyaltyService.preview_adjustment(member_id, amount, mode)
    LoyaltyService.expire_points(hotel_id)

REWARDS:
    LoyaltyService.create_reward(hotel_id, name, description, category, points_cost)
    LoyaltyService.update_reward(hotel_id, reward_id, **changes)
    LoyaltyService.deactivate_reward(hotel_id, reward_id)
    LoyaltyService.list_rewards(hotel_id)
    LoyaltyService.get_available_rewards(member_id)
    LoyaltyService.redeem_reward(member_id, reward_id)
"""

from datetime import datetime
from decimal import Decimal

from loyalman.choices import AdjustmentMode
from loyalman.engine.accrual import Transaction
from loyalman.engine.rules import ChannelRules, default_channel_rules
from loyalman.engine.tiers import TierTable, default_tier_table
from loyalman.models import LedgerEntry, LoyaltyMember, LoyaltyProgram, Reward
from loyalman.services import ledger as ledger_service
from loyalman.services import program as program_service
from loyalman.services import rewards as rewards_service
from loyalman.services.ledger import AdjustmentPreview, MemberView
from loyalman.services.program import ProgramConfigResult
from loyalman.services.rewards import RewardOption


class LoyaltyService:
    """
    Loyalman public API.

    Uses @classmethod for extensibility. All point mutations run inside
    transaction.atomic() with the member row locked.
    """

    # ======================================================================
    # Program configuration
    # ======================================================================

    @classmethod
    def upsert_program_config(
        cls,
        hotel_id: str,
        channel: str,
        tiers: TierTable | list | None = None,
        rules: ChannelRules | dict | None = None,
        expiration_months: int | None = None,
        is_active: bool | None = None,
    ) -> ProgramConfigResult:
        """Create or update the hotel tier table and one channel's rules."""
        return program_service.upsert_program_config(
            hotel_id,
            channel,
            tiers=tiers,
            rules=rules,
            expiration_months=expiration_months,
            is_active=is_active,
        )

    @classmethod
    def get_program(cls, hotel_id: str) -> LoyaltyProgram:
        return program_service.get_program(hotel_id)

    @classmethod
    def get_channel_rules(cls, hotel_id: str, channel: str) -> ChannelRules:
        return program_service.get_channel_rules(hotel_id, channel)

    @classmethod
    def default_channel_rules(cls, channel: str) -> ChannelRules:
        """Stock rules used when a channel is configured without rules."""
        return default_channel_rules(channel)

    @classmethod
    def default_tier_table(cls) -> TierTable:
        """Stock BRONZE/SILVER/GOLD/PLATINUM table for new programs."""
        return default_tier_table()

    # ======================================================================
    # Members
    # ======================================================================

    @classmethod
    def enroll(cls, hotel_id: str, guest_id: str, channel: str) -> LoyaltyMember:
        """Enroll a guest. Idempotent."""
        return ledger_service.enroll(hotel_id, guest_id, channel)

    @classmethod
    def get_member_view(cls, member_id: int) -> MemberView:
        return ledger_service.get_member_view(member_id)

    @classmethod
    def get_history(
        cls,
        member_id: int,
        limit: int | None = None,
        entry_type: str | None = None,
    ) -> list[LedgerEntry]:
        return ledger_service.get_history(member_id, limit=limit, entry_type=entry_type)

    @classmethod
    def list_members(
        cls,
        hotel_id: str,
        tier: str | None = None,
        channel: str | None = None,
        min_points: int | None = None,
        max_points: int | None = None,
        order_by: str = "-tier_points",
        limit: int | None = None,
        offset: int = 0,
    ) -> list[LoyaltyMember]:
        """Active members of a hotel, filtered by tier, channel and available points."""
        return ledger_service.list_members(
            hotel_id,
            tier=tier,
            channel=channel,
            min_points=min_points,
            max_points=max_points,
            order_by=order_by,
            limit=limit,
            offset=offset,
        )

    # ======================================================================
    # Ledger
    # ======================================================================

    @classmethod
    def record_transaction(
        cls,
        member_id: int,
        txn: Transaction,
        channel: str | None = None,
        reference: str = "",
        actor_id: str = "",
    ) -> int:
        """Award points for a transaction. Returns points earned."""
        return ledger_service.record_transaction(
            member_id,
            txn,
            channel=channel,
            reference=reference,
            actor_id=actor_id,
        )

    @classmethod
    def redeem_points(
        cls,
        member_id: int,
        points: int,
        reason: str = "",
        reference: str = "",
        actor_id: str = "",
    ) -> Decimal:
        """Redeem points. Returns their cash value."""
        return ledger_service.redeem_points(
            member_id,
            points,
            reason=reason,
            reference=reference,
            actor_id=actor_id,
        )

    @classmethod
    def adjust_points(
        cls,
        member_id: int,
        amount: int,
        mode: str,
        reason: str,
        actor_id: str = "",
    ) -> LedgerEntry:
        return ledger_service.adjust_points(member_id, amount, mode, reason, actor_id=actor_id)

    @classmethod
    def adjust_points_by_cash(
        cls,
        member_id: int,
        cash_amount,
        mode: str,
        reason: str,
        actor_id: str = "",
    ) -> LedgerEntry:
        return ledger_service.adjust_points_by_cash(member_id, cash_amount, mode, reason, actor_id=actor_id)

    @classmethod
    def preview_adjustment(
        cls,
        member_id: int,
        amount,
        mode: str = AdjustmentMode.ALL,
        cash: bool = False,
    ) -> AdjustmentPreview:
        return ledger_service.preview_adjustment(member_id, amount, mode=mode, cash=cash)

    @classmethod
    def expire_points(cls, hotel_id: str | None = None, now: datetime | None = None) -> int:
        return ledger_service.expire_points(hotel_id=hotel_id, now=now)

    # ======================================================================
    # Rewards
    # ======================================================================

    @classmethod
    def create_reward(
        cls,
        hotel_id: str,
        name: str,
        description: str,
        category: str,
        points_cost: int,
        **options,
    ) -> Reward:
        """Add a catalog reward. options: value, required_tier, validity_days, usage_limit, ..."""
        return rewards_service.create_reward(hotel_id, name, description, category, points_cost, **options)

    @classmethod
    def update_reward(cls, hotel_id: str, reward_id: int, **changes) -> Reward:
        return rewards_service.update_reward(hotel_id, reward_id, **changes)

    @classmethod
    def deactivate_reward(cls, hotel_id: str, reward_id: int) -> Reward:
        return rewards_service.deactivate_reward(hotel_id, reward_id)

    @classmethod
    def list_rewards(
        cls,
        hotel_id: str,
        category: str | None = None,
        include_inactive: bool = False,
    ) -> list[Reward]:
        return rewards_service.list_rewards(hotel_id, category=category, include_inactive=include_inactive)

    @classmethod
    def get_available_rewards(cls, member_id: int) -> list[RewardOption]:
        """Active rewards flagged with whether the member can redeem each."""
        return rewards_service.available_rewards(member_id)

    @classmethod
    def redeem_reward(
        cls,
        member_id: int,
        reward_id: int,
        reference: str = "",
        actor_id: str = "",
    ) -> LedgerEntry:
        """Spend points on a reward. Returns the REDEEM entry."""
        return ledger_service.redeem_reward(member_id, reward_id, reference=reference, actor_id=actor_id)
