"""Loyalman models.

- LoyaltyProgram: one per hotel, owns the shared tier table
- ChannelProgram: accrual/redemption rules per (program, channel)
- LoyaltyMember: two point counters and cached tier
- LedgerEntry: append-only audit of every ledger mutation
- Reward: catalog items bought with available points
"""

from loyalman.models.program import ChannelProgram, LoyaltyProgram
from loyalman.models.member import LoyaltyMember
from loyalman.models.entry import LedgerEntry
from loyalman.models.reward import Reward

__all__ = [
    "LoyaltyProgram",
    "ChannelProgram",
    "LoyaltyMember",
    "LedgerEntry",
    "Reward",
]
