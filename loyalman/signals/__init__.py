"""
Loyalman signals - public event API.

Emitted signals (after the ledger transaction commits):
- points_earned: Emitted by services.ledger.record_transaction()
- points_redeemed: Emitted by services.ledger.redeem_points()
- points_adjusted: Emitted by services.ledger.adjust_points()
- tier_changed: Emitted whenever a write moves current_tier
"""

from django.dispatch import Signal

# Ledger signals (emitted by services)
points_earned = Signal()  # sender=LoyaltyMember, member=..., entry=...
points_redeemed = Signal()  # sender=LoyaltyMember, member=..., entry=...
points_adjusted = Signal()  # sender=LoyaltyMember, member=..., entry=...
tier_changed = Signal()  # sender=LoyaltyMember, member=..., old_tier=str, new_tier=str
