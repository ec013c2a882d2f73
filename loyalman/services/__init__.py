"""Loyalman services.

- loyalman.services.program: tier table and channel rules configuration
- loyalman.services.rewards: rewards catalog and eligibility
- loyalman.services.ledger: enrollment, earn, redeem, adjust, expire
"""

from loyalman.services import program
from loyalman.services import rewards
from loyalman.services import ledger

__all__ = ["program", "rewards", "ledger"]
