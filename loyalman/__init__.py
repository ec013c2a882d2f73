"""
Django Loyalman - Hotel Loyalty Engine.

Usage:
    from loyalman import LoyaltyService
    from loyalman.engine import Transaction

    LoyaltyService.upsert_program_config("HOTEL-1", "direct")
    member = LoyaltyService.enroll("HOTEL-1", "GUEST-1", "direct")
    LoyaltyService.record_transaction(member.pk, Transaction(amount_spent=120, nights=2))
    LoyaltyService.adjust_points(member.pk, 100, "redeemable_only", "Goodwill", "admin-7")
    value = LoyaltyService.redeem_points(member.pk, 500)
"""


def __getattr__(name):
    if name == "LoyaltyService":
        from loyalman.service import LoyaltyService

        return LoyaltyService
    if name == "LoyalmanError":
        from loyalman.exceptions import LoyalmanError

        return LoyalmanError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["LoyaltyService", "LoyalmanError"]
__version__ = "0.1.0"
