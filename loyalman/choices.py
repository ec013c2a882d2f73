"""Loyalty enumerations shared by the engine and the models."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Channel(models.TextChoices):
    """Booking source with its own accrual and redemption rules."""

    DIRECT = "direct", _("Direct")
    TRAVEL_AGENCY = "travel_agency", _("Travel Agency")
    CORPORATE = "corporate", _("Corporate")


class ServiceType(models.TextChoices):
    """Hotel services that carry an accrual multiplier."""

    LAUNDRY = "laundry", _("Laundry")
    TRANSPORTATION = "transportation", _("Transportation")
    TOURISM = "tourism", _("Tourism")
    TRAVEL = "travel", _("Travel")
    HOUSEKEEPING = "housekeeping", _("Housekeeping")


class TierName(models.TextChoices):
    """Stock tier names. Programs may also use free-form names."""

    BRONZE = "BRONZE", _("Bronze")
    SILVER = "SILVER", _("Silver")
    GOLD = "GOLD", _("Gold")
    PLATINUM = "PLATINUM", _("Platinum")


class AdjustmentMode(models.TextChoices):
    """Which counters an admin adjustment touches."""

    ALL = "all", _("Tier and redeemable points")
    REDEEMABLE_ONLY = "redeemable_only", _("Redeemable points only")


class EntryType(models.TextChoices):
    """Ledger entry types."""

    EARN = "earn", _("Earned")
    REDEEM = "redeem", _("Redeemed")
    ADJUST = "adjust", _("Adjusted")
    EXPIRE = "expire", _("Expired")


class OverdeductionPolicy(models.TextChoices):
    """What a deduction larger than the balance does."""

    CLAMP = "clamp", _("Clamp to zero")
    REJECT = "reject", _("Reject")


class RewardCategory(models.TextChoices):
    """Catalog reward categories."""

    DISCOUNT = "discount", _("Discount")
    UPGRADE = "upgrade", _("Upgrade")
    AMENITY = "amenity", _("Amenity")
    SERVICE = "service", _("Service")
    VOUCHER = "voucher", _("Voucher")
    EXPERIENCE = "experience", _("Experience")
