"""Loyalty member: the two point counters and the cached tier."""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _

from loyalman.choices import Channel


class LoyaltyMember(models.Model):
    """
    Guest membership in one hotel's program.

    tier_points decides status; available_points is the redeemable balance.
    current_tier is a cache of resolve_tier(tier_points) and is only written
    by the ledger services together with tier_points.

    version is bumped on every ledger write (optimistic concurrency).
    """

    program = models.ForeignKey(
        "loyalman.LoyaltyProgram",
        on_delete=models.PROTECT,
        related_name="members",
        verbose_name=_("program"),
    )
    guest_id = models.CharField(_("guest"), max_length=64, db_index=True)
    channel = models.CharField(
        _("channel"),
        max_length=20,
        choices=Channel.choices,
        default=Channel.DIRECT,
    )

    # Counters
    tier_points = models.PositiveIntegerField(
        _("tier points"),
        default=0,
        help_text=_("Status-determining points"),
    )
    available_points = models.PositiveIntegerField(
        _("available points"),
        default=0,
        help_text=_("Points available for redemption"),
    )
    current_tier = models.CharField(_("tier"), max_length=50, blank=True)

    # Lifetime statistics
    lifetime_points_earned = models.PositiveIntegerField(_("points earned"), default=0)
    lifetime_points_redeemed = models.PositiveIntegerField(_("points redeemed"), default=0)
    lifetime_spending = models.DecimalField(
        _("lifetime spending"),
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )
    total_nights_stayed = models.PositiveIntegerField(_("nights stayed"), default=0)

    version = models.PositiveIntegerField(default=0, editable=False)

    is_active = models.BooleanField(_("active"), default=True)
    joined_at = models.DateTimeField(_("joined at"), auto_now_add=True)
    last_activity = models.DateTimeField(_("last activity"), null=True, blank=True)

    class Meta:
        verbose_name = _("loyalty member")
        verbose_name_plural = _("loyalty members")
        constraints = [
            models.UniqueConstraint(
                fields=["program", "guest_id"],
                name="unique_member_per_program",
            ),
        ]
        indexes = [
            models.Index(fields=["program", "current_tier"], name="loyalman_member_tier_idx"),
        ]

    def __str__(self):
        return f"{self.guest_id}: {self.available_points}pts | {self.current_tier}"

    @property
    def hotel_id(self) -> str:
        return self.program.hotel_id
