"""Program configuration: one tier table per hotel, one rule set per channel."""

from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from loyalman.choices import Channel
from loyalman.engine.rules import MAX_EXPIRATION_MONTHS, MIN_EXPIRATION_MONTHS


class LoyaltyProgram(models.Model):
    """
    Loyalty program of one hotel.

    Owns the tier table shared by all of the hotel's channels, so tiers
    cannot drift between channels. Per-channel earning and redemption rules
    live in ChannelProgram.
    """

    hotel_id = models.CharField(
        _("hotel"),
        max_length=64,
        unique=True,
        help_text=_("External hotel identifier"),
    )
    tier_table = models.JSONField(
        _("tiers"),
        default=list,
        help_text=_("Validated tiers, ascending by min_points"),
    )
    expiration_months = models.PositiveSmallIntegerField(
        _("expiration (months)"),
        default=12,
        validators=[MinValueValidator(MIN_EXPIRATION_MONTHS), MaxValueValidator(MAX_EXPIRATION_MONTHS)],
        help_text=_("Earned points expire after this many months (1-36)"),
    )
    is_active = models.BooleanField(_("active"), default=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("loyalty program")
        verbose_name_plural = _("loyalty programs")

    def __str__(self):
        return f"{self.hotel_id} ({len(self.tier_table)} tiers)"

    def get_tier_table(self):
        """Tier table as engine objects."""
        from loyalman.engine.tiers import TierTable

        return TierTable.from_list(self.tier_table)


class ChannelProgram(models.Model):
    """Accrual and redemption rules of one channel within a hotel program."""

    program = models.ForeignKey(
        LoyaltyProgram,
        on_delete=models.CASCADE,
        related_name="channels",
        verbose_name=_("program"),
    )
    channel = models.CharField(
        _("channel"),
        max_length=20,
        choices=Channel.choices,
    )

    # Earning
    points_per_dollar = models.DecimalField(
        _("points per dollar"),
        max_digits=8,
        decimal_places=2,
        default=Decimal("1"),
    )
    points_per_night = models.PositiveIntegerField(_("points per night"), default=0)
    service_multipliers = models.JSONField(
        _("service multipliers"),
        default=dict,
        blank=True,
        help_text=_("Service type -> multiplier. Unlisted services earn at 1.0"),
    )

    # Redemption
    points_to_money_ratio = models.PositiveIntegerField(
        _("points per currency unit"),
        default=100,
    )
    minimum_redemption = models.PositiveIntegerField(_("minimum redemption"), default=500)
    maximum_redemption = models.PositiveIntegerField(
        _("maximum redemption"),
        null=True,
        blank=True,
        help_text=_("Empty means unlimited"),
    )

    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("channel rules")
        verbose_name_plural = _("channel rules")
        constraints = [
            models.UniqueConstraint(
                fields=["program", "channel"],
                name="unique_channel_per_program",
            ),
        ]

    def __str__(self):
        return f"{self.program.hotel_id}:{self.channel}"

    def get_rules(self):
        """Channel rules as an engine object."""
        from loyalman.engine.rules import build_channel_rules

        return build_channel_rules(
            self.channel,
            points_per_dollar=self.points_per_dollar,
            points_per_night=self.points_per_night,
            service_multipliers=self.service_multipliers,
            points_to_money_ratio=self.points_to_money_ratio,
            minimum_redemption=self.minimum_redemption,
            maximum_redemption=self.maximum_redemption,
        )
