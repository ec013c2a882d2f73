"""Rewards catalog: items members buy with available points."""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from loyalman.choices import RewardCategory


class Reward(models.Model):
    """
    Catalog reward of one hotel program.

    Redeeming a reward debits points_cost from the member's available points
    through the ledger. required_tier is compared by position in the
    program's tier table. Rewards are never hard-deleted; deactivating keeps
    the ledger entries that reference them valid.
    """

    program = models.ForeignKey(
        "loyalman.LoyaltyProgram",
        on_delete=models.PROTECT,
        related_name="rewards",
        verbose_name=_("program"),
    )
    name = models.CharField(_("name"), max_length=200)
    description = models.TextField(_("description"))
    category = models.CharField(_("category"), max_length=20, choices=RewardCategory.choices)

    points_cost = models.PositiveIntegerField(_("points cost"), validators=[MinValueValidator(1)])
    value = models.DecimalField(
        _("value"),
        max_digits=12,
        decimal_places=2,
        default=Decimal("0"),
        help_text=_("Monetary value of the reward"),
    )
    required_tier = models.CharField(
        _("required tier"),
        max_length=50,
        blank=True,
        help_text=_("Lowest tier allowed to redeem. Empty means every tier"),
    )

    is_active = models.BooleanField(_("active"), default=True)
    validity_days = models.PositiveIntegerField(
        _("validity (days)"),
        default=30,
        validators=[MinValueValidator(1)],
        help_text=_("Days the reward stays valid after redemption"),
    )
    usage_limit = models.PositiveIntegerField(
        _("usage limit"),
        null=True,
        blank=True,
        help_text=_("Empty means unlimited"),
    )
    available_from = models.DateTimeField(_("available from"), null=True, blank=True)
    available_until = models.DateTimeField(_("available until"), null=True, blank=True)
    terms = models.TextField(_("terms and conditions"), blank=True)

    # Statistics (written by the rewards service only)
    times_redeemed = models.PositiveIntegerField(_("times redeemed"), default=0)
    total_value_redeemed = models.DecimalField(
        _("value redeemed"),
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
    )

    created_by = models.CharField(_("created by"), max_length=100, blank=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("reward")
        verbose_name_plural = _("rewards")
        ordering = ["points_cost", "id"]
        indexes = [
            models.Index(fields=["program", "is_active"], name="loyalman_reward_active_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.points_cost}pts)"

    @property
    def is_sold_out(self) -> bool:
        return self.usage_limit is not None and self.times_redeemed >= self.usage_limit
