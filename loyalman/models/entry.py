"""Append-only ledger entries (earn, redeem, adjust, expire)."""

from django.db import models
from django.utils.translation import gettext_lazy as _

from loyalman.choices import AdjustmentMode, EntryType, ServiceType


class LedgerEntry(models.Model):
    """
    Immutable record of one ledger mutation.

    One entry per earn, redeem, adjustment or expiration, written in the
    same transaction as the counter update. Entries are never modified or
    deleted: save() refuses updates and delete() refuses.
    """

    member = models.ForeignKey(
        "loyalman.LoyaltyMember",
        on_delete=models.PROTECT,
        related_name="entries",
        verbose_name=_("member"),
    )
    entry_type = models.CharField(_("type"), max_length=20, choices=EntryType.choices)
    mode = models.CharField(
        _("mode"),
        max_length=20,
        choices=AdjustmentMode.choices,
        blank=True,
        help_text=_("Adjustment mode (adjustments only)"),
    )

    requested_amount = models.IntegerField(
        _("requested"),
        help_text=_("Signed amount as requested"),
    )
    amount = models.IntegerField(
        _("applied"),
        help_text=_("Signed change to available points after clamping"),
    )
    tier_points_delta = models.IntegerField(_("tier points change"), default=0)

    resulting_tier_points = models.PositiveIntegerField(_("tier points after"))
    resulting_available_points = models.PositiveIntegerField(_("available points after"))
    tier_before = models.CharField(_("tier before"), max_length=50, blank=True)
    tier_after = models.CharField(_("tier after"), max_length=50, blank=True)

    reason = models.CharField(_("reason"), max_length=255)
    reference = models.CharField(
        _("reference"),
        max_length=100,
        blank=True,
        help_text=_("External ID (e.g. booking:123)"),
    )
    actor_id = models.CharField(_("actor"), max_length=100, blank=True)

    # Earn details
    amount_spent = models.DecimalField(
        _("amount spent"),
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    nights = models.PositiveIntegerField(_("nights"), default=0)
    service_type = models.CharField(
        _("service"),
        max_length=20,
        choices=ServiceType.choices,
        blank=True,
    )
    expires_at = models.DateTimeField(_("expires at"), null=True, blank=True, db_index=True)

    # Redeem details
    cash_value = models.DecimalField(
        _("cash value"),
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )

    # Catalog reward (reward redemptions only)
    reward = models.ForeignKey(
        "loyalman.Reward",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="entries",
        verbose_name=_("reward"),
    )

    # Expire details
    expired_entry = models.OneToOneField(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="expiration",
        verbose_name=_("expired entry"),
    )

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _("ledger entry")
        verbose_name_plural = _("ledger entries")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["member", "-created_at"], name="loyalman_entry_member_idx"),
            models.Index(fields=["entry_type", "expires_at"], name="loyalman_entry_expiry_idx"),
        ]

    def __str__(self):
        sign = "+" if self.amount > 0 else ""
        return f"{sign}{self.amount}pts - {self.reason}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Ledger entries are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Ledger entries are append-only")
