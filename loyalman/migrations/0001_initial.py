# Generated migration for LoyaltyProgram, ChannelProgram, LoyaltyMember and LedgerEntry

from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LoyaltyProgram",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "hotel_id",
                    models.CharField(
                        help_text="External hotel identifier",
                        max_length=64,
                        unique=True,
                        verbose_name="hotel",
                    ),
                ),
                (
                    "tier_table",
                    models.JSONField(
                        default=list,
                        help_text="Validated tiers, ascending by min_points",
                        verbose_name="tiers",
                    ),
                ),
                (
                    "expiration_months",
                    models.PositiveSmallIntegerField(
                        default=12,
                        help_text="Earned points expire after this many months (1-36)",
                        verbose_name="expiration (months)",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "loyalty program",
                "verbose_name_plural": "loyalty programs",
            },
        ),
        migrations.CreateModel(
            name="ChannelProgram",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "channel",
                    models.CharField(
                        choices=[
                            ("direct", "Direct"),
                            ("travel_agency", "Travel Agency"),
                            ("corporate", "Corporate"),
                        ],
                        max_length=20,
                        verbose_name="channel",
                    ),
                ),
                (
                    "points_per_dollar",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("1"),
                        max_digits=8,
                        verbose_name="points per dollar",
                    ),
                ),
                ("points_per_night", models.PositiveIntegerField(default=0, verbose_name="points per night")),
                (
                    "service_multipliers",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Service type -> multiplier. Unlisted services earn at 1.0",
                        verbose_name="service multipliers",
                    ),
                ),
                (
                    "points_to_money_ratio",
                    models.PositiveIntegerField(default=100, verbose_name="points per currency unit"),
                ),
                ("minimum_redemption", models.PositiveIntegerField(default=500, verbose_name="minimum redemption")),
                (
                    "maximum_redemption",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Empty means unlimited",
                        null=True,
                        verbose_name="maximum redemption",
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="channels",
                        to="loyalman.loyaltyprogram",
                        verbose_name="program",
                    ),
                ),
            ],
            options={
                "verbose_name": "channel rules",
                "verbose_name_plural": "channel rules",
            },
        ),
        migrations.AddConstraint(
            model_name="channelprogram",
            constraint=models.UniqueConstraint(
                fields=("program", "channel"),
                name="unique_channel_per_program",
            ),
        ),
        migrations.CreateModel(
            name="LoyaltyMember",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("guest_id", models.CharField(db_index=True, max_length=64, verbose_name="guest")),
                (
                    "channel",
                    models.CharField(
                        choices=[
                            ("direct", "Direct"),
                            ("travel_agency", "Travel Agency"),
                            ("corporate", "Corporate"),
                        ],
                        default="direct",
                        max_length=20,
                        verbose_name="channel",
                    ),
                ),
                (
                    "tier_points",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Status-determining points",
                        verbose_name="tier points",
                    ),
                ),
                (
                    "available_points",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Points available for redemption",
                        verbose_name="available points",
                    ),
                ),
                ("current_tier", models.CharField(blank=True, max_length=50, verbose_name="tier")),
                ("lifetime_points_earned", models.PositiveIntegerField(default=0, verbose_name="points earned")),
                ("lifetime_points_redeemed", models.PositiveIntegerField(default=0, verbose_name="points redeemed")),
                (
                    "lifetime_spending",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=14,
                        verbose_name="lifetime spending",
                    ),
                ),
                ("total_nights_stayed", models.PositiveIntegerField(default=0, verbose_name="nights stayed")),
                ("version", models.PositiveIntegerField(default=0, editable=False)),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("joined_at", models.DateTimeField(auto_now_add=True, verbose_name="joined at")),
                ("last_activity", models.DateTimeField(blank=True, null=True, verbose_name="last activity")),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="members",
                        to="loyalman.loyaltyprogram",
                        verbose_name="program",
                    ),
                ),
            ],
            options={
                "verbose_name": "loyalty member",
                "verbose_name_plural": "loyalty members",
            },
        ),
        migrations.AddConstraint(
            model_name="loyaltymember",
            constraint=models.UniqueConstraint(
                fields=("program", "guest_id"),
                name="unique_member_per_program",
            ),
        ),
        migrations.AddIndex(
            model_name="loyaltymember",
            index=models.Index(fields=["program", "current_tier"], name="loyalman_member_tier_idx"),
        ),
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "entry_type",
                    models.CharField(
                        choices=[
                            ("earn", "Earned"),
                            ("redeem", "Redeemed"),
                            ("adjust", "Adjusted"),
                            ("expire", "Expired"),
                        ],
                        max_length=20,
                        verbose_name="type",
                    ),
                ),
                (
                    "mode",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("all", "Tier and redeemable points"),
                            ("redeemable_only", "Redeemable points only"),
                        ],
                        help_text="Adjustment mode (adjustments only)",
                        max_length=20,
                        verbose_name="mode",
                    ),
                ),
                (
                    "requested_amount",
                    models.IntegerField(help_text="Signed amount as requested", verbose_name="requested"),
                ),
                (
                    "amount",
                    models.IntegerField(
                        help_text="Signed change to available points after clamping",
                        verbose_name="applied",
                    ),
                ),
                ("tier_points_delta", models.IntegerField(default=0, verbose_name="tier points change")),
                ("resulting_tier_points", models.PositiveIntegerField(verbose_name="tier points after")),
                ("resulting_available_points", models.PositiveIntegerField(verbose_name="available points after")),
                ("tier_before", models.CharField(blank=True, max_length=50, verbose_name="tier before")),
                ("tier_after", models.CharField(blank=True, max_length=50, verbose_name="tier after")),
                ("reason", models.CharField(max_length=255, verbose_name="reason")),
                (
                    "reference",
                    models.CharField(
                        blank=True,
                        help_text="External ID (e.g. booking:123)",
                        max_length=100,
                        verbose_name="reference",
                    ),
                ),
                ("actor_id", models.CharField(blank=True, max_length=100, verbose_name="actor")),
                (
                    "amount_spent",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        verbose_name="amount spent",
                    ),
                ),
                ("nights", models.PositiveIntegerField(default=0, verbose_name="nights")),
                (
                    "service_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("laundry", "Laundry"),
                            ("transportation", "Transportation"),
                            ("tourism", "Tourism"),
                            ("travel", "Travel"),
                            ("housekeeping", "Housekeeping"),
                        ],
                        max_length=20,
                        verbose_name="service",
                    ),
                ),
                (
                    "expires_at",
                    models.DateTimeField(blank=True, db_index=True, null=True, verbose_name="expires at"),
                ),
                (
                    "cash_value",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=12,
                        null=True,
                        verbose_name="cash value",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                (
                    "expired_entry",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="expiration",
                        to="loyalman.ledgerentry",
                        verbose_name="expired entry",
                    ),
                ),
                (
                    "member",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="entries",
                        to="loyalman.loyaltymember",
                        verbose_name="member",
                    ),
                ),
            ],
            options={
                "verbose_name": "ledger entry",
                "verbose_name_plural": "ledger entries",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(fields=["member", "-created_at"], name="loyalman_entry_member_idx"),
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(fields=["entry_type", "expires_at"], name="loyalman_entry_expiry_idx"),
        ),
    ]
