# Generated migration for Reward, LedgerEntry.reward and expiration_months bounds

from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("loyalman", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="loyaltyprogram",
            name="expiration_months",
            field=models.PositiveSmallIntegerField(
                default=12,
                help_text="Earned points expire after this many months (1-36)",
                validators=[
                    django.core.validators.MinValueValidator(1),
                    django.core.validators.MaxValueValidator(36),
                ],
                verbose_name="expiration (months)",
            ),
        ),
        migrations.CreateModel(
            name="Reward",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                ("description", models.TextField(verbose_name="description")),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("discount", "Discount"),
                            ("upgrade", "Upgrade"),
                            ("amenity", "Amenity"),
                            ("service", "Service"),
                            ("voucher", "Voucher"),
                            ("experience", "Experience"),
                        ],
                        max_length=20,
                        verbose_name="category",
                    ),
                ),
                (
                    "points_cost",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="points cost",
                    ),
                ),
                (
                    "value",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        help_text="Monetary value of the reward",
                        max_digits=12,
                        verbose_name="value",
                    ),
                ),
                (
                    "required_tier",
                    models.CharField(
                        blank=True,
                        help_text="Lowest tier allowed to redeem. Empty means every tier",
                        max_length=50,
                        verbose_name="required tier",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                (
                    "validity_days",
                    models.PositiveIntegerField(
                        default=30,
                        help_text="Days the reward stays valid after redemption",
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="validity (days)",
                    ),
                ),
                (
                    "usage_limit",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Empty means unlimited",
                        null=True,
                        verbose_name="usage limit",
                    ),
                ),
                ("available_from", models.DateTimeField(blank=True, null=True, verbose_name="available from")),
                ("available_until", models.DateTimeField(blank=True, null=True, verbose_name="available until")),
                ("terms", models.TextField(blank=True, verbose_name="terms and conditions")),
                ("times_redeemed", models.PositiveIntegerField(default=0, verbose_name="times redeemed")),
                (
                    "total_value_redeemed",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=14,
                        verbose_name="value redeemed",
                    ),
                ),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="created by")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rewards",
                        to="loyalman.loyaltyprogram",
                        verbose_name="program",
                    ),
                ),
            ],
            options={
                "verbose_name": "reward",
                "verbose_name_plural": "rewards",
                "ordering": ["points_cost", "id"],
            },
        ),
        migrations.AddIndex(
            model_name="reward",
            index=models.Index(fields=["program", "is_active"], name="loyalman_reward_active_idx"),
        ),
        migrations.AddField(
            model_name="ledgerentry",
            name="reward",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="entries",
                to="loyalman.reward",
                verbose_name="reward",
            ),
        ),
    ]
