"""Tests for Loyalman services."""

from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

import pytest
from django.core.management import call_command
from django.utils import timezone

from loyalman import LoyaltyService
from loyalman.choices import AdjustmentMode, Channel, EntryType
from loyalman.engine import Tier, Transaction
from loyalman.exceptions import (
    InsufficientPointsError,
    NotFoundError,
    OverlappingTiersError,
    ValidationError,
)
from loyalman.models import ChannelProgram, LedgerEntry, LoyaltyMember, LoyaltyProgram
from loyalman.services import ledger as ledger_service
from loyalman.services import program as program_service
from loyalman.signals import points_adjusted, points_earned, points_redeemed, tier_changed

pytestmark = pytest.mark.django_db


@pytest.fixture
def silver_member(member):
    """HOTEL-1 member with 1000 tier and available points."""
    ledger_service.record_transaction(member.pk, Transaction(amount_spent=Decimal("1000")))
    member.refresh_from_db()
    return member


class _Collector:
    """Connect to a signal for the duration of a test."""

    def __init__(self, signal):
        self.signal = signal
        self.calls = []

    def __call__(self, sender, **kwargs):
        self.calls.append(kwargs)

    def __enter__(self):
        self.signal.connect(self)
        return self

    def __exit__(self, *exc):
        self.signal.disconnect(self)


# ═══════════════════════════════════════════════════════════════════
# Program configuration
# ═══════════════════════════════════════════════════════════════════


class TestProgramConfig:
    """Tests for upsert_program_config and lookups."""

    def test_create(self, hotel):
        assert hotel.created is True
        assert hotel.channel_program.channel == Channel.DIRECT
        assert len(hotel.program.tier_table) == 4
        assert hotel.program.expiration_months == 12

    def test_new_program_gets_stock_tiers(self, db):
        result = program_service.upsert_program_config("HOTEL-NEW", Channel.CORPORATE)
        names = [t["name"] for t in result.program.tier_table]
        assert names == ["BRONZE", "SILVER", "GOLD", "PLATINUM"]
        assert result.channel_program.points_per_night == 75

    def test_second_channel_shares_tier_table(self, hotel):
        """Adding a channel neither duplicates the program nor touches tiers."""
        result = program_service.upsert_program_config("HOTEL-1", Channel.CORPORATE)

        assert result.created is False
        assert result.tier_table_changed is False
        assert LoyaltyProgram.objects.filter(hotel_id="HOTEL-1").count() == 1
        assert ChannelProgram.objects.filter(program=hotel.program).count() == 2
        assert program_service.get_channel_rules("HOTEL-1", Channel.CORPORATE).points_per_night == 75

    def test_rules_round_trip_through_storage(self, hotel, direct_rules):
        assert program_service.get_channel_rules("HOTEL-1", Channel.DIRECT) == direct_rules

    def test_update_rules(self, hotel):
        program_service.upsert_program_config(
            "HOTEL-1",
            Channel.DIRECT,
            rules={"points_per_dollar": "3", "minimum_redemption": 200, "maximum_redemption": 5000},
        )
        rules = program_service.get_channel_rules("HOTEL-1", Channel.DIRECT)
        assert rules.points_per_dollar == Decimal("3")
        assert rules.maximum_redemption == 5000

    def test_overlapping_tiers_write_nothing(self, db):
        with pytest.raises(OverlappingTiersError):
            program_service.upsert_program_config(
                "HOTEL-9",
                Channel.DIRECT,
                tiers=[Tier("A", 0, 100), Tier("B", 100, 200)],
            )
        assert not LoyaltyProgram.objects.filter(hotel_id="HOTEL-9").exists()

    def test_rejected_update_keeps_stored_program(self, hotel):
        before = list(hotel.program.tier_table)
        with pytest.raises(ValidationError):
            program_service.upsert_program_config(
                "HOTEL-1",
                Channel.DIRECT,
                tiers=[Tier("A", 0, 100), Tier("B", 50, 200)],
            )
        hotel.program.refresh_from_db()
        assert hotel.program.tier_table == before

    @pytest.mark.parametrize("months", [0, 37])
    def test_expiration_out_of_range(self, db, months):
        with pytest.raises(ValidationError) as exc:
            program_service.upsert_program_config("HOTEL-9", Channel.DIRECT, expiration_months=months)
        assert exc.value.code == "LOYALTY_INVALID_EXPIRATION"

    def test_invalid_rules(self, db):
        with pytest.raises(ValidationError) as exc:
            program_service.upsert_program_config("HOTEL-9", Channel.DIRECT, rules={"points_per_dollar": "0.5"})
        assert exc.value.code == "LOYALTY_INVALID_RULES"

    def test_rules_for_other_channel_rejected(self, db, direct_rules):
        with pytest.raises(ValidationError):
            program_service.upsert_program_config("HOTEL-9", Channel.CORPORATE, rules=direct_rules)

    def test_tier_change_retiers_members(self, silver_member):
        """Members are re-resolved when the tier table changes."""
        assert silver_member.current_tier == "SILVER"

        with _Collector(tier_changed) as changes:
            result = program_service.upsert_program_config(
                "HOTEL-1",
                Channel.DIRECT,
                tiers=[Tier("BRONZE", 0, 1999), Tier("SILVER", 2000, 4999)],
            )

        assert result.tier_table_changed is True
        assert result.members_retiered == 1
        silver_member.refresh_from_db()
        assert silver_member.current_tier == "BRONZE"
        assert silver_member.tier_points == 1000
        assert changes.calls[0]["old_tier"] == "SILVER"
        assert changes.calls[0]["new_tier"] == "BRONZE"

    def test_get_program_not_found(self, db):
        with pytest.raises(NotFoundError) as exc:
            program_service.get_program("NOPE")
        assert exc.value.code == "LOYALTY_PROGRAM_NOT_FOUND"

    def test_channel_not_configured(self, hotel):
        with pytest.raises(NotFoundError) as exc:
            program_service.get_channel_rules("HOTEL-1", Channel.TRAVEL_AGENCY)
        assert exc.value.code == "LOYALTY_CHANNEL_NOT_CONFIGURED"

    def test_list_channel_rules(self, hotel):
        program_service.upsert_program_config("HOTEL-1", Channel.TRAVEL_AGENCY)
        channels = [r.channel for r in program_service.list_channel_rules("HOTEL-1")]
        assert channels == [Channel.DIRECT, Channel.TRAVEL_AGENCY]

    def test_upsert_keeps_stored_status(self, hotel):
        """Omitting is_active never reactivates a deactivated program."""
        program_service.upsert_program_config("HOTEL-1", Channel.DIRECT, is_active=False)
        program_service.upsert_program_config("HOTEL-1", Channel.CORPORATE)

        assert program_service.get_program("HOTEL-1").is_active is False

    def test_new_program_active_by_default(self, db):
        result = program_service.upsert_program_config("HOTEL-NEW", Channel.DIRECT)
        assert result.program.is_active is True

    def test_points_per_dollar_cents_round_trip(self, hotel):
        program_service.upsert_program_config("HOTEL-1", Channel.DIRECT, rules={"points_per_dollar": "1.25"})
        rules = program_service.get_channel_rules("HOTEL-1", Channel.DIRECT)
        assert rules.points_per_dollar == Decimal("1.25")

    def test_points_per_dollar_below_cents_rejected(self, hotel):
        with pytest.raises(ValidationError) as exc:
            program_service.upsert_program_config("HOTEL-1", Channel.DIRECT, rules={"points_per_dollar": "1.255"})
        assert exc.value.code == "LOYALTY_INVALID_RULES"
        rules = program_service.get_channel_rules("HOTEL-1", Channel.DIRECT)
        assert rules.points_per_dollar == Decimal("1")


# ═══════════════════════════════════════════════════════════════════
# Enrollment and reads
# ═══════════════════════════════════════════════════════════════════


class TestEnrollment:
    def test_enroll_starts_at_lowest_tier(self, member):
        assert member.current_tier == "BRONZE"
        assert member.tier_points == 0
        assert member.available_points == 0
        assert member.hotel_id == "HOTEL-1"

    def test_enroll_is_idempotent(self, member):
        again = ledger_service.enroll("HOTEL-1", "GUEST-1", Channel.DIRECT)
        assert again.pk == member.pk
        assert LoyaltyMember.objects.count() == 1

    def test_unknown_program(self, db):
        with pytest.raises(NotFoundError):
            ledger_service.enroll("NOPE", "GUEST-1", Channel.DIRECT)

    def test_channel_not_configured(self, hotel):
        with pytest.raises(NotFoundError) as exc:
            ledger_service.enroll("HOTEL-1", "GUEST-1", Channel.CORPORATE)
        assert exc.value.code == "LOYALTY_CHANNEL_NOT_CONFIGURED"

    def test_inactive_program(self, hotel):
        program_service.upsert_program_config("HOTEL-1", Channel.DIRECT, is_active=False)
        with pytest.raises(ValidationError) as exc:
            ledger_service.enroll("HOTEL-1", "GUEST-2", Channel.DIRECT)
        assert exc.value.code == "LOYALTY_PROGRAM_INACTIVE"

    def test_find_member(self, member):
        assert ledger_service.find_member("HOTEL-1", "GUEST-1") == member
        assert ledger_service.find_member("HOTEL-1", "GUEST-X") is None


class TestMemberView:
    def test_view(self, silver_member):
        view = ledger_service.get_member_view(silver_member.pk)

        assert view.current_tier == "SILVER"
        assert view.tier.display_color == "#C0C0C0"
        assert view.cash_value == Decimal("10.00")
        assert view.progress.next_tier.name == "GOLD"
        assert view.progress.points_to_next_tier == 2000
        assert view.lifetime_spending == Decimal("1000.00")

    def test_tier_is_resolved_not_read_from_cache(self, silver_member):
        LoyaltyMember.objects.filter(pk=silver_member.pk).update(current_tier="PLATINUM")
        assert ledger_service.get_member_view(silver_member.pk).current_tier == "SILVER"

    def test_cash_value_none_without_channel_rules(self, member):
        ChannelProgram.objects.filter(program__hotel_id="HOTEL-1").delete()
        assert ledger_service.get_member_view(member.pk).cash_value is None

    def test_not_found(self, db):
        with pytest.raises(NotFoundError) as exc:
            ledger_service.get_member_view(999)
        assert exc.value.code == "LOYALTY_MEMBER_NOT_FOUND"


# ═══════════════════════════════════════════════════════════════════
# Earning
# ═══════════════════════════════════════════════════════════════════


class TestRecordTransaction:
    def test_earn_with_nights_and_service(self, member):
        """$10 laundry at 1.2x plus 2 nights at 50 = 112 points."""
        txn = Transaction(amount_spent=Decimal("10"), nights=2, service_type="laundry")
        earned = ledger_service.record_transaction(member.pk, txn, reference="booking:1")

        assert earned == 112
        member.refresh_from_db()
        assert member.tier_points == 112
        assert member.available_points == 112
        assert member.lifetime_points_earned == 112
        assert member.lifetime_spending == Decimal("10.00")
        assert member.total_nights_stayed == 2
        assert member.last_activity is not None

        entry = LedgerEntry.objects.get(member=member)
        assert entry.entry_type == EntryType.EARN
        assert entry.amount == 112
        assert entry.reference == "booking:1"
        assert entry.service_type == "laundry"
        assert entry.expires_at is not None
        assert "112" in entry.reason

    def test_earn_crosses_tier(self, silver_member):
        assert silver_member.current_tier == "SILVER"
        assert silver_member.tier_points == 1000

    def test_zero_point_earn_is_recorded(self, member):
        earned = ledger_service.record_transaction(member.pk, Transaction(amount_spent=0))
        assert earned == 0
        entry = LedgerEntry.objects.get(member=member)
        assert entry.amount == 0
        assert entry.expires_at is None

    def test_earn_under_unconfigured_channel(self, member):
        with pytest.raises(NotFoundError):
            ledger_service.record_transaction(member.pk, Transaction(amount_spent=10), channel=Channel.CORPORATE)
        assert not LedgerEntry.objects.filter(member=member).exists()

    def test_earn_under_other_channel(self, member):
        program_service.upsert_program_config("HOTEL-1", Channel.CORPORATE)
        earned = ledger_service.record_transaction(
            member.pk, Transaction(amount_spent=10, nights=1), channel=Channel.CORPORATE
        )
        # 10 * 1.5 + 75
        assert earned == 90

    def test_expires_after_program_months(self, member):
        ledger_service.record_transaction(member.pk, Transaction(amount_spent=10))
        entry = LedgerEntry.objects.get(member=member)
        delta = entry.expires_at - entry.created_at
        assert timedelta(days=360) < delta < timedelta(days=367)

    def test_add_months_clamps_day(self):
        moment = timezone.now().replace(year=2025, month=1, day=31)
        result = ledger_service._add_months(moment, 1)
        assert (result.year, result.month, result.day) == (2025, 2, 28)


# ═══════════════════════════════════════════════════════════════════
# Redemption
# ═══════════════════════════════════════════════════════════════════


class TestRedeemPoints:
    def test_redeem(self, silver_member):
        value = ledger_service.redeem_points(silver_member.pk, 500, reference="folio:7")

        assert value == Decimal("5.00")
        silver_member.refresh_from_db()
        assert silver_member.available_points == 500
        assert silver_member.tier_points == 1000
        assert silver_member.current_tier == "SILVER"
        assert silver_member.lifetime_points_redeemed == 500

        entry = LedgerEntry.objects.get(member=silver_member, entry_type=EntryType.REDEEM)
        assert entry.amount == -500
        assert entry.tier_points_delta == 0
        assert entry.cash_value == Decimal("5.00")

    def test_below_minimum_writes_nothing(self, silver_member):
        with pytest.raises(InsufficientPointsError) as exc:
            ledger_service.redeem_points(silver_member.pk, 100)
        assert exc.value.code == "LOYALTY_BELOW_MINIMUM_REDEMPTION"

        silver_member.refresh_from_db()
        assert silver_member.available_points == 1000
        assert not LedgerEntry.objects.filter(entry_type=EntryType.REDEEM).exists()

    def test_over_balance(self, silver_member):
        with pytest.raises(InsufficientPointsError) as exc:
            ledger_service.redeem_points(silver_member.pk, 2000)
        assert exc.value.code == "LOYALTY_INSUFFICIENT_POINTS"
        assert exc.value.data["available"] == 1000

    def test_unknown_member(self, db):
        with pytest.raises(NotFoundError):
            ledger_service.redeem_points(999, 500)


# ═══════════════════════════════════════════════════════════════════
# Adjustments
# ═══════════════════════════════════════════════════════════════════


class TestAdjustPoints:
    def test_all_upgrades_tier(self, member_950):
        entry = ledger_service.adjust_points(member_950.pk, 100, AdjustmentMode.ALL, "missed stay", actor_id="admin-7")

        member_950.refresh_from_db()
        assert member_950.tier_points == 1050
        assert member_950.available_points == 1050
        assert member_950.current_tier == "SILVER"

        assert entry.entry_type == EntryType.ADJUST
        assert entry.mode == AdjustmentMode.ALL
        assert entry.tier_before == "BRONZE"
        assert entry.tier_after == "SILVER"
        assert entry.resulting_tier_points == 1050
        assert entry.actor_id == "admin-7"

    def test_redeemable_only_keeps_tier(self, member_950):
        ledger_service.adjust_points(member_950.pk, 100, AdjustmentMode.REDEEMABLE_ONLY, "goodwill")

        member_950.refresh_from_db()
        assert member_950.tier_points == 950
        assert member_950.available_points == 1050
        assert member_950.current_tier == "BRONZE"

    def test_overdeduction_clamps_and_records(self, member_950):
        ledger_service.adjust_points(member_950.pk, -900, AdjustmentMode.REDEEMABLE_ONLY, "spent elsewhere")
        entry = ledger_service.adjust_points(member_950.pk, -9999, AdjustmentMode.ALL, "fraud reversal")

        member_950.refresh_from_db()
        assert member_950.tier_points == 0
        assert member_950.available_points == 0
        assert entry.requested_amount == -9999
        assert entry.amount == -50
        assert entry.tier_points_delta == -950

    def test_overdeduction_rejected_by_setting(self, member_950, settings):
        settings.LOYALMAN = {"OVERDEDUCTION_POLICY": "reject"}
        with pytest.raises(InsufficientPointsError):
            ledger_service.adjust_points(member_950.pk, -9999, AdjustmentMode.ALL, "fraud reversal")

        member_950.refresh_from_db()
        assert member_950.tier_points == 950
        assert member_950.available_points == 950

    def test_empty_reason_writes_nothing(self, member_950):
        count = LedgerEntry.objects.filter(member=member_950).count()
        with pytest.raises(ValidationError) as exc:
            ledger_service.adjust_points(member_950.pk, 100, AdjustmentMode.ALL, "  ")
        assert exc.value.code == "LOYALTY_REASON_REQUIRED"
        assert LedgerEntry.objects.filter(member=member_950).count() == count

    def test_positive_all_counts_as_earned(self, member_950):
        assert member_950.lifetime_points_earned == 950

    def test_adjust_by_cash(self, member_950):
        entry = ledger_service.adjust_points_by_cash(
            member_950.pk, Decimal("1.25"), AdjustmentMode.REDEEMABLE_ONLY, "refund as points"
        )
        assert entry.amount == 125
        member_950.refresh_from_db()
        assert member_950.available_points == 1075

    def test_preview_writes_nothing(self, member_950):
        count = LedgerEntry.objects.filter(member=member_950).count()

        preview = ledger_service.preview_adjustment(member_950.pk, 100, AdjustmentMode.ALL)

        assert preview.tier_after == "SILVER"
        assert preview.tier_changed is True
        assert preview.tier_points == 1050
        member_950.refresh_from_db()
        assert member_950.tier_points == 950
        assert LedgerEntry.objects.filter(member=member_950).count() == count

    def test_preview_cash(self, member_950):
        preview = ledger_service.preview_adjustment(
            member_950.pk, Decimal("1.00"), AdjustmentMode.REDEEMABLE_ONLY, cash=True
        )
        assert preview.points == 100
        assert preview.available_points == 1050
        assert preview.tier_changed is False


# ═══════════════════════════════════════════════════════════════════
# History
# ═══════════════════════════════════════════════════════════════════


class TestHistory:
    def test_most_recent_first(self, silver_member):
        ledger_service.redeem_points(silver_member.pk, 500)
        ledger_service.adjust_points(silver_member.pk, 10, AdjustmentMode.ALL, "bonus")

        history = ledger_service.get_history(silver_member.pk)
        assert [e.entry_type for e in history] == [EntryType.ADJUST, EntryType.REDEEM, EntryType.EARN]

    def test_filter_and_limit(self, silver_member):
        ledger_service.adjust_points(silver_member.pk, 10, AdjustmentMode.ALL, "a")
        ledger_service.adjust_points(silver_member.pk, 20, AdjustmentMode.ALL, "b")

        history = ledger_service.get_history(silver_member.pk, limit=1, entry_type=EntryType.ADJUST)
        assert len(history) == 1
        assert history[0].reason == "b"

    def test_limit_zero_returns_nothing(self, silver_member):
        assert ledger_service.get_history(silver_member.pk, limit=0) == []

    def test_unknown_member(self, db):
        with pytest.raises(NotFoundError):
            ledger_service.get_history(999)


# ═══════════════════════════════════════════════════════════════════
# Expiration
# ═══════════════════════════════════════════════════════════════════


class TestExpirePoints:
    def test_nothing_due(self, silver_member):
        assert ledger_service.expire_points(now=timezone.now()) == 0

    def test_expire_keeps_status(self, silver_member):
        later = timezone.now() + timedelta(days=400)

        assert ledger_service.expire_points(now=later) == 1000

        silver_member.refresh_from_db()
        assert silver_member.available_points == 0
        assert silver_member.tier_points == 1000
        assert silver_member.current_tier == "SILVER"

        expiry = LedgerEntry.objects.get(entry_type=EntryType.EXPIRE)
        assert expiry.expired_entry.entry_type == EntryType.EARN
        assert expiry.amount == -1000

    def test_each_earn_expires_once(self, silver_member):
        later = timezone.now() + timedelta(days=400)
        ledger_service.expire_points(now=later)
        assert ledger_service.expire_points(now=later) == 0

    def test_expire_only_what_is_left(self, silver_member):
        ledger_service.redeem_points(silver_member.pk, 600)
        later = timezone.now() + timedelta(days=400)
        assert ledger_service.expire_points(now=later) == 400

    def test_filter_by_hotel(self, silver_member):
        later = timezone.now() + timedelta(days=400)
        assert ledger_service.expire_points(hotel_id="OTHER", now=later) == 0
        assert ledger_service.expire_points(hotel_id="HOTEL-1", now=later) == 1000

    def test_inactive_member_does_not_block_sweep(self, hotel):
        first = ledger_service.enroll("HOTEL-1", "GUEST-A", Channel.DIRECT)
        second = ledger_service.enroll("HOTEL-1", "GUEST-B", Channel.DIRECT)
        ledger_service.record_transaction(first.pk, Transaction(amount_spent=Decimal("100")))
        ledger_service.record_transaction(second.pk, Transaction(amount_spent=Decimal("200")))
        LoyaltyMember.objects.filter(pk=first.pk).update(is_active=False)

        later = timezone.now() + timedelta(days=800)
        assert ledger_service.expire_points(now=later) == 200

        first.refresh_from_db()
        assert first.available_points == 100

    def test_member_deactivated_mid_sweep_is_skipped(self, hotel):
        first = ledger_service.enroll("HOTEL-1", "GUEST-A", Channel.DIRECT)
        second = ledger_service.enroll("HOTEL-1", "GUEST-B", Channel.DIRECT)
        ledger_service.record_transaction(first.pk, Transaction(amount_spent=Decimal("100")))
        ledger_service.record_transaction(second.pk, Transaction(amount_spent=Decimal("200")))

        later = timezone.now() + timedelta(days=800)
        side_effect = [NotFoundError("LOYALTY_MEMBER_NOT_FOUND"), 200]
        with patch.object(ledger_service, "_expire_entry", side_effect=side_effect) as expire_entry:
            assert ledger_service.expire_points(now=later) == 200
        assert expire_entry.call_count == 2

    def test_management_command(self, silver_member):
        out = StringIO()
        call_command("loyalman_expire_points", "--hotel", "HOTEL-1", stdout=out)
        assert "Expired 0 points." in out.getvalue()


# ═══════════════════════════════════════════════════════════════════
# Signals
# ═══════════════════════════════════════════════════════════════════


class TestSignals:
    def test_earn_signals(self, member):
        with _Collector(points_earned) as earned, _Collector(tier_changed) as changed:
            ledger_service.record_transaction(member.pk, Transaction(amount_spent=1000))

        assert len(earned.calls) == 1
        assert earned.calls[0]["entry"].amount == 1000
        assert changed.calls == [
            {"signal": tier_changed, "member": earned.calls[0]["member"], "old_tier": "BRONZE", "new_tier": "SILVER"}
        ]

    def test_redeem_signal(self, silver_member):
        with _Collector(points_redeemed) as redeemed, _Collector(tier_changed) as changed:
            ledger_service.redeem_points(silver_member.pk, 500)
        assert len(redeemed.calls) == 1
        assert changed.calls == []

    def test_no_signal_on_failure(self, member_950):
        with _Collector(points_adjusted) as adjusted:
            with pytest.raises(ValidationError):
                ledger_service.adjust_points(member_950.pk, 100, AdjustmentMode.ALL, "")
        assert adjusted.calls == []


# ═══════════════════════════════════════════════════════════════════
# Facade
# ═══════════════════════════════════════════════════════════════════


class TestLoyaltyService:
    def test_end_to_end(self, db):
        LoyaltyService.upsert_program_config("HOTEL-F", Channel.DIRECT)
        member = LoyaltyService.enroll("HOTEL-F", "GUEST-F", Channel.DIRECT)

        # 120 * 2 + 2 * 100
        earned = LoyaltyService.record_transaction(member.pk, Transaction(amount_spent=120, nights=2))
        assert earned == 440

        LoyaltyService.adjust_points(member.pk, 100, AdjustmentMode.REDEEMABLE_ONLY, "Goodwill", "admin-7")
        assert LoyaltyService.redeem_points(member.pk, 500) == Decimal("5.00")

        view = LoyaltyService.get_member_view(member.pk)
        assert view.tier_points == 440
        assert view.available_points == 40
        assert view.current_tier == "BRONZE"
        assert len(LoyaltyService.get_history(member.pk)) == 3

    def test_stock_configuration(self):
        assert LoyaltyService.default_tier_table().lowest.name == "BRONZE"
        rules = LoyaltyService.default_channel_rules(Channel.TRAVEL_AGENCY)
        assert rules.maximum_redemption == 10000
        assert rules.multiplier("tourism") == Decimal("2.0")
