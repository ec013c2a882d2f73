"""Pytest fixtures for Loyalman tests."""

from decimal import Decimal

import pytest

from loyalman.choices import Channel, ServiceType
from loyalman.engine.rules import build_channel_rules
from loyalman.engine.tiers import UNBOUNDED_POINTS, Tier, validate_tiers
from loyalman.services import ledger, program


@pytest.fixture
def two_tiers():
    """BRONZE [0, 999] / SILVER [1000, 2999]."""
    return validate_tiers([
        Tier("BRONZE", 0, 999),
        Tier("SILVER", 1000, 2999),
    ])


@pytest.fixture
def four_tiers():
    return validate_tiers([
        Tier("BRONZE", 0, 999, display_color="#CD7F32"),
        Tier("SILVER", 1000, 2999, display_color="#C0C0C0"),
        Tier("GOLD", 3000, 5999, display_color="#FFD700"),
        Tier("PLATINUM", 6000, UNBOUNDED_POINTS, display_color="#E5E4E2"),
    ])


@pytest.fixture
def direct_rules():
    return build_channel_rules(
        Channel.DIRECT,
        points_per_dollar=Decimal("1"),
        points_per_night=50,
        service_multipliers={ServiceType.LAUNDRY: Decimal("1.2")},
        points_to_money_ratio=100,
        minimum_redemption=500,
    )


@pytest.fixture
def hotel(db, four_tiers, direct_rules):
    """Hotel program with the four stock tiers and DIRECT rules."""
    return program.upsert_program_config("HOTEL-1", Channel.DIRECT, tiers=four_tiers, rules=direct_rules)


@pytest.fixture
def member(hotel):
    return ledger.enroll("HOTEL-1", "GUEST-1", Channel.DIRECT)


@pytest.fixture
def member_950(two_tiers, db):
    """Member with 950 tier and available points under BRONZE/SILVER."""
    program.upsert_program_config(
        "HOTEL-2",
        Channel.DIRECT,
        tiers=two_tiers,
        rules={"points_per_dollar": 1, "points_per_night": 0, "minimum_redemption": 500},
    )
    m = ledger.enroll("HOTEL-2", "GUEST-950", Channel.DIRECT)
    ledger.adjust_points(m.pk, 950, "all", "opening balance", actor_id="seed")
    m.refresh_from_db()
    return m
