"""
Loyalman configuration.

Usage in settings.py:
    LOYALMAN = {
        "OVERDEDUCTION_POLICY": "clamp",
        "MAX_RETRIES": 3,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class LoyalmanSettings:
    """Loyalman configuration settings."""

    # "clamp" floors deductions at zero, "reject" refuses them
    OVERDEDUCTION_POLICY: str = "clamp"

    # Optimistic concurrency retries before surfacing ConcurrencyConflict
    MAX_RETRIES: int = 3

    # Row lock wait bound (PostgreSQL only)
    LOCK_TIMEOUT_MS: int = 2000

    # Used when a program is created without expiration_months
    DEFAULT_EXPIRATION_MONTHS: int = 12

    HISTORY_LIMIT: int = 50


def get_loyalman_settings() -> LoyalmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "LOYALMAN", {})
    return LoyalmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_loyalman_settings(), name)


loyalman_settings = _LazySettings()
