"""Tests for subscription pricing and date arithmetic (pure functions)."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from shopledger.features.subscriptions.service import (
    compute_expiry,
    compute_start_date,
    parse_auto_renew,
    resolve_tier,
    select_price,
)
from shopledger.models.plan import PricingPlan
from shopledger.models.subscription import DurationTier

UTC = timezone.utc


def _plan():
    return PricingPlan(
        plan_id="00000000-0000-4000-8000-000000000001",
        name="Pro",
        monthly_price=Decimal("10.00"),
        quarterly_price=Decimal("27.00"),
        yearly_price=Decimal("100.00"),
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


@pytest.mark.parametrize(
    "duration,expected",
    [
        ("monthly", Decimal("10.00")),
        ("quarterly", Decimal("27.00")),
        ("yearly", Decimal("100.00")),
        ("weekly", Decimal("10.00")),
        (None, Decimal("10.00")),
    ],
)
def test_select_price_per_tier(duration, expected):
    assert select_price(_plan(), duration) == expected


def test_resolve_tier_unknown_is_none():
    assert resolve_tier("quarterly") is DurationTier.QUARTERLY
    assert resolve_tier("fortnightly") is None


def test_start_is_now_without_current_term():
    now = datetime(2024, 5, 1, 9, 30, tzinfo=UTC)
    assert compute_start_date(None, now) == now


def test_start_is_now_when_current_term_already_expired():
    now = datetime(2024, 5, 1, tzinfo=UTC)
    assert compute_start_date(now - timedelta(days=3), now) == now


def test_start_deferred_to_day_after_running_term():
    now = datetime(2024, 1, 20, tzinfo=UTC)
    current_expiry = datetime(2024, 2, 15, 12, 0, tzinfo=UTC)
    assert compute_start_date(current_expiry, now) == datetime(2024, 2, 16, 12, 0, tzinfo=UTC)


def test_start_treats_naive_stored_timestamps_as_utc():
    now = datetime(2024, 1, 20, tzinfo=UTC)
    stored = datetime(2024, 2, 15, 12, 0)
    assert compute_start_date(stored, now) == datetime(2024, 2, 16, 12, 0, tzinfo=UTC)


def test_expiry_equal_to_now_does_not_defer():
    now = datetime(2024, 1, 20, tzinfo=UTC)
    assert compute_start_date(now, now) == now


@pytest.mark.parametrize(
    "start,duration,expected",
    [
        (datetime(2024, 1, 15, tzinfo=UTC), "monthly", datetime(2024, 2, 15, tzinfo=UTC)),
        (datetime(2024, 1, 15, tzinfo=UTC), "quarterly", datetime(2024, 4, 15, tzinfo=UTC)),
        (datetime(2024, 1, 15, tzinfo=UTC), "yearly", datetime(2025, 1, 15, tzinfo=UTC)),
        (datetime(2024, 1, 15, tzinfo=UTC), "weekly", datetime(2024, 2, 15, tzinfo=UTC)),
    ],
)
def test_expiry_adds_calendar_months(start, duration, expected):
    assert compute_expiry(start, duration) == expected


def test_month_end_rolls_over_in_leap_year():
    assert compute_expiry(datetime(2024, 1, 31, tzinfo=UTC), "monthly") == datetime(2024, 3, 2, tzinfo=UTC)


def test_month_end_rolls_over_in_common_year():
    assert compute_expiry(datetime(2023, 1, 31, tzinfo=UTC), "monthly") == datetime(2023, 3, 3, tzinfo=UTC)


def test_leap_day_yearly_lands_on_mar_1():
    assert compute_expiry(datetime(2024, 2, 29, tzinfo=UTC), "yearly") == datetime(2025, 3, 1, tzinfo=UTC)


def test_quarterly_across_year_boundary():
    assert compute_expiry(datetime(2024, 11, 30, tzinfo=UTC), "quarterly") == datetime(2025, 3, 2, tzinfo=UTC)


@pytest.mark.parametrize(
    "value,expected",
    [(True, True), (False, False), (None, False), ("on", True), ("ON", True), ("true", True), ("1", True), ("off", False), ("", False)],
)
def test_parse_auto_renew(value, expected):
    assert parse_auto_renew(value) is expected


def test_day_that_exists_in_target_month_is_kept():
    assert compute_expiry(datetime(2024, 1, 30, tzinfo=UTC), "quarterly") == datetime(2024, 4, 30, tzinfo=UTC)


def test_rollover_keeps_time_of_day():
    assert compute_expiry(datetime(2024, 3, 31, 8, 15, tzinfo=UTC), "monthly") == datetime(2024, 5, 1, 8, 15, tzinfo=UTC)
