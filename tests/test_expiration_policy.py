"""Tests for the quote expiration policy."""

from datetime import datetime, timedelta, timezone

import pytest

from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.services.quotes.expiration_policy import (
    EXPIRABLE_STATUSES,
    ExpirationPolicy,
    as_utc,
    is_expirable_status,
)

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)

policy = ExpirationPolicy(default_expire_days=30, warning_days=3)


def inactive(make_snapshot, days, status=QuoteStatus.DRAFT, **overrides):
    return make_snapshot(status=status, last_activity_at=NOW - timedelta(days=days), **overrides)


class TestExpirableStatuses:
    def test_only_draft_and_presented(self):
        assert EXPIRABLE_STATUSES == {QuoteStatus.DRAFT, QuoteStatus.PRESENTED}

    @pytest.mark.parametrize("status", list(QuoteStatus))
    def test_status_gate(self, status):
        assert is_expirable_status(status) == (status in (QuoteStatus.DRAFT, QuoteStatus.PRESENTED))


class TestShouldExpire:
    @pytest.mark.parametrize(
        "status",
        [QuoteStatus.BUILDING, QuoteStatus.SIGNED, QuoteStatus.COMPLETED, QuoteStatus.CANCELLED, QuoteStatus.EXPIRED],
    )
    def test_never_for_non_expirable_status(self, make_snapshot, status):
        """Should ignore age for statuses outside DRAFT / PRESENTED."""
        assert not policy.should_expire(inactive(make_snapshot, 365, status=status), NOW)

    @pytest.mark.parametrize("status", [QuoteStatus.DRAFT, QuoteStatus.PRESENTED])
    def test_exactly_at_threshold(self, make_snapshot, status):
        assert policy.should_expire(inactive(make_snapshot, 30, status=status), NOW)

    def test_one_second_before_threshold(self, make_snapshot):
        quote = make_snapshot(
            status=QuoteStatus.DRAFT,
            last_activity_at=NOW - timedelta(days=30) + timedelta(seconds=1),
        )
        assert not policy.should_expire(quote, NOW)

    def test_not_after_notice_sent(self, make_snapshot):
        quote = inactive(make_snapshot, 60, expire_notification_sent=True)
        assert not policy.should_expire(quote, NOW)

    def test_still_expires_after_warning(self, make_snapshot):
        """Should not let the warning flag block expiry."""
        quote = inactive(make_snapshot, 30, expiration_warning_sent=True)
        assert policy.should_expire(quote, NOW)

    def test_per_quote_window(self, make_snapshot):
        quote = inactive(make_snapshot, 10, auto_expire_after_days=10)
        assert policy.should_expire(quote, NOW)

    def test_falls_back_to_updated_then_created(self, make_snapshot):
        by_updated = make_snapshot(status=QuoteStatus.DRAFT, updated_at=NOW - timedelta(days=31))
        by_created = make_snapshot(status=QuoteStatus.DRAFT, created_at=NOW - timedelta(days=31))

        assert policy.should_expire(by_updated, NOW)
        assert policy.should_expire(by_created, NOW)

    def test_no_timestamps_never_expires(self, make_snapshot):
        quote = make_snapshot(status=QuoteStatus.DRAFT)

        assert not policy.should_expire(quote, NOW)
        assert policy.get_days_until_expiration(quote, NOW) is None
        assert policy.get_expiration_date(quote) is None

    def test_naive_timestamps_are_utc(self, make_snapshot):
        naive = (NOW - timedelta(days=30)).replace(tzinfo=None)
        quote = make_snapshot(status=QuoteStatus.DRAFT, last_activity_at=naive)

        assert policy.should_expire(quote, NOW)
        assert as_utc(naive).utcoffset() == timedelta(0)


class TestDaysUntilExpiration:
    def test_counts_down(self, make_snapshot):
        assert policy.get_days_until_expiration(inactive(make_snapshot, 27), NOW) == 3

    def test_partial_day_rounds_up(self, make_snapshot):
        assert policy.get_days_until_expiration(inactive(make_snapshot, 27.5), NOW) == 3

    def test_never_negative(self, make_snapshot):
        assert policy.get_days_until_expiration(inactive(make_snapshot, 45), NOW) == 0

    def test_expiration_date(self, make_snapshot):
        quote = inactive(make_snapshot, 5)
        assert policy.get_expiration_date(quote) == NOW - timedelta(days=5) + timedelta(days=30)

    def test_days_since_activity_floors(self, make_snapshot):
        assert policy.days_since_activity(inactive(make_snapshot, 29.9), NOW) == 29


class TestExpirationWarning:
    def test_inside_warning_window(self, make_snapshot):
        assert policy.should_send_expiration_warning(inactive(make_snapshot, 27), NOW)

    def test_before_warning_window(self, make_snapshot):
        assert not policy.should_send_expiration_warning(inactive(make_snapshot, 26), NOW)

    def test_not_twice(self, make_snapshot):
        quote = inactive(make_snapshot, 28, expiration_warning_sent=True)
        assert not policy.should_send_expiration_warning(quote, NOW)

    def test_not_when_due_to_expire(self, make_snapshot):
        quote = inactive(make_snapshot, 30)

        assert policy.should_expire(quote, NOW)
        assert not policy.should_send_expiration_warning(quote, NOW)

    def test_not_for_building(self, make_snapshot):
        quote = inactive(make_snapshot, 28, status=QuoteStatus.BUILDING)
        assert not policy.should_send_expiration_warning(quote, NOW)
