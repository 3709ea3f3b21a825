"""
Quote expiration rules.

This is the only place that decides which statuses can expire and how the
expiry clock is computed. The lifecycle engine, the transition validator,
the status API and the expiration sweep all ask this module.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from vision_pos.core.config import QUOTE_AUTO_EXPIRE_DAYS, QUOTE_EXPIRATION_WARNING_DAYS
from vision_pos.models.enums.quote_status import QuoteStatus

EXPIRABLE_STATUSES = frozenset({QuoteStatus.DRAFT, QuoteStatus.PRESENTED})

SECONDS_PER_DAY = 24 * 60 * 60


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; they are stored as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expirable_status(status) -> bool:
    return QuoteStatus(status) in EXPIRABLE_STATUSES


class ExpirationPolicy:
    def __init__(
        self,
        default_expire_days: int = QUOTE_AUTO_EXPIRE_DAYS,
        warning_days: int = QUOTE_EXPIRATION_WARNING_DAYS,
    ):
        self.default_expire_days = default_expire_days
        self.warning_days = warning_days

    # -------------------------
    # CLOCK
    # -------------------------
    def expire_after_days(self, quote) -> int:
        return quote.auto_expire_after_days or self.default_expire_days

    def last_activity(self, quote) -> Optional[datetime]:
        return as_utc(quote.last_activity_at or quote.updated_at or quote.created_at)

    def days_since_activity(self, quote, now: Optional[datetime] = None) -> Optional[int]:
        last = self.last_activity(quote)
        if last is None:
            return None
        now = as_utc(now) or datetime.now(timezone.utc)
        return math.floor((now - last).total_seconds() / SECONDS_PER_DAY)

    def get_expiration_date(self, quote) -> Optional[datetime]:
        last = self.last_activity(quote)
        if last is None:
            return None
        return last + timedelta(days=self.expire_after_days(quote))

    def get_days_until_expiration(self, quote, now: Optional[datetime] = None) -> Optional[int]:
        expires_at = self.get_expiration_date(quote)
        if expires_at is None:
            return None
        now = as_utc(now) or datetime.now(timezone.utc)
        days = math.ceil((expires_at - now).total_seconds() / SECONDS_PER_DAY)
        return max(0, days)

    # -------------------------
    # DECISIONS
    # -------------------------
    def should_expire(self, quote, now: Optional[datetime] = None) -> bool:
        if not is_expirable_status(quote.status) or quote.expire_notification_sent:
            return False
        days = self.days_since_activity(quote, now)
        return days is not None and days >= self.expire_after_days(quote)

    def should_send_expiration_warning(self, quote, now: Optional[datetime] = None) -> bool:
        if not is_expirable_status(quote.status):
            return False
        if quote.expiration_warning_sent or quote.expire_notification_sent:
            return False
        if self.should_expire(quote, now):
            return False
        days = self.days_since_activity(quote, now)
        threshold = self.expire_after_days(quote) - self.warning_days
        return days is not None and days >= threshold


expiration_policy = ExpirationPolicy()
