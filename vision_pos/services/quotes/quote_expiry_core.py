from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import noload

from vision_pos.models.quotes.quote_models import Quote
from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.services.quotes.expiration_policy import EXPIRABLE_STATUSES
from vision_pos.services.quotes.quote_state_validation import SYSTEM_USER_ID


def _candidate_quotes_stmt(*, after_id: int, limit: int):
    """Keyset page of quotes the sweep still has to look at."""
    return (
        select(Quote)
        .options(noload("*"))
        .where(
            Quote.is_deleted.is_(False),
            Quote.status.in_(list(EXPIRABLE_STATUSES)),
            Quote.expire_notification_sent.is_(False),
            Quote.id > after_id,
        )
        .order_by(Quote.id)
        .limit(limit)
    )


def _expire_quote_stmt(
    *,
    quote_id: int,
    expected_status: QuoteStatus,
    expected_version: int,
    now: datetime,
    reason: str,
):
    """
    Conditional expire. Matches nothing once the quote has moved on (status
    change, edit or progress update all bump the version), so a quote touched
    after the sweep read it stays live and re-running the sweep is a no-op.
    """
    return (
        update(Quote)
        .where(
            Quote.id == quote_id,
            Quote.status == expected_status,
            Quote.version == expected_version,
            Quote.is_deleted.is_(False),
            Quote.expire_notification_sent.is_(False),
        )
        .values(
            status=QuoteStatus.EXPIRED,
            previous_status=expected_status,
            status_changed_at=now,
            status_changed_by=SYSTEM_USER_ID,
            status_reason=reason,
            expired_at=now,
            last_activity_at=now,
            updated_at=now,
            updated_by_id=None,  # system action
            version=Quote.version + 1,
        )
        .returning(Quote.id)
    )


def _mark_expire_notification_sent_stmt(*, quote_id: int, now: datetime):
    return (
        update(Quote)
        .where(Quote.id == quote_id)
        .values(
            expire_notification_sent=True,
            expire_notification_sent_at=now,
            updated_at=now,
        )
    )


def _mark_warning_sent_stmt(*, quote_id: int, now: datetime):
    return (
        update(Quote)
        .where(
            Quote.id == quote_id,
            Quote.status.in_(list(EXPIRABLE_STATUSES)),
            Quote.expiration_warning_sent.is_(False),
            Quote.is_deleted.is_(False),
        )
        .values(
            expiration_warning_sent=True,
            expiration_warning_sent_at=now,
            updated_at=now,
        )
        .returning(Quote.id)
    )
