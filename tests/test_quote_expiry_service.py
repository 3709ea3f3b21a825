"""Tests for the quote expiration sweep."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select, func, update

from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.models.quotes.quote_models import Quote, QuoteStatusHistory
from vision_pos.models.support.activity_models import UserActivity
from vision_pos.schemas.quotes.quote_schemas import QuoteSnapshot
from vision_pos.services.notifications.quote_notifier import QuoteNotifier
from vision_pos.services.quotes.expiration_policy import expiration_policy
from vision_pos.services.quotes.quote_expiry_core import _expire_quote_stmt
from vision_pos.services.quotes.quote_expiry_service import (
    ExpirationJobOptions,
    _expire_quote,
    run_quote_expiration_job,
)

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


class RecordingNotifier(QuoteNotifier):
    def __init__(self, fail_for: set[str] | None = None):
        self.sent = []
        self.fail_for = fail_for or set()

    async def send(self, notification):
        if notification.data.get("quote_number") in self.fail_for:
            raise RuntimeError("mail relay down")
        self.sent.append(notification)


async def run(db, notifier=None, **options):
    return await run_quote_expiration_job(
        db,
        ExpirationJobOptions(**options),
        now=NOW,
        notifier=notifier or RecordingNotifier(),
    )


async def reload(db, quote):
    await db.refresh(quote)
    return quote


class TestExpiry:
    @pytest.mark.asyncio
    async def test_expires_only_inactive_expirable_quotes(self, db_session, quote_factory):
        """Should expire old DRAFT / PRESENTED and leave everything else alone."""
        old_draft = await quote_factory(QuoteStatus.DRAFT, days_inactive=31)
        old_presented = await quote_factory(QuoteStatus.PRESENTED, days_inactive=45)
        fresh_draft = await quote_factory(QuoteStatus.DRAFT, days_inactive=2)
        old_building = await quote_factory(QuoteStatus.BUILDING, days_inactive=90)
        old_signed = await quote_factory(QuoteStatus.SIGNED, days_inactive=90)

        notifier = RecordingNotifier()
        result = await run(db_session, notifier)

        assert result.quotes_checked == 3
        assert result.quotes_expired == 2
        assert result.warnings_sent == 0
        assert result.errors == []
        assert result.dry_run is False

        for quote, previous in ((old_draft, QuoteStatus.DRAFT), (old_presented, QuoteStatus.PRESENTED)):
            quote = await reload(db_session, quote)
            assert quote.status == QuoteStatus.EXPIRED
            assert quote.previous_status == previous
            assert quote.status_changed_by == "system"
            assert quote.expired_at is not None
            assert quote.version == 2
            assert quote.expire_notification_sent is True

        for quote, status in (
            (fresh_draft, QuoteStatus.DRAFT),
            (old_building, QuoteStatus.BUILDING),
            (old_signed, QuoteStatus.SIGNED),
        ):
            quote = await reload(db_session, quote)
            assert quote.status == status
            assert quote.version == 1

        assert sorted(n.template for n in notifier.sent) == ["quote_expired", "quote_expired"]

    @pytest.mark.asyncio
    async def test_writes_history_and_activity(self, db_session, quote_factory):
        quote = await quote_factory(QuoteStatus.PRESENTED, days_inactive=30)

        await run(db_session)

        history = (
            await db_session.execute(select(QuoteStatusHistory).where(QuoteStatusHistory.quote_id == quote.id))
        ).scalars().all()
        assert len(history) == 1
        assert history[0].from_status == QuoteStatus.PRESENTED
        assert history[0].to_status == QuoteStatus.EXPIRED
        assert history[0].reason == "Presented quote auto-expired"
        assert history[0].reason_category == "SYSTEM_ACTION"
        assert history[0].changed_by == "system"

        messages = (await db_session.execute(select(UserActivity.message))).scalars().all()
        assert messages == [
            f"System (system) expired quote {quote.quote_number}: "
            "Expired automatically after 30 days of inactivity"
        ]

    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, db_session, quote_factory):
        quote = await quote_factory(QuoteStatus.DRAFT, days_inactive=40)

        first = await run(db_session)
        await reload(db_session, quote)
        version_after_first = quote.version

        second = await run(db_session)
        await reload(db_session, quote)

        assert first.quotes_expired == 1
        assert second.quotes_checked == 0
        assert second.quotes_expired == 0
        assert second.warnings_sent == 0
        assert quote.version == version_after_first
        assert await db_session.scalar(select(func.count(QuoteStatusHistory.id))) == 1

    @pytest.mark.asyncio
    async def test_without_notifications(self, db_session, quote_factory):
        quote = await quote_factory(QuoteStatus.DRAFT, days_inactive=40)
        notifier = RecordingNotifier()

        result = await run(db_session, notifier, send_notifications=False)
        await reload(db_session, quote)

        assert result.quotes_expired == 1
        assert quote.status == QuoteStatus.EXPIRED
        assert quote.expire_notification_sent is False
        assert notifier.sent == []


class TestDryRun:
    @pytest.mark.asyncio
    async def test_reports_without_writing(self, db_session, quote_factory):
        expiring = await quote_factory(QuoteStatus.DRAFT, days_inactive=31)
        warned = await quote_factory(QuoteStatus.PRESENTED, days_inactive=28)
        notifier = RecordingNotifier()

        result = await run(db_session, notifier, dry_run=True)

        assert result.dry_run is True
        assert result.quotes_expired == 1
        assert result.warnings_sent == 1
        assert notifier.sent == []

        assert (await reload(db_session, expiring)).status == QuoteStatus.DRAFT
        assert (await reload(db_session, warned)).expiration_warning_sent is False
        assert await db_session.scalar(select(func.count(QuoteStatusHistory.id))) == 0
        assert await db_session.scalar(select(func.count(UserActivity.id))) == 0


class TestWarnings:
    @pytest.mark.asyncio
    async def test_warns_once_inside_window(self, db_session, quote_factory):
        quote = await quote_factory(QuoteStatus.DRAFT, days_inactive=28)
        notifier = RecordingNotifier()

        first = await run(db_session, notifier)
        second = await run(db_session, notifier)
        await reload(db_session, quote)

        assert first.warnings_sent == 1
        assert second.warnings_sent == 0
        assert quote.status == QuoteStatus.DRAFT
        assert quote.expiration_warning_sent is True
        assert quote.expire_notification_sent is False
        assert quote.version == 1

        assert len(notifier.sent) == 1
        assert notifier.sent[0].template == "quote_expiration_warning"
        assert notifier.sent[0].data["days_until_expiration"] == 2
        assert notifier.sent[0].to == "ada@visionpos.com"

    @pytest.mark.asyncio
    async def test_warned_quote_still_expires_later(self, db_session, quote_factory):
        quote = await quote_factory(
            QuoteStatus.DRAFT,
            days_inactive=30,
            expiration_warning_sent=True,
        )

        result = await run(db_session)

        assert result.quotes_expired == 1
        assert (await reload(db_session, quote)).status == QuoteStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_no_warnings_when_notifications_disabled(self, db_session, quote_factory):
        quote = await quote_factory(QuoteStatus.DRAFT, days_inactive=28)

        result = await run(db_session, send_notifications=False)

        assert result.warnings_sent == 0
        assert (await reload(db_session, quote)).expiration_warning_sent is False


class TestBatching:
    @pytest.mark.asyncio
    async def test_pages_through_all_candidates(self, db_session, quote_factory):
        for _ in range(5):
            await quote_factory(QuoteStatus.DRAFT, days_inactive=31)

        result = await run(db_session, batch_size=2)

        assert result.quotes_checked == 5
        assert result.quotes_expired == 5

    @pytest.mark.asyncio
    async def test_respects_max_quotes(self, db_session, quote_factory):
        for _ in range(5):
            await quote_factory(QuoteStatus.DRAFT, days_inactive=31)

        result = await run(db_session, batch_size=2, max_quotes_to_process=3)
        remaining = await db_session.scalar(
            select(func.count(Quote.id)).where(Quote.status == QuoteStatus.DRAFT)
        )

        assert result.quotes_checked == 3
        assert result.quotes_expired == 3
        assert remaining == 2


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_run(self, db_session, quote_factory):
        failing = await quote_factory(QuoteStatus.DRAFT, days_inactive=31)
        others = [await quote_factory(QuoteStatus.DRAFT, days_inactive=31) for _ in range(2)]
        notifier = RecordingNotifier(fail_for={failing.quote_number})

        result = await run(db_session, notifier)

        assert result.quotes_expired == 2
        assert len(result.errors) == 1
        assert failing.quote_number in result.errors[0]
        for quote in others:
            assert (await reload(db_session, quote)).expire_notification_sent is True


class TestConditionalExpire:
    @pytest.mark.asyncio
    async def test_no_op_when_status_moved_on(self, db_session, quote_factory):
        """Should match nothing when the quote is no longer in the expected status."""
        quote = await quote_factory(QuoteStatus.SIGNED, days_inactive=40)

        matched = (
            await db_session.execute(
                _expire_quote_stmt(
                    quote_id=quote.id,
                    expected_status=QuoteStatus.PRESENTED,
                    expected_version=quote.version,
                    now=NOW,
                    reason="test",
                )
            )
        ).scalar_one_or_none()
        await db_session.commit()

        assert matched is None
        assert (await reload(db_session, quote)).status == QuoteStatus.SIGNED

    @pytest.mark.asyncio
    async def test_no_op_when_quote_edited_after_read(self, db_session, quote_factory):
        """Should leave a quote alone when it was touched after the sweep read it."""
        quote = await quote_factory(QuoteStatus.DRAFT, days_inactive=40)
        snapshot = QuoteSnapshot.model_validate(quote)
        assert expiration_policy.should_expire(snapshot, NOW)

        await db_session.execute(
            update(Quote)
            .where(Quote.id == quote.id)
            .values(last_activity_at=NOW, version=Quote.version + 1)
            .execution_options(synchronize_session=False)
        )
        await db_session.commit()

        expired = await _expire_quote(
            db_session,
            snapshot,
            NOW,
            ExpirationJobOptions(),
            RecordingNotifier(),
            expiration_policy,
        )
        quote = await reload(db_session, quote)

        assert expired is False
        assert quote.status == QuoteStatus.DRAFT
        assert quote.version == 2
        assert await db_session.scalar(select(func.count(QuoteStatusHistory.id))) == 0
