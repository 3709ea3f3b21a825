import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from vision_pos.core.config import (
    EXPIRY_BATCH_SIZE,
    EXPIRY_MAX_QUOTES_PER_RUN,
    EXPIRY_SEND_NOTIFICATIONS,
)
from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.models.quotes.quote_models import QuoteStatusHistory
from vision_pos.schemas.quotes.quote_schemas import QuoteSnapshot
from vision_pos.constants.activity_codes import ActivityCode
from vision_pos.utils.activity_helpers import emit_activity, SYSTEM_ACTOR_FIELDS
from vision_pos.services.notifications.quote_notifier import QuoteNotifier, quote_notifier
from vision_pos.services.quotes.expiration_policy import ExpirationPolicy, expiration_policy
from vision_pos.services.quotes.quote_state_machine import can_transition, get_transition_reason
from vision_pos.services.quotes.quote_state_validation import SYSTEM_USER_ID
from vision_pos.services.quotes.quote_expiry_core import (
    _candidate_quotes_stmt,
    _expire_quote_stmt,
    _mark_expire_notification_sent_stmt,
    _mark_warning_sent_stmt,
)

logger = logging.getLogger(__name__)


@dataclass
class ExpirationJobOptions:
    dry_run: bool = False
    batch_size: int = EXPIRY_BATCH_SIZE
    max_quotes_to_process: int = EXPIRY_MAX_QUOTES_PER_RUN
    send_notifications: bool = EXPIRY_SEND_NOTIFICATIONS


@dataclass
class ExpirationJobResult:
    quotes_checked: int = 0
    quotes_expired: int = 0
    warnings_sent: int = 0
    errors: list[str] = field(default_factory=list)
    execution_time_ms: int = 0
    dry_run: bool = False


async def run_quote_expiration_job(
    db: AsyncSession,
    options: Optional[ExpirationJobOptions] = None,
    now: Optional[datetime] = None,
    notifier: QuoteNotifier = quote_notifier,
    policy: ExpirationPolicy = expiration_policy,
) -> ExpirationJobResult:
    """
    Expire inactive DRAFT / PRESENTED quotes and warn the ones close to it.

    Each quote is committed (or rolled back) on its own, so one bad row never
    undoes the rest of the run. A dry run reports what would happen and
    writes nothing.
    """
    options = options or ExpirationJobOptions()
    now = now or datetime.now(timezone.utc)
    started = time.perf_counter()
    result = ExpirationJobResult(dry_run=options.dry_run)

    logger.info(
        "Starting quote expiration job",
        extra={
            "dry_run": options.dry_run,
            "batch_size": options.batch_size,
            "max_quotes": options.max_quotes_to_process,
        },
    )

    last_id = 0
    try:
        while result.quotes_checked < options.max_quotes_to_process:
            limit = min(options.batch_size, options.max_quotes_to_process - result.quotes_checked)

            rows = (
                await db.execute(_candidate_quotes_stmt(after_id=last_id, limit=limit))
            ).scalars().all()
            if not rows:
                break

            batch = [QuoteSnapshot.model_validate(q) for q in rows]
            last_id = batch[-1].id
            result.quotes_checked += len(batch)

            logger.debug("Processing expiration batch of %s quotes", len(batch))

            for quote in batch:
                await _process_quote(db, quote, options, now, notifier, policy, result)

            if len(rows) < limit:
                break

    except Exception as e:
        await db.rollback()
        logger.exception("Quote expiration job failed")
        result.errors.append(f"Fatal error in expiration job: {e}")

    result.execution_time_ms = int((time.perf_counter() - started) * 1000)

    logger.info(
        "Quote expiration job completed",
        extra={
            "checked": result.quotes_checked,
            "expired": result.quotes_expired,
            "warnings": result.warnings_sent,
            "errors": len(result.errors),
            "duration_ms": result.execution_time_ms,
        },
    )
    return result


async def _process_quote(
    db: AsyncSession,
    quote: QuoteSnapshot,
    options: ExpirationJobOptions,
    now: datetime,
    notifier: QuoteNotifier,
    policy: ExpirationPolicy,
    result: ExpirationJobResult,
) -> None:
    try:
        if policy.should_expire(quote, now) and can_transition(quote.status, QuoteStatus.EXPIRED):
            if options.dry_run:
                logger.info("[DRY RUN] Would expire quote %s", quote.quote_number)
                result.quotes_expired += 1
                return

            if await _expire_quote(db, quote, now, options, notifier, policy):
                result.quotes_expired += 1

        elif options.send_notifications and policy.should_send_expiration_warning(quote, now):
            days_left = policy.get_days_until_expiration(quote, now)
            if options.dry_run:
                logger.info(
                    "[DRY RUN] Would warn quote %s (%s days left)", quote.quote_number, days_left
                )
                result.warnings_sent += 1
                return

            if await _warn_quote(db, quote, days_left, now, notifier):
                result.warnings_sent += 1

    except Exception as e:
        await db.rollback()
        logger.exception("Error processing quote %s", quote.quote_number)
        result.errors.append(f"Error processing quote {quote.quote_number}: {e}")


async def _expire_quote(
    db: AsyncSession,
    quote: QuoteSnapshot,
    now: datetime,
    options: ExpirationJobOptions,
    notifier: QuoteNotifier,
    policy: ExpirationPolicy,
) -> bool:
    reason = get_transition_reason(quote.status, QuoteStatus.EXPIRED)
    days_inactive = policy.days_since_activity(quote, now)

    expired_id = (
        await db.execute(
            _expire_quote_stmt(
                quote_id=quote.id,
                expected_status=quote.status,
                expected_version=quote.version,
                now=now,
                reason=reason.reason,
            )
        )
    ).scalar_one_or_none()

    if expired_id is None:
        # Someone moved the quote since it was read
        await db.rollback()
        logger.debug("Quote %s changed before expiry, skipped", quote.quote_number)
        return False

    db.add(
        QuoteStatusHistory(
            quote_id=quote.id,
            from_status=quote.status,
            to_status=QuoteStatus.EXPIRED,
            reason=reason.reason,
            reason_category=reason.category.value,
            changed_by=SYSTEM_USER_ID,
            user_id=None,
        )
    )

    await emit_activity(
        db,
        user_id=None,
        username="system",
        code=ActivityCode.EXPIRE_QUOTE,
        **SYSTEM_ACTOR_FIELDS,
        target_name=quote.quote_number,
        changes=f"Expired automatically after {days_inactive} days of inactivity",
    )

    await db.commit()
    logger.info(
        "Quote expired",
        extra={"quote_id": quote.id, "quote_number": quote.quote_number, "days_inactive": days_inactive},
    )

    if options.send_notifications:
        await notifier.quote_expired(quote)
        await db.execute(_mark_expire_notification_sent_stmt(quote_id=quote.id, now=now))
        await db.commit()

    return True


async def _warn_quote(
    db: AsyncSession,
    quote: QuoteSnapshot,
    days_left: Optional[int],
    now: datetime,
    notifier: QuoteNotifier,
) -> bool:
    marked = (
        await db.execute(_mark_warning_sent_stmt(quote_id=quote.id, now=now))
    ).scalar_one_or_none()

    if marked is None:
        await db.rollback()
        return False

    await emit_activity(
        db,
        user_id=None,
        username="system",
        code=ActivityCode.WARN_QUOTE_EXPIRATION,
        **SYSTEM_ACTOR_FIELDS,
        target_name=quote.quote_number,
        days_left=days_left,
    )

    await db.commit()
    await notifier.quote_expiring(quote, days_left)

    logger.info(
        "Expiration warning sent",
        extra={"quote_id": quote.id, "quote_number": quote.quote_number, "days_left": days_left},
    )
    return True
