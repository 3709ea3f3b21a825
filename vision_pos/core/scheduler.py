import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from vision_pos.core.db import session_scope
from vision_pos.services.quotes.quote_expiry_service import run_quote_expiration_job

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(timezone="UTC")


@scheduler.scheduled_job("cron", hour=2, minute=0, id="quote_expiration")  # daily at 02:00 UTC
async def expire_quotes_job():
    async with session_scope() as db:
        result = await run_quote_expiration_job(db)

    if result.errors:
        logger.warning(
            "Quote expiration job finished with errors",
            extra={"errors": len(result.errors), "expired": result.quotes_expired},
        )
