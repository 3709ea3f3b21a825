"""Customer notifications for quote expiry. Delivery is handed to the log."""

import logging
from dataclasses import dataclass, field, asdict
from typing import Optional

from vision_pos.core.config import PUBLIC_BASE_URL

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteNotification:
    template: str
    subject: str
    to: Optional[str]
    data: dict = field(default_factory=dict)


def _customer_name(patient_info: Optional[dict]) -> str:
    info = patient_info or {}
    name = f"{info.get('first_name') or ''} {info.get('last_name') or ''}".strip()
    return name or "Customer"


def _quote_link(quote_id) -> Optional[str]:
    if not PUBLIC_BASE_URL:
        return None
    return f"{PUBLIC_BASE_URL}/quotes/{quote_id}"


def build_expired_notification(quote) -> QuoteNotification:
    patient_info = _as_dict(quote.patient_info)
    return QuoteNotification(
        template="quote_expired",
        subject=f"Quote {quote.quote_number} has expired",
        to=patient_info.get("email"),
        data={
            "customer_name": _customer_name(patient_info),
            "quote_number": quote.quote_number,
            "quote_link": _quote_link(quote.id),
        },
    )


def build_expiration_warning(quote, days_until_expiration: int) -> QuoteNotification:
    patient_info = _as_dict(quote.patient_info)
    return QuoteNotification(
        template="quote_expiration_warning",
        subject=f"Quote {quote.quote_number} expires in {days_until_expiration} days",
        to=patient_info.get("email"),
        data={
            "customer_name": _customer_name(patient_info),
            "quote_number": quote.quote_number,
            "days_until_expiration": days_until_expiration,
            "quote_link": _quote_link(quote.id),
        },
    )


def _as_dict(value) -> dict:
    if value is None:
        return {}
    if hasattr(value, "model_dump"):
        return value.model_dump()
    return dict(value)


class QuoteNotifier:
    async def send(self, notification: QuoteNotification) -> None:
        if not notification.to:
            logger.info(
                "No recipient for %s notification", notification.template,
                extra={"quote_number": notification.data.get("quote_number")},
            )
            return
        logger.info("Notification queued: %s", asdict(notification))

    async def quote_expired(self, quote) -> None:
        await self.send(build_expired_notification(quote))

    async def quote_expiring(self, quote, days_until_expiration: int) -> None:
        await self.send(build_expiration_warning(quote, days_until_expiration))


quote_notifier = QuoteNotifier()
