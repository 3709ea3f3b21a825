from dataclasses import dataclass, asdict
from decimal import Decimal

from vision_pos.schemas.quotes.quote_schemas import QuoteSnapshot


@dataclass(frozen=True)
class StateRequirements:
    has_required_signatures: bool
    has_valid_items: bool
    has_customer_info: bool
    has_payment_info: bool
    all_items_fulfilled: bool

    def as_dict(self) -> dict:
        return asdict(self)


def _has_items(group) -> bool:
    return bool(group and group.items)


def has_exam_services(quote: QuoteSnapshot) -> bool:
    return bool(quote.exam_services)


def has_materials(quote: QuoteSnapshot) -> bool:
    return _has_items(quote.eyeglasses) or _has_items(quote.contacts)


def required_signatures(quote: QuoteSnapshot) -> dict[str, bool]:
    """Signature name -> completed, for each signature the quote's content calls for."""
    required: dict[str, bool] = {}
    if has_exam_services(quote):
        required["exam"] = quote.exam_signature_completed
    if has_materials(quote):
        required["materials"] = quote.materials_signature_completed
    return required


def has_customer_info(quote: QuoteSnapshot) -> bool:
    info = quote.patient_info
    if info is None:
        return False
    return bool((info.first_name or "").strip() and (info.last_name or "").strip())


def check_state_requirements(quote: QuoteSnapshot) -> StateRequirements:
    signatures = required_signatures(quote)
    return StateRequirements(
        has_required_signatures=bool(signatures) and all(signatures.values()),
        has_valid_items=has_exam_services(quote) or has_materials(quote),
        has_customer_info=has_customer_info(quote),
        has_payment_info=quote.insurance_info is not None or quote.total > Decimal("0"),
        all_items_fulfilled=quote.fulfillment_completed,
    )
