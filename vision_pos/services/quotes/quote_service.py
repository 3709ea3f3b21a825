import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, asc, desc
from sqlalchemy.orm import noload

from vision_pos.core.config import QUOTE_AUTO_EXPIRE_DAYS
from vision_pos.core.exceptions import AppException
from vision_pos.constants.error_codes import ErrorCode
from vision_pos.constants.activity_codes import ActivityCode
from vision_pos.models.quotes.quote_models import Quote
from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.schemas.quotes.quote_schemas import (
    QuoteCreate,
    QuoteUpdate,
    QuoteProgressUpdate,
    QuoteSnapshot,
    QuoteOut,
    QuoteListItem,
    QuoteListData,
)
from vision_pos.services.quotes.quote_state_machine import can_edit_quote, is_terminal_state
from vision_pos.utils.activity_helpers import emit_activity, actor_fields
from vision_pos.utils.decimal_utils import to_money

logger = logging.getLogger(__name__)


# =====================================================
# HELPERS
# =====================================================
async def _get_quote(db: AsyncSession, quote_id: int) -> Quote:
    q = await db.scalar(
        select(Quote).where(
            Quote.id == quote_id,
            Quote.is_deleted.is_(False),
        )
    )
    if not q:
        raise AppException(404, "Quote not found", ErrorCode.QUOTE_NOT_FOUND)
    return q


def _map_quote(q: Quote) -> QuoteOut:
    snapshot = QuoteSnapshot.model_validate(q).model_dump()
    return QuoteOut(
        **snapshot,
        status_changed_at=q.status_changed_at,
        status_changed_by=q.status_changed_by,
        status_reason=q.status_reason,
        completed_at=q.completed_at,
        notes=q.notes,
        created_by_id=q.created_by_id,
        updated_by_id=q.updated_by_id,
        created_by_name=q.created_by_username,
        updated_by_name=q.updated_by_username,
    )


def _customer_name(patient_info: Optional[dict]) -> Optional[str]:
    if not patient_info:
        return None
    name = f"{patient_info.get('first_name') or ''} {patient_info.get('last_name') or ''}".strip()
    return name or None


def _dump(model) -> Optional[dict]:
    return model.model_dump() if model is not None else None


def _check_version(q: Quote, version: int) -> None:
    if q.version != version:
        raise AppException(
            409,
            "Version conflict",
            ErrorCode.QUOTE_VERSION_CONFLICT,
            details={"current_version": q.version},
        )


def _touch(q: Quote, user) -> None:
    """Bump version and restart the expiry clock (re-arming its warning)."""
    now = datetime.now(timezone.utc)
    q.version += 1
    q.updated_by_id = user.id
    q.updated_at = now
    q.last_activity_at = now
    q.expiration_warning_sent = False
    q.expiration_warning_sent_at = None


# =====================================================
# CREATE
# =====================================================
async def create_quote(
    db: AsyncSession,
    payload: QuoteCreate,
    user,
) -> QuoteOut:
    if payload.is_second_pair:
        if payload.second_pair_of_id is None:
            raise AppException(
                400,
                "Second pair quotes must reference the original quote",
                ErrorCode.VALIDATION_ERROR,
            )
        await _get_quote(db, payload.second_pair_of_id)

    now = datetime.now(timezone.utc)

    q = Quote(
        quote_number="TEMP",
        location_id=payload.location_id or user.location_id,
        status=QuoteStatus.BUILDING,
        last_activity_at=now,
        auto_expire_after_days=payload.auto_expire_after_days or QUOTE_AUTO_EXPIRE_DAYS,
        total=to_money(payload.total),
        exam_services=list(payload.exam_services),
        eyeglasses=_dump(payload.eyeglasses),
        contacts=_dump(payload.contacts),
        patient_info=_dump(payload.patient_info),
        insurance_info=_dump(payload.insurance_info),
        notes=payload.notes,
        is_patient_owned_frame=payload.is_patient_owned_frame,
        is_second_pair=payload.is_second_pair,
        second_pair_of_id=payload.second_pair_of_id if payload.is_second_pair else None,
        created_by_id=user.id,
        updated_by_id=user.id,
    )

    db.add(q)
    await db.flush()

    q.quote_number = f"QT-{q.id:06d}"

    await emit_activity(
        db,
        user_id=user.id,
        username=user.username,
        code=ActivityCode.CREATE_QUOTE,
        **actor_fields(user),
        target_name=q.quote_number,
    )

    await db.commit()
    await db.refresh(q)

    logger.info("Quote created", extra={"quote_id": q.id, "quote_number": q.quote_number})
    return _map_quote(q)


# =====================================================
# READ
# =====================================================
async def get_quote(db: AsyncSession, quote_id: int) -> QuoteOut:
    return _map_quote(await _get_quote(db, quote_id))


async def list_quotes(
    db: AsyncSession,
    status: QuoteStatus | None = None,
    location_id: str | None = None,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "created_at",
    order: str = "desc",
) -> QuoteListData:
    filters = [Quote.is_deleted.is_(False)]
    if status:
        filters.append(Quote.status == status)
    if location_id:
        filters.append(Quote.location_id == location_id)

    total = await db.scalar(select(func.count(Quote.id)).where(*filters))

    sort_map = {
        "created_at": Quote.created_at,
        "last_activity_at": Quote.last_activity_at,
        "quote_number": Quote.quote_number,
        "total": Quote.total,
    }
    sort_col = sort_map.get(sort_by, Quote.created_at)

    result = await db.execute(
        select(Quote)
        .options(noload("*"))
        .where(*filters)
        .order_by(asc(sort_col) if order == "asc" else desc(sort_col), Quote.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    items = [
        QuoteListItem(
            id=q.id,
            quote_number=q.quote_number,
            location_id=q.location_id,
            customer_name=_customer_name(q.patient_info),
            status=q.status,
            total=q.total,
            last_activity_at=q.last_activity_at,
            created_at=q.created_at,
            version=q.version,
        )
        for q in result.scalars()
    ]

    return QuoteListData(total=total or 0, items=items)


# =====================================================
# UPDATE CONTENT
# =====================================================
async def update_quote(
    db: AsyncSession,
    quote_id: int,
    payload: QuoteUpdate,
    user,
) -> QuoteOut:
    q = await _get_quote(db, quote_id)

    if not can_edit_quote(q.status):
        raise AppException(
            400,
            f"Quotes in {q.status.value} status cannot be edited",
            ErrorCode.QUOTE_INVALID_STATE,
        )

    _check_version(q, payload.version)

    changes: list[str] = []

    if payload.exam_services is not None and payload.exam_services != q.exam_services:
        q.exam_services = list(payload.exam_services)
        changes.append("exam_services")

    for name in ("eyeglasses", "contacts", "patient_info", "insurance_info"):
        value = getattr(payload, name)
        if value is not None and value.model_dump() != getattr(q, name):
            setattr(q, name, value.model_dump())
            changes.append(name)

    if payload.total is not None and to_money(payload.total) != to_money(q.total):
        q.total = to_money(payload.total)
        changes.append("total")

    if payload.auto_expire_after_days is not None and payload.auto_expire_after_days != q.auto_expire_after_days:
        q.auto_expire_after_days = payload.auto_expire_after_days
        changes.append("auto_expire_after_days")

    if payload.is_patient_owned_frame is not None and payload.is_patient_owned_frame != q.is_patient_owned_frame:
        q.is_patient_owned_frame = payload.is_patient_owned_frame
        changes.append("is_patient_owned_frame")

    if payload.notes is not None and payload.notes != q.notes:
        q.notes = payload.notes
        changes.append("notes")

    if not changes:
        return _map_quote(q)

    _touch(q, user)

    await emit_activity(
        db,
        user_id=user.id,
        username=user.username,
        code=ActivityCode.UPDATE_QUOTE,
        **actor_fields(user),
        target_name=q.quote_number,
        changes=", ".join(changes),
    )

    await db.commit()
    await db.refresh(q)
    return _map_quote(q)


# =====================================================
# UPDATE PROGRESS (signatures / fulfillment / POF)
# =====================================================
_PROGRESS_FLAGS = (
    "exam_signature_completed",
    "materials_signature_completed",
    "fulfillment_completed",
    "pof_inspection_completed",
    "pof_waiver_signed",
)


async def update_quote_progress(
    db: AsyncSession,
    quote_id: int,
    payload: QuoteProgressUpdate,
    user,
) -> QuoteOut:
    q = await _get_quote(db, quote_id)

    if is_terminal_state(q.status):
        raise AppException(
            400,
            f"Quotes in {q.status.value} status cannot be updated",
            ErrorCode.QUOTE_INVALID_STATE,
        )

    _check_version(q, payload.version)

    changes: list[str] = []

    for name in _PROGRESS_FLAGS:
        value = getattr(payload, name)
        if value is not None and value != getattr(q, name):
            setattr(q, name, value)
            changes.append(f"{name}={value}")

    if payload.insurance_verified is not None:
        if not q.insurance_info:
            raise AppException(
                400,
                "Quote has no insurance information to verify",
                ErrorCode.VALIDATION_ERROR,
            )
        if bool(q.insurance_info.get("verified")) != payload.insurance_verified:
            # reassign so the JSON column is flagged dirty
            q.insurance_info = {**q.insurance_info, "verified": payload.insurance_verified}
            changes.append(f"insurance_verified={payload.insurance_verified}")

    if not changes:
        return _map_quote(q)

    _touch(q, user)

    await emit_activity(
        db,
        user_id=user.id,
        username=user.username,
        code=ActivityCode.UPDATE_QUOTE_PROGRESS,
        **actor_fields(user),
        target_name=q.quote_number,
        changes=", ".join(changes),
    )

    await db.commit()
    await db.refresh(q)
    return _map_quote(q)
