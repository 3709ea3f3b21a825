import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, desc

from vision_pos.core.exceptions import AppException
from vision_pos.constants.error_codes import ErrorCode
from vision_pos.constants.activity_codes import ActivityCode
from vision_pos.models.quotes.quote_models import Quote, QuoteStatusHistory, QuoteApprovalRequest
from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.models.enums.approval_status import ApprovalStatus
from vision_pos.schemas.quotes.quote_schemas import QuoteSnapshot
from vision_pos.schemas.quotes.quote_status_schemas import (
    QuoteStatusChangeRequest,
    QuoteStatusPreviewRequest,
    QuoteStatusChangeOut,
    QuoteStatusOut,
    ValidationResultOut,
    StateRequirementsOut,
    StateInfo,
    CompletionFlags,
    ExpirationInfo,
    ApprovalRequestOut,
    ApprovalListData,
    StatusHistoryOut,
)
from vision_pos.services.quotes.expiration_policy import expiration_policy, is_expirable_status
from vision_pos.services.quotes.quote_requirements import check_state_requirements
from vision_pos.services.quotes.quote_service import _get_quote, _map_quote, _check_version
from vision_pos.services.quotes.quote_state_machine import (
    get_transition_reason,
    get_next_valid_states,
    get_state_label,
    get_state_description,
    get_state_color,
    get_state_icon,
    is_terminal_state,
    can_edit_quote,
    requires_customer_action,
    ReasonCategory,
)
from vision_pos.services.quotes.quote_state_validation import (
    ValidationContext,
    ValidationResult,
    validate_state_transition,
    is_transition_permitted,
    get_validation_summary,
    get_recommended_actions,
)
from vision_pos.utils.activity_helpers import emit_activity, actor_fields
from vision_pos.utils.get_user import to_actor

logger = logging.getLogger(__name__)

_STATUS_TIMESTAMPS = {
    QuoteStatus.PRESENTED: "presented_at",
    QuoteStatus.SIGNED: "signed_at",
    QuoteStatus.COMPLETED: "completed_at",
    QuoteStatus.CANCELLED: "cancelled_at",
    QuoteStatus.EXPIRED: "expired_at",
}


# =====================================================
# HELPERS
# =====================================================
def _validation_out(result: ValidationResult) -> ValidationResultOut:
    return ValidationResultOut(
        is_valid=result.is_valid,
        errors=result.errors,
        warnings=result.warnings,
        requires_approval=result.requires_approval,
        approval_reason=result.approval_reason,
        summary=get_validation_summary(result),
    )


async def _second_pair_original_status(db: AsyncSession, q: Quote) -> Optional[QuoteStatus]:
    if not q.is_second_pair or q.second_pair_of_id is None:
        return None
    return await db.scalar(
        select(Quote.status).where(
            Quote.id == q.second_pair_of_id,
            Quote.is_deleted.is_(False),
        )
    )


async def _validate(
    db: AsyncSession,
    q: Quote,
    target: QuoteStatus,
    user,
    reason: Optional[str],
    override_flags,
) -> ValidationResult:
    ctx = ValidationContext(
        quote=QuoteSnapshot.model_validate(q),
        target_status=target,
        actor=to_actor(user),
        reason=reason,
        override_flags=override_flags,
        second_pair_original_status=await _second_pair_original_status(db, q),
    )
    return validate_state_transition(ctx)


async def _get_approval(db: AsyncSession, approval_id: int) -> QuoteApprovalRequest:
    approval = await db.get(QuoteApprovalRequest, approval_id)
    if not approval:
        raise AppException(404, "Approval request not found", ErrorCode.APPROVAL_NOT_FOUND)
    return approval


def _status_values(current: QuoteStatus, target: QuoteStatus, reason: str, user, now: datetime) -> dict:
    values = {
        "status": target,
        "previous_status": current,
        "status_changed_at": now,
        "status_changed_by": user.username,
        "status_reason": reason,
        "last_activity_at": now,
        "updated_at": now,
        "updated_by_id": user.id,
        "version": Quote.version + 1,
        # activity restarts the expiry clock, so the warning is re-armed
        "expiration_warning_sent": False,
        "expiration_warning_sent_at": None,
    }

    stamp = _STATUS_TIMESTAMPS.get(target)
    if stamp:
        values[stamp] = now

    if current == QuoteStatus.EXPIRED:
        values.update(
            expired_at=None,
            expire_notification_sent=False,
            expire_notification_sent_at=None,
        )

    return values


# =====================================================
# STATUS READ
# =====================================================
async def get_quote_status(db: AsyncSession, quote_id: int, user) -> QuoteStatusOut:
    q = await _get_quote(db, quote_id)
    snapshot = QuoteSnapshot.model_validate(q)
    requirements = check_state_requirements(snapshot)
    expirable = is_expirable_status(q.status)
    actor = to_actor(user)
    next_states = [
        target
        for target in get_next_valid_states(q.status, requirements, user.role)
        if is_transition_permitted(actor, q.status, target)
    ]

    return QuoteStatusOut(
        quote_id=q.id,
        quote_number=q.quote_number,
        status=q.status,
        previous_status=q.previous_status,
        status_changed_at=q.status_changed_at,
        status_changed_by=q.status_changed_by,
        status_reason=q.status_reason,
        last_activity_at=q.last_activity_at,
        version=q.version,
        completion_flags=CompletionFlags(
            exam_signature=q.exam_signature_completed,
            materials_signature=q.materials_signature_completed,
            fulfillment=q.fulfillment_completed,
            pof_inspection=q.pof_inspection_completed,
            pof_waiver=q.pof_waiver_signed,
        ),
        state_info=StateInfo(
            label=get_state_label(q.status),
            description=get_state_description(q.status),
            color=get_state_color(q.status),
            icon=get_state_icon(q.status),
            is_terminal=is_terminal_state(q.status),
            can_edit=can_edit_quote(q.status),
            requires_customer_action=requires_customer_action(q.status),
        ),
        next_valid_states=next_states,
        requirements=StateRequirementsOut(**requirements.as_dict()),
        recommended_actions=get_recommended_actions(snapshot),
        expiration=ExpirationInfo(
            is_expirable=expirable,
            expires_at=expiration_policy.get_expiration_date(snapshot) if expirable else None,
            days_until_expiration=(
                expiration_policy.get_days_until_expiration(snapshot) if expirable else None
            ),
            warning_sent=q.expiration_warning_sent,
            expiration_notice_sent=q.expire_notification_sent,
        ),
    )


async def preview_transition(
    db: AsyncSession,
    quote_id: int,
    payload: QuoteStatusPreviewRequest,
    user,
) -> ValidationResultOut:
    q = await _get_quote(db, quote_id)
    result = await _validate(db, q, payload.new_status, user, None, payload.override_flags)
    return _validation_out(result)


# =====================================================
# STATUS CHANGE
# =====================================================
async def change_quote_status(
    db: AsyncSession,
    quote_id: int,
    payload: QuoteStatusChangeRequest,
    user,
) -> QuoteStatusChangeOut:
    q = await _get_quote(db, quote_id)

    if payload.version is not None:
        _check_version(q, payload.version)

    current, target = q.status, payload.new_status

    if current == target:
        return QuoteStatusChangeOut(quote=_map_quote(q), changed=False)

    result = await _validate(db, q, target, user, payload.reason, payload.override_flags)
    validation = _validation_out(result)

    if not result.is_valid:
        logger.info(
            "Quote transition blocked",
            extra={"quote_id": q.id, "from": current.value, "to": target.value, "errors": result.errors},
        )
        raise AppException(
            400,
            "Status change blocked",
            ErrorCode.QUOTE_TRANSITION_BLOCKED,
            details={"errors": result.errors, "warnings": result.warnings},
        )

    approval: Optional[QuoteApprovalRequest] = None

    if result.requires_approval:
        if payload.approval_id is None:
            return await _request_approval(db, q, current, target, result, payload, user, validation)
        approval = await _consume_approval(db, payload.approval_id, q, current, target)

    now = datetime.now(timezone.utc)
    reason = payload.reason or get_transition_reason(current, target).reason
    category = (
        get_transition_reason(current, target).category if not payload.reason
        else ReasonCategory.USER_ACTION
    )

    changed_id = (
        await db.execute(
            update(Quote)
            .where(
                Quote.id == q.id,
                Quote.status == current,
                Quote.version == q.version,
                Quote.is_deleted.is_(False),
            )
            .values(**_status_values(current, target, reason, user, now))
            .returning(Quote.id)
        )
    ).scalar_one_or_none()

    if changed_id is None:
        await db.rollback()
        raise AppException(
            409,
            "Quote status changed by another request; reload and retry",
            ErrorCode.QUOTE_STALE_STATE,
        )

    db.add(
        QuoteStatusHistory(
            quote_id=q.id,
            from_status=current,
            to_status=target,
            reason=reason,
            reason_category=category.value,
            changed_by=user.username,
            user_id=user.id,
            user_comment=payload.user_comment,
            approval_request_id=approval.id if approval else None,
        )
    )

    await emit_activity(
        db,
        user_id=user.id,
        username=user.username,
        code=ActivityCode.CHANGE_QUOTE_STATUS,
        **actor_fields(user),
        target_name=q.quote_number,
        old_status=current.value,
        new_status=target.value,
        reason=reason,
    )

    await db.commit()
    await db.refresh(q)

    logger.info(
        "Quote status changed",
        extra={"quote_id": q.id, "from": current.value, "to": target.value, "user_id": user.id},
    )

    return QuoteStatusChangeOut(
        quote=_map_quote(q),
        changed=True,
        approval_id=approval.id if approval else None,
        validation=validation,
    )


async def _request_approval(
    db: AsyncSession,
    q: Quote,
    current: QuoteStatus,
    target: QuoteStatus,
    result: ValidationResult,
    payload: QuoteStatusChangeRequest,
    user,
    validation: ValidationResultOut,
) -> QuoteStatusChangeOut:
    pending = await db.scalar(
        select(QuoteApprovalRequest).where(
            QuoteApprovalRequest.quote_id == q.id,
            QuoteApprovalRequest.from_status == current,
            QuoteApprovalRequest.to_status == target,
            QuoteApprovalRequest.status == ApprovalStatus.PENDING,
        )
    )

    if pending is None:
        pending = QuoteApprovalRequest(
            quote_id=q.id,
            from_status=current,
            to_status=target,
            status=ApprovalStatus.PENDING,
            reason=result.approval_reason or "Manager approval required",
            user_comment=payload.user_comment,
            requested_by_id=user.id,
        )
        db.add(pending)
        await db.flush()

        await emit_activity(
            db,
            user_id=user.id,
            username=user.username,
            code=ActivityCode.REQUEST_QUOTE_APPROVAL,
            **actor_fields(user),
            target_name=q.quote_number,
            old_status=current.value,
            new_status=target.value,
        )

        await db.commit()
        await db.refresh(pending)
        logger.info(
            "Quote approval requested",
            extra={"quote_id": q.id, "approval_id": pending.id, "to": target.value},
        )

    return QuoteStatusChangeOut(
        quote=_map_quote(q),
        changed=False,
        requires_approval=True,
        approval_id=pending.id,
        validation=validation,
    )


async def _consume_approval(
    db: AsyncSession,
    approval_id: int,
    q: Quote,
    current: QuoteStatus,
    target: QuoteStatus,
) -> QuoteApprovalRequest:
    approval = await _get_approval(db, approval_id)

    if (
        approval.quote_id != q.id
        or approval.from_status != current
        or approval.to_status != target
    ):
        raise AppException(
            409,
            "Approval does not match this status change",
            ErrorCode.APPROVAL_INVALID,
        )

    if approval.status != ApprovalStatus.APPROVED or approval.consumed_at is not None:
        raise AppException(
            409,
            "Approval is not approved or was already used",
            ErrorCode.APPROVAL_INVALID,
        )

    consumed = (
        await db.execute(
            update(QuoteApprovalRequest)
            .where(
                QuoteApprovalRequest.id == approval.id,
                QuoteApprovalRequest.status == ApprovalStatus.APPROVED,
                QuoteApprovalRequest.consumed_at.is_(None),
            )
            .values(consumed_at=datetime.now(timezone.utc))
            .returning(QuoteApprovalRequest.id)
        )
    ).scalar_one_or_none()

    if consumed is None:
        await db.rollback()
        raise AppException(409, "Approval was already used", ErrorCode.APPROVAL_INVALID)

    return approval


# =====================================================
# APPROVALS
# =====================================================
async def list_approval_requests(
    db: AsyncSession,
    status: ApprovalStatus | None = ApprovalStatus.PENDING,
    quote_id: int | None = None,
    page: int = 1,
    page_size: int = 20,
) -> ApprovalListData:
    filters = []
    if status:
        filters.append(QuoteApprovalRequest.status == status)
    if quote_id:
        filters.append(QuoteApprovalRequest.quote_id == quote_id)

    total = await db.scalar(select(func.count(QuoteApprovalRequest.id)).where(*filters))

    result = await db.execute(
        select(QuoteApprovalRequest)
        .where(*filters)
        .order_by(desc(QuoteApprovalRequest.created_at), desc(QuoteApprovalRequest.id))
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return ApprovalListData(
        total=total or 0,
        items=[ApprovalRequestOut.model_validate(a) for a in result.scalars()],
    )


async def _decide_approval(
    db: AsyncSession,
    approval_id: int,
    user,
    decision: ApprovalStatus,
    rejection_reason: Optional[str] = None,
) -> QuoteApprovalRequest:
    approval = await _get_approval(db, approval_id)

    if approval.status != ApprovalStatus.PENDING:
        raise AppException(
            409,
            f"Approval request is already {approval.status.value}",
            ErrorCode.APPROVAL_INVALID,
        )

    decided_id = (
        await db.execute(
            update(QuoteApprovalRequest)
            .where(
                QuoteApprovalRequest.id == approval.id,
                QuoteApprovalRequest.status == ApprovalStatus.PENDING,
            )
            .values(
                status=decision,
                decided_by_id=user.id,
                decided_at=datetime.now(timezone.utc),
                rejection_reason=rejection_reason,
            )
            .returning(QuoteApprovalRequest.id)
        )
    ).scalar_one_or_none()

    if decided_id is None:
        await db.rollback()
        raise AppException(409, "Approval request was already decided", ErrorCode.APPROVAL_INVALID)

    return approval


async def approve_approval_request(db: AsyncSession, approval_id: int, user) -> ApprovalRequestOut:
    approval = await _decide_approval(db, approval_id, user, ApprovalStatus.APPROVED)
    quote_number = await db.scalar(select(Quote.quote_number).where(Quote.id == approval.quote_id))

    await emit_activity(
        db,
        user_id=user.id,
        username=user.username,
        code=ActivityCode.APPROVE_QUOTE_APPROVAL,
        **actor_fields(user),
        target_id=approval.id,
        target_name=quote_number,
    )

    await db.commit()
    await db.refresh(approval)
    return ApprovalRequestOut.model_validate(approval)


async def reject_approval_request(
    db: AsyncSession,
    approval_id: int,
    rejection_reason: str,
    user,
) -> ApprovalRequestOut:
    approval = await _decide_approval(db, approval_id, user, ApprovalStatus.REJECTED, rejection_reason)
    quote_number = await db.scalar(select(Quote.quote_number).where(Quote.id == approval.quote_id))

    await emit_activity(
        db,
        user_id=user.id,
        username=user.username,
        code=ActivityCode.REJECT_QUOTE_APPROVAL,
        **actor_fields(user),
        target_id=approval.id,
        target_name=quote_number,
        reason=rejection_reason,
    )

    await db.commit()
    await db.refresh(approval)
    return ApprovalRequestOut.model_validate(approval)


# =====================================================
# HISTORY
# =====================================================
async def get_status_history(db: AsyncSession, quote_id: int) -> list[StatusHistoryOut]:
    await _get_quote(db, quote_id)

    result = await db.execute(
        select(QuoteStatusHistory)
        .where(QuoteStatusHistory.quote_id == quote_id)
        .order_by(QuoteStatusHistory.id)
    )
    return [StatusHistoryOut.model_validate(h) for h in result.scalars()]
