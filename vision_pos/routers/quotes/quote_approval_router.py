from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vision_pos.core.db import get_db
from vision_pos.models.enums.approval_status import ApprovalStatus
from vision_pos.models.enums.user_role import APPROVER_ROLES
from vision_pos.utils.check_roles import require_role
from vision_pos.utils.response import success_response, APIResponse, CONFLICT_RESPONSES

from vision_pos.schemas.quotes.quote_status_schemas import (
    ApprovalRequestOut,
    ApprovalListData,
    ApprovalRejectRequest,
)

from vision_pos.services.quotes.quote_status_service import (
    list_approval_requests,
    approve_approval_request,
    reject_approval_request,
)

router = APIRouter(
    prefix="/quotes/approvals",
    tags=["Quote Approvals"],
)


@router.get(
    "/",
    response_model=APIResponse[ApprovalListData],
)
async def list_approval_requests_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(list(APPROVER_ROLES))),
    status: ApprovalStatus | None = Query(ApprovalStatus.PENDING),
    quote_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    data = await list_approval_requests(
        db=db,
        status=status,
        quote_id=quote_id,
        page=page,
        page_size=page_size,
    )
    return success_response(
        "Approval requests retrieved successfully",
        data,
    )


@router.post(
    "/{approval_id}/approve",
    response_model=APIResponse[ApprovalRequestOut],
    responses=CONFLICT_RESPONSES,
)
async def approve_approval_request_api(
    approval_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(list(APPROVER_ROLES))),
):
    data = await approve_approval_request(db, approval_id, user)
    return success_response(
        "Approval request approved",
        data,
    )


@router.post(
    "/{approval_id}/reject",
    response_model=APIResponse[ApprovalRequestOut],
    responses=CONFLICT_RESPONSES,
)
async def reject_approval_request_api(
    approval_id: int,
    payload: ApprovalRejectRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(list(APPROVER_ROLES))),
):
    data = await reject_approval_request(db, approval_id, payload.rejection_reason, user)
    return success_response(
        "Approval request rejected",
        data,
    )
