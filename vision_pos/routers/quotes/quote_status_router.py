from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vision_pos.core.db import get_db
from vision_pos.utils.check_roles import require_role, ALL_ROLES
from vision_pos.utils.response import success_response, APIResponse, CONFLICT_RESPONSES

from vision_pos.schemas.quotes.quote_status_schemas import (
    QuoteStatusChangeRequest,
    QuoteStatusPreviewRequest,
    QuoteStatusChangeOut,
    QuoteStatusOut,
    ValidationResultOut,
    StatusHistoryOut,
)

from vision_pos.services.quotes.quote_status_service import (
    get_quote_status,
    preview_transition,
    change_quote_status,
    get_status_history,
)

router = APIRouter(
    prefix="/quotes",
    tags=["Quote Status"],
)


@router.get(
    "/{quote_id}/status",
    response_model=APIResponse[QuoteStatusOut],
)
async def get_quote_status_api(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    data = await get_quote_status(db, quote_id, user)
    return success_response(
        "Quote status retrieved successfully",
        data,
    )


@router.patch(
    "/{quote_id}/status",
    response_model=APIResponse[QuoteStatusChangeOut],
    responses=CONFLICT_RESPONSES,
)
async def change_quote_status_api(
    quote_id: int,
    payload: QuoteStatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    data = await change_quote_status(
        db=db,
        quote_id=quote_id,
        payload=payload,
        user=user,
    )

    if data.requires_approval and not data.changed:
        message = "Manager approval required; approval request submitted"
    elif data.changed:
        message = f"Quote status updated to {data.quote.status.value}"
    else:
        message = "Quote is already in the requested status"

    return success_response(message, data)


@router.post(
    "/{quote_id}/status/preview",
    response_model=APIResponse[ValidationResultOut],
)
async def preview_quote_status_api(
    quote_id: int,
    payload: QuoteStatusPreviewRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    data = await preview_transition(db, quote_id, payload, user)
    return success_response(
        "Transition validated",
        data,
    )


@router.get(
    "/{quote_id}/status/history",
    response_model=APIResponse[List[StatusHistoryOut]],
)
async def get_quote_status_history_api(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    data = await get_status_history(db, quote_id)
    return success_response(
        "Quote status history retrieved successfully",
        data,
    )
