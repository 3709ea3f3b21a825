from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vision_pos.core.db import get_db
from vision_pos.models.enums.quote_status import QuoteStatus
from vision_pos.models.enums.user_role import UserRole
from vision_pos.utils.check_roles import require_role, ALL_ROLES
from vision_pos.utils.response import success_response, APIResponse, CONFLICT_RESPONSES

from vision_pos.schemas.quotes.quote_schemas import (
    QuoteCreate,
    QuoteUpdate,
    QuoteProgressUpdate,
    QuoteOut,
    QuoteListData,
)

from vision_pos.services.quotes.quote_service import (
    create_quote,
    get_quote,
    list_quotes,
    update_quote,
    update_quote_progress,
)

router = APIRouter(
    prefix="/quotes",
    tags=["Quotes"],
)

QUOTE_EDITORS = [UserRole.SALES_ASSOCIATE, UserRole.MANAGER, UserRole.ADMIN]


@router.post(
    "",
    response_model=APIResponse[QuoteOut],
)
async def create_quote_api(
    payload: QuoteCreate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(QUOTE_EDITORS)),
):
    quote = await create_quote(db, payload, user)
    return success_response(
        "Quote created successfully",
        quote,
    )


@router.get(
    "/",
    response_model=APIResponse[QuoteListData],
)
async def list_quotes_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
    status: QuoteStatus | None = Query(None, description="Filter by status"),
    location_id: str | None = Query(None, description="Filter by location"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at"),
    order: str = Query("desc"),
):
    data = await list_quotes(
        db=db,
        status=status,
        location_id=location_id,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        order=order,
    )
    return success_response(
        "Quotes retrieved successfully",
        data,
    )


@router.get(
    "/{quote_id}",
    response_model=APIResponse[QuoteOut],
)
async def get_quote_api(
    quote_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    quote = await get_quote(db, quote_id)
    return success_response(
        "Quote retrieved successfully",
        quote,
    )


@router.patch(
    "/{quote_id}",
    response_model=APIResponse[QuoteOut],
    responses=CONFLICT_RESPONSES,
)
async def update_quote_api(
    quote_id: int,
    payload: QuoteUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(QUOTE_EDITORS)),
):
    quote = await update_quote(
        db=db,
        quote_id=quote_id,
        payload=payload,
        user=user,
    )
    return success_response(
        "Quote updated successfully",
        quote,
    )


@router.patch(
    "/{quote_id}/progress",
    response_model=APIResponse[QuoteOut],
    responses=CONFLICT_RESPONSES,
)
async def update_quote_progress_api(
    quote_id: int,
    payload: QuoteProgressUpdate,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(ALL_ROLES)),
):
    quote = await update_quote_progress(
        db=db,
        quote_id=quote_id,
        payload=payload,
        user=user,
    )
    return success_response(
        "Quote progress updated successfully",
        quote,
    )
