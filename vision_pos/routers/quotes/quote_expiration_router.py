import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vision_pos.core.db import get_db
from vision_pos.models.enums.user_role import APPROVER_ROLES
from vision_pos.utils.check_roles import require_role
from vision_pos.utils.response import success_response, APIResponse

from vision_pos.schemas.quotes.quote_status_schemas import (
    ExpirationRunRequest,
    ExpirationJobResultOut,
)
from vision_pos.services.quotes.quote_expiry_service import (
    ExpirationJobOptions,
    run_quote_expiration_job,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/quotes/expiration",
    tags=["Quote Expiration"],
)


@router.post(
    "/run",
    response_model=APIResponse[ExpirationJobResultOut],
)
async def run_quote_expiration_api(
    payload: ExpirationRunRequest,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(list(APPROVER_ROLES))),
):
    logger.info(
        "Manual expiration run requested",
        extra={"user_id": user.id, "dry_run": payload.dry_run},
    )

    options = ExpirationJobOptions(dry_run=payload.dry_run)
    if payload.batch_size is not None:
        options.batch_size = payload.batch_size
    if payload.max_quotes_to_process is not None:
        options.max_quotes_to_process = payload.max_quotes_to_process
    if payload.send_notifications is not None:
        options.send_notifications = payload.send_notifications

    result = await run_quote_expiration_job(db, options)

    return success_response(
        "Dry run completed" if result.dry_run else "Expiration run completed",
        ExpirationJobResultOut(**asdict(result)),
    )
