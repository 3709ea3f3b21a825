import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vision_pos.core.db import get_db
from vision_pos.schemas.auth.auth_schemas import LoginRequest, LoginData
from vision_pos.services.auth.auth_service import login_user, logout_user
from vision_pos.utils.get_user import get_current_user
from vision_pos.utils.response import success_response, APIResponse

logger = logging.getLogger("auth.router")

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=APIResponse[LoginData])
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    logger.info("Login attempt", extra={"email": payload.email})

    data = await login_user(db, payload.email, payload.password)

    return success_response("Login successful", data)


@router.post("/logout", response_model=APIResponse)
async def logout(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    logger.info(
        "Logout request",
        extra={"user_id": current_user.id, "email": current_user.username},
    )

    await logout_user(db, current_user)

    return success_response("Logged out successfully")
