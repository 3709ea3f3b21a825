import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from vision_pos.models.users.user_models import User
from vision_pos.core.security import verify_password, create_access_token
from vision_pos.core.config import ACCESS_TOKEN_EXPIRE_MINUTES
from vision_pos.schemas.auth.auth_schemas import LoginData, AuthTokens, AuthUser
from vision_pos.utils.activity_helpers import emit_activity, actor_fields
from vision_pos.constants.activity_codes import ActivityCode

logger = logging.getLogger("auth.service")


# =====================================================
# LOGIN
# =====================================================
async def login_user(db: AsyncSession, email: str, password: str) -> LoginData:
    logger.info("Authenticating user", extra={"email": email})

    user = await db.scalar(select(User).where(User.username == email))

    if not user or not verify_password(password, user.password_hash):
        logger.warning("Invalid credentials", extra={"email": email})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    if not user.is_active:
        logger.warning("Inactive user login blocked", extra={"email": email})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    user.last_login = datetime.now(timezone.utc)

    access_token = create_access_token(
        subject=user.username,
        token_version=user.token_version,
        role=user.role,
        location_id=user.location_id,
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )

    await emit_activity(
        db,
        user_id=user.id,
        username=user.username,
        code=ActivityCode.LOGIN,
        **actor_fields(user),
    )

    await db.commit()

    logger.info("Login successful", extra={"user_id": user.id})

    return LoginData(
        auth=AuthTokens(access_token=access_token),
        user=AuthUser(
            id=user.id,
            username=user.username,
            role=user.role,
            location_id=user.location_id,
        ),
    )


# =====================================================
# LOGOUT
# =====================================================
async def logout_user(db: AsyncSession, user: User) -> None:
    logger.info("Logging out user", extra={"user_id": user.id})

    # invalidates every access token issued so far
    user.token_version += 1

    await emit_activity(
        db,
        user_id=user.id,
        username=user.username,
        code=ActivityCode.LOGOUT,
        **actor_fields(user),
    )

    await db.commit()

    logger.info("Logout successful", extra={"user_id": user.id})
