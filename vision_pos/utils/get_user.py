import logging

from fastapi import Depends, HTTPException, Header, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from vision_pos.core.db import get_db
from vision_pos.core.security import decode_access_token
from vision_pos.models.users.user_models import User
from vision_pos.services.quotes.quote_state_validation import ActorContext

logger = logging.getLogger("auth.guard")


def _bearer_token(authorization: str) -> str:
    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token.strip():
        logger.warning("Missing bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )
    return token.strip()


async def get_current_user(
    request: Request,
    authorization: str = Header(...),
    db: AsyncSession = Depends(get_db),
) -> User:
    payload = decode_access_token(_bearer_token(authorization))

    username = payload.get("sub")
    token_version = payload.get("token_version")

    user = await db.scalar(select(User).where(User.username == username))

    if not user:
        logger.warning("Token user not found", extra={"username": username})
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        logger.warning("Inactive user access blocked", extra={"user_id": user.id})
        raise HTTPException(status_code=403, detail="User account is inactive")

    if user.token_version != token_version:
        logger.warning("Token version mismatch", extra={"user_id": user.id})
        raise HTTPException(status_code=401, detail="Session expired")

    request.state.user = user
    request.state.user_id = user.id
    return user


def to_actor(user: User) -> ActorContext:
    return ActorContext(
        user_id=user.id,
        role=user.role.upper(),
        location_id=user.location_id,
    )
