from fastapi import Depends, HTTPException, status

from vision_pos.models.enums.user_role import UserRole
from vision_pos.models.users.user_models import User
from vision_pos.utils.get_user import get_current_user

ALL_ROLES = [r.value for r in UserRole]


def require_role(roles: list[str | UserRole]):
    allowed = {str(getattr(r, "value", r)).upper() for r in roles}

    async def role_checker(user: User = Depends(get_current_user)):
        if user.role.upper() not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied"
            )
        return user
    return role_checker
