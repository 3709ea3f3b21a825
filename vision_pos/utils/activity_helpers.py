from sqlalchemy.ext.asyncio import AsyncSession
from vision_pos.models.support.activity_models import UserActivity
from vision_pos.constants.activity_templates import ACTIVITY_TEMPLATES
from vision_pos.constants.activity_codes import ActivityCode


def actor_fields(user) -> dict:
    """Template context shared by every user-initiated activity."""
    return {
        "actor_role": user.role.replace("_", " ").title(),
        "actor_email": user.username,
    }


SYSTEM_ACTOR_FIELDS = {"actor_role": "System", "actor_email": "system"}


async def emit_activity(
    db: AsyncSession,
    *,
    user_id: int | None,
    username: str,
    code: ActivityCode,
    **context,
):
    template = ACTIVITY_TEMPLATES.get(code)
    if not template:
        raise ValueError(f"No activity template for code {code}")

    try:
        message = template.format(**context)
    except KeyError as e:
        raise ValueError(
            f"Missing activity context key: {e.args[0]} for {code}"
        )

    db.add(
        UserActivity(
            user_id=user_id,
            username_snapshot=username,
            message=message,
        )
    )
