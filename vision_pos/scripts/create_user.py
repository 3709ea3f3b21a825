"""
Seed a staff account.

    python -m vision_pos.scripts.create_user manager@store.com MANAGER --location store-1
"""

import argparse
import asyncio
import os

from sqlalchemy import select

from vision_pos.core.db import session_scope
from vision_pos.core.security import hash_password
from vision_pos.models.enums.user_role import UserRole
from vision_pos.models.users.user_models import User


async def create_user(username: str, role: str, password: str, location_id: str | None = None):
    async with session_scope() as session:
        exists = await session.scalar(select(User.id).where(User.username == username))
        if exists:
            print(f"User {username} already exists")
            return

        session.add(
            User(
                username=username,
                password_hash=hash_password(password),
                role=UserRole(role.upper()).value,
                location_id=location_id,
                is_active=True,
            )
        )
        await session.commit()
        print(f"{role.upper()} user {username} created!")


def main():
    parser = argparse.ArgumentParser(description="Create a Vision POS staff user")
    parser.add_argument("username")
    parser.add_argument("role", choices=[r.value for r in UserRole], type=str.upper)
    parser.add_argument("--location", default=None)
    args = parser.parse_args()

    password = os.getenv("USER_PASSWORD", "changeme123")
    asyncio.run(create_user(args.username, args.role, password, args.location))


if __name__ == "__main__":
    main()
