#!/usr/bin/env python3
"""
Generate a session token for any local user, for dev testing.

Looks up by user ID, then by email, then by username. Without an argument it
lists some users.

Usage:
    python scripts/dev_login.py jane@example.com
"""

import asyncio
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from sqlalchemy import select  # noqa: E402
from swimtrain.database.db import AsyncSessionLocal  # noqa: E402
from swimtrain.database.models import User  # noqa: E402
from swimtrain.services import user_service  # noqa: E402
from swimtrain.services.auth_service import issue_session_token  # noqa: E402


async def list_users(session):
    """Print available users for reference."""
    print("\n📋 Available users:")
    result = await session.execute(
        select(User.id, User.email, User.username, User.team_id).order_by(User.created_at).limit(20)
    )
    for row in result.all():
        team = row.team_id or "-"
        print(f"  {row.id:<38} {row.email:<32} {row.username:<20} team {team}")
    print()


async def main(identifier: str = ""):
    """
    Print a token for a user by ID, email or username.

    Args:
        identifier: User ID, email or username
    """
    async with AsyncSessionLocal() as session:
        if not identifier:
            print("❌ Usage: python scripts/dev_login.py <user-id|email|username>")
            await list_users(session)
            return

        user = await user_service.get_user_by_id(session, identifier)
        if user is None and "@" in identifier:
            user = await user_service.get_user_by_email(session, identifier)
        if user is None:
            result = await session.execute(select(User.id).where(User.username == identifier))
            user_id = result.scalar_one_or_none()
            if user_id:
                user = await user_service.get_user_by_id(session, user_id)

        if user is None:
            print(f"❌ No user found for {identifier}")
            await list_users(session)
            return

        token = issue_session_token(user)
        print(f"\n✓ {user['username']} ({user['email']})")
        print(f"\nAuthorization: Bearer {token}\n")


if __name__ == "__main__":
    identifier = sys.argv[1] if len(sys.argv) > 1 else ""
    asyncio.run(main(identifier))
