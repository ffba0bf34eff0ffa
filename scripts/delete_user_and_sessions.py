#!/usr/bin/env python3
"""
Hard-delete one local user and every session they own.

The identity-provider account is left alone.

Usage:
    python scripts/delete_user_and_sessions.py <user-id-or-email> [--yes]
"""

import argparse
import asyncio
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from swimtrain.database.db import AsyncSessionLocal  # noqa: E402
from swimtrain.services import user_service  # noqa: E402
from swimtrain.services.errors import NotFound  # noqa: E402


async def main():
    parser = argparse.ArgumentParser(description="Delete a user and their sessions")
    parser.add_argument("identifier", help="User ID or email address")
    parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    args = parser.parse_args()

    async with AsyncSessionLocal() as session:
        user = await user_service.get_user_by_id(session, args.identifier)
        if user is None and "@" in args.identifier:
            user = await user_service.get_user_by_email(session, args.identifier)
        if user is None:
            print(f"❌ No user found for {args.identifier}")
            sys.exit(1)

        print(f"User: {user['id']}  {user['email']}  ({user['username']})")
        if not args.yes:
            answer = input("Delete this user and all their sessions? [y/N] ")
            if answer.strip().lower() != "y":
                print("Aborted")
                return

        try:
            deleted = await user_service.delete_user_and_sessions(session, user["id"])
        except NotFound:
            print(f"❌ User {user['id']} disappeared before it could be deleted")
            sys.exit(1)
        print(f"✓ Deleted user {user['id']} and {deleted} sessions")


if __name__ == "__main__":
    asyncio.run(main())
