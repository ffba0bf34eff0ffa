#!/usr/bin/env python3
"""
Compare identity-provider accounts with local user rows.

Prints local users the provider does not know, provider accounts with no local
row, and local rows matched only by email (id differs from the provider id).
With --delete, local-only users and their sessions are removed; without it
the script only reports.

Usage:
    python scripts/compare_users.py
    python scripts/compare_users.py --delete
"""

import argparse
import asyncio
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from swimtrain.database.db import AsyncSessionLocal  # noqa: E402
from swimtrain.services import user_service, reconciliation_service  # noqa: E402
from swimtrain.services.identity_provider import get_identity_provider  # noqa: E402


async def main():
    parser = argparse.ArgumentParser(description="Compare provider accounts with local users")
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Delete local users (and their sessions) that have no provider account",
    )
    args = parser.parse_args()

    provider = get_identity_provider()
    provider_users = await reconciliation_service.fetch_all_provider_users(provider)

    async with AsyncSessionLocal() as session:
        local_users = await user_service.list_users(session)
        diff = reconciliation_service.diff_users(provider_users, local_users)

        print(f"\nProvider accounts: {len(provider_users)}")
        print(f"Local users:       {len(local_users)}\n")

        if diff.in_sync:
            print("✓ Provider and local users are in sync")
            return

        if diff.local_only:
            print(f"Local users without a provider account ({len(diff.local_only)}):")
            for user in diff.local_only:
                print(f"  {user['id']:<38} {user['email']:<32} {user['username']}")
            print()

        if diff.provider_only:
            print(f"Provider accounts without a local user ({len(diff.provider_only)}):")
            for provider_user in diff.provider_only:
                print(f"  {provider_user.id:<38} {provider_user.email}")
            print()

        if diff.id_mismatches:
            print(f"Local users matched by email only ({len(diff.id_mismatches)}):")
            for mismatch in diff.id_mismatches:
                print(f"  local {mismatch['local_id']} -> provider {mismatch['provider_id']} ({mismatch['email']})")
            print()

        if not diff.local_only:
            return

        if not args.delete:
            print("Dry run: pass --delete to remove the local-only users above")
            return

        for user in diff.local_only:
            deleted = await user_service.delete_user_and_sessions(session, user["id"])
            print(f"  ✓ Deleted {user['email']} and {deleted} sessions")


if __name__ == "__main__":
    asyncio.run(main())
