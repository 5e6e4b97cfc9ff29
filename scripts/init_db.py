#!/usr/bin/env python3
"""Create the database tables, seed the admin user and default clients, and offboard accounts"""

import argparse
import asyncio
import sys

from authserver.core.config import logger, settings
from authserver.core.seed import seed_default_data
from authserver.models import async_session_maker, close_db, init_db
from authserver.services.introspection_service import introspection_service
from authserver.services.oauth_client_service import oauth_client_service
from authserver.services.user_service import user_service


async def delete_accounts(usernames: list[str], client_ids: list[str]) -> list[str]:
    """
    Soft-delete users and clients by name

    Their stored tokens stop introspecting and refreshing as soon as the
    record is gone. Returns the names that were not found.
    """
    missing = []
    async with async_session_maker() as db:
        for username in usernames:
            user = await user_service.get_by_username(db, username)
            if user is None or not await user_service.delete_user(db, user.id):
                missing.append(username)

        for client_id in client_ids:
            client = await oauth_client_service.get_by_client_id(db, client_id)
            if client is None or not await oauth_client_service.delete_client(db, client.id):
                missing.append(client_id)

    return missing


async def main(
    revoke_all: bool = False,
    delete_users: list[str] | None = None,
    delete_clients: list[str] | None = None,
) -> int:
    print("=" * 60)
    print("Auth Server - Database Initialization")
    print("=" * 60)

    try:
        logger.info(f"Initializing database at {settings.db_url}...")
        await init_db()
        logger.info("✓ Database initialized")

        await seed_default_data()
        logger.info("✓ Default data seeded")

        if delete_users or delete_clients:
            missing = await delete_accounts(delete_users or [], delete_clients or [])
            if missing:
                print(f"\n✗ Not found: {', '.join(missing)}")
                return 1
            print("\n✓ Deleted accounts")

        if revoke_all:
            counts = await introspection_service.revoke_all()
            print(f"\n✓ Revoked: {counts}")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        print(f"\n✗ Error: {e}")
        return 1
    finally:
        await close_db()

    print("\n✓ Database initialization completed successfully!")
    print("\nTry the password grant:")
    print(f"\ncurl -X POST {settings.site_auth_url}/oauth/token \\")
    print('  -u "web-app:<client secret>" \\')
    print('  -d "grant_type=password" \\')
    print(f'  -d "username={settings.admin_username}" \\')
    print('  -d "password=<admin password>" \\')
    print('  -d "scope=api.read,offline_access"')
    print()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Initialize the auth server database")
    parser.add_argument(
        "--revoke-all",
        action="store_true",
        help="Remove every stored token and authorization code "
        "(only meaningful with AUTH_SERVER__TOKEN_STORE_BACKEND=database)",
    )
    parser.add_argument(
        "--delete-user",
        action="append",
        default=[],
        metavar="USERNAME",
        help="Soft-delete a user (repeatable)",
    )
    parser.add_argument(
        "--delete-client",
        action="append",
        default=[],
        metavar="CLIENT_ID",
        help="Soft-delete an OAuth client (repeatable)",
    )
    args = parser.parse_args()
    sys.exit(
        asyncio.run(
            main(
                revoke_all=args.revoke_all,
                delete_users=args.delete_user,
                delete_clients=args.delete_client,
            )
        )
    )
