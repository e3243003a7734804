"""Mint a bearer token for a directory user (local development)."""

from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy import select

from app.auth.jwt import create_access_token
from app.database import AsyncSessionLocal
from app.models.user import USER_ROLES, User


async def _ensure_user(uid: str, role: str, display_name: str | None, email: str | None) -> None:
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.id == uid))
        user = result.scalar_one_or_none()
        if user is None:
            session.add(User(id=uid, role=role, display_name=display_name, email=email))
        else:
            user.role = role
            if display_name:
                user.display_name = display_name
        await session.commit()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a directory user and print an access token")
    parser.add_argument("uid", help="User id (the token subject)")
    parser.add_argument("role", choices=USER_ROLES, help="Directory role")
    parser.add_argument("--name", default=None, help="Display name")
    parser.add_argument("--email", default=None, help="Email address")
    parser.add_argument(
        "--minutes",
        type=int,
        default=None,
        help="Token lifetime in minutes (default: ACCESS_TOKEN_EXPIRE_MINUTES)",
    )
    parser.add_argument(
        "--no-db",
        action="store_true",
        help="Only print a token; do not create or update the user row",
    )
    args = parser.parse_args()

    if not args.no_db:
        try:
            asyncio.run(_ensure_user(args.uid, args.role, args.name, args.email))
        except Exception as exc:
            print(f"Could not write user {args.uid}: {exc}", file=sys.stderr)
            return 1

    print(create_access_token(args.uid, args.role, expires_minutes=args.minutes))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
