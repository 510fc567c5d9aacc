from __future__ import annotations

import argparse
import asyncio
from uuid import UUID

from app.core.database import AsyncSessionLocal, init_db
from app.models.user_profile import UserProfile
from app.services.ticket_filters import Role


async def _upsert_profile(user_id: str, role: str, full_name: str | None, email: str | None) -> None:
    await init_db()
    async with AsyncSessionLocal() as session:
        profile = await session.get(UserProfile, user_id)
        if profile is None:
            profile = UserProfile(id=user_id)
            session.add(profile)
            action = "Created"
        else:
            action = "Updated"
        profile.role = role
        if full_name:
            profile.full_name = full_name
        if email:
            profile.email = email
        await session.commit()

    print(f"{action} profile: {user_id} (role={role})")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create or update the profile that maps an auth user id to a CRM role."
    )
    parser.add_argument("--user-id", required=True, help="User id (JWT subject) from the auth platform.")
    parser.add_argument(
        "--role",
        default=Role.AGENT.value,
        choices=[role.value for role in Role],
        help="Role to assign to the user.",
    )
    parser.add_argument("--name", help="Display name.")
    parser.add_argument("--email", help="Contact email.")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    try:
        user_id = str(UUID(args.user_id.strip()))
    except ValueError as exc:
        raise SystemExit(f"Invalid user id: {args.user_id}") from exc

    asyncio.run(
        _upsert_profile(
            user_id=user_id,
            role=args.role,
            full_name=args.name,
            email=args.email.strip().lower() if args.email else None,
        )
    )


if __name__ == "__main__":
    main()
