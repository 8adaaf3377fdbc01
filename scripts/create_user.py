"""Create a user with a local password credential.

Usage:
    python -m scripts.create_user --email admin@test.com --password Admin1234! --role admin
"""

import argparse
import asyncio

from qa_analytics.core.database import Base, async_session_factory, engine
from qa_analytics.core.logging_config import configure_logging
from qa_analytics.core.security import hash_password
from qa_analytics.repositories.user_repo import UserRepository


async def create_user(email: str, password: str, name: str, roles: list[str]) -> None:
    """Create a user unless one with the email already exists."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as session:
        user_repo = UserRepository(session)
        existing = await user_repo.find_by_email(email)
        if existing:
            print(f"User with email '{email}' already exists (id={existing.id}).")
            return

        user = await user_repo.create(
            email=email,
            name=name,
            password=await hash_password(password),
            roles=roles,
        )
        await session.commit()
        print(f"User created: {email} (id={user.id}, roles={','.join(user.roles)})")

    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a user")
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--password", required=True, help="User password")
    parser.add_argument("--name", default="admin", help="Display name")
    parser.add_argument(
        "--role",
        action="append",
        dest="roles",
        help="Role to grant; repeat for several (default: user)",
    )
    args = parser.parse_args()

    configure_logging()
    asyncio.run(
        create_user(
            args.email.lower().strip(),
            args.password,
            args.name,
            args.roles or ["user"],
        )
    )


if __name__ == "__main__":
    main()
