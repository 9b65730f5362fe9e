"""
Database seeding script for the admin account.

ADMIN users cannot be registered through the API, so the first one is
created here. Run after the database is reachable:

    python -m emergency_backend.seed_users admin@dispatch.local 'strong-password'
"""

import asyncio
import sys

from sqlalchemy import select

from emergency_backend.app.db.session import AsyncSessionLocal, engine, create_tables
from emergency_backend.app.models.user import User
from emergency_backend.app.models.enums import UserRole
from emergency_backend.app.core.security import get_password_hash


async def seed_admin(email: str, password: str) -> None:
    await create_tables()

    async with AsyncSessionLocal() as db:
        print("🌱 Starting admin seeding...")

        result = await db.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            print(f"ℹ️  {email} already exists, skipping seeding")
            return

        db.add(User(
            email=email,
            full_name="Dispatch Admin",
            phone="0000000000",
            hashed_password=get_password_hash(password),
            role=UserRole.ADMIN,
            is_active=True,
        ))
        await db.commit()
        print(f"✅ Created ADMIN user ({email})")

    await engine.dispose()


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("usage: python -m emergency_backend.seed_users <email> <password>")
        sys.exit(1)
    asyncio.run(seed_admin(sys.argv[1], sys.argv[2]))
