"""
Seed script to create the first school admin.

Run once with env set:
  ADMIN_EMAIL=office@school.mv
  ADMIN_PASSWORD=YourSecurePassword

  python -m app.db.seed_admin [--create-tables]
"""
import argparse
import asyncio

from app.auth.services import create_admin
from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import AsyncSessionLocal, init_models


async def seed_admin(create_tables: bool = False) -> None:
    if create_tables:
        await init_models()
        print("Tables created.")
    if not settings.admin_email or not settings.admin_password:
        print("ADMIN_EMAIL / ADMIN_PASSWORD not set; skipping admin user.")
        return
    async with AsyncSessionLocal() as db:
        admin = await create_admin(db, settings.admin_email, settings.admin_password)
        print(f"Admin ready: {admin.email}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the first admin user")
    parser.add_argument("--create-tables", action="store_true", help="Create all tables before seeding")
    args = parser.parse_args()
    configure_logging()
    asyncio.run(seed_admin(create_tables=args.create_tables))


if __name__ == "__main__":
    main()
