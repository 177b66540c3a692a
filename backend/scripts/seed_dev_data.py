#!/usr/bin/env python
"""Seed script for local development data.

Creates two organizations and one user who is OWNER of the first and
VIEWER of the second, then prints a bearer token for that user. Run once
against an empty development database.

Usage:
    python backend/scripts/seed_dev_data.py

Environment Variables:
    DATABASE_URL: Async SQLAlchemy connection string
    JWT_SECRET: Signing key for the printed token
    SEED_EMAIL: Email for the user (default: owner@example.com)
    SEED_NAME: Display name for the user (default: Dev Owner)
"""

import asyncio
import os
import sys
from datetime import timedelta
from pathlib import Path

# Add backend/src to Python path
backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

from sqlalchemy import select

from auth.jwt import create_access_token
from auth.roles import OrgRole
from database import init_models, session_scope
from infrastructure.encryption import generate_master_key
from models.base import utcnow
from models.membership import Membership
from models.org import Org
from models.user import User


async def seed() -> None:
    email = os.getenv("SEED_EMAIL", "owner@example.com").lower()
    name = os.getenv("SEED_NAME", "Dev Owner")

    await init_models()

    async with session_scope() as session:
        existing = await session.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none():
            print(f"ERROR: User with email {email} already exists")
            sys.exit(1)

        first = Org(name="Acme Agency", slug="acme-agency")
        second = Org(name="Globex Studio", slug="globex-studio")
        user = User(email=email, name=name)
        session.add_all([first, second, user])
        await session.flush()

        now = utcnow()
        session.add_all([
            Membership(org_id=first.id, user_id=user.id, role=OrgRole.OWNER.value, joined_at=now - timedelta(days=5)),
            Membership(org_id=second.id, user_id=user.id, role=OrgRole.VIEWER.value, joined_at=now),
        ])

    print("SUCCESS: Development data created")
    print(f"  User:  {user.id} ({user.email})")
    print(f"  Orgs:  {first.slug} (OWNER), {second.slug} (VIEWER)")
    print(f"  Token: {create_access_token(user.id, user.email)}")
    if not os.getenv("MASTER_KEY"):
        print(f"  Hint:  export MASTER_KEY={generate_master_key()}")


def main():
    try:
        asyncio.run(seed())
    except Exception as e:
        print(f"ERROR: Failed to seed development data: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
