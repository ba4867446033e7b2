#!/usr/bin/env python3
"""Promote a registered user to admin. Run on the server: promote_admin.py <email>"""
import asyncio
import sys

from sqlalchemy import update

from backoffice.config import settings
from backoffice.database import Store
from backoffice.models.user import User, UserRole


async def promote(email: str):
    store = Store(settings.DATABASE_URL)
    async with store.unit_of_work() as db:
        r = await db.execute(
            update(User)
            .where(User.email == email)
            .values(role=UserRole.ADMIN)
        )
        print(f"Rows updated: {r.rowcount}")
    await store.dispose()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        sys.exit("usage: promote_admin.py <email>")
    asyncio.run(promote(sys.argv[1]))
