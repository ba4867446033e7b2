"""
Notification sink — best-effort messages to customers.

Notifications are written in their own unit of work after the financial
unit has committed. A failure here is logged and swallowed: the money has
already moved and must not be rolled back because a message could not be
stored.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.database import Store
from backoffice.models.notification import Notification

logger = logging.getLogger(__name__)


async def notify(store: Store, user_id: uuid.UUID, kind: str, message: str) -> bool:
    """Store one notification. Returns False (and logs) instead of raising."""
    try:
        async with store.unit_of_work() as db:
            db.add(Notification(user_id=user_id, kind=kind, message=message))
    except Exception:
        logger.exception("Failed to write %s notification for user %s", kind, user_id)
        return False
    return True


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    limit: int = 50,
) -> list[Notification]:
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
