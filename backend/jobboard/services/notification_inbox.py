"""Notification Inbox: read-state operations over a user's persisted notifications.

Invariants:
    - A user only ever sees or mutates their own rows; another user's id is NotFound
    - list_for_user() is newest first and cached per user
    - Every mutation invalidates the user's cached inbox
"""

import logging
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.core.errors import ErrorContext, ResourceNotFoundError
from jobboard.infrastructure.read_cache import CacheKeys, ReadCache
from jobboard.models.notification import Notification
from jobboard.schemas.notification import NotificationResponse
from jobboard.services.persistence import commit

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
INBOX_TTL_SECONDS = 60.0


class NotificationInbox:
    def __init__(self, db: AsyncSession, cache: ReadCache, ttl: float = INBOX_TTL_SECONDS):
        self.db = db
        self.cache = cache
        self.ttl = ttl

    async def list_for_user(self, user_id: UUID, limit: int = DEFAULT_LIMIT) -> list[NotificationResponse]:
        async def load() -> list[NotificationResponse]:
            result = await self.db.execute(
                select(Notification)
                .where(Notification.user_id == user_id)
                .order_by(Notification.created_at.desc(), Notification.id.asc())
                .limit(limit)
            )
            return [NotificationResponse.model_validate(n) for n in result.scalars().all()]

        # limit is part of the key, the prefix still matches the user's invalidation
        key = f"{CacheKeys.notifications(user_id)}:{limit}"
        return await self.cache.cached_fetch(key, load, self.ttl)

    async def unread_count(self, user_id: UUID) -> int:
        count = await self.db.scalar(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.read.is_(False))
        )
        return count or 0

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> NotificationResponse:
        notification = await self._owned(notification_id, user_id)
        notification.read = True
        await commit(self.db, "mark notification read", ErrorContext(user_id=str(user_id)))
        self._invalidate(user_id)
        return NotificationResponse.model_validate(notification)

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.read.is_(False))
            .values(read=True)
        )
        await commit(self.db, "mark all notifications read", ErrorContext(user_id=str(user_id)))
        self._invalidate(user_id)
        return result.rowcount or 0

    async def delete(self, notification_id: UUID, user_id: UUID) -> None:
        notification = await self._owned(notification_id, user_id)
        await self.db.delete(notification)
        await commit(self.db, "delete notification", ErrorContext(user_id=str(user_id)))
        self._invalidate(user_id)

    async def _owned(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise ResourceNotFoundError("Notification", str(notification_id))
        return notification

    def _invalidate(self, user_id: UUID) -> None:
        self.cache.invalidate_notifications(user_id)
