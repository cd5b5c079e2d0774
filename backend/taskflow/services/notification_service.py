"""NotificationService: a user's notification inbox."""

import math
import uuid

import structlog

from taskflow.core.exceptions import AuthorizationError, NotFoundError
from taskflow.domain.entities import Notification
from taskflow.schemas.notifications import NotificationPage
from taskflow.schemas.tasks import Pagination
from taskflow.store.base import NotificationStore

logger = structlog.get_logger(__name__)


class NotificationService:
    def __init__(self, notifications: NotificationStore, page_size: int = 20):
        self.notifications = notifications
        self.page_size = page_size

    async def list_notifications(
        self,
        user_id: str,
        *,
        read: bool | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> NotificationPage:
        """Newest-first page of the user's notifications plus their unread count."""
        page = max(page, 1)
        limit = limit if limit and limit > 0 else self.page_size

        total = await self.notifications.count_notifications(user_id, read=read)
        unread = await self.notifications.count_notifications(user_id, read=False)
        items = await self.notifications.list_notifications(
            user_id, read=read, offset=(page - 1) * limit, limit=limit
        )
        return NotificationPage(
            items=items,
            unread_count=unread,
            pagination=Pagination(
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit),
                total_items=total,
            ),
        )

    async def _load_own(self, user_id: str, notification_id: uuid.UUID) -> Notification:
        notification = await self.notifications.get_notification(notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        if notification.recipient_id != user_id:
            raise AuthorizationError("Access denied: This notification belongs to another user")
        return notification

    async def mark_read(self, user_id: str, notification_id: uuid.UUID) -> Notification:
        notification = await self._load_own(user_id, notification_id)
        updated = await self.notifications.mark_read(notification.id)
        if updated is None:
            raise NotFoundError("Notification", notification_id)
        return updated

    async def mark_all_read(self, user_id: str) -> int:
        count = await self.notifications.mark_all_read(user_id)
        logger.info("notifications_marked_read", user_id=user_id, count=count)
        return count

    async def delete_notification(self, user_id: str, notification_id: uuid.UUID) -> None:
        notification = await self._load_own(user_id, notification_id)
        await self.notifications.delete_notification(notification.id)
