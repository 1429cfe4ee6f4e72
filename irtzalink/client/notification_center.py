"""
Notification center: polled list of notifications with an unread badge
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional, List, Callable, Set

from ..config import settings
from ..domain.models import UserRef
from ..schemas import NotificationSchema
from .service_client import NotificationApi

logger = logging.getLogger(__name__)


def format_notification_time(timestamp: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Relative age of a notification ("5m ago"), or its date once a week old"""
    if timestamp is None:
        return ""
    if now is None:
        now = datetime.now(timestamp.tzinfo)

    seconds = (now - timestamp).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return timestamp.date().isoformat()


class NotificationCenter:
    """
    Notifications for the signed-in user.

    Polls every poll_interval seconds between start() and stop(). Marking as
    read updates local state first and sends the write without waiting; a
    failed write is logged and never rolled back.
    """

    def __init__(
        self,
        api: NotificationApi,
        poll_interval: float = settings.NOTIFICATION_POLL_INTERVAL_SECONDS,
        limit: int = settings.NOTIFICATION_FETCH_LIMIT,
    ):
        self.api = api
        self.poll_interval = poll_interval
        self.limit = limit
        self.user: Optional[UserRef] = None
        self.notifications: List[NotificationSchema] = []
        self.unread_count = 0
        self.loading = False
        self._poller: Optional[asyncio.Task] = None
        self._writes: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._poller is not None and not self._poller.done()

    async def start(self, user: UserRef) -> None:
        """Load now and keep polling for this user"""
        if self.user and self.user.uid == user.uid and self.running:
            return
        await self.stop()
        self.user = user
        await self.refresh()
        self._poller = asyncio.create_task(self._poll_forever())
        logger.info(f"Notification polling started for {user.uid}")

    async def stop(self) -> None:
        """Stop polling and forget the signed-in user's notifications"""
        if self._poller:
            self._poller.cancel()
            try:
                await self._poller
            except asyncio.CancelledError:
                pass
            self._poller = None
            logger.info("Notification polling stopped")
        self.user = None
        self.notifications = []
        self.unread_count = 0

    async def _poll_forever(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.refresh()

    async def refresh(self) -> None:
        """Re-read notifications; failures keep the current list"""
        if not self.user:
            return
        user_id = self.user.uid
        self.loading = True
        try:
            result = await self.api.list_notifications(user_id, self.limit)
        except Exception as e:
            logger.error(f"Error loading notifications: {e}")
            return
        finally:
            self.loading = False

        if not self.user or self.user.uid != user_id:
            return
        if not result.success:
            logger.warning(f"Failed to load notifications: {result.error}")
            return
        self.notifications = list(result.notifications)
        self.unread_count = result.unread_count

    def _find(self, notification_id: str) -> Optional[NotificationSchema]:
        for notification in self.notifications:
            if notification.id == notification_id:
                return notification
        return None

    def mark_as_read(self, notification_id: str) -> None:
        if not self.user:
            return
        notification = self._find(notification_id)
        if notification is not None and not notification.read:
            notification.read = True
            self.unread_count = max(0, self.unread_count - 1)
        self._send(self.api.mark_as_read(notification_id, self.user.uid), f"mark {notification_id} read")

    def mark_all_as_read(self) -> None:
        if not self.user:
            return
        for notification in self.notifications:
            notification.read = True
        self.unread_count = 0
        self._send(self.api.mark_all_as_read(self.user.uid), "mark all read")

    def handle_click(
        self,
        notification: NotificationSchema,
        on_click: Optional[Callable[[NotificationSchema], None]] = None,
    ) -> None:
        if not notification.read:
            self.mark_as_read(notification.id)
        if on_click:
            on_click(notification)

    def _send(self, coro, description: str) -> None:
        task = asyncio.create_task(self._write(coro, description))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    async def _write(self, coro, description: str) -> None:
        try:
            result = await coro
        except Exception as e:
            logger.error(f"Error trying to {description}: {e}")
            return
        if not result.success:
            logger.warning(f"Failed to {description}: {result.error}")

    async def drain(self) -> None:
        """Wait for pending read-receipt writes"""
        while self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)
