"""
Client composition root.

Owns the one RelationshipCache for the process, the periodic cache sweep and
the notification center, and hands out follow buttons and list views bound
to the signed-in user.
"""
import logging
import time
from typing import Optional, Callable

from ..cache import RelationshipCache
from ..config import settings
from ..domain.models import UserRef
from ..domain.repositories import IKeyValueStore
from ..kv_store import InMemoryKeyValueStore, RedisKeyValueStore
from .controller import FollowButtonController
from .follow_lists import FollowListView, FollowManager
from .notification_center import NotificationCenter
from .service_client import FollowApi, NotificationApi
from .toasts import Toaster

logger = logging.getLogger(__name__)


class ClientSession:
    """Wires client components around a shared cache"""

    def __init__(
        self,
        follow_api: FollowApi,
        notification_api: Optional[NotificationApi] = None,
        store: Optional[IKeyValueStore] = None,
        toaster: Optional[Toaster] = None,
        clock: Callable[[], float] = time.time,
        **controller_options,
    ):
        self.follow_api = follow_api
        self.store = store if store is not None else InMemoryKeyValueStore()
        self.cache = RelationshipCache(self.store, clock=clock)
        self.toaster = toaster or Toaster()
        self.controller_options = controller_options
        self.notifications = NotificationCenter(notification_api) if notification_api else None
        self.current_user: Optional[UserRef] = None

    async def open(self, sweep_interval: Optional[float] = settings.CACHE_SWEEP_INTERVAL) -> None:
        """Connect storage, drop stale entries and start the periodic sweep"""
        if isinstance(self.store, RedisKeyValueStore):
            await self.store.connect()
            if self.store.redis is None:
                logger.warning("Persisted cache unavailable, using in-memory store")
                self.store = InMemoryKeyValueStore()
                self.cache.store = self.store
        await self.cache.cleanup_expired()
        if sweep_interval:
            self.cache.start_sweeper(sweep_interval)

    async def close(self) -> None:
        await self.sign_out()
        await self.cache.stop_sweeper()
        if isinstance(self.store, RedisKeyValueStore):
            await self.store.disconnect()

    async def sign_in(self, user: UserRef) -> None:
        self.current_user = user
        logger.info(f"Signed in as {user.uid}")
        if self.notifications:
            await self.notifications.start(user)

    async def sign_out(self) -> None:
        """Forget the user; cached follow data is kept"""
        if self.current_user:
            logger.info(f"Signed out {self.current_user.uid}")
        self.current_user = None
        if self.notifications:
            await self.notifications.stop()

    def follow_button(
        self, target: UserRef, on_change: Optional[Callable[[], None]] = None
    ) -> FollowButtonController:
        return FollowButtonController(
            self.follow_api,
            self.cache,
            self.current_user,
            target,
            on_change=on_change,
            toaster=self.toaster,
            **self.controller_options,
        )

    def follow_list(self, user_id: str, kind: str, limit: int = settings.DEFAULT_LIST_LIMIT) -> FollowListView:
        return FollowListView(
            self.follow_api,
            self.cache,
            user_id,
            kind,
            self.current_user,
            limit=limit,
            toaster=self.toaster,
            **self.controller_options,
        )

    def follow_manager(self, user_id: str) -> FollowManager:
        return FollowManager(
            self.follow_api,
            self.cache,
            user_id,
            self.current_user,
            toaster=self.toaster,
            **self.controller_options,
        )
