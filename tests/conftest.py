from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from irtzalink.cache import RelationshipCache
from irtzalink.client.service_client import ServiceUnavailableError
from irtzalink.client.toasts import Toaster
from irtzalink.domain.models import UserProfile
from irtzalink.kv_store import InMemoryKeyValueStore
from irtzalink.memory_store import InMemoryNotificationRepository, InMemoryProfileRepository
from irtzalink.service import FollowService, NotificationService

START = 1_700_000_000.0


class FakeClock:
    """Callable clock the tests move by hand"""

    def __init__(self, now: float = START) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingToaster(Toaster):
    def __init__(self) -> None:
        self.messages: List[Tuple[str, str]] = []

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def kinds(self) -> List[str]:
        return [kind for kind, _ in self.messages]


class ScriptedApi:
    """Wraps the in-process services, records calls and injects failures.

    ``raising`` names operations that raise ServiceUnavailableError,
    ``results`` holds canned return values, ``gates`` holds events an
    operation waits on before answering.
    """

    def __init__(self, follow_service: FollowService, notification_service: Optional[NotificationService] = None):
        self.follow_service = follow_service
        self.notification_service = notification_service
        self.calls: List[Tuple] = []
        self.raising: set = set()
        self.results: Dict[str, object] = {}
        self.gates: Dict[str, asyncio.Event] = {}

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def _call(self, target, name: str, *args):
        self.calls.append((name,) + args)
        if name in self.gates:
            await self.gates[name].wait()
        if name in self.raising:
            raise ServiceUnavailableError(f"{name} unreachable")
        if name in self.results:
            return self.results[name]
        return await getattr(target, name)(*args)

    async def get_relationship(self, viewer_id, target_id):
        return await self._call(self.follow_service, "get_relationship", viewer_id, target_id)

    async def follow(self, viewer_id, target_id):
        return await self._call(self.follow_service, "follow", viewer_id, target_id)

    async def unfollow(self, viewer_id, target_id):
        return await self._call(self.follow_service, "unfollow", viewer_id, target_id)

    async def get_follow_counts(self, user_id):
        return await self._call(self.follow_service, "get_follow_counts", user_id)

    async def get_followers(self, user_id, limit=50):
        return await self._call(self.follow_service, "get_followers", user_id, limit)

    async def get_following(self, user_id, limit=50):
        return await self._call(self.follow_service, "get_following", user_id, limit)

    async def list_notifications(self, user_id, limit=20):
        return await self._call(self.notification_service, "list_notifications", user_id, limit)

    async def mark_as_read(self, notification_id, user_id):
        return await self._call(self.notification_service, "mark_as_read", notification_id, user_id)

    async def mark_all_as_read(self, user_id):
        return await self._call(self.notification_service, "mark_all_as_read", user_id)


class FailingProfiles(InMemoryProfileRepository):
    """Profile store whose backend is unreachable"""

    async def find_by_id(self, user_id):
        raise ConnectionError("store down")

    async def add_follow(self, follower_id, following_id):
        raise ConnectionError("store down")


def make_profiles() -> List[UserProfile]:
    return [
        UserProfile(id="u1", username="alice", display_name="Alice"),
        UserProfile(id="u2", username="Bob", display_name="Bob"),
        UserProfile(id="u3", username="carol", display_name="Carol", is_verified=True),
        UserProfile(id="u4", username="dave", display_name="Dave", is_active=False),
    ]


@pytest.fixture()
def profiles() -> InMemoryProfileRepository:
    return InMemoryProfileRepository(make_profiles())


@pytest.fixture()
def notification_repo() -> InMemoryNotificationRepository:
    return InMemoryNotificationRepository()


@pytest.fixture()
def follow_service(profiles) -> FollowService:
    return FollowService(profiles)


@pytest.fixture()
def notification_service(notification_repo) -> NotificationService:
    return NotificationService(notification_repo)


@pytest.fixture()
def api(follow_service, notification_service) -> ScriptedApi:
    return ScriptedApi(follow_service, notification_service)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def cache(store, clock) -> RelationshipCache:
    return RelationshipCache(store, clock=clock, prefix="test")


@pytest.fixture()
def toaster() -> RecordingToaster:
    return RecordingToaster()
