"""
In-memory repositories, used for local development and tests
"""
import asyncio
from datetime import datetime
from typing import Optional, List, Dict

from .domain.models import UserProfile, Notification
from .domain.repositories import (
    IProfileRepository,
    INotificationRepository,
    ProfileNotFoundError,
)


class InMemoryProfileRepository(IProfileRepository):
    """Profile store held in a dict; a lock stands in for transactions"""

    def __init__(self, profiles: Optional[List[UserProfile]] = None):
        self.profiles: Dict[str, UserProfile] = {}
        self._lock = asyncio.Lock()
        for profile in profiles or []:
            self.add(profile)

    def add(self, profile: UserProfile) -> UserProfile:
        profile.username = profile.username.lower()
        self.profiles[profile.id] = profile
        return profile

    async def find_by_id(self, user_id: str) -> Optional[UserProfile]:
        return self.profiles.get(user_id)

    async def find_by_username(self, username: str) -> Optional[UserProfile]:
        username = username.lower()
        for profile in self.profiles.values():
            if profile.username == username:
                return profile
        return None

    async def find_many(self, user_ids: List[str]) -> List[UserProfile]:
        return [self.profiles[uid] for uid in user_ids if uid in self.profiles]

    def _pair(self, follower_id: str, following_id: str):
        follower = self.profiles.get(follower_id)
        following = self.profiles.get(following_id)
        if follower is None or following is None:
            missing = follower_id if follower is None else following_id
            raise ProfileNotFoundError(f"Profile {missing} not found")
        return follower, following

    async def add_follow(self, follower_id: str, following_id: str) -> None:
        async with self._lock:
            follower, following = self._pair(follower_id, following_id)
            if following_id not in follower.following:
                follower.following.append(following_id)
            if follower_id not in following.followers:
                following.followers.append(follower_id)

    async def remove_follow(self, follower_id: str, following_id: str) -> None:
        async with self._lock:
            follower, following = self._pair(follower_id, following_id)
            if following_id in follower.following:
                follower.following.remove(following_id)
            if follower_id in following.followers:
                following.followers.remove(follower_id)


class InMemoryNotificationRepository(INotificationRepository):
    """Notification store held in a dict"""

    def __init__(self):
        self.notifications: Dict[str, Notification] = {}

    async def list_for_user(self, user_id: str, limit: int = 20) -> List[Notification]:
        items = [n for n in self.notifications.values() if n.user_id == user_id]
        items.sort(key=lambda n: n.timestamp or datetime.min, reverse=True)
        return items[:limit]

    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        notification = self.notifications.get(notification_id)
        if notification is None or notification.user_id != user_id:
            return False
        notification.read = True
        return True

    async def mark_all_read(self, user_id: str) -> int:
        changed = 0
        for notification in self.notifications.values():
            if notification.user_id == user_id and not notification.read:
                notification.read = True
                changed += 1
        return changed

    async def create(self, notification: Notification) -> Notification:
        if notification.timestamp is None:
            notification.timestamp = datetime.utcnow()
        self.notifications[notification.id] = notification
        return notification
