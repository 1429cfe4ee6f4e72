"""
Repository interfaces - Define contracts for data access
"""
from abc import ABC, abstractmethod
from typing import Optional, List, AsyncIterator
from .models import UserProfile, Notification


class ConflictError(Exception):
    """The store rejected a write because the target state already exists"""


class ProfileNotFoundError(Exception):
    """A profile referenced by a mutation does not exist"""


class IProfileRepository(ABC):
    """Profile store interface"""

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[UserProfile]:
        """Find profile by user ID"""
        pass

    @abstractmethod
    async def find_by_username(self, username: str) -> Optional[UserProfile]:
        """Find profile by (lowercase) username"""
        pass

    @abstractmethod
    async def find_many(self, user_ids: List[str]) -> List[UserProfile]:
        """Find profiles by IDs, preserving the given order"""
        pass

    @abstractmethod
    async def add_follow(self, follower_id: str, following_id: str) -> None:
        """Atomically add following_id to follower.following and follower_id to following.followers"""
        pass

    @abstractmethod
    async def remove_follow(self, follower_id: str, following_id: str) -> None:
        """Atomically remove both sides of the edge; no-op if absent"""
        pass


class INotificationRepository(ABC):
    """Notification store interface"""

    @abstractmethod
    async def list_for_user(self, user_id: str, limit: int = 20) -> List[Notification]:
        """Newest notifications first"""
        pass

    @abstractmethod
    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        """Mark one notification as read"""
        pass

    @abstractmethod
    async def mark_all_read(self, user_id: str) -> int:
        """Mark all of a user's notifications as read, returns count changed"""
        pass

    @abstractmethod
    async def create(self, notification: Notification) -> Notification:
        """Store a new notification"""
        pass


class IKeyValueStore(ABC):
    """Persisted string key-value store with enumerable keys.

    No transactional guarantee: concurrent writers race, last write wins.
    """

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        pass

    @abstractmethod
    def keys(self, pattern: str = "*") -> AsyncIterator[str]:
        """Iterate keys matching a glob pattern"""
        pass
