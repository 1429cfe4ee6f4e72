"""
MongoDB connection and repositories for profiles and notifications
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError
from typing import Optional, List, Dict, Any, Callable, Awaitable
import logging
import uuid
from datetime import datetime

from .config import settings
from .domain.models import UserProfile, Notification, NotificationType
from .domain.repositories import (
    IProfileRepository,
    INotificationRepository,
    ConflictError,
    ProfileNotFoundError,
)

logger = logging.getLogger(__name__)


class MongoDB:
    """MongoDB connection manager"""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None
        self.profiles: Optional[AsyncIOMotorCollection] = None
        self.notifications: Optional[AsyncIOMotorCollection] = None

    async def connect(self):
        """Connect to MongoDB"""
        self.client = AsyncIOMotorClient(settings.MONGODB_URL)
        self.db = self.client[settings.MONGODB_DATABASE]
        self.profiles = self.db[settings.MONGODB_PROFILES_COLLECTION]
        self.notifications = self.db[settings.MONGODB_NOTIFICATIONS_COLLECTION]

        await self.create_indexes()
        logger.info(f"Connected to MongoDB database {settings.MONGODB_DATABASE}")

    async def disconnect(self):
        """Disconnect from MongoDB"""
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")

    async def create_indexes(self):
        """Create database indexes"""
        # Usernames are unique and stored lowercase
        await self.profiles.create_index("username", unique=True)

        # Notification bell: newest first per user
        await self.notifications.create_index([("user_id", 1), ("timestamp", -1)])


class MongoProfileRepository(IProfileRepository):
    """Profile documents keyed by user id, with followers/following id arrays"""

    def __init__(self, mongodb: MongoDB):
        self.mongodb = mongodb

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self.mongodb.profiles

    @staticmethod
    def _to_profile(doc: Dict[str, Any]) -> UserProfile:
        return UserProfile(
            id=str(doc["_id"]),
            username=doc["username"],
            display_name=doc.get("displayName"),
            photo_url=doc.get("photoURL"),
            bio=doc.get("bio"),
            followers=list(doc.get("followers") or []),
            following=list(doc.get("following") or []),
            is_active=doc.get("isActive", True),
            is_verified=doc.get("isVerified", False),
        )

    async def find_by_id(self, user_id: str) -> Optional[UserProfile]:
        doc = await self.collection.find_one({"_id": user_id})
        return self._to_profile(doc) if doc else None

    async def find_by_username(self, username: str) -> Optional[UserProfile]:
        doc = await self.collection.find_one({"username": username.lower()})
        return self._to_profile(doc) if doc else None

    async def find_many(self, user_ids: List[str]) -> List[UserProfile]:
        if not user_ids:
            return []
        cursor = self.collection.find({"_id": {"$in": user_ids}})
        docs = await cursor.to_list(length=len(user_ids))
        by_id = {str(doc["_id"]): self._to_profile(doc) for doc in docs}
        return [by_id[uid] for uid in user_ids if uid in by_id]

    async def _run(self, operation: Callable[..., Awaitable[None]]) -> None:
        """Run a two-document write, in a transaction when the deployment supports it"""
        try:
            if settings.MONGODB_USE_TRANSACTIONS:
                async with await self.mongodb.client.start_session() as session:
                    async with session.start_transaction():
                        await operation(session)
            else:
                # Standalone servers have no transactions; the edge may be
                # half-written if the second update fails.
                await operation(None)
        except DuplicateKeyError as e:
            raise ConflictError(str(e)) from e

    async def _update_pair(
        self, follower_id: str, following_id: str, operator: str, session
    ) -> None:
        result = await self.collection.update_one(
            {"_id": follower_id}, {operator: {"following": following_id}}, session=session
        )
        if result.matched_count == 0:
            raise ProfileNotFoundError(f"Profile {follower_id} not found")

        result = await self.collection.update_one(
            {"_id": following_id}, {operator: {"followers": follower_id}}, session=session
        )
        if result.matched_count == 0:
            raise ProfileNotFoundError(f"Profile {following_id} not found")

    async def add_follow(self, follower_id: str, following_id: str) -> None:
        async def operation(session):
            await self._update_pair(follower_id, following_id, "$addToSet", session)

        await self._run(operation)

    async def remove_follow(self, follower_id: str, following_id: str) -> None:
        async def operation(session):
            await self._update_pair(follower_id, following_id, "$pull", session)

        await self._run(operation)


class MongoNotificationRepository(INotificationRepository):
    """Notification documents"""

    def __init__(self, mongodb: MongoDB):
        self.mongodb = mongodb

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self.mongodb.notifications

    @staticmethod
    def _to_notification(doc: Dict[str, Any]) -> Notification:
        return Notification(
            id=str(doc["_id"]),
            user_id=doc["user_id"],
            type=NotificationType(doc.get("type", NotificationType.SYSTEM.value)),
            message=doc.get("message", ""),
            read=doc.get("read", False),
            timestamp=doc.get("timestamp"),
            from_user=doc.get("fromUser"),
        )

    async def list_for_user(self, user_id: str, limit: int = 20) -> List[Notification]:
        cursor = self.collection.find({"user_id": user_id}).sort("timestamp", -1).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [self._to_notification(doc) for doc in docs]

    async def mark_read(self, notification_id: str, user_id: str) -> bool:
        result = await self.collection.update_one(
            {"_id": notification_id, "user_id": user_id},
            {"$set": {"read": True}},
        )
        return result.matched_count > 0

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.collection.update_many(
            {"user_id": user_id, "read": False},
            {"$set": {"read": True}},
        )
        return result.modified_count

    async def create(self, notification: Notification) -> Notification:
        notification.id = notification.id or uuid.uuid4().hex
        notification.timestamp = notification.timestamp or datetime.utcnow()
        await self.collection.insert_one(
            {
                "_id": notification.id,
                "user_id": notification.user_id,
                "type": notification.type.value,
                "message": notification.message,
                "read": notification.read,
                "timestamp": notification.timestamp,
                "fromUser": notification.from_user,
            }
        )
        return notification
