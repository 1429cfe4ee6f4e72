"""
Domain models - Core business entities
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any
from enum import Enum


class Relationship(str, Enum):
    """Relationship tag from a viewer towards a target user"""
    NONE = "none"  # no edge either direction
    FOLLOWING = "following"  # viewer follows target
    FOLLOWER = "follower"  # target follows viewer
    FRIENDS = "friends"  # mutual edge

    @property
    def viewer_follows(self) -> bool:
        """Whether the viewer -> target edge exists"""
        return self in (Relationship.FOLLOWING, Relationship.FRIENDS)

    @property
    def target_follows(self) -> bool:
        """Whether the target -> viewer edge exists"""
        return self in (Relationship.FOLLOWER, Relationship.FRIENDS)


class NotificationType(str, Enum):
    """Kinds of notifications shown in the notification center"""
    FOLLOW = "follow"
    PROFILE_VISIT = "profile_visit"
    MESSAGE = "message"
    SYSTEM = "system"


@dataclass(frozen=True)
class UserRef:
    """Minimal identity used by follow controllers"""
    uid: str
    username: str = ""


@dataclass
class UserProfile:
    """User profile document"""
    id: str
    username: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    bio: Optional[str] = None
    followers: List[str] = field(default_factory=list)
    following: List[str] = field(default_factory=list)
    is_active: bool = True
    is_verified: bool = False

    def to_ref(self) -> UserRef:
        return UserRef(uid=self.id, username=self.username)


@dataclass
class FollowCounts:
    """Aggregate follow counters for a user"""
    followers_count: int = 0
    following_count: int = 0


@dataclass
class Notification:
    """Notification delivered to a user"""
    id: str
    user_id: str
    type: NotificationType
    message: str
    read: bool = False
    timestamp: Optional[datetime] = None
    from_user: Optional[Dict[str, Any]] = None


@dataclass
class CacheEntry:
    """In-memory relationship cache slot"""
    relationship: Relationship
    timestamp: float

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.timestamp > ttl
