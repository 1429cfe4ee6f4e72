"""
Pydantic schemas for request/response validation
"""
from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum
import re

from .config import settings
from .domain.models import Relationship, NotificationType, UserProfile, Notification


class ErrorCode(str, Enum):
    """Failure classes reported by service operations"""

    UNAUTHENTICATED = "unauthenticated"
    INVALID_ARGUMENT = "invalid-argument"
    SELF_REFERENCE = "self-reference"
    NOT_FOUND = "not-found"
    UNAVAILABLE = "unavailable"
    INTERNAL = "internal"


class ResultBase(BaseModel):
    """Common success/failure envelope"""

    success: bool = True
    error: Optional[str] = None
    code: Optional[ErrorCode] = None


# Response Schemas
class RelationshipResult(ResultBase):
    """Relationship between a viewer and a target"""

    relationship: Optional[Relationship] = None
    is_following: bool = False
    is_followed_by: bool = False


class MutationResult(ResultBase):
    """Outcome of follow / unfollow"""

    message: Optional[str] = None


class UserSummary(BaseModel):
    """Row shown in follower/following lists"""

    id: str
    username: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    is_verified: bool = False

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "UserSummary":
        return cls(
            id=profile.id,
            username=profile.username,
            display_name=profile.display_name,
            photo_url=profile.photo_url,
            is_verified=profile.is_verified,
        )


class FollowCountsResult(ResultBase):
    """Aggregate follow counts"""

    user_id: Optional[str] = None
    followers_count: int = 0
    following_count: int = 0


class FollowListResult(ResultBase):
    """Bounded page of followers or following"""

    user_id: Optional[str] = None
    users: List[UserSummary] = []
    total: int = 0


class NotificationSchema(BaseModel):
    """Notification as returned to clients"""

    id: str
    type: NotificationType
    message: str
    read: bool = False
    timestamp: Optional[datetime] = None
    from_user: Optional[Dict[str, Any]] = None

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationSchema":
        return cls(
            id=notification.id,
            type=notification.type,
            message=notification.message,
            read=notification.read,
            timestamp=notification.timestamp,
            from_user=notification.from_user,
        )


class NotificationListResult(ResultBase):
    """Notifications for the signed-in user"""

    notifications: List[NotificationSchema] = []
    unread_count: int = 0


class UsernameLookup(BaseModel):
    """Username path parameter, normalized to lowercase"""

    username: str

    @field_validator("username")
    @classmethod
    def validate_username(cls, v):
        if not re.match(settings.USERNAME_PATTERN, v):
            raise ValueError("Username must be 3-20 characters of letters, digits or underscore")
        return v.lower()


# Internal Models
class User(BaseModel):
    """User model from Auth Service"""

    id: str
    username: str
    email: Optional[str] = None
    is_active: bool = True
