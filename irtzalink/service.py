"""
Follow relationship service and notification service business logic
"""
from typing import Optional, List
import logging

from .config import settings
from .domain.models import UserProfile
from .domain.repositories import (
    IProfileRepository,
    INotificationRepository,
    ConflictError,
    ProfileNotFoundError,
)
from .domain.transitions import classify
from .kafka_producer import KafkaProducerManager
from .schemas import (
    ErrorCode,
    RelationshipResult,
    MutationResult,
    FollowCountsResult,
    FollowListResult,
    NotificationListResult,
    NotificationSchema,
    UserSummary,
)

logger = logging.getLogger(__name__)


def _failure(result_cls, code: ErrorCode, error: str):
    return result_cls(success=False, code=code, error=error)


class FollowService:
    """Authoritative follow graph operations over the profile store"""

    def __init__(
        self,
        profiles: IProfileRepository,
        kafka: Optional[KafkaProducerManager] = None,
    ):
        self.profiles = profiles
        self.kafka = kafka

    def _check_pair(self, result_cls, viewer_id: Optional[str], target_id: Optional[str]):
        """Validate a viewer/target pair before touching the store"""
        if not viewer_id:
            return _failure(result_cls, ErrorCode.UNAUTHENTICATED, "User must be authenticated")
        if not target_id:
            return _failure(result_cls, ErrorCode.INVALID_ARGUMENT, "Target user id is required")
        if viewer_id == target_id:
            return _failure(result_cls, ErrorCode.SELF_REFERENCE, "You cannot follow yourself")
        return None

    async def get_relationship(
        self, viewer_id: Optional[str], target_id: Optional[str]
    ) -> RelationshipResult:
        """
        Classify the relationship between viewer and target

        Args:
            viewer_id: Signed-in user
            target_id: User being looked at

        Returns:
            RelationshipResult with the four-valued tag and raw edge flags
        """
        invalid = self._check_pair(RelationshipResult, viewer_id, target_id)
        if invalid:
            return invalid

        try:
            viewer = await self.profiles.find_by_id(viewer_id)
            target = await self.profiles.find_by_id(target_id)
        except Exception as e:
            logger.error(f"Error reading relationship {viewer_id} -> {target_id}: {e}")
            return _failure(RelationshipResult, ErrorCode.UNAVAILABLE, "Profile store unavailable")

        if viewer is None or target is None:
            return _failure(RelationshipResult, ErrorCode.NOT_FOUND, "User not found")

        is_following = target_id in viewer.following
        is_followed_by = viewer_id in target.following

        return RelationshipResult(
            success=True,
            relationship=classify(is_following, is_followed_by),
            is_following=is_following,
            is_followed_by=is_followed_by,
        )

    async def follow(self, viewer_id: Optional[str], target_id: Optional[str]) -> MutationResult:
        """
        Follow a user

        Adds target to viewer.following and viewer to target.followers in
        one atomic write. Following twice is not an error.
        """
        invalid = self._check_pair(MutationResult, viewer_id, target_id)
        if invalid:
            return invalid

        try:
            await self.profiles.add_follow(viewer_id, target_id)
        except ConflictError:
            logger.info(f"Follow {viewer_id} -> {target_id} already present")
        except ProfileNotFoundError as e:
            return _failure(MutationResult, ErrorCode.NOT_FOUND, str(e))
        except Exception as e:
            logger.error(f"Error following {viewer_id} -> {target_id}: {e}")
            return _failure(MutationResult, ErrorCode.UNAVAILABLE, "Failed to follow user")

        if self.kafka:
            await self.kafka.publish_follow_event(viewer_id, target_id)

        return MutationResult(success=True, message="Successfully followed user")

    async def unfollow(self, viewer_id: Optional[str], target_id: Optional[str]) -> MutationResult:
        """
        Unfollow a user

        Removes both sides of the edge. Succeeds when no edge existed.
        """
        invalid = self._check_pair(MutationResult, viewer_id, target_id)
        if invalid:
            return invalid

        try:
            await self.profiles.remove_follow(viewer_id, target_id)
        except ConflictError:
            logger.info(f"Unfollow {viewer_id} -> {target_id} already applied")
        except ProfileNotFoundError as e:
            return _failure(MutationResult, ErrorCode.NOT_FOUND, str(e))
        except Exception as e:
            logger.error(f"Error unfollowing {viewer_id} -> {target_id}: {e}")
            return _failure(MutationResult, ErrorCode.UNAVAILABLE, "Failed to unfollow user")

        if self.kafka:
            await self.kafka.publish_unfollow_event(viewer_id, target_id)

        return MutationResult(success=True, message="Successfully unfollowed user")

    async def _load_profile(self, user_id: Optional[str], result_cls):
        if not user_id:
            return None, _failure(result_cls, ErrorCode.INVALID_ARGUMENT, "User id is required")
        try:
            profile = await self.profiles.find_by_id(user_id)
        except Exception as e:
            logger.error(f"Error loading profile {user_id}: {e}")
            return None, _failure(result_cls, ErrorCode.UNAVAILABLE, "Profile store unavailable")
        if profile is None:
            return None, _failure(result_cls, ErrorCode.NOT_FOUND, "User not found")
        return profile, None

    async def get_follow_counts(self, user_id: Optional[str]) -> FollowCountsResult:
        """Get follower/following counts"""
        profile, failure = await self._load_profile(user_id, FollowCountsResult)
        if failure:
            return failure

        return FollowCountsResult(
            user_id=profile.id,
            followers_count=len(profile.followers),
            following_count=len(profile.following),
        )

    async def _list(self, profile: UserProfile, ids: List[str], limit: int) -> FollowListResult:
        limit = max(1, min(limit, settings.MAX_LIST_LIMIT))
        # Edges are appended, so the newest are at the end
        page_ids = list(reversed(ids))[:limit]
        try:
            users = await self.profiles.find_many(page_ids)
        except Exception as e:
            logger.error(f"Error loading follow list for {profile.id}: {e}")
            return _failure(FollowListResult, ErrorCode.UNAVAILABLE, "Profile store unavailable")

        return FollowListResult(
            user_id=profile.id,
            users=[UserSummary.from_profile(u) for u in users if u.is_active],
            total=len(ids),
        )

    async def get_followers(
        self, user_id: Optional[str], limit: int = settings.DEFAULT_LIST_LIMIT
    ) -> FollowListResult:
        """Get a bounded page of the user's followers, newest first"""
        profile, failure = await self._load_profile(user_id, FollowListResult)
        if failure:
            return failure
        return await self._list(profile, profile.followers, limit)

    async def get_following(
        self, user_id: Optional[str], limit: int = settings.DEFAULT_LIST_LIMIT
    ) -> FollowListResult:
        """Get a bounded page of the users this user follows, newest first"""
        profile, failure = await self._load_profile(user_id, FollowListResult)
        if failure:
            return failure
        return await self._list(profile, profile.following, limit)

    async def get_user_by_username(self, username: str) -> Optional[UserSummary]:
        """Resolve an active profile by username"""
        profile = await self.profiles.find_by_username(username)
        if profile is None or not profile.is_active:
            return None
        return UserSummary.from_profile(profile)


class NotificationService:
    """Read and acknowledge notifications"""

    def __init__(self, notifications: INotificationRepository):
        self.notifications = notifications

    async def list_notifications(
        self, user_id: Optional[str], limit: int = settings.NOTIFICATION_FETCH_LIMIT
    ) -> NotificationListResult:
        if not user_id:
            return _failure(NotificationListResult, ErrorCode.UNAUTHENTICATED, "User must be authenticated")
        try:
            items = await self.notifications.list_for_user(user_id, limit)
        except Exception as e:
            logger.error(f"Error loading notifications for {user_id}: {e}")
            return _failure(NotificationListResult, ErrorCode.UNAVAILABLE, "Notification store unavailable")

        return NotificationListResult(
            notifications=[NotificationSchema.from_domain(n) for n in items],
            unread_count=sum(1 for n in items if not n.read),
        )

    async def mark_as_read(self, notification_id: str, user_id: Optional[str]) -> MutationResult:
        if not user_id:
            return _failure(MutationResult, ErrorCode.UNAUTHENTICATED, "User must be authenticated")
        if not notification_id:
            return _failure(MutationResult, ErrorCode.INVALID_ARGUMENT, "Notification id is required")
        try:
            found = await self.notifications.mark_read(notification_id, user_id)
        except Exception as e:
            logger.error(f"Error marking notification {notification_id} read: {e}")
            return _failure(MutationResult, ErrorCode.UNAVAILABLE, "Notification store unavailable")
        if not found:
            return _failure(MutationResult, ErrorCode.NOT_FOUND, "Notification not found")
        return MutationResult(success=True, message="Notification marked as read")

    async def mark_all_as_read(self, user_id: Optional[str]) -> MutationResult:
        if not user_id:
            return _failure(MutationResult, ErrorCode.UNAUTHENTICATED, "User must be authenticated")
        try:
            changed = await self.notifications.mark_all_read(user_id)
        except Exception as e:
            logger.error(f"Error marking notifications read for {user_id}: {e}")
            return _failure(MutationResult, ErrorCode.UNAVAILABLE, "Notification store unavailable")
        return MutationResult(success=True, message=f"Marked {changed} notifications as read")
