"""
HTTP client for the IrtzaLink API.

Mirrors the FollowService / NotificationService method signatures so client
components can run against either the in-process services or a remote
deployment. Authoritative failures come back as results with success=False;
transport failures raise ServiceUnavailableError.
"""
import httpx
from typing import Optional, Dict, Any, Tuple, Type, Union
import logging

from ..config import settings
from ..schemas import (
    ErrorCode,
    ResultBase,
    RelationshipResult,
    MutationResult,
    FollowCountsResult,
    FollowListResult,
    NotificationListResult,
)
from ..service import FollowService, NotificationService

logger = logging.getLogger(__name__)

CODE_BY_STATUS = {
    400: ErrorCode.INVALID_ARGUMENT,
    401: ErrorCode.UNAUTHENTICATED,
    403: ErrorCode.UNAUTHENTICATED,
    404: ErrorCode.NOT_FOUND,
    422: ErrorCode.INVALID_ARGUMENT,
}


class ServiceUnavailableError(Exception):
    """The API could not be reached or answered 503"""


class ServiceClient:
    """HTTP client for the follow graph and notification endpoints"""

    def __init__(self, base_url: str, token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = httpx.Timeout(10.0, connect=5.0)
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def start(self):
        """Initialize HTTP client"""
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.token}"},
        )
        logger.info("Service client initialized")

    async def stop(self):
        """Close HTTP client"""
        if self.client:
            await self.client.aclose()
            logger.info("Service client closed")

    async def _make_request(
        self,
        result_cls: Type[ResultBase],
        method: str,
        path: str,
        **kwargs,
    ) -> ResultBase:
        """Make HTTP request and parse it into a result model"""
        if not self.client:
            raise ServiceUnavailableError("Service client not initialized")

        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Request failed for {path}: {e}")
            raise ServiceUnavailableError(str(e)) from e

        if response.status_code >= 500:
            logger.error(f"HTTP error {response.status_code} for {path}")
            raise ServiceUnavailableError(f"{path} answered {response.status_code}")

        if response.status_code >= 400:
            detail, code = self._error(response)
            logger.warning(f"HTTP error {response.status_code} for {path}: {detail}")
            return result_cls(
                success=False,
                error=detail,
                code=code or CODE_BY_STATUS.get(response.status_code, ErrorCode.INTERNAL),
            )

        return result_cls(**response.json())

    @staticmethod
    def _error(response: httpx.Response) -> Tuple[str, Optional[ErrorCode]]:
        """Error message and code from an error body.

        Service failures carry {"detail": {"code", "error"}}; anything else
        (validation, auth) only has a message.
        """
        try:
            body: Dict[str, Any] = response.json()
        except ValueError:
            return response.text, None

        detail = body.get("detail", body) if isinstance(body, dict) else body
        if isinstance(detail, dict) and "code" in detail:
            try:
                code = ErrorCode(detail["code"])
            except ValueError:
                code = None
            return str(detail.get("error") or ""), code
        return str(detail), None

    # Follow graph
    async def get_relationship(self, viewer_id: str, target_id: str) -> RelationshipResult:
        """Relationship of the token's user towards target_id"""
        return await self._make_request(RelationshipResult, "GET", f"/api/v1/relationship/{target_id}")

    async def follow(self, viewer_id: str, target_id: str) -> MutationResult:
        return await self._make_request(MutationResult, "POST", f"/api/v1/follow/{target_id}")

    async def unfollow(self, viewer_id: str, target_id: str) -> MutationResult:
        return await self._make_request(MutationResult, "DELETE", f"/api/v1/follow/{target_id}")

    async def get_follow_counts(self, user_id: str) -> FollowCountsResult:
        return await self._make_request(FollowCountsResult, "GET", f"/api/v1/users/{user_id}/counts")

    async def get_followers(self, user_id: str, limit: int = settings.DEFAULT_LIST_LIMIT) -> FollowListResult:
        return await self._make_request(
            FollowListResult, "GET", f"/api/v1/users/{user_id}/followers", params={"limit": limit}
        )

    async def get_following(self, user_id: str, limit: int = settings.DEFAULT_LIST_LIMIT) -> FollowListResult:
        return await self._make_request(
            FollowListResult, "GET", f"/api/v1/users/{user_id}/following", params={"limit": limit}
        )

    # Notifications
    async def list_notifications(
        self, user_id: str, limit: int = settings.NOTIFICATION_FETCH_LIMIT
    ) -> NotificationListResult:
        return await self._make_request(
            NotificationListResult, "GET", "/api/v1/notifications", params={"limit": limit}
        )

    async def mark_as_read(self, notification_id: str, user_id: str) -> MutationResult:
        return await self._make_request(
            MutationResult, "POST", f"/api/v1/notifications/{notification_id}/read"
        )

    async def mark_all_as_read(self, user_id: str) -> MutationResult:
        return await self._make_request(MutationResult, "POST", "/api/v1/notifications/read-all")


# Anything the client components can talk to
FollowApi = Union[FollowService, ServiceClient]
NotificationApi = Union[NotificationService, ServiceClient]
