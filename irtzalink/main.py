"""
FastAPI application for IrtzaLink
"""
from fastapi import FastAPI, Depends, HTTPException, status, Query
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from .config import settings
from .database import MongoDB, MongoProfileRepository, MongoNotificationRepository
from .kafka_producer import KafkaProducerManager
from .dependencies import get_current_user, get_follow_service, get_notification_service
from .service import FollowService, NotificationService
from .schemas import (
    User,
    ErrorCode,
    ResultBase,
    RelationshipResult,
    MutationResult,
    FollowCountsResult,
    FollowListResult,
    NotificationListResult,
    UsernameLookup,
    UserSummary,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    ErrorCode.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.INVALID_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.SELF_REFERENCE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting IrtzaLink service...")

    mongodb = MongoDB()
    await mongodb.connect()
    logger.info("MongoDB connected")

    kafka_producer = KafkaProducerManager()
    await kafka_producer.start()

    app.state.follow_service = FollowService(MongoProfileRepository(mongodb), kafka_producer)
    app.state.notification_service = NotificationService(MongoNotificationRepository(mongodb))

    logger.info(f"IrtzaLink service started successfully on port {settings.PORT}")

    yield

    # Shutdown
    logger.info("Shutting down IrtzaLink service...")
    await kafka_producer.stop()
    await mongodb.disconnect()
    logger.info("IrtzaLink service shut down successfully")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="IrtzaLink - link-in-bio profiles, follow graph and notifications",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def unwrap(result: ResultBase) -> ResultBase:
    """Turn a failed service result into an HTTP error"""
    if result.success:
        return result
    raise HTTPException(
        status_code=STATUS_BY_CODE.get(result.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={
            "code": (result.code or ErrorCode.INTERNAL).value,
            "error": result.error or "Request failed",
        },
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": settings.APP_NAME}


# Profile lookup
@app.get(
    "/api/v1/users/by-username/{username}",
    response_model=UserSummary,
    tags=["Profiles"],
    summary="Resolve a username",
)
async def get_user_by_username(
    username: str,
    service: FollowService = Depends(get_follow_service),
):
    """Resolve a public profile by its username (case-insensitive)"""
    try:
        lookup = UsernameLookup(username=username)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid username",
        )

    user = await service.get_user_by_username(lookup.username)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


# Relationship endpoints
@app.get(
    "/api/v1/relationship/{target_id}",
    response_model=RelationshipResult,
    tags=["Relationship"],
    summary="Get relationship with user",
)
async def get_relationship(
    target_id: str,
    current_user: User = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service),
):
    """
    Get relationship between current user and target user

    - none: no edge either direction
    - following: you follow the target
    - follower: the target follows you
    - friends: you follow each other
    """
    return unwrap(await service.get_relationship(current_user.id, target_id))


# Follow/Unfollow endpoints
@app.post(
    "/api/v1/follow/{target_id}",
    response_model=MutationResult,
    tags=["Follow"],
    summary="Follow a user",
)
async def follow_user(
    target_id: str,
    current_user: User = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service),
):
    """Follow a user; following twice is not an error"""
    return unwrap(await service.follow(current_user.id, target_id))


@app.delete(
    "/api/v1/follow/{target_id}",
    response_model=MutationResult,
    tags=["Follow"],
    summary="Unfollow a user",
)
async def unfollow_user(
    target_id: str,
    current_user: User = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service),
):
    """Unfollow a user; succeeds when you were not following"""
    return unwrap(await service.unfollow(current_user.id, target_id))


# Counts and lists
@app.get(
    "/api/v1/users/{user_id}/counts",
    response_model=FollowCountsResult,
    tags=["Followers"],
    summary="Get follow counts",
)
async def get_follow_counts(
    user_id: str,
    current_user: User = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service),
):
    return unwrap(await service.get_follow_counts(user_id))


@app.get(
    "/api/v1/users/{user_id}/followers",
    response_model=FollowListResult,
    tags=["Followers"],
    summary="Get user's followers",
)
async def get_followers(
    user_id: str,
    limit: int = Query(
        settings.DEFAULT_LIST_LIMIT, ge=1, le=settings.MAX_LIST_LIMIT, description="Maximum users"
    ),
    current_user: User = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service),
):
    return unwrap(await service.get_followers(user_id, limit))


@app.get(
    "/api/v1/users/{user_id}/following",
    response_model=FollowListResult,
    tags=["Following"],
    summary="Get users that user is following",
)
async def get_following(
    user_id: str,
    limit: int = Query(
        settings.DEFAULT_LIST_LIMIT, ge=1, le=settings.MAX_LIST_LIMIT, description="Maximum users"
    ),
    current_user: User = Depends(get_current_user),
    service: FollowService = Depends(get_follow_service),
):
    return unwrap(await service.get_following(user_id, limit))


# Notifications
@app.get(
    "/api/v1/notifications",
    response_model=NotificationListResult,
    tags=["Notifications"],
    summary="Get my notifications",
)
async def get_notifications(
    limit: int = Query(settings.NOTIFICATION_FETCH_LIMIT, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return unwrap(await service.list_notifications(current_user.id, limit))


@app.post(
    "/api/v1/notifications/read-all",
    response_model=MutationResult,
    tags=["Notifications"],
    summary="Mark all notifications as read",
)
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return unwrap(await service.mark_all_as_read(current_user.id))


@app.post(
    "/api/v1/notifications/{notification_id}/read",
    response_model=MutationResult,
    tags=["Notifications"],
    summary="Mark a notification as read",
)
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return unwrap(await service.mark_as_read(notification_id, current_user.id))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "irtzalink.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
