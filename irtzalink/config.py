"""
Configuration settings for IrtzaLink
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "IrtzaLink Profile Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8005

    # MongoDB (profile store + notifications)
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "irtzalink"
    MONGODB_PROFILES_COLLECTION: str = "users"
    MONGODB_NOTIFICATIONS_COLLECTION: str = "notifications"
    MONGODB_USE_TRANSACTIONS: bool = True  # requires a replica set

    # Redis (persisted layer of the relationship cache)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_ENABLED: bool = True

    # Auth Service Integration
    AUTH_SERVICE_URL: str = "http://localhost:8001"
    AUTH_TIMEOUT_SECONDS: float = 5.0

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = "localhost:9092"
    KAFKA_ENABLED: bool = True
    KAFKA_TOPIC_FOLLOW: str = "follow.created"
    KAFKA_TOPIC_UNFOLLOW: str = "follow.removed"

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # Relationship cache (seconds)
    CACHE_KEY_PREFIX: str = "irtzalink"
    CACHE_TTL_RELATIONSHIP: int = 604800  # 7 days
    CACHE_TTL_COUNTS: int = 3600  # 1 hour
    CACHE_TTL_LIST: int = 1800  # 30 minutes
    CACHE_MAX_AGE: int = 604800  # sweep threshold, 7 days
    CACHE_SWEEP_INTERVAL: int = 21600  # 6 hours

    # Follow button controller
    RECONCILE_DELAY_SECONDS: float = 1.0
    CACHE_TRUST_POLICY: str = "distrust-on-mount"
    MUTATION_FAILURE_POLICY: str = "optimistic"

    # Follow lists
    DEFAULT_LIST_LIMIT: int = 50
    MAX_LIST_LIMIT: int = 100
    FOLLOWERS_PAGE_LIMIT: int = 100

    # Notifications
    NOTIFICATION_POLL_INTERVAL_SECONDS: float = 30.0
    NOTIFICATION_FETCH_LIMIT: int = 20

    # Profiles
    USERNAME_PATTERN: str = r"^[a-zA-Z0-9_]{3,20}$"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
