"""
Kafka producer for publishing follow graph events
"""
from aiokafka import AIOKafkaProducer
from typing import Optional, Dict, Any
import json
import logging
from datetime import datetime

from .config import settings

logger = logging.getLogger(__name__)


class KafkaProducerManager:
    """Kafka producer manager for publishing events"""

    def __init__(self):
        self.producer: Optional[AIOKafkaProducer] = None

    async def start(self):
        """Start Kafka producer"""
        if not settings.KAFKA_ENABLED:
            logger.info("Kafka is disabled")
            return

        try:
            self.producer = AIOKafkaProducer(
                bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
                key_serializer=lambda v: str(v).encode("utf-8") if v else None,
            )
            await self.producer.start()
            logger.info("Kafka producer started successfully")
        except Exception as e:
            logger.warning(f"Failed to start Kafka producer: {e}. Continuing without Kafka.")
            self.producer = None

    async def stop(self):
        """Stop Kafka producer"""
        if self.producer:
            await self.producer.stop()
            logger.info("Kafka producer stopped")

    async def publish_event(self, topic: str, key: str, event_data: Dict[str, Any]):
        """
        Publish event to Kafka topic

        Args:
            topic: Kafka topic name
            key: Message key (the acting user id)
            event_data: Event data to publish
        """
        if not self.producer:
            logger.debug(f"Kafka disabled, skipping event: {topic}")
            return

        try:
            await self.producer.send(topic, value=event_data, key=key)
            logger.info(f"Published event to {topic}: {key}")
        except Exception as e:
            logger.error(f"Error publishing event to {topic}: {e}")

    async def publish_follow_event(self, follower_id: str, following_id: str):
        """Publish follow event; notification producers turn it into a bell entry"""
        event_data = {
            "event_type": "follow",
            "follower_id": follower_id,
            "following_id": following_id,
            "timestamp": datetime.utcnow().isoformat(),
        }
        await self.publish_event(settings.KAFKA_TOPIC_FOLLOW, follower_id, event_data)

    async def publish_unfollow_event(self, follower_id: str, following_id: str):
        """Publish unfollow event"""
        event_data = {
            "event_type": "unfollow",
            "follower_id": follower_id,
            "following_id": following_id,
            "timestamp": datetime.utcnow().isoformat(),
        }
        await self.publish_event(settings.KAFKA_TOPIC_UNFOLLOW, follower_id, event_data)
