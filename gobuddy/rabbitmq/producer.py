import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
import pika
from gobuddy.core.config import settings
from .config import rabbitmq_config
from .setup import RabbitMQSetup

logger = logging.getLogger(__name__)


class RabbitMQProducer:
    """Handles publishing GoBuddy events to RabbitMQ"""

    def __init__(self):
        self.connection: Optional[pika.BlockingConnection] = None
        self.channel = None
        self.setup = RabbitMQSetup()

    def connect(self) -> None:
        """Establish connection to RabbitMQ"""
        try:
            self.connection = self.setup.create_connection()
            self.channel = self.connection.channel()
            self.setup.declare_topology(self.channel)
            logger.info("RabbitMQ producer connected successfully")
        except Exception as e:
            logger.error(f"Failed to connect RabbitMQ producer: {e}")
            raise

    def disconnect(self) -> None:
        """Close RabbitMQ connection"""
        if self.channel and not self.channel.is_closed:
            self.channel.close()
        if self.connection and not self.connection.is_closed:
            self.connection.close()
        logger.info("RabbitMQ producer disconnected")

    def publish(self, routing_key: str, payload: Dict[str, Any]) -> bool:
        """
        Publish an event on the events exchange

        Args:
            routing_key: Event name, e.g. "settlement.created"
            payload: JSON-serializable event data

        Returns:
            bool: True if message published successfully, False otherwise
        """
        try:
            if not self.connection or self.connection.is_closed:
                self.connect()

            message_data = dict(payload)
            message_data["event"] = routing_key
            message_data["timestamp"] = datetime.now(timezone.utc).isoformat()

            self.channel.basic_publish(
                exchange=rabbitmq_config.events_exchange,
                routing_key=routing_key,
                body=json.dumps(message_data, default=str),
                properties=pika.BasicProperties(
                    delivery_mode=2,  # Make message persistent
                    content_type='application/json',
                ),
            )

            logger.info(f"Published {routing_key} event")
            return True

        except Exception as e:
            logger.error(f"Failed to publish {routing_key} event: {e}")
            return False

    def publish_settlement_created(self, settlement: Dict[str, Any]) -> bool:
        return self.publish(rabbitmq_config.settlement_created_key, {
            "settlement_id": settlement.get("id"),
            "user_id": settlement.get("user_id"),
            "period_start_date": settlement.get("period_start_date"),
            "period_end_date": settlement.get("period_end_date"),
            "total_earnings": settlement.get("total_earnings"),
        })

    def publish_rating_updated(self, user_id: str, average_rating, total_ratings: int) -> bool:
        return self.publish(rabbitmq_config.rating_updated_key, {
            "user_id": user_id,
            "average_rating": average_rating,
            "total_ratings": total_ratings,
        })


# Global producer instance
_rabbitmq_producer: Optional[RabbitMQProducer] = None


def get_rabbitmq_producer() -> Optional[RabbitMQProducer]:
    """Get or create RabbitMQ producer instance (None while publishing is disabled)"""
    global _rabbitmq_producer
    if not settings.ENABLE_EVENT_PUBLISHING:
        return None
    if _rabbitmq_producer is None:
        _rabbitmq_producer = RabbitMQProducer()
    return _rabbitmq_producer


def close_rabbitmq_producer() -> None:
    """Close RabbitMQ producer connection"""
    global _rabbitmq_producer
    if _rabbitmq_producer:
        _rabbitmq_producer.disconnect()
        _rabbitmq_producer = None
