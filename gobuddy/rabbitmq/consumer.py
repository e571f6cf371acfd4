import json
import logging
from typing import Callable, Dict, Any, Optional
import pika
from .setup import RabbitMQSetup

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, Dict[str, Any]], bool]


class RabbitMQConsumer:
    """Consumes GoBuddy events from RabbitMQ"""

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
            self.channel.basic_qos(prefetch_count=1)
            logger.info("RabbitMQ consumer connected successfully")
        except Exception as e:
            logger.error(f"Failed to connect RabbitMQ consumer: {e}")
            raise

    def disconnect(self) -> None:
        """Close RabbitMQ connection"""
        if self.channel and not self.channel.is_closed:
            self.channel.close()
        if self.connection and not self.connection.is_closed:
            self.connection.close()
        logger.info("RabbitMQ consumer disconnected")

    def setup_consumer(self, queue: str, handler: MessageHandler) -> None:
        """Register a handler(routing_key, message_data) -> bool for a queue"""
        if not self.connection or self.connection.is_closed:
            self.connect()
        self.channel.basic_consume(queue=queue, on_message_callback=create_event_callback(handler))
        logger.info(f"Consumer registered on queue {queue}")

    def start_consuming(self) -> None:
        self.channel.start_consuming()

    def stop_consuming(self) -> None:
        if self.channel and not self.channel.is_closed:
            try:
                self.channel.stop_consuming()
            except Exception as e:
                logger.warning(f"Error stopping consumer: {e}")


def create_event_callback(handler: MessageHandler):
    """Wrap a handler into a pika callback that acks on success and drops unreadable messages"""
    def callback(channel, method, properties, body):
        try:
            message_data = json.loads(body)
        except (TypeError, ValueError) as e:
            logger.error(f"Discarding malformed message on {method.routing_key}: {e}")
            channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
            return

        try:
            handled = handler(method.routing_key, message_data)
        except Exception as e:
            logger.error(f"Handler failed for {method.routing_key}: {e}")
            handled = False

        if handled:
            channel.basic_ack(delivery_tag=method.delivery_tag)
        else:
            channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

    return callback


# Global consumer instance
_rabbitmq_consumer: Optional[RabbitMQConsumer] = None


def get_rabbitmq_consumer() -> RabbitMQConsumer:
    """Get or create RabbitMQ consumer instance"""
    global _rabbitmq_consumer
    if _rabbitmq_consumer is None:
        _rabbitmq_consumer = RabbitMQConsumer()
    return _rabbitmq_consumer
