import logging
import pika
from .config import rabbitmq_config

logger = logging.getLogger(__name__)


class RabbitMQSetup:
    """Creates connections and declares the exchange/queue used for GoBuddy events"""

    def create_connection(self) -> pika.BlockingConnection:
        credentials = pika.PlainCredentials(rabbitmq_config.username, rabbitmq_config.password)
        parameters = pika.ConnectionParameters(
            host=rabbitmq_config.host,
            port=rabbitmq_config.port,
            virtual_host=rabbitmq_config.virtual_host,
            credentials=credentials,
            heartbeat=600,
            blocked_connection_timeout=300,
        )
        return pika.BlockingConnection(parameters)

    def declare_topology(self, channel) -> None:
        channel.exchange_declare(
            exchange=rabbitmq_config.events_exchange,
            exchange_type="topic",
            durable=True,
        )
        channel.queue_declare(queue=rabbitmq_config.events_queue, durable=True)
        for routing_key in (
            rabbitmq_config.errand_completed_key,
            rabbitmq_config.commission_completed_key,
            rabbitmq_config.rating_changed_key,
        ):
            channel.queue_bind(
                queue=rabbitmq_config.events_queue,
                exchange=rabbitmq_config.events_exchange,
                routing_key=routing_key,
            )


def init_rabbitmq() -> bool:
    """Declare exchange and queue once at startup"""
    try:
        setup = RabbitMQSetup()
        connection = setup.create_connection()
        try:
            setup.declare_topology(connection.channel())
        finally:
            connection.close()
        logger.info("RabbitMQ topology initialized")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize RabbitMQ: {e}")
        return False
