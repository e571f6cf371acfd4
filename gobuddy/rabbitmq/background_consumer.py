import logging
import threading
from typing import Optional
from gobuddy.rabbitmq.config import rabbitmq_config
from gobuddy.rabbitmq.consumer import RabbitMQConsumer, get_rabbitmq_consumer

logger = logging.getLogger(__name__)

RECONNECT_DELAY_SECONDS = 5


class BackgroundConsumerManager:
    """Consumes errand/rating events on a daemon thread, reconnecting after broker failures"""

    def __init__(self, consumer: Optional[RabbitMQConsumer] = None, reconnect_delay: int = RECONNECT_DELAY_SECONDS):
        self.consumer = consumer or get_rabbitmq_consumer()
        self.reconnect_delay = reconnect_delay
        self.consumer_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self.consumer_thread is not None and self.consumer_thread.is_alive()

    def start_background_consumer(self):
        if self.is_running:
            logger.warning("Event consumer is already running")
            return

        self._stop_event.clear()
        self.consumer_thread = threading.Thread(
            target=self._consume_forever,
            daemon=True,
            name="GoBuddy-EventConsumer"
        )
        self.consumer_thread.start()
        logger.info(f"Event consumer started on queue {rabbitmq_config.events_queue}")

    def stop_background_consumer(self):
        if not self.is_running:
            logger.warning("Event consumer is not running")
            return

        self._stop_event.set()
        self.consumer.stop_consuming()
        self.consumer_thread.join(timeout=5)
        if self.consumer_thread.is_alive():
            logger.warning("Event consumer thread did not stop gracefully")
        self.consumer.disconnect()
        logger.info("Event consumer stopped")

    def _consume_forever(self):
        from gobuddy.services.event_handlers import handle_event

        while not self._stop_event.is_set():
            try:
                self.consumer.setup_consumer(rabbitmq_config.events_queue, handle_event)
                self.consumer.start_consuming()
            except Exception as e:
                if self._stop_event.is_set():
                    break
                logger.error(f"Event consumer failed, reconnecting in {self.reconnect_delay}s: {e}")
                self.consumer.disconnect()
                self._stop_event.wait(self.reconnect_delay)
        logger.info("Event consumer thread finished")


# Global background consumer manager
_background_consumer_manager: Optional[BackgroundConsumerManager] = None


def get_background_consumer_manager() -> BackgroundConsumerManager:
    """Get or create background consumer manager instance"""
    global _background_consumer_manager
    if _background_consumer_manager is None:
        _background_consumer_manager = BackgroundConsumerManager()
    return _background_consumer_manager


def start_background_consumer():
    get_background_consumer_manager().start_background_consumer()


def stop_background_consumer():
    get_background_consumer_manager().stop_background_consumer()
