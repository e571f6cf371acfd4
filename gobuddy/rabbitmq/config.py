from dataclasses import dataclass
from gobuddy.core.config import settings


@dataclass(frozen=True)
class RabbitMQConfig:
    host: str
    port: int
    username: str
    password: str
    virtual_host: str
    events_exchange: str
    events_queue: str
    # Routing keys we publish
    settlement_created_key: str = "settlement.created"
    rating_updated_key: str = "user.rating.updated"
    # Routing keys we consume
    errand_completed_key: str = "errand.completed"
    commission_completed_key: str = "commission.completed"
    rating_changed_key: str = "rating.changed"


rabbitmq_config = RabbitMQConfig(
    host=settings.RABBITMQ_HOST,
    port=settings.RABBITMQ_PORT,
    username=settings.RABBITMQ_USER,
    password=settings.RABBITMQ_PASSWORD,
    virtual_host=settings.RABBITMQ_VHOST,
    events_exchange=settings.EVENTS_EXCHANGE,
    events_queue=settings.EVENTS_QUEUE,
)
