import logging
from typing import Dict, Any

from gobuddy.db.database import SessionLocal
from gobuddy.rabbitmq.config import rabbitmq_config

logger = logging.getLogger(__name__)


def handle_event(routing_key: str, message_data: Dict[str, Any]) -> bool:
    """
    React to change notifications from the app backend.

    errand.completed     -> run a settlement cycle
    commission.completed -> run a settlement cycle
    rating.changed       -> recompute the listed users' ratings
    """
    from gobuddy.services.settlement_service import run_settlement_cycle
    from gobuddy.services.rating_service import recompute_users

    db = SessionLocal()
    try:
        if routing_key == rabbitmq_config.errand_completed_key:
            logger.info(f"Errand {message_data.get('errand_id')} completed, running settlement cycle")
            run_settlement_cycle(db)
            return True

        if routing_key == rabbitmq_config.commission_completed_key:
            logger.info(f"Commission {message_data.get('commission_id')} completed, running settlement cycle")
            run_settlement_cycle(db)
            return True

        if routing_key == rabbitmq_config.rating_changed_key:
            user_ids = [u for u in (message_data.get("user_ids") or []) if u]
            if not user_ids:
                logger.error("rating.changed event without user_ids")
                return False
            recompute_users(db, user_ids)
            return True

        logger.warning(f"Ignoring unexpected event {routing_key}")
        return False
    finally:
        db.close()
