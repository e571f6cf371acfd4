import logging
import threading
from typing import Optional
from gobuddy.core.config import settings
from gobuddy.db.database import SessionLocal

logger = logging.getLogger(__name__)


class OverdueSettlementCheckManager:
    """Runs the daily settlement account check in a background thread"""

    def __init__(self, interval_seconds: Optional[int] = None):
        self.check_thread: Optional[threading.Thread] = None
        self.is_running = False
        self.check_interval = interval_seconds or settings.OVERDUE_CHECK_INTERVAL_SECONDS
        self._stop_event = threading.Event()

    def start_check(self):
        """Start the check process in a separate thread"""
        if self.is_running:
            logger.warning("Overdue check process is already running")
            return

        self.is_running = True
        self._stop_event.clear()
        self.check_thread = threading.Thread(
            target=self._run_check,
            daemon=True,
            name="Settlement-OverdueCheck"
        )
        self.check_thread.start()
        logger.info("Overdue settlement check process started")

    def stop_check(self):
        """Stop the check process"""
        if not self.is_running:
            logger.warning("Overdue check process is not running")
            return

        self.is_running = False
        self._stop_event.set()

        if self.check_thread and self.check_thread.is_alive():
            self.check_thread.join(timeout=5)
            if self.check_thread.is_alive():
                logger.warning("Overdue check thread did not stop gracefully")

        logger.info("Overdue settlement check process stopped")

    def _run_check(self):
        """Run the check loop in the background thread"""
        try:
            logger.info("Starting overdue settlement check loop")
            while self.is_running:
                try:
                    self.run_once()
                except Exception as e:
                    logger.error(f"Error in overdue check loop: {e}")
                # Wait for the next cycle, waking early on stop
                if self._stop_event.wait(self.check_interval):
                    break
        finally:
            self.is_running = False
            logger.info("Overdue check thread finished")

    def run_once(self):
        """One account check in its own session"""
        from gobuddy.services.settlement_service import daily_settlement_account_check

        db = SessionLocal()
        try:
            result = daily_settlement_account_check(db)
            logger.info(
                f"Account check: {result.overdue} overdue, "
                f"{result.locked} locked, {result.unlocked} unlocked"
            )
            return result
        finally:
            db.close()


# Global check manager
_check_manager: Optional[OverdueSettlementCheckManager] = None


def get_overdue_check_manager() -> OverdueSettlementCheckManager:
    """Get or create overdue check manager instance"""
    global _check_manager
    if _check_manager is None:
        _check_manager = OverdueSettlementCheckManager()
    return _check_manager


def start_overdue_settlement_check():
    """Start the overdue settlement check process"""
    manager = get_overdue_check_manager()
    manager.start_check()


def stop_overdue_settlement_check():
    """Stop the overdue settlement check process"""
    manager = get_overdue_check_manager()
    manager.stop_check()
