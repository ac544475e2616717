"""Background task for removing expired sessions."""

import asyncio

from common.logging_config import get_logger
from server.exceptions import StorageUnavailableError
from server.repositories.session_repository import SessionRepository
from server.utils import utc_now

logger = get_logger(__name__)

CLEANUP_INTERVAL_SECONDS = 6 * 3600


class ExpiredSessionCleaner:
    """
    Background task that periodically deletes expired sessions.
    """

    def __init__(self, interval_seconds: int = CLEANUP_INTERVAL_SECONDS):
        """
        Initialize cleaner task.

        Args:
            interval_seconds: Time between cleanup attempts (default 6 hours)
        """
        self.interval_seconds = interval_seconds
        self._running = False
        self._task = None

    async def start(self) -> None:
        """Start the background cleanup task."""
        if self._running:
            logger.warning("Cleanup task already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started expired session cleanup task (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background cleanup task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Stopped expired session cleanup task")

    async def _run(self) -> None:
        """Main loop for cleanup task."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                self.cleanup_cycle()

            except asyncio.CancelledError:
                break
            except StorageUnavailableError as e:
                logger.error(f"Error in cleanup task: {e}", exc_info=True)

    def cleanup_cycle(self) -> int:
        """
        Execute one cleanup cycle.

        Returns:
            Number of sessions removed
        """
        removed = SessionRepository.delete_expired(utc_now())
        logger.debug(f"Cleanup cycle complete: {removed} expired session(s) removed")
        return removed
