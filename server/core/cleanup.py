"""Periodic cleanup service for long-running daemon.

Follows the start/stop background-task pattern used by the job queue.
All configuration from Settings (environment variables).
"""
import asyncio
import gc
from typing import Optional, TYPE_CHECKING

from core.logging import get_logger

if TYPE_CHECKING:
    from core.config import Settings
    from services.execution import JobQueue

logger = get_logger(__name__)


class CleanupService:
    """Background cleanup to prevent resource exhaustion.

    Periodically cleans up:
    - Terminal job results past the retention window
    - Forces garbage collection
    """

    def __init__(self, job_queue: "JobQueue", settings: "Settings"):
        self.job_queue = job_queue
        self.settings = settings
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the cleanup service background task."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._cleanup_loop())
        logger.info(
            "Cleanup service started",
            interval=self.settings.cleanup_interval,
            result_retention=self.settings.job_result_retention,
        )

    async def stop(self) -> None:
        """Stop the cleanup service gracefully."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Cleanup service stopped")

    async def _cleanup_loop(self) -> None:
        """Main cleanup loop - runs at configured interval."""
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Cleanup failed", error=str(e))
            await asyncio.sleep(self.settings.cleanup_interval)

    async def run_once(self) -> dict:
        """Run cleanup once and return results. Useful for testing."""
        results = {'expired_results': self.job_queue.evict_expired()}

        # Force garbage collection
        gc.collect()

        # Only log if something was cleaned up
        if sum(results.values()) > 0:
            logger.info("Cleanup completed", **results)
        return results
