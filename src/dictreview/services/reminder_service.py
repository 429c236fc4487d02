"""Background task that tells users when words are due for review."""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from dictreview import monitoring
from dictreview.config import settings
from dictreview.models.base import utcnow
from dictreview.services.review_service import ReviewService

logger = logging.getLogger(__name__)

Notifier = Callable[[str, List[str]], Awaitable[None]]


class ReviewReminderService:
    """Periodically checks every tracked user for due words."""

    def __init__(
        self,
        review_service: ReviewService,
        notify: Notifier,
        interval: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the service with the review service and a notify callback."""
        self.review_service = review_service
        self.notify = notify
        self.interval = interval if interval is not None else settings.review.reminder_interval_seconds
        self.clock = clock
        self.task: Optional[asyncio.Task] = None
        self.running = False
        self._last_sent: Dict[str, Tuple[str, ...]] = {}

    async def start(self) -> None:
        """Start the reminder loop."""
        if self.running:
            return

        self.running = True
        logger.info("Starting review reminder service...")
        self.task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the reminder loop."""
        if not self.running:
            return

        self.running = False
        logger.info("Stopping review reminder service...")
        if self.task:
            self.task.cancel()
            await asyncio.gather(self.task, return_exceptions=True)
            self.task = None

    async def check_once(self) -> Dict[str, List[str]]:
        """Notify every user whose due words changed since the last reminder."""
        now = self.clock()
        sent: Dict[str, List[str]] = {}

        for user_id in self.review_service.tracked_users():
            words = self.review_service.due_words(user_id, now)
            if not words:
                self._last_sent.pop(user_id, None)
                continue
            if self._last_sent.get(user_id) == tuple(words):
                continue

            try:
                await self.notify(user_id, words)
            except Exception as e:
                monitoring.reminder_errors.inc()
                logger.error("Failed to send review reminder to user %s: %s", user_id, str(e))
                continue

            self._last_sent[user_id] = tuple(words)
            sent[user_id] = words
            logger.info("Sent review reminder to user %s (%d words)", user_id, len(words))

        return sent

    async def _run(self) -> None:
        while self.running:
            try:
                await self.check_once()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in review reminder task: %s", str(e))
                await asyncio.sleep(min(self.interval, 60))  # Wait before retrying
