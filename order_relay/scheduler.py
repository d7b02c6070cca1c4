"""Background task that triggers poll cycles on a fixed interval."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .coordinator import PollCoordinator

logger = logging.getLogger(__name__)


class PollScheduler:
    """Runs :meth:`PollCoordinator.run_once` every ``interval`` seconds.

    Failures never stop the loop. The last error is kept in :meth:`status`
    together with a count of consecutive failed cycles so the health endpoint
    can report it.
    """

    def __init__(self, coordinator: PollCoordinator, interval: float) -> None:
        self._coordinator = coordinator
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self.runs = 0
        self.consecutive_failures = 0
        self.last_run_at: Optional[str] = None
        self.last_error: Optional[Dict[str, str]] = None

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling unless disabled or already running."""
        if not self.enabled:
            logger.info("Auto-poll disabled (interval=%s). Use /run/poll-once manually.", self._interval)
            return
        if self.running:
            return
        logger.info("Auto-poll enabled: every %.1f s", self._interval)
        self._task = asyncio.create_task(self._poll())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.tick()

    async def tick(self) -> None:
        """Run one cycle, recording the result instead of raising."""
        self.runs += 1
        self.last_run_at = datetime.now(timezone.utc).isoformat()
        try:
            await self._coordinator.run_once()
        except Exception as exc:
            self.consecutive_failures += 1
            self.last_error = {
                "type": type(exc).__name__,
                "message": str(exc),
                "at": self.last_run_at,
            }
            logger.exception(
                "[POLL] cycle failed (%d in a row)", self.consecutive_failures
            )
            return
        self.consecutive_failures = 0
        self.last_error = None

    def status(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "running": self.running,
            "interval_seconds": self._interval,
            "runs": self.runs,
            "last_run_at": self.last_run_at,
            "last_error": self.last_error,
            "consecutive_failures": self.consecutive_failures,
        }
