"""Fire-and-forget work scheduled after a webhook has its response."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Optional

logger = logging.getLogger(__name__)


class BackgroundTaskCoordinator:
    """
    Holds references to detached tasks so they are not garbage collected, and
    logs their failures with the stage and context they were spawned with.

    Nothing is retried. A failed task never affects the response that spawned
    it or any other task.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self.failures = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, stage: str, work: Awaitable[Any], **context: Any) -> asyncio.Task[Any]:
        task = asyncio.create_task(self._run(stage, work, context), name=f"bg:{stage}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, stage: str, work: Awaitable[Any], context: dict[str, Any]) -> Any:
        try:
            return await work
        except asyncio.CancelledError:
            logger.info("Background task cancelled stage=%s %s", stage, context)
            raise
        except Exception as e:
            self.failures += 1
            logger.exception(
                "Background task failed stage=%s context=%s error=%s", stage, context, e
            )
            return None

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for outstanding tasks, including ones spawned while draining."""
        while self._tasks:
            done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
            if pending:
                logger.warning("Gave up waiting for %d background tasks", len(pending))
                return
