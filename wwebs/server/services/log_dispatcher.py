"""
LogDispatcher - runs .logger stages after a response is final.

Loggers are best effort: they run in a background task, never delay the
response and never fail the request.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Set

from ..models.stage import StageFile

logger = logging.getLogger("wwebs.log_dispatcher")

LoggerRunner = Callable[[StageFile], Awaitable[object]]


class LogDispatcher:
    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, stages: List[StageFile], run: LoggerRunner) -> None:
        """
        Run `stages` one after another in a background task.

        Args:
            stages: logger stages, already ordered
            run: coroutine function executing one stage
        """
        if not stages:
            return
        task = asyncio.create_task(self._run_all(list(stages), run))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_all(self, stages: List[StageFile], run: LoggerRunner) -> None:
        for stage in stages:
            try:
                await run(stage)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(
                    f"Logger stage {stage.path} failed: {e}",
                    extra={**stage.describe(), "error_type": type(e).__name__},
                )

    async def drain(self, timeout: float = None) -> None:
        """Wait for outstanding logger runs; cancel whatever is left after `timeout`."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.info(f"Cancelled {len(still_running)} logger runs on shutdown")
            await asyncio.gather(*still_running, return_exceptions=True)
