"""Background job runner for out-of-band work such as voiceover synthesis.

Jobs are plain coroutine functions called with durable values (ids, text,
voice names), never with live objects, so the same call can be replayed after
a restart. Tasks are held in a set to prevent garbage collection.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from utils.logging import job_log_context

logger = logging.getLogger(__name__)

JobFunc = Callable[..., Awaitable[Any]]


class BackgroundJobRunner:
    """Fire-and-forget scheduler on the running event loop."""

    def __init__(self) -> None:
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of jobs that have not finished yet."""
        return len(self._background_tasks)

    def submit(self, job_id: str, func: JobFunc, *args: Any) -> asyncio.Task:
        """Schedule func(*args) and return immediately.

        Args:
            job_id: Durable id of the record the job works on, used for logs
            func: Coroutine function to run
            *args: Durable arguments

        Returns:
            The scheduled task
        """
        task = asyncio.create_task(self._run(job_id, func, *args), name=f"job-{job_id}")
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        logger.debug(f"Scheduled job {job_id}")
        return task

    async def _run(self, job_id: str, func: JobFunc, *args: Any) -> None:
        with job_log_context(job_id):
            try:
                await func(*args)
            except asyncio.CancelledError:
                logger.warning(f"Job {job_id} cancelled")
                raise
            except Exception:
                logger.exception(f"Job {job_id} crashed")

    async def drain(self) -> None:
        """Wait until every scheduled job (including ones they schedule) finishes."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding jobs. Their records stay processing and are resumed on restart."""
        for task in list(self._background_tasks):
            task.cancel()
        await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
