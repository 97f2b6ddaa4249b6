"""
Bounded pool for background mtr runs.

Each submitted run is an asyncio task that waits for a free slot, then runs
under a timeout. Submissions beyond ``max_pending`` are refused outright.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


class PoolFullError(RuntimeError):
    pass


class RunPool:
    def __init__(self, max_concurrent: int = 4, max_pending: int = 32, timeout: float = 300.0) -> None:
        if max_concurrent < 1 or max_pending < 1:
            raise ValueError("pool limits must be positive")
        self.max_concurrent = max_concurrent
        self.max_pending = max_pending
        self.timeout = timeout
        self._sem = asyncio.Semaphore(max_concurrent)
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def active(self) -> int:
        """Runs admitted and not yet finished (running or waiting for a slot)."""
        return len(self._tasks)

    def submit(self, job: Callable[[], Awaitable[None]], label: str = "run") -> str:
        if len(self._tasks) >= self.max_pending:
            raise PoolFullError(f"too many runs in flight ({self.max_pending})")

        run_id = uuid.uuid4().hex[:12]
        task = asyncio.create_task(self._run(run_id, label, job), name=f"{label}-{run_id}")
        self._tasks[run_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(run_id, None))
        return run_id

    async def _run(self, run_id: str, label: str, job: Callable[[], Awaitable[None]]) -> None:
        async with self._sem:
            try:
                await asyncio.wait_for(job(), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.error("%s %s timed out after %gs", label, run_id, self.timeout)
            except asyncio.CancelledError:
                logger.warning("%s %s cancelled", label, run_id)
                raise
            except Exception:
                logger.exception("%s %s failed", label, run_id)

    async def join(self) -> None:
        """Wait for every admitted run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("run pool stopped (%d run(s) cancelled)", len(tasks))
