from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from ..domain.models import ActivityLogEntry
from ..domain.ports.persistence import ActivityLogRepository

logger = logging.getLogger(__name__)


class ActivityLogWriter:
    """Background worker that persists admin activity off the request path."""

    def __init__(self, repository: ActivityLogRepository, *, max_workers: int = 1) -> None:
        self._repository = repository
        self._max_workers = max_workers
        self._queue: asyncio.Queue[Optional[ActivityLogEntry]] = asyncio.Queue()
        self._workers: List[asyncio.Task[None]] = []
        self._shutdown = asyncio.Event()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        if self._workers:
            return
        logger.info("Starting activity log writer with %s workers.", self._max_workers)
        self._shutdown.clear()
        loop = asyncio.get_running_loop()
        for _ in range(self._max_workers):
            task = loop.create_task(self._worker(), name="activity-log-writer")
            self._workers.append(task)

    async def stop(self) -> None:
        if not self._workers:
            return
        logger.info("Stopping activity log writer.")
        self._shutdown.set()
        for _ in self._workers:
            await self._queue.put(None)
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

    def enqueue(self, entry: ActivityLogEntry) -> None:
        if self._shutdown.is_set() or not self._workers:
            logger.warning(
                "Activity log writer is not running; dropping %s/%s entry for admin %s.",
                entry.action,
                entry.resource_type,
                entry.admin_id,
            )
            return
        self._queue.put_nowait(entry)

    async def drain(self) -> None:
        """Wait until every queued entry has been handled."""
        await self._queue.join()

    async def _worker(self) -> None:
        # Runs until its sentinel so entries queued before stop() still land.
        while True:
            entry = await self._queue.get()
            if entry is None:
                self._queue.task_done()
                break
            try:
                await asyncio.to_thread(self._repository.append_activity, entry)
            except Exception:
                logger.exception(
                    "Failed to log admin activity %s/%s for admin %s.",
                    entry.action,
                    entry.resource_type,
                    entry.admin_id,
                )
            finally:
                self._queue.task_done()
