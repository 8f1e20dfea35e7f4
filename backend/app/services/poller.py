"""
Background Poller
=================

Runs "fetch something, hand it to a callback" on a fixed interval.

Used for:
- Station snapshots (fetch_multiple_stations every N seconds)
- Order list refresh (fetch_orders every N seconds)
- The Energo token keep-alive (see keep_alive.py)

HOW TO USE:
----------
    poller = Poller()

    async def fetch():
        return await manager.fetch_multiple_stations(["DTN00872"])

    def on_data(error, data):
        if error:
            print("poll failed:", error)
        else:
            print(data)

    task = poller.start(30, fetch, on_data, name="stations")
    ...
    task.stop()

LIFECYCLE:
---------
    STOPPED --start()--> RUNNING --stop()--> STOPPED

start() fetches right away, then every interval. stop() removes the
scheduled job. A fetch that is already running when stop() is called is
NOT cancelled - it finishes and still calls the callback.

Author: CUUB Battery Team
"""

import inspect
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]
PollCallback = Callable[[Optional[Exception], Any], Any]


class TaskState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class PollingTask:
    """
    One repeating fetch-and-callback job on the shared scheduler.

    Don't build these directly - use Poller.start().
    """

    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        name: str,
        interval_seconds: float,
        fetch_fn: FetchFn,
        callback: PollCallback,
        on_stop: Optional[Callable[["PollingTask"], None]] = None,
    ):
        self.scheduler = scheduler
        self.name = name
        self.interval_seconds = interval_seconds
        self.fetch_fn = fetch_fn
        self.callback = callback
        self.on_stop = on_stop
        self.job_id = f"poll_{name}_{uuid.uuid4().hex[:8]}"
        self.state = TaskState.STOPPED
        self.run_count = 0

    @property
    def is_running(self) -> bool:
        return self.state == TaskState.RUNNING

    def start(self) -> "PollingTask":
        if self.is_running:
            return self

        logger.info(f"[{self.name}] Starting poll job (interval: {self.interval_seconds}s)")
        self.scheduler.add_job(
            self._run_once,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=self.job_id,
            next_run_time=datetime.now(timezone.utc),
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=None,
        )
        self.state = TaskState.RUNNING
        return self

    def stop(self) -> None:
        """Cancel future runs. Safe to call more than once."""
        if not self.is_running:
            return

        logger.info(f"[{self.name}] Stopping poll job")
        try:
            self.scheduler.remove_job(self.job_id)
        except JobLookupError:
            # Scheduler already shut down and dropped its jobs
            pass
        self.state = TaskState.STOPPED
        if self.on_stop is not None:
            self.on_stop(self)

    def __call__(self) -> None:
        self.stop()

    async def _run_once(self):
        """One fetch + callback. Errors go to the callback, never to the scheduler."""
        self.run_count += 1
        error: Optional[Exception] = None
        data = None

        try:
            data = await self.fetch_fn()
        except Exception as e:
            logger.error(f"[{self.name}] Fetch failed: {e}")
            error = e

        try:
            result = self.callback(error, data)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"[{self.name}] Poll callback raised: {e}", exc_info=True)


class Poller:
    """
    Owns the AsyncIOScheduler that every PollingTask runs on.

    The scheduler starts lazily on the first start() call, because
    AsyncIOScheduler needs a running event loop.
    """

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self.scheduler = scheduler if scheduler is not None else AsyncIOScheduler(timezone=timezone.utc)
        self._tasks: list[PollingTask] = []

    def start(
        self,
        interval_seconds: float,
        fetch_fn: FetchFn,
        callback: PollCallback,
        name: str = "poll",
    ) -> PollingTask:
        """Start a repeating fetch. Returns the task; call task.stop() to end it."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        if not self.scheduler.running:
            self.scheduler.start()

        task = PollingTask(self.scheduler, name, interval_seconds, fetch_fn, callback, on_stop=self._forget)
        self._tasks.append(task)
        return task.start()

    @property
    def tasks(self) -> list[PollingTask]:
        return list(self._tasks)

    def _forget(self, task: PollingTask) -> None:
        if task in self._tasks:
            self._tasks.remove(task)

    def shutdown(self) -> None:
        """Stop every task and the scheduler itself."""
        for task in list(self._tasks):
            task.stop()
        self._tasks.clear()

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
