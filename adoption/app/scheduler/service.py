"""Deferred task scheduler.

Tasks are persisted with a due time and picked up by a periodic poll. A task
moves pending -> executing -> done; a failed execution leaves it pending and
the next poll retries it (at-least-once, no retry cap). Executors must
therefore be idempotent.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timedelta, timezone

from adoption.app.db.repositories import ScheduledTaskRecord, TaskStore
from adoption.app.models.common import TaskKind
from adoption.app.scheduler.executors import TaskExecutor
from adoption.app.scheduler.lease import LocalPollLease, PollLease
from adoption.app.utils.logging import StructuredTaskLogger
from adoption.app.utils.metrics import PrometheusSchedulerMetrics

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeferredTaskScheduler:
    """Persists time-triggered tasks and executes them once due.

    Polls are single-flight: an asyncio lock serializes polls inside the
    process and the poll lease serializes them across processes.
    """

    def __init__(
        self,
        tasks: TaskStore,
        executors: Mapping[str, TaskExecutor],
        lease: PollLease | None = None,
        task_timeout_seconds: float = 30.0,
        metrics: PrometheusSchedulerMetrics | None = None,
        task_logger: StructuredTaskLogger | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._tasks = tasks
        self._executors = dict(executors)
        self._lease = lease or LocalPollLease()
        self._task_timeout_seconds = task_timeout_seconds
        self._metrics = metrics or PrometheusSchedulerMetrics()
        self._task_logger = task_logger or StructuredTaskLogger()
        self._clock = clock
        self._sleep = sleep_fn

        self._poll_lock = asyncio.Lock()
        self._loop_task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def schedule(self, kind: TaskKind | str, subject_id: str, request_id: str, delay: timedelta) -> str:
        """Persist a pending task due after a delay.

        Safe to call while a poll is running.

        Args:
            kind: Task kind
            subject_id: Subject the task acts on
            request_id: Related request ID
            delay: How long from now the task becomes due

        Returns:
            New task ID

        Raises:
            ValueError: If kind is not a known task kind
            StoreUnavailableError: If the task store cannot be reached
        """
        kind = TaskKind(kind)
        now = self._clock()
        task = ScheduledTaskRecord(
            task_id=str(uuid.uuid4()),
            kind=kind.value,
            subject_id=subject_id,
            request_id=request_id,
            due_at=now + delay,
            executed=False,
            created_at=now,
        )
        self._tasks.insert_task(task)

        logger.info(
            f"Scheduled {kind.value} task {task.task_id} for {task.due_at.isoformat()}",
            extra={"structured": {"task_id": task.task_id, "subject_id": subject_id, "request_id": request_id}},
        )
        return task.task_id

    def pending_tasks(self) -> list[ScheduledTaskRecord]:
        """All pending tasks, oldest due first."""
        return self._tasks.list_pending_tasks()

    async def poll_once(self) -> int:
        """Execute every pending task that is due.

        Never raises: per-task errors are logged and the batch continues.

        Returns:
            Number of tasks marked executed
        """
        return await self._poll(mode="due")

    async def force_poll_all(self) -> int:
        """Execute every pending task regardless of due time.

        Returns:
            Number of tasks marked executed
        """
        return await self._poll(mode="all")

    async def _poll(self, mode: str) -> int:
        async with self._poll_lock:
            start = time.perf_counter()

            try:
                acquired = await asyncio.to_thread(self._lease.acquire)
            except Exception as e:
                logger.error(f"Poll lease unavailable: {type(e).__name__}: {e}")
                return 0

            if not acquired:
                logger.debug("Skipping poll, another process holds the lease")
                return 0

            try:
                return await self._run_batch(mode)
            finally:
                try:
                    await asyncio.to_thread(self._lease.release)
                except Exception as e:
                    logger.warning(f"Poll lease release failed: {type(e).__name__}: {e}")

                self._metrics.record_poll_latency(mode, (time.perf_counter() - start) * 1000)

    async def _run_batch(self, mode: str) -> int:
        try:
            if mode == "all":
                batch = await asyncio.to_thread(self._tasks.list_pending_tasks)
            else:
                batch = await asyncio.to_thread(self._tasks.list_due_tasks, self._clock())
        except Exception as e:
            logger.error(f"Could not list {mode} tasks: {type(e).__name__}: {e}")
            return 0

        if batch:
            logger.info(f"Processing {len(batch)} scheduled task(s) ({mode})")

        executed = 0
        for task in batch:
            if await self._run_task(task):
                executed += 1

        return executed

    async def _run_task(self, task: ScheduledTaskRecord) -> bool:
        """Run one task and mark it executed.

        Returns:
            True if the task was marked executed, False if it stays pending
        """
        start = time.perf_counter()
        executor = self._executors.get(task.kind)

        if executor is None:
            # Unhandled kinds are retired so they cannot block the queue
            logger.warning(f"Unknown task kind {task.kind} for task {task.task_id}")
            outcome = "unknown_kind"
        else:
            try:
                outcome = await asyncio.wait_for(
                    asyncio.to_thread(executor.execute, task),
                    timeout=self._task_timeout_seconds,
                )
            except asyncio.TimeoutError:
                self._fail(task, start, "timeout", f"timed out after {self._task_timeout_seconds}s")
                return False
            except Exception as e:
                self._fail(task, start, "error", f"{type(e).__name__}: {e}")
                return False

        try:
            await asyncio.to_thread(self._tasks.mark_executed, task.task_id, self._clock())
        except Exception as e:
            self._fail(task, start, "error", f"mark_executed failed: {type(e).__name__}: {e}")
            return False

        self._metrics.inc_task(task.kind, outcome)
        self._task_logger.log_execution(task, outcome, (time.perf_counter() - start) * 1000)
        return True

    def _fail(self, task: ScheduledTaskRecord, start: float, outcome: str, reason: str) -> None:
        self._metrics.inc_task(task.kind, outcome)
        self._task_logger.log_execution(task, outcome, (time.perf_counter() - start) * 1000, error_reason=reason)

    def start(self, interval_seconds: float = 60.0) -> None:
        """Start the background poll loop on the running event loop."""
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._loop(interval_seconds))
        logger.info(f"Scheduler started, polling every {interval_seconds}s")

    async def stop(self) -> None:
        """Stop the background poll loop. A task already handed to a worker thread runs to completion."""
        if self._loop_task is None:
            return

        self._loop_task.cancel()
        try:
            await self._loop_task
        except asyncio.CancelledError:
            pass
        self._loop_task = None
        logger.info("Scheduler stopped")

    async def _loop(self, interval_seconds: float) -> None:
        while True:
            await self.poll_once()
            await self._sleep(interval_seconds)
