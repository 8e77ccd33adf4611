"""Task executor: runs a task under a deadline with bounded retries."""

import asyncio
import random
from dataclasses import dataclass
from functools import partial
from typing import Any

from idleweaver.domain.models import ExecutionContext, Task, TaskResult, TaskStatus
from idleweaver.domain.ports import Clock, SystemClock
from idleweaver.infrastructure.exceptions import (
    TaskAlreadyRunningError,
    TaskTimeoutError,
)
from idleweaver.infrastructure.logger import get_logger
from idleweaver.services.action_registry import ActionRegistry
from idleweaver.services.scheduler import PriorityScheduler
from idleweaver.services.task_store import TaskStore

logger = get_logger(__name__)


@dataclass
class RetryPolicy:
    """Retry policy configuration.

    With the default initial backoff of 0, failed attempts are retried
    immediately.
    """

    max_retries: int = 2
    initial_backoff_seconds: float = 0.0
    max_backoff_seconds: float = 60.0
    backoff_multiplier: float = 2.0
    jitter: bool = False

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries

    def backoff(self, retry_count: int) -> float:
        """Delay before retry number ``retry_count`` (0-based), in seconds."""
        if self.initial_backoff_seconds <= 0:
            return 0.0

        backoff = min(
            self.initial_backoff_seconds * (self.backoff_multiplier**retry_count),
            self.max_backoff_seconds,
        )
        if self.jitter:
            backoff += backoff * 0.2 * random.random()  # Up to 20% jitter
        return backoff


@dataclass
class ExecutorStats:
    """Execution statistics."""

    started: int = 0
    succeeded: int = 0
    failed: int = 0
    retried_attempts: int = 0
    timed_out_attempts: int = 0


class TaskExecutor:
    """Runs tasks from the store, one execution per task id at a time.

    Per execution: pending -> running -> completed | failed. Periodic tasks
    that succeed go back to pending. Each attempt runs under
    ``timeout_seconds``; a raised error, a timeout or a result with
    ``success=False`` consumes one attempt, up to ``1 + max_retries``.
    """

    def __init__(
        self,
        store: TaskStore,
        scheduler: PriorityScheduler,
        actions: ActionRegistry,
        max_concurrent: int = 4,
        timeout_seconds: float = 300.0,
        retry_policy: RetryPolicy | None = None,
        clock: Clock | None = None,
    ):
        """Initialize task executor.

        Args:
            store: Task store holding the tasks to run
            scheduler: Selects the next eligible task
            actions: Resolves a task's action key to its operation
            max_concurrent: Maximum overlapping executions started via execute_next
            timeout_seconds: Deadline for each execution attempt
            retry_policy: Retry count and backoff between attempts
            clock: Time source used to stamp last_run_at
        """
        self.store = store
        self.scheduler = scheduler
        self.actions = actions
        self.max_concurrent = max_concurrent
        self.timeout_seconds = timeout_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self.clock = clock or SystemClock()
        self.stats = ExecutorStats()
        self._running: set[str] = set()

    @property
    def running_count(self) -> int:
        return len(self._running)

    @property
    def running_ids(self) -> frozenset[str]:
        return frozenset(self._running)

    def is_running(self, task_id: str) -> bool:
        return task_id in self._running

    async def execute_next(self) -> TaskResult | None:
        """Run the highest-priority eligible task.

        Returns:
            The task's result, or None when at capacity or nothing is eligible
        """
        executed = await self.run_next()
        return executed[1] if executed else None

    async def run_next(self) -> tuple[Task, TaskResult] | None:
        """Run the highest-priority eligible task and report which task ran.

        Ids that are still executing are skipped, including ids re-added to
        the store while their previous execution is in flight.

        Returns:
            (task, result), or None when at capacity or nothing is eligible
        """
        if self.running_count >= self.max_concurrent:
            logger.debug(
                "at_capacity_skipping",
                running_count=self.running_count,
                max_concurrent=self.max_concurrent,
            )
            return None

        task = self.scheduler.next_task(self.store, exclude=self._running)
        if task is None:
            return None

        # Selection and marking running happen without an await in between,
        # so overlapping callers on the same loop never pick the same task.
        return task, await self.run(task)

    async def execute_task(self, task_id: str) -> TaskResult | None:
        """Run a specific task regardless of its eligibility.

        Returns:
            The task's result, or None if the id is unknown or already running
        """
        task = self.store.get(task_id)
        if task is None:
            logger.warning("execute_unknown_task", task_id=task_id)
            return None
        if task_id in self._running:
            logger.warning("task_already_running", task_id=task_id)
            return None
        return await self.run(task)

    async def run(self, task: Task) -> TaskResult:
        """Execute one task with timeout and retries, updating its status in place.

        Raises:
            TaskAlreadyRunningError: If this task id is already executing
        """
        if task.id in self._running:
            raise TaskAlreadyRunningError(task.id)

        self._running.add(task.id)
        task.status = TaskStatus.RUNNING
        self.stats.started += 1
        logger.info(
            "task_started",
            task_id=task.id,
            priority=task.priority.value,
            running_count=self.running_count,
        )

        try:
            return await self._run_attempts(task)
        except asyncio.CancelledError:
            # The executor itself was cancelled; leave the task runnable again
            task.status = TaskStatus.PENDING
            logger.warning("task_execution_cancelled", task_id=task.id)
            raise
        finally:
            self._running.discard(task.id)

    async def _run_attempts(self, task: Task) -> TaskResult:
        max_attempts = self.retry_policy.max_attempts
        failure = TaskResult(task_id=task.id, success=False, error="Task did not run")

        for attempt in range(1, max_attempts + 1):
            try:
                result = await self._attempt(task, attempt)
            except TaskTimeoutError as e:
                self.stats.timed_out_attempts += 1
                failure = TaskResult(task_id=task.id, success=False, error=str(e))
            except Exception as e:
                failure = TaskResult(
                    task_id=task.id,
                    success=False,
                    error=str(e) or type(e).__name__,
                    metrics={"error_type": type(e).__name__},
                )
            else:
                if result.success:
                    return self._mark_succeeded(task, result, attempt)
                failure = result

            logger.warning(
                "task_attempt_failed",
                task_id=task.id,
                attempt=attempt,
                max_attempts=max_attempts,
                error=failure.error,
            )

            if attempt < max_attempts:
                self.stats.retried_attempts += 1
                delay = self.retry_policy.backoff(attempt - 1)
                if delay > 0:
                    await asyncio.sleep(delay)

        return self._mark_failed(task, failure)

    async def _attempt(self, task: Task, attempt: int) -> TaskResult:
        """Run one attempt; raises TaskTimeoutError if the deadline passes first."""
        action = self.actions.resolve(task)
        ctx = ExecutionContext(task=task.model_copy(deep=True), attempt=attempt)
        future = asyncio.ensure_future(action(ctx))

        try:
            done, _ = await asyncio.wait({future}, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            ctx.cancel_event.set()
            future.cancel()
            raise

        if not done:
            # Signal the action and stop waiting. An action that ignores the
            # signal keeps running until it finishes on its own.
            ctx.cancel_event.set()
            future.cancel()
            future.add_done_callback(partial(self._reap_abandoned, task.id, attempt))
            raise TaskTimeoutError(self.timeout_seconds)

        return self._coerce_result(task, future.result())

    @staticmethod
    def _coerce_result(task: Task, value: Any) -> TaskResult:
        """Normalize an action's return value; ``task_id`` always names the task that ran."""
        if isinstance(value, TaskResult):
            result = value
        elif isinstance(value, dict):
            result = TaskResult.model_validate(value)
        else:
            raise TypeError(f"Action returned {type(value).__name__}, expected TaskResult")

        if result.task_id != task.id:
            result = result.model_copy(update={"task_id": task.id})
        return result

    def _mark_succeeded(self, task: Task, result: TaskResult, attempt: int) -> TaskResult:
        task.last_run_at = self.clock.now()
        task.status = TaskStatus.PENDING if task.is_periodic else TaskStatus.COMPLETED
        self.stats.succeeded += 1
        logger.info(
            "task_completed",
            task_id=task.id,
            attempt=attempt,
            next_status=task.status.value,
        )
        return result

    def _mark_failed(self, task: Task, failure: TaskResult) -> TaskResult:
        task.last_run_at = self.clock.now()
        task.status = TaskStatus.FAILED
        self.stats.failed += 1
        logger.error("task_failed", task_id=task.id, error=failure.error)
        return failure

    @staticmethod
    def _reap_abandoned(task_id: str, attempt: int, future: "asyncio.Future[Any]") -> None:
        """Consume the outcome of a timed-out attempt that finished later."""
        if future.cancelled():
            logger.debug("abandoned_attempt_cancelled", task_id=task_id, attempt=attempt)
            return
        error = future.exception()
        logger.info(
            "abandoned_attempt_finished",
            task_id=task_id,
            attempt=attempt,
            error=str(error) if error else None,
        )

    def get_stats(self) -> dict[str, int]:
        """Get execution statistics."""
        return {
            "running": self.running_count,
            "max_concurrent": self.max_concurrent,
            "started": self.stats.started,
            "succeeded": self.stats.succeeded,
            "failed": self.stats.failed,
            "retried_attempts": self.stats.retried_attempts,
            "timed_out_attempts": self.stats.timed_out_attempts,
        }
