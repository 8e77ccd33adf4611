"""In-memory task store, the system of record for all tasks and their status."""

from collections.abc import Callable, Iterator

from idleweaver.domain.models import Task, TaskStats, TaskStatus
from idleweaver.domain.ports import Clock, SystemClock
from idleweaver.infrastructure.logger import get_logger

logger = get_logger(__name__)

OverwriteHook = Callable[[Task, Task], None]


class TaskStore:
    """Holds every known task keyed by id, in insertion order.

    Inserting a task whose id already exists replaces the stored entry
    (upsert). The replacement keeps the original insertion position, is
    logged as a warning, and is reported to ``on_overwrite(old, new)`` so
    callers can detect accidental duplicate submissions.

    Dependencies are not validated on insert: ``depends_on`` may reference
    tasks that have not been added yet.
    """

    def __init__(self, clock: Clock | None = None, on_overwrite: OverwriteHook | None = None):
        """Initialize task store.

        Args:
            clock: Time source used to stamp created_at
            on_overwrite: Called with (old, new) when an existing id is replaced
        """
        self.clock = clock or SystemClock()
        self.on_overwrite = on_overwrite
        self._tasks: dict[str, Task] = {}

    def upsert(self, task: Task) -> Task:
        """Insert or replace a task by id.

        The store keeps its own copy, so later changes to the caller's object
        do not leak in.

        Returns:
            The stored task
        """
        stored = task.model_copy(deep=True)
        if stored.created_at is None:
            stored.created_at = self.clock.now()

        previous = self._tasks.get(stored.id)
        self._tasks[stored.id] = stored

        if previous is not None:
            logger.warning(
                "task_overwritten",
                task_id=stored.id,
                previous_status=previous.status.value,
            )
            if self.on_overwrite is not None:
                try:
                    self.on_overwrite(previous, stored)
                except Exception as e:
                    logger.error("overwrite_hook_failed", task_id=stored.id, error=str(e))
        else:
            logger.debug("task_added", task_id=stored.id, priority=stored.priority.value)

        return stored

    def remove(self, task_id: str) -> bool:
        """Remove a task. Returns True if it existed."""
        return self._tasks.pop(task_id, None) is not None

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def all_tasks(self) -> list[Task]:
        """All tasks in insertion order."""
        return list(self._tasks.values())

    def stats(self) -> TaskStats:
        """Count tasks per status."""
        counts = {status: 0 for status in TaskStatus}
        for task in self._tasks.values():
            counts[task.status] += 1

        return TaskStats(
            total=len(self._tasks),
            pending=counts[TaskStatus.PENDING],
            running=counts[TaskStatus.RUNNING],
            completed=counts[TaskStatus.COMPLETED],
            failed=counts[TaskStatus.FAILED],
        )

    def clear_completed(self) -> int:
        """Remove completed non-periodic tasks.

        Returns:
            Number of tasks removed
        """
        done = [
            task_id
            for task_id, task in self._tasks.items()
            if task.status == TaskStatus.COMPLETED and not task.is_periodic
        ]
        for task_id in done:
            del self._tasks[task_id]

        if done:
            logger.info("completed_tasks_cleared", count=len(done))
        return len(done)

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._tasks.values()))
