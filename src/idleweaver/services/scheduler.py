"""Priority selector: which pending tasks may run now, and in what order."""

from collections.abc import Collection
from datetime import datetime

from idleweaver.domain.models import PRIORITY_RANK, Task, TaskStatus
from idleweaver.domain.ports import Clock, SystemClock
from idleweaver.services.task_store import TaskStore


class PriorityScheduler:
    """Computes the eligible subset of a task store, ordered for dispatch.

    A task is eligible when:
    1. its status is pending,
    2. every id in ``depends_on`` exists in the store and is completed,
    3. if periodic with an interval and a previous run, the interval has elapsed.

    Eligible tasks are ordered by priority rank (critical first, periodic
    last). The sort is stable, so equal ranks keep store insertion order.
    The result is recomputed on every call.
    """

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()

    def eligible(
        self,
        store: TaskStore,
        now: datetime | None = None,
        exclude: Collection[str] = (),
    ) -> list[Task]:
        """Return eligible tasks in dispatch order.

        Args:
            store: Tasks to select from
            now: Reference time for periodic intervals
            exclude: Ids to leave out, such as tasks already executing
        """
        now = now or self.clock.now()
        candidates = [
            task
            for task in store.all_tasks()
            if task.status == TaskStatus.PENDING
            and task.id not in exclude
            and not self.blocking_dependencies(store, task)
            and not self._in_interval_cooldown(task, now)
        ]
        return sorted(candidates, key=lambda t: PRIORITY_RANK[t.priority])

    def next_task(
        self,
        store: TaskStore,
        now: datetime | None = None,
        exclude: Collection[str] = (),
    ) -> Task | None:
        """Highest-priority eligible task, or None."""
        eligible = self.eligible(store, now, exclude)
        return eligible[0] if eligible else None

    @staticmethod
    def blocking_dependencies(store: TaskStore, task: Task) -> list[str]:
        """Dependency ids of ``task`` that are missing or not yet completed."""
        blocking = []
        for dep_id in task.depends_on:
            dep = store.get(dep_id)
            if dep is None or dep.status != TaskStatus.COMPLETED:
                blocking.append(dep_id)
        return blocking

    @staticmethod
    def _in_interval_cooldown(task: Task, now: datetime) -> bool:
        if not task.is_periodic or task.interval_seconds is None or task.last_run_at is None:
            return False
        elapsed = (now - task.last_run_at).total_seconds()
        return elapsed < task.interval_seconds
