"""Unit tests for PriorityScheduler."""

from idleweaver.domain.models import Task, TaskPriority, TaskStatus
from idleweaver.services import PriorityScheduler, TaskStore


def _ids(tasks: list[Task]) -> list[str]:
    return [t.id for t in tasks]


class TestOrdering:
    """Tests for dispatch order."""

    def test_priority_order(self, store: TaskStore, scheduler: PriorityScheduler) -> None:
        """Test that critical runs before medium before low regardless of insertion."""
        store.upsert(Task(id="a", priority=TaskPriority.LOW))
        store.upsert(Task(id="b", priority=TaskPriority.CRITICAL))
        store.upsert(Task(id="c", priority=TaskPriority.MEDIUM))

        assert _ids(scheduler.eligible(store)) == ["b", "c", "a"]

    def test_all_ranks(self, store: TaskStore, scheduler: PriorityScheduler) -> None:
        for priority in [
            TaskPriority.PERIODIC,
            TaskPriority.LOW,
            TaskPriority.MEDIUM,
            TaskPriority.HIGH,
            TaskPriority.CRITICAL,
        ]:
            store.upsert(Task(id=priority.value, priority=priority))

        assert _ids(scheduler.eligible(store)) == ["critical", "high", "medium", "low", "periodic"]

    def test_ties_keep_insertion_order(
        self, store: TaskStore, scheduler: PriorityScheduler
    ) -> None:
        for task_id in ["x", "y", "z"]:
            store.upsert(Task(id=task_id, priority=TaskPriority.HIGH))

        assert _ids(scheduler.eligible(store)) == ["x", "y", "z"]

    def test_next_task(self, store: TaskStore, scheduler: PriorityScheduler) -> None:
        assert scheduler.next_task(store) is None

        store.upsert(Task(id="low", priority=TaskPriority.LOW))
        store.upsert(Task(id="high", priority=TaskPriority.HIGH))

        next_task = scheduler.next_task(store)
        assert next_task is not None
        assert next_task.id == "high"


class TestEligibility:
    """Tests for status, dependency and interval filtering."""

    def test_only_pending(self, store: TaskStore, scheduler: PriorityScheduler) -> None:
        store.upsert(Task(id="p"))
        store.upsert(Task(id="r", status=TaskStatus.RUNNING))
        store.upsert(Task(id="c", status=TaskStatus.COMPLETED))
        store.upsert(Task(id="f", status=TaskStatus.FAILED))

        assert _ids(scheduler.eligible(store)) == ["p"]

    def test_dependency_gating(self, store: TaskStore, scheduler: PriorityScheduler) -> None:
        """Test that B depending on A is not eligible until A completes."""
        store.upsert(Task(id="a"))
        store.upsert(Task(id="b", depends_on=["a"]))

        assert _ids(scheduler.eligible(store)) == ["a"]

        a = store.get("a")
        assert a is not None
        a.status = TaskStatus.COMPLETED

        assert _ids(scheduler.eligible(store)) == ["b"]

    def test_failed_dependency_blocks(self, store: TaskStore, scheduler: PriorityScheduler) -> None:
        store.upsert(Task(id="a", status=TaskStatus.FAILED))
        store.upsert(Task(id="b", depends_on=["a"]))

        assert scheduler.eligible(store) == []

    def test_missing_dependency_blocks(
        self, store: TaskStore, scheduler: PriorityScheduler
    ) -> None:
        store.upsert(Task(id="b", depends_on=["ghost"]))

        assert scheduler.eligible(store) == []
        task = store.get("b")
        assert task is not None
        assert scheduler.blocking_dependencies(store, task) == ["ghost"]

    def test_excluded_ids_skipped(self, store: TaskStore, scheduler: PriorityScheduler) -> None:
        store.upsert(Task(id="a", priority=TaskPriority.HIGH))
        store.upsert(Task(id="b"))

        assert _ids(scheduler.eligible(store, exclude={"a"})) == ["b"]
        next_task = scheduler.next_task(store, exclude={"a"})
        assert next_task is not None and next_task.id == "b"

    def test_blocking_dependencies_lists_unmet_only(
        self, store: TaskStore, scheduler: PriorityScheduler
    ) -> None:
        store.upsert(Task(id="a", status=TaskStatus.COMPLETED))
        store.upsert(Task(id="b"))
        store.upsert(Task(id="c", depends_on=["a", "b", "d"]))

        task = store.get("c")
        assert task is not None
        assert scheduler.blocking_dependencies(store, task) == ["b", "d"]

    def test_periodic_interval(
        self, store: TaskStore, scheduler: PriorityScheduler, clock
    ) -> None:
        """Test that a periodic task waits for its interval after running."""
        store.upsert(Task(id="tick", priority=TaskPriority.PERIODIC, interval_seconds=300))
        assert _ids(scheduler.eligible(store)) == ["tick"]

        task = store.get("tick")
        assert task is not None
        task.last_run_at = clock.now()

        clock.advance(299)
        assert scheduler.eligible(store) == []

        clock.advance(1)
        assert _ids(scheduler.eligible(store)) == ["tick"]

    def test_periodic_without_interval_always_eligible(
        self, store: TaskStore, scheduler: PriorityScheduler, clock
    ) -> None:
        store.upsert(Task(id="tick", priority=TaskPriority.PERIODIC, last_run_at=clock.now()))

        assert _ids(scheduler.eligible(store)) == ["tick"]

    def test_explicit_now(self, store: TaskStore, scheduler: PriorityScheduler, clock) -> None:
        ran_at = clock.now()
        store.upsert(
            Task(
                id="tick",
                priority=TaskPriority.PERIODIC,
                interval_seconds=60,
                last_run_at=ran_at,
            )
        )

        assert scheduler.eligible(store, now=ran_at) == []
        clock.advance(120)
        assert scheduler.eligible(store, now=ran_at) == []
        assert _ids(scheduler.eligible(store)) == ["tick"]
