"""Unit tests for task decomposition."""

from idleweaver.domain.models import Task, TaskPriority
from idleweaver.domain.ports import DecompositionStrategy
from idleweaver.infrastructure import health_checks
from idleweaver.services import (
    DecompositionRegistry,
    HealthCheckStrategy,
    ParallelPartsStrategy,
    SearchOrganizeExecuteStrategy,
)


class PrefixStrategy(DecompositionStrategy):
    """Splits tasks whose text starts with 'split:' into two halves."""

    name = "prefix"

    def matches(self, description: str) -> bool:
        return description.startswith("split:")

    def decompose(self, task: Task) -> list[Task]:
        return [
            Task(id=f"{task.id}-1", parent_id=task.id),
            Task(id=f"{task.id}-2", parent_id=task.id, depends_on=[f"{task.id}-1"]),
        ]


class TestRegistry:
    """Tests for DecompositionRegistry."""

    def test_no_match_returns_same_task(self) -> None:
        """Test that a non-matching task comes back as the very same object."""
        registry = DecompositionRegistry()
        task = Task(id="x", description="xyz")

        result = registry.decompose(task)

        assert result == [task]
        assert result[0] is task
        assert not registry.can_decompose(task)

    def test_default_strategy_order(self) -> None:
        names = [s.name for s in DecompositionRegistry().strategies]
        assert names == ["health-check-parallel", "search-organize-execute", "parallel-tasks"]

    def test_first_match_wins(self) -> None:
        """Test that a task matching several strategies uses the first registered."""
        registry = DecompositionRegistry()
        task = Task(id="h", description="health check and cleanup")

        strategy = registry.find_strategy(task)

        assert isinstance(strategy, HealthCheckStrategy)

    def test_custom_strategy(self) -> None:
        registry = DecompositionRegistry(include_defaults=False)
        registry.register(PrefixStrategy())
        task = Task(id="t", description="split: me")

        assert [t.id for t in registry.decompose(task)] == ["t-1", "t-2"]

    def test_custom_strategies_after_defaults(self) -> None:
        registry = DecompositionRegistry(strategies=[PrefixStrategy()])
        assert [s.name for s in registry.strategies][-1] == "prefix"

    def test_strategies_returns_copy(self) -> None:
        registry = DecompositionRegistry()
        registry.strategies.clear()
        assert len(registry.strategies) == 3

    def test_provided_actions(self) -> None:
        actions = DecompositionRegistry().provided_actions()

        assert actions[HealthCheckStrategy.DISK_ACTION] is health_checks.check_disk_usage
        assert actions[HealthCheckStrategy.MEMORY_ACTION] is health_checks.check_memory_usage
        assert actions[HealthCheckStrategy.NETWORK_ACTION] is health_checks.check_network


class TestHealthCheckStrategy:
    """Tests for the health check fan-out."""

    def test_matches(self) -> None:
        strategy = HealthCheckStrategy()
        assert strategy.matches("Nightly HEALTH check")
        assert strategy.matches("run a status check")
        assert strategy.matches("系统健康检查")
        assert not strategy.matches("backup photos")

    def test_decompose(self) -> None:
        parent = Task(id="hc", description="health check", priority=TaskPriority.LOW, tags=["ops"])

        subtasks = HealthCheckStrategy().decompose(parent)

        assert [t.id for t in subtasks] == ["hc-disk", "hc-memory", "hc-network", "hc-report"]
        checks, report = subtasks[:3], subtasks[3]
        for check in checks:
            assert check.priority == TaskPriority.HIGH
            assert check.depends_on == []
            assert check.parent_id == "hc"
            assert "ops" in check.tags
        assert [c.resolved_action_key for c in checks] == [
            "builtin.health.disk",
            "builtin.health.memory",
            "builtin.health.network",
        ]
        assert report.priority == TaskPriority.MEDIUM
        assert report.depends_on == ["hc-disk", "hc-memory", "hc-network"]
        assert report.resolved_action_key == "hc"


class TestSearchOrganizeExecuteStrategy:
    """Tests for the three-step pipeline."""

    def test_matches(self) -> None:
        strategy = SearchOrganizeExecuteStrategy()
        assert strategy.matches("Analyze disk usage")
        assert strategy.matches("搜索资料")
        assert not strategy.matches("backup photos")

    def test_decompose_chain(self) -> None:
        parent = Task(id="r", description="analyze logs", priority=TaskPriority.HIGH)

        search, organize, execute = SearchOrganizeExecuteStrategy().decompose(parent)

        assert (search.id, organize.id, execute.id) == ("r-search", "r-organize", "r-execute")
        assert search.depends_on == []
        assert organize.depends_on == ["r-search"]
        assert execute.depends_on == ["r-organize"]
        for subtask in (search, organize, execute):
            assert subtask.priority == TaskPriority.HIGH
            assert subtask.resolved_action_key == "r"
        assert "analyze logs" in (search.description or "")

    def test_entry_subtask_inherits_parent_dependencies(self) -> None:
        parent = Task(id="r", description="analyze logs", depends_on=["fetch"])

        search, organize, _ = SearchOrganizeExecuteStrategy().decompose(parent)

        assert search.depends_on == ["fetch"]
        assert organize.depends_on == ["r-search"]

    def test_explicit_action_key_propagates(self) -> None:
        parent = Task(id="r", description="check mail", action_key="mail")

        subtasks = SearchOrganizeExecuteStrategy().decompose(parent)

        assert {t.resolved_action_key for t in subtasks} == {"mail"}


class TestParallelPartsStrategy:
    """Tests for conjunction splitting."""

    def test_matches_requires_two_parts(self) -> None:
        strategy = ParallelPartsStrategy()
        assert strategy.matches("backup photos and music")
        assert strategy.matches("a + b")
        assert strategy.matches("清理缓存和日志")
        assert not strategy.matches("backup photos")

    def test_and_is_a_whole_word(self) -> None:
        """Test that 'and' inside a word does not split."""
        strategy = ParallelPartsStrategy()
        assert not strategy.matches("expand sandbox")

    def test_decompose(self) -> None:
        parent = Task(id="p", description="backup photos and music, sync notes")

        subtasks = ParallelPartsStrategy().decompose(parent)

        assert [t.id for t in subtasks] == ["p-part-0", "p-part-1", "p-part-2"]
        assert [t.description for t in subtasks] == ["backup photos", "music", "sync notes"]
        assert all(t.depends_on == [] for t in subtasks)
        assert all(t.resolved_action_key == "p" for t in subtasks)

    def test_empty_parts_dropped(self) -> None:
        parent = Task(id="p", description="a,, and b")

        subtasks = ParallelPartsStrategy().decompose(parent)

        assert [t.description for t in subtasks] == ["a", "b"]
