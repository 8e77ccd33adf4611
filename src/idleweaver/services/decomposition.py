"""Task decomposition: split descriptive tasks into dependency-linked subtasks.

Built-in strategies, tried in registration order:
- health-check-parallel: disk, memory and network checks in parallel, then a report
- search-organize-execute: a three-step pipeline
- parallel-tasks: one independent subtask per conjunction-separated part
"""

import re
from collections.abc import Iterable

from idleweaver.domain.models import Task, TaskAction, TaskPriority
from idleweaver.domain.ports import DecompositionStrategy
from idleweaver.infrastructure import health_checks
from idleweaver.infrastructure.logger import get_logger

logger = get_logger(__name__)


def _subtask(
    parent: Task,
    suffix: str,
    *,
    name: str,
    description: str | None = None,
    priority: TaskPriority | None = None,
    depends_on: list[str] | None = None,
    tags: Iterable[str] = (),
    action_key: str | None = None,
) -> Task:
    """Build a subtask of ``parent``.

    Entry subtasks (no sibling dependency) inherit the parent's own
    dependencies so the decomposed group still waits for them.
    """
    return Task(
        id=f"{parent.id}-{suffix}",
        name=name,
        description=description,
        priority=priority or parent.priority,
        depends_on=depends_on if depends_on is not None else list(parent.depends_on),
        tags=list(dict.fromkeys([*parent.tags, *tags])),
        parent_id=parent.id,
        action_key=action_key or parent.resolved_action_key,
    )


class KeywordStrategy(DecompositionStrategy):
    """Base for strategies that match on case-insensitive keywords."""

    keywords: tuple[str, ...] = ()

    def matches(self, description: str) -> bool:
        text = description.lower()
        return any(keyword in text for keyword in self.keywords)


class HealthCheckStrategy(KeywordStrategy):
    """Fan a health check out into parallel disk, memory and network checks plus a report."""

    name = "health-check-parallel"
    keywords = ("health", "status check", "健康检查", "状态检查")

    DISK_ACTION = "builtin.health.disk"
    MEMORY_ACTION = "builtin.health.memory"
    NETWORK_ACTION = "builtin.health.network"

    def decompose(self, task: Task) -> list[Task]:
        checks = [
            _subtask(
                task,
                "disk",
                name="Check disk",
                priority=TaskPriority.HIGH,
                tags=("health", "disk"),
                action_key=self.DISK_ACTION,
            ),
            _subtask(
                task,
                "memory",
                name="Check memory",
                priority=TaskPriority.HIGH,
                tags=("health", "memory"),
                action_key=self.MEMORY_ACTION,
            ),
            _subtask(
                task,
                "network",
                name="Check network",
                priority=TaskPriority.HIGH,
                tags=("health", "network"),
                action_key=self.NETWORK_ACTION,
            ),
        ]
        report = _subtask(
            task,
            "report",
            name=f"Health report: {task.name}",
            priority=TaskPriority.MEDIUM,
            depends_on=[check.id for check in checks],
            tags=("health", "report"),
        )
        return [*checks, report]

    def provided_actions(self) -> dict[str, TaskAction]:
        return {
            self.DISK_ACTION: health_checks.check_disk_usage,
            self.MEMORY_ACTION: health_checks.check_memory_usage,
            self.NETWORK_ACTION: health_checks.check_network,
        }


class SearchOrganizeExecuteStrategy(KeywordStrategy):
    """Split research-style work into search, organize and execute steps run in sequence."""

    name = "search-organize-execute"
    keywords = ("search", "organize", "check", "analyze", "搜索", "整理", "检查", "分析")

    def decompose(self, task: Task) -> list[Task]:
        search = _subtask(
            task,
            "search",
            name=f"Search: {task.name}",
            description=f"Search for information: {task.text}",
            tags=("search",),
        )
        organize = _subtask(
            task,
            "organize",
            name=f"Organize: {task.name}",
            description="Organize search results",
            depends_on=[search.id],
            tags=("organize",),
        )
        execute = _subtask(
            task,
            "execute",
            name=f"Execute: {task.name}",
            description="Apply improvements",
            depends_on=[organize.id],
            tags=("execute",),
        )
        return [search, organize, execute]


class ParallelPartsStrategy(DecompositionStrategy):
    """Split "A and B, C" into independent subtasks, one per part."""

    name = "parallel-tasks"

    SEPARATORS = re.compile(r"\band\b|和|与|,|，|\+", re.IGNORECASE)

    def _parts(self, description: str) -> list[str]:
        return [part.strip() for part in self.SEPARATORS.split(description) if part.strip()]

    def matches(self, description: str) -> bool:
        # A single part after splitting is not worth decomposing
        return len(self._parts(description)) > 1

    def decompose(self, task: Task) -> list[Task]:
        return [
            _subtask(task, f"part-{index}", name=part, description=part, tags=("parallel",))
            for index, part in enumerate(self._parts(task.text))
        ]


def default_strategies() -> list[DecompositionStrategy]:
    # Health first: "health check" would otherwise match the search strategy's "check" keyword
    return [HealthCheckStrategy(), SearchOrganizeExecuteStrategy(), ParallelPartsStrategy()]


class DecompositionRegistry:
    """Ordered decomposition strategies; the first match wins.

    When a strategy matches, its subtasks replace the task entirely. When
    none matches, ``decompose`` returns the original task object unchanged in
    a single-element list.
    """

    def __init__(
        self,
        strategies: Iterable[DecompositionStrategy] | None = None,
        include_defaults: bool = True,
    ):
        """Initialize decomposition registry.

        Args:
            strategies: Extra strategies, tried after the built-in ones
            include_defaults: Register the built-in strategies first
        """
        self._strategies: list[DecompositionStrategy] = []
        if include_defaults:
            self._strategies.extend(default_strategies())
        if strategies:
            self._strategies.extend(strategies)

    def register(self, strategy: DecompositionStrategy) -> None:
        self._strategies.append(strategy)
        logger.debug("decomposition_strategy_registered", strategy=strategy.name)

    @property
    def strategies(self) -> list[DecompositionStrategy]:
        return list(self._strategies)

    def find_strategy(self, task: Task) -> DecompositionStrategy | None:
        text = task.text
        for strategy in self._strategies:
            if strategy.matches(text):
                return strategy
        return None

    def can_decompose(self, task: Task) -> bool:
        return self.find_strategy(task) is not None

    def decompose(self, task: Task) -> list[Task]:
        """Split a task with the first matching strategy, or return it unchanged."""
        strategy = self.find_strategy(task)
        if strategy is None:
            return [task]

        subtasks = strategy.decompose(task)
        logger.info(
            "task_decomposed",
            task_id=task.id,
            strategy=strategy.name,
            subtask_ids=[subtask.id for subtask in subtasks],
        )
        return subtasks

    def provided_actions(self) -> dict[str, TaskAction]:
        """Actions contributed by all registered strategies."""
        actions: dict[str, TaskAction] = {}
        for strategy in self._strategies:
            actions.update(strategy.provided_actions())
        return actions
