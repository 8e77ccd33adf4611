"""Service layer: task store, scheduling, action lookup and decomposition."""

from idleweaver.services.action_registry import ActionRegistry
from idleweaver.services.decomposition import (
    DecompositionRegistry,
    HealthCheckStrategy,
    ParallelPartsStrategy,
    SearchOrganizeExecuteStrategy,
)
from idleweaver.services.scheduler import PriorityScheduler
from idleweaver.services.task_store import TaskStore

__all__ = [
    "ActionRegistry",
    "DecompositionRegistry",
    "HealthCheckStrategy",
    "ParallelPartsStrategy",
    "PriorityScheduler",
    "SearchOrganizeExecuteStrategy",
    "TaskStore",
]
