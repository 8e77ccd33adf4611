"""Domain models for Idleweaver."""

from idleweaver.domain.models import (
    PRIORITY_RANK,
    ExecutionContext,
    IdleState,
    StatusSnapshot,
    Task,
    TaskAction,
    TaskPriority,
    TaskResult,
    TaskStats,
    TaskStatus,
)

__all__ = [
    "PRIORITY_RANK",
    "ExecutionContext",
    "IdleState",
    "StatusSnapshot",
    "Task",
    "TaskAction",
    "TaskPriority",
    "TaskResult",
    "TaskStats",
    "TaskStatus",
]
