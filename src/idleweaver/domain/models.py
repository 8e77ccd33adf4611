"""Core domain models for Idleweaver."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class TaskPriority(str, Enum):
    """Task priority levels, most urgent first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    PERIODIC = "periodic"  # Recurring; returns to pending after each success

    @property
    def rank(self) -> int:
        """Dispatch rank; lower runs first."""
        return PRIORITY_RANK[self]


PRIORITY_RANK: dict[TaskPriority, int] = {
    TaskPriority.CRITICAL: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
    TaskPriority.PERIODIC: 4,
}


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Task(BaseModel):
    """Descriptor for a unit of background work.

    A task does not hold its operation. The operation lives in the action
    registry under ``action_key`` (defaults to the task id), so decomposed
    subtasks can share it without aliasing a mutable closure.

    Attributes:
        id: Unique, immutable task identifier
        priority: Immutable dispatch priority
        status: Lifecycle state, mutated only by the executor
        created_at: Set once by the task store on insertion if absent
        last_run_at: Stamped by the executor after every execution
        interval_seconds: Re-run interval for periodic tasks
        depends_on: Ordered, de-duplicated ids that must be completed first
        parent_id: Task this one was decomposed from
        action_key: Registry key of the operation to run
    """

    id: str = Field(min_length=1, frozen=True)
    name: str = Field(default="", validate_default=True)
    description: str | None = None
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, frozen=True)
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    created_at: datetime | None = None
    last_run_at: datetime | None = None
    interval_seconds: float | None = Field(default=None, gt=0)
    depends_on: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    parent_id: str | None = None
    action_key: str | None = None

    @field_validator("depends_on")
    @classmethod
    def dedupe_dependencies(cls, v: list[str]) -> list[str]:
        """Collapse duplicate dependency ids, keeping first-seen order."""
        return list(dict.fromkeys(v))

    @field_validator("name")
    @classmethod
    def default_name(cls, v: str, info: ValidationInfo) -> str:
        """Fall back to the task id when no display name is given."""
        return v or info.data.get("id", "")

    @property
    def resolved_action_key(self) -> str:
        """Key used to look up this task's operation."""
        return self.action_key or self.id

    @property
    def text(self) -> str:
        """Text that decomposition strategies match against."""
        return self.description or self.name

    @property
    def is_periodic(self) -> bool:
        return self.priority == TaskPriority.PERIODIC

    model_config = ConfigDict(validate_assignment=True)


class TaskResult(BaseModel):
    """Outcome of one task execution."""

    task_id: str | None = None
    success: bool
    output: str | None = None
    error: str | None = None
    metrics: dict[str, int | float | str] = Field(default_factory=dict)


class TaskStats(BaseModel):
    """Task counts per status."""

    total: int = 0
    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0


class IdleState(BaseModel):
    """Snapshot of machine and user idleness taken on a heartbeat.

    ``user_silent_seconds`` is None when no user-activity source is wired,
    in which case user silence is not part of the trigger decision.
    """

    system_idle_seconds: float = Field(default=0.0, ge=0)
    user_silent_seconds: float | None = Field(default=None, ge=0)
    has_active_tasks: bool = False
    last_activity_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StatusSnapshot(BaseModel):
    """Status exposed to callers."""

    is_running: bool
    idle_state: IdleState
    task_stats: TaskStats


@dataclass
class ExecutionContext:
    """Runtime context handed to an action for one execution attempt.

    Actions must watch ``cancel_event``: it is set when the attempt times out.
    An action that ignores it keeps running until it finishes on its own.
    """

    task: Task
    attempt: int = 1
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


TaskAction = Callable[[ExecutionContext], Awaitable[Any]]
