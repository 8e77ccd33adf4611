"""Application services for Idleweaver."""

from idleweaver.application.idle_trigger import IdleTrigger, TriggerState
from idleweaver.application.orchestrator import Orchestrator
from idleweaver.application.task_executor import ExecutorStats, RetryPolicy, TaskExecutor

__all__ = [
    "ExecutorStats",
    "IdleTrigger",
    "Orchestrator",
    "RetryPolicy",
    "TaskExecutor",
    "TriggerState",
]
