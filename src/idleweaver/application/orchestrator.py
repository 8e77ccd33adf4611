"""Orchestrator: heartbeat loop tying idle detection to task execution."""

import asyncio
import inspect
from collections.abc import Callable, Iterable, Mapping
from datetime import timedelta
from typing import Any

from idleweaver.application.idle_trigger import IdleTrigger
from idleweaver.application.task_executor import RetryPolicy, TaskExecutor
from idleweaver.domain.models import (
    IdleState,
    StatusSnapshot,
    Task,
    TaskAction,
    TaskResult,
)
from idleweaver.domain.ports import Clock, DecompositionStrategy, IdleSource, SystemClock
from idleweaver.infrastructure.config import Config
from idleweaver.infrastructure.idle_probes import UserActivityTracker, default_idle_source
from idleweaver.infrastructure.logger import get_logger
from idleweaver.services.action_registry import ActionRegistry
from idleweaver.services.decomposition import DecompositionRegistry
from idleweaver.services.scheduler import PriorityScheduler
from idleweaver.services.task_store import TaskStore

logger = get_logger(__name__)

TriggerCallback = Callable[[list[Task]], Any]
TaskCompleteCallback = Callable[[Task, TaskResult], Any]


class Orchestrator:
    """Runs background tasks when the machine is idle.

    Every heartbeat takes an idle snapshot, asks the idle trigger whether to
    fire, and if so runs the highest-priority eligible task. Heartbeats are
    spawned as independent asyncio tasks, so a long execution never delays
    the next tick.

    Callbacks may be plain functions or coroutines. Their exceptions are
    logged and never reach the heartbeat.
    """

    def __init__(
        self,
        executor: TaskExecutor,
        idle_trigger: IdleTrigger,
        idle_source: IdleSource,
        decomposition: DecompositionRegistry | None = None,
        activity_tracker: UserActivityTracker | None = None,
        heartbeat_interval_ms: int = 60000,
        enable_decomposition: bool = True,
        on_trigger: TriggerCallback | None = None,
        on_task_complete: TaskCompleteCallback | None = None,
        clock: Clock | None = None,
    ):
        """Initialize orchestrator.

        The task store, scheduler and action registry are the ones the
        executor was built with.

        Args:
            executor: Runs tasks from its store
            idle_trigger: Debounced idle decision
            idle_source: Machine idle probe, called off the event loop
            decomposition: Strategies applied to tasks added via add_task
            activity_tracker: User-silence source; user silence is ignored when None
            heartbeat_interval_ms: Milliseconds between heartbeats
            enable_decomposition: Split matching tasks on add_task
            on_trigger: Called with the eligible tasks when the trigger fires
            on_task_complete: Called with (task, result) after a triggered execution
            clock: Time source
        """
        self.executor = executor
        self.idle_trigger = idle_trigger
        self.idle_source = idle_source
        self.decomposition = decomposition or DecompositionRegistry()
        self.activity_tracker = activity_tracker
        self.heartbeat_interval_ms = heartbeat_interval_ms
        self.enable_decomposition = enable_decomposition
        self.on_trigger = on_trigger
        self.on_task_complete = on_task_complete
        self.clock = clock or SystemClock()

        self.actions.register_many(self.decomposition.provided_actions())

        self._idle_state = IdleState(last_activity_time=self.clock.now())
        self._loop_task: asyncio.Task | None = None
        self._heartbeats: set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls,
        config: Config | None = None,
        *,
        idle_source: IdleSource | None = None,
        strategies: Iterable[DecompositionStrategy] | None = None,
        actions: Mapping[str, TaskAction] | None = None,
        on_trigger: TriggerCallback | None = None,
        on_task_complete: TaskCompleteCallback | None = None,
        clock: Clock | None = None,
    ) -> "Orchestrator":
        """Wire an orchestrator with default components from configuration."""
        config = config or Config()
        clock = clock or SystemClock()
        store = TaskStore(clock=clock)
        scheduler = PriorityScheduler(clock=clock)
        executor_config = config.executor
        executor = TaskExecutor(
            store,
            scheduler,
            ActionRegistry(actions),
            max_concurrent=executor_config.max_concurrent,
            timeout_seconds=executor_config.timeout_seconds,
            retry_policy=RetryPolicy(
                max_retries=executor_config.max_retries,
                initial_backoff_seconds=executor_config.retry_backoff_initial_seconds,
                max_backoff_seconds=executor_config.retry_backoff_max_seconds,
                backoff_multiplier=executor_config.retry_backoff_multiplier,
                jitter=executor_config.retry_jitter,
            ),
            clock=clock,
        )
        return cls(
            executor=executor,
            idle_trigger=IdleTrigger(config.idle, clock=clock),
            idle_source=idle_source or default_idle_source(),
            decomposition=DecompositionRegistry(strategies),
            heartbeat_interval_ms=config.orchestrator.heartbeat_interval_ms,
            enable_decomposition=config.orchestrator.enable_decomposition,
            on_trigger=on_trigger,
            on_task_complete=on_task_complete,
            clock=clock,
        )

    @property
    def store(self) -> TaskStore:
        return self.executor.store

    @property
    def scheduler(self) -> PriorityScheduler:
        return self.executor.scheduler

    @property
    def actions(self) -> ActionRegistry:
        return self.executor.actions

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    # Task management

    def add_task(self, task: Task, action: TaskAction | None = None) -> list[str]:
        """Add a task, decomposing it when a strategy matches.

        Args:
            task: Task to add
            action: Operation to register under the task's action key

        Returns:
            Ids of the stored tasks (the subtasks when decomposed)
        """
        if action is not None:
            self.actions.register(task.resolved_action_key, action)

        strategy = self.decomposition.find_strategy(task) if self.enable_decomposition else None
        if strategy is None:
            tasks = [task]
        else:
            # Strategies registered after construction bring their own actions
            self.actions.register_many(strategy.provided_actions())
            tasks = self.decomposition.decompose(task)
        stored = [self.store.upsert(t) for t in tasks]
        logger.info("task_added", task_id=task.id, stored_ids=[t.id for t in stored])
        return [t.id for t in stored]

    def remove_task(self, task_id: str) -> bool:
        removed = self.store.remove(task_id)
        if removed:
            logger.info("task_removed", task_id=task_id)
        return removed

    def clear_completed(self) -> int:
        return self.store.clear_completed()

    async def execute_next(self) -> TaskResult | None:
        """Run the next eligible task now, bypassing the idle trigger."""
        return await self.executor.execute_next()

    async def execute_task(self, task_id: str) -> TaskResult | None:
        """Run a specific task now, bypassing the idle trigger."""
        return await self.executor.execute_task(task_id)

    def record_user_activity(self) -> None:
        """Reset user silence; starts tracking it on first use."""
        if self.activity_tracker is None:
            self.activity_tracker = UserActivityTracker(clock=self.clock)
            logger.debug("user_activity_tracking_enabled")
        else:
            self.activity_tracker.touch()

    # Idle state

    async def snapshot_idle_state(self) -> IdleState:
        """Measure idleness now. The probe runs in a worker thread."""
        system_idle = max(0.0, await asyncio.to_thread(self.idle_source.get_idle_seconds))
        now = self.clock.now()

        if self.activity_tracker is not None:
            user_silent: float | None = self.activity_tracker.get_idle_seconds()
            last_activity = self.activity_tracker.last_activity
        else:
            user_silent = None
            last_activity = now - timedelta(seconds=system_idle)

        self._idle_state = IdleState(
            system_idle_seconds=system_idle,
            user_silent_seconds=user_silent,
            has_active_tasks=self.executor.running_count > 0,
            last_activity_time=last_activity,
        )
        return self._idle_state

    async def get_status(self) -> StatusSnapshot:
        """Current running flag, fresh idle snapshot and task counts."""
        return StatusSnapshot(
            is_running=self.is_running,
            idle_state=await self.snapshot_idle_state(),
            task_stats=self.store.stats(),
        )

    # Heartbeat

    async def heartbeat(self) -> TaskResult | None:
        """Run one heartbeat.

        Returns:
            The result of the task run on this heartbeat, if any
        """
        idle_state = await self.snapshot_idle_state()

        if not self.idle_trigger.should_trigger(idle_state):
            logger.debug(
                "heartbeat_not_triggered",
                system_idle_seconds=idle_state.system_idle_seconds,
                user_silent_seconds=idle_state.user_silent_seconds,
                trigger_state=self.idle_trigger.state.value,
                running_count=self.executor.running_count,
            )
            return None

        eligible = self.scheduler.eligible(self.store, exclude=self.executor.running_ids)
        if not eligible:
            logger.debug("heartbeat_nothing_eligible")
            return None

        # Enter cooldown before yielding so overlapping heartbeats cannot fire twice
        self.idle_trigger.mark_triggered()
        logger.info(
            "heartbeat_triggered",
            eligible_count=len(eligible),
            system_idle_seconds=idle_state.system_idle_seconds,
        )
        await self._invoke_callback("on_trigger", self.on_trigger, eligible)

        executed = await self.executor.run_next()
        if executed is None:
            return None

        task, result = executed
        if task.id not in self.store:
            logger.info("completed_task_removed", task_id=task.id)
        await self._invoke_callback("on_task_complete", self.on_task_complete, task, result)
        return result

    async def start(self) -> None:
        """Start the heartbeat loop. Does nothing if already running."""
        if self.is_running:
            return
        self._loop_task = asyncio.create_task(self._heartbeat_loop())
        logger.info("orchestrator_started", heartbeat_interval_ms=self.heartbeat_interval_ms)

    async def stop(self) -> None:
        """Stop the heartbeat loop. Tasks and in-flight heartbeats are left alone."""
        loop_task = self._loop_task
        if loop_task is None or loop_task.done():
            return
        loop_task.cancel()
        try:
            await loop_task
        except asyncio.CancelledError:
            pass
        self._loop_task = None
        logger.info("orchestrator_stopped")

    async def shutdown(self) -> None:
        """Stop the loop and wait for in-flight heartbeats to finish."""
        await self.stop()
        if self._heartbeats:
            logger.info("waiting_for_heartbeats", count=len(self._heartbeats))
            await asyncio.gather(*self._heartbeats, return_exceptions=True)

    async def _heartbeat_loop(self) -> None:
        interval = self.heartbeat_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            heartbeat = asyncio.create_task(self.heartbeat())
            self._heartbeats.add(heartbeat)
            heartbeat.add_done_callback(self._heartbeat_done)

    def _heartbeat_done(self, heartbeat: asyncio.Task) -> None:
        self._heartbeats.discard(heartbeat)
        if heartbeat.cancelled():
            return
        error = heartbeat.exception()
        if error is not None:
            logger.error("heartbeat_failed", error=str(error), error_type=type(error).__name__)

    @staticmethod
    async def _invoke_callback(name: str, callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            outcome = callback(*args)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error("callback_failed", callback=name, error=str(e))
