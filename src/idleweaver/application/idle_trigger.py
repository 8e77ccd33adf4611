"""Idle trigger: debounced decision whether background work may start."""

from datetime import datetime
from enum import Enum

from idleweaver.domain.models import IdleState
from idleweaver.domain.ports import Clock, SystemClock
from idleweaver.infrastructure.config import IdleConfig
from idleweaver.infrastructure.logger import get_logger

logger = get_logger(__name__)


class TriggerState(str, Enum):
    """Trigger states."""

    ARMED = "armed"
    COOLING_DOWN = "cooling_down"


class IdleTrigger:
    """Two-state debounce over idle snapshots.

    Starts armed. Firing moves it to cooling-down; it re-arms once
    ``cooldown_seconds`` have passed since the last firing. The state is
    derived from ``last_trigger_time`` and the clock, so checking it never
    mutates anything.
    """

    def __init__(self, config: IdleConfig | None = None, clock: Clock | None = None):
        """Initialize idle trigger.

        Args:
            config: Idle, user-silence and cooldown thresholds
            clock: Time source for cooldown tracking
        """
        self.config = config or IdleConfig()
        self.clock = clock or SystemClock()
        self.last_trigger_time: datetime | None = None

    def state_at(self, now: datetime | None = None) -> TriggerState:
        if self.last_trigger_time is None:
            return TriggerState.ARMED
        now = now or self.clock.now()
        elapsed = (now - self.last_trigger_time).total_seconds()
        if elapsed >= self.config.cooldown_seconds:
            return TriggerState.ARMED
        return TriggerState.COOLING_DOWN

    @property
    def state(self) -> TriggerState:
        return self.state_at()

    def is_armed(self, now: datetime | None = None) -> bool:
        return self.state_at(now) == TriggerState.ARMED

    def should_trigger(self, idle_state: IdleState, now: datetime | None = None) -> bool:
        """Decide whether to fire for this snapshot.

        True only when armed, the system has been idle at least
        ``idle_threshold_seconds``, the user (when tracked) has been silent at
        least ``user_silent_threshold_seconds``, and no task is running.
        """
        if not self.is_armed(now):
            return False
        if idle_state.has_active_tasks:
            return False
        if idle_state.system_idle_seconds < self.config.idle_threshold_seconds:
            return False
        if (
            idle_state.user_silent_seconds is not None
            and idle_state.user_silent_seconds < self.config.user_silent_threshold_seconds
        ):
            return False
        return True

    def mark_triggered(self, now: datetime | None = None) -> None:
        """Record a firing and enter cooldown."""
        self.last_trigger_time = now or self.clock.now()
        logger.debug(
            "idle_trigger_cooling_down",
            cooldown_seconds=self.config.cooldown_seconds,
        )

    def reset(self) -> None:
        """Re-arm immediately."""
        self.last_trigger_time = None
