"""Unit tests for IdleTrigger."""

from idleweaver.application import IdleTrigger, TriggerState
from idleweaver.domain.models import IdleState
from idleweaver.infrastructure.config import IdleConfig


def idle(system: float, user: float | None = None, active: bool = False) -> IdleState:
    return IdleState(system_idle_seconds=system, user_silent_seconds=user, has_active_tasks=active)


class TestShouldTrigger:
    """Tests for the trigger decision."""

    def test_initially_armed(self, idle_trigger: IdleTrigger) -> None:
        assert idle_trigger.state == TriggerState.ARMED
        assert idle_trigger.last_trigger_time is None

    def test_idle_long_enough(self, idle_trigger: IdleTrigger) -> None:
        assert idle_trigger.should_trigger(idle(600)) is True
        assert idle_trigger.should_trigger(idle(599)) is False

    def test_active_tasks_block(self, idle_trigger: IdleTrigger) -> None:
        assert idle_trigger.should_trigger(idle(3600, active=True)) is False

    def test_user_silence_checked_when_present(self, idle_trigger: IdleTrigger) -> None:
        assert idle_trigger.should_trigger(idle(3600, user=599)) is False
        assert idle_trigger.should_trigger(idle(3600, user=600)) is True

    def test_user_silence_ignored_when_absent(self, idle_trigger: IdleTrigger) -> None:
        assert idle_trigger.should_trigger(idle(3600, user=None)) is True

    def test_should_trigger_is_pure(self, idle_trigger: IdleTrigger) -> None:
        """Test that asking does not change state."""
        idle_trigger.should_trigger(idle(3600))
        idle_trigger.should_trigger(idle(3600))

        assert idle_trigger.state == TriggerState.ARMED
        assert idle_trigger.last_trigger_time is None

    def test_zero_thresholds(self, clock) -> None:
        trigger = IdleTrigger(
            IdleConfig(idle_threshold_seconds=0, user_silent_threshold_seconds=0, cooldown_seconds=0),
            clock=clock,
        )

        assert trigger.should_trigger(idle(0, user=0)) is True
        trigger.mark_triggered()
        assert trigger.should_trigger(idle(0)) is True


class TestCooldown:
    """Tests for the debounce cycle."""

    def test_cooldown_scenario(self, idle_trigger: IdleTrigger, clock) -> None:
        """Test trigger at t0, silence until t0+1800s, then trigger again."""
        snapshot = idle(600, user=600)

        assert idle_trigger.should_trigger(snapshot) is True
        idle_trigger.mark_triggered()
        assert idle_trigger.state == TriggerState.COOLING_DOWN

        clock.advance(60)
        assert idle_trigger.should_trigger(snapshot) is False

        clock.advance(1739)
        assert idle_trigger.should_trigger(snapshot) is False

        clock.advance(1)
        assert idle_trigger.state == TriggerState.ARMED
        assert idle_trigger.should_trigger(snapshot) is True

    def test_mark_triggered_records_time(self, idle_trigger: IdleTrigger, clock) -> None:
        idle_trigger.mark_triggered()
        assert idle_trigger.last_trigger_time == clock.now()

    def test_is_armed_at_explicit_time(self, idle_trigger: IdleTrigger, clock) -> None:
        start = clock.now()
        idle_trigger.mark_triggered(start)
        clock.advance(1800)

        assert idle_trigger.is_armed(start) is False
        assert idle_trigger.is_armed() is True

    def test_reset(self, idle_trigger: IdleTrigger) -> None:
        idle_trigger.mark_triggered()
        idle_trigger.reset()
        assert idle_trigger.is_armed()
