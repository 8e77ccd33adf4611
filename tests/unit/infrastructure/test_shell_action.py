"""Unit tests for ShellCommandAction."""

import asyncio
from pathlib import Path

import pytest
from idleweaver.domain.models import ExecutionContext, Task
from idleweaver.infrastructure.shell_action import ShellCommandAction


def context(task_id: str = "shell") -> ExecutionContext:
    return ExecutionContext(task=Task(id=task_id))


class TestShellCommandAction:
    """Tests for running shell commands as task actions."""

    @pytest.mark.asyncio
    async def test_success(self) -> None:
        result = await ShellCommandAction("echo hello")(context())

        assert result.success is True
        assert result.task_id == "shell"
        assert result.output == "hello"
        assert result.metrics["exit_code"] == 0
        assert "duration_seconds" in result.metrics

    @pytest.mark.asyncio
    async def test_nonzero_exit(self) -> None:
        result = await ShellCommandAction("echo oops >&2; exit 3")(context())

        assert result.success is False
        assert result.error == "Command failed with exit code 3: oops"
        assert result.metrics["exit_code"] == 3

    @pytest.mark.asyncio
    async def test_cwd(self, tmp_path: Path) -> None:
        (tmp_path / "marker.txt").write_text("here")

        result = await ShellCommandAction("cat marker.txt", cwd=tmp_path)(context())

        assert result.output == "here"

    @pytest.mark.asyncio
    async def test_cancel_event_kills_process(self) -> None:
        """Test that setting the cancel event stops a long-running command."""
        ctx = context()
        action = ShellCommandAction("sleep 30")

        running = asyncio.create_task(action(ctx))
        await asyncio.sleep(0.1)
        ctx.cancel_event.set()

        result = await asyncio.wait_for(running, timeout=5.0)

        assert result.success is False
        assert result.error == "Command cancelled: sleep 30"

    @pytest.mark.asyncio
    async def test_task_cancellation_propagates(self) -> None:
        running = asyncio.create_task(ShellCommandAction("sleep 30")(context()))
        await asyncio.sleep(0.1)

        running.cancel()

        with pytest.raises(asyncio.CancelledError):
            await running

    def test_repr(self) -> None:
        assert repr(ShellCommandAction("ls")) == "ShellCommandAction('ls')"
