"""Task action that runs a shell command in a subprocess."""

import asyncio
import time
from pathlib import Path

from idleweaver.domain.models import ExecutionContext, TaskResult
from idleweaver.infrastructure.logger import get_logger

logger = get_logger(__name__)


class ShellCommandAction:
    """Run ``command`` through the shell; exit code 0 means success.

    Honors cancellation: when the attempt's cancel event is set (timeout) or
    the coroutine is cancelled, the subprocess is killed.
    """

    def __init__(self, command: str, cwd: Path | None = None):
        self.command = command
        self.cwd = cwd

    def __repr__(self) -> str:
        return f"ShellCommandAction({self.command!r})"

    async def __call__(self, ctx: ExecutionContext) -> TaskResult:
        started = time.monotonic()
        process = await asyncio.create_subprocess_shell(
            self.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(self.cwd) if self.cwd else None,
        )
        logger.debug("shell_command_started", task_id=ctx.task.id, pid=process.pid)

        communicate = asyncio.ensure_future(process.communicate())
        cancelled = asyncio.ensure_future(ctx.cancel_event.wait())
        try:
            await asyncio.wait({communicate, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            self._kill(process)
            communicate.cancel()
            raise
        finally:
            cancelled.cancel()

        if not communicate.done():
            self._kill(process)
            communicate.cancel()
            await process.wait()
            return TaskResult(
                task_id=ctx.task.id,
                success=False,
                error=f"Command cancelled: {self.command}",
            )

        stdout, stderr = communicate.result()
        duration = time.monotonic() - started
        return_code = process.returncode if process.returncode is not None else -1

        metrics: dict[str, int | float | str] = {
            "exit_code": return_code,
            "duration_seconds": round(duration, 3),
        }
        if return_code != 0:
            error_msg = stderr.decode(errors="replace").strip() if stderr else ""
            detailed_error = f"Command failed with exit code {return_code}"
            if error_msg:
                detailed_error += f": {error_msg}"
            return TaskResult(
                task_id=ctx.task.id,
                success=False,
                output=stdout.decode(errors="replace").strip() or None,
                error=detailed_error,
                metrics=metrics,
            )

        return TaskResult(
            task_id=ctx.task.id,
            success=True,
            output=stdout.decode(errors="replace").strip(),
            metrics=metrics,
        )

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
