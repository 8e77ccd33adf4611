"""Environment probes that measure how long the machine has been idle.

Probes are tried in order by ``ChainedIdleSource``:
1. Desktop sessions: ``xprintidle`` (X11, requires ``DISPLAY``)
2. Terminal sessions: the IDLE column of ``w -h``
3. Fallback: 1-minute load average via psutil
"""

import os
import re
import shutil
import subprocess
from collections.abc import Sequence
from datetime import datetime

import psutil

from idleweaver.domain.ports import Clock, IdleSource, SystemClock
from idleweaver.infrastructure.exceptions import IdleProbeError
from idleweaver.infrastructure.logger import get_logger

logger = get_logger(__name__)

PROBE_TIMEOUT_SECONDS = 5.0

_SECONDS_RE = re.compile(r"^(\d+(?:\.\d+)?)s$")
_MIN_SEC_RE = re.compile(r"^(\d+):(\d{2})$")
_HOUR_MIN_RE = re.compile(r"^(\d+):(\d{2})m$")
_DAYS_RE = re.compile(r"^(\d+)days?$")


def parse_idle_time(idle: str) -> float:
    """Parse the IDLE column printed by ``w``.

    Formats (procps): ``12.00s`` seconds, ``3:20`` minutes:seconds,
    ``1:20m`` hours:minutes, ``2days`` days, ``-`` for no idle time.

    Raises:
        IdleProbeError: If the value is in none of the known formats
    """
    idle = idle.strip()
    if idle in ("-", "", "idle"):
        return 0.0

    if m := _SECONDS_RE.match(idle):
        return float(m.group(1))
    if m := _MIN_SEC_RE.match(idle):
        return int(m.group(1)) * 60 + int(m.group(2))
    if m := _HOUR_MIN_RE.match(idle):
        return int(m.group(1)) * 3600 + int(m.group(2)) * 60
    if m := _DAYS_RE.match(idle):
        return int(m.group(1)) * 86400

    raise IdleProbeError(f"Unrecognized idle time format: {idle!r}")


def _run(command: list[str]) -> str:
    """Run a probe command and return stdout, raising IdleProbeError on any failure."""
    if shutil.which(command[0]) is None:
        raise IdleProbeError(f"{command[0]} not found on PATH")
    try:
        completed = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT_SECONDS,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise IdleProbeError(f"{command[0]} failed: {e}") from e
    return completed.stdout


class XPrintIdleSource(IdleSource):
    """X11 desktop idle time via ``xprintidle`` (milliseconds)."""

    name = "xprintidle"

    def get_idle_seconds(self) -> float:
        if not os.environ.get("DISPLAY"):
            raise IdleProbeError("DISPLAY not set")
        raw = _run(["xprintidle"]).strip()
        try:
            return max(0.0, int(raw) / 1000)
        except ValueError as e:
            raise IdleProbeError(f"Unexpected xprintidle output: {raw!r}") from e


class TerminalIdleSource(IdleSource):
    """Largest idle time across logged-in terminal sessions, from ``w -h``.

    Raises IdleProbeError when no sessions are listed, so headless machines
    fall through to the next probe.
    """

    name = "terminal"

    # w -h columns: USER TTY FROM LOGIN@ IDLE JCPU PCPU WHAT
    IDLE_COLUMN = 4

    def get_idle_seconds(self) -> float:
        output = _run(["w", "-h"])
        idle_times: list[float] = []
        for line in output.strip().splitlines():
            parts = line.split()
            if len(parts) <= self.IDLE_COLUMN:
                continue
            try:
                idle_times.append(parse_idle_time(parts[self.IDLE_COLUMN]))
            except IdleProbeError:
                logger.debug("terminal_idle_unparsed", line=line)

        if not idle_times:
            raise IdleProbeError("No terminal sessions reported by w")
        return max(idle_times)


class LoadAverageIdleSource(IdleSource):
    """Treats a quiet machine as idle: load below the threshold reports a large idle time."""

    name = "load-average"

    def __init__(self, load_threshold: float = 0.5, idle_seconds_when_quiet: float = 3600.0):
        self.load_threshold = load_threshold
        self.idle_seconds_when_quiet = idle_seconds_when_quiet

    def get_idle_seconds(self) -> float:
        try:
            load_1m, _, _ = psutil.getloadavg()
        except (OSError, AttributeError) as e:
            raise IdleProbeError(f"Load average unavailable: {e}") from e
        return self.idle_seconds_when_quiet if load_1m < self.load_threshold else 0.0


class ChainedIdleSource(IdleSource):
    """Tries each probe in order and returns the first measurement.

    Never raises: if every probe fails the machine is reported as not idle (0).
    """

    name = "chain"

    def __init__(self, sources: Sequence[IdleSource]):
        self.sources = list(sources)

    def get_idle_seconds(self) -> float:
        for source in self.sources:
            try:
                seconds = float(source.get_idle_seconds())
            except Exception as e:
                logger.debug("idle_probe_failed", probe=source.name, error=str(e))
                continue
            return max(0.0, seconds)

        logger.debug("idle_probes_exhausted", probes=[s.name for s in self.sources])
        return 0.0


class UserActivityTracker(IdleSource):
    """In-process user silence: seconds since ``touch()`` was last called."""

    name = "user-activity"

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()
        self.last_activity: datetime = self.clock.now()

    def touch(self) -> None:
        """Record user activity now."""
        self.last_activity = self.clock.now()

    def get_idle_seconds(self) -> float:
        return max(0.0, (self.clock.now() - self.last_activity).total_seconds())


def default_idle_source() -> ChainedIdleSource:
    """Build the standard probe chain: desktop, terminal, then load average."""
    return ChainedIdleSource([XPrintIdleSource(), TerminalIdleSource(), LoadAverageIdleSource()])
