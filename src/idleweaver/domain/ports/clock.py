"""Time source abstraction so scheduling decisions can be tested deterministically."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    """Provides the current time as a timezone-aware UTC datetime."""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
