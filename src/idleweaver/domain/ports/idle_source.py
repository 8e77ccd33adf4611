"""Abstract idle duration source."""

from abc import ABC, abstractmethod


class IdleSource(ABC):
    """Reports how long the machine (or user) has been idle.

    Implementations are environment dependent: desktop idle probes, terminal
    session idle times, load-average heuristics, or in-process activity
    tracking. Composite sources must never raise; individual probes may raise
    ``IdleProbeError`` to let a chain fall through to the next probe.
    """

    name: str = "idle-source"

    @abstractmethod
    def get_idle_seconds(self) -> float:
        """Return the current idle duration in seconds (non-negative).

        Raises:
            IdleProbeError: If this probe cannot measure idleness here
        """
        pass
