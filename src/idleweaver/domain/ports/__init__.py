"""Pluggable capabilities the core depends on."""

from idleweaver.domain.ports.clock import Clock, SystemClock
from idleweaver.domain.ports.decomposition_strategy import DecompositionStrategy
from idleweaver.domain.ports.idle_source import IdleSource

__all__ = [
    "Clock",
    "DecompositionStrategy",
    "IdleSource",
    "SystemClock",
]
