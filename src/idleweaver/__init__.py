"""Idleweaver - run background tasks while the machine is idle."""

__version__ = "0.1.0"
