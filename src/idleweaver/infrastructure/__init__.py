"""Infrastructure layer for Idleweaver."""

from idleweaver.infrastructure.config import Config, ConfigManager
from idleweaver.infrastructure.idle_probes import (
    ChainedIdleSource,
    LoadAverageIdleSource,
    TerminalIdleSource,
    UserActivityTracker,
    XPrintIdleSource,
    default_idle_source,
)
from idleweaver.infrastructure.logger import get_logger, setup_logging
from idleweaver.infrastructure.shell_action import ShellCommandAction
from idleweaver.infrastructure.task_file import TaskDefinition, load_task_file

__all__ = [
    "ChainedIdleSource",
    "Config",
    "ConfigManager",
    "LoadAverageIdleSource",
    "ShellCommandAction",
    "TaskDefinition",
    "TerminalIdleSource",
    "UserActivityTracker",
    "XPrintIdleSource",
    "default_idle_source",
    "get_logger",
    "load_task_file",
    "setup_logging",
]
