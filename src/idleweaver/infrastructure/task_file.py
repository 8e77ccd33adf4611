"""Task definition files.

Example::

    tasks:
      - id: backup
        priority: low
        command: rsync -a ~/notes /mnt/backup/
      - id: tidy-downloads
        priority: periodic
        interval_seconds: 86400
        command: find ~/Downloads -mtime +30 -delete
      - id: report
        depends_on: [backup]
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from idleweaver.domain.models import ExecutionContext, Task, TaskAction, TaskPriority, TaskResult
from idleweaver.infrastructure.exceptions import TaskFileError
from idleweaver.infrastructure.logger import get_logger
from idleweaver.infrastructure.shell_action import ShellCommandAction

logger = get_logger(__name__)


class TaskDefinition(BaseModel):
    """One entry of a task file."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    name: str = ""
    description: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    interval_seconds: float | None = Field(default=None, gt=0)
    depends_on: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    command: str | None = None
    cwd: Path | None = None

    def to_task(self) -> Task:
        return Task(
            id=self.id,
            name=self.name,
            description=self.description,
            priority=self.priority,
            interval_seconds=self.interval_seconds,
            depends_on=self.depends_on,
            tags=self.tags,
        )

    def to_action(self) -> TaskAction:
        if self.command:
            return ShellCommandAction(self.command, cwd=self.cwd)
        return noop_action


async def noop_action(ctx: ExecutionContext) -> TaskResult:
    """Action for tasks defined without a command; always succeeds."""
    return TaskResult(task_id=ctx.task.id, success=True, output="Nothing to run")


def load_task_file(path: Path) -> list[tuple[Task, TaskAction]]:
    """Load task definitions and their actions from a YAML file.

    Args:
        path: Path to the task file

    Returns:
        (task, action) pairs in file order

    Raises:
        TaskFileError: If the file is missing, malformed or has invalid entries
    """
    try:
        with open(path) as f:
            data: Any = yaml.safe_load(f)
    except OSError as e:
        raise TaskFileError(f"Cannot read task file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise TaskFileError(f"Malformed YAML in {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
        raise TaskFileError(f"Expected a top-level 'tasks' list in {path}")

    loaded: list[tuple[Task, TaskAction]] = []
    seen: set[str] = set()
    for index, entry in enumerate(data["tasks"]):
        try:
            definition = TaskDefinition.model_validate(entry)
        except ValidationError as e:
            raise TaskFileError(f"Invalid task #{index + 1} in {path}:\n{e}") from e
        if definition.id in seen:
            raise TaskFileError(f"Duplicate task id in {path}: {definition.id}")
        seen.add(definition.id)
        loaded.append((definition.to_task(), definition.to_action()))

    logger.info("task_file_loaded", path=str(path), count=len(loaded))
    return loaded
