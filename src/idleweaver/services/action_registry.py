"""Lookup from action key to the asynchronous operation a task runs."""

from collections.abc import Mapping

from idleweaver.domain.models import Task, TaskAction
from idleweaver.infrastructure.exceptions import ActionNotRegisteredError
from idleweaver.infrastructure.logger import get_logger

logger = get_logger(__name__)


class ActionRegistry:
    """Maps action keys to operations.

    Tasks reference their operation by ``action_key`` (defaulting to the task
    id), so several subtasks can share one operation without copying it.
    """

    def __init__(self, actions: Mapping[str, TaskAction] | None = None):
        self._actions: dict[str, TaskAction] = dict(actions or {})

    def register(self, key: str, action: TaskAction) -> None:
        if key in self._actions and self._actions[key] is not action:
            logger.debug("action_replaced", action_key=key)
        self._actions[key] = action

    def register_many(self, actions: Mapping[str, TaskAction]) -> None:
        for key, action in actions.items():
            self.register(key, action)

    def unregister(self, key: str) -> bool:
        return self._actions.pop(key, None) is not None

    def resolve(self, task: Task) -> TaskAction:
        """Return the operation for a task.

        Raises:
            ActionNotRegisteredError: If nothing is registered under the task's key
        """
        key = task.resolved_action_key
        try:
            return self._actions[key]
        except KeyError:
            raise ActionNotRegisteredError(key) from None

    def __contains__(self, key: object) -> bool:
        return key in self._actions

    def __len__(self) -> int:
        return len(self._actions)
