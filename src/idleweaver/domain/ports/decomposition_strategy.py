"""Abstract decomposition strategy."""

from abc import ABC, abstractmethod

from idleweaver.domain.models import Task, TaskAction


class DecompositionStrategy(ABC):
    """Rule that splits a descriptive task into finer-grained subtasks.

    Subtasks that must wait for siblings declare it through ``depends_on``.
    Subtasks either reuse the parent's action key or reference an action the
    strategy itself provides via ``provided_actions``.
    """

    name: str

    @abstractmethod
    def matches(self, description: str) -> bool:
        """Return True if this strategy applies to the task text."""
        pass

    @abstractmethod
    def decompose(self, task: Task) -> list[Task]:
        """Split the task into subtasks that replace it entirely."""
        pass

    def provided_actions(self) -> dict[str, TaskAction]:
        """Actions referenced by generated subtasks, keyed by action key."""
        return {}
