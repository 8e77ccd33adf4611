"""Custom exception hierarchy for Idleweaver."""


class IdleWeaverError(Exception):
    """Base exception for all Idleweaver errors."""

    pass


class ConfigurationError(IdleWeaverError):
    """Invalid configuration value or file, with optional remediation guidance.

    Attributes:
        remediation: Optional guidance on how to fix the issue
    """

    def __init__(self, message: str, remediation: str | None = None):
        """Initialize configuration error.

        Args:
            message: Error message
            remediation: Optional remediation guidance
        """
        super().__init__(message)
        self.remediation = remediation

    def __str__(self) -> str:
        """Return formatted error message with remediation if available."""
        if self.remediation:
            return f"{self.args[0]}\n\nRemediation: {self.remediation}"
        return str(self.args[0])


class TaskFileError(ConfigurationError):
    """Task definition file could not be read or validated."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            remediation="Check that the file is YAML with a top-level 'tasks:' list",
        )


class TaskNotFoundError(IdleWeaverError):
    """Raised when a task ID is not present in the task store."""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class TaskAlreadyRunningError(IdleWeaverError):
    """Raised when a task is handed to the executor while it is still running."""

    def __init__(self, task_id: str):
        super().__init__(f"Task already running: {task_id}")
        self.task_id = task_id


class ActionNotRegisteredError(IdleWeaverError):
    """Raised when no action is registered under a task's action key."""

    def __init__(self, action_key: str):
        super().__init__(f"No action registered for key: {action_key}")
        self.action_key = action_key


class TaskTimeoutError(IdleWeaverError):
    """A single execution attempt did not finish before its deadline.

    Attributes:
        timeout_seconds: The deadline that was exceeded
    """

    def __init__(self, timeout_seconds: float):
        super().__init__(f"Task timeout after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class IdleProbeError(IdleWeaverError):
    """An idle probe is unavailable or produced unusable output."""

    pass
