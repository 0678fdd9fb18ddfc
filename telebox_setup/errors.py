"""Exception hierarchy for the TeleBox installer."""

from typing import Optional, Sequence


# ----------------------------------------------------------------
# Custom Exceptions
# ----------------------------------------------------------------
class SetupError(Exception):
    """Base exception for setup errors."""

    pass


class PrivilegeError(SetupError):
    """Raised when the installer is not running as root."""

    pass


class ConfigurationError(SetupError):
    """Raised when the install configuration is invalid."""

    pass


class NetworkError(SetupError):
    """Raised when a download fails."""

    pass


class ExecutionError(SetupError):
    """Raised when command execution fails."""

    def __init__(
        self,
        message: str,
        cmd: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.cmd = list(cmd) if cmd else []
        self.returncode = returncode
        self.stderr = stderr


class WorkflowAborted(SetupError):
    """Raised when a fatal step fails and the workflow stops."""

    def __init__(self, step: str, position: int, total: int, cause: Exception) -> None:
        super().__init__(f"step '{step}' ({position}/{total}) failed: {cause}")
        self.step = step
        self.position = position
        self.total = total
        self.cause = cause
