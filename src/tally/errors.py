"""Exceptions raised by tally."""

import errno as errno_codes

NOT_FOUND = "not-found"
PERMISSION_DENIED = "permission-denied"
SPAWN_FAILED = "spawn-failed"

_REASON_TEXT = {
    NOT_FOUND: "command not found",
    PERMISSION_DENIED: "permission denied",
}


class TallyError(Exception):
    """Base class for failures of the tool itself (never of the child)."""


class LaunchError(TallyError):
    """The child command could not be started, so nothing was measured."""

    def __init__(self, command: str, reason: str, errno: int | None = None) -> None:
        self.command = command
        self.reason = reason
        self.errno = errno
        super().__init__(f"{command}: {self.describe()}")

    def describe(self) -> str:
        """Human-readable reason, e.g. ``command not found``."""
        if self.reason in _REASON_TEXT:
            return _REASON_TEXT[self.reason]
        if self.errno is not None:
            name = errno_codes.errorcode.get(self.errno, str(self.errno))
            return f"cannot execute ({name})"
        return "cannot execute"

    @classmethod
    def from_os_error(cls, command: str, exc: OSError) -> "LaunchError":
        """Classify a spawn-time ``OSError``."""
        if isinstance(exc, FileNotFoundError):
            reason = NOT_FOUND
        elif isinstance(exc, PermissionError):
            reason = PERMISSION_DENIED
        else:
            reason = SPAWN_FAILED
        return cls(command, reason, exc.errno)


class Interrupted(TallyError):
    """A termination signal reached tally while the child was running."""

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(f"interrupted by signal {signum}")
