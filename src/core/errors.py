"""Error taxonomy shared by services and the CLI.

Services raise these; the CLI turns them into a red status line and an exit code.
Per-item failures inside loops are not raised: they are logged and counted.
"""

from __future__ import annotations


class SetupError(Exception):
    """Base error. `exit_code` is what the CLI exits with."""

    exit_code: int = 1

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class UsageError(SetupError):
    exit_code = 1


class AuthenticationError(SetupError):
    exit_code = 1


class PrivilegeError(SetupError):
    exit_code = 1


class MissingDependencyError(SetupError):
    """A required external tool is not on PATH."""

    exit_code = 2

    def __init__(self, tools: list[str], *, hint: str | None = None) -> None:
        super().__init__(f"Missing required dependencies: {' '.join(tools)}", hint=hint)
        self.tools = tools


class ToolError(SetupError):
    """An external command exited with a failure status."""

    exit_code = 2

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ConnectivityError(SetupError):
    exit_code = 3


class GitHubAPIError(SetupError):
    exit_code = 2

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
