"""Contract for user-facing status lines.

Services describe what they did through this; the CLI renders it with Rich
(`cli.ui_components.ConsoleReporter`), tests collect it in a list.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Reporter(Protocol):
    def info(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def backup(self, message: str) -> None: ...

    def dry_run(self, message: str) -> None: ...

    def step(self, message: str) -> None: ...

    def header(self, title: str) -> None: ...
