from __future__ import annotations

import subprocess
from datetime import datetime
from typing import Callable, Sequence

import pytest

from core.errors import ToolError


class FakeRunner:
    """Records commands; answers from `responses` keyed by command prefix.

    A response is `(returncode, stdout)` or a callable taking the command.
    The longest matching prefix wins; unknown commands succeed with no output.
    """

    def __init__(self, tools: Sequence[str] = (), responses: dict | None = None) -> None:
        self.tools = set(tools)
        self.responses = dict(responses or {})
        self.calls: list[list[str]] = []
        self.inputs: list[str | None] = []
        self.execs: list[list[str]] = []

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.tools else None

    def _lookup(self, cmd: list[str]) -> tuple[int, str]:
        best: tuple | None = None
        for prefix in self.responses:
            if tuple(cmd[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        if best is None:
            return 0, ""
        response = self.responses[best]
        return response(cmd) if callable(response) else response

    def run(self, cmd, *, check=True, capture=True, input=None, cwd=None, env=None, timeout=None):
        cmd = list(cmd)
        # sudo is a privilege detail; match responses on the real command.
        key = cmd[1:] if cmd and cmd[0] == "sudo" else cmd
        self.calls.append(key)
        self.inputs.append(input)
        returncode, stdout = self._lookup(key)
        if check and returncode != 0:
            raise ToolError(f"Command failed ({returncode}): {' '.join(cmd)}", returncode=returncode)
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr="")

    def exec(self, cmd) -> None:
        self.execs.append(list(cmd))

    def ran(self, *prefix: str) -> bool:
        return any(tuple(call[: len(prefix)]) == prefix for call in self.calls)


class FakePrompter:
    """Scripted answers; an exhausted confirm queue falls back to the default."""

    def __init__(self, confirms: Sequence[bool] = (), asks: Sequence[str] = ()) -> None:
        self.confirms = list(confirms)
        self.asks = list(asks)
        self.questions: list[str] = []

    def confirm(self, message: str, *, default: bool = False) -> bool:
        self.questions.append(message)
        return self.confirms.pop(0) if self.confirms else default

    def ask(self, message: str, *, default: str | None = None) -> str:
        self.questions.append(message)
        if self.asks:
            return self.asks.pop(0)
        if default is None:
            raise AssertionError(f"unexpected question: {message}")
        return default


class RecordingReporter:
    def __init__(self) -> None:
        self.lines: list[tuple[str, str]] = []

    def _add(self, kind: str, message: str) -> None:
        self.lines.append((kind, message))

    def info(self, message: str) -> None:
        self._add("info", message)

    def success(self, message: str) -> None:
        self._add("success", message)

    def warning(self, message: str) -> None:
        self._add("warning", message)

    def error(self, message: str) -> None:
        self._add("error", message)

    def backup(self, message: str) -> None:
        self._add("backup", message)

    def dry_run(self, message: str) -> None:
        self._add("dry_run", message)

    def step(self, message: str) -> None:
        self._add("step", message)

    def header(self, title: str) -> None:
        self._add("header", title)

    def messages(self, kind: str) -> list[str]:
        return [message for line_kind, message in self.lines if line_kind == kind]

    def text(self) -> str:
        return "\n".join(message for _, message in self.lines)


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(2024, 5, 17, 9, 30, 15)
