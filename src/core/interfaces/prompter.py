"""Contract for interactive questions.

Every prompt in the services goes through this, so confirmation-gated flows
(self-update, deletions, installs) can be driven from tests.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Prompter(Protocol):
    def confirm(self, message: str, *, default: bool = False) -> bool:
        ...

    def ask(self, message: str, *, default: str | None = None) -> str:
        ...
