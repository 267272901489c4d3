"""Contract for running external commands.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- Los servicios (paquetes, sync, git mirror, swap) son testeables con un fake que graba llamadas.
"""

from __future__ import annotations

import subprocess
from typing import Mapping, Protocol, Sequence, runtime_checkable


@runtime_checkable
class CommandRunner(Protocol):
    """Minimal surface every service uses to touch the operating system."""

    def which(self, name: str) -> str | None:
        """Absolute path of `name` on PATH, or None."""

        ...

    def run(
        self,
        cmd: Sequence[str],
        *,
        check: bool = True,
        capture: bool = True,
        input: str | None = None,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run `cmd`; raise `ToolError` when `check` and the exit status is non-zero."""

        ...

    def exec(self, cmd: Sequence[str]) -> None:
        """Replace the current process with `cmd`."""

        ...
