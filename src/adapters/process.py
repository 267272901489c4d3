"""Subprocess adapter.

Por qué un wrapper:
- Estandariza modo texto, captura y traducción de errores (`ToolError`).
- Un único lugar registra cada comando externo en DEBUG.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from typing import Mapping, Sequence

from core.errors import ToolError

logger = logging.getLogger(__name__)


class SubprocessRunner:
    """`CommandRunner` backed by `subprocess.run`."""

    def which(self, name: str) -> str | None:
        return shutil.which(name)

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
        logger.debug("run: %s", " ".join(_redact(cmd)))
        merged_env = None
        if env is not None:
            merged_env = {**os.environ, **env}
        try:
            result = subprocess.run(
                list(cmd),
                capture_output=capture,
                text=True,
                input=input,
                cwd=cwd,
                env=merged_env,
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            raise ToolError(f"Command not found: {cmd[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ToolError(f"Command timed out after {timeout}s: {cmd[0]}") from exc

        if check and result.returncode != 0:
            stderr = (result.stderr or "").strip() if capture else ""
            raise ToolError(
                f"Command failed ({result.returncode}): {' '.join(_redact(cmd))}",
                returncode=result.returncode,
                stderr=stderr,
            )
        return result

    def exec(self, cmd: Sequence[str]) -> None:
        logger.debug("exec: %s", " ".join(_redact(cmd)))
        os.execvp(cmd[0], list(cmd))


def _redact(cmd: Sequence[str]) -> list[str]:
    """Hide credentials embedded in https://<token>@host URLs."""

    out: list[str] = []
    for part in cmd:
        if part.startswith("https://") and "@" in part.split("/", 3)[2]:
            scheme_host = part.split("/", 3)
            host = scheme_host[2].split("@", 1)[1]
            scheme_host[2] = f"***@{host}"
            out.append("/".join(scheme_host))
        else:
            out.append(part)
    return out
