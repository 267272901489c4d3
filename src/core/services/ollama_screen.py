"""Launch `ollama serve` inside a GNU screen layout.

The layout file is written next to the caller (current directory) only when
it is missing or an overwrite is requested; then the process is replaced by
`screen -Uamc <layout>`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping

from adapters.template_renderer import render_template
from core.errors import UsageError
from core.interfaces.reporter import Reporter
from core.interfaces.runner import CommandRunner

logger = logging.getLogger(__name__)

STATUS_COMMAND = r"clear; ollama ps; ollama list | { IFS= read -r header; print -r \$header; sort -k1,1 }"
DEFAULT_TERM = "screen-256color"


class Layout(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"

    @property
    def dotfile(self) -> str:
        return ".screenrc-ollama" if self is Layout.LOCAL else ".screenrc-ollama-rmt"

    @property
    def template(self) -> str:
        return f"{self.dotfile.lstrip('.')}.j2"


def render_layout(layout: Layout, *, ollama_host: str = "0.0.0.0:11434") -> str:
    return render_template(
        layout.template,
        scrollback=10000,
        status_delay=3,
        status_command=STATUS_COMMAND,
        ollama_host=ollama_host,
    )


@dataclass
class OllamaScreenLauncher:
    runner: CommandRunner
    reporter: Reporter
    layout: Layout = Layout.LOCAL
    directory: Path = Path(".")

    @property
    def dotfile(self) -> Path:
        return self.directory / self.layout.dotfile

    def check_dependencies(self) -> None:
        missing = [tool for tool in ("screen", "ollama") if not self.runner.which(tool)]
        if missing:
            raise UsageError(
                f"Not installed: {', '.join(missing)}",
                hint="Install GNU screen and ollama first.",
            )

    def write_layout(self, *, overwrite: bool = False) -> bool:
        """Write the layout file when missing (or when `overwrite`); True when written."""

        if self.dotfile.exists() and not overwrite:
            logger.debug("keeping existing %s", self.dotfile)
            return False
        self.dotfile.write_text(render_layout(self.layout), encoding="utf-8")
        self.reporter.success(f"Created screen configuration: {self.dotfile}")
        return True

    def command(self, environ: Mapping[str, str]) -> list[str]:
        term = environ.get("TERM") or DEFAULT_TERM
        return ["screen", "-Uamc", str(self.dotfile), "-T", term]

    def launch(self, environ: Mapping[str, str], *, overwrite: bool = False) -> None:
        self.check_dependencies()
        self.write_layout(overwrite=overwrite)
        self.runner.exec(self.command(environ))
