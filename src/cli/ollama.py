"""`ollama` command: run `ollama serve` inside a GNU screen layout."""

from __future__ import annotations

import os
from pathlib import Path

import typer

from cli import common
from core.services.ollama_screen import Layout, OllamaScreenLauncher

app = typer.Typer(no_args_is_help=True, help="Launch ollama inside GNU screen.")


def _launch(layout: Layout, directory: Path, overwrite: bool) -> None:
    with common.exit_on_error():
        launcher = OllamaScreenLauncher(
            runner=common.runner(),
            reporter=common.reporter(),
            layout=layout,
            directory=directory,
        )
        launcher.launch(os.environ, overwrite=overwrite)


@app.command("local")
def local(
    directory: Path = typer.Option(Path("."), "--dir", help="Where the layout file lives."),
    overwrite: bool = typer.Option(False, "--overwrite", help="Rewrite the layout file."),
) -> None:
    """Local layout: shells, nvtop, htop, `ollama serve` and status windows."""

    _launch(Layout.LOCAL, directory, overwrite)


@app.command("remote")
def remote(
    directory: Path = typer.Option(Path("."), "--dir", help="Where the layout file lives."),
    overwrite: bool = typer.Option(False, "--overwrite", help="Rewrite the layout file."),
) -> None:
    """Remote layout: like local, with `OLLAMA_HOST=0.0.0.0:11434`."""

    _launch(Layout.REMOTE, directory, overwrite)
