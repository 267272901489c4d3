"""Root Typer application.

Por qué aquí:
- Cada grupo de sub-comandos vive en su propio módulo; aquí solo se conectan.
- El logging se configura una sola vez, antes de ejecutar cualquier comando.
"""

from __future__ import annotations

import sys

import typer

from cli import common, configs, doctor, github, ollama, packages, sync, system
from cli.setup import setup
from core.errors import SetupError
from core.logging_setup import setup_logging

app = typer.Typer(
    name="system-setup",
    no_args_is_help=True,
    help="System setup: dotfiles, packages, GitHub org tools, sync, ollama and host configuration.",
)

app.command("setup")(setup)
app.add_typer(configs.app, name="configs")
app.add_typer(packages.app, name="packages")
app.add_typer(github.app, name="github")
app.add_typer(sync.app, name="sync")
app.add_typer(ollama.app, name="ollama")
app.add_typer(system.app, name="system")
app.add_typer(doctor.app, name="doctor")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "--debug", "-v", help="Debug logging on stderr."),
) -> None:
    setup_logging(verbose=verbose)


def run() -> None:
    """Console-script entry point."""

    # Box-drawing and status glyphs break cp1252 Windows consoles (sync mirror runs there).
    if sys.platform == "win32":
        sys.stdout.reconfigure(encoding="utf-8")
        sys.stderr.reconfigure(encoding="utf-8")
    try:
        app()
    except SetupError as exc:
        common.console.print(f"[red]✖ {exc.message}[/red]")
        if exc.hint:
            common.console.print(f"[dim]{exc.hint}[/dim]")
        raise SystemExit(exc.exit_code) from exc


if __name__ == "__main__":
    run()
