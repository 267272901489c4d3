"""Shared plumbing for the Typer sub-commands.

Por qué aquí:
- Un único lugar convierte `SetupError` en una línea roja más el código de salida.
- Los comandos construyen reporter/prompter/runner siempre de la misma forma.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer
from rich.console import Console

from adapters.process import SubprocessRunner
from adapters.prompts import AssumeYesPrompter, TyperPrompter
from cli.ui_components import ConsoleReporter
from core.errors import SetupError
from core.interfaces.prompter import Prompter

console = Console()


def reporter() -> ConsoleReporter:
    return ConsoleReporter(console)


def prompter(*, assume_yes: bool = False) -> Prompter:
    return AssumeYesPrompter() if assume_yes else TyperPrompter()


def runner() -> SubprocessRunner:
    return SubprocessRunner()


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Print a `SetupError` (message and hint) and exit with its code."""

    try:
        yield
    except SetupError as exc:
        console.print(f"[red]✖ {exc.message}[/red]")
        if exc.hint:
            console.print(f"[dim]{exc.hint}[/dim]")
        raise typer.Exit(code=exc.exit_code) from exc
