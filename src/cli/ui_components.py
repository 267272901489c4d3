"""CLI UI components (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en varios comandos (resúmenes, paneles de config).
"""

from __future__ import annotations

from typing import Iterable

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from core.domain.models import CleanupStats, CopyStats

_TAGS = {
    "info": ("[ INFO    ]", "blue"),
    "success": ("[ SUCCESS ]", "green"),
    "warning": ("[ WARNING ]", "yellow"),
    "error": ("[ ERROR   ]", "red"),
    "backup": ("[ BACKUP  ]", "magenta"),
    "dry_run": ("[ DRY-RUN ]", "cyan"),
}


class ConsoleReporter:
    """`Reporter` that prints tagged status lines on a Rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def _line(self, kind: str, message: str) -> None:
        tag, style = _TAGS[kind]
        text = Text()
        text.append(tag, style=f"bold {style}")
        text.append(" ")
        text.append(message)
        self.console.print(text)

    def info(self, message: str) -> None:
        self._line("info", message)

    def success(self, message: str) -> None:
        self._line("success", message)

    def warning(self, message: str) -> None:
        self._line("warning", message)

    def error(self, message: str) -> None:
        self._line("error", message)

    def backup(self, message: str) -> None:
        self._line("backup", message)

    def dry_run(self, message: str) -> None:
        self._line("dry_run", message)

    def step(self, message: str) -> None:
        self.console.print(Text(f"            {message}", style="dim"))

    def header(self, title: str) -> None:
        self.console.print()
        self.console.rule(Text(title, style="bold cyan"), align="left", style="cyan")


def print_banner(console: Console) -> None:
    """Print the welcome banner.

    Por qué aquí:
    - Evita dependencias circulares (main <-> sub-comandos).
    - Permite omitir el banner en ejecuciones no interactivas.
    """

    title = Text("system-setup", style="bold cyan")
    subtitle = Text("Dotfiles • Packages • GitHub orgs • Sync", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_config_panel(title: str, rows: Iterable[tuple[str, str]]) -> Panel:
    """Key/value panel printed before destructive or long-running work."""

    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    for key, value in rows:
        table.add_row(f"{key}:", value)
    return Panel(table, title=Text(title, style="bold yellow"), border_style="yellow")


def build_diff_panel(name: str, diff: str) -> Panel:
    """Unified diff between the local file and its remote copy."""

    return Panel(
        Syntax(diff or "(empty)", "diff", word_wrap=True),
        title=f"Δ detected in {name}",
        subtitle=name,
        border_style="cyan",
    )


def _counter_table(title: str, rows: Iterable[tuple[str, int]]) -> Table:
    table = Table(title=title)
    table.add_column("Item", style="cyan", no_wrap=True)
    table.add_column("Count", style="white", justify="right")
    for label, value in rows:
        table.add_row(label, str(value))
    return table


def build_copy_summary(stats: CopyStats) -> Table:
    return _counter_table(
        "Org Copy Summary",
        [
            ("Repositories processed", stats.repos_processed),
            ("Repositories created", stats.repos_created),
            ("Repositories failed", stats.repos_failed),
            ("Wikis copied", stats.wikis_copied),
            ("Labels copied", stats.labels_copied),
            ("Milestones copied", stats.milestones_copied),
            ("Issues copied", stats.issues_copied),
            ("Issues skipped (duplicates)", stats.issues_skipped),
            ("Issue comments copied", stats.issue_comments_copied),
            ("PRs archived", stats.prs_archived),
            ("PR comments copied", stats.pr_comments_copied),
            ("Discussions copied", stats.discussions_copied),
            ("Discussion comments copied", stats.discussion_comments_copied),
        ],
    )


def build_repo_cleanup_summary(stats: CleanupStats, *, execute: bool) -> Table:
    deleted = ("Repositories deleted", stats.repos_deleted) if execute else ("Repositories that would be deleted", stats.repos_processed)
    return _counter_table(
        "Summary",
        [
            ("Repositories processed", stats.repos_processed),
            deleted,
            ("Repositories failed", stats.repos_failed),
        ],
    )


def build_issue_cleanup_summary(stats: CleanupStats) -> Table:
    return _counter_table(
        "Summary",
        [
            ("Repositories processed", stats.repos_processed),
            ("Issues found", stats.issues_found),
            ("Issues deleted", stats.issues_deleted),
            ("Issues closed", stats.issues_closed),
            ("Issues locked", stats.issues_locked),
            ("Issues failed", stats.issues_failed),
        ],
    )


def build_update_summary(up_to_date: int, updated: int, skipped: int, failed: int) -> Table:
    return _counter_table(
        "Update Summary",
        [
            ("Up-to-date", up_to_date),
            ("Updated", updated),
            ("Skipped", skipped),
            ("Failed", failed),
        ],
    )
