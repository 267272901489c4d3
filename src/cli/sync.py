"""`sync` command: two-way rsync over SSH and the robocopy mirror."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from cli import common
from core.config import AppSettings
from core.logging_setup import attach_file_log
from core.services.sync import RobocopyMirror, TwoWaySync

app = typer.Typer(no_args_is_help=True, help="Two-way directory synchronisation.")


@app.command("two-way")
def two_way(
    local_dir: Path = typer.Argument(..., help="Local directory."),
    remote: str = typer.Argument(..., help="Remote location: [user@]host:/path"),
    backup: bool = typer.Option(False, "--backup", help="Keep replaced files in .<timestamp>.bak on both sides."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
    log_file: Path | None = typer.Option(None, "--log-file", help="Audit log (default: ~/.rsync-two-way.log)."),
) -> None:
    """Push LOCAL ➜ REMOTE, then pull REMOTE ➜ LOCAL (newer side wins, deletions mirrored)."""

    settings = AppSettings()
    audit = logging.getLogger("system_setup.sync")
    path = (log_file or settings.rsync_log_file).expanduser()
    handler = attach_file_log(audit, path)
    try:
        with common.exit_on_error():
            syncer = TwoWaySync(
                runner=common.runner(),
                prompter=common.prompter(assume_yes=yes),
                reporter=common.reporter(),
                local_dir=local_dir,
                remote=remote,
                backup=backup,
                log_file=path,
                audit=audit,
            )
            syncer.run()
    finally:
        audit.removeHandler(handler)
        handler.close()


@app.command("mirror")
def mirror(
    local_dir: Path = typer.Argument(..., help="Local directory."),
    remote_dir: Path = typer.Argument(..., help="Remote directory (UNC path or mapped drive)."),
) -> None:
    """Two robocopy passes (Windows); newer files win, nothing is deleted."""

    with common.exit_on_error():
        RobocopyMirror(
            runner=common.runner(),
            reporter=common.reporter(),
            local_dir=local_dir,
            remote_dir=remote_dir,
        ).run()
