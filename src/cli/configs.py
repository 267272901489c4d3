"""`configs` command: nano, GNU screen and shell rc files."""

from __future__ import annotations

import os
from pathlib import Path

import typer

from cli import common
from core.domain.platform import ConfigScope, OSKind
from core.errors import UsageError
from core.services.config_updater import ConfigSession
from core.services.dotfiles import DotfilesConfigurator, nano_config_path, screen_config_path
from core.services.platform_info import detect_os, require_root

app = typer.Typer(no_args_is_help=True, help="Idempotent dotfile configuration (nano, screen, shell).")


def print_session_summary(session: ConfigSession) -> None:
    modified, backups = session.summary()
    reporter = common.reporter()
    reporter.header("Configuration Summary")
    if not modified:
        reporter.success("No changes needed: every setting is already configured")
        return
    reporter.info(f"Updated {len(modified)} file(s):")
    for path in modified:
        reporter.step(str(path))
    if backups:
        reporter.info(f"Created {len(backups)} backup(s):")
        for path in backups:
            reporter.step(str(path))


@app.command("apply")
def apply(
    scope: ConfigScope = typer.Option(ConfigScope.USER, "--scope", "-s", help="user (home dir) or system (system files, every user)."),
    nano: bool = typer.Option(True, "--nano/--no-nano", help="Configure nano."),
    screen: bool = typer.Option(True, "--screen/--no-screen", help="Configure GNU screen."),
    shell: bool = typer.Option(True, "--shell/--no-shell", help="Configure shell aliases (.bashrc / .zshrc)."),
    home: Path | None = typer.Option(None, "--home", help="Home directory for user scope (default: current user)."),
) -> None:
    """Apply the managed settings; re-running makes no further changes."""

    with common.exit_on_error():
        os_kind = detect_os()
        if os_kind is OSKind.UNKNOWN:
            raise UsageError("Unsupported operating system", hint="Supported: macOS and Linux.")
        if scope is ConfigScope.SYSTEM:
            require_root(os_kind, "System-wide configuration")

        runner = common.runner()
        reporter = common.reporter()
        session = ConfigSession(reporter=reporter, runner=runner, os_kind=os_kind)
        configurator = DotfilesConfigurator(
            session=session,
            os_kind=os_kind,
            screen_installed=runner.which("screen") is not None,
            term=os.environ.get("TERM", ""),
        )
        user_home = home or Path.home()

        reporter.info(f"Detected OS: {os_kind.label()} • scope: {scope.value}")
        if nano:
            configurator.configure_nano(nano_config_path(scope, os_kind, user_home))
        if screen:
            configurator.configure_screen(screen_config_path(scope, user_home))
        if shell:
            configurator.configure_shell(scope, home=user_home)

        print_session_summary(session)
