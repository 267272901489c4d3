"""Doctor command for environment diagnostics."""

from __future__ import annotations

import typer
from rich.table import Table

from adapters.github_client import GitHubClient, resolve_token
from cli import common
from cli.ui_components import print_banner
from core.config import AppSettings, write_user_env_vars
from core.errors import SetupError
from core.interfaces.runner import CommandRunner
from core.services.platform_info import detect_container, detect_os, detect_package_manager

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

TOOLS = ("git", "git-lfs", "gh", "rsync", "ssh", "screen", "ollama")


def _check_github(settings: AppSettings, runner: CommandRunner) -> tuple[str, str, str]:
    """(token source, status, details) for the GitHub row."""

    try:
        token, source = resolve_token(settings, runner)
    except SetupError as exc:
        return "-", "MISSING", exc.message
    try:
        with GitHubClient(token, settings=settings) as client:
            login = client.verify_auth()
    except SetupError as exc:
        return source, "FAIL", exc.message
    return source, "OK", f"Authenticated as {login}"


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()
    runner = common.runner()
    os_kind = detect_os()
    print_banner(common.console)

    table = Table(title="system-setup Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Platform
    table.add_row("OS", "OK" if os_kind.value != "unknown" else "FAIL", os_kind.label())
    table.add_row("Container", "INFO", "yes" if detect_container() else "no")
    manager = detect_package_manager(runner, os_kind)
    table.add_row("Package manager", "OK" if manager.value != "unknown" else "MISSING", manager.value)

    # Tools
    missing = []
    for tool in TOOLS:
        path = runner.which(tool)
        if not path:
            missing.append(tool)
        table.add_row(tool, "OK" if path else "MISSING", path or "not on PATH")

    # GitHub (best-effort)
    source, status, details = _check_github(settings, runner)
    table.add_row("GitHub token", status, f"{details} (source: {source})")

    common.console.print(table)

    if missing:
        common.console.print(f"\n[yellow]Note:[/yellow] Missing tools: {', '.join(missing)}")
    if status != "OK":
        common.console.print("\n[yellow]Note:[/yellow] Run `system-setup doctor setup-github` to store a token.")


@app.command(name="setup-github")
def setup_github() -> None:
    """Store a GitHub token in the user config .env."""

    token = typer.prompt("GitHub token", hide_input=True, confirmation_prompt=False).strip()
    if not token:
        raise typer.BadParameter("token is required")

    api_url = typer.prompt("GitHub API URL", default=AppSettings().github_api_url, show_default=True).strip()

    env_path = write_user_env_vars(
        {
            "SYSTEM_SETUP_GITHUB_TOKEN": token,
            "SYSTEM_SETUP_GITHUB_API_URL": api_url,
        }
    )

    common.console.print(f"[green]Saved GitHub config to:[/green] {env_path}")
