"""`system` command: static IP, swap, timezone, SSH socket, /etc/issue, APT sources, networkd and self-update."""

from __future__ import annotations

import sys
from pathlib import Path

import typer

from adapters.http_client import build_client
from cli import common
from cli.ui_components import build_diff_panel, build_update_summary
from core.config import AppSettings
from core.domain.platform import OSKind
from core.errors import UsageError
from core.services.apt_sources import AptSourcesModernizer
from core.services.config_updater import ConfigSession
from core.services.issue_banner import IssueBannerConfigurator
from core.services.networkd_migration import NetworkdMigrator
from core.services.openssh import SSHSocketConfigurator
from core.services.platform_info import detect_container, detect_os, is_root, require_root
from core.services.self_update import ManagedFile, SelfUpdater, exec_restart
from core.services.static_ip import StaticIPConfigurator, parse_cidr
from core.services.swap import SwapConfigurator
from core.services.timezone import TimezoneConfigurator

app = typer.Typer(no_args_is_help=True, help="Host-level configuration.")


@app.command("static-ip")
def static_ip(
    address: str | None = typer.Option(None, "--address", help="a.b.c.d[/prefix]; prompts when omitted."),
) -> None:
    """Add a secondary static IPv4 address (systemd-networkd, containers only)."""

    with common.exit_on_error():
        reporter = common.reporter()
        os_kind = detect_os()
        if os_kind is not OSKind.LINUX or not detect_container():
            reporter.info("Static IP configuration only applies to Linux containers")
            return
        require_root(os_kind, "Static IP configuration")

        parsed = None
        if address is not None:
            try:
                parsed = parse_cidr(address)
            except ValueError as exc:
                raise UsageError(str(exc), hint="Use CIDR notation, e.g. 192.168.1.100/24") from exc

        runner = common.runner()
        configurator = StaticIPConfigurator(
            runner=runner,
            prompter=common.prompter(),
            reporter=reporter,
            session=ConfigSession(reporter=reporter, runner=runner, os_kind=os_kind),
        )
        configurator.run(address=parsed)


@app.command("swap")
def swap(
    yes: bool = typer.Option(False, "--yes", "-y", help="Create swap without asking."),
) -> None:
    """Create and enable /var/swapfile when no swap is active (Linux hosts)."""

    with common.exit_on_error():
        reporter = common.reporter()
        runner = common.runner()
        os_kind = detect_os()
        in_container = detect_container()
        if os_kind is OSKind.LINUX and not in_container:
            require_root(os_kind, "Swap configuration")
        configurator = SwapConfigurator(
            runner=runner,
            prompter=common.prompter(assume_yes=yes),
            reporter=reporter,
            session=ConfigSession(reporter=reporter, runner=runner, os_kind=os_kind),
        )
        configurator.run(os_kind=os_kind, in_container=in_container)


@app.command("timezone")
def timezone() -> None:
    """Offer to change the timezone when the host is still on UTC."""

    with common.exit_on_error():
        os_kind = detect_os()
        if os_kind is OSKind.UNKNOWN:
            raise UsageError("Unsupported operating system", hint="Supported: macOS and Linux.")
        TimezoneConfigurator(
            runner=common.runner(),
            prompter=common.prompter(),
            reporter=common.reporter(),
            os_kind=os_kind,
        ).run()


@app.command("update")
def update(
    files: list[str] = typer.Argument(..., help="Paths relative to the remote base URL, e.g. system-setup/utils.sh"),
    directory: Path = typer.Option(Path("."), "--dir", help="Local directory mirroring the remote layout."),
    base_url: str | None = typer.Option(None, "--base-url", help="Remote base URL (default from settings)."),
    restart: bool = typer.Option(False, "--restart", help="Re-run this command after an update."),
) -> None:
    """Compare managed files with the remote copies; replace each one only after confirmation."""

    settings = AppSettings()
    with common.exit_on_error():
        managed = [ManagedFile(remote_path=name, local_path=directory / name) for name in files]
        with build_client(settings) as client:
            updater = SelfUpdater(
                client=client,
                prompter=common.prompter(),
                reporter=common.reporter(),
                base_url=base_url or settings.remote_base_url,
                show_diff=lambda name, diff: common.console.print(build_diff_panel(name, diff)),
                restart=exec_restart if restart else None,
            )
            summary = updater.run(managed, argv=sys.argv)

        common.console.print(
            build_update_summary(summary.up_to_date, summary.updated, summary.skipped, summary.failed)
        )
        if summary.failed:
            raise typer.Exit(code=2)


@app.command("ssh-socket")
def ssh_socket() -> None:
    """Switch OpenSSH from ssh.service to on-demand ssh.socket activation."""

    with common.exit_on_error():
        os_kind = detect_os()
        if os_kind is OSKind.LINUX:
            require_root(os_kind, "OpenSSH socket configuration")
        SSHSocketConfigurator(
            runner=common.runner(),
            prompter=common.prompter(),
            reporter=common.reporter(),
        ).run(os_kind)


@app.command("issue")
def issue(
    issue_file: Path = typer.Option(Path("/etc/issue"), "--file", help="Login banner file to update."),
) -> None:
    """Keep the network interface box in /etc/issue in line with the current interfaces."""

    with common.exit_on_error():
        reporter = common.reporter()
        runner = common.runner()
        os_kind = detect_os()
        in_container = detect_container()
        if os_kind is OSKind.LINUX and not in_container:
            require_root(os_kind, f"{issue_file} configuration")
        session = ConfigSession(reporter=reporter, runner=runner, os_kind=os_kind)
        IssueBannerConfigurator(reporter=reporter, session=session, issue_file=issue_file).run(
            os_kind=os_kind, in_container=in_container
        )


@app.command("apt-sources")
def apt_sources() -> None:
    """Convert APT sources to DEB822 and enable updates, backports and every component."""

    with common.exit_on_error():
        reporter = common.reporter()
        runner = common.runner()
        os_kind = detect_os()
        AptSourcesModernizer(
            runner=runner,
            prompter=common.prompter(),
            reporter=reporter,
            session=ConfigSession(reporter=reporter, runner=runner, os_kind=os_kind),
        ).run(os_kind=os_kind, privileged=is_root())


@app.command("migrate-networkd")
def migrate_networkd(
    interfaces_file: Path = typer.Option(Path("/etc/network/interfaces"), "--interfaces", help="ifupdown configuration to migrate."),
) -> None:
    """Move ifupdown configuration to systemd-networkd, with verification and rollback."""

    with common.exit_on_error():
        reporter = common.reporter()
        runner = common.runner()
        os_kind = detect_os()
        if os_kind is not OSKind.LINUX:
            reporter.info("Network migration only applies to Linux")
            return
        require_root(os_kind, "Network migration")
        migrator = NetworkdMigrator(
            runner=runner,
            prompter=common.prompter(),
            reporter=reporter,
            session=ConfigSession(reporter=reporter, runner=runner, os_kind=os_kind),
            interfaces_file=interfaces_file,
        )
        migrator.run(os_kind=os_kind, in_container=detect_container())
