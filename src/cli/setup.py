"""`setup` command: every host step, packages and dotfiles in one run."""

from __future__ import annotations

import os
from pathlib import Path

import typer

from cli import common
from cli.configs import print_session_summary
from core.domain.platform import ConfigScope
from core.services.apt_sources import AptSourcesModernizer
from core.services.config_updater import ConfigSession
from core.services.dotfiles import DotfilesConfigurator
from core.services.issue_banner import IssueBannerConfigurator
from core.services.networkd_migration import NetworkdMigrator
from core.services.openssh import SSHSocketConfigurator
from core.services.packages import PackageInstaller, PackageInventory
from core.services.platform_info import can_install_packages, detect_container, detect_os, is_root
from core.services.setup_flow import SetupFlow
from core.services.static_ip import StaticIPConfigurator
from core.services.swap import SwapConfigurator


def setup(
    scope: ConfigScope | None = typer.Option(None, "--scope", "-s", help="user or system; asked when omitted."),
    home: Path | None = typer.Option(None, "--home", help="Home directory for user scope (default: current user)."),
) -> None:
    """Network, APT sources, packages, dotfiles, then swap / SSH / login banner for system scope."""

    with common.exit_on_error():
        os_kind = detect_os()
        runner = common.runner()
        reporter = common.reporter()
        prompter = common.prompter()
        session = ConfigSession(reporter=reporter, runner=runner, os_kind=os_kind)
        services = dict(runner=runner, prompter=prompter, reporter=reporter)

        flow = SetupFlow(
            reporter=reporter,
            prompter=prompter,
            os_kind=os_kind,
            in_container=detect_container(),
            privileged=is_root(),
            home=home or Path.home(),
            packages=PackageInstaller(
                **services,
                os_kind=os_kind,
                inventory=PackageInventory(runner=runner, os_kind=os_kind),
                can_install=can_install_packages(os_kind),
            ),
            dotfiles=DotfilesConfigurator(session=session, os_kind=os_kind, term=os.environ.get("TERM", "")),
            networkd=NetworkdMigrator(**services, session=session),
            static_ip=StaticIPConfigurator(**services, session=session),
            apt_sources=AptSourcesModernizer(**services, session=session),
            swap=SwapConfigurator(**services, session=session),
            ssh=SSHSocketConfigurator(**services),
            issue=IssueBannerConfigurator(reporter=reporter, session=session),
        )
        flow.run(scope)
        print_session_summary(session)
