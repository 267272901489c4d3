"""`packages` command: required package check/install and the maintenance helper."""

from __future__ import annotations

import typer

from cli import common
from core.domain.platform import OSKind
from core.errors import UsageError
from core.services.packages import PackageHelper, PackageInstaller, PackageInventory
from core.services.platform_info import can_install_packages, detect_container, detect_os, detect_package_manager

app = typer.Typer(no_args_is_help=True, help="OS package management (apt / Homebrew).")


@app.command("check")
def check(
    yes: bool = typer.Option(False, "--yes", "-y", help="Install every missing package without asking."),
) -> None:
    """Report required packages and offer to install the missing ones."""

    with common.exit_on_error():
        os_kind = detect_os()
        if os_kind is OSKind.UNKNOWN:
            raise UsageError("Unsupported operating system", hint="Supported: macOS and Linux.")

        runner = common.runner()
        reporter = common.reporter()
        if os_kind is OSKind.LINUX and detect_container():
            reporter.info("Detected container environment")

        installer = PackageInstaller(
            runner=runner,
            prompter=common.prompter(assume_yes=yes),
            reporter=reporter,
            os_kind=os_kind,
            inventory=PackageInventory(runner=runner, os_kind=os_kind),
            can_install=can_install_packages(os_kind),
        )
        outcome = installer.check_and_install()
        for package, available in outcome.tracked().items():
            reporter.step(f"{package}: {'available' if available else 'not available'}")
        if not outcome.install_ok:
            raise typer.Exit(code=2)


@app.command("helper")
def helper() -> None:
    """Interactive maintenance menu (backports, residual configs, autoremove, cache)."""

    with common.exit_on_error():
        runner = common.runner()
        reporter = common.reporter()
        manager = detect_package_manager(runner, detect_os())
        prompter = common.prompter()
        menu = PackageHelper(
            runner=runner,
            prompter=prompter,
            reporter=reporter,
            manager=manager,
        )
        reporter.info(f"Detected package manager: {manager.value}")
        while True:
            reporter.header("Package Maintenance")
            for line in menu.menu():
                reporter.step(line)
            try:
                choice = prompter.ask("Choose an option (1-5)")
            except typer.Abort:
                break
            if not menu.run_choice(choice):
                break
