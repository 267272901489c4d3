"""Full machine setup in one run.

Por qué aquí:
- Los pasos de host (red, fuentes apt, paquetes) deciden qué pueden tocar los
  pasos de dotfiles y servicios, así que su orden vive en un solo lugar.
- Cada paso es un servicio inyectado; esta clase solo los encadena y condiciona
  nano / screen / OpenSSH a lo que dejó instalado el paso de paquetes.

Order: networkd migration, static IP (containers), apt sources, packages,
plan, scope, dotfiles, then for system scope swap, ssh.socket and /etc/issue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from core.domain.platform import ConfigScope, OSKind
from core.errors import PrivilegeError, ToolError, UsageError
from core.interfaces.prompter import Prompter
from core.interfaces.reporter import Reporter
from core.services.dotfiles import DotfilesConfigurator, nano_config_path, screen_config_path
from core.services.packages import InstallOutcome

logger = logging.getLogger(__name__)

SCOPE_CHOICES = {"1": ConfigScope.USER, "2": ConfigScope.SYSTEM}


@dataclass
class SetupResult:
    scope: ConfigScope
    packages: InstallOutcome
    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class SetupFlow:
    reporter: Reporter
    prompter: Prompter
    os_kind: OSKind
    in_container: bool
    privileged: bool
    home: Path
    packages: Any
    dotfiles: DotfilesConfigurator
    networkd: Any = None
    static_ip: Any = None
    apt_sources: Any = None
    swap: Any = None
    ssh: Any = None
    issue: Any = None

    def _step(self, result: SetupResult, name: str, action: Callable[[], object]) -> None:
        """Run one optional step; a failing external command does not stop the setup."""

        try:
            action()
        except ToolError as exc:
            logger.debug("%s failed: %s", name, exc.stderr)
            self.reporter.error(f"{name} failed: {exc.message}. Continuing...")
            result.failed.append(name)
            return
        result.completed.append(name)

    def _privileged_step(self, result: SetupResult, name: str, action: Callable[[], object]) -> None:
        if not self.privileged:
            self.reporter.warning(f"Skipping {name} (requires root privileges)")
            return
        self._step(result, name, action)

    def choose_scope(self, scope: ConfigScope | None) -> ConfigScope:
        if scope is None:
            self.reporter.header("Configuration Scope")
            self.reporter.step("1) User-specific (current user only)")
            self.reporter.step("2) System-wide (all users)")
            choice = self.prompter.ask("Enter choice (1-2)")
            if choice not in SCOPE_CHOICES:
                raise UsageError("Invalid choice. Aborting.", hint="Enter 1 (user) or 2 (system).")
            scope = SCOPE_CHOICES[choice]
        if scope is ConfigScope.SYSTEM and self.os_kind is OSKind.LINUX and not self.privileged:
            raise PrivilegeError(
                "System-wide configuration requires root privileges on Linux",
                hint="Re-run with sudo, or choose user scope.",
            )
        return scope

    def show_plan(self, tracked: dict[str, bool]) -> None:
        self.reporter.header("Configuration Plan")
        for package, available in tracked.items():
            if available:
                self.reporter.success(f"{package} will be configured")
            else:
                self.reporter.warning(f"{package} is not installed - skipping")
        self.reporter.success("shell aliases will be configured")

    def run(self, scope: ConfigScope | None = None) -> SetupResult:
        if self.os_kind is OSKind.UNKNOWN:
            raise UsageError("Unsupported operating system", hint="Supported: macOS and Linux.")
        self.reporter.info(f"Detected OS: {self.os_kind.label()}")
        if self.in_container:
            self.reporter.info("Detected container environment")

        pending = SetupResult(scope=ConfigScope.USER, packages=InstallOutcome())
        is_linux = self.os_kind is OSKind.LINUX

        if is_linux and self.networkd is not None:
            self._privileged_step(
                pending,
                "network migration",
                lambda: self.networkd.run(os_kind=self.os_kind, in_container=self.in_container),
            )
        if is_linux and self.in_container and self.static_ip is not None:
            self._privileged_step(pending, "static IP configuration", lambda: self.static_ip.run())
        if is_linux and self.apt_sources is not None:
            self._step(
                pending,
                "APT sources modernization",
                lambda: self.apt_sources.run(os_kind=self.os_kind, privileged=self.privileged),
            )

        outcome = self.packages.check_and_install()
        if not outcome.install_ok:
            self.reporter.error("Package management failed. Continuing with configuration for installed packages...")
        tracked = outcome.tracked()
        self.show_plan(tracked)

        result = SetupResult(
            scope=self.choose_scope(scope),
            packages=outcome,
            completed=pending.completed,
            failed=pending.failed,
        )
        self.reporter.info(f"Configuring for scope: {result.scope.value}")

        self.dotfiles.screen_installed = tracked.get("screen", False)
        if tracked.get("nano"):
            self.dotfiles.configure_nano(nano_config_path(result.scope, self.os_kind, self.home))
            result.completed.append("nano")
        if tracked.get("screen"):
            self.dotfiles.configure_screen(screen_config_path(result.scope, self.home))
            result.completed.append("screen")
        self.dotfiles.configure_shell(result.scope, home=self.home)
        result.completed.append("shell")

        if result.scope is ConfigScope.SYSTEM:
            if self.swap is not None:
                self._step(
                    result,
                    "swap configuration",
                    lambda: self.swap.run(os_kind=self.os_kind, in_container=self.in_container),
                )
            if self.ssh is not None:
                if tracked.get("openssh-server"):
                    self._step(result, "OpenSSH Server configuration", lambda: self.ssh.run(self.os_kind))
                else:
                    self.reporter.info("Skipping OpenSSH Server configuration (not installed)")
            if self.issue is not None:
                self._step(
                    result,
                    "/etc/issue configuration",
                    lambda: self.issue.run(os_kind=self.os_kind, in_container=self.in_container),
                )

        self.reporter.success("Setup complete!")
        return result
