"""OpenSSH server: on-demand `ssh.socket` activation instead of `ssh.service`."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.domain.platform import OSKind
from core.errors import ToolError
from core.interfaces.prompter import Prompter
from core.interfaces.reporter import Reporter
from core.interfaces.runner import CommandRunner

logger = logging.getLogger(__name__)

SSH_SERVICE = "ssh.service"
SSH_SOCKET = "ssh.socket"


@dataclass
class SSHSocketConfigurator:
    runner: CommandRunner
    prompter: Prompter
    reporter: Reporter

    def is_enabled(self, unit: str) -> bool:
        return self.runner.run(["systemctl", "is-enabled", unit], check=False).returncode == 0

    def _disable_service(self) -> bool:
        try:
            self.runner.run(["systemctl", "disable", "--now", SSH_SERVICE])
        except ToolError as exc:
            logger.debug("disable %s: %s", SSH_SERVICE, exc.stderr)
            return False
        self.reporter.success(f"{SSH_SERVICE} disabled and stopped")
        return True

    def run(self, os_kind: OSKind) -> bool:
        """Switch to socket activation; True when SSH ends up on `ssh.socket`."""

        if os_kind is not OSKind.LINUX:
            self.reporter.info("SSH socket configuration is only applicable to Linux systems with systemd")
            return False
        if not self.runner.which("systemctl"):
            self.reporter.warning("systemctl not found - cannot configure SSH socket (systemd required)")
            return False

        self.reporter.info("Checking OpenSSH Server configuration...")
        service_enabled = self.is_enabled(SSH_SERVICE)
        socket_enabled = self.is_enabled(SSH_SOCKET)

        if socket_enabled and service_enabled:
            self.reporter.warning(f"Both {SSH_SOCKET} and {SSH_SERVICE} are enabled (conflicting configuration)")
            if not self._disable_service():
                self.reporter.error(f"Could not disable {SSH_SERVICE}")
                return False
            self.reporter.success("SSH is now using socket-based activation only")
            return True
        if socket_enabled:
            self.reporter.success(f"SSH is already using socket-based activation ({SSH_SOCKET})")
            return True

        if service_enabled:
            self.reporter.step(f"Current state: {SSH_SERVICE} is enabled (traditional service-based activation)")
        else:
            self.reporter.step("Current state: SSH is not currently enabled via socket or service")
        self.reporter.info(f"{SSH_SOCKET} starts the daemon when a connection arrives; {SSH_SERVICE} keeps it running.")
        if not self.prompter.confirm(f"Would you like to configure and enable {SSH_SOCKET}?", default=True):
            self.reporter.info("Keeping current SSH configuration (no changes made)")
            return False

        if service_enabled and not self._disable_service():
            self.reporter.warning(f"Could not disable {SSH_SERVICE} (it may not be active)")

        if self.prompter.confirm(f"Open an editor to customise {SSH_SOCKET} (port, ListenStream)?", default=True):
            try:
                self.runner.run(["systemctl", "edit", SSH_SOCKET], capture=False)
            except ToolError:
                self.reporter.error(f"Failed to edit {SSH_SOCKET} configuration")
                return False
            self.reporter.success(f"{SSH_SOCKET} configuration saved")

        try:
            self.runner.run(["systemctl", "enable", "--now", SSH_SOCKET], capture=False)
        except ToolError:
            self.reporter.error(f"Failed to enable {SSH_SOCKET}")
            return False
        self.reporter.success(f"{SSH_SOCKET} enabled and started")
        self.runner.run(["systemctl", "status", SSH_SOCKET, "--no-pager", "--lines=10"], check=False, capture=False)
        self.reporter.info("SSH daemon will now start automatically when connections arrive")
        return True
