"""Timezone check: only hosts still on UTC are offered a change."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from core.domain.platform import OSKind
from core.errors import ToolError, UsageError
from core.interfaces.prompter import Prompter
from core.interfaces.reporter import Reporter
from core.interfaces.runner import CommandRunner
from core.services.platform_info import elevated

logger = logging.getLogger(__name__)

PRESETS: dict[str, tuple[str, str]] = {
    "1": ("Eastern", "America/New_York"),
    "2": ("Central", "America/Chicago"),
    "3": ("Mountain", "America/Denver"),
    "4": ("Pacific", "America/Los_Angeles"),
}


@dataclass
class TimezoneConfigurator:
    runner: CommandRunner
    prompter: Prompter
    reporter: Reporter
    os_kind: OSKind
    localtime: Path = Path("/etc/localtime")

    def current(self) -> str:
        if self.os_kind is OSKind.MACOS:
            if self.localtime.is_symlink():
                target = os.readlink(self.localtime)
                return target.split("/zoneinfo/", 1)[-1]
            result = self.runner.run(elevated(["systemsetup", "-gettimezone"]), check=False)
            return (result.stdout or "").replace("Time Zone: ", "").strip() or "unknown"
        result = self.runner.run(["timedatectl", "show", "--property=Timezone", "--value"], check=False)
        return (result.stdout or "").strip() or "unknown"

    def list_all(self) -> list[str]:
        if self.os_kind is OSKind.MACOS:
            output = self.runner.run(["systemsetup", "-listtimezones"], check=False).stdout or ""
            return [line.strip() for line in output.splitlines()[1:] if line.strip()]
        output = self.runner.run(["timedatectl", "list-timezones"], check=False).stdout or ""
        return [line.strip() for line in output.splitlines() if line.strip()]

    def set(self, zone: str) -> None:
        if self.os_kind is OSKind.MACOS:
            self.runner.run(elevated(["systemsetup", "-settimezone", zone]))
        else:
            self.runner.run(elevated(["timedatectl", "set-timezone", zone]))

    def choose(self) -> str:
        for key, (label, zone) in PRESETS.items():
            self.reporter.step(f"{key}) {label:<9}({zone})")
        self.reporter.step("5) Other    (show all timezones)")
        choice = self.prompter.ask("Enter choice (1-5)").strip()
        if choice in PRESETS:
            return PRESETS[choice][1]
        if choice == "5":
            for zone in self.list_all():
                self.reporter.step(zone)
            return self.prompter.ask("Enter timezone (e.g., Europe/London)").strip()
        raise UsageError("Invalid choice. Keeping timezone as UTC.")

    def run(self) -> str | None:
        """New timezone when changed, else None."""

        zone = self.current()
        self.reporter.info("Checking timezone configuration...")
        if "UTC" not in zone:
            self.reporter.success(f"Timezone is already configured: {zone}")
            return None

        self.reporter.warning(f"System timezone is set to UTC: {zone}")
        if not self.prompter.confirm("Would you like to update the timezone?"):
            self.reporter.info("Keeping timezone as UTC")
            return None

        new_zone = self.choose()
        if not new_zone:
            raise UsageError("No timezone entered. Keeping timezone as UTC.")

        self.reporter.info(f"Setting timezone to: {new_zone}")
        try:
            self.set(new_zone)
        except ToolError as exc:
            raise ToolError(f"Failed to set timezone: {exc.message}", returncode=exc.returncode) from exc
        verified = self.current()
        self.reporter.success(f"Timezone updated to: {verified}")
        return verified
