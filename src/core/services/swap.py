"""Swap file setup for Linux hosts (not containers)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from core.domain.platform import OSKind
from core.errors import ToolError
from core.interfaces.prompter import Prompter
from core.interfaces.reporter import Reporter
from core.interfaces.runner import CommandRunner
from core.services.config_updater import ConfigSession

logger = logging.getLogger(__name__)

SWAP_FILE = Path("/var/swapfile")


def read_ram_gb(meminfo: Path = Path("/proc/meminfo")) -> int:
    """Total RAM in whole GB (floor), from `MemTotal` in kB."""

    for line in meminfo.read_text(encoding="utf-8").splitlines():
        if line.startswith("MemTotal:"):
            return int(line.split()[1]) // 1024 // 1024
    raise ValueError(f"MemTotal not found in {meminfo}")


def recommended_swap_gb(ram_gb: int) -> int:
    """2x RAM up to 2 GB, 1.5x above; never less than 1 GB."""

    size = ram_gb * 2 if ram_gb <= 2 else (ram_gb * 3) // 2
    return max(size, 1)


@dataclass
class SwapConfigurator:
    runner: CommandRunner
    prompter: Prompter
    reporter: Reporter
    session: ConfigSession
    swap_file: Path = SWAP_FILE
    fstab: Path = Path("/etc/fstab")
    meminfo: Path = Path("/proc/meminfo")

    def active_swap(self) -> str:
        result = self.runner.run(["swapon", "--show"], check=False)
        return (result.stdout or "").strip()

    def run(self, *, os_kind: OSKind, in_container: bool) -> bool:
        """Create and enable the swap file; True when swap was configured."""

        if os_kind is not OSKind.LINUX:
            self.reporter.info("Swap configuration is only applicable to Linux systems")
            return False
        if in_container:
            self.reporter.info("Detected container environment: Swap configuration is not recommended inside containers")
            return False

        self.reporter.info("Checking swap configuration...")
        status = self.active_swap()
        if status:
            self.reporter.success("Swap is already enabled:")
            for line in status.splitlines():
                self.reporter.step(line)
            return False

        self.reporter.info("Swap is currently disabled")
        self.reporter.info("Recommended swap sizes: ≤2 GB RAM: 2x RAM; >2 GB RAM: 1.5x RAM")
        if not self.prompter.confirm("Would you like to set up swap?"):
            self.reporter.info("Keeping swap disabled (no changes made)")
            return False

        ram_gb = read_ram_gb(self.meminfo)
        swap_gb = recommended_swap_gb(ram_gb)
        self.reporter.info(f"Detected RAM: {ram_gb} GB")
        self.reporter.info(f"Calculated swap size: {swap_gb} GB ({swap_gb * 1024} MB)")

        if not self.create_swap_file(swap_gb):
            return False
        self.ensure_fstab_entry()
        self.reporter.info(f"Swap file: {self.swap_file} ({swap_gb} GB), activated on every boot")
        return True

    def create_swap_file(self, swap_gb: int) -> bool:
        target = str(self.swap_file)
        steps = (
            (["dd", "if=/dev/zero", f"of={target}", "bs=1M", f"count={swap_gb * 1024}"], f"Swap file created ({swap_gb} GB)", "Failed to create swap file"),
            (["chmod", "600", target], "Updated permissions on swap file (chmod)", "Failed to set permissions on swap file"),
            (["mkswap", target], "Formatted swap file (mkswap)", "Failed to format swap file"),
            (["swapon", target], "Swap enabled successfully", "Failed to enable swap"),
        )
        self.reporter.info(f"Creating swap file at {target}...")
        for cmd, done, failed in steps:
            try:
                self.runner.run(cmd)
            except ToolError as exc:
                logger.debug("%s: %s", failed, exc.stderr)
                self.reporter.error(failed)
                self.swap_file.unlink(missing_ok=True)
                return False
            self.reporter.success(done)
        return True

    def ensure_fstab_entry(self) -> None:
        entry = f"{self.swap_file} none swap sw 0 0"
        self.session.update_config_line(
            "fstab",
            self.fstab,
            re.escape(str(self.swap_file)) + r"\s",
            entry,
            "Swap entry in /etc/fstab",
        )
