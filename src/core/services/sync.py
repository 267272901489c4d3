"""Two-way directory synchronisation.

- `TwoWaySync`: rsync over SSH, push pass then pull pass, `--update` so the
  newer side wins and `--delete` so deletions are mirrored.
- `RobocopyMirror`: the Windows counterpart, two robocopy passes with `/XO`.

Exit codes follow the CLI contract: 1 usage, 2 tool failure, 3 connectivity.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from core.errors import ConnectivityError, MissingDependencyError, ToolError, UsageError
from core.interfaces.prompter import Prompter
from core.interfaces.reporter import Reporter
from core.interfaces.runner import CommandRunner

logger = logging.getLogger(__name__)

# Patterns never copied in either direction.
SYNC_EXCLUDES: tuple[str, ...] = (
    ".DS_Store",
    "Thumbs.db",
    ".Spotlight-V100",
    ".Trashes",
    ".TemporaryItems",
    ".fseventsd",
    "desktop.ini",
    ".svn/",
    ".~lock.*",
    "*.swp",
    "*.tmp",
    "*~",
)

RSYNC_OPTIONS: tuple[str, ...] = (
    "--archive",
    "--verbose",
    "--human-readable",
    "--hard-links",
    "--delete",
    "--update",
    "--partial",
    "--inplace",
    "--itemize-changes",
    "--compress",
    "--stats",
)

ROBOCOPY_OPTIONS: tuple[str, ...] = ("/E", "/XO", "/R:2", "/W:5", "/NP")

_REMOTE_RE = re.compile(r"^(?P<user>[^@]+@)?(?P<host>[^:]+):(?P<path>.+)$")


@dataclass(frozen=True)
class RemoteSpec:
    """`[user@]host:path` split into its parts."""

    raw: str
    user_host: str
    host: str
    path: str

    @classmethod
    def parse(cls, text: str) -> "RemoteSpec":
        match = _REMOTE_RE.match(text or "")
        if not match:
            raise UsageError(
                f"Invalid remote specification format: {text}",
                hint="Expected format: user@host:/path or host:/path",
            )
        user = match.group("user") or ""
        host = match.group("host")
        return cls(raw=text, user_host=f"{user}{host}", host=host, path=match.group("path"))


def rsync_options(*, backup: bool = False, stamp: str = "") -> list[str]:
    options = list(RSYNC_OPTIONS)
    if backup:
        options += ["--backup", f"--backup-dir=.{stamp}.bak"]
    options += [f"--exclude={pattern}" for pattern in SYNC_EXCLUDES]
    return options


def _with_slash(path: str) -> str:
    return path.rstrip("/") + "/"


@dataclass
class TwoWaySync:
    runner: CommandRunner
    prompter: Prompter
    reporter: Reporter
    local_dir: Path
    remote: str
    backup: bool = False
    log_file: Path | None = None
    audit: logging.Logger = logging.getLogger("system_setup.sync")
    clock: Callable[[], datetime] = datetime.now

    def _log(self, message: str) -> None:
        self.audit.info(message)

    def validate(self) -> RemoteSpec:
        """Local dir, remote spec, rsync on PATH, SSH reachable; raises on the first failure."""

        if not self.local_dir.is_dir():
            self._log(f"ERROR: Local directory does not exist: {self.local_dir}")
            raise UsageError(f"Local directory does not exist: {self.local_dir}")

        spec = RemoteSpec.parse(self.remote)

        if not self.runner.which("rsync"):
            self._log("ERROR: rsync not found in PATH")
            raise MissingDependencyError(["rsync"], hint="rsync is not installed. Please install it first.")

        self.reporter.info(f"Validating connectivity to {spec.host}...")
        self._log(f"Checking SSH connectivity to {spec.host}")
        try:
            result = self.runner.run(
                ["ssh", "-o", "BatchMode=yes", "-o", "ConnectTimeout=10", spec.user_host, "exit"],
                check=False,
            )
            reachable = result.returncode == 0
        except ToolError:
            reachable = False
        if not reachable:
            self._log(f"ERROR: SSH connectivity check failed for {spec.host}")
            raise ConnectivityError(
                f"Cannot connect to remote host: {spec.host}",
                hint="Verify SSH keys, that the host is reachable and that the user has permissions.",
            )
        self.reporter.success(f"Connected to {spec.host}")
        self._log(f"SSH connectivity verified for {spec.host}")
        return spec

    def describe(self) -> list[tuple[str, str]]:
        return [
            ("Local Directory", str(self.local_dir)),
            ("Remote Location", self.remote),
            ("Backup Enabled", str(self.backup).lower()),
            ("Excludes", f"{len(SYNC_EXCLUDES)} pattern(s)"),
            ("Log File", str(self.log_file) if self.log_file else "-"),
        ]

    def run(self) -> bool:
        """Validate, confirm and run both passes; False when the user cancels."""

        self.validate()

        self.reporter.header("Synchronization Configuration")
        for key, value in self.describe():
            self.reporter.info(f"{key}: {value}")

        if not self.prompter.confirm("Continue with synchronization?", default=True):
            self.reporter.warning("Synchronization cancelled by user")
            self._log("Synchronization cancelled by user")
            return False

        stamp = self.clock().strftime("%Y-%m-%d_%H-%M-%S")
        options = rsync_options(backup=self.backup, stamp=stamp)
        local = _with_slash(str(self.local_dir))

        self._log("==========================================")
        self._log(f"Starting two-way sync: {self.local_dir} <-> {self.remote}")
        self._log(f"Backup enabled: {str(self.backup).lower()}")

        self._pass(1, "Pushing changes from LOCAL ➜ REMOTE", "LOCAL -> REMOTE", [*options, local, self.remote])
        self._pass(
            2,
            "Pulling changes from REMOTE ➜ LOCAL",
            "REMOTE -> LOCAL",
            [*options, _with_slash(self.remote), str(self.local_dir)],
        )

        self.reporter.header("Synchronization Complete")
        self.reporter.success(
            f"Two-way sync completed successfully at {self.clock().strftime('%Y-%m-%d %H:%M:%S')}"
        )
        if self.backup:
            self.reporter.info(f"Backup directory: .{stamp}.bak (on both local and remote)")
        self._log("Two-way sync completed successfully")
        self._log("==========================================")
        return True

    def _pass(self, number: int, title: str, log_title: str, args: list[str]) -> None:
        self.reporter.header(f"Pass {number}: {title}")
        self._log(f"Pass {number}: {log_title}")
        result = self.runner.run(["rsync", *args], check=False, capture=False)
        if result.returncode != 0:
            self.reporter.error(f"Pass {number} failed with exit code {result.returncode}")
            self._log(f"ERROR: Pass {number} failed with exit code {result.returncode}")
            raise ToolError(f"rsync pass {number} failed", returncode=result.returncode)
        self.reporter.success(f"Pass {number} completed successfully")
        self._log(f"Pass {number} completed successfully")


@dataclass
class RobocopyMirror:
    """Two robocopy passes; exit codes below 8 mean success (bits 0-2 are informational)."""

    runner: CommandRunner
    reporter: Reporter
    local_dir: Path
    remote_dir: Path

    def command(self, source: Path, destination: Path) -> list[str]:
        files = [pattern for pattern in SYNC_EXCLUDES if not pattern.endswith("/")]
        dirs = [pattern.rstrip("/") for pattern in SYNC_EXCLUDES if pattern.endswith("/")]
        return [
            "robocopy",
            str(source),
            str(destination),
            *ROBOCOPY_OPTIONS,
            "/XF",
            *files,
            "/XD",
            *dirs,
        ]

    def run(self) -> None:
        if not self.runner.which("robocopy"):
            raise MissingDependencyError(["robocopy"], hint="robocopy ships with Windows.")
        if not self.local_dir.is_dir():
            raise UsageError(f"Local directory does not exist: {self.local_dir}")

        passes = (
            (1, "LOCAL ➜ REMOTE", self.local_dir, self.remote_dir),
            (2, "REMOTE ➜ LOCAL", self.remote_dir, self.local_dir),
        )
        for number, title, source, destination in passes:
            self.reporter.header(f"Pass {number}: {title}")
            result = self.runner.run(self.command(source, destination), check=False, capture=False)
            if result.returncode >= 8:
                self.reporter.error(f"Pass {number} failed with robocopy exit code {result.returncode}")
                raise ToolError(f"robocopy pass {number} failed", returncode=result.returncode)
            self.reporter.success(f"Pass {number} completed (robocopy exit code {result.returncode})")
