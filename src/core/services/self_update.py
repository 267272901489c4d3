"""Self-update of managed files from the remote base URL.

Flow per file: download (no-cache) → validate → compare → show unified diff →
ask → replace. Downloaded content stays in memory until the user confirms;
nothing is written or executed before that.
"""

from __future__ import annotations

import difflib
import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Sequence

import httpx

from adapters.http_client import NO_CACHE_HEADERS
from core.interfaces.prompter import Prompter
from core.interfaces.reporter import Reporter

logger = logging.getLogger(__name__)

UPDATED_MARKER = "SYSTEM_SETUP_UPDATED"
SHEBANG_WINDOW = 10


class UpdateOutcome(str, Enum):
    UP_TO_DATE = "up-to-date"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ManagedFile:
    """`remote_path` relative to the base URL, mirrored at `local_path`."""

    remote_path: str
    local_path: Path

    @property
    def is_script(self) -> bool:
        return self.remote_path.endswith(".sh")


@dataclass
class UpdateSummary:
    up_to_date: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    updated_files: list[Path] = field(default_factory=list)

    def record(self, outcome: UpdateOutcome, path: Path) -> None:
        if outcome is UpdateOutcome.UP_TO_DATE:
            self.up_to_date += 1
        elif outcome is UpdateOutcome.UPDATED:
            self.updated += 1
            self.updated_files.append(path)
        elif outcome is UpdateOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1


def has_shebang(content: str) -> bool:
    return any(line.startswith("#!/") for line in content.splitlines()[:SHEBANG_WINDOW])


def unified_diff(local: str, remote: str, name: str) -> str:
    lines = difflib.unified_diff(
        local.splitlines(keepends=True),
        remote.splitlines(keepends=True),
        fromfile=f"{name} (local)",
        tofile=f"{name} (remote)",
    )
    return "".join(lines)


def already_restarted(environ: Mapping[str, str] | None = None) -> bool:
    environ = os.environ if environ is None else environ
    return environ.get(UPDATED_MARKER, "0") == "1"


@dataclass
class SelfUpdater:
    """Compare managed files with their remote copies and replace them on confirmation.

    `show_diff` renders the diff (Rich panel in the CLI); `restart` replaces the
    process and is only called after at least one confirmed update.
    """

    client: httpx.Client
    prompter: Prompter
    reporter: Reporter
    base_url: str
    show_diff: Callable[[str, str], None] = lambda name, diff: None
    restart: Callable[[Sequence[str]], None] | None = None

    def download(self, item: ManagedFile) -> str | None:
        url = f"{self.base_url.rstrip('/')}/{item.remote_path}"
        self.reporter.info(f"Fetching {item.remote_path}...")
        self.reporter.step(f"▶ {url}...")
        try:
            response = self.client.get(url, headers=NO_CACHE_HEADERS)
        except httpx.HTTPError as exc:
            logger.debug("download failed for %s: %s", url, exc)
            self.reporter.error("✖ Download failed")
            return None

        if response.status_code == 429:
            self.reporter.error("✖ Rate limited by GitHub (HTTP 429)")
            return None
        if response.status_code != 200:
            self.reporter.error(f"✖ HTTP {response.status_code} error")
            return None

        content = response.text
        if item.is_script and not has_shebang(content):
            self.reporter.error("✖ Invalid content received (not a script)")
            return None
        return content

    def update_file(self, item: ManagedFile) -> UpdateOutcome:
        remote = self.download(item)
        if remote is None:
            self.reporter.step(f"(skipping {item.remote_path})")
            return UpdateOutcome.FAILED

        local = item.local_path.read_text(encoding="utf-8") if item.local_path.exists() else ""
        if local == remote:
            self.reporter.success(f"- {item.remote_path} is already up-to-date")
            return UpdateOutcome.UP_TO_DATE

        self.show_diff(item.remote_path, unified_diff(local, remote, item.remote_path))
        if not self.prompter.confirm(f"→ Overwrite local {item.remote_path} with remote copy?", default=True):
            self.reporter.warning(f"⚠ Skipped {item.remote_path}")
            return UpdateOutcome.SKIPPED

        item.local_path.parent.mkdir(parents=True, exist_ok=True)
        item.local_path.write_text(remote, encoding="utf-8")
        if item.is_script:
            item.local_path.chmod(0o755)
        self.reporter.success(f"✓ Replaced {item.remote_path}")
        return UpdateOutcome.UPDATED

    def run(self, files: Sequence[ManagedFile], *, argv: Sequence[str] | None = None) -> UpdateSummary:
        """Process every file (failures do not stop the loop), then restart when asked and something changed."""

        summary = UpdateSummary()
        self.reporter.info("Checking for updates...")
        for item in files:
            summary.record(self.update_file(item), item.local_path)

        if summary.updated and self.restart is not None and argv is not None and not already_restarted():
            self.reporter.success(f"✓ {summary.updated} file(s) updated - restarting...")
            os.environ[UPDATED_MARKER] = "1"
            self.restart(argv)
        return summary


def exec_restart(argv: Sequence[str]) -> None:
    """Re-run the current interpreter with `argv`."""

    os.execv(sys.executable, [sys.executable, *argv])
