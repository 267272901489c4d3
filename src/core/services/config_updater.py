"""Idempotent updates of line-oriented configuration files.

Por qué aquí:
- nano, screen, los rc del shell, fstab y las unidades systemd se editan con la
  misma regla "buscar la clave, comparar, comentar, añadir".
- Una `ConfigSession` recuerda qué ficheros ya tienen backup y cabecera, así
  que cada ejecución toca cada fichero una sola vez.

Old values are never deleted: they are commented out in place with a
`# Replaced by system-setup on <date>` suffix and the new line is appended.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable

from core.domain.models import ChangeKind
from core.domain.platform import OSKind
from core.interfaces.reporter import Reporter
from core.interfaces.runner import CommandRunner
from core.services.platform_info import detect_os, needs_elevation

logger = logging.getLogger(__name__)

MANAGED_BY = "system-setup"

HEADER_TITLES: dict[str, str] = {
    "nano": "nano configuration",
    "screen": "GNU screen configuration",
    "shell": "Shell configuration",
    "fstab": "Swap file",
    "network": "systemd-networkd configuration",
}


def backup_name(path: Path, when: datetime) -> Path:
    return path.with_name(f"{path.name}.backup.{when.strftime('%Y%m%d_%H%M%S')}.bak")


def _key_regex(pattern: str) -> re.Pattern[str]:
    return re.compile(rf"^\s*{pattern}")


def config_exists(path: Path, pattern: str) -> bool:
    """True when any line of `path` matches `^\\s*<pattern>`."""

    if not path.is_file():
        return False
    regex = _key_regex(pattern)
    return any(regex.search(line) for line in path.read_text(encoding="utf-8", errors="replace").splitlines())


def get_config_value(path: Path, setting: str) -> str | None:
    """Text after `setting` on the first line that starts with it."""

    if not path.is_file():
        return None
    regex = re.compile(rf"^\s*{re.escape(setting)}(?:\s+|=)?(.*)$")
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        match = regex.match(line)
        if match:
            return match.group(1).strip()
    return None


def setting_pattern(setting: str) -> str:
    """Regex matching a setting key regardless of its value.

    `set tabsize` must not match `set tabsizex`, so the key is closed by
    whitespace or end of line. Words of the key may be separated by any run
    of blanks, so a tab-separated `set tabsize` line is the same key.
    """

    key = r"\s+".join(re.escape(word) for word in setting.split())
    return rf"{key}(?:\s|=|$)"


@dataclass
class ConfigSession:
    """Per-run state of configuration edits (one backup, one header per file)."""

    reporter: Reporter
    runner: CommandRunner | None = None
    os_kind: OSKind = field(default_factory=detect_os)
    clock: Callable[[], datetime] = datetime.now

    backed_up: list[Path] = field(default_factory=list)
    backups_created: list[Path] = field(default_factory=list)
    headers_added: set[Path] = field(default_factory=set)
    modified: list[Path] = field(default_factory=list)

    # --- file primitives -------------------------------------------------

    def _read_lines(self, path: Path) -> list[str]:
        if not path.is_file():
            return []
        return path.read_text(encoding="utf-8", errors="replace").splitlines()

    def _write(self, path: Path, lines: list[str]) -> None:
        text = "\n".join(lines) + "\n" if lines else ""
        if path not in self.modified:
            self.modified.append(path)
        if needs_elevation(path, self.os_kind):
            if self.runner is None:
                raise PermissionError(f"Writing {path} requires sudo and no command runner is available")
            self.runner.run(["sudo", "tee", str(path)], input=text)
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def backup_file(self, path: Path) -> Path | None:
        """Copy `path` to a timestamped `.bak` once per session."""

        if path in self.backed_up or not path.is_file():
            return None

        target = backup_name(path, self.clock())
        if needs_elevation(path, self.os_kind) and self.runner is not None:
            self.runner.run(["sudo", "cp", "-p", str(path), str(target)])
        else:
            shutil.copy2(path, target)
            st = path.stat()
            try:
                os.chown(target, st.st_uid, st.st_gid)
            except (AttributeError, OSError):
                # Ownership is best effort: unprivileged users cannot chown.
                logger.debug("could not preserve ownership of %s", target)

        self.backed_up.append(path)
        self.backups_created.append(target)
        self.reporter.backup(f"Created backup: {target}")
        return target

    def _header_lines(self, config_type: str) -> list[str]:
        title = HEADER_TITLES.get(config_type, f"{config_type} configuration")
        return [
            "",
            f"# {title} - managed by {MANAGED_BY}",
            f"# Updated: {self.clock().strftime('%Y-%m-%d %H:%M:%S')}",
            "",
        ]

    def _prepare(self, config_type: str, path: Path, lines: list[str]) -> list[str]:
        """Backup plus header, once each per file."""

        self.backup_file(path)
        if path in self.headers_added:
            return lines
        self.headers_added.add(path)
        return [*lines, *self._header_lines(config_type)]

    def add_change_header(self, path: Path, config_type: str) -> None:
        if path in self.headers_added:
            return
        self._write(path, self._prepare(config_type, path, self._read_lines(path)))

    # --- updates ---------------------------------------------------------

    def update_config_line(
        self,
        config_type: str,
        path: Path,
        pattern: str,
        full_line: str,
        description: str,
    ) -> ChangeKind:
        """Make sure `full_line` is the active value for the key matched by `pattern`."""

        lines = self._read_lines(path)
        regex = _key_regex(pattern)
        matches = [index for index, line in enumerate(lines) if regex.search(line)]
        wanted = full_line.strip()

        if matches and any(lines[index].split() == wanted.split() for index in matches):
            logger.debug("%s: %s already present", path, wanted)
            self.reporter.step(f"{description} already configured correctly")
            return ChangeKind.UNCHANGED

        if not matches:
            new_lines = self._prepare(config_type, path, lines)
            new_lines.append(full_line)
            self._write(path, new_lines)
            self.reporter.success(f"{description} added to {path}")
            return ChangeKind.ADDED

        current = lines[matches[0]].strip()
        self.reporter.warning(f"{description} has different value: '{current}' in {path}")
        stamp = self.clock().strftime("%Y-%m-%d")
        commented = [
            f"# {line} # Replaced by {MANAGED_BY} on {stamp}" if index in matches else line
            for index, line in enumerate(lines)
        ]
        new_lines = self._prepare(config_type, path, commented)
        new_lines.append(full_line)
        self._write(path, new_lines)
        self.reporter.success(f"{description} updated in {path}")
        return ChangeKind.UPDATED

    def add_config_if_needed(
        self,
        config_type: str,
        path: Path,
        setting: str,
        value: str | None,
        description: str,
    ) -> ChangeKind:
        """`set foo` / `set foo 4` / `key value` lines keyed by `setting`."""

        full_line = setting if not value else f"{setting} {value}"
        return self.update_config_line(config_type, path, setting_pattern(setting), full_line, description)

    def add_alias_if_needed(self, path: Path, name: str, value: str, description: str) -> ChangeKind:
        return self.update_config_line(
            "shell",
            path,
            rf"alias\s+{re.escape(name)}=",
            f"alias {name}='{value}'",
            description,
        )

    def add_export_if_needed(self, path: Path, name: str, value: str, description: str) -> ChangeKind:
        return self.update_config_line(
            "shell",
            path,
            rf"export\s+{re.escape(name)}=",
            f"export {name}={value}",
            description,
        )

    def add_section_comment(self, config_type: str, path: Path, marker: str, comment: str) -> bool:
        """Append `comment` after a blank line unless `marker` already appears in the file."""

        lines = self._read_lines(path)
        if any(marker in line for line in lines):
            return False
        new_lines = self._prepare(config_type, path, lines)
        new_lines.extend(["", comment])
        self._write(path, new_lines)
        return True

    def rewrite(self, path: Path, lines: list[str]) -> None:
        """Replace the whole file, after the once-per-session backup."""

        self.backup_file(path)
        self._write(path, lines)

    def summary(self) -> tuple[list[Path], list[Path]]:
        """(files modified, backups created) for the end-of-run report."""

        return list(self.modified), list(self.backups_created)
