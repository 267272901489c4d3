"""APT sources in DEB822 form, with every Debian component enabled.

`apt modernize-sources` converts the legacy `sources.list`; the resulting
`debian.sources` is then consolidated: the release stanza carries
`<release> <release>-updates <release>-backports`, the separate updates and
backports stanzas go away, and every stanza gets
`Components: main contrib non-free non-free-firmware`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from core.domain.platform import OSKind
from core.interfaces.prompter import Prompter
from core.interfaces.reporter import Reporter
from core.interfaces.runner import CommandRunner
from core.services.config_updater import ConfigSession

COMPONENTS_LINE = "Components: main contrib non-free non-free-firmware"

_MAIN_MIRROR_RE = re.compile(r"deb\.debian\.org/debian/?$")
_SUITE_RE = re.compile(r"^Suites:\s*([a-z]+)", re.MULTILINE)


def release_from_sources(text: str) -> str:
    match = _SUITE_RE.search(text)
    return match.group(1) if match else ""


def _stanzas(text: str) -> list[list[str]]:
    stanzas: list[list[str]] = []
    current: list[str] = []
    for line in text.splitlines():
        if line.strip():
            current.append(line)
        elif current:
            stanzas.append(current)
            current = []
    if current:
        stanzas.append(current)
    return stanzas


def _fields(stanza: list[str]) -> dict[str, str]:
    fields: dict[str, str] = {}
    for line in stanza:
        key, sep, value = line.partition(":")
        if sep and not line.startswith("#"):
            fields[key.strip()] = value.strip()
    return fields


def modernize_sources(text: str, release: str) -> str:
    """Consolidated `debian.sources` content for `release`."""

    out: list[str] = []
    for stanza in _stanzas(text):
        fields = _fields(stanza)
        suites, uris = fields.get("Suites", ""), fields.get("URIs", "")
        is_main = suites == release and bool(_MAIN_MIRROR_RE.search(uris)) and "security" not in uris
        if not is_main and suites in (f"{release}-updates", f"{release}-backports"):
            continue

        rewritten = []
        for line in stanza:
            if is_main and line.startswith("Suites:"):
                rewritten.append(f"Suites: {release} {release}-updates {release}-backports")
            elif line.startswith("Components:"):
                rewritten.append(COMPONENTS_LINE)
            else:
                rewritten.append(line)
        if "Components" not in fields:
            rewritten.append(COMPONENTS_LINE)
        out.extend([*rewritten, ""])
    return "\n".join(out)


@dataclass
class AptSourcesModernizer:
    runner: CommandRunner
    prompter: Prompter
    reporter: Reporter
    session: ConfigSession
    sources_file: Path = Path("/etc/apt/sources.list.d/debian.sources")
    legacy_backup: Path = Path("/etc/apt/sources.list.bak")

    def run(self, *, os_kind: OSKind, privileged: bool) -> bool:
        """True when the sources file was rewritten."""

        if os_kind is not OSKind.LINUX or not self.runner.which("apt"):
            return False
        if not privileged:
            self.reporter.warning("Skipping APT sources modernization (requires root privileges)")
            return False

        self.reporter.info("Modernizing APT sources configuration...")
        if self.runner.run(["apt", "modernize-sources"], check=False, capture=False).returncode != 0:
            self.reporter.warning("apt modernize-sources failed or is not available. Skipping.")
            return False
        if self.legacy_backup.exists():
            self.legacy_backup.unlink()
            self.reporter.success(f"Removed {self.legacy_backup}")

        if not self.sources_file.is_file():
            self.reporter.warning(f"DEB822 sources file not found at {self.sources_file}. Skipping.")
            return False
        text = self.sources_file.read_text(encoding="utf-8")
        release = release_from_sources(text)
        if not release:
            self.reporter.warning(f"Could not determine Debian release from {self.sources_file}. Skipping.")
            return False
        self.reporter.step(f"Detected Debian release: {release}")

        updated = modernize_sources(text, release)
        changed = updated.strip() != text.strip()
        if changed:
            self.session.rewrite(self.sources_file, updated.rstrip("\n").splitlines())
            self.reporter.success(f"APT sources file ({self.sources_file}) modernized successfully.")
        else:
            self.reporter.success(f"APT sources file ({self.sources_file}) is already modern.")

        if self.prompter.confirm(f"Would you like to manually edit {self.sources_file} with nano?"):
            if self.runner.which("nano"):
                self.runner.run(["nano", str(self.sources_file)], check=False, capture=False)
                self.reporter.info("Manual edit completed")
            else:
                self.reporter.warning("nano is not installed")
        return changed
