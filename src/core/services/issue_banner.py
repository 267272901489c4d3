"""Network interface box in `/etc/issue`, shown on the console login screen.

The box lists `\\4{iface}` / `\\6{iface}` escapes, which getty expands to the
interface's current IPv4 and IPv6 addresses. It is rewritten only when the
set of interfaces changes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from core.domain.platform import OSKind
from core.interfaces.reporter import Reporter
from core.services.config_updater import ConfigSession

BOX_TITLE = "║ Network Interfaces"
_RULE = "═" * 75
_NAME_RE = re.compile(r"\(([A-Za-z0-9_-]+)\)\s*$")


def interface_type(name: str, sys_net: Path = Path("/sys/class/net")) -> str:
    """wire, wifi, bridge, vpn, veth, docker or loopback, from sysfs and the name."""

    if name == "lo":
        return "loopback"
    node = sys_net / name
    if (node / "wireless").is_dir() or (node / "phy80211").is_symlink():
        return "wifi"
    if (node / "bridge").is_dir():
        return "bridge"
    if (node / "tun_flags").is_file():
        return "vpn"
    if name.startswith("veth"):
        return "veth"
    if name.startswith(("docker", "br-")):
        return "docker"
    return "wire"


def current_interfaces(sys_net: Path = Path("/sys/class/net")) -> list[tuple[str, str]]:
    """(name, type) pairs: wired first, then wireless, then the rest; veth is left out."""

    if not sys_net.is_dir():
        return []
    typed = [(entry.name, interface_type(entry.name, sys_net)) for entry in sorted(sys_net.iterdir())]
    order = {"wire": 0, "wifi": 1}
    kept = [item for item in typed if item[1] not in ("loopback", "veth")]
    return sorted(kept, key=lambda item: order.get(item[1], 2))


def _box_bounds(lines: list[str]) -> tuple[int, int] | None:
    """Indexes of the first and last line of the managed box."""

    start = next((index for index, line in enumerate(lines) if BOX_TITLE in line), None)
    if start is None:
        return None
    if start > 0 and lines[start - 1].strip().startswith("╔"):
        start -= 1
    for index in range(start, len(lines)):
        if lines[index].strip().startswith("╚"):
            return start, index
    return start, len(lines) - 1


def displayed_interfaces(lines: list[str]) -> list[str]:
    bounds = _box_bounds(lines)
    if bounds is None:
        return []
    names = []
    for line in lines[bounds[0] : bounds[1] + 1]:
        match = _NAME_RE.search(line)
        if match:
            names.append(match.group(1))
    return names


def render_box(interfaces: list[tuple[str, str]]) -> list[str]:
    rows = [f"  ║ - {kind}: \\4{{{name}}} / \\6{{{name}}} ({name})" for name, kind in interfaces]
    return [f"  ╔{_RULE}", f"  {BOX_TITLE}", f"  ╠{_RULE}", *rows, f"  ╚{_RULE}"]


@dataclass
class IssueBannerConfigurator:
    reporter: Reporter
    session: ConfigSession
    issue_file: Path = Path("/etc/issue")
    sys_net: Path = Path("/sys/class/net")

    def run(self, *, os_kind: OSKind, in_container: bool) -> bool:
        """Update the box; True when the file was changed."""

        if os_kind is not OSKind.LINUX or in_container:
            self.reporter.info(f"{self.issue_file} network info is only for non-containerized Linux systems. Skipping.")
            return False

        self.reporter.info(f"Configuring network interfaces in {self.issue_file}...")
        lines = (
            self.issue_file.read_text(encoding="utf-8", errors="replace").splitlines()
            if self.issue_file.is_file()
            else []
        )
        interfaces = current_interfaces(self.sys_net)
        current = sorted(name for name, _ in interfaces)
        shown = sorted(displayed_interfaces(lines))
        if current == shown:
            self.reporter.success(f"Network interfaces in {self.issue_file} are already up-to-date")
            return False

        self.reporter.info(f"Network interface changes detected. Updating {self.issue_file}...")
        self.reporter.step("Displayed: " + (" ".join(shown) or "none"))
        self.reporter.step("Current: " + (" ".join(current) or "none"))

        box = render_box(interfaces)
        bounds = _box_bounds(lines)
        if bounds is None:
            self.session.rewrite(self.issue_file, [*lines, "", *box])
            self.reporter.success(f"Added network interface info to {self.issue_file}")
        else:
            start, end = bounds
            self.session.rewrite(self.issue_file, [*lines[:start], *box, *lines[end + 1 :]])
            self.reporter.success(f"Updated network interface info in {self.issue_file}")
        return True
