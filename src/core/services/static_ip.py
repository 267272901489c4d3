"""Secondary static IPv4 address for Linux containers (systemd-networkd).

DHCP stays enabled; the static address is added through an `[Address]`
section in `/etc/systemd/network/10-<iface>.network`.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from adapters.template_renderer import render_template
from core.errors import ToolError
from core.interfaces.prompter import Prompter
from core.interfaces.reporter import Reporter
from core.interfaces.runner import CommandRunner
from core.services.config_updater import ConfigSession

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = 24
SKIPPED_INTERFACE_PREFIXES = ("docker", "veth", "br-")

_CIDR_RE = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})(?:/(\d+))?$")


@dataclass(frozen=True)
class StaticAddress:
    ip: str
    prefix: int

    def __str__(self) -> str:
        return f"{self.ip}/{self.prefix}"


def parse_cidr(text: str) -> StaticAddress:
    """Parse `a.b.c.d[/p]`; the prefix defaults to /24.

    Raises `ValueError` for malformed input, octets above 255 or a prefix
    outside 1..32.
    """

    match = _CIDR_RE.match((text or "").strip())
    if not match:
        raise ValueError(f"not an IPv4 address in CIDR notation: {text!r}")
    octets = [int(part) for part in match.group(1, 2, 3, 4)]
    if any(octet > 255 for octet in octets):
        raise ValueError(f"octet out of range in {text!r}")
    prefix = int(match.group(5)) if match.group(5) is not None else DEFAULT_PREFIX
    if not 1 <= prefix <= 32:
        raise ValueError(f"prefix out of range in {text!r}")
    return StaticAddress(ip=".".join(str(octet) for octet in octets), prefix=prefix)


def primary_interface(sys_net: Path = Path("/sys/class/net")) -> str | None:
    """First interface that is not loopback, docker, veth or a bridge."""

    if not sys_net.is_dir():
        return None
    for entry in sorted(sys_net.iterdir()):
        name = entry.name
        if name == "lo" or name.startswith(SKIPPED_INTERFACE_PREFIXES):
            continue
        return name
    return None


def configured_addresses(network_file: Path) -> list[str] | None:
    """`Address=` values of the `[Address]` sections, or None when there is none."""

    if not network_file.is_file():
        return None
    addresses: list[str] = []
    has_section = False
    in_address = False
    for raw in network_file.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.startswith("["):
            in_address = line == "[Address]"
            has_section = has_section or in_address
            continue
        if in_address and line.startswith("Address="):
            addresses.append(line.split("=", 1)[1])
    return addresses if has_section else None


@dataclass
class StaticIPConfigurator:
    runner: CommandRunner
    prompter: Prompter
    reporter: Reporter
    session: ConfigSession
    network_dir: Path = Path("/etc/systemd/network")
    sys_net: Path = Path("/sys/class/net")
    clock: Callable[[], datetime] = datetime.now
    sleep: Callable[[float], None] = time.sleep

    def current_addresses(self, interface: str) -> list[str]:
        if not self.runner.which("ip"):
            self.reporter.warning("'ip' command not found, cannot display current IP addresses")
            return []
        result = self.runner.run(["ip", "-4", "addr", "show", interface], check=False)
        return [line.split()[1] for line in (result.stdout or "").splitlines() if line.strip().startswith("inet ")]

    def prompt_address(self) -> StaticAddress:
        """Ask until a valid address is entered; invalid input only prints an error."""

        while True:
            reply = self.prompter.ask("Enter static IP in CIDR notation (e.g., 192.168.1.100/24, defaults to /24)")
            try:
                return parse_cidr(reply)
            except ValueError:
                self.reporter.error("Invalid IP address format. Please use CIDR notation (e.g., 192.168.1.100/24)")

    def run(self, *, address: StaticAddress | None = None) -> Path | None:
        """Configure the primary interface; returns the written file, or None when nothing was done."""

        self.reporter.info("Checking static IP configuration for container...")
        if not self.network_dir.is_dir():
            self.reporter.warning(
                f"{self.network_dir} directory not found - systemd-networkd may not be configured"
            )
            return None

        interface = primary_interface(self.sys_net)
        if not interface:
            self.reporter.warning("No suitable network interface found")
            return None
        self.reporter.step(f"Primary network interface: {interface}")

        current = self.current_addresses(interface)
        if current:
            self.reporter.step("Current IP address(es): " + ", ".join(current))

        network_file = self.network_dir / f"10-{interface}.network"
        existing = configured_addresses(network_file)
        if existing is not None:
            self.reporter.success(f"Static IP configuration already exists in {network_file}")
            for value in existing:
                self.reporter.step(f"Configured static IP: {value}")
            return None

        if address is None:
            self.reporter.info(f"This will add a secondary static IP address to {interface}; DHCP stays enabled.")
            if not self.prompter.confirm("Would you like to configure a static IP address?", default=True):
                self.reporter.info("Skipping static IP configuration")
                return None
            address = self.prompt_address()

        self.reporter.info(f"Configuring static IP: {address} on {interface}...")
        self.session.backup_file(network_file)
        network_file.write_text(
            render_template(
                "systemd-network.j2",
                interface=interface,
                address=str(address),
                updated=self.clock().strftime("%Y-%m-%d %H:%M:%S"),
            ),
            encoding="utf-8",
        )
        self.reporter.success(f"Static IP configuration written to {network_file}")
        self.restart_networkd(interface)
        return network_file

    def restart_networkd(self, interface: str) -> None:
        self.reporter.info("Restarting systemd-networkd to apply changes...")
        try:
            self.runner.run(["systemctl", "restart", "systemd-networkd.service"])
        except ToolError:
            self.reporter.warning("Could not restart systemd-networkd (may require manual restart)")
            self.reporter.info("To apply changes manually, run: systemctl restart systemd-networkd")
            return
        self.reporter.success("systemd-networkd restarted successfully")
        self.sleep(2)
        for value in self.current_addresses(interface):
            self.reporter.step(value)
