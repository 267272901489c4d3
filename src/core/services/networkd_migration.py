"""Migrate ifupdown (`/etc/network/interfaces`) to systemd-networkd.

Steps, each one only after the previous succeeded:
1. Parse the interfaces file (including `source` / `source-directory`).
2. Write `.network` files (and `.netdev` for bridges); the original stanza is
   kept as comments at the end of each file.
3. Install systemd-resolved and point `/etc/resolv.conf` at its stub.
4. Enable systemd-networkd and systemd-resolved, then wait for at least one
   link in the routable / configured state.
5. Only then stop the old `networking` and NetworkManager services.

A failed verification stops the new services, removes the generated files
and restores `/etc/resolv.conf`, so the old networking stays in charge.
"""

from __future__ import annotations

import glob
import ipaddress
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator

from adapters.template_renderer import render_template
from core.domain.platform import OSKind
from core.errors import ToolError
from core.interfaces.prompter import Prompter
from core.interfaces.reporter import Reporter
from core.interfaces.runner import CommandRunner
from core.services.config_updater import ConfigSession

logger = logging.getLogger(__name__)

PRIORITY_STANDARD = 10
PRIORITY_BRIDGE = 20

HOOK_KEYWORDS = ("pre-up", "up", "post-up", "pre-down", "down", "post-down")
UNSUPPORTED_KEYWORDS = (
    "vlan-raw-device",
    "bond-master",
    "bond-slaves",
    "bond-mode",
    "bond-miimon",
    "wpa-ssid",
    "wpa-psk",
    "wpa-conf",
    "ppp",
    "provider",
    "metric",
    "mtu",
    "hwaddress",
)
OLD_SERVICES = ("networking.service", "NetworkManager.service")
NEW_SERVICES = ("systemd-networkd.service", "systemd-resolved.service")

_SOURCE_DIR_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
STANZA_KEYWORDS = ("iface", "mapping", "auto", "source", "source-directory", "rename")


@dataclass
class AddressFamily:
    method: str
    options: dict[str, str] = field(default_factory=dict)


@dataclass
class InterfaceDefinition:
    name: str
    inet: AddressFamily | None = None
    inet6: AddressFamily | None = None
    stanza: list[str] = field(default_factory=list)

    @property
    def bridge_ports(self) -> list[str]:
        value = self.inet.options.get("bridge_ports", "") if self.inet else ""
        return [port for port in value.split() if port != "none"]

    def option_keys(self) -> Iterator[str]:
        for family in (self.inet, self.inet6):
            if family is not None:
                yield from family.options


@dataclass
class InterfacesConfig:
    auto: list[str] = field(default_factory=list)
    definitions: dict[str, InterfaceDefinition] = field(default_factory=dict)

    def names(self) -> list[str]:
        """Interfaces brought up at boot (auto / allow-*), loopback excluded."""

        return sorted({name for name in self.auto if name != "lo"})

    def has_non_loopback(self) -> bool:
        return any(name != "lo" for name in [*self.auto, *self.definitions])


def _expand_lines(path: Path) -> Iterator[str]:
    """Lines of `path` with `source` and `source-directory` includes inlined."""

    for raw in path.read_text(encoding="utf-8", errors="replace").splitlines():
        words = raw.split()
        if len(words) == 2 and words[0] == "source":
            pattern = words[1] if Path(words[1]).is_absolute() else str(path.parent / words[1])
            for included in sorted(glob.glob(pattern)):
                if Path(included).is_file():
                    yield from _expand_lines(Path(included))
            continue
        if len(words) == 2 and words[0] == "source-directory":
            directory = Path(words[1]) if Path(words[1]).is_absolute() else path.parent / words[1]
            if directory.is_dir():
                for included in sorted(directory.iterdir()):
                    if included.is_file() and _SOURCE_DIR_NAME_RE.match(included.name):
                        yield from _expand_lines(included)
            continue
        yield raw


def parse_interfaces(path: Path) -> InterfacesConfig:
    config = InterfacesConfig()
    current: AddressFamily | None = None
    owner: InterfaceDefinition | None = None

    for raw in _expand_lines(path):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        words = stripped.split()
        keyword = words[0]

        if keyword == "auto" or keyword.startswith("allow-"):
            current = None
            for name in words[1:]:
                if name not in config.auto:
                    config.auto.append(name)
                config.definitions.setdefault(name, InterfaceDefinition(name)).stanza.append(raw)
            continue

        if keyword == "iface" and len(words) >= 4:
            name, family, method = words[1], words[2], words[3].lower()
            owner = config.definitions.setdefault(name, InterfaceDefinition(name))
            owner.stanza.append(raw)
            current = AddressFamily(method=method)
            if family == "inet6":
                owner.inet6 = current
            else:
                owner.inet = current
            continue

        if current is not None and owner is not None and keyword not in STANZA_KEYWORDS:
            owner.stanza.append(raw)
            value = " ".join(words[1:])
            current.options[keyword] = f"{current.options[keyword]} {value}" if keyword in current.options else value
            continue
        current = None

    return config


def netmask_to_prefix(netmask: str) -> int:
    """`255.255.255.0` -> 24; raises `ValueError` for a non-contiguous mask."""

    return ipaddress.IPv4Network(f"0.0.0.0/{netmask}").prefixlen


def network_lines(definition: InterfaceDefinition) -> list[str]:
    """`[Network]` section body for one interface."""

    inet, inet6 = definition.inet, definition.inet6
    method4 = inet.method if inet else ""
    method6 = inet6.method if inet6 else ""
    lines: list[str] = []

    if method4 == "dhcp" and method6 == "dhcp":
        lines.append("DHCP=yes")
    elif method4 == "dhcp":
        lines.append("DHCP=ipv4")
    elif method6 in ("dhcp", "auto"):
        lines.append("DHCP=ipv6")

    if inet is not None and method4 == "static":
        address = inet.options.get("address", "")
        netmask = inet.options.get("netmask", "")
        if address and "/" not in address and netmask:
            try:
                address = f"{address}/{netmask_to_prefix(netmask)}"
            except ValueError:
                logger.warning("Unexpected netmask %s for %s", netmask, definition.name)
        if address:
            lines.append(f"Address={address}")
        if inet.options.get("gateway"):
            lines.append(f"Gateway={inet.options['gateway']}")

    if inet6 is not None and method6 == "static":
        if inet6.options.get("address"):
            lines.append(f"Address={inet6.options['address']}")
        if inet6.options.get("gateway"):
            lines.append(f"Gateway={inet6.options['gateway']}")

    options = inet.options if inet else {}
    lines.extend(f"DNS={server}" for server in options.get("dns-nameservers", "").split())
    if options.get("dns-search"):
        lines.append(f"Domains={options['dns-search']}")

    if definition.bridge_ports:
        lines.extend(["", "# Bridge configuration - member ports configured separately"])
    return lines


def unsupported_options(definition: InterfaceDefinition) -> list[str]:
    found: list[str] = []
    for key in definition.option_keys():
        if key in HOOK_KEYWORDS:
            entry = f"{definition.name}: {key} script"
        elif key in UNSUPPORTED_KEYWORDS or key.startswith("wireless-"):
            entry = f"{definition.name}: {key}"
        else:
            continue
        if entry not in found:
            found.append(entry)
    return found


@dataclass
class MigrationPlan:
    files: list[tuple[Path, str]] = field(default_factory=list)
    unsupported: list[str] = field(default_factory=list)


def build_plan(config: InterfacesConfig, network_dir: Path, generated: str) -> MigrationPlan:
    """Files to write for every boot-time interface; bridge members get a port file."""

    plan = MigrationPlan()
    bridge_of = {
        port: name
        for name in config.names()
        for port in (config.definitions[name].bridge_ports if name in config.definitions else [])
    }

    for name in config.names():
        if name in bridge_of:
            plan.files.append(
                (
                    network_dir / f"{PRIORITY_STANDARD}-{name}.network",
                    render_template(
                        "networkd-migrated.network.j2",
                        name=name,
                        port=True,
                        generated=generated,
                        network_lines=[f"Bridge={bridge_of[name]}"],
                        original=[],
                    ),
                )
            )
            continue

        definition = config.definitions.get(name)
        if definition is None or (definition.inet is None and definition.inet6 is None):
            logger.warning("No iface stanza for %s; not migrated", name)
            continue
        plan.unsupported.extend(unsupported_options(definition))

        priority = PRIORITY_STANDARD
        if definition.bridge_ports:
            priority = PRIORITY_BRIDGE
            plan.files.append(
                (
                    network_dir / f"{priority}-{name}.netdev",
                    render_template("networkd-bridge.netdev.j2", name=name, generated=generated),
                )
            )
        plan.files.append(
            (
                network_dir / f"{priority}-{name}.network",
                render_template(
                    "networkd-migrated.network.j2",
                    name=name,
                    port=False,
                    generated=generated,
                    network_lines=network_lines(definition),
                    original=definition.stanza,
                ),
            )
        )
    return plan


def count_configured_links(networkctl_output: str) -> list[tuple[str, str]]:
    """(link, state) for links whose operational state is routable or setup state is configured."""

    links = []
    for line in networkctl_output.splitlines():
        parts = line.split()
        if len(parts) < 4:
            continue
        if parts[3] == "routable" or (len(parts) > 4 and parts[4] == "configured"):
            links.append((parts[1], parts[3]))
    return links


@dataclass
class NetworkdMigrator:
    runner: CommandRunner
    prompter: Prompter
    reporter: Reporter
    session: ConfigSession
    interfaces_file: Path = Path("/etc/network/interfaces")
    network_dir: Path = Path("/etc/systemd/network")
    resolv_conf: Path = Path("/etc/resolv.conf")
    resolved_stub: Path = Path("/run/systemd/resolve/stub-resolv.conf")
    clock: Callable[[], datetime] = datetime.now
    sleep: Callable[[float], None] = time.sleep
    attempts: int = 5
    wait_seconds: float = 2.0

    created: list[Path] = field(default_factory=list, init=False)
    interfaces_backup: Path | None = field(default=None, init=False)
    resolv_backup: Path | None = field(default=None, init=False)

    def run(self, *, os_kind: OSKind, in_container: bool) -> bool:
        """Offer the migration; True only when networkd was verified and the old stack disabled."""

        if os_kind is not OSKind.LINUX:
            return False
        if not self.interfaces_file.is_file():
            self.reporter.info(f"No {self.interfaces_file} found - skipping network migration.")
            return False
        config = parse_interfaces(self.interfaces_file)
        if not config.has_non_loopback():
            return False

        self.reporter.header("Network Configuration Migration")
        self.reporter.info(f"This system appears to use ifupdown ({self.interfaces_file}).")
        if not self.prompter.confirm("Migrate from ifupdown to systemd-networkd?"):
            self.reporter.info("Skipping network migration.")
            return False
        return self.migrate(config, in_container=in_container)

    def preconditions(self, *, in_container: bool) -> bool:
        self.reporter.info("Checking migration preconditions...")
        listing = self.runner.run(["systemctl", "list-unit-files", NEW_SERVICES[0]], check=False)
        if listing.returncode != 0 or NEW_SERVICES[0] not in (listing.stdout or ""):
            self.reporter.error("systemd-networkd service not found.")
            return False
        if in_container:
            self.reporter.warning("Running inside a container environment; its network is often managed by the host.")
            if not self.prompter.confirm("Continue with migration anyway?"):
                self.reporter.info("Migration cancelled.")
                return False
        self.network_dir.mkdir(parents=True, exist_ok=True)
        self.reporter.success("Preconditions met for migration")
        return True

    def migrate(self, config: InterfacesConfig, *, in_container: bool) -> bool:
        if not self.preconditions(in_container=in_container):
            return False

        self.interfaces_backup = self.session.backup_file(self.interfaces_file)
        plan = build_plan(config, self.network_dir, self.clock().strftime("%Y-%m-%d %H:%M:%S"))
        if not plan.files:
            self.reporter.warning("No interfaces found to migrate.")
            return False

        self.reporter.info("Found interfaces to migrate: " + ", ".join(config.names()))
        for path, content in plan.files:
            try:
                path.write_text(content, encoding="utf-8")
                path.chmod(0o644)
            except OSError as exc:
                self.reporter.error(f"Failed to write {path}: {exc}")
                return False
            self.created.append(path)
            self.reporter.success(f"Created {path}")

        if plan.unsupported:
            self.reporter.warning("The following configurations are NOT automatically migrated:")
            for item in plan.unsupported:
                self.reporter.step(item)
            self.reporter.warning("Add them manually to the generated .network files (see systemd.network(5)).")
            if not self.prompter.confirm("Continue with migration anyway?"):
                self.reporter.info("Migration cancelled. Generated files have been created but services not switched.")
                self.print_rollback_instructions()
                return False

        self.install_resolved()
        self.configure_resolv_conf()

        if not self.enable_new_services():
            self.reporter.error("Failed to enable systemd-networkd services")
            self.print_rollback_instructions()
            return False
        if not self.verify():
            self.reporter.error("New networking failed connectivity test")
            self.rollback()
            self.reporter.info("Old networking remains active")
            self.print_rollback_instructions()
            return False

        self.disable_old_services()
        self.reporter.success("Migration complete!")
        for path in self.created:
            self.reporter.step(str(path))
        self.print_rollback_instructions()
        return True

    def install_resolved(self) -> None:
        if self.runner.run(["dpkg", "-s", "systemd-resolved"], check=False).returncode == 0:
            self.reporter.success("systemd-resolved is already installed")
            return
        self.reporter.info("Installing systemd-resolved...")
        try:
            self.runner.run(["apt", "update"], capture=False)
            self.runner.run(["apt", "install", "systemd-resolved"], capture=False)
        except ToolError:
            self.reporter.warning("Could not install systemd-resolved - DNS resolution may need manual configuration")
            return
        self.reporter.success("systemd-resolved installed")

    def configure_resolv_conf(self) -> None:
        if self.resolv_conf.is_symlink() and self.resolv_conf.resolve() == self.resolved_stub.resolve():
            self.reporter.success(f"{self.resolv_conf} is already symlinked to systemd-resolved")
            return
        if not self.prompter.confirm(f"Symlink {self.resolv_conf} to systemd-resolved stub?", default=True):
            self.reporter.warning("Skipped resolv.conf symlink - DNS may need manual configuration")
            return
        if not self.resolved_stub.exists():
            self.reporter.warning(f"systemd-resolved stub not found: {self.resolved_stub}")
            self.reporter.warning("Skipped resolv.conf symlink - DNS may need manual configuration")
            return

        self.resolv_backup = self.session.backup_file(self.resolv_conf)
        self.resolv_conf.unlink(missing_ok=True)
        self.resolv_conf.symlink_to(self.resolved_stub)
        self.reporter.success(f"Created symlink: {self.resolv_conf} -> {self.resolved_stub}")

    def enable_new_services(self) -> bool:
        for unit in NEW_SERVICES:
            try:
                self.runner.run(["systemctl", "enable", unit])
            except ToolError:
                self.reporter.error(f"Failed to enable {unit}")
                return False
            self.reporter.success(f"{unit} enabled")
            if self.runner.run(["systemctl", "start", unit], check=False).returncode == 0:
                self.reporter.success(f"{unit} started")
            else:
                self.reporter.warning(f"Could not start {unit} - may require reboot")
        return True

    def verify(self) -> bool:
        self.reporter.info("Verifying systemd-networkd configuration...")
        for attempt in range(1, self.attempts + 1):
            self.sleep(self.wait_seconds)
            active = self.runner.run(["systemctl", "is-active", "--quiet", NEW_SERVICES[0]], check=False)
            if active.returncode != 0:
                self.reporter.step(f"Waiting for systemd-networkd to become active... ({attempt}/{self.attempts})")
                continue
            output = self.runner.run(["networkctl", "--no-pager", "--no-legend"], check=False).stdout or ""
            links = count_configured_links(output)
            if links:
                self.reporter.success(f"systemd-networkd has {len(links)} configured interface(s)")
                for name, state in links:
                    self.reporter.step(f"{name}: {state}")
                return True
            self.reporter.step(f"Waiting for interfaces to be configured... ({attempt}/{self.attempts})")
        self.reporter.error("systemd-networkd verification failed - no interfaces in configured/routable state")
        return False

    def rollback(self) -> None:
        self.reporter.warning("Rolling back to old networking...")
        for unit in NEW_SERVICES:
            self.runner.run(["systemctl", "stop", unit], check=False)
            self.runner.run(["systemctl", "disable", unit], check=False)
        for path in self.created:
            path.unlink(missing_ok=True)
            self.reporter.step(f"Removed {path}")
        if self.resolv_backup is not None and self.resolv_backup.is_file():
            self.resolv_conf.unlink(missing_ok=True)
            self.resolv_conf.write_bytes(self.resolv_backup.read_bytes())
            self.reporter.step(f"Restored {self.resolv_conf} from backup")
        self.reporter.success("Rolled back to old networking")

    def disable_old_services(self) -> None:
        self.reporter.info("Disabling old networking services...")
        for unit in OLD_SERVICES:
            active = self.runner.run(["systemctl", "is-active", unit], check=False).returncode == 0
            enabled = self.runner.run(["systemctl", "is-enabled", unit], check=False).returncode == 0
            if not (active or enabled):
                self.reporter.step(f"{unit} is not active/enabled")
                continue
            self.runner.run(["systemctl", "stop", unit], check=False)
            self.runner.run(["systemctl", "disable", unit], check=False)
            self.reporter.success(f"{unit} stopped and disabled")

    def print_rollback_instructions(self) -> None:
        self.reporter.header("Rollback Instructions")
        backup = f"cp '{self.interfaces_backup}' '{self.interfaces_file}'" if self.interfaces_backup else "(restore from your backup)"
        self.reporter.step(f"1. Restore the original interfaces file: {backup}")
        for path in self.created:
            self.reporter.step(f"2. Remove generated file: rm '{path}'")
        self.reporter.step("3. systemctl disable --now systemd-networkd.service systemd-resolved.service")
        self.reporter.step("4. systemctl enable --now networking.service")
        if self.resolv_backup is not None:
            self.reporter.step(f"5. Restore resolv.conf: rm '{self.resolv_conf}' && cp '{self.resolv_backup}' '{self.resolv_conf}'")
