"""OS, container, privilege and package-manager detection."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from core.domain.platform import OSKind, PackageManagerKind
from core.errors import PrivilegeError
from core.interfaces.runner import CommandRunner


def detect_os(platform: str | None = None) -> OSKind:
    platform = platform or sys.platform
    if platform == "darwin":
        return OSKind.MACOS
    if platform.startswith("linux"):
        return OSKind.LINUX
    return OSKind.UNKNOWN


def detect_container(root: Path = Path("/")) -> bool:
    """True inside LXC, Docker or a systemd-detected container.

    `root` is parameterised so the probes can be pointed at a fake tree.
    """

    environ = root / "proc" / "1" / "environ"
    try:
        if environ.is_file() and b"container=lxc" in environ.read_bytes():
            return True
    except OSError:
        pass

    if (root / ".dockerenv").exists():
        return True
    if (root / "run" / "systemd" / "container").exists():
        return True

    cgroup = root / "proc" / "1" / "cgroup"
    try:
        if cgroup.is_file() and "lxc" in cgroup.read_text(encoding="utf-8", errors="ignore"):
            return True
    except OSError:
        pass
    return False


def detect_package_manager(runner: CommandRunner, os_kind: OSKind) -> PackageManagerKind:
    if os_kind is OSKind.MACOS:
        return PackageManagerKind.BREW if runner.which("brew") else PackageManagerKind.UNKNOWN
    for kind in (PackageManagerKind.APT, PackageManagerKind.DNF, PackageManagerKind.ZYPPER):
        if runner.which(kind.value):
            return kind
    return PackageManagerKind.UNKNOWN


def is_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


def require_root(os_kind: OSKind, operation: str) -> None:
    """Linux system-wide changes must run as root; macOS escalates per command with sudo."""

    if os_kind is OSKind.LINUX and not is_root():
        raise PrivilegeError(
            f"{operation} requires root privileges",
            hint="Re-run with sudo.",
        )


def needs_elevation(path: Path, os_kind: OSKind) -> bool:
    """Whether writing `path` has to go through sudo (macOS, non-root, system dirs)."""

    if is_root() or os_kind is OSKind.LINUX:
        return False
    text = str(path)
    if text.startswith(("/etc/", "/usr/", "/var/")):
        return True
    parent = path.parent
    return parent.exists() and not os.access(parent, os.W_OK)


def elevated(cmd: list[str]) -> list[str]:
    """Prefix `cmd` with sudo unless already running as root."""

    if is_root():
        return cmd
    return ["sudo", *cmd]


def can_install_packages(os_kind: OSKind) -> bool:
    """apt needs root; Homebrew refuses to run as root, so macOS is always allowed."""

    return os_kind is not OSKind.LINUX or is_root()
