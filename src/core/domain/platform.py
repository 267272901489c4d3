"""Platform enums shared by the CLI and the services.

Keeping them in the domain layer lets both sides share a single source of
truth without circular imports with adapters.
"""

from __future__ import annotations

from enum import Enum


class OSKind(str, Enum):
    """Operating systems the setup commands know how to configure."""

    MACOS = "macos"
    LINUX = "linux"
    UNKNOWN = "unknown"

    def label(self) -> str:
        return {"macos": "macOS", "linux": "Linux"}.get(self.value, "unknown")


class PackageManagerKind(str, Enum):
    BREW = "brew"
    APT = "apt"
    DNF = "dnf"
    ZYPPER = "zypper"
    UNKNOWN = "unknown"


class ConfigScope(str, Enum):
    """Where dotfiles are written: the current user's home or system-wide files."""

    USER = "user"
    SYSTEM = "system"
