"""nano, GNU screen and shell rc configuration.

Por qué un servicio:
- Los mismos ajustes se aplican en ámbito usuario (el home de quien ejecuta) y
  en ámbito sistema (ficheros del sistema, root y el home de cada usuario).
- Toda edición pasa por `ConfigSession`, así que re-ejecutar no cambia nada.
"""

from __future__ import annotations

import getpass
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from core.domain.platform import ConfigScope, OSKind
from core.interfaces.reporter import Reporter
from core.services.config_updater import ConfigSession

logger = logging.getLogger(__name__)

# (setting, value, description)
NANO_SETTINGS: tuple[tuple[str, str | None, str], ...] = (
    ("set atblanks", None, "atblanks setting"),
    ("set autoindent", None, "autoindent setting"),
    ("set constantshow", None, "constantshow setting"),
    ("set indicator", None, "indicator setting"),
    ("set linenumbers", None, "line numbers setting"),
    ("set minibar", None, "minibar setting"),
    ("set mouse", None, "mouse support setting"),
    ("set multibuffer", None, "multibuffer setting"),
    ("set nonewlines", None, "nonewlines setting"),
    ("set smarthome", None, "smarthome setting"),
    ("set softwrap", None, "softwrap setting"),
    ("set tabsize", "4", "tab size setting"),
)

HOMEBREW_NANO_INCLUDE = 'include "/opt/homebrew/share/nano/*.nanorc"'

SCREEN_SETTINGS: tuple[tuple[str, str, str], ...] = (
    ("startup_message", "off", "startup message setting"),
    ("defscrollback", "9999", "default scrollback setting"),
    ("scrollback", "9999", "scrollback setting"),
    ("defmousetrack", "on", "default mouse tracking setting"),
    ("mousetrack", "on", "mouse tracking setting"),
)

SAFETY_ALIASES: tuple[tuple[str, str, str], ...] = (
    ("cp", "cp -aiv", "copy with attributes and interactive"),
    ("mkdir", "mkdir -v", "verbose mkdir"),
    ("mv", "mv -iv", "interactive move"),
    ("rm", "rm -Iv", "interactive remove"),
)

VERBOSE_ALIASES: tuple[tuple[str, str, str], ...] = (
    ("chmod", "chmod -vv", "verbose chmod"),
    ("chown", "chown -vv", "verbose chown"),
)

UTILITY_ALIASES: tuple[tuple[str, str, str], ...] = (
    ("diff", "diff --color", "diff colors"),
    ("lsblk", 'lsblk -o "NAME,FSTYPE,FSVER,LABEL,FSAVAIL,SIZE,FSUSE%,MOUNTPOINTS,UUID"', "enhanced lsblk"),
    ("lxc-ls", "lxc-ls -f", "formatted lxc-ls"),
)

_SEVEN_ZIP_DICTIONARIES = ("256m", "512m", "1536m")

SKIPPED_MACOS_HOMES = frozenset({"Shared", "Guest"})


def seven_zip_aliases(os_kind: OSKind) -> list[tuple[str, str, str]]:
    binary = "7zz" if os_kind is OSKind.MACOS else "7z"
    return [
        (
            f"7z-ultra{level}",
            f"{binary} a -t7z -m0=lzma2 -mx=9 -md={dictionary} -mfb=273 -mmf=bt4 -ms=on -mmt",
            f"7z ultra compression level {level}",
        )
        for level, dictionary in enumerate(_SEVEN_ZIP_DICTIONARIES, start=1)
    ]


def nano_config_path(scope: ConfigScope, os_kind: OSKind, home: Path) -> Path:
    if scope is ConfigScope.SYSTEM:
        return Path("/opt/homebrew/etc/nanorc") if os_kind is OSKind.MACOS else Path("/etc/nanorc")
    return home / ".nanorc"


def screen_config_path(scope: ConfigScope, home: Path) -> Path:
    if scope is ConfigScope.SYSTEM:
        return Path("/etc/screenrc")
    return home / ".screenrc"


def shell_config_path(home: Path, os_kind: OSKind) -> Path:
    return home / (".zshrc" if os_kind is OSKind.MACOS else ".bashrc")


def system_user_homes(os_kind: OSKind, *, root: Path = Path("/")) -> Iterator[tuple[Path, str]]:
    """(home, username) pairs configured in system scope.

    Linux yields `/root` first, then every directory under `/home`; macOS
    yields directories under `/Users` except the shared and guest ones.
    """

    if os_kind is not OSKind.MACOS and (root / "root").is_dir():
        yield root / "root", "root"

    users_dir = root / ("Users" if os_kind is OSKind.MACOS else "home")
    if not users_dir.is_dir():
        return
    for home in sorted(users_dir.iterdir()):
        if not home.is_dir():
            continue
        if os_kind is OSKind.MACOS and home.name in SKIPPED_MACOS_HOMES:
            continue
        yield home, home.name


@dataclass
class DotfilesConfigurator:
    """Applies the managed nano, screen and shell settings."""

    session: ConfigSession
    os_kind: OSKind
    screen_installed: bool = False
    term: str = ""

    @property
    def reporter(self) -> Reporter:
        return self.session.reporter

    def configure_nano(self, path: Path) -> None:
        self.reporter.info(f"Configuring nano: {path}")
        for setting, value, description in NANO_SETTINGS:
            self.session.add_config_if_needed("nano", path, setting, value, description)

        if self.os_kind is OSKind.MACOS:
            pattern = r'include\s+"/opt/homebrew/share/nano/\*\.nanorc"'
            self.session.update_config_line(
                "nano", path, pattern, HOMEBREW_NANO_INCLUDE, "homebrew nano syntax definitions"
            )
        self.reporter.success(f"nano configuration completed for {path}")

    def configure_screen(self, path: Path) -> None:
        self.reporter.info(f"Configuring GNU screen: {path}")
        for setting, value, description in SCREEN_SETTINGS:
            self.session.add_config_if_needed("screen", path, setting, value, description)
        self.reporter.success(f"GNU screen configuration completed for {path}")

    def configure_shell_for_user(self, home: Path, username: str) -> Path | None:
        if not home.is_dir():
            self.reporter.warning(f"Home directory {home} does not exist, skipping user {username}")
            return None

        path = shell_config_path(home, self.os_kind)
        session = self.session
        macos = self.os_kind is OSKind.MACOS

        session.add_section_comment("shell", path, "Aliases to help avoid some mistakes", "# Aliases to help avoid some mistakes:")
        for name, value, description in SAFETY_ALIASES:
            session.add_alias_if_needed(path, name, value, description)
        for name, value, description in VERBOSE_ALIASES:
            session.add_alias_if_needed(path, name, value, description)

        if macos:
            session.add_section_comment("shell", path, "macOS ls configuration", "# macOS ls configuration")
            session.add_export_if_needed(path, "CLICOLOR", "YES", "terminal colors")
            session.add_alias_if_needed(path, "ls", "ls -AFGHhl", "macOS ls with colors and formatting")
        else:
            session.add_section_comment("shell", path, "Linux ls configuration", "# Linux ls configuration")
            session.add_alias_if_needed(
                path, "ls", "ls --color=auto --group-directories-first -AFHhl", "Linux ls with colors and formatting"
            )

        session.add_section_comment("shell", path, "Additional utility aliases", "# Additional utility aliases")
        for name, value, description in UTILITY_ALIASES:
            session.add_alias_if_needed(path, name, value, description)
        if self.screen_installed and self.term:
            session.add_alias_if_needed(path, "screen", f"screen -T {self.term}", "screen with proper terminal type")

        if macos:
            session.add_section_comment(
                "shell", path, "7z compression helpers (macOS", "# 7z compression helpers (macOS - using 7zz)"
            )
        else:
            session.add_section_comment("shell", path, "# 7z compression helpers", "# 7z compression helpers")
        for name, value, description in seven_zip_aliases(self.os_kind):
            session.add_alias_if_needed(path, name, value, description)

        _restore_owner(path, username)
        self.reporter.success(f"Shell configuration completed for {path} (user: {username})")
        return path

    def configure_shell(self, scope: ConfigScope, *, home: Path | None = None, root: Path = Path("/")) -> list[Path]:
        configured: list[Path] = []
        if scope is ConfigScope.USER:
            path = self.configure_shell_for_user(home or Path.home(), getpass.getuser())
            return [path] if path else []

        for user_home, username in system_user_homes(self.os_kind, root=root):
            self.reporter.info(f"Configuring shell for {username}...")
            path = self.configure_shell_for_user(user_home, username)
            if path:
                configured.append(path)
        if configured:
            self.reporter.success(f"Configured shell for {len(configured)} user(s)")
        return configured


def _restore_owner(path: Path, username: str) -> None:
    """Give files created as root back to the user whose home they live in."""

    geteuid = getattr(os, "geteuid", None)
    if geteuid is None or geteuid() != 0 or username == "root" or not path.exists():
        return
    try:
        shutil.chown(path, user=username, group=username)
    except (LookupError, OSError) as exc:
        logger.debug("could not chown %s to %s: %s", path, username, exc)
