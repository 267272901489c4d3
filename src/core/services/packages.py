"""Package checks, installs and the maintenance helper.

Por qué aquí:
- La lista de paquetes cambia según el SO (fórmulas Homebrew vs paquetes Debian).
- El estado instalado se lee una vez por ejecución (`brew list` / `dpkg -l`) y se cachea.
- El menú de mantenimiento muestra lo que soporta cada gestor y marca el resto
  como no disponible en lugar de fallar.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from core.domain.platform import OSKind, PackageManagerKind
from core.errors import SetupError, ToolError
from core.interfaces.prompter import Prompter
from core.interfaces.reporter import Reporter
from core.interfaces.runner import CommandRunner
from core.services.platform_info import elevated

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageSpec:
    display_name: str
    package: str


MACOS_PACKAGES: tuple[PackageSpec, ...] = (
    PackageSpec("7-zip", "sevenzip"),
    PackageSpec("AWK", "awk"),
    PackageSpec("Bash", "bash"),
    PackageSpec("CA Certificates", "ca-certificates"),
    PackageSpec("Git", "git"),
    PackageSpec("htop", "htop"),
    PackageSpec("Nano Editor", "nano"),
    PackageSpec("Ollama", "ollama"),
    PackageSpec("Screen (GNU)", "screen"),
)

LINUX_PACKAGES: tuple[PackageSpec, ...] = (
    PackageSpec("7-zip", "7zip"),
    PackageSpec("aptitude", "aptitude"),
    PackageSpec("ca-certificates", "ca-certificates"),
    PackageSpec("cURL", "curl"),
    PackageSpec("Git", "git"),
    PackageSpec("htop", "htop"),
    PackageSpec("Nano Editor", "nano"),
    PackageSpec("OpenSSH Server", "openssh-server"),
    PackageSpec("Screen (GNU)", "screen"),
)

# Packages whose presence later configuration steps depend on.
SPECIAL_PACKAGES = ("nano", "screen", "openssh-server")


def package_list(os_kind: OSKind) -> tuple[PackageSpec, ...]:
    return MACOS_PACKAGES if os_kind is OSKind.MACOS else LINUX_PACKAGES


def parse_dpkg_installed(output: str) -> set[str]:
    """Package names of `ii` rows in `dpkg -l` output (architecture suffix dropped)."""

    installed: set[str] = set()
    for line in output.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "ii":
            installed.add(parts[1].split(":", 1)[0])
    return installed


@dataclass
class PackageInventory:
    """Installed-state cache for the packages this tool manages."""

    runner: CommandRunner
    os_kind: OSKind
    _installed: set[str] | None = field(default=None, init=False, repr=False)

    def _load(self) -> set[str]:
        if self.os_kind is OSKind.MACOS:
            cmd = ["brew", "list", "--formula", "-1"]
        else:
            cmd = ["dpkg", "-l"]
        try:
            result = self.runner.run(cmd, check=False)
        except ToolError as exc:
            logger.debug("package listing failed: %s", exc)
            return set()
        if self.os_kind is OSKind.MACOS:
            return {line.strip() for line in (result.stdout or "").splitlines() if line.strip()}
        return parse_dpkg_installed(result.stdout or "")

    def is_installed(self, package: str) -> bool:
        if self._installed is None:
            self._installed = self._load()
        return package in self._installed

    def mark_installed(self, packages: list[str]) -> None:
        if self._installed is None:
            self._installed = self._load()
        self._installed.update(packages)


@dataclass
class InstallOutcome:
    present: list[str] = field(default_factory=list)
    selected: list[str] = field(default_factory=list)
    install_ok: bool = True

    def has(self, package: str) -> bool:
        """Installed before the run, or chosen and installed successfully."""

        return package in self.present or (self.install_ok and package in self.selected)

    def tracked(self) -> dict[str, bool]:
        return {package: self.has(package) for package in SPECIAL_PACKAGES}


@dataclass
class PackageInstaller:
    runner: CommandRunner
    prompter: Prompter
    reporter: Reporter
    os_kind: OSKind
    inventory: PackageInventory
    can_install: bool = True

    def check_and_install(self) -> InstallOutcome:
        outcome = InstallOutcome()
        self.reporter.info("Checking for required packages...")
        if not self.can_install:
            self.reporter.warning(
                "Cannot install packages without root privileges (will only detect installed packages)"
            )

        for spec in package_list(self.os_kind):
            if self.inventory.is_installed(spec.package):
                self.reporter.success(f"{spec.display_name} is already installed")
                outcome.present.append(spec.package)
                continue
            self.reporter.warning(f"{spec.display_name} is not installed")
            if self.can_install and self.prompter.confirm(f"Would you like to install {spec.display_name}?"):
                outcome.selected.append(spec.package)

        if not outcome.selected:
            if self.can_install:
                self.reporter.info("No new packages to install.")
            return outcome

        outcome.install_ok = self.install(outcome.selected)
        if outcome.install_ok:
            self.inventory.mark_installed(outcome.selected)
        else:
            self.reporter.error(
                "Package installation failed or was cancelled. "
                "Continuing with configuration for any packages that are already present."
            )
        return outcome

    def install(self, packages: list[str]) -> bool:
        try:
            if self.os_kind is OSKind.MACOS:
                return self._brew_install(packages)
            self.runner.run(["apt", "update"], capture=False)
            self.runner.run(["apt", "install", *packages], capture=False)
        except ToolError as exc:
            logger.debug("install failed: %s", exc)
            return False
        self.reporter.success("All packages installed successfully")
        return True

    def _brew_install(self, packages: list[str]) -> bool:
        deps = self.runner.run(["brew", "deps", *packages], check=False).stdout or ""
        wanted = sorted(set(packages))
        self.reporter.info("Installing: " + " ".join(wanted))
        dependencies = sorted({name for name in deps.split() if name not in wanted})
        if dependencies:
            self.reporter.info("Installing dependencies: " + " ".join(dependencies))
        if not self.prompter.confirm("Continue?", default=True):
            return False
        self.runner.run(["brew", "install", *packages], capture=False)
        self.reporter.success("All packages installed successfully")
        return True


# --- maintenance helper ------------------------------------------------------

HELPER_OPTIONS: tuple[tuple[str, str], ...] = (
    ("1", "List packages upgradeable from backports"),
    ("2", "List packages with residual configs (and optionally purge)"),
    ("3", "Run autoremove"),
    ("4", "Clean package cache"),
)


def read_release_codename(os_release: Path = Path("/etc/os-release")) -> str:
    """`VERSION_CODENAME`, falling back to `VERSION_ID`, from os-release."""

    try:
        text = os_release.read_text(encoding="utf-8")
    except OSError:
        return ""
    values: dict[str, str] = {}
    for line in text.splitlines():
        if "=" in line:
            key, value = line.split("=", 1)
            values[key.strip()] = value.strip().strip('"')
    return values.get("VERSION_CODENAME") or values.get("VERSION_ID") or ""


@dataclass
class PackageHelper:
    """Interactive maintenance operations for apt, dnf and zypper."""

    runner: CommandRunner
    prompter: Prompter
    reporter: Reporter
    manager: PackageManagerKind
    os_release: Path = Path("/etc/os-release")

    def __post_init__(self) -> None:
        if self.manager not in (PackageManagerKind.APT, PackageManagerKind.DNF, PackageManagerKind.ZYPPER):
            raise SetupError(
                "No supported package manager found.",
                hint="Supported: apt (Debian/Ubuntu), dnf (Fedora/RHEL 8+), zypper (openSUSE)",
            )

    def supports(self, option: str) -> bool:
        if option in ("1", "2"):
            return self.manager is PackageManagerKind.APT
        return option in ("3", "4")

    def menu(self) -> list[str]:
        lines = []
        for key, label in HELPER_OPTIONS:
            prefix = "" if self.supports(key) else "(Not Available) "
            lines.append(f"{key}) {prefix}{label}")
        lines.append("5) Exit (or Ctrl+C)")
        return lines

    def run_choice(self, choice: str) -> bool:
        """Run one menu choice; False means exit the menu loop."""

        choice = choice.strip()
        if choice == "5":
            self.reporter.info("Exiting.")
            return False
        actions = {
            "1": ("Backports listing", self.list_backports_upgrades),
            "2": ("Residual config management", self.residual_configs),
            "3": ("Autoremove", self.autoremove),
            "4": ("Cache cleaning", self.clean_cache),
        }
        if choice not in actions:
            self.reporter.error("Invalid choice. Please try again.")
            return True
        feature, action = actions[choice]
        if not self.supports(choice):
            self.reporter.warning(f"{feature} is not available for {self.manager.value}.")
            return True
        action()
        return True

    def list_backports_upgrades(self) -> None:
        if not self.runner.which("aptitude"):
            self.reporter.error("aptitude is not installed. Please install it with: sudo apt install aptitude")
            return
        release = read_release_codename(self.os_release)
        if not release:
            self.reporter.error("Could not determine release codename from /etc/os-release")
            return
        self.reporter.info(f"Release: {release}")
        self.reporter.info(f"Searching for upgradeable packages in {release}-backports...")
        self.runner.run(["aptitude", "-t", f"{release}-backports", "search", "~U"], check=False, capture=False)
        self.reporter.success("Backports search complete.")

    def residual_configs(self) -> None:
        self.reporter.info("Listing packages with residual configuration files...")
        output = self.runner.run(["apt", "list", "~c"], check=False).stdout or ""
        packages = [line for line in output.splitlines() if line.strip() and not line.startswith("Listing")]
        if not packages:
            self.reporter.success("No packages with residual configuration files found.")
            return
        for line in packages:
            self.reporter.step(line)
        if self.prompter.confirm("Do you want to purge these residual configuration files?"):
            self.runner.run(elevated(["apt", "purge", "~c"]), capture=False)
            self.reporter.success("Residual configuration files purged.")
        else:
            self.reporter.info("Skipped purging residual configuration files.")

    def autoremove(self) -> None:
        commands = {
            PackageManagerKind.APT: ["apt", "autoremove"],
            PackageManagerKind.DNF: ["dnf", "autoremove"],
            PackageManagerKind.ZYPPER: ["zypper", "packages", "--unneeded"],
        }
        self.reporter.info("Running autoremove to clean up unused packages...")
        self.runner.run(elevated(commands[self.manager]), capture=False)
        self.reporter.success("Autoremove complete.")

    def clean_cache(self) -> None:
        commands = {
            PackageManagerKind.APT: ["apt", "clean"],
            PackageManagerKind.DNF: ["dnf", "clean", "all"],
            PackageManagerKind.ZYPPER: ["zypper", "clean", "--all"],
        }
        self.reporter.info("Cleaning package cache...")
        self.runner.run(elevated(commands[self.manager]), capture=False)
        self.reporter.success("Package cache cleaned.")
