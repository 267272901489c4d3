"""Core configuration.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP, GitHub, rsync) lean config de forma consistente.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_DIR_NAME = "system-setup"


def get_user_env_file() -> Path:
    """`.env` in the per-user config dir: %APPDATA%, Application Support or XDG."""

    home = Path.home()
    if sys.platform.startswith("win"):
        config_dir = Path(os.environ.get("APPDATA") or home)
    elif sys.platform == "darwin":
        config_dir = home / "Library" / "Application Support"
    else:
        config_dir = Path(os.environ.get("XDG_CONFIG_HOME") or home / ".config")
    return config_dir / APP_DIR_NAME / ".env"


def write_user_env_vars(values: dict[str, str | None], *, env_path: Path | None = None) -> Path:
    """Set `values` in the user's .env.

    Keys already present are rewritten in place and new keys are appended in
    sorted order. `None` values are ignored.
    """

    env_path = env_path or get_user_env_file()
    pending = {key: value for key, value in values.items() if value is not None}
    if env_path.is_file():
        lines = env_path.read_text(encoding="utf-8").splitlines()
    else:
        lines = [f"# {APP_DIR_NAME} user config (.env)"]

    for index, line in enumerate(lines):
        key = line.partition("=")[0].strip()
        if not line.lstrip().startswith("#") and key in pending:
            lines[index] = f"{key}={pending.pop(key)}"
    lines.extend(f"{key}={value}" for key, value in sorted(pending.items()))

    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    if not sys.platform.startswith("win"):
        env_path.chmod(0o600)
    return env_path


class AppSettings(BaseSettings):
    """Central application settings.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar los servicios.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="SYSTEM_SETUP_",
        extra="ignore",
        case_sensitive=False,
        # Project .env first (development), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout per HTTP request (seconds).",
    )
    user_agent: str = Field(
        default="system-setup/0.1",
        min_length=1,
        description="User-Agent sent to GitHub and raw download hosts.",
    )

    github_api_url: str = Field(
        default="https://api.github.com",
        min_length=8,
        description="Base URL of the GitHub REST API (GraphQL lives at <base>/graphql).",
    )
    github_token: str | None = Field(
        default=None,
        description="GitHub token. Falls back to GH_TOKEN/GITHUB_TOKEN, then `gh auth token`.",
    )

    copy_throttle_seconds: float = Field(
        default=0.3,
        ge=0,
        description="Sleep before each mutating GitHub call during an org copy.",
    )
    delete_throttle_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Sleep after each repository deletion.",
    )
    issue_throttle_seconds: float = Field(
        default=0.2,
        ge=0,
        description="Sleep after each processed issue during bulk issue cleanup.",
    )
    archived_pr_label: str = Field(
        default="archived-pr",
        min_length=1,
        description="Label applied to issues that archive a pull request.",
    )

    remote_base_url: str = Field(
        default="https://raw.githubusercontent.com/JesseNaranjo/system-setup/refs/heads/main",
        min_length=8,
        description="Base URL the self-update flow downloads managed files from.",
    )

    rsync_log_file: Path = Field(
        default_factory=lambda: Path.home() / ".rsync-two-way.log",
        description="Log file appended to by the two-way sync command.",
    )
