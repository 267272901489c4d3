"""Interactive prompts (Typer).

Mirrors the `(Y/n)` / `(y/N)` questions of the scripts: an empty reply takes
the default, anything else must be `y`/`Y` to count as yes.
"""

from __future__ import annotations

import typer


class TyperPrompter:
    """`Prompter` that reads from the terminal through Typer."""

    def confirm(self, message: str, *, default: bool = False) -> bool:
        suffix = "(Y/n)" if default else "(y/N)"
        reply = typer.prompt(f"{message} {suffix}", default="", show_default=False).strip()
        if not reply:
            return default
        return reply in ("y", "Y")

    def ask(self, message: str, *, default: str | None = None) -> str:
        if default is None:
            return str(typer.prompt(message)).strip()
        return str(typer.prompt(message, default=default, show_default=True)).strip()


class AssumeYesPrompter:
    """Answers yes to every confirmation (`--yes`); free-text questions keep their default."""

    def confirm(self, message: str, *, default: bool = False) -> bool:
        return True

    def ask(self, message: str, *, default: str | None = None) -> str:
        if default is None:
            raise typer.BadParameter(f"No default available for: {message}")
        return default
