"""Jinja2 rendering of generated configuration files.

Por qué plantillas:
- Los layouts de screen y las unidades systemd-networkd son ficheros con su
  propia sintaxis; como `.j2` siguen siendo legibles y comparables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def _get_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=False,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )


def render_template(name: str, /, **context: Any) -> str:
    return _get_env().get_template(name).render(**context)
