"""
CLI utility helpers: consoles and settings overrides.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console

from breakwater.core.config import BreakwaterSettings, get_settings

console = Console()
err_console = Console(stderr=True)


def resolve_settings(**overrides: Any) -> BreakwaterSettings:
    """Cached settings with non-``None`` CLI overrides applied and validated."""
    settings = get_settings()
    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return settings
    try:
        return BreakwaterSettings.model_validate({**settings.model_dump(), **updates})
    except ValidationError as e:
        err_console.print(f"[bold red]Invalid option[/bold red]: {e}")
        raise typer.Exit(code=2) from e
