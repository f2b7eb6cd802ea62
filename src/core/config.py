"""Environment-backed settings (.env is loaded once, on first read)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ValidationError

_ENV_LOADED = False


def _load_env(env_path: Optional[Path] = None) -> None:
    global _ENV_LOADED
    if _ENV_LOADED:
        return
    load_dotenv(dotenv_path=env_path or Path.cwd() / ".env")
    _ENV_LOADED = True


def get_env(
    name: str, default: str | None = None, required: bool = False
) -> str | None:
    _load_env()
    value = os.environ.get(name, default)
    if required and (value is None or value == ""):
        raise ValidationError(f"{name} env var is required")
    return value


def get_int_env(name: str, default: int) -> int:
    raw = get_env(name)
    if raw is None or raw == "":
        return default
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid {name}: {raw}") from exc
    if parsed < 0:
        raise ValidationError(f"Invalid {name}: {raw}")
    return parsed


def get_float_env(name: str, default: float) -> float:
    """Durations only; amounts never come through here."""
    raw = get_env(name)
    if raw is None or raw == "":
        return default
    try:
        parsed = float(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid {name}: {raw}") from exc
    if parsed < 0:
        raise ValidationError(f"Invalid {name}: {raw}")
    return parsed
