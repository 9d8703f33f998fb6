"""Environment helpers for Atlas (loads .env + typed accessors).

Blank values count as unset, so ``FOO=`` in a .env file falls back to the
caller's default instead of overriding it with an empty string.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from dotenv import load_dotenv

T = TypeVar("T")

# Load .env early for any module importing env_utils.
load_dotenv(Path(__file__).parent / ".env")

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def _raw(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def env_present(name: str) -> bool:
    return _raw(name) is not None


def env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = _raw(name)
    return default if value is None else value


def _parsed(name: str, default: T, parse: Callable[[str], T]) -> T:
    value = _raw(name)
    if value is None:
        return default
    try:
        return parse(value)
    except (TypeError, ValueError):
        return default


def env_float(name: str, default: float) -> float:
    return _parsed(name, default, float)


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(value)


def env_bool(name: str, default: bool) -> bool:
    return _parsed(name, default, _parse_bool)


def parse_bool(value: Any, default: bool = False) -> bool:
    """Config flag to bool; ``"false"`` and ``"off"`` are False, unknown text is ``default``."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    try:
        return _parse_bool(str(value).strip())
    except ValueError:
        return default


def _resolve_root() -> Path:
    here = Path(__file__).resolve().parent
    root = Path(env_str("ATLAS_ROOT", str(here)) or str(here)).expanduser()
    return root if root.is_absolute() else (here / root).resolve()


ATLAS_ROOT = str(_resolve_root())
ATLAS_CONFIG_PATH = env_str("ATLAS_CONFIG_PATH", str(Path(ATLAS_ROOT) / "atlas.yaml"))
