"""Apply env overrides to atlas.yaml config."""

from __future__ import annotations

from copy import deepcopy
import os
from typing import Any, Dict, Set, Tuple

from env_utils import (
    env_present,
    env_str,
    env_float,
    env_bool,
)
from logging_utils import get_logger
from venues import normalize_venue, parse_enabled_venues


PathKey = Tuple[str, ...]

LOG = get_logger("atlas.config")

# Keep env overrides focused on connectivity and runtime plumbing.
# Trading/risk thresholds come from atlas.yaml only.
ALLOWED_ENV_OVERRIDES = {
    "ATLAS_HL_URL",
    "ATLAS_TESTNET",
    "ATLAS_TIMEOUT_SEC",
    "ATLAS_MORPHO_URL",
    "ATLAS_MORPHO_CHAIN",
    "ATLAS_ZEROX_URL",
    "ATLAS_ZEROX_CHAIN",
    "ATLAS_ENABLED_VENUES",
    "ATLAS_DEFAULT_PERP",
    "ATLAS_DEFAULT_LENDING",
    "ATLAS_DEFAULT_SWAP",
}

# Process-level settings read elsewhere; never config overrides.
_PROCESS_ENV = {"ATLAS_ROOT", "ATLAS_CONFIG_PATH", "ATLAS_LOG_LEVEL"}

_WARNED_IGNORED_ENV_OVERRIDES = False


def _warn_ignored_env_overrides_once(names: Set[str]) -> None:
    global _WARNED_IGNORED_ENV_OVERRIDES
    if _WARNED_IGNORED_ENV_OVERRIDES or not names:
        return
    sorted_names = sorted(names)
    preview = ", ".join(sorted_names[:12])
    extra = len(sorted_names) - 12
    if extra > 0:
        preview = f"{preview}, +{extra} more"
    LOG.warning(
        "Ignoring non-whitelisted ATLAS env overrides (YAML-first mode). "
        f"Ignored keys: {preview}"
    )
    _WARNED_IGNORED_ENV_OVERRIDES = True


def _get_path(cfg: Dict[str, Any], path: PathKey, default: Any = None) -> Any:
    cur: Any = cfg
    for key in path:
        if not isinstance(cur, dict) or key not in cur:
            return default
        cur = cur[key]
    return cur


def _set_path(cfg: Dict[str, Any], path: PathKey, value: Any) -> None:
    cur: Any = cfg
    for key in path[:-1]:
        if key not in cur or not isinstance(cur[key], dict):
            cur[key] = {}
        cur = cur[key]
    cur[path[-1]] = value


def ignored_env_overrides() -> Set[str]:
    """ATLAS_* names present in the environment that no override consumes."""
    return {
        name
        for name in os.environ
        if name.startswith("ATLAS_")
        and name not in ALLOWED_ENV_OVERRIDES
        and name not in _PROCESS_ENV
        and env_present(name)
    }


def apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``config`` with whitelisted env overrides applied."""
    cfg = deepcopy(config) if config else {}

    def override(path: PathKey, env_name: str, kind: str = "str") -> None:
        if not env_present(env_name):
            return
        default = _get_path(cfg, path)
        if kind == "float":
            value = env_float(env_name, float(default) if default is not None else 0.0)
        elif kind == "bool":
            value = env_bool(env_name, bool(default) if default is not None else False)
        else:
            value = env_str(env_name, default if default is not None else "")
        _set_path(cfg, path, value)

    # Network
    override(("network", "hyperliquid_url"), "ATLAS_HL_URL")
    override(("network", "testnet"), "ATLAS_TESTNET", kind="bool")
    override(("network", "timeout_sec"), "ATLAS_TIMEOUT_SEC", kind="float")
    override(("network", "morpho_url"), "ATLAS_MORPHO_URL")
    override(("network", "morpho_chain"), "ATLAS_MORPHO_CHAIN")
    override(("network", "zerox_url"), "ATLAS_ZEROX_URL")
    override(("network", "zerox_chain"), "ATLAS_ZEROX_CHAIN")

    # Modules
    enabled_raw = env_str("ATLAS_ENABLED_VENUES", "") or ""
    if enabled_raw:
        enabled = parse_enabled_venues(enabled_raw)
        if enabled:
            _set_path(cfg, ("modules", "enabled"), enabled)
        else:
            LOG.warning(f"ATLAS_ENABLED_VENUES={enabled_raw!r} has no venues; keeping YAML value")
    for cap in ("perp", "lending", "swap"):
        env_name = f"ATLAS_DEFAULT_{cap.upper()}"
        if env_present(env_name):
            _set_path(cfg, ("modules", f"default_{cap}"), normalize_venue(env_str(env_name)))

    _warn_ignored_env_overrides_once(ignored_env_overrides())

    return cfg
