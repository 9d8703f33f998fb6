#!/usr/bin/env python3
"""Atlas configuration: trading, risk, network, modules and builder fee.

Loaded from ``atlas.yaml`` (or ``ATLAS_CONFIG_PATH``) with env overrides
applied on top (see ``config_env``). Unknown keys are ignored; bad enum
values fall back to defaults so a stale file never blocks startup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from config_env import apply_env_overrides
from env_utils import ATLAS_CONFIG_PATH, parse_bool
from fee_policy import DEFAULT_BUILDER_FEE, BuilderFee
from logging_utils import get_logger
from venues import (
    HYPERLIQUID_MAINNET_URL,
    HYPERLIQUID_TESTNET_URL,
    VENUE_HYPERLIQUID,
    VENUE_MORPHO,
    VENUE_ZEROX,
    Chain,
    normalize_venue,
    parse_chain,
)

LOG = get_logger("atlas.config")


class SizeMode(str, Enum):
    """How a bare size number is read: USDC margin, asset units or lots."""

    USDC = "usdc"
    UNITS = "units"
    LOTS = "lots"


class TradingMode(str, Enum):
    """``futures`` sizes in asset units; ``cfd`` sizes in lots."""

    FUTURES = "futures"
    CFD = "cfd"


def _enum_or(enum_cls, value: Any, default):
    try:
        return enum_cls(str(getattr(value, "value", value)).strip().lower())
    except ValueError:
        LOG.warning(f"Invalid {enum_cls.__name__} {value!r}; using {default.value}")
        return default


def _float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float(default)


def _int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


def _opt_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def coin_key(coin: Any) -> str:
    """Per-coin tables are keyed by the upper-cased symbol."""
    return str(coin).strip().upper()


def _default_lot_assets() -> Dict[str, float]:
    return {
        "BTC": 0.001,
        "ETH": 0.01,
        "SOL": 1.0,
        "DOGE": 100.0,
        "ARB": 10.0,
        "AVAX": 1.0,
        "MATIC": 100.0,
        "LINK": 1.0,
        "OP": 10.0,
        "SUI": 10.0,
    }


# =============================================================================
# Trading
# =============================================================================


@dataclass
class LotConfig:
    """Units of the asset per standard lot, per coin."""

    default_lot_size: float = 1.0
    assets: Dict[str, float] = field(default_factory=_default_lot_assets)

    def lot_size(self, coin: str) -> float:
        return float(self.assets.get(coin_key(coin), self.default_lot_size))

    def lots_to_size(self, coin: str, lots: float) -> float:
        return lots * self.lot_size(coin)

    def size_to_lots(self, coin: str, size: float) -> float:
        lot = self.lot_size(coin)
        if lot == 0:
            return size
        return size / lot

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "LotConfig":
        raw = raw if isinstance(raw, dict) else {}
        assets = _default_lot_assets()
        for coin, size in (raw.get("assets") or {}).items():
            assets[coin_key(coin)] = _float(size, 1.0)
        return cls(
            default_lot_size=_float(raw.get("default_lot_size"), 1.0),
            assets=assets,
        )


@dataclass
class TradingConfig:
    mode: TradingMode = TradingMode.FUTURES
    default_size_mode: SizeMode = SizeMode.USDC
    default_leverage: int = 1
    default_slippage: float = 0.05
    lots: LotConfig = field(default_factory=LotConfig)

    @property
    def is_cfd(self) -> bool:
        return self.mode is TradingMode.CFD

    def resolve_size(self, coin: str, raw: float) -> float:
        """Bare unit count to asset units (lots in CFD mode)."""
        if self.is_cfd:
            return self.lots.lots_to_size(coin, raw)
        return raw

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "TradingConfig":
        raw = raw if isinstance(raw, dict) else {}
        return cls(
            mode=_enum_or(TradingMode, raw.get("mode", "futures"), TradingMode.FUTURES),
            default_size_mode=_enum_or(
                SizeMode, raw.get("default_size_mode", "usdc"), SizeMode.USDC
            ),
            default_leverage=max(1, _int(raw.get("default_leverage"), 1)),
            default_slippage=_float(raw.get("default_slippage"), 0.05),
            lots=LotConfig.from_dict(raw.get("lots")),
        )


# =============================================================================
# Risk
# =============================================================================


@dataclass
class AssetRiskOverride:
    max_risk_pct: Optional[float] = None
    default_stop_pct: Optional[float] = None
    max_size: Optional[float] = None  # asset units, hard cap


@dataclass
class RiskConfig:
    """Thresholds for sizing and validation. Percentages are fractions (0.02 = 2%)."""

    max_risk_pct: float = 0.02
    max_positions: int = 10
    max_exposure_multiplier: float = 3.0
    default_stop_pct: float = 0.02
    max_leverage: int = 50
    # Exposure beyond this multiple of the account blocks instead of warning.
    hard_exposure_multiplier: Optional[float] = None
    # Take-profit distance as a multiple of the stop distance; 0 disables it.
    reward_risk_ratio: float = 2.0
    asset_overrides: Dict[str, AssetRiskOverride] = field(default_factory=dict)

    def effective_risk_pct(self, coin: str) -> float:
        o = self.asset_overrides.get(coin_key(coin))
        if o is not None and o.max_risk_pct is not None:
            return o.max_risk_pct
        return self.max_risk_pct

    def effective_stop_pct(self, coin: str) -> float:
        o = self.asset_overrides.get(coin_key(coin))
        if o is not None and o.default_stop_pct is not None:
            return o.default_stop_pct
        return self.default_stop_pct

    def max_size(self, coin: str) -> Optional[float]:
        o = self.asset_overrides.get(coin_key(coin))
        return o.max_size if o is not None else None

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "RiskConfig":
        raw = raw if isinstance(raw, dict) else {}
        overrides: Dict[str, AssetRiskOverride] = {}
        for coin, o in (raw.get("asset_overrides") or {}).items():
            if not isinstance(o, dict):
                continue
            overrides[coin_key(coin)] = AssetRiskOverride(
                max_risk_pct=_opt_float(o.get("max_risk_pct")),
                default_stop_pct=_opt_float(o.get("default_stop_pct")),
                max_size=_opt_float(o.get("max_size")),
            )
        return cls(
            max_risk_pct=_float(raw.get("max_risk_pct"), 0.02),
            max_positions=_int(raw.get("max_positions"), 10),
            max_exposure_multiplier=_float(raw.get("max_exposure_multiplier"), 3.0),
            default_stop_pct=_float(raw.get("default_stop_pct"), 0.02),
            max_leverage=_int(raw.get("max_leverage"), 50),
            hard_exposure_multiplier=_opt_float(raw.get("hard_exposure_multiplier")),
            reward_risk_ratio=_float(raw.get("reward_risk_ratio"), 2.0),
            asset_overrides=overrides,
        )


# =============================================================================
# Network / modules
# =============================================================================


@dataclass
class NetworkConfig:
    hyperliquid_url: str = HYPERLIQUID_MAINNET_URL
    testnet: bool = False
    morpho_url: str = "https://blue-api.morpho.org/graphql"
    morpho_chain: Chain = Chain.ETHEREUM
    zerox_url: str = "https://api.0x.org"
    zerox_chain: Chain = Chain.ETHEREUM
    timeout_sec: float = 30.0

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "NetworkConfig":
        raw = raw if isinstance(raw, dict) else {}
        base = cls()
        testnet = parse_bool(raw.get("testnet"), False)
        # No explicit URL on testnet means the testnet API, not mainnet.
        hl_default = HYPERLIQUID_TESTNET_URL if testnet else base.hyperliquid_url
        return cls(
            hyperliquid_url=str(raw.get("hyperliquid_url") or hl_default).rstrip("/"),
            testnet=testnet,
            morpho_url=str(raw.get("morpho_url") or base.morpho_url),
            morpho_chain=parse_chain(raw.get("morpho_chain"), Chain.ETHEREUM),
            zerox_url=str(raw.get("zerox_url") or base.zerox_url).rstrip("/"),
            zerox_chain=parse_chain(raw.get("zerox_chain"), Chain.ETHEREUM),
            timeout_sec=_float(raw.get("timeout_sec"), 30.0),
        )


@dataclass
class ModulesConfig:
    """Which venues get registered, and which one is each capability's default.

    The default is registered first so it becomes the orchestrator default.
    """

    enabled: List[str] = field(
        default_factory=lambda: [VENUE_HYPERLIQUID, VENUE_MORPHO, VENUE_ZEROX]
    )
    default_perp: str = VENUE_HYPERLIQUID
    default_lending: str = VENUE_MORPHO
    default_swap: str = VENUE_ZEROX

    def is_enabled(self, venue: str) -> bool:
        return normalize_venue(venue) in self.enabled

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "ModulesConfig":
        raw = raw if isinstance(raw, dict) else {}
        base = cls()
        enabled_raw = raw.get("enabled")
        if isinstance(enabled_raw, str):
            enabled_raw = [p for p in enabled_raw.split(",")]
        if isinstance(enabled_raw, list):
            enabled: List[str] = []
            for v in enabled_raw:
                norm = normalize_venue(v)
                if norm and norm not in enabled:
                    enabled.append(norm)
        else:
            enabled = list(base.enabled)
        return cls(
            enabled=enabled,
            default_perp=normalize_venue(raw.get("default_perp") or base.default_perp),
            default_lending=normalize_venue(raw.get("default_lending") or base.default_lending),
            default_swap=normalize_venue(raw.get("default_swap") or base.default_swap),
        )


# =============================================================================
# Top level
# =============================================================================


@dataclass
class AppConfig:
    trading: TradingConfig = field(default_factory=TradingConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    modules: ModulesConfig = field(default_factory=ModulesConfig)
    builder_fee: BuilderFee = DEFAULT_BUILDER_FEE

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "AppConfig":
        raw = raw if isinstance(raw, dict) else {}
        return cls(
            trading=TradingConfig.from_dict(raw.get("trading")),
            risk=RiskConfig.from_dict(raw.get("risk")),
            network=NetworkConfig.from_dict(raw.get("network")),
            modules=ModulesConfig.from_dict(raw.get("modules")),
            builder_fee=BuilderFee.from_dict(raw.get("builder_fee")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trading": {
                "mode": self.trading.mode.value,
                "default_size_mode": self.trading.default_size_mode.value,
                "default_leverage": self.trading.default_leverage,
                "default_slippage": self.trading.default_slippage,
                "lots": {
                    "default_lot_size": self.trading.lots.default_lot_size,
                    "assets": dict(self.trading.lots.assets),
                },
            },
            "risk": {
                "max_risk_pct": self.risk.max_risk_pct,
                "max_positions": self.risk.max_positions,
                "max_exposure_multiplier": self.risk.max_exposure_multiplier,
                "default_stop_pct": self.risk.default_stop_pct,
                "max_leverage": self.risk.max_leverage,
                "hard_exposure_multiplier": self.risk.hard_exposure_multiplier,
                "reward_risk_ratio": self.risk.reward_risk_ratio,
                "asset_overrides": {
                    coin: {
                        "max_risk_pct": o.max_risk_pct,
                        "default_stop_pct": o.default_stop_pct,
                        "max_size": o.max_size,
                    }
                    for coin, o in self.risk.asset_overrides.items()
                },
            },
            "network": {
                "hyperliquid_url": self.network.hyperliquid_url,
                "testnet": self.network.testnet,
                "morpho_url": self.network.morpho_url,
                "morpho_chain": self.network.morpho_chain.value,
                "zerox_url": self.network.zerox_url,
                "zerox_chain": self.network.zerox_chain.value,
                "timeout_sec": self.network.timeout_sec,
            },
            "modules": {
                "enabled": list(self.modules.enabled),
                "default_perp": self.modules.default_perp,
                "default_lending": self.modules.default_lending,
                "default_swap": self.modules.default_swap,
            },
            "builder_fee": self.builder_fee.to_dict(),
        }


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load ``atlas.yaml`` (missing file means defaults) and apply env overrides."""
    cfg_path = Path(path or ATLAS_CONFIG_PATH or "atlas.yaml").expanduser()
    raw: Dict[str, Any] = {}
    if cfg_path.exists():
        with open(cfg_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config root must be a mapping: {cfg_path}")
    else:
        LOG.debug(f"No config at {cfg_path}; using defaults")
    return AppConfig.from_dict(apply_env_overrides(raw))
