#!/usr/bin/env python3
"""
Position sizing and pre-trade risk validation.

Two pure functions:
  - calculate_position(): trade intent + account state -> size, stop/target,
    margin, liquidation estimate, risk in quote currency and % of account
  - validate_risk(): runs every rule against the computed output and live
    account context; warnings are advisory, ``blocked`` means do not submit

Sizing:
  - explicit size (SizeInput) is converted via the configured size mode
      usdc  -> margin * leverage / entry_price
      units -> raw (lot-converted in CFD trading mode)
      lots  -> raw * lot_size(coin)
  - no size -> size from the risk budget:
      account_value * max_risk_pct / |entry - stop|
  - both paths are capped by the per-asset max_size override

Nothing here does I/O or keeps state; identical inputs give identical
outputs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from app_config import RiskConfig, SizeMode, TradingConfig

# Validation thresholds (fractions of entry / account; not user-configured)
RISK_PCT_TOLERANCE = 1.1
MARGIN_ACCOUNT_WARN_FRACTION = 0.5
STOP_TIGHT_PCT = 0.005
STOP_WIDE_PCT = 0.10


class SizeKind(str, Enum):
    RAW = "raw"      # interpreted by default_size_mode
    USDC = "usdc"
    UNITS = "units"
    LOTS = "lots"


@dataclass(frozen=True)
class SizeInput:
    """User-provided size. Explicit kinds override the configured default mode."""

    kind: SizeKind
    value: float

    @classmethod
    def raw(cls, value: float) -> "SizeInput":
        return cls(SizeKind.RAW, float(value))

    @classmethod
    def usdc(cls, value: float) -> "SizeInput":
        return cls(SizeKind.USDC, float(value))

    @classmethod
    def units(cls, value: float) -> "SizeInput":
        return cls(SizeKind.UNITS, float(value))

    @classmethod
    def lots(cls, value: float) -> "SizeInput":
        return cls(SizeKind.LOTS, float(value))


_NUM = r"[0-9]*\.?[0-9]+(?:[eE][-+]?[0-9]+)?"
_SIZE_RE = re.compile(rf"^\s*(\$)?\s*({_NUM})\s*([a-zA-Z$]*)\s*$")

_USDC_SUFFIXES = {"$", "usdc", "u"}
_LOT_SUFFIXES = {"lots", "lot", "l"}
_UNIT_SUFFIXES = {
    "units", "unit",
    "eth", "btc", "sol", "doge", "arb", "avax", "matic", "link",
    "op", "sui", "bnb", "xrp", "ada", "dot", "atom",
}


def parse_size(text: str) -> SizeInput:
    """Parse a size string: ``200``, ``$200``, ``200usdc``, ``0.5eth``, ``50lots``."""
    m = _SIZE_RE.match(str(text or ""))
    if not m:
        raise ValueError(
            f"Invalid size: {text!r}. Examples: 200 (default mode), $200 (USDC), "
            "0.5eth (units), 50lots"
        )
    dollar, num, suffix = m.group(1), float(m.group(2)), m.group(3).lower()
    if dollar:
        if suffix:
            raise ValueError(f"Invalid USDC amount: {text!r}")
        return SizeInput.usdc(num)
    if not suffix:
        return SizeInput.raw(num)
    if suffix in _USDC_SUFFIXES:
        return SizeInput.usdc(num)
    if suffix in _LOT_SUFFIXES:
        return SizeInput.lots(num)
    if suffix in _UNIT_SUFFIXES:
        return SizeInput.units(num)
    raise ValueError(f"Unknown size suffix {suffix!r} in {text!r}")


def _effective_leverage(trading: TradingConfig, leverage: Optional[int]) -> int:
    return max(1, int(leverage or trading.default_leverage or 1))


def _effective_kind(trading: TradingConfig, size_input: SizeInput) -> SizeKind:
    if size_input.kind is not SizeKind.RAW:
        return size_input.kind
    return {
        SizeMode.USDC: SizeKind.USDC,
        SizeMode.UNITS: SizeKind.UNITS,
        SizeMode.LOTS: SizeKind.LOTS,
    }[trading.default_size_mode]


def resolve_size_input(
    trading: TradingConfig,
    coin: str,
    size_input: SizeInput,
    price: float,
    leverage: Optional[int] = None,
) -> Tuple[float, Optional[float]]:
    """Convert a SizeInput to asset units.

    Returns ``(size, margin_usdc)``; margin is only known for USDC sizing.
    Explicit units bypass lot conversion; raw numbers in ``units`` mode are
    lot-converted when trading in CFD mode.
    """
    lev = _effective_leverage(trading, leverage)
    kind = _effective_kind(trading, size_input)
    value = size_input.value
    if kind is SizeKind.USDC:
        if price <= 0:
            return 0.0, value
        return value * lev / price, value
    if kind is SizeKind.LOTS:
        return trading.lots.lots_to_size(coin, value), None
    if size_input.kind is SizeKind.RAW:
        return trading.resolve_size(coin, value), None
    return value, None


# =============================================================================
# Types
# =============================================================================


@dataclass(frozen=True)
class RiskInput:
    """One trade intent. ``stop_loss`` None means use the configured default stop."""

    coin: str
    mark_price: float
    account_value: float
    entry_price: float
    is_buy: bool
    stop_loss: Optional[float] = None
    leverage: Optional[int] = None
    size_input: Optional[SizeInput] = None


@dataclass(frozen=True)
class RiskOutput:
    """Derived sizing. Recompute from current inputs; never persist as truth.

    ``risk_pct`` is None when account value is not positive (undefined, not
    zero or infinity). ``est_liquidation`` is a naive isolated-margin estimate
    that ignores maintenance margin tiers and funding.
    """

    size: float
    lots: float
    notional: float
    margin: float
    leverage: int
    stop_loss: Optional[float]
    take_profit: Optional[float]
    est_liquidation: float
    risk_quote: Optional[float]
    risk_pct: Optional[float]


@dataclass
class RiskWarnings:
    warnings: List[str] = field(default_factory=list)
    blocked: bool = False

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def block(self, message: str) -> None:
        self.warnings.append(message)
        self.blocked = True


# =============================================================================
# Sizing
# =============================================================================


def _default_stop(entry: float, is_buy: bool, stop_pct: float) -> Optional[float]:
    if stop_pct <= 0:
        return None
    return entry * (1.0 - stop_pct) if is_buy else entry * (1.0 + stop_pct)


def calculate_position(
    trading: TradingConfig,
    risk: RiskConfig,
    risk_input: RiskInput,
) -> RiskOutput:
    coin = risk_input.coin
    entry = float(risk_input.entry_price)
    leverage = _effective_leverage(trading, risk_input.leverage)

    stop = risk_input.stop_loss
    if stop is None:
        stop = _default_stop(entry, risk_input.is_buy, risk.effective_stop_pct(coin))
    distance = abs(entry - stop) if stop is not None else None

    user_lots: Optional[float] = None
    if risk_input.size_input is not None:
        size, _ = resolve_size_input(trading, coin, risk_input.size_input, entry, leverage)
        if _effective_kind(trading, risk_input.size_input) is SizeKind.LOTS:
            user_lots = risk_input.size_input.value
    else:
        budget = risk_input.account_value * risk.effective_risk_pct(coin)
        size = budget / distance if distance and budget > 0 else 0.0

    cap = risk.max_size(coin)
    if cap is not None and size > cap:
        size = cap
        user_lots = None

    notional = size * entry
    margin = notional / leverage

    risk_quote: Optional[float] = None
    risk_pct: Optional[float] = None
    if distance is not None:
        risk_quote = distance * size
        if risk_input.account_value > 0:
            risk_pct = risk_quote / risk_input.account_value

    if risk_input.is_buy:
        est_liquidation = entry * (1.0 - 1.0 / leverage)
    else:
        est_liquidation = entry * (1.0 + 1.0 / leverage)

    take_profit: Optional[float] = None
    if distance is not None and risk.reward_risk_ratio > 0:
        offset = distance * risk.reward_risk_ratio
        take_profit = entry + offset if risk_input.is_buy else entry - offset

    lots = user_lots if user_lots is not None else trading.lots.size_to_lots(coin, size)

    return RiskOutput(
        size=size,
        lots=lots,
        notional=notional,
        margin=margin,
        leverage=leverage,
        stop_loss=stop,
        take_profit=take_profit,
        est_liquidation=est_liquidation,
        risk_quote=risk_quote,
        risk_pct=risk_pct,
    )


# =============================================================================
# Validation
# =============================================================================


def validate_risk(
    risk: RiskConfig,
    risk_input: RiskInput,
    output: RiskOutput,
    open_position_count: int,
    total_exposure: float,
) -> RiskWarnings:
    """Run every rule in order; a block never short-circuits later rules."""
    result = RiskWarnings()
    account = risk_input.account_value

    if open_position_count >= risk.max_positions:
        result.block(f"Max positions reached ({open_position_count}/{risk.max_positions})")

    if output.leverage > risk.max_leverage:
        result.block(f"Leverage {output.leverage}x exceeds max {risk.max_leverage}x")

    new_exposure = total_exposure + output.notional
    max_exposure = account * risk.max_exposure_multiplier
    if new_exposure > max_exposure:
        msg = (
            f"Exposure would be ${new_exposure:.2f} "
            f"(max: ${max_exposure:.2f} = {risk.max_exposure_multiplier:g}x account)"
        )
        hard = risk.hard_exposure_multiplier
        if hard is not None and new_exposure > account * hard:
            result.block(f"{msg}; above hard limit {hard:g}x")
        else:
            result.warn(msg)

    max_risk = risk.effective_risk_pct(risk_input.coin)
    if output.risk_pct is not None and output.risk_pct > max_risk * RISK_PCT_TOLERANCE:
        result.warn(f"Risk {output.risk_pct * 100:.2f}% exceeds max {max_risk * 100:.2f}%")

    if output.risk_quote is not None and output.risk_pct is None:
        result.warn(f"Risk % undefined: account value is ${account:.2f}")

    if output.margin > account * MARGIN_ACCOUNT_WARN_FRACTION:
        result.warn(
            f"Margin ${output.margin:.2f} is >{MARGIN_ACCOUNT_WARN_FRACTION * 100:.0f}% of account"
        )

    entry = risk_input.entry_price
    if output.stop_loss is not None and entry > 0:
        stop_distance_pct = abs(entry - output.stop_loss) / entry
        if stop_distance_pct < STOP_TIGHT_PCT:
            result.warn(
                f"Stop-loss very tight ({stop_distance_pct * 100:.2f}% from entry); high risk of stopout"
            )
        if stop_distance_pct > STOP_WIDE_PCT:
            result.warn(
                f"Stop-loss wide ({stop_distance_pct * 100:.2f}% from entry); large risk per unit"
            )

    return result
