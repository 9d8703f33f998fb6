#!/usr/bin/env python3
"""Position sizing and risk validation."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app_config import (  # noqa: E402
    AppConfig,
    AssetRiskOverride,
    RiskConfig,
    SizeMode,
    TradingConfig,
    TradingMode,
)
from risk_engine import (  # noqa: E402
    RiskInput,
    SizeInput,
    SizeKind,
    calculate_position,
    parse_size,
    resolve_size_input,
    validate_risk,
)


def _input(**overrides) -> RiskInput:
    base = dict(
        coin="ETH",
        mark_price=100.0,
        account_value=10_000.0,
        entry_price=100.0,
        is_buy=True,
        stop_loss=95.0,
        leverage=5,
    )
    base.update(overrides)
    return RiskInput(**base)


# ------------------------------------------------------------------ sizing


def test_budget_sizing_long() -> None:
    out = calculate_position(TradingConfig(), RiskConfig(), _input())
    assert out.size == pytest.approx(40.0)
    assert out.notional == pytest.approx(4000.0)
    assert out.margin == pytest.approx(800.0)
    assert out.leverage == 5
    assert out.risk_quote == pytest.approx(200.0)
    assert out.risk_pct == pytest.approx(0.02)
    assert out.est_liquidation == pytest.approx(80.0)
    assert out.take_profit == pytest.approx(110.0)
    assert out.stop_loss == 95.0


def test_default_stop_and_liquidation_for_short() -> None:
    out = calculate_position(
        TradingConfig(), RiskConfig(), _input(is_buy=False, stop_loss=None, leverage=4)
    )
    assert out.stop_loss == pytest.approx(102.0)
    assert out.est_liquidation == pytest.approx(125.0)
    assert out.take_profit == pytest.approx(96.0)
    assert out.size == pytest.approx(10_000 * 0.02 / 2.0)


def test_no_take_profit_when_ratio_disabled() -> None:
    out = calculate_position(TradingConfig(), RiskConfig(reward_risk_ratio=0), _input())
    assert out.take_profit is None


def test_leverage_falls_back_to_config_default() -> None:
    out = calculate_position(TradingConfig(default_leverage=3), RiskConfig(), _input(leverage=None))
    assert out.leverage == 3
    assert out.margin == pytest.approx(out.notional / 3)


def test_calculate_position_is_idempotent() -> None:
    trading, risk = TradingConfig(), RiskConfig()
    risk_input = _input(size_input=SizeInput.usdc(250), stop_loss=97.3)
    assert calculate_position(trading, risk, risk_input) == calculate_position(trading, risk, risk_input)


def test_usdc_size_input() -> None:
    out = calculate_position(TradingConfig(), RiskConfig(), _input(size_input=SizeInput.usdc(200)))
    assert out.size == pytest.approx(200 * 5 / 100)
    assert out.margin == pytest.approx(200.0)


@pytest.mark.parametrize("coin,count", [("ETH", 3.0), ("BTC", 7.0), ("SOL", 2.5), ("XYZ", 4.0)])
def test_lots_round_trip(coin, count) -> None:
    trading = TradingConfig(default_size_mode=SizeMode.LOTS)
    out = calculate_position(trading, RiskConfig(), _input(coin=coin, size_input=SizeInput.raw(count)))
    assert out.lots == count
    assert trading.lots.lots_to_size(coin, out.lots) == out.size


def test_max_size_override_caps_both_paths() -> None:
    risk = RiskConfig(asset_overrides={"ETH": AssetRiskOverride(max_size=5.0)})
    assert calculate_position(TradingConfig(), risk, _input()).size == 5.0
    capped = calculate_position(TradingConfig(), risk, _input(size_input=SizeInput.units(12)))
    assert capped.size == 5.0
    assert capped.lots == pytest.approx(5.0 / 0.01)


def test_per_asset_risk_and_stop_overrides() -> None:
    risk = RiskConfig(
        asset_overrides={"ETH": AssetRiskOverride(max_risk_pct=0.01, default_stop_pct=0.05)}
    )
    out = calculate_position(TradingConfig(), risk, _input(stop_loss=None))
    assert out.stop_loss == pytest.approx(95.0)
    assert out.size == pytest.approx(10_000 * 0.01 / 5.0)


def test_overrides_and_lots_match_lowercase_coin() -> None:
    config = AppConfig.from_dict(
        {"risk": {"asset_overrides": {"eth": {"max_size": 0.5, "max_risk_pct": 0.01, "default_stop_pct": 0.05}}}}
    )
    for coin in ("ETH", "eth", " Eth "):
        capped = calculate_position(
            config.trading, config.risk, _input(coin=coin, size_input=SizeInput.lots(100))
        )
        assert capped.size == pytest.approx(0.5)
        assert capped.lots == pytest.approx(50.0)
        small = calculate_position(
            config.trading, config.risk, _input(coin=coin, size_input=SizeInput.lots(10))
        )
        assert small.size == pytest.approx(0.1)
        assert config.risk.effective_risk_pct(coin) == 0.01
        assert config.risk.effective_stop_pct(coin) == 0.05

    budget = calculate_position(config.trading, config.risk, _input(coin="eth", stop_loss=None))
    assert budget.stop_loss == pytest.approx(95.0)
    assert budget.size == pytest.approx(0.5)


def test_zero_account_value_leaves_risk_pct_undefined() -> None:
    risk_input = _input(account_value=0.0, size_input=SizeInput.units(1))
    out = calculate_position(TradingConfig(), RiskConfig(), risk_input)
    assert out.risk_quote == pytest.approx(5.0)
    assert out.risk_pct is None
    result = validate_risk(RiskConfig(), risk_input, out, 0, 0.0)
    assert any("undefined" in w for w in result.warnings)


# ------------------------------------------------------------------ size input


def test_resolve_size_input_modes() -> None:
    futures = TradingConfig(default_size_mode=SizeMode.UNITS)
    cfd = TradingConfig(mode=TradingMode.CFD, default_size_mode=SizeMode.UNITS)
    assert resolve_size_input(futures, "ETH", SizeInput.raw(2), 100.0) == (2, None)
    assert resolve_size_input(cfd, "ETH", SizeInput.raw(2), 100.0) == (pytest.approx(0.02), None)
    # Explicit units bypass CFD lot conversion.
    assert resolve_size_input(cfd, "ETH", SizeInput.units(2), 100.0) == (2, None)
    assert resolve_size_input(futures, "BTC", SizeInput.lots(5), 100.0) == (pytest.approx(0.005), None)
    assert resolve_size_input(futures, "ETH", SizeInput.usdc(100), 0.0) == (0.0, 100)
    assert resolve_size_input(futures, "ETH", SizeInput.usdc(100), 50.0, leverage=3) == (6.0, 100)


@pytest.mark.parametrize(
    "text,kind,value",
    [
        ("200", SizeKind.RAW, 200.0),
        ("$200", SizeKind.USDC, 200.0),
        ("150usdc", SizeKind.USDC, 150.0),
        ("0.5eth", SizeKind.UNITS, 0.5),
        ("3 units", SizeKind.UNITS, 3.0),
        ("50lots", SizeKind.LOTS, 50.0),
        ("1.5L", SizeKind.LOTS, 1.5),
    ],
)
def test_parse_size(text, kind, value) -> None:
    parsed = parse_size(text)
    assert parsed.kind is kind
    assert parsed.value == value


@pytest.mark.parametrize("text", ["", "abc", "$20eth", "10 parsecs", "-5"])
def test_parse_size_rejects_garbage(text) -> None:
    with pytest.raises(ValueError):
        parse_size(text)


# ------------------------------------------------------------------ validation


def test_validation_reports_leverage_and_exposure_together() -> None:
    risk = RiskConfig()
    risk_input = _input(account_value=1_000.0, leverage=100, size_input=SizeInput.usdc(500))
    out = calculate_position(TradingConfig(), risk, risk_input)
    result = validate_risk(risk, risk_input, out, open_position_count=0, total_exposure=0.0)
    assert result.blocked is True
    assert any("Leverage 100x exceeds max 50x" in w for w in result.warnings)
    assert any("Exposure would be" in w for w in result.warnings)


def test_hard_exposure_limit_blocks() -> None:
    risk = RiskConfig(hard_exposure_multiplier=5.0)
    risk_input = _input(account_value=1_000.0, leverage=10, size_input=SizeInput.usdc(800))
    out = calculate_position(TradingConfig(), risk, risk_input)
    result = validate_risk(risk, risk_input, out, 0, 0.0)
    assert result.blocked
    assert any("above hard limit" in w for w in result.warnings)


def test_exposure_alone_only_warns() -> None:
    risk = RiskConfig()
    risk_input = _input(account_value=1_000.0, leverage=5, size_input=SizeInput.usdc(100))
    out = calculate_position(TradingConfig(), risk, risk_input)
    result = validate_risk(risk, risk_input, out, 0, total_exposure=2_800.0)
    assert not result.blocked
    assert any("Exposure would be" in w for w in result.warnings)


def test_max_positions_blocks() -> None:
    risk = RiskConfig(max_positions=3)
    risk_input = _input()
    out = calculate_position(TradingConfig(), risk, risk_input)
    result = validate_risk(risk, risk_input, out, open_position_count=3, total_exposure=0.0)
    assert result.blocked
    assert result.warnings[0] == "Max positions reached (3/3)"


def test_clean_trade_has_no_warnings() -> None:
    risk_input = _input()
    out = calculate_position(TradingConfig(), RiskConfig(), risk_input)
    result = validate_risk(RiskConfig(), risk_input, out, 0, 0.0)
    assert result.warnings == []
    assert result.blocked is False


def test_risk_above_tolerance_and_margin_warnings() -> None:
    risk_input = _input(account_value=1_000.0, size_input=SizeInput.usdc(600))
    out = calculate_position(TradingConfig(), RiskConfig(), risk_input)
    result = validate_risk(RiskConfig(), risk_input, out, 0, 0.0)
    assert not result.blocked
    assert any(w.startswith("Risk ") and "exceeds max" in w for w in result.warnings)
    assert any(w.startswith("Margin $600.00") for w in result.warnings)


@pytest.mark.parametrize("stop,needle", [(99.8, "very tight"), (80.0, "wide")])
def test_stop_distance_warnings(stop, needle) -> None:
    risk_input = _input(stop_loss=stop, size_input=SizeInput.units(1))
    out = calculate_position(TradingConfig(), RiskConfig(), risk_input)
    result = validate_risk(RiskConfig(), risk_input, out, 0, 0.0)
    assert any(needle in w for w in result.warnings)
