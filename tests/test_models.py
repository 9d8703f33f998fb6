#!/usr/bin/env python3
"""Universal data model invariants."""

import sys
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from exchanges.models import (  # noqa: E402
    Balance,
    BookLevel,
    LendingPosition,
    OrderBook,
    OrderStatus,
    Position,
    Side,
    compute_health_factor,
)
from venues import Chain, Protocol  # noqa: E402


def test_position_rejects_negative_size() -> None:
    with pytest.raises(ValueError):
        Position(venue=Protocol.HYPERLIQUID, symbol="ETH", side=Side.SELL, size=Decimal("-1"))


def test_position_notional_prefers_mark_price() -> None:
    pos = Position(
        venue=Protocol.HYPERLIQUID,
        symbol="ETH",
        side=Side.SELL,
        size=Decimal("2"),
        entry_price=Decimal("3000"),
        mark_price=Decimal("3100"),
    )
    assert pos.notional == Decimal("6200")
    assert Position(Protocol.HYPERLIQUID, "ETH", Side.BUY, Decimal("1")).notional is None


def test_terminal_statuses_have_no_transitions() -> None:
    for status in (OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED):
        assert status.is_terminal
        assert not any(status.can_transition_to(target) for target in OrderStatus)


def test_open_and_partial_transitions() -> None:
    assert not OrderStatus.OPEN.is_terminal
    assert OrderStatus.OPEN.can_transition_to(OrderStatus.PARTIALLY_FILLED)
    assert OrderStatus.OPEN.can_transition_to(OrderStatus.REJECTED)
    assert OrderStatus.PARTIALLY_FILLED.can_transition_to(OrderStatus.FILLED)
    assert OrderStatus.PARTIALLY_FILLED.can_transition_to(OrderStatus.CANCELLED)
    assert not OrderStatus.PARTIALLY_FILLED.can_transition_to(OrderStatus.REJECTED)
    assert not OrderStatus.PARTIALLY_FILLED.can_transition_to(OrderStatus.OPEN)


def test_side_parse_and_opposite() -> None:
    assert Side.parse("B") is Side.BUY
    assert Side.parse("A") is Side.SELL
    assert Side.parse("short") is Side.SELL
    assert Side.BUY.opposite() is Side.SELL
    with pytest.raises(ValueError):
        Side.parse("sideways")


def test_balance_consistency_is_reported_not_enforced() -> None:
    ok = Balance(Protocol.HYPERLIQUID, Chain.HYPERLIQUID_L1, "USDC", Decimal("10"), Decimal("7"), Decimal("3"))
    off = Balance(Protocol.HYPERLIQUID, Chain.HYPERLIQUID_L1, "USDC", Decimal("10"), Decimal("9"), Decimal("3"))
    assert ok.is_consistent()
    assert not off.is_consistent()


def test_health_factor_and_liquidatable() -> None:
    hf = compute_health_factor(Decimal("1000"), Decimal("900"), Decimal("0.86"))
    assert hf == Decimal("1000") * Decimal("0.86") / Decimal("900")
    assert compute_health_factor(Decimal("1000"), Decimal("0"), Decimal("0.86")) is None

    pos = LendingPosition(
        venue=Protocol.MORPHO,
        chain=Chain.ETHEREUM,
        market_id="0xabc",
        collateral_asset="WETH",
        loan_asset="USDC",
        supplied=Decimal("1000"),
        borrowed=Decimal("900"),
        health_factor=hf,
    )
    assert pos.is_liquidatable
    assert not LendingPosition(
        Protocol.MORPHO, Chain.ETHEREUM, "0xabc", "WETH", "USDC", Decimal("1"), Decimal("0")
    ).is_liquidatable


def test_to_dict_serializes_enums_and_decimals() -> None:
    book = OrderBook(
        symbol="BTC",
        venue=Protocol.HYPERLIQUID,
        bids=[BookLevel(Decimal("100.5"), Decimal("2"), 3)],
        asks=[],
    )
    out = book.to_dict()
    assert out["venue"] == "hyperliquid"
    assert out["bids"] == [{"price": "100.5", "size": "2", "count": 3}]
    assert book.best_bid == Decimal("100.5")
    assert book.best_ask is None
