#!/usr/bin/env python3
"""Optional capability methods fall back to UnsupportedOperationError."""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from exchanges.base import LendingProtocol, PerpTrading, SwapRouting  # noqa: E402
from exchanges.errors import UnsupportedOperationError  # noqa: E402
from exchanges.models import Side, SwapQuote  # noqa: E402
from venues import Chain, Protocol  # noqa: E402


class _MinimalPerp(PerpTrading):
    def __init__(self) -> None:
        self.cancelled = []

    def venue_id(self) -> str:
        return "minimal"

    async def markets(self):
        return []

    async def ticker(self, symbol):
        raise NotImplementedError

    async def all_tickers(self):
        return []

    async def candles(self, symbol, interval, limit):
        return []

    async def funding(self, symbol):
        return []

    async def orderbook(self, symbol, depth=20):
        raise NotImplementedError

    async def market_order(self, symbol, side, size, slippage=None):
        raise NotImplementedError

    async def limit_order(self, symbol, side, size, price, reduce_only=False):
        raise NotImplementedError

    async def close_position(self, symbol, size=None, slippage=None):
        raise NotImplementedError

    async def cancel_order(self, symbol, order_id):
        self.cancelled.append((symbol, order_id))

    async def cancel_all(self, symbol):
        return 0

    async def open_orders(self):
        return []

    async def positions(self):
        return []

    async def fills(self):
        return []

    async def balances(self):
        return []

    async def set_leverage(self, symbol, leverage, is_cross=True):
        return None

    async def update_margin(self, symbol, amount):
        return None

    async def transfer(self, amount, destination):
        return "ok"


class _MinimalLending(LendingProtocol):
    def venue_id(self) -> str:
        return "minimal-lending"

    async def markets(self):
        return []

    async def positions(self, user):
        return []


class _MinimalSwap(SwapRouting):
    def venue_id(self) -> str:
        return "minimal-swap"

    async def quote(self, sell_token, buy_token, amount, chain=None):
        raise NotImplementedError


def test_perp_optional_operations_are_unsupported() -> None:
    perp = _MinimalPerp()
    calls = [
        ("Spot trading", perp.spot_market_order("PURR", Side.BUY, Decimal("1"))),
        ("Internal transfers", perp.internal_transfer("to-spot", Decimal("1"))),
        ("Vaults", perp.vault_details("0x" + "0" * 40)),
        ("Vaults", perp.vault_deposits()),
        ("Subaccounts", perp.subaccounts()),
        ("Agent approval", perp.approve_agent("0x" + "1" * 40)),
    ]
    for operation, coro in calls:
        with pytest.raises(UnsupportedOperationError) as exc:
            asyncio.run(coro)
        assert exc.value.venue == "minimal"
        assert exc.value.operation == operation
        assert str(exc.value) == f"{operation} not supported on minimal"


def test_spot_balances_default_empty_and_cloid_cancel_delegates() -> None:
    perp = _MinimalPerp()
    assert asyncio.run(perp.spot_balances()) == []
    asyncio.run(perp.cancel_by_cloid("ETH", "0xabc"))
    assert perp.cancelled == [("ETH", "0xabc")]


def test_lending_mutations_are_unsupported() -> None:
    lending = _MinimalLending()
    for name in ("supply", "withdraw", "borrow", "repay"):
        with pytest.raises(UnsupportedOperationError, match="not supported on minimal-lending"):
            asyncio.run(getattr(lending, name)("0xmarket", Decimal("1")))


def test_swap_execution_and_chain_discovery_are_unsupported() -> None:
    swap = _MinimalSwap()
    quote = SwapQuote(
        venue=Protocol.ZEROX,
        chain=Chain.ETHEREUM,
        sell_token="USDC",
        buy_token="WETH",
        sell_amount=Decimal("1"),
        buy_amount=Decimal("1"),
        price=Decimal("1"),
    )
    with pytest.raises(UnsupportedOperationError):
        asyncio.run(swap.swap(quote))
    with pytest.raises(UnsupportedOperationError):
        asyncio.run(swap.supported_chains())


def test_incomplete_adapter_cannot_be_instantiated() -> None:
    class _Broken(PerpTrading):
        def venue_id(self) -> str:
            return "broken"

    with pytest.raises(TypeError):
        _Broken()


def test_name_defaults_to_class_name() -> None:
    assert _MinimalPerp().name == "_MinimalPerp"
