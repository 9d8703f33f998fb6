#!/usr/bin/env python3
"""
Capability contracts every venue adapter implements.

- MarketDataProvider: read-only market data, no auth material needed
- PerpTrading: market data plus authenticated perp trading
- LendingProtocol: lending markets/positions (supply/borrow optional)
- SwapRouting: swap quotes (on-chain execution optional)

Optional operations have a default body that raises
UnsupportedOperationError, so adapters only override what the venue
actually supports.
"""

from __future__ import annotations

import abc
from decimal import Decimal
from typing import List, Optional

from venues import Chain

from .errors import UnsupportedOperationError
from .models import (
    Balance,
    Candle,
    Fill,
    FundingRate,
    LendingMarket,
    LendingPosition,
    Market,
    Order,
    OrderBook,
    OrderResult,
    Position,
    Side,
    SpotBalance,
    SubAccount,
    SwapQuote,
    Ticker,
    VaultDeposit,
    VaultDetails,
)


class _VenueBound(abc.ABC):
    @abc.abstractmethod
    def venue_id(self) -> str:
        """Canonical venue id; the registry key."""
        raise NotImplementedError

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def _unsupported(self, operation: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(self.venue_id(), operation)


class MarketDataProvider(_VenueBound):
    """Read-only market data. Holds no signing material."""

    @abc.abstractmethod
    async def markets(self) -> List[Market]:
        raise NotImplementedError

    @abc.abstractmethod
    async def ticker(self, symbol: str) -> Ticker:
        raise NotImplementedError

    @abc.abstractmethod
    async def all_tickers(self) -> List[Ticker]:
        raise NotImplementedError

    @abc.abstractmethod
    async def candles(self, symbol: str, interval: str, limit: int) -> List[Candle]:
        raise NotImplementedError

    @abc.abstractmethod
    async def funding(self, symbol: str) -> List[FundingRate]:
        """Funding rate history, oldest first."""
        raise NotImplementedError

    @abc.abstractmethod
    async def orderbook(self, symbol: str, depth: int = 20) -> OrderBook:
        raise NotImplementedError


class PerpTrading(MarketDataProvider):
    """Perp venue with authenticated trading."""

    @abc.abstractmethod
    async def market_order(
        self,
        symbol: str,
        side: Side,
        size: Decimal,
        slippage: Optional[float] = None,
    ) -> OrderResult:
        raise NotImplementedError

    @abc.abstractmethod
    async def limit_order(
        self,
        symbol: str,
        side: Side,
        size: Decimal,
        price: Decimal,
        reduce_only: bool = False,
    ) -> OrderResult:
        raise NotImplementedError

    @abc.abstractmethod
    async def close_position(
        self,
        symbol: str,
        size: Optional[Decimal] = None,
        slippage: Optional[float] = None,
    ) -> OrderResult:
        """Close ``size`` of the position (all of it when None)."""
        raise NotImplementedError

    @abc.abstractmethod
    async def cancel_order(self, symbol: str, order_id: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def cancel_all(self, symbol: str) -> int:
        """Cancel every open order on ``symbol``. Returns the count."""
        raise NotImplementedError

    @abc.abstractmethod
    async def open_orders(self) -> List[Order]:
        raise NotImplementedError

    @abc.abstractmethod
    async def positions(self) -> List[Position]:
        raise NotImplementedError

    @abc.abstractmethod
    async def fills(self) -> List[Fill]:
        raise NotImplementedError

    @abc.abstractmethod
    async def balances(self) -> List[Balance]:
        raise NotImplementedError

    @abc.abstractmethod
    async def set_leverage(self, symbol: str, leverage: int, is_cross: bool = True) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def update_margin(self, symbol: str, amount: Decimal) -> None:
        """Add (positive) or remove (negative) isolated margin."""
        raise NotImplementedError

    @abc.abstractmethod
    async def transfer(self, amount: Decimal, destination: str) -> str:
        raise NotImplementedError

    async def cancel_by_cloid(self, symbol: str, cloid: str) -> None:
        # Venues without client order ids treat the cloid as an order id.
        await self.cancel_order(symbol, cloid)

    # ------------------------------------------------------------------
    # Optional: spot, transfers, vaults, subaccounts, agents
    # ------------------------------------------------------------------

    async def spot_balances(self) -> List[SpotBalance]:
        return []

    async def spot_market_order(
        self,
        base: str,
        side: Side,
        size: Decimal,
        slippage: Optional[float] = None,
    ) -> OrderResult:
        raise self._unsupported("Spot trading")

    async def internal_transfer(
        self,
        direction: str,
        amount: Decimal,
        token: Optional[str] = None,
    ) -> str:
        raise self._unsupported("Internal transfers")

    async def vault_details(self, vault_address: str) -> VaultDetails:
        raise self._unsupported("Vaults")

    async def vault_deposits(self) -> List[VaultDeposit]:
        raise self._unsupported("Vaults")

    async def subaccounts(self) -> List[SubAccount]:
        raise self._unsupported("Subaccounts")

    async def approve_agent(self, agent_address: str, name: Optional[str] = None) -> str:
        raise self._unsupported("Agent approval")


class LendingProtocol(_VenueBound):
    """Lending venue (Morpho, Aave, ...)."""

    @abc.abstractmethod
    async def markets(self) -> List[LendingMarket]:
        raise NotImplementedError

    @abc.abstractmethod
    async def positions(self, user: str) -> List[LendingPosition]:
        raise NotImplementedError

    async def supply(self, market_id: str, amount: Decimal) -> str:
        raise self._unsupported("Supply")

    async def withdraw(self, market_id: str, amount: Decimal) -> str:
        raise self._unsupported("Withdraw")

    async def borrow(self, market_id: str, amount: Decimal) -> str:
        raise self._unsupported("Borrow")

    async def repay(self, market_id: str, amount: Decimal) -> str:
        raise self._unsupported("Repay")


class SwapRouting(_VenueBound):
    """Swap aggregator."""

    @abc.abstractmethod
    async def quote(
        self,
        sell_token: str,
        buy_token: str,
        amount: Decimal,
        chain: Optional[Chain] = None,
    ) -> SwapQuote:
        raise NotImplementedError

    async def swap(self, quote: SwapQuote) -> str:
        """Execute a quote on-chain. Returns the transaction hash."""
        raise self._unsupported("On-chain swap execution")

    async def supported_chains(self) -> List[Chain]:
        raise self._unsupported("Chain discovery")
