#!/usr/bin/env python3
"""
Morpho Blue lending adapter (read-only).

Markets and user positions come from the Morpho Blue GraphQL API.
Supply/withdraw/borrow/repay need on-chain execution and keep the
UnsupportedOperationError defaults from LendingProtocol.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import aiohttp

from logging_utils import get_logger
from venues import VENUE_MORPHO, Chain, Protocol

from .base import LendingProtocol
from .errors import NetworkError, ProtocolError
from .http import HttpSessionMixin
from .models import LendingMarket, LendingPosition

MORPHO_API_URL = "https://blue-api.morpho.org/graphql"
PAGE_SIZE = 50

# Morpho Blue is deployed on Ethereum and Base; anything else queries mainnet.
_CHAIN_IDS = {Chain.ETHEREUM: 1, Chain.BASE: 8453}

# On-chain LLTV is a WAD (1e18 == 100%).
_WAD = Decimal(10) ** 18

MARKETS_QUERY = """
query Markets($chainIds: [Int!], $first: Int) {
  markets(where: { chainId_in: $chainIds }, first: $first) {
    items {
      uniqueKey
      lltv
      loanAsset { symbol decimals }
      collateralAsset { symbol decimals }
      state {
        supplyApy
        borrowApy
        supplyAssetsUsd
        borrowAssetsUsd
        utilization
      }
    }
  }
}
"""

POSITIONS_QUERY = """
query Positions($users: [String!], $chainIds: [Int!], $first: Int) {
  marketPositions(where: { userAddress_in: $users, chainId_in: $chainIds }, first: $first) {
    items {
      market {
        uniqueKey
        collateralAsset { symbol }
        loanAsset { symbol }
      }
      supplyAssetsUsd
      borrowAssetsUsd
      healthFactor
    }
  }
}
"""


def _dec(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _dec0(value: Any) -> Decimal:
    d = _dec(value)
    return d if d is not None else Decimal(0)


def _lltv(value: Any) -> Decimal:
    raw = _dec0(value)
    return raw / _WAD if raw > 1 else raw


def _symbol(asset: Any) -> str:
    if isinstance(asset, dict) and asset.get("symbol"):
        return str(asset["symbol"])
    return "?"


def _items(data: Any, key: str) -> List[Dict[str, Any]]:
    node = ((data or {}).get("data") or {}).get(key) or {}
    return [item for item in node.get("items") or [] if isinstance(item, dict)]


class MorphoAdapter(HttpSessionMixin, LendingProtocol):
    """Morpho Blue markets and positions for one chain."""

    def __init__(
        self,
        chain: Chain = Chain.ETHEREUM,
        api_url: str = MORPHO_API_URL,
        timeout_sec: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
        log=None,
    ) -> None:
        self.chain = chain if chain in _CHAIN_IDS else Chain.ETHEREUM
        self.api_url = api_url or MORPHO_API_URL
        self.log = log or get_logger("atlas.morpho")
        self._init_session(session, timeout_sec)
        if chain not in _CHAIN_IDS:
            self.log.warning(f"Morpho is not deployed on {chain}; using {self.chain}")

    def venue_id(self) -> str:
        return VENUE_MORPHO

    @property
    def chain_id(self) -> int:
        return _CHAIN_IDS[self.chain]

    async def _graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        session = self._ensure_session()
        try:
            async with session.post(
                self.api_url, json={"query": query, "variables": variables}
            ) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise ProtocolError(VENUE_MORPHO, f"HTTP {resp.status}: {(text or '')[:200]}")
                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    raise ProtocolError(VENUE_MORPHO, f"invalid JSON: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"Morpho API request failed: {e}", venue=VENUE_MORPHO) from e
        if not isinstance(data, dict):
            raise ProtocolError(VENUE_MORPHO, f"unexpected response: {data!r}")
        errors = data.get("errors")
        if errors and not data.get("data"):
            first = errors[0] if isinstance(errors, list) and errors else errors
            message = first.get("message") if isinstance(first, dict) else first
            raise ProtocolError(VENUE_MORPHO, str(message))
        return data

    async def markets(self) -> List[LendingMarket]:
        data = await self._graphql(
            MARKETS_QUERY, {"chainIds": [self.chain_id], "first": PAGE_SIZE}
        )
        out: List[LendingMarket] = []
        for item in _items(data, "markets"):
            state = item.get("state") or {}
            out.append(
                LendingMarket(
                    venue=Protocol.MORPHO,
                    chain=self.chain,
                    market_id=str(item.get("uniqueKey") or ""),
                    collateral_asset=_symbol(item.get("collateralAsset")),
                    loan_asset=_symbol(item.get("loanAsset")),
                    supply_apy=_dec0(state.get("supplyApy")),
                    borrow_apy=_dec0(state.get("borrowApy")),
                    total_supply=_dec0(state.get("supplyAssetsUsd")),
                    total_borrow=_dec0(state.get("borrowAssetsUsd")),
                    utilization=_dec0(state.get("utilization")),
                    # Morpho Blue only exposes the liquidation LTV.
                    ltv=Decimal(0),
                    lltv=_lltv(item.get("lltv")),
                )
            )
        return out

    async def positions(self, user: str) -> List[LendingPosition]:
        if not user:
            raise ValueError("user address is required")
        data = await self._graphql(
            POSITIONS_QUERY,
            {"users": [user], "chainIds": [self.chain_id], "first": PAGE_SIZE},
        )
        out: List[LendingPosition] = []
        for item in _items(data, "marketPositions"):
            supplied = _dec0(item.get("supplyAssetsUsd"))
            borrowed = _dec0(item.get("borrowAssetsUsd"))
            if supplied == 0 and borrowed == 0:
                continue
            market = item.get("market") or {}
            out.append(
                LendingPosition(
                    venue=Protocol.MORPHO,
                    chain=self.chain,
                    market_id=str(market.get("uniqueKey") or ""),
                    collateral_asset=_symbol(market.get("collateralAsset")),
                    loan_asset=_symbol(market.get("loanAsset")),
                    supplied=supplied,
                    borrowed=borrowed,
                    health_factor=_dec(item.get("healthFactor")),
                )
            )
        return out
