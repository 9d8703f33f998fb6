#!/usr/bin/env python3
"""
0x Swap API v2 adapter (AllowanceHolder flow).

``quote`` asks /swap/allowance-holder/price for an indicative quote;
``firm_quote`` asks /swap/allowance-holder/quote for one with transaction
data. Both carry the protocol swap fee. Execution needs an RPC signer and
keeps the UnsupportedOperationError default.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import aiohttp

from fee_policy import DEFAULT_BUILDER_FEE, BuilderFee, swap_fee_params
from logging_utils import get_logger
from venues import VENUE_ZEROX, Chain, Protocol, evm_chain_id

from .base import SwapRouting
from .errors import AuthenticationError, NetworkError, ProtocolError, UnsupportedOperationError
from .http import HttpSessionMixin
from .models import SwapQuote

ZEROX_API_URL = "https://api.0x.org"
DEFAULT_SLIPPAGE_BPS = 100

_CHAINS_BY_ID = {1: Chain.ETHEREUM, 42161: Chain.ARBITRUM, 8453: Chain.BASE}


def _dec(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _gas(tx: Dict[str, Any]) -> Optional[int]:
    gas = tx.get("gas")
    if gas is None:
        return None
    try:
        return int(gas)
    except (TypeError, ValueError):
        return None


class ZeroXAdapter(HttpSessionMixin, SwapRouting):
    """0x swap quotes across EVM chains."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = ZEROX_API_URL,
        default_chain: Chain = Chain.ETHEREUM,
        builder_fee: Optional[BuilderFee] = DEFAULT_BUILDER_FEE,
        slippage_bps: int = DEFAULT_SLIPPAGE_BPS,
        timeout_sec: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
        log=None,
    ) -> None:
        self.api_key = api_key or ""
        self.base_url = str(base_url or ZEROX_API_URL).rstrip("/")
        self.default_chain = default_chain
        self.builder_fee = builder_fee
        self.slippage_bps = int(slippage_bps)
        self.log = log or get_logger("atlas.zerox")
        self._init_session(session, timeout_sec)

    def venue_id(self) -> str:
        return VENUE_ZEROX

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise AuthenticationError("ZEROX_API_KEY is not set", venue=VENUE_ZEROX)
        return {"0x-api-key": self.api_key, "0x-version": "v2"}

    def _chain_id(self, chain: Chain) -> int:
        cid = evm_chain_id(chain)
        if cid is None:
            raise UnsupportedOperationError(VENUE_ZEROX, f"Swaps on {chain}")
        return cid

    async def _get(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        session = self._ensure_session()
        url = f"{self.base_url}{path}"
        try:
            async with session.get(url, params=params, headers=self._headers()) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise ProtocolError(VENUE_ZEROX, f"0x API error {resp.status}: {(text or '')[:200]}")
                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    raise ProtocolError(VENUE_ZEROX, f"invalid JSON from {path}: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"0x request failed: {e}", venue=VENUE_ZEROX) from e
        if not isinstance(data, dict):
            raise ProtocolError(VENUE_ZEROX, f"unexpected response from {path}: {data!r}")
        return data

    def _params(
        self,
        chain: Chain,
        sell_token: str,
        buy_token: str,
        amount: Decimal,
        taker: Optional[str],
    ) -> Dict[str, str]:
        params = {
            "chainId": str(self._chain_id(chain)),
            "sellToken": sell_token,
            "buyToken": buy_token,
            "sellAmount": str(amount),
            "slippageBps": str(self.slippage_bps),
        }
        if taker:
            params["taker"] = taker
        if self.builder_fee is not None:
            params.update(swap_fee_params(self.builder_fee))
        return params

    def _to_quote(
        self,
        data: Dict[str, Any],
        chain: Chain,
        sell_token: str,
        buy_token: str,
        amount: Decimal,
    ) -> SwapQuote:
        if not data.get("liquidityAvailable"):
            raise ProtocolError(VENUE_ZEROX, f"No liquidity available for {sell_token} -> {buy_token}")
        buy_amount = _dec(data.get("buyAmount")) or Decimal(0)
        tx = data.get("transaction") or {}
        return SwapQuote(
            venue=Protocol.ZEROX,
            chain=chain,
            sell_token=sell_token,
            buy_token=buy_token,
            sell_amount=amount,
            buy_amount=buy_amount,
            price=buy_amount / amount if amount > 0 else Decimal(0),
            estimated_gas=_gas(tx),
            allowance_target=data.get("allowanceTarget"),
            tx_data=tx.get("data"),
        )

    async def quote(
        self,
        sell_token: str,
        buy_token: str,
        amount: Decimal,
        chain: Optional[Chain] = None,
    ) -> SwapQuote:
        """Indicative quote; ``amount`` is in the sell token's base units."""
        chain = chain or self.default_chain
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError(f"Sell amount must be positive (got {amount})")
        data = await self._get(
            "/swap/allowance-holder/price",
            self._params(chain, sell_token, buy_token, amount, None),
        )
        return self._to_quote(data, chain, sell_token, buy_token, amount)

    async def firm_quote(
        self,
        sell_token: str,
        buy_token: str,
        amount: Decimal,
        taker: str,
        chain: Optional[Chain] = None,
    ) -> SwapQuote:
        """Firm quote with calldata for ``taker`` to submit."""
        if not taker:
            raise ValueError("taker address is required for a firm quote")
        chain = chain or self.default_chain
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError(f"Sell amount must be positive (got {amount})")
        data = await self._get(
            "/swap/allowance-holder/quote",
            self._params(chain, sell_token, buy_token, amount, taker),
        )
        quote = self._to_quote(data, chain, sell_token, buy_token, amount)
        self.log.info(
            f"0x firm quote on {chain}: {amount} {sell_token} -> {quote.buy_amount} {buy_token}"
        )
        return quote

    async def supported_chains(self) -> List[Chain]:
        data = await self._get("/swap/chains", {})
        out: List[Chain] = []
        for entry in data.get("chains") or []:
            try:
                chain = _CHAINS_BY_ID.get(int(entry.get("chainId")))
            except (TypeError, ValueError):
                continue
            if chain is not None and chain not in out:
                out.append(chain)
        return out
