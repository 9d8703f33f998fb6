#!/usr/bin/env python3
"""
Hyperliquid adapter (perps, spot, vaults, subaccounts).

Two layers:
  - HyperliquidMarketData: read-only /info queries, no signing material
  - HyperliquidAdapter: PerpTrading; wraps a HyperliquidMarketData for reads
    and signs /exchange actions with the configured wallet

Orders are signed through ``signing.build_signed_payload`` so the builder
fee rides on every order. Non-order L1 actions (cancel, leverage, margin)
are signed with the agent EIP-712 digest. User-signed actions (usdSend,
usdClassTransfer, approveAgent) use the SDK's typed-data helpers.
"""

from __future__ import annotations

import asyncio
import secrets
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from eth_account import Account
from hyperliquid.utils.signing import (
    OrderRequest,
    action_hash,
    get_timestamp_ms,
    order_request_to_order_wire,
    order_wires_to_order_action,
    sign_agent,
    sign_usd_class_transfer_action,
    sign_usd_transfer_action,
)
from hyperliquid.utils.types import Cloid

from env_utils import env_present, env_str
from fee_policy import DEFAULT_BUILDER_FEE, BuilderFee
from logging_utils import get_logger
from signing import build_signed_payload, compute_agent_signing_hash, sign_agent_hash
from venues import (
    HYPERLIQUID_MAINNET_URL,
    HYPERLIQUID_TESTNET_URL,
    VENUE_HYPERLIQUID,
    Chain,
    Protocol,
)

from .base import MarketDataProvider, PerpTrading
from .errors import (
    AssetNotFoundError,
    AuthenticationError,
    NetworkError,
    OrderRejectedError,
    ProtocolError,
    VenueError,
)
from .http import HttpSessionMixin
from .models import (
    Balance,
    BookLevel,
    Candle,
    Fill,
    FundingRate,
    Market,
    MarketType,
    Order,
    OrderBook,
    OrderResult,
    OrderStatus,
    OrderType,
    Position,
    Side,
    SpotBalance,
    SubAccount,
    Ticker,
    VaultDeposit,
    VaultDetails,
)

MAINNET_URL = HYPERLIQUID_MAINNET_URL
TESTNET_URL = HYPERLIQUID_TESTNET_URL

MAX_INFO_RETRIES = 3
DEFAULT_SLIPPAGE = 0.05
FILLS_LIMIT = 50
FUNDING_LOOKBACK_MS = 7 * 24 * 60 * 60 * 1000
SPOT_ASSET_OFFSET = 10000
PERP_MAX_DECIMALS = 6
SPOT_MAX_DECIMALS = 8

USDC = "USDC"
_PENDING_ORDER_STATUSES = frozenset({"waitingForFill", "waitingForTrigger", "success"})

CANDLE_INTERVALS_MS: Dict[str, int] = {
    "1m": 60_000,
    "3m": 180_000,
    "5m": 300_000,
    "15m": 900_000,
    "30m": 1_800_000,
    "1h": 3_600_000,
    "2h": 7_200_000,
    "4h": 14_400_000,
    "8h": 28_800_000,
    "12h": 43_200_000,
    "1d": 86_400_000,
    "3d": 259_200_000,
    "1w": 604_800_000,
    "1M": 2_592_000_000,
}

_TO_SPOT = {"to-spot", "perp-to-spot", "perps-to-spot", "spot"}
_TO_PERP = {"to-perp", "to-perps", "spot-to-perp", "spot-to-perps", "perp", "perps"}


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


def _coin(symbol: str) -> str:
    """``eth``, ``ETH-PERP`` and ``ETH/USD`` all map to the HL coin ``ETH``."""
    s = str(symbol or "").strip().upper()
    for suffix in ("-PERP", "-USD", "/USD", "/USDC", "-USDC"):
        if s.endswith(suffix):
            s = s[: -len(suffix)]
    return s


def round_size(size: Decimal, sz_decimals: int) -> Decimal:
    """Round order size DOWN to exchange precision (never up-round)."""
    q = Decimal(1).scaleb(-max(0, int(sz_decimals)))
    return Decimal(str(size)).quantize(q, rounding=ROUND_DOWN)


def round_price(price: float, sz_decimals: int, max_decimals: int = PERP_MAX_DECIMALS) -> float:
    """5 significant figures, at most ``max_decimals - sz_decimals`` decimals."""
    px_decimals = max(0, max_decimals - int(sz_decimals))
    return round(float(f"{float(price):.5g}"), px_decimals)


def load_agent_wallet(log=None) -> Tuple[Optional[Any], Optional[str]]:
    """``(wallet, account_address)`` from the environment.

    The signer is the delegated agent key (HYPERLIQUID_AGENT_PRIVATE_KEY),
    never the main wallet key; HYPERLIQUID_ADDRESS is the account it trades
    for. Returns ``(None, address)`` when no signer is configured.
    """
    log = log or get_logger("atlas.hyperliquid")
    if env_present("HYPERLIQUID_API"):
        raise AuthenticationError(
            "Unsupported legacy env var HYPERLIQUID_API detected. "
            "Use HYPERLIQUID_AGENT_PRIVATE_KEY (delegated agent signer key for HYPERLIQUID_ADDRESS).",
            venue=VENUE_HYPERLIQUID,
        )
    address = env_str("HYPERLIQUID_ADDRESS")
    key = env_str("HYPERLIQUID_AGENT_PRIVATE_KEY")
    if not key:
        log.warning("HYPERLIQUID_AGENT_PRIVATE_KEY not set; Hyperliquid is read-only")
        return None, address
    try:
        wallet = Account.from_key(key)
    except (ValueError, TypeError) as e:
        raise AuthenticationError(
            f"Invalid HYPERLIQUID_AGENT_PRIVATE_KEY: {type(e).__name__}", venue=VENUE_HYPERLIQUID
        ) from None
    if not address:
        log.warning("HYPERLIQUID_ADDRESS not set; trading as the agent address itself")
    return wallet, address or wallet.address


# =============================================================================
# Read-only market data
# =============================================================================


class HyperliquidMarketData(HttpSessionMixin, MarketDataProvider):
    """Public /info queries. Holds no signing material."""

    def __init__(
        self,
        base_url: str = MAINNET_URL,
        timeout_sec: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
        log=None,
    ) -> None:
        self.base_url = str(base_url or MAINNET_URL).rstrip("/")
        self.log = log or get_logger("atlas.hyperliquid")
        self._init_session(session, timeout_sec)
        self._universe: Optional[List[Dict[str, Any]]] = None
        self._spot_meta: Optional[Dict[str, Any]] = None

    def venue_id(self) -> str:
        return VENUE_HYPERLIQUID

    async def post(self, path: str, payload: Dict[str, Any], retry_429: bool = True) -> Any:
        """POST JSON to ``{base_url}{path}``; 429 is retried only when ``retry_429``."""
        session = self._ensure_session()
        url = f"{self.base_url}{path}"
        attempts = MAX_INFO_RETRIES if retry_429 else 1
        for attempt in range(attempts):
            try:
                async with session.post(url, json=payload) as resp:
                    if resp.status == 429:
                        if attempt + 1 >= attempts:
                            break
                        self.log.warning(
                            f"429 rate limit on {path} {payload.get('type')} "
                            f"(attempt {attempt + 1}/{attempts})"
                        )
                        await asyncio.sleep(0.5 * (attempt + 1))
                        continue
                    if resp.status != 200:
                        text = await resp.text()
                        raise ProtocolError(
                            VENUE_HYPERLIQUID, f"HTTP {resp.status} on {path}: {(text or '')[:200]}"
                        )
                    try:
                        return await resp.json(content_type=None)
                    except ValueError as e:
                        raise ProtocolError(VENUE_HYPERLIQUID, f"invalid JSON from {path}: {e}") from e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise NetworkError(f"Hyperliquid {path} request failed: {e}", venue=VENUE_HYPERLIQUID) from e
        raise ProtocolError(VENUE_HYPERLIQUID, f"rate limited (429) on {path} after {attempts} attempts")

    async def info(self, payload: Dict[str, Any]) -> Any:
        return await self.post("/info", payload)

    # --------------------------------------------------- metadata
    async def universe(self) -> List[Dict[str, Any]]:
        if self._universe is None:
            meta = await self.info({"type": "meta"})
            self._universe = list((meta or {}).get("universe") or [])
        return self._universe

    async def asset_info(self, symbol: str) -> Tuple[int, int]:
        """``(asset_id, sz_decimals)`` for a perp coin."""
        coin = _coin(symbol)
        for idx, entry in enumerate(await self.universe()):
            if str(entry.get("name", "")).upper() == coin:
                return idx, int(entry.get("szDecimals", 0))
        raise AssetNotFoundError(VENUE_HYPERLIQUID, f"Unknown asset: {symbol}")

    async def spot_meta(self) -> Dict[str, Any]:
        if self._spot_meta is None:
            self._spot_meta = await self.info({"type": "spotMeta"}) or {}
        return self._spot_meta

    async def all_mids(self) -> Dict[str, Any]:
        return await self.info({"type": "allMids"}) or {}

    async def mid_price(self, key: str) -> Decimal:
        mids = await self.all_mids()
        mid = _dec(mids.get(key))
        if mid is None or mid <= 0:
            raise AssetNotFoundError(VENUE_HYPERLIQUID, f"No mid price for {key}")
        return mid

    async def _meta_and_ctxs(self) -> List[Tuple[Dict[str, Any], Dict[str, Any]]]:
        data = await self.info({"type": "metaAndAssetCtxs"})
        if not isinstance(data, list) or len(data) < 2:
            raise ProtocolError(VENUE_HYPERLIQUID, "unexpected metaAndAssetCtxs response")
        universe = list((data[0] or {}).get("universe") or [])
        self._universe = universe
        return list(zip(universe, data[1] or []))

    # --------------------------------------------------- MarketDataProvider
    async def markets(self) -> List[Market]:
        out: List[Market] = []
        for meta, ctx in await self._meta_and_ctxs():
            if meta.get("isDelisted"):
                continue
            name = str(meta.get("name", ""))
            sz_decimals = int(meta.get("szDecimals", 0))
            out.append(
                Market(
                    symbol=name,
                    base=name,
                    quote="USD",
                    venue=Protocol.HYPERLIQUID,
                    chain=Chain.HYPERLIQUID_L1,
                    market_type=MarketType.PERP,
                    mark_price=_dec(ctx.get("markPx")),
                    index_price=_dec(ctx.get("oraclePx")),
                    volume_24h=_dec(ctx.get("dayNtlVlm")),
                    open_interest=_dec(ctx.get("openInterest")),
                    funding_rate=_dec(ctx.get("funding")),
                    max_leverage=int(meta["maxLeverage"]) if meta.get("maxLeverage") else None,
                    min_size=Decimal(1).scaleb(-sz_decimals),
                    sz_decimals=sz_decimals,
                )
            )
        return out

    @staticmethod
    def _ticker(name: str, ctx: Dict[str, Any]) -> Optional[Ticker]:
        mid = _dec(ctx.get("midPx"))
        if mid is None:
            return None
        impact = ctx.get("impactPxs") or []
        prev = _dec(ctx.get("prevDayPx"))
        change = None
        if prev is not None and prev > 0:
            change = ((mid - prev) / prev * 100).quantize(Decimal("0.01"))
        return Ticker(
            symbol=name,
            venue=Protocol.HYPERLIQUID,
            mid_price=mid,
            best_bid=_dec(impact[0]) if len(impact) > 0 else None,
            best_ask=_dec(impact[1]) if len(impact) > 1 else None,
            volume_24h=_dec(ctx.get("dayNtlVlm")),
            change_24h_pct=change,
        )

    async def ticker(self, symbol: str) -> Ticker:
        coin = _coin(symbol)
        for meta, ctx in await self._meta_and_ctxs():
            if str(meta.get("name", "")).upper() == coin:
                t = self._ticker(str(meta["name"]), ctx)
                if t is None:
                    break
                return t
        raise AssetNotFoundError(VENUE_HYPERLIQUID, f"No ticker for {symbol}")

    async def all_tickers(self) -> List[Ticker]:
        out: List[Ticker] = []
        for meta, ctx in await self._meta_and_ctxs():
            t = self._ticker(str(meta.get("name", "")), ctx)
            if t is not None:
                out.append(t)
        return out

    async def candles(self, symbol: str, interval: str, limit: int) -> List[Candle]:
        step = CANDLE_INTERVALS_MS.get(interval)
        if step is None:
            raise ValueError(
                f"Invalid candle interval {interval!r}; expected one of {', '.join(CANDLE_INTERVALS_MS)}"
            )
        if limit <= 0:
            return []
        end = get_timestamp_ms()
        data = await self.info(
            {
                "type": "candleSnapshot",
                "req": {
                    "coin": _coin(symbol),
                    "interval": interval,
                    "startTime": end - step * int(limit),
                    "endTime": end,
                },
            }
        )
        out = [
            Candle(
                open_time_ms=int(c["t"]),
                open=_dec0(c.get("o")),
                high=_dec0(c.get("h")),
                low=_dec0(c.get("l")),
                close=_dec0(c.get("c")),
                volume=_dec0(c.get("v")),
                trades=int(c["n"]) if c.get("n") is not None else None,
            )
            for c in (data or [])
        ]
        return out[-int(limit):]

    async def funding(self, symbol: str) -> List[FundingRate]:
        coin = _coin(symbol)
        data = await self.info(
            {
                "type": "fundingHistory",
                "coin": coin,
                "startTime": get_timestamp_ms() - FUNDING_LOOKBACK_MS,
            }
        )
        rows = [
            FundingRate(
                symbol=str(f.get("coin") or coin),
                venue=Protocol.HYPERLIQUID,
                rate=_dec0(f.get("fundingRate")),
                timestamp_ms=int(f.get("time", 0)),
                premium=_dec(f.get("premium")),
            )
            for f in (data or [])
        ]
        return sorted(rows, key=lambda r: r.timestamp_ms)

    async def orderbook(self, symbol: str, depth: int = 20) -> OrderBook:
        coin = _coin(symbol)
        data = await self.info({"type": "l2Book", "coin": coin}) or {}
        levels = data.get("levels") or [[], []]

        def _side(rows: List[Dict[str, Any]]) -> List[BookLevel]:
            return [
                BookLevel(price=_dec0(r.get("px")), size=_dec0(r.get("sz")), count=r.get("n"))
                for r in rows[: max(0, int(depth))]
            ]

        return OrderBook(
            symbol=str(data.get("coin") or coin),
            venue=Protocol.HYPERLIQUID,
            bids=_side(levels[0] if len(levels) > 0 else []),
            asks=_side(levels[1] if len(levels) > 1 else []),
            timestamp_ms=data.get("time"),
        )


# =============================================================================
# Trading
# =============================================================================


class HyperliquidAdapter(PerpTrading):
    """Hyperliquid perps with authenticated trading.

    ``wallet`` is an eth_account ``LocalAccount`` (the main key or an approved
    agent). ``account_address`` is the trading account when the wallet is an
    agent; it defaults to the wallet address. Without a wallet every signed
    action raises ``AuthenticationError`` while market data keeps working.
    """

    def __init__(
        self,
        wallet=None,
        account_address: Optional[str] = None,
        base_url: str = MAINNET_URL,
        is_mainnet: bool = True,
        builder_fee: BuilderFee = DEFAULT_BUILDER_FEE,
        default_slippage: float = DEFAULT_SLIPPAGE,
        timeout_sec: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
        market_data: Optional[HyperliquidMarketData] = None,
        log=None,
    ) -> None:
        self.log = log or get_logger("atlas.hyperliquid")
        self._wallet = wallet
        self._address = account_address or (wallet.address if wallet is not None else None)
        self.is_mainnet = bool(is_mainnet)
        self.builder_fee = builder_fee
        self.default_slippage = float(default_slippage)
        self._market_data = market_data or HyperliquidMarketData(
            base_url=base_url, timeout_sec=timeout_sec, session=session, log=self.log
        )
        self._last_nonce = 0

    def venue_id(self) -> str:
        return VENUE_HYPERLIQUID

    @property
    def market_data(self) -> HyperliquidMarketData:
        return self._market_data

    @property
    def address(self) -> Optional[str]:
        return self._address

    async def close(self) -> None:
        await self._market_data.close()

    # --------------------------------------------------- helpers
    def _require_wallet(self):
        if self._wallet is None:
            raise AuthenticationError("Hyperliquid wallet not configured", venue=VENUE_HYPERLIQUID)
        return self._wallet

    def _require_address(self) -> str:
        if not self._address:
            raise AuthenticationError(
                "Hyperliquid account address not configured", venue=VENUE_HYPERLIQUID
            )
        return self._address

    def _next_nonce(self) -> int:
        # Strictly increasing even when two actions land in the same millisecond.
        nonce = max(get_timestamp_ms(), self._last_nonce + 1)
        self._last_nonce = nonce
        return nonce

    async def _post_exchange(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST to /exchange. 429 is never retried to avoid duplicate submissions."""
        result = await self._market_data.post("/exchange", payload, retry_429=False)
        if not isinstance(result, dict):
            raise ProtocolError(VENUE_HYPERLIQUID, f"unexpected /exchange response: {result!r}")
        if result.get("status") != "ok":
            raise ProtocolError(VENUE_HYPERLIQUID, str(result.get("response") or result))
        return result

    async def _send_agent_action(self, action: Dict[str, Any]) -> Dict[str, Any]:
        """Sign a non-order L1 action with the agent digest and submit it."""
        wallet = self._require_wallet()
        nonce = self._next_nonce()
        connection_id = action_hash(action, None, nonce, None)
        digest = compute_agent_signing_hash("a" if self.is_mainnet else "b", connection_id)
        payload = {
            "action": action,
            "nonce": nonce,
            "signature": sign_agent_hash(wallet, digest),
            "vaultAddress": None,
            "expiresAfter": None,
        }
        result = await self._post_exchange(payload)
        statuses = ((result.get("response") or {}).get("data") or {}).get("statuses") or []
        for status in statuses:
            if isinstance(status, dict) and "error" in status:
                raise ProtocolError(VENUE_HYPERLIQUID, str(status["error"]))
        return result

    async def _send_user_action(self, action: Dict[str, Any], signature: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"action": action, "nonce": action.get("nonce", action.get("time")), "signature": signature}
        return await self._post_exchange(payload)

    @staticmethod
    def _parse_order_response(result: Any, default_price: Optional[Decimal] = None) -> OrderResult:
        if not isinstance(result, dict):
            raise OrderRejectedError(VENUE_HYPERLIQUID, "No response from exchange")
        if result.get("status") != "ok":
            raise OrderRejectedError(VENUE_HYPERLIQUID, str(result.get("response") or result))
        response = result.get("response") or {}
        data = (response.get("data") or {}) if isinstance(response, dict) else {}
        statuses = (data.get("statuses") or [{}]) if isinstance(data, dict) else [{}]
        info = statuses[0]
        if isinstance(info, str):
            # Trigger orders acknowledge with a bare string and no oid.
            if info in _PENDING_ORDER_STATUSES:
                return OrderResult(
                    venue=Protocol.HYPERLIQUID,
                    order_id="",
                    status=OrderStatus.OPEN,
                    filled_size=Decimal(0),
                    message=info,
                )
            raise OrderRejectedError(VENUE_HYPERLIQUID, f"Unrecognized order status: {info!r}")
        if not isinstance(info, dict):
            info = {}

        if "error" in info:
            raise OrderRejectedError(VENUE_HYPERLIQUID, str(info["error"]))
        if "filled" in info:
            filled = info["filled"] or {}
            avg = _dec(filled.get("avgPx"))
            return OrderResult(
                venue=Protocol.HYPERLIQUID,
                order_id=str(filled.get("oid", "")),
                status=OrderStatus.FILLED,
                filled_size=_dec0(filled.get("totalSz")),
                avg_price=avg if avg is not None and avg > 0 else default_price,
            )
        if "resting" in info:
            return OrderResult(
                venue=Protocol.HYPERLIQUID,
                order_id=str((info["resting"] or {}).get("oid", "")),
                status=OrderStatus.OPEN,
                filled_size=Decimal(0),
            )
        raise OrderRejectedError(VENUE_HYPERLIQUID, f"Unrecognized order status: {info!r}")

    async def _place_order(
        self,
        coin: str,
        asset: int,
        is_buy: bool,
        size: Decimal,
        price: float,
        tif: str,
        reduce_only: bool = False,
    ) -> OrderResult:
        wallet = self._require_wallet()
        if size <= 0:
            raise ValueError(f"Order size rounds to zero for {coin}")
        order_req: OrderRequest = {
            "coin": coin,
            "is_buy": is_buy,
            "sz": float(size),
            "limit_px": float(price),
            "order_type": {"limit": {"tif": tif}},
            "reduce_only": reduce_only,
            "cloid": Cloid.from_str("0x" + secrets.token_hex(16)),
        }
        wire = order_request_to_order_wire(order_req, asset)
        action = order_wires_to_order_action([wire], None, "na")
        payload = build_signed_payload(
            wallet,
            action,
            self._next_nonce(),
            fee=self.builder_fee,
            is_mainnet=self.is_mainnet,
        )
        self.log.info(
            f"{'BUY' if is_buy else 'SELL'} {size} {coin} @ {price} ({tif}{', reduce-only' if reduce_only else ''})"
        )
        try:
            result = await self._market_data.post("/exchange", payload, retry_429=False)
        except ProtocolError as e:
            raise OrderRejectedError(VENUE_HYPERLIQUID, e.detail) from e
        return self._parse_order_response(result, Decimal(str(price)))

    def _slippage_price(self, mid: Decimal, is_buy: bool, slippage: Optional[float]) -> float:
        slip = self.default_slippage if slippage is None else float(slippage)
        return float(mid) * (1.0 + slip if is_buy else 1.0 - slip)

    # --------------------------------------------------- market data (delegated)
    async def markets(self) -> List[Market]:
        return await self._market_data.markets()

    async def ticker(self, symbol: str) -> Ticker:
        return await self._market_data.ticker(symbol)

    async def all_tickers(self) -> List[Ticker]:
        return await self._market_data.all_tickers()

    async def candles(self, symbol: str, interval: str, limit: int) -> List[Candle]:
        return await self._market_data.candles(symbol, interval, limit)

    async def funding(self, symbol: str) -> List[FundingRate]:
        return await self._market_data.funding(symbol)

    async def orderbook(self, symbol: str, depth: int = 20) -> OrderBook:
        return await self._market_data.orderbook(symbol, depth)

    # --------------------------------------------------- orders
    async def market_order(
        self,
        symbol: str,
        side: Side,
        size: Decimal,
        slippage: Optional[float] = None,
    ) -> OrderResult:
        coin = _coin(symbol)
        asset, sz_decimals = await self._market_data.asset_info(coin)
        mid = await self._market_data.mid_price(coin)
        px = round_price(self._slippage_price(mid, side.is_buy, slippage), sz_decimals)
        return await self._place_order(
            coin, asset, side.is_buy, round_size(size, sz_decimals), px, "Ioc"
        )

    async def limit_order(
        self,
        symbol: str,
        side: Side,
        size: Decimal,
        price: Decimal,
        reduce_only: bool = False,
    ) -> OrderResult:
        coin = _coin(symbol)
        asset, sz_decimals = await self._market_data.asset_info(coin)
        px = round_price(float(price), sz_decimals)
        return await self._place_order(
            coin, asset, side.is_buy, round_size(size, sz_decimals), px, "Gtc", reduce_only
        )

    async def close_position(
        self,
        symbol: str,
        size: Optional[Decimal] = None,
        slippage: Optional[float] = None,
    ) -> OrderResult:
        coin = _coin(symbol)
        position = next((p for p in await self.positions() if p.symbol.upper() == coin), None)
        if position is None or position.size == 0:
            raise VenueError(f"No open position for {coin}", venue=VENUE_HYPERLIQUID)
        qty = position.size if size is None else min(Decimal(str(size)), position.size)
        close_side = position.side.opposite()
        asset, sz_decimals = await self._market_data.asset_info(coin)
        mid = await self._market_data.mid_price(coin)
        px = round_price(self._slippage_price(mid, close_side.is_buy, slippage), sz_decimals)
        return await self._place_order(
            coin, asset, close_side.is_buy, round_size(qty, sz_decimals), px, "Ioc", reduce_only=True
        )

    async def cancel_order(self, symbol: str, order_id: str) -> None:
        asset, _ = await self._market_data.asset_info(symbol)
        await self._send_agent_action(
            {"type": "cancel", "cancels": [{"a": asset, "o": int(order_id)}]}
        )

    async def cancel_by_cloid(self, symbol: str, cloid: str) -> None:
        asset, _ = await self._market_data.asset_info(symbol)
        await self._send_agent_action(
            {"type": "cancelByCloid", "cancels": [{"asset": asset, "cloid": cloid}]}
        )

    async def cancel_all(self, symbol: str) -> int:
        coin = _coin(symbol)
        orders = [o for o in await self.open_orders() if o.symbol.upper() == coin]
        if not orders:
            return 0
        asset, _ = await self._market_data.asset_info(coin)
        await self._send_agent_action(
            {"type": "cancel", "cancels": [{"a": asset, "o": int(o.order_id)} for o in orders]}
        )
        self.log.info(f"Cancelled {len(orders)} open orders on {coin}")
        return len(orders)

    # --------------------------------------------------- account state
    async def _clearinghouse_state(self) -> Dict[str, Any]:
        return await self._market_data.info(
            {"type": "clearinghouseState", "user": self._require_address()}
        ) or {}

    async def open_orders(self) -> List[Order]:
        data = await self._market_data.info({"type": "openOrders", "user": self._require_address()})
        return [
            Order(
                venue=Protocol.HYPERLIQUID,
                symbol=str(o.get("coin", "")),
                side=Side.parse(o.get("side")),
                order_type=OrderType.LIMIT,
                size=_dec0(o.get("sz")),
                status=OrderStatus.OPEN,
                order_id=str(o.get("oid", "")),
                timestamp_ms=int(o.get("timestamp", 0)),
                price=_dec(o.get("limitPx")),
            )
            for o in (data or [])
        ]

    async def positions(self) -> List[Position]:
        state = await self._clearinghouse_state()
        out: List[Position] = []
        for entry in state.get("assetPositions") or []:
            pos = (entry or {}).get("position") or {}
            szi = _dec0(pos.get("szi"))
            if szi == 0:
                continue
            size = abs(szi)
            value = _dec(pos.get("positionValue"))
            lev = (pos.get("leverage") or {}).get("value")
            out.append(
                Position(
                    venue=Protocol.HYPERLIQUID,
                    symbol=str(pos.get("coin", "")),
                    side=Side.BUY if szi > 0 else Side.SELL,
                    size=size,
                    entry_price=_dec(pos.get("entryPx")),
                    mark_price=value / size if value is not None else None,
                    unrealized_pnl=_dec(pos.get("unrealizedPnl")),
                    leverage=int(lev) if lev is not None else None,
                    margin=_dec(pos.get("marginUsed")),
                    liquidation_price=_dec(pos.get("liquidationPx")),
                )
            )
        return out

    async def fills(self) -> List[Fill]:
        data = await self._market_data.info({"type": "userFills", "user": self._require_address()})
        return [
            Fill(
                venue=Protocol.HYPERLIQUID,
                symbol=str(f.get("coin", "")),
                side=Side.parse(f.get("side")),
                price=_dec0(f.get("px")),
                size=_dec0(f.get("sz")),
                fee=_dec0(f.get("fee")),
                order_id=str(f.get("oid", "")),
                timestamp_ms=int(f.get("time", 0)),
                realized_pnl=_dec(f.get("closedPnl")),
                tx_hash=f.get("hash"),
            )
            for f in (data or [])[:FILLS_LIMIT]
        ]

    async def balances(self) -> List[Balance]:
        state = await self._clearinghouse_state()
        summary = state.get("marginSummary") or {}
        return [
            Balance(
                venue=Protocol.HYPERLIQUID,
                chain=Chain.HYPERLIQUID_L1,
                asset=USDC,
                total=_dec0(summary.get("accountValue")),
                available=_dec0(state.get("withdrawable")),
                locked=_dec0(summary.get("totalMarginUsed")),
            )
        ]

    # --------------------------------------------------- leverage / margin
    async def set_leverage(self, symbol: str, leverage: int, is_cross: bool = True) -> None:
        if int(leverage) < 1:
            raise ValueError(f"Leverage must be >= 1 (got {leverage})")
        asset, _ = await self._market_data.asset_info(symbol)
        await self._send_agent_action(
            {"type": "updateLeverage", "asset": asset, "isCross": bool(is_cross), "leverage": int(leverage)}
        )
        self.log.info(f"Set {_coin(symbol)} leverage to {leverage}x ({'cross' if is_cross else 'isolated'})")

    async def update_margin(self, symbol: str, amount: Decimal) -> None:
        coin = _coin(symbol)
        asset, _ = await self._market_data.asset_info(coin)
        position = next((p for p in await self.positions() if p.symbol.upper() == coin), None)
        is_buy = position.side.is_buy if position is not None else True
        await self._send_agent_action(
            {
                "type": "updateIsolatedMargin",
                "asset": asset,
                "isBuy": is_buy,
                "ntli": int(round(Decimal(str(amount)) * 1_000_000)),
            }
        )

    # --------------------------------------------------- transfers
    async def transfer(self, amount: Decimal, destination: str) -> str:
        wallet = self._require_wallet()
        timestamp = self._next_nonce()
        action = {
            "destination": destination,
            "amount": str(amount),
            "time": timestamp,
            "type": "usdSend",
        }
        signature = sign_usd_transfer_action(wallet, action, self.is_mainnet)
        await self._send_user_action(action, signature)
        return f"Sent {amount} USDC to {destination}"

    async def internal_transfer(
        self,
        direction: str,
        amount: Decimal,
        token: Optional[str] = None,
    ) -> str:
        """Move USDC between the perp and spot wallets (``to-spot`` / ``to-perp``)."""
        if token is not None and token.upper() != USDC:
            raise self._unsupported(f"Internal transfer of {token}")
        key = str(direction or "").strip().lower().replace("_", "-")
        if key in _TO_SPOT:
            to_perp = False
        elif key in _TO_PERP:
            to_perp = True
        else:
            raise ValueError(f"Unknown transfer direction {direction!r}; use to-spot or to-perp")
        wallet = self._require_wallet()
        action = {
            "type": "usdClassTransfer",
            "amount": str(amount),
            "toPerp": to_perp,
            "nonce": self._next_nonce(),
        }
        signature = sign_usd_class_transfer_action(wallet, action, self.is_mainnet)
        await self._send_user_action(action, signature)
        return f"Moved {amount} USDC to {'perp' if to_perp else 'spot'}"

    async def approve_agent(self, agent_address: str, name: Optional[str] = None) -> str:
        wallet = self._require_wallet()
        action: Dict[str, Any] = {
            "type": "approveAgent",
            "agentAddress": agent_address,
            "agentName": name or "",
            "nonce": self._next_nonce(),
        }
        signature = sign_agent(wallet, action, self.is_mainnet)
        if name is None:
            del action["agentName"]
        await self._send_user_action(action, signature)
        return f"Approved agent {agent_address}"

    # --------------------------------------------------- spot
    async def spot_balances(self) -> List[SpotBalance]:
        data = await self._market_data.info(
            {"type": "spotClearinghouseState", "user": self._require_address()}
        ) or {}
        return [
            SpotBalance(
                venue=Protocol.HYPERLIQUID,
                asset=str(b.get("coin", "")),
                total=_dec0(b.get("total")),
                hold=_dec0(b.get("hold")),
            )
            for b in data.get("balances") or []
            if _dec0(b.get("total")) != 0
        ]

    async def _spot_pair(self, base: str) -> Tuple[int, str, int]:
        """``(asset_id, mid_key, sz_decimals)`` for the first pair quoting ``base``."""
        meta = await self._market_data.spot_meta()
        tokens = {int(t.get("index", -1)): t for t in meta.get("tokens") or []}
        wanted = str(base or "").strip().upper()
        for pair in meta.get("universe") or []:
            pair_tokens = pair.get("tokens") or []
            if not pair_tokens:
                continue
            base_token = tokens.get(int(pair_tokens[0])) or {}
            if str(base_token.get("name", "")).upper() != wanted:
                continue
            index = int(pair.get("index", 0))
            name = str(pair.get("name") or f"@{index}")
            return SPOT_ASSET_OFFSET + index, name, int(base_token.get("szDecimals", 0))
        raise AssetNotFoundError(VENUE_HYPERLIQUID, f"Unknown spot asset: {base}")

    async def spot_market_order(
        self,
        base: str,
        side: Side,
        size: Decimal,
        slippage: Optional[float] = None,
    ) -> OrderResult:
        asset, mid_key, sz_decimals = await self._spot_pair(base)
        mid = await self._market_data.mid_price(mid_key)
        px = round_price(
            self._slippage_price(mid, side.is_buy, slippage), sz_decimals, SPOT_MAX_DECIMALS
        )
        return await self._place_order(
            mid_key, asset, side.is_buy, round_size(size, sz_decimals), px, "Ioc"
        )

    # --------------------------------------------------- vaults / subaccounts
    async def vault_details(self, vault_address: str) -> VaultDetails:
        payload: Dict[str, Any] = {"type": "vaultDetails", "vaultAddress": vault_address}
        if self._address:
            payload["user"] = self._address
        data = await self._market_data.info(payload)
        if not isinstance(data, dict):
            raise AssetNotFoundError(VENUE_HYPERLIQUID, f"Unknown vault: {vault_address}")
        tvl = Decimal(0)
        for period, portfolio in data.get("portfolio") or []:
            if period == "allTime":
                history = (portfolio or {}).get("accountValueHistory") or []
                if history:
                    tvl = _dec0(history[-1][1])
        return VaultDetails(
            venue=Protocol.HYPERLIQUID,
            address=str(data.get("vaultAddress") or vault_address),
            name=str(data.get("name", "")),
            tvl=tvl,
            apr=_dec(data.get("apr")),
            leader=data.get("leader"),
        )

    async def vault_deposits(self) -> List[VaultDeposit]:
        data = await self._market_data.info(
            {"type": "userVaultEquities", "user": self._require_address()}
        )
        return [
            VaultDeposit(
                venue=Protocol.HYPERLIQUID,
                vault_address=str(v.get("vaultAddress", "")),
                equity=_dec0(v.get("equity")),
            )
            for v in (data or [])
        ]

    async def subaccounts(self) -> List[SubAccount]:
        data = await self._market_data.info({"type": "subAccounts", "user": self._require_address()})
        return [
            SubAccount(
                venue=Protocol.HYPERLIQUID,
                address=str(s.get("subAccountUser", "")),
                name=str(s.get("name", "")),
            )
            for s in (data or [])
        ]
