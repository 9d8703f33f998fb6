#!/usr/bin/env python3
"""Orchestrator: venue registry, capability routing and fan-out queries.

Adapters are registered per capability (perp, lending, swap). The first
adapter registered for a capability becomes its default and stays the
default for the life of the process. Fan-out queries run every adapter of
a capability concurrently and drop (but log) the ones that fail.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from env_utils import env_str
from logging_utils import get_logger
from venues import VENUE_HYPERLIQUID, VENUE_MORPHO, VENUE_ZEROX, normalize_venue

from .base import LendingProtocol, PerpTrading, SwapRouting
from .errors import NoVenueRegisteredError, UnknownVenueError
from .hyperliquid_adapter import HyperliquidAdapter
from .models import Balance, LendingMarket, LendingPosition, Market, Position, Ticker
from .morpho_adapter import MorphoAdapter
from .zero_x_adapter import ZeroXAdapter

CAPABILITY_PERP = "perp"
CAPABILITY_LENDING = "lending"
CAPABILITY_SWAP = "swap"

CAPABILITIES: Tuple[str, ...] = (CAPABILITY_PERP, CAPABILITY_LENDING, CAPABILITY_SWAP)

_CAPABILITY_TYPES = {
    CAPABILITY_PERP: PerpTrading,
    CAPABILITY_LENDING: LendingProtocol,
    CAPABILITY_SWAP: SwapRouting,
}


@dataclass(frozen=True)
class VenueInfo:
    venue: str
    capability: str


class Orchestrator:
    """Routes requests to registered venue adapters."""

    def __init__(self, log=None) -> None:
        self.log = log or get_logger("atlas.orchestrator")
        self._adapters: Dict[str, Dict[str, Any]] = {cap: {} for cap in CAPABILITIES}
        self._defaults: Dict[str, Optional[str]] = {cap: None for cap in CAPABILITIES}
        # Writers only; readers take a snapshot of the dicts.
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ registry

    def _register(self, capability: str, adapter: Any) -> None:
        expected = _CAPABILITY_TYPES[capability]
        if not isinstance(adapter, expected):
            raise TypeError(
                f"{type(adapter).__name__} does not implement {expected.__name__}"
            )
        venue = normalize_venue(adapter.venue_id())
        if not venue:
            raise ValueError(f"{type(adapter).__name__} returned an empty venue id")
        with self._lock:
            table = self._adapters[capability]
            if venue in table and table[venue] is not adapter:
                # Replace-on-duplicate is the observed contract; keep it loud.
                self.log.warning(
                    f"Replacing {capability} adapter for {venue} "
                    f"({type(table[venue]).__name__} -> {type(adapter).__name__})"
                )
            table[venue] = adapter
            if self._defaults[capability] is None:
                self._defaults[capability] = venue
        self.log.info(f"Registered {capability} venue: {venue}")

    def register_perp(self, adapter: PerpTrading) -> None:
        self._register(CAPABILITY_PERP, adapter)

    def register_lending(self, adapter: LendingProtocol) -> None:
        self._register(CAPABILITY_LENDING, adapter)

    def register_swap(self, adapter: SwapRouting) -> None:
        self._register(CAPABILITY_SWAP, adapter)

    def register(self, adapter: Any) -> List[str]:
        """Register ``adapter`` under every capability it implements."""
        registered: List[str] = []
        for capability in CAPABILITIES:
            if isinstance(adapter, _CAPABILITY_TYPES[capability]):
                self._register(capability, adapter)
                registered.append(capability)
        if not registered:
            raise TypeError(f"{type(adapter).__name__} implements no venue capability")
        return registered

    def default_venue(self, capability: str) -> Optional[str]:
        self._check_capability(capability)
        return self._defaults[capability]

    @property
    def default_perp(self) -> Optional[str]:
        return self._defaults[CAPABILITY_PERP]

    @property
    def default_lending(self) -> Optional[str]:
        return self._defaults[CAPABILITY_LENDING]

    @property
    def default_swap(self) -> Optional[str]:
        return self._defaults[CAPABILITY_SWAP]

    @staticmethod
    def _check_capability(capability: str) -> None:
        if capability not in _CAPABILITY_TYPES:
            raise ValueError(f"Unknown capability: {capability}")

    # ------------------------------------------------------------------ routing

    def resolve(self, capability: str, venue: Optional[str] = None) -> Any:
        """Return the adapter for ``venue`` (or the capability default)."""
        self._check_capability(capability)
        name = normalize_venue(venue) if venue is not None else self._defaults[capability]
        if not name:
            raise NoVenueRegisteredError(capability)
        adapter = self._adapters[capability].get(name)
        if adapter is None:
            raise UnknownVenueError(name, capability)
        return adapter

    def resolve_perp(self, venue: Optional[str] = None) -> PerpTrading:
        return self.resolve(CAPABILITY_PERP, venue)

    def resolve_lending(self, venue: Optional[str] = None) -> LendingProtocol:
        return self.resolve(CAPABILITY_LENDING, venue)

    def resolve_swap(self, venue: Optional[str] = None) -> SwapRouting:
        return self.resolve(CAPABILITY_SWAP, venue)

    def list_venues(self) -> List[VenueInfo]:
        """Registered venues, perp then lending then swap, in registration order."""
        out: List[VenueInfo] = []
        for capability in CAPABILITIES:
            for venue in list(self._adapters[capability]):
                out.append(VenueInfo(venue=venue, capability=capability))
        return out

    # ------------------------------------------------------------------ fan-out

    async def _fan_out(
        self,
        capability: str,
        operation: str,
        call: Callable[[Any], Awaitable[List[Any]]],
    ) -> List[Any]:
        adapters = list(self._adapters[capability].items())
        if not adapters:
            return []
        results = await asyncio.gather(
            *(call(adapter) for _, adapter in adapters),
            return_exceptions=True,
        )
        out: List[Any] = []
        for (venue, _), result in zip(adapters, results):
            if isinstance(result, Exception):
                self.log.warning(f"{operation} failed on {venue}: {result}")
                continue
            if isinstance(result, BaseException):
                # Cancellation and interpreter exits are never absorbed.
                raise result
            out.extend(result)
        return out

    async def all_markets(self) -> List[Market]:
        """Markets from every perp venue; failing venues are skipped (may be empty)."""
        return await self._fan_out(CAPABILITY_PERP, "markets", lambda a: a.markets())

    async def all_tickers(self) -> List[Ticker]:
        tickers = await self._fan_out(CAPABILITY_PERP, "all_tickers", lambda a: a.all_tickers())
        return sorted(tickers, key=lambda t: t.symbol)

    async def all_positions(self) -> List[Position]:
        return await self._fan_out(CAPABILITY_PERP, "positions", lambda a: a.positions())

    async def all_balances(self) -> List[Balance]:
        return await self._fan_out(CAPABILITY_PERP, "balances", lambda a: a.balances())

    async def all_lending_markets(self) -> List[LendingMarket]:
        return await self._fan_out(CAPABILITY_LENDING, "lending markets", lambda a: a.markets())

    async def all_lending_positions(self, user: str) -> List[LendingPosition]:
        return await self._fan_out(
            CAPABILITY_LENDING, "lending positions", lambda a: a.positions(user)
        )

    # ------------------------------------------------------------------ lifecycle

    def _distinct_adapters(self) -> List[Tuple[str, Any]]:
        # A hybrid adapter sits under several capabilities; yield it once.
        seen = set()
        out: List[Tuple[str, Any]] = []
        for capability in CAPABILITIES:
            for venue, adapter in list(self._adapters[capability].items()):
                if id(adapter) in seen:
                    continue
                seen.add(id(adapter))
                out.append((venue, adapter))
        return out

    async def close(self) -> None:
        """Close every registered adapter once; one failing close does not stop the rest."""
        for venue, adapter in self._distinct_adapters():
            closer = getattr(adapter, "close", None)
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                self.log.warning(f"close failed on {venue}: {e}")

    async def __aenter__(self) -> "Orchestrator":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()


# =============================================================================
# Construction from configuration
# =============================================================================


def _venue_order(enabled: List[str], default: str, candidates) -> List[str]:
    """Enabled venues of one capability with the configured default first."""
    venues = [v for v in enabled if v in candidates]
    if default in venues:
        venues.remove(default)
        venues.insert(0, default)
    return venues


def build_orchestrator(config, wallet=None, session=None, log=None) -> Orchestrator:
    """Register every enabled venue from ``config`` (an ``AppConfig``).

    Without ``wallet`` Hyperliquid is registered read-only: market data works,
    signed actions raise ``AuthenticationError``. ``session`` is an optional
    shared ``aiohttp.ClientSession``; adapters create their own otherwise.
    """
    orch = Orchestrator(log=log)
    modules = config.modules
    network = config.network
    enabled = list(modules.enabled)

    perp_factories: Dict[str, Callable[[], PerpTrading]] = {
        VENUE_HYPERLIQUID: lambda: HyperliquidAdapter(
            wallet=wallet,
            account_address=env_str("HYPERLIQUID_ADDRESS"),
            base_url=network.hyperliquid_url,
            is_mainnet=not network.testnet,
            builder_fee=config.builder_fee,
            default_slippage=config.trading.default_slippage,
            timeout_sec=network.timeout_sec,
            session=session,
        ),
    }
    lending_factories: Dict[str, Callable[[], LendingProtocol]] = {
        VENUE_MORPHO: lambda: MorphoAdapter(
            chain=network.morpho_chain,
            api_url=network.morpho_url,
            timeout_sec=network.timeout_sec,
            session=session,
        ),
    }
    swap_factories: Dict[str, Callable[[], SwapRouting]] = {
        VENUE_ZEROX: lambda: ZeroXAdapter(
            api_key=env_str("ZEROX_API_KEY"),
            base_url=network.zerox_url,
            default_chain=network.zerox_chain,
            builder_fee=config.builder_fee,
            timeout_sec=network.timeout_sec,
            session=session,
        ),
    }

    for venue in _venue_order(enabled, modules.default_perp, perp_factories):
        orch.register_perp(perp_factories[venue]())
    for venue in _venue_order(enabled, modules.default_lending, lending_factories):
        orch.register_lending(lending_factories[venue]())
    for venue in _venue_order(enabled, modules.default_swap, swap_factories):
        orch.register_swap(swap_factories[venue]())

    unknown = [v for v in enabled if v not in perp_factories
               and v not in lending_factories and v not in swap_factories]
    if unknown:
        orch.log.warning(f"Ignoring unknown enabled venues: {', '.join(unknown)}")

    return orch
