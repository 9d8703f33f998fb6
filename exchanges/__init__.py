"""Venue adapters, capability contracts and the orchestrator."""

from .base import LendingProtocol, MarketDataProvider, PerpTrading, SwapRouting
from .errors import (
    AssetNotFoundError,
    AuthenticationError,
    ExchangeRoutingError,
    NetworkError,
    NoVenueRegisteredError,
    OrderRejectedError,
    ProtocolError,
    UnknownVenueError,
    UnsupportedOperationError,
    VenueError,
)
from .hyperliquid_adapter import HyperliquidAdapter, HyperliquidMarketData, load_agent_wallet
from .morpho_adapter import MorphoAdapter
from .router import Orchestrator, VenueInfo, build_orchestrator
from .zero_x_adapter import ZeroXAdapter

__all__ = [
    "LendingProtocol",
    "MarketDataProvider",
    "PerpTrading",
    "SwapRouting",
    "AssetNotFoundError",
    "AuthenticationError",
    "ExchangeRoutingError",
    "NetworkError",
    "NoVenueRegisteredError",
    "OrderRejectedError",
    "ProtocolError",
    "UnknownVenueError",
    "UnsupportedOperationError",
    "VenueError",
    "HyperliquidAdapter",
    "HyperliquidMarketData",
    "load_agent_wallet",
    "MorphoAdapter",
    "Orchestrator",
    "VenueInfo",
    "build_orchestrator",
    "ZeroXAdapter",
]
