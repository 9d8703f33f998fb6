#!/usr/bin/env python3
"""Error taxonomy shared by adapters and the orchestrator.

Blocked risk checks are not errors; see ``risk_engine.RiskWarnings``.
"""

from __future__ import annotations

from typing import Optional


class VenueError(RuntimeError):
    """Base class for every venue/orchestrator failure."""

    def __init__(self, message: str, venue: Optional[str] = None) -> None:
        super().__init__(message)
        self.venue = venue


class ExchangeRoutingError(VenueError):
    """Raised when routing cannot select a viable venue."""


class UnknownVenueError(ExchangeRoutingError):
    def __init__(self, venue: str, capability: str) -> None:
        super().__init__(f"Unknown {capability} venue: {venue}", venue=venue)
        self.capability = capability


class NoVenueRegisteredError(ExchangeRoutingError):
    def __init__(self, capability: str) -> None:
        super().__init__(f"No {capability} venue registered")
        self.capability = capability


class UnsupportedOperationError(VenueError):
    """Optional capability the venue does not implement."""

    def __init__(self, venue: str, operation: str) -> None:
        super().__init__(f"{operation} not supported on {venue}", venue=venue)
        self.operation = operation


class NetworkError(VenueError):
    """Transport failure (connection, timeout, DNS)."""


class ProtocolError(VenueError):
    """The venue answered, but with an error or an unparseable body."""

    def __init__(self, venue: str, message: str) -> None:
        super().__init__(f"Protocol error ({venue}): {message}", venue=venue)
        self.detail = message


class OrderRejectedError(ProtocolError):
    pass


class AssetNotFoundError(ProtocolError):
    pass


class AuthenticationError(VenueError):
    """Missing or invalid signing material."""
