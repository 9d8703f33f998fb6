#!/usr/bin/env python3
"""Venue and chain identifiers plus normalization helpers.

Adding a venue means adding a ``Protocol`` member, its aliases and an
adapter; callers keyed on venue ids never change.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional


class Protocol(str, Enum):
    """Venue identifier. The value doubles as the registry key."""

    HYPERLIQUID = "hyperliquid"
    MORPHO = "morpho"
    ZEROX = "zerox"

    def __str__(self) -> str:
        return self.value


class Chain(str, Enum):
    ETHEREUM = "ethereum"
    ARBITRUM = "arbitrum"
    BASE = "base"
    SOLANA = "solana"
    HYPERLIQUID_L1 = "hyperliquid-l1"

    def __str__(self) -> str:
        return self.value


VENUE_HYPERLIQUID = Protocol.HYPERLIQUID.value
VENUE_MORPHO = Protocol.MORPHO.value
VENUE_ZEROX = Protocol.ZEROX.value

HYPERLIQUID_MAINNET_URL = "https://api.hyperliquid.xyz"
HYPERLIQUID_TESTNET_URL = "https://api.hyperliquid-testnet.xyz"

VALID_VENUES = frozenset(p.value for p in Protocol)

_ALIASES = {
    "hl": VENUE_HYPERLIQUID,
    "hyper": VENUE_HYPERLIQUID,
    "morpho_blue": VENUE_MORPHO,
    "morpho-blue": VENUE_MORPHO,
    "0x": VENUE_ZEROX,
    "zero_x": VENUE_ZEROX,
    "zero-x": VENUE_ZEROX,
    # Allow canonical values to pass through unchanged.
    VENUE_HYPERLIQUID: VENUE_HYPERLIQUID,
    VENUE_MORPHO: VENUE_MORPHO,
    VENUE_ZEROX: VENUE_ZEROX,
}

_CHAIN_ALIASES = {
    "eth": Chain.ETHEREUM,
    "mainnet": Chain.ETHEREUM,
    "arb": Chain.ARBITRUM,
    "sol": Chain.SOLANA,
    "hyperliquid": Chain.HYPERLIQUID_L1,
    "hyperliquid_l1": Chain.HYPERLIQUID_L1,
    "hl": Chain.HYPERLIQUID_L1,
}

_EVM_CHAIN_IDS = {
    Chain.ETHEREUM: 1,
    Chain.ARBITRUM: 42161,
    Chain.BASE: 8453,
}


def normalize_venue(value) -> str:
    """Normalize venue aliases (or a ``Protocol``) to canonical strings.

    Unknown names are lowercased and passed through so lookups fail with
    the name the caller used.
    """
    if isinstance(value, Protocol):
        return value.value
    raw = str(value or "").strip().lower()
    if not raw:
        return ""
    return _ALIASES.get(raw, raw)


def parse_enabled_venues(value: str) -> List[str]:
    """Parse comma-delimited venues into canonical list."""
    raw = str(value or "").strip()
    if not raw:
        return []
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    out: List[str] = []
    seen = set()
    for part in parts:
        norm = normalize_venue(part)
        if not norm or norm in seen:
            continue
        seen.add(norm)
        out.append(norm)
    return out


def parse_chain(value, default: Chain = Chain.ETHEREUM) -> Chain:
    if isinstance(value, Chain):
        return value
    raw = str(value or "").strip().lower()
    if not raw:
        return default
    try:
        return Chain(raw)
    except ValueError:
        return _CHAIN_ALIASES.get(raw, default)


def evm_chain_id(chain: Chain) -> Optional[int]:
    """EVM chain id, or None for chains without one (Solana, HL L1 core)."""
    return _EVM_CHAIN_IDS.get(chain)
