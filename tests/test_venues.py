#!/usr/bin/env python3
"""Venue/chain identifier normalization."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from venues import (  # noqa: E402
    VALID_VENUES,
    Chain,
    Protocol,
    evm_chain_id,
    normalize_venue,
    parse_chain,
    parse_enabled_venues,
)


def test_normalize_venue_aliases() -> None:
    assert normalize_venue("HL") == "hyperliquid"
    assert normalize_venue(" 0x ") == "zerox"
    assert normalize_venue("zero_x") == "zerox"
    assert normalize_venue("Morpho-Blue") == "morpho"
    assert normalize_venue(Protocol.MORPHO) == "morpho"


def test_normalize_venue_passes_unknown_through_lowercased() -> None:
    assert normalize_venue("Kraken") == "kraken"
    assert normalize_venue(None) == ""
    assert normalize_venue("   ") == ""


def test_parse_enabled_venues_dedupes_and_keeps_order() -> None:
    assert parse_enabled_venues("0x, hl,zerox,,morpho") == ["zerox", "hyperliquid", "morpho"]
    assert parse_enabled_venues("") == []


def test_valid_venues_match_protocol_enum() -> None:
    assert VALID_VENUES == {"hyperliquid", "morpho", "zerox"}


def test_parse_chain_values_aliases_and_default() -> None:
    assert parse_chain("base") is Chain.BASE
    assert parse_chain("ARB") is Chain.ARBITRUM
    assert parse_chain("hyperliquid-l1") is Chain.HYPERLIQUID_L1
    assert parse_chain("", default=Chain.BASE) is Chain.BASE
    assert parse_chain("nonsense") is Chain.ETHEREUM


def test_evm_chain_id_only_for_evm_chains() -> None:
    assert evm_chain_id(Chain.ETHEREUM) == 1
    assert evm_chain_id(Chain.ARBITRUM) == 42161
    assert evm_chain_id(Chain.BASE) == 8453
    assert evm_chain_id(Chain.SOLANA) is None
    assert evm_chain_id(Chain.HYPERLIQUID_L1) is None


def test_enum_str_is_value() -> None:
    assert str(Protocol.ZEROX) == "zerox"
    assert str(Chain.HYPERLIQUID_L1) == "hyperliquid-l1"
