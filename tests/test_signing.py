#!/usr/bin/env python3
"""Agent EIP-712 hashing and signed payload construction."""

import copy
import random
import sys
from pathlib import Path

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import keccak
from hyperliquid.utils.signing import action_hash, sign_l1_action

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from fee_policy import DEFAULT_BUILDER_FEE, builder_wire  # noqa: E402
from signing import (  # noqa: E402
    DEFAULT_AGENT_DOMAIN,
    ZERO_ADDRESS,
    AgentSigningDomain,
    build_signed_payload,
    compute_agent_signing_hash,
    sign_agent_hash,
)

_WALLET = Account.from_key("0x" + "11" * 32)
_NONCE = 1_700_000_000_000


def _order_action() -> dict:
    return {
        "type": "order",
        "orders": [
            {"a": 0, "b": True, "p": "65000", "s": "0.001", "r": False, "t": {"limit": {"tif": "Ioc"}}},
            {"a": 1, "b": False, "p": "3200.5", "s": "0.25", "r": True, "t": {"limit": {"tif": "Gtc"}}},
        ],
        "grouping": "na",
    }


def _typed_agent_message(source: str, connection_id: bytes):
    return encode_typed_data(
        full_message={
            "domain": {
                "chainId": 1337,
                "name": "Exchange",
                "verifyingContract": ZERO_ADDRESS,
                "version": "1",
            },
            "types": {
                "Agent": [
                    {"name": "source", "type": "string"},
                    {"name": "connectionId", "type": "bytes32"},
                ],
                "EIP712Domain": [
                    {"name": "name", "type": "string"},
                    {"name": "version", "type": "string"},
                    {"name": "chainId", "type": "uint256"},
                    {"name": "verifyingContract", "type": "address"},
                ],
            },
            "primaryType": "Agent",
            "message": {"source": source, "connectionId": connection_id},
        }
    )


def test_hash_matches_eip712_typed_data_encoding() -> None:
    connection_id = bytes(range(32))
    msg = _typed_agent_message("a", connection_id)
    assert DEFAULT_AGENT_DOMAIN.separator() == msg.header
    assert compute_agent_signing_hash("a", connection_id) == keccak(b"\x19\x01" + msg.header + msg.body)


def test_hash_is_deterministic_and_32_bytes() -> None:
    cid = "0x" + "ab" * 32
    first = compute_agent_signing_hash("source-A", cid)
    assert first == compute_agent_signing_hash("source-A", cid)
    assert first == compute_agent_signing_hash("source-A", bytes.fromhex("ab" * 32))
    assert len(first) == 32


def test_hash_varies_with_source_and_connection_id() -> None:
    rng = random.Random(1337)
    seen = set()
    for _ in range(200):
        cid = bytes(rng.getrandbits(8) for _ in range(32))
        a = compute_agent_signing_hash("source-A", cid)
        b = compute_agent_signing_hash("source-B", cid)
        assert a != b
        seen.add(a)
        seen.add(b)
    assert len(seen) == 400


def test_hash_varies_with_domain() -> None:
    cid = b"\x01" * 32
    testnet_domain = AgentSigningDomain(chain_id=421614)
    assert compute_agent_signing_hash("a", cid) != compute_agent_signing_hash("a", cid, testnet_domain)


@pytest.mark.parametrize("cid", [b"\x00" * 31, b"\x00" * 33, "0x1234", "0xzz" + "00" * 31, 42])
def test_connection_id_must_be_32_bytes(cid) -> None:
    with pytest.raises(ValueError):
        compute_agent_signing_hash("a", cid)


def test_agent_signature_matches_sdk_l1_signature() -> None:
    action = _order_action()
    for is_mainnet, source in ((True, "a"), (False, "b")):
        digest = compute_agent_signing_hash(source, action_hash(action, None, _NONCE, None))
        expected = sign_l1_action(_WALLET, action, None, _NONCE, None, is_mainnet)
        assert sign_agent_hash(_WALLET, digest) == expected


def test_sign_agent_hash_rejects_wrong_digest_length() -> None:
    with pytest.raises(ValueError):
        sign_agent_hash(_WALLET, b"\x00" * 31)


def test_fee_injection_does_not_change_signature() -> None:
    action = _order_action()
    before = copy.deepcopy(action)
    with_fee = build_signed_payload(_WALLET, action, _NONCE, fee=DEFAULT_BUILDER_FEE)
    without_fee = build_signed_payload(_WALLET, action, _NONCE, fee=None)

    assert action == before
    assert with_fee["signature"] == without_fee["signature"]
    assert with_fee["signature"] == sign_l1_action(_WALLET, before, None, _NONCE, None, True)
    assert with_fee["action"]["builder"] == builder_wire(DEFAULT_BUILDER_FEE)
    assert "builder" not in without_fee["action"]
    assert with_fee["nonce"] == without_fee["nonce"] == _NONCE
