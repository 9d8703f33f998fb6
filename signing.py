#!/usr/bin/env python3
"""EIP-712 agent signing for Hyperliquid exchange actions.

``compute_agent_signing_hash`` produces the digest an approved agent key
signs for L1 actions, including action types the SDK does not wrap
(updateLeverage and friends). ``build_signed_payload`` is the single path
every order takes: sign the bare action, then attach the builder fee.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from eth_utils import keccak, to_hex
from hyperliquid.utils.signing import sign_l1_action

from fee_policy import DEFAULT_BUILDER_FEE, BuilderFee, inject_builder_fee

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_DOMAIN_TYPE = b"EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
_AGENT_TYPE = b"Agent(string source,bytes32 connectionId)"


@dataclass(frozen=True)
class AgentSigningDomain:
    name: str = "Exchange"
    version: str = "1"
    chain_id: int = 1337
    verifying_contract: str = ZERO_ADDRESS

    def separator(self) -> bytes:
        addr = bytes.fromhex(self.verifying_contract[2:])
        if len(addr) != 20:
            raise ValueError(f"verifying_contract must be a 20-byte address: {self.verifying_contract}")
        return keccak(
            keccak(_DOMAIN_TYPE)
            + keccak(self.name.encode("utf-8"))
            + keccak(self.version.encode("utf-8"))
            + int(self.chain_id).to_bytes(32, "big")
            + addr.rjust(32, b"\x00")
        )


DEFAULT_AGENT_DOMAIN = AgentSigningDomain()


def _connection_id_bytes(connection_id: Union[bytes, str]) -> bytes:
    if isinstance(connection_id, (bytes, bytearray)):
        raw = bytes(connection_id)
    elif isinstance(connection_id, str):
        text = connection_id[2:] if connection_id.lower().startswith("0x") else connection_id
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"connection_id is not valid hex: {connection_id!r}") from None
    else:
        raise ValueError(f"connection_id must be bytes or hex string, got {type(connection_id).__name__}")
    if len(raw) != 32:
        raise ValueError(f"connection_id must be exactly 32 bytes (got {len(raw)})")
    return raw


def compute_agent_signing_hash(
    source: str,
    connection_id: Union[bytes, str],
    domain: AgentSigningDomain = DEFAULT_AGENT_DOMAIN,
) -> bytes:
    """Return the 32-byte EIP-712 digest for ``Agent(source, connectionId)``.

    ``source`` is ``"a"`` on mainnet and ``"b"`` on testnet; ``connection_id``
    is the action hash (msgpack(action) || nonce || vault flag, keccak'd).
    """
    struct_hash = keccak(
        keccak(_AGENT_TYPE)
        + keccak(source.encode("utf-8"))
        + _connection_id_bytes(connection_id)
    )
    return keccak(b"\x19\x01" + domain.separator() + struct_hash)


def sign_agent_hash(account: Any, digest: bytes) -> Dict[str, Any]:
    """Sign a precomputed digest with an eth_account ``LocalAccount``.

    Returns the ``{"r", "s", "v"}`` shape /exchange expects.
    """
    if len(digest) != 32:
        raise ValueError(f"digest must be 32 bytes (got {len(digest)})")
    signed = account.unsafe_sign_hash(digest)
    return {"r": to_hex(signed.r), "s": to_hex(signed.s), "v": signed.v}


def build_signed_payload(
    wallet: Any,
    action: Dict[str, Any],
    nonce: int,
    fee: Optional[BuilderFee] = DEFAULT_BUILDER_FEE,
    vault_address: Optional[str] = None,
    expires_after: Optional[int] = None,
    is_mainnet: bool = True,
) -> Dict[str, Any]:
    """Sign ``action`` and return the /exchange payload with the builder fee attached.

    The signature covers the action exactly as passed in; the fee is added
    to a copy afterwards. ``fee=None`` skips injection (non-order actions).
    """
    signature = sign_l1_action(
        wallet,
        action,
        vault_address,
        nonce,
        expires_after,
        is_mainnet,
    )
    payload = {
        "action": action,
        "nonce": nonce,
        "signature": signature,
        "vaultAddress": vault_address,
        "expiresAfter": expires_after,
    }
    if fee is None:
        return payload
    return inject_builder_fee(payload, fee)
