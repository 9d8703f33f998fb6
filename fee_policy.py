#!/usr/bin/env python3
"""Builder-fee policy.

Every order routed through a perp adapter carries the protocol builder
fee; every swap quote carries the equivalent swap-fee parameters. The fee
is attached to an already-signed payload, so it never changes what the
user's key signed.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

PROTOCOL_FEE_WALLET = "0x2287e62D1F9715Aa132aFF90cd37cf57A507065c"
PROTOCOL_FEE_BPS = 1.0

# Upper bound accepted from configuration (Hyperliquid caps perp builder fees at 0.1%).
MAX_BUILDER_FEE_BPS = 10.0

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class BuilderFee:
    """Fee recipient plus rate in basis points."""

    address: str
    bps: float

    def __post_init__(self) -> None:
        if not isinstance(self.address, str) or not _ADDRESS_RE.match(self.address):
            raise ValueError(f"Invalid builder address: {self.address!r}")
        try:
            bps = float(self.bps)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid builder fee bps: {self.bps!r}") from None
        if bps != bps or bps < 0 or bps > MAX_BUILDER_FEE_BPS:
            raise ValueError(
                f"Builder fee bps must be within [0, {MAX_BUILDER_FEE_BPS}] (got {self.bps!r})"
            )
        object.__setattr__(self, "bps", bps)

    @property
    def tenths_bps(self) -> int:
        """Rate in tenths of a basis point (Hyperliquid's wire unit)."""
        return int(round(self.bps * 10))

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "BuilderFee":
        if not isinstance(raw, dict):
            return DEFAULT_BUILDER_FEE
        address = raw.get("address") or DEFAULT_BUILDER_FEE.address
        bps = raw.get("bps", DEFAULT_BUILDER_FEE.bps)
        return cls(address=str(address), bps=bps)

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "bps": self.bps}


DEFAULT_BUILDER_FEE = BuilderFee(address=PROTOCOL_FEE_WALLET, bps=PROTOCOL_FEE_BPS)


def builder_wire(fee: BuilderFee = DEFAULT_BUILDER_FEE) -> Dict[str, Any]:
    return {"b": fee.address.lower(), "f": fee.tenths_bps}


def inject_builder_fee(
    payload: Dict[str, Any],
    fee: BuilderFee = DEFAULT_BUILDER_FEE,
) -> Dict[str, Any]:
    """Return a copy of a signed /exchange payload with the builder field set.

    The input payload (and its action) is left untouched; ``signature`` and
    ``nonce`` are carried over as-is.
    """
    action = payload.get("action")
    if not isinstance(action, dict):
        raise ValueError("payload has no action to attach a builder fee to")
    out = dict(payload)
    new_action = copy.deepcopy(action)
    new_action["builder"] = builder_wire(fee)
    out["action"] = new_action
    return out


def swap_fee_params(fee: BuilderFee = DEFAULT_BUILDER_FEE) -> Dict[str, str]:
    """Fee parameters for the 0x swap API (integer bps)."""
    return {
        "swapFeeRecipient": fee.address,
        "swapFeeBps": str(int(round(fee.bps))),
    }
