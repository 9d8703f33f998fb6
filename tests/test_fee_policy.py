#!/usr/bin/env python3
"""Builder-fee validation and injection."""

import copy
import math
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from fee_policy import (  # noqa: E402
    DEFAULT_BUILDER_FEE,
    MAX_BUILDER_FEE_BPS,
    PROTOCOL_FEE_BPS,
    PROTOCOL_FEE_WALLET,
    BuilderFee,
    builder_wire,
    inject_builder_fee,
    swap_fee_params,
)

_ADDR = "0xAbCdEf0123456789abcdef0123456789ABCDEF01"


def _payload() -> dict:
    return {
        "action": {
            "type": "order",
            "orders": [{"a": 4, "b": True, "p": "3000", "s": "0.1", "r": False, "t": {"limit": {"tif": "Gtc"}}}],
            "grouping": "na",
        },
        "nonce": 1700000000000,
        "signature": {"r": "0x01", "s": "0x02", "v": 27},
        "vaultAddress": None,
        "expiresAfter": None,
    }


def test_default_fee_is_protocol_wallet_one_bp() -> None:
    assert DEFAULT_BUILDER_FEE.address == PROTOCOL_FEE_WALLET
    assert DEFAULT_BUILDER_FEE.bps == PROTOCOL_FEE_BPS == 1.0
    assert DEFAULT_BUILDER_FEE.tenths_bps == 10


@pytest.mark.parametrize("address", ["", "0x123", "2287e62D1F9715Aa132aFF90cd37cf57A507065c00", None])
def test_invalid_address_rejected(address) -> None:
    with pytest.raises(ValueError):
        BuilderFee(address=address, bps=1)


@pytest.mark.parametrize("bps", [-0.1, MAX_BUILDER_FEE_BPS + 0.5, math.nan, "abc"])
def test_invalid_bps_rejected(bps) -> None:
    with pytest.raises(ValueError):
        BuilderFee(address=_ADDR, bps=bps)


def test_bps_coerced_to_float_and_tenths() -> None:
    fee = BuilderFee(address=_ADDR, bps="2.5")
    assert fee.bps == 2.5
    assert fee.tenths_bps == 25


def test_builder_wire_lowercases_address() -> None:
    assert builder_wire(BuilderFee(address=_ADDR, bps=3)) == {"b": _ADDR.lower(), "f": 30}


def test_inject_sets_builder_and_leaves_input_untouched() -> None:
    payload = _payload()
    before = copy.deepcopy(payload)
    out = inject_builder_fee(payload)
    assert payload == before
    assert "builder" not in payload["action"]
    assert out["action"]["builder"] == {"b": PROTOCOL_FEE_WALLET.lower(), "f": 10}
    assert out["signature"] == payload["signature"]
    assert out["nonce"] == payload["nonce"]
    assert {k: v for k, v in out["action"].items() if k != "builder"} == payload["action"]


def test_inject_requires_action() -> None:
    with pytest.raises(ValueError):
        inject_builder_fee({"nonce": 1})


def test_swap_fee_params() -> None:
    assert swap_fee_params() == {"swapFeeRecipient": PROTOCOL_FEE_WALLET, "swapFeeBps": "1"}


def test_from_dict_and_round_trip() -> None:
    assert BuilderFee.from_dict(None) == DEFAULT_BUILDER_FEE
    fee = BuilderFee.from_dict({"address": _ADDR, "bps": 4})
    assert BuilderFee.from_dict(fee.to_dict()) == fee
    assert BuilderFee.from_dict({"bps": 2}).address == PROTOCOL_FEE_WALLET
