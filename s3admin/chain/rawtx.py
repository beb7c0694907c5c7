"""
Raw signed transaction helpers.

The ladder signs legacy (gasPrice) transactions with an EIP-155 chain id;
these helpers read such payloads back without a node.
"""

from dataclasses import dataclass
from typing import Optional

import rlp
from rlp.exceptions import DecodingError as RLPDecodingError
from eth_account import Account
from eth_utils import keccak, to_checksum_address

from ..errors import ValidationError


def raw_tx_hash(signed_payload: str) -> str:
    """Hash of a raw signed transaction, as the network will report it."""
    return "0x" + keccak(hexstr=signed_payload).hex()


@dataclass(frozen=True)
class DecodedTransaction:
    """Fields of a signed legacy transaction."""
    nonce: int
    gas_price: int
    gas: int
    to: Optional[str]
    value: int
    data: bytes
    chain_id: Optional[int]
    sender: str
    tx_hash: str


def _as_int(raw: bytes) -> int:
    return int.from_bytes(raw, "big")


def decode_legacy_transaction(signed_payload: str, field: str = "signedPayload") -> DecodedTransaction:
    """Decode a 0x-prefixed raw legacy transaction and recover its sender."""
    try:
        fields = rlp.decode(bytes.fromhex(signed_payload.removeprefix("0x")))
    except (ValueError, RLPDecodingError) as exc:
        raise ValidationError(f"not a raw transaction ({exc})", field=field)
    if not isinstance(fields, list) or len(fields) != 9:
        raise ValidationError("not a legacy transaction", field=field)

    nonce, gas_price, gas, to, value, data, v, _r, _s = fields
    v = _as_int(v)
    return DecodedTransaction(
        nonce=_as_int(nonce),
        gas_price=_as_int(gas_price),
        gas=_as_int(gas),
        to=to_checksum_address(to) if to else None,
        value=_as_int(value),
        data=bytes(data),
        chain_id=(v - 35) // 2 if v >= 35 else None,
        sender=Account.recover_transaction(signed_payload),
        tx_hash=raw_tx_hash(signed_payload),
    )
