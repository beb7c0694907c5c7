"""
Gas ladders and offline authoring.

An offline signer cannot know which gas price will clear the network when
the transaction is eventually published, so it signs the same action once per
rung of an ascending price ladder. Every payload uses the same nonce, so the
network can accept at most one of them.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Sequence, Union

from eth_account import Account

from ..chain.abi import normalize_address
from ..errors import ValidationError
from .transcript import TranscriptEntry, validate_ladder

log = logging.getLogger(__name__)

WEI_PER_GWEI = 10 ** 9
DEFAULT_GAS_LIMIT = 300_000
DEFAULT_CEILING_MULTIPLE = 10
DEFAULT_STEP_GWEI = 2
MAX_RUNGS = 1000


def _decimal(value, field: str) -> Decimal:
    """`value` as a positive finite Decimal."""
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"not a number: {value!r}", field=field)
    if not result.is_finite() or result <= 0:
        raise ValidationError("must be a positive number", field=field)
    return result


def gwei_to_wei(gwei) -> int:
    """Exact gwei to wei conversion; fractions of a wei are rejected."""
    wei = _decimal(gwei, "gwei") * WEI_PER_GWEI
    if wei != wei.to_integral_value():
        raise ValidationError(f"{gwei} gwei is not a whole number of wei", field="gwei")
    return int(wei)


def linear_ladder(base_gwei, step_gwei=DEFAULT_STEP_GWEI,
                  ceiling_multiple=DEFAULT_CEILING_MULTIPLE) -> List[int]:
    """base, base+step, base+2*step, ... strictly below ceiling_multiple * base (wei)."""
    base = _decimal(base_gwei, "base")
    step = _decimal(step_gwei, "step")
    ceiling = base * _decimal(ceiling_multiple, "ceiling")

    prices = []
    price = base
    while price < ceiling or not prices:
        prices.append(gwei_to_wei(price))
        price += step
        if len(prices) > MAX_RUNGS:
            raise ValidationError(f"ladder would exceed {MAX_RUNGS} rungs", field="step")
    return list(validate_ladder(prices))


def geometric_ladder(base_gwei, ratio, ceiling_multiple=DEFAULT_CEILING_MULTIPLE) -> List[int]:
    """base, base*ratio, base*ratio^2, ... strictly below ceiling_multiple * base (wei).

    Rungs are rounded down to whole wei.
    """
    base = _decimal(base_gwei, "base")
    ratio = _decimal(ratio, "ratio")
    if ratio <= 1:
        raise ValidationError("must be greater than 1", field="ratio")
    ceiling = base * _decimal(ceiling_multiple, "ceiling")

    prices = []
    price = base
    while price < ceiling or not prices:
        wei = int(price * WEI_PER_GWEI)
        if not prices or wei > prices[-1]:
            prices.append(wei)
        price *= ratio
        if len(prices) > MAX_RUNGS:
            raise ValidationError(f"ladder would exceed {MAX_RUNGS} rungs", field="ratio")
    return list(validate_ladder(prices))


# =============================================================================
# Authoring
# =============================================================================

@dataclass(frozen=True)
class Action:
    """One logical transaction, minus nonce, chain and price."""
    to: str
    data: bytes = b""
    value: int = 0
    gas: int = DEFAULT_GAS_LIMIT

    def unsigned(self, nonce: int, chain_id: int, gas_price: int) -> dict:
        """Transaction dict for eth_account at the given nonce, chain and price."""
        return {
            "to": normalize_address(self.to, "to"),
            "value": self.value,
            "data": "0x" + self.data.hex(),
            "gas": self.gas,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": chain_id,
        }


def sign_payload(unsigned_tx: dict, signing_key: Union[str, bytes]) -> str:
    """Sign a transaction dict, returning the 0x-prefixed raw payload."""
    signed = Account.sign_transaction(unsigned_tx, signing_key)
    raw = getattr(signed, "raw_transaction", None)
    if raw is None:
        raw = getattr(signed, "rawTransaction")
    return "0x" + bytes(raw).hex()


def author(action: Action, signing_key: Union[str, bytes], ladder: Sequence[int],
           nonce: int, chain_id: int) -> TranscriptEntry:
    """Sign `action` once per gas price in `ladder`."""
    prices = validate_ladder(ladder)
    if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0:
        raise ValidationError("expected a non-negative integer", field="nonce")
    if isinstance(chain_id, bool) or not isinstance(chain_id, int) or chain_id <= 0:
        raise ValidationError("expected a positive integer", field="chainId")

    payloads = [sign_payload(action.unsigned(nonce, chain_id, price), signing_key) for price in prices]
    log.info("signed %d payload(s) for %s at nonce %d on chain %d (%d..%d wei)",
             len(payloads), action.to, nonce, chain_id, prices[0], prices[-1])
    return TranscriptEntry(
        chain_id=chain_id,
        nonce=nonce,
        gas_prices=prices,
        signed_payloads=tuple(payloads),
    )


def signer_address(signing_key: Union[str, bytes]) -> str:
    """Address controlled by `signing_key`."""
    return Account.from_key(signing_key).address


def parse_private_key(text: str, field: str = "admin") -> bytes:
    """Decode a private key given as hex (with or without 0x) or base64."""
    text = (text or "").strip()
    hex_text = text[2:] if text.lower().startswith("0x") else text
    key = None
    if len(hex_text) == 64:
        try:
            key = bytes.fromhex(hex_text)
        except ValueError:
            key = None
    if key is None:
        try:
            key = base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError):
            key = None
    if key is None or len(key) != 32:
        raise ValidationError("expected a 32-byte private key in hex or base64", field=field)
    return key
