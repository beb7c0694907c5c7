"""
Transcript entries: a signed gas ladder for one logical action.

On disk a transcript is the JSON document

    {"chainId": 4, "nonce": 7, "gasPrices": [...], "signedPayloads": [...]}

written once by authoring and read once by publishing. Prices are stored as
integers in wei; 0x-prefixed hex strings are accepted on read.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Tuple

from ..chain.rawtx import decode_legacy_transaction, raw_tx_hash
from ..errors import Conflict, ValidationError

log = logging.getLogger(__name__)


def validate_ladder(gas_prices) -> Tuple[int, ...]:
    """Check a ladder is non-empty, positive and strictly increasing."""
    prices = tuple(gas_prices)
    if not prices:
        raise ValidationError("a gas ladder needs at least one price", field="gasPrices")
    for i, price in enumerate(prices):
        if isinstance(price, bool) or not isinstance(price, int):
            raise ValidationError(f"price {price!r} is not an integer wei amount", field=f"gasPrices[{i}]")
        if price <= 0:
            raise ValidationError("prices must be positive", field=f"gasPrices[{i}]")
        if i and price <= prices[i - 1]:
            raise ValidationError("prices must be strictly increasing", field=f"gasPrices[{i}]")
    return prices


@dataclass(frozen=True)
class TranscriptEntry:
    """One signed payload per gas price, all sharing `nonce` and `chain_id`."""
    chain_id: int
    nonce: int
    gas_prices: Tuple[int, ...]
    signed_payloads: Tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "gas_prices", validate_ladder(self.gas_prices))
        object.__setattr__(self, "signed_payloads", tuple(self.signed_payloads))
        if len(self.signed_payloads) != len(self.gas_prices):
            raise ValidationError(
                f"{len(self.gas_prices)} price(s) but {len(self.signed_payloads)} payload(s)",
                field="signedPayloads",
            )
        for i, payload in enumerate(self.signed_payloads):
            if not isinstance(payload, str) or not payload.startswith("0x") or len(payload) < 4:
                raise ValidationError("expected 0x-prefixed hex", field=f"signedPayloads[{i}]")
        for name, value in (("chainId", self.chain_id), ("nonce", self.nonce)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValidationError("expected a non-negative integer", field=name)

    def __len__(self) -> int:
        return len(self.gas_prices)

    @property
    def tx_hashes(self) -> List[str]:
        """Transaction hash of each payload, in ladder order."""
        return [raw_tx_hash(p) for p in self.signed_payloads]

    def to_dict(self) -> dict:
        """The on-disk document."""
        return {
            "chainId": self.chain_id,
            "nonce": self.nonce,
            "gasPrices": list(self.gas_prices),
            "signedPayloads": list(self.signed_payloads),
        }

    def verify_payloads(self) -> str:
        """Check every payload against the declared ladder and return the signer.

        Payload i must be signed at gas_prices[i], with this entry's nonce and
        chain id, and all payloads must come from one sender.
        """
        sender = None
        for i, (price, payload) in enumerate(zip(self.gas_prices, self.signed_payloads)):
            field = f"signedPayloads[{i}]"
            tx = decode_legacy_transaction(payload, field=field)
            if tx.nonce != self.nonce:
                raise ValidationError(f"signed with nonce {tx.nonce}, expected {self.nonce}", field=field)
            if tx.chain_id != self.chain_id:
                raise ValidationError(f"signed for chain {tx.chain_id}, expected {self.chain_id}", field=field)
            if tx.gas_price != price:
                raise ValidationError(f"signed at {tx.gas_price} wei, expected {price}", field=field)
            if sender is not None and tx.sender != sender:
                raise ValidationError(f"signed by {tx.sender}, earlier payloads by {sender}", field=field)
            sender = tx.sender
        return sender

    @classmethod
    def from_dict(cls, data: Any) -> 'TranscriptEntry':
        """Decode a transcript document and check its payloads match it."""
        if not isinstance(data, dict):
            raise ValidationError("a transcript must be a JSON object")
        try:
            prices = [_quantity(p, f"gasPrices[{i}]") for i, p in enumerate(data["gasPrices"])]
            entry = cls(
                chain_id=_quantity(data["chainId"], "chainId"),
                nonce=_quantity(data["nonce"], "nonce"),
                gas_prices=tuple(prices),
                signed_payloads=tuple(data["signedPayloads"]),
            )
        except KeyError as exc:
            raise ValidationError("missing field", field=exc.args[0])
        except TypeError:
            raise ValidationError("gasPrices and signedPayloads must be lists")
        entry.verify_payloads()
        return entry


def _quantity(value: Any, field: str) -> int:
    """Integer from an int, decimal string or 0x hex string."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith(("0x", "0X")) else int(value)
        except ValueError:
            pass
    raise ValidationError(f"not an integer: {value!r}", field=field)


# =============================================================================
# Persistence
# =============================================================================

def check_output(path) -> Path:
    """Refuse to go on if something already exists at `path`."""
    path = Path(path)
    if path.exists():
        raise Conflict(path)
    return path


def write_transcript(entry: TranscriptEntry, path) -> Path:
    """Write `entry` to a new file; never overwrites."""
    path = Path(path)
    try:
        with open(path, "x") as f:
            json.dump(entry.to_dict(), f, indent=2)
            f.write("\n")
    except FileExistsError:
        raise Conflict(path)
    log.info("transcript with %d payload(s) written to %s", len(entry), path)
    return path


def read_transcript(path) -> TranscriptEntry:
    """Read a transcript file and check its payloads."""
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ValidationError("file not found", field=str(path))
    except json.JSONDecodeError as exc:
        raise ValidationError(f"not valid JSON ({exc.msg})", field=str(path))
    return TranscriptEntry.from_dict(data)
