"""
Contract function descriptors and ABI encoding.

Only the handful of functions the engine reads or calls are described here;
the full contract ABIs live with the contracts themselves.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_utils import is_address, keccak, to_checksum_address

from ..errors import ResolutionError, ValidationError


def normalize_address(value: Any, field: str = "address") -> str:
    """Return the checksummed form of an address, or raise ValidationError."""
    if not isinstance(value, str) or not is_address(value.strip()):
        raise ValidationError(f"not a 20-byte hex address: {value!r}", field=field)
    return to_checksum_address(value.strip())


def same_address(a: str, b: str) -> bool:
    """Case-insensitive address equality."""
    return isinstance(a, str) and isinstance(b, str) and a.lower() == b.lower()


@dataclass(frozen=True)
class Function:
    """One contract function: name, argument types and return types."""
    name: str
    inputs: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        """Canonical signature, e.g. `bind(uint256,address,address)`."""
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        """First four bytes of the signature's keccak."""
        return keccak(text=self.signature)[:4]

    def encode(self, *args) -> bytes:
        """Calldata for this function applied to args."""
        if len(args) != len(self.inputs):
            raise ValidationError(
                f"{self.signature} takes {len(self.inputs)} argument(s), got {len(args)}")
        return self.selector + abi_encode(list(self.inputs), list(args))

    def decode_output(self, data: bytes) -> Tuple[Any, ...]:
        """Decode return data, checksumming addresses."""
        try:
            values = abi_decode(list(self.outputs), data)
        except DecodingError as exc:
            raise ResolutionError(f"cannot decode result of {self.signature}: {exc}") from exc
        return tuple(
            to_checksum_address(v) if t == "address" else v
            for t, v in zip(self.outputs, values)
        )


def _getter(name: str, output: str) -> Function:
    return Function(name, (), (output,))


# =============================================================================
# Contracts
# =============================================================================

ADMINISTRATION: Dict[str, Function] = {
    "maximumClaimedCallNumber": _getter("maximumClaimedCallNumber", "uint256"),
    "targetLogic": _getter("targetLogic", "address"),
    "targetFront": _getter("targetFront", "address"),
    "cosignerA": _getter("cosignerA", "address"),
    "cosignerB": _getter("cosignerB", "address"),
    "cosignerC": _getter("cosignerC", "address"),
    "bind": Function("bind", ("uint256", "address", "address")),
    "clawback": Function("clawback", ("uint256", "address", "address", "uint256")),
}

TOKEN_FRONT: Dict[str, Function] = {
    "tokenLogic": _getter("tokenLogic", "address"),
    "owner": _getter("owner", "address"),
    "balanceOf": Function("balanceOf", ("address",), ("uint256",)),
}

SIMPLIFIED_TOKEN_LOGIC: Dict[str, Function] = {
    "owner": _getter("owner", "address"),
    "resolver": _getter("resolver", "address"),
    "front": _getter("front", "address"),
    "setResolver": Function("setResolver", ("address",)),
}
