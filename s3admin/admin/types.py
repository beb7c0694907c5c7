"""
Operations, cosigned call payloads and wizard nodes.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, Tuple

from ..chain.abi import ADMINISTRATION, Function, normalize_address
from ..errors import ValidationError


# =============================================================================
# Enums
# =============================================================================

class Operation(Enum):
    """Administrative action kinds an Administration contract knows about."""
    ABORT_CALL = auto()
    SET_RESOLVER = auto()
    CLAWBACK = auto()
    MIGRATE = auto()
    NEW_ADMIN = auto()
    NEW_LOGIC = auto()
    ROTATE = auto()
    BIND = auto()


class WizardNode(Enum):
    """Screens the wizard moves between."""
    START = "start"            # No administration context bound
    OPERATIONS = "operations"  # Context bound, operation not chosen
    OPERATION = "operation"    # Operation chosen, collecting inputs
    SUMMARY = "summary"        # Last call recorded
    ERROR = "error"            # Last evaluation aborted


# =============================================================================
# Call data
# =============================================================================

@dataclass(frozen=True)
class CallData:
    """A cosigned call against an Administration contract.

    `call_number` is the replay-safe identifier; subclasses add the
    operation-specific arguments.
    """
    call_number: int

    method = ""
    operation = None

    @property
    def function(self) -> Function:
        """ABI entry of this call on the Administration contract."""
        return ADMINISTRATION[self.method.lower()]

    def args(self) -> Tuple[Any, ...]:
        """Arguments after the call number, in ABI order."""
        raise NotImplementedError

    def encode(self) -> bytes:
        """Calldata for the Administration contract."""
        return self.function.encode(self.call_number, *self.args())

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class BindCall(CallData):
    """Bind a token front to a token logic."""
    logic: str
    front: str

    method = "Bind"
    operation = Operation.BIND

    def args(self) -> Tuple[Any, ...]:
        """Arguments after the call number, in ABI order."""
        return (self.logic, self.front)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "callNumber": self.call_number,
            "logic": self.logic,
            "front": self.front,
        }


@dataclass(frozen=True)
class ClawbackCall(CallData):
    """Move `amount` tokens from `src` to `dst` without the holder's consent."""
    src: str
    dst: str
    amount: int

    method = "Clawback"
    operation = Operation.CLAWBACK

    def args(self) -> Tuple[Any, ...]:
        """Arguments after the call number, in ABI order."""
        return (self.src, self.dst, self.amount)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "callNumber": self.call_number,
            "src": self.src,
            "dst": self.dst,
            "amount": self.amount,
        }


def _int_field(data: Dict[str, Any], key: str, minimum: int = 0) -> int:
    """Integer at `key`, at least `minimum`."""
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("expected an integer", field=key)
    if value < minimum:
        raise ValidationError(f"must be >= {minimum}", field=key)
    return value


def call_data_from_dict(data: Any) -> CallData:
    """Decode a call blob (as produced by `CallData.to_dict`)."""
    if not isinstance(data, dict):
        raise ValidationError("a call blob must be a JSON object")
    method = data.get("method")
    call_number = _int_field(data, "callNumber", minimum=1)
    if method == BindCall.method:
        return BindCall(
            call_number=call_number,
            logic=normalize_address(data.get("logic"), "logic"),
            front=normalize_address(data.get("front"), "front"),
        )
    if method == ClawbackCall.method:
        return ClawbackCall(
            call_number=call_number,
            src=normalize_address(data.get("src"), "src"),
            dst=normalize_address(data.get("dst"), "dst"),
            amount=_int_field(data, "amount"),
        )
    raise ValidationError(f"unsupported method {method!r}", field="method")
