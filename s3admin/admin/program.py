"""
The program algebra: trees of administrative steps.

Programs are immutable dataclass trees. Steps that need a value the program
cannot know when it is built (a fresh call number, a typed-in field, an
on-chain lookup) carry a Continuation: the name of a registered handler plus
JSON-serializable bound arguments. The interpreter resolves the value, then
asks the continuation for the next program. No closures live in the tree, so
programs can be inspected, compared and serialized.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Sequence, Tuple, Union

from ..errors import ValidationError
from .types import CallData, Operation, WizardNode, call_data_from_dict


# =============================================================================
# Continuations
# =============================================================================

_HANDLERS: Dict[str, Callable[..., 'Program']] = {}


def continuation(name: str):
    """Register a continuation handler under `name`.

    The handler is called as handler(value, **bound) and must return a Program.
    """
    def register(fn):
        if name in _HANDLERS and _HANDLERS[name] is not fn:
            raise ValueError(f"continuation {name!r} registered twice")
        _HANDLERS[name] = fn
        return fn
    return register


def resolve_handler(name: str) -> Callable[..., 'Program']:
    """The function registered under `name`; ValidationError if there is none."""
    try:
        return _HANDLERS[name]
    except KeyError:
        raise ValidationError(f"unknown continuation {name!r}")


@dataclass(frozen=True)
class Continuation:
    """A named handler plus the arguments it was bound with."""
    handler: str
    bound: Dict[str, Any] = field(default_factory=dict)

    def resume(self, value: Any) -> 'Program':
        """Call the handler with `value` and the bound arguments."""
        return resolve_handler(self.handler)(value, **self.bound)

    def to_dict(self) -> dict:
        """Plain-dict form of this node."""
        return {"handler": self.handler, "bound": dict(self.bound)}

    @classmethod
    def from_dict(cls, data: dict) -> 'Continuation':
        """Inverse of `to_dict`."""
        return cls(handler=data["handler"], bound=dict(data.get("bound", {})))


# =============================================================================
# Nodes
# =============================================================================

@dataclass(frozen=True)
class Block:
    """Run each step to completion, in order."""
    steps: Tuple['Program', ...]
    tag: ClassVar[str] = "block"

    def to_dict(self) -> dict:
        """Plain-dict form of this node."""
        return {"tag": self.tag, "steps": [s.to_dict() for s in self.steps]}


@dataclass(frozen=True)
class Execute:
    """Submit a fully formed call to the bound administration contract."""
    call: CallData
    tag: ClassVar[str] = "execute"

    def to_dict(self) -> dict:
        """Plain-dict form of this node."""
        return {"tag": self.tag, "call": self.call.to_dict()}


@dataclass(frozen=True)
class Navigate:
    """Move the wizard to `node`."""
    node: WizardNode
    tag: ClassVar[str] = "navigate"

    def to_dict(self) -> dict:
        """Plain-dict form of this node."""
        return {"tag": self.tag, "node": self.node.value}


@dataclass(frozen=True)
class SelectOperation:
    """Choose the operation to fill in."""
    operation: Operation
    tag: ClassVar[str] = "selectOperation"

    def to_dict(self) -> dict:
        """Plain-dict form of this node."""
        return {"tag": self.tag, "operation": self.operation.name}


@dataclass(frozen=True)
class RecordField:
    """Remember the latest value typed into a named field."""
    name: str
    value: str
    tag: ClassVar[str] = "recordField"

    def to_dict(self) -> dict:
        """Plain-dict form of this node."""
        return {"tag": self.tag, "name": self.name, "value": self.value}


@dataclass(frozen=True)
class BindAdminContext:
    """Bind the administration contract, then continue into `next`."""
    address: str
    next: 'Program'
    tag: ClassVar[str] = "bindAdminContext"

    def to_dict(self) -> dict:
        """Plain-dict form of this node."""
        return {"tag": self.tag, "address": self.address, "next": self.next.to_dict()}


@dataclass(frozen=True)
class RequestFreshCallNumber:
    """Reserve the next call number and resume with it."""
    then: Continuation
    tag: ClassVar[str] = "requestFreshCallNumber"

    def to_dict(self) -> dict:
        """Plain-dict form of this node."""
        return {"tag": self.tag, "then": self.then.to_dict()}


@dataclass(frozen=True)
class RequestFieldValue:
    """Resume with the last recorded value of `name` ("" if never recorded)."""
    name: str
    then: Continuation
    tag: ClassVar[str] = "requestFieldValue"

    def to_dict(self) -> dict:
        """Plain-dict form of this node."""
        return {"tag": self.tag, "name": self.name, "then": self.then.to_dict()}


@dataclass(frozen=True)
class ResolveTokenLogic:
    """Resume with the logic address bound to the token front at `address`."""
    address: str
    then: Continuation
    tag: ClassVar[str] = "resolveTokenLogic"

    def to_dict(self) -> dict:
        """Plain-dict form of this node."""
        return {"tag": self.tag, "address": self.address, "then": self.then.to_dict()}


Program = Union[
    Block, Execute, Navigate, SelectOperation, RecordField,
    BindAdminContext, RequestFreshCallNumber, RequestFieldValue, ResolveTokenLogic,
]


# =============================================================================
# Constructors
# =============================================================================

def block(steps: Sequence[Program]) -> Block:
    """Program that runs `steps` in order."""
    return Block(tuple(steps))


def execute(call: CallData) -> Execute:
    """Program that submits `call` to the bound administration contract."""
    return Execute(call)


def navigate(node: WizardNode) -> Navigate:
    """Program that moves the wizard to `node`."""
    return Navigate(node)


def select_operation(operation: Operation) -> SelectOperation:
    """Program that picks the operation to fill in."""
    return SelectOperation(operation)


def record_field(name: str, value: str) -> RecordField:
    """Program that stores a form value."""
    return RecordField(name, value)


def bind_admin_context(address: str, next: Program) -> BindAdminContext:
    """Program that binds the administration address, then runs `next`."""
    return BindAdminContext(address, next)


def request_fresh_call_number(handler: str, **bound) -> RequestFreshCallNumber:
    """Program that reserves a call number and passes it to `handler`."""
    return RequestFreshCallNumber(Continuation(handler, bound))


def request_field_value(name: str, handler: str, **bound) -> RequestFieldValue:
    """Program that reads a recorded form value and passes it to `handler`."""
    return RequestFieldValue(name, Continuation(handler, bound))


def resolve_token_logic(address: str, handler: str, **bound) -> ResolveTokenLogic:
    """Program that reads a token front's logic address and passes it to `handler`."""
    return ResolveTokenLogic(address, Continuation(handler, bound))


# =============================================================================
# Input collection
# =============================================================================

COLLECT_INPUTS = "collect-inputs"


@continuation(COLLECT_INPUTS)
def _collect_next(value: str, remaining: List[str], collected: List[str], then: dict) -> Program:
    """One step of collect_inputs: keep `value`, then ask for the next name."""
    collected = list(collected) + [value]
    if not remaining:
        return Continuation.from_dict(then).resume(collected)
    return RequestFieldValue(remaining[0], Continuation(COLLECT_INPUTS, {
        "remaining": list(remaining[1:]),
        "collected": collected,
        "then": then,
    }))


def collect_inputs(names: Sequence[str], then: Continuation) -> Program:
    """Read each named field in order, then resume `then` with the list of values."""
    if not names:
        raise ValueError("collect_inputs needs at least one field name")
    return RequestFieldValue(names[0], Continuation(COLLECT_INPUTS, {
        "remaining": list(names[1:]),
        "collected": [],
        "then": then.to_dict(),
    }))


# =============================================================================
# Serialization
# =============================================================================

def program_from_dict(data: Any) -> Program:
    """Rebuild a program from `to_dict` output."""
    if not isinstance(data, dict) or "tag" not in data:
        raise ValidationError("a program node must be an object with a 'tag'")
    tag = data["tag"]
    try:
        if tag == Block.tag:
            return Block(tuple(program_from_dict(s) for s in data["steps"]))
        if tag == Execute.tag:
            return Execute(call_data_from_dict(data["call"]))
        if tag == Navigate.tag:
            return Navigate(WizardNode(data["node"]))
        if tag == SelectOperation.tag:
            return SelectOperation(Operation[data["operation"]])
        if tag == RecordField.tag:
            return RecordField(data["name"], data["value"])
        if tag == BindAdminContext.tag:
            return BindAdminContext(data["address"], program_from_dict(data["next"]))
        if tag == RequestFreshCallNumber.tag:
            return RequestFreshCallNumber(Continuation.from_dict(data["then"]))
        if tag == RequestFieldValue.tag:
            return RequestFieldValue(data["name"], Continuation.from_dict(data["then"]))
        if tag == ResolveTokenLogic.tag:
            return ResolveTokenLogic(data["address"], Continuation.from_dict(data["then"]))
    except (KeyError, ValueError) as exc:
        raise ValidationError(f"malformed {tag} node ({exc})")
    raise ValidationError(f"unknown program tag {tag!r}")
