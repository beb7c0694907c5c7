"""
Interpreter for administration programs.

One program evaluates at a time, depth first and strictly in order. Chain
reads happen inline at the nodes that ask for them; the continuation then
produces the rest of the program. The first error aborts the program, moves
the wizard to ERROR and is kept for display. Mutations already applied stay
applied: there is no rollback.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from ..chain.abi import normalize_address
from ..errors import BindingError
from .call_numbers import CallNumberProtocol
from .program import (
    Block, BindAdminContext, Execute, Navigate, Program, RecordField,
    RequestFieldValue, RequestFreshCallNumber, ResolveTokenLogic, SelectOperation,
)
from .types import CallData, Operation, WizardNode

log = logging.getLogger(__name__)


# =============================================================================
# State
# =============================================================================

@dataclass
class InterpreterState:
    """Mutable session state. Only the interpreter writes to it."""
    node: WizardNode = WizardNode.START
    admin_address: Optional[str] = None
    operation: Optional[Operation] = None
    last_call: Optional[CallData] = None
    last_error: Optional[Exception] = None
    field_values: Dict[str, str] = field(default_factory=dict)

    def snapshot(self) -> 'StateView':
        """Read-only copy of the current state."""
        return StateView(
            node=self.node,
            admin_address=self.admin_address,
            operation=self.operation,
            last_call=self.last_call,
            last_error=self.last_error,
            field_values=MappingProxyType(dict(self.field_values)),
        )


@dataclass(frozen=True)
class StateView:
    """Read-only copy of the state handed to renderers."""
    node: WizardNode
    admin_address: Optional[str]
    operation: Optional[Operation]
    last_call: Optional[CallData]
    last_error: Optional[Exception]
    field_values: Mapping[str, str]

    @property
    def last_error_message(self) -> Optional[str]:
        """Text of the last error, if any."""
        return None if self.last_error is None else str(self.last_error)


# =============================================================================
# Interpreter
# =============================================================================

class Interpreter:
    """Evaluates programs against the chain capability."""

    def __init__(self, chain, call_numbers: Optional[CallNumberProtocol] = None,
                 state: Optional[InterpreterState] = None):
        self.chain = chain
        self.call_numbers = call_numbers or CallNumberProtocol(chain)
        self.state = state or InterpreterState()
        self.evaluations = 0
        self._reservations: List[Tuple[str, int]] = []

    def evaluate(self, program: Program) -> bool:
        """Run `program` to completion or to its first failure.

        Returns True on success. On failure the error is recorded in the
        state and the wizard moves to ERROR.
        """
        self.evaluations += 1
        self._reservations = []
        stack: List[Program] = [program]
        try:
            while stack:
                self._step(stack.pop(), stack)
        except Exception as err:
            log.warning("program aborted: %s", err)
            self._release_reservations()
            self.state.node = WizardNode.ERROR
            self.state.last_error = err
            return False
        return True

    def _release_reservations(self):
        """Hand back every call number this program reserved but did not submit."""
        for admin_address, number in reversed(self._reservations):
            self.call_numbers.release(admin_address, number)
        self._reservations = []

    def _require_admin(self) -> str:
        """The bound administration address; BindingError if there is none."""
        if self.state.admin_address is None:
            raise BindingError("no administration contract is bound")
        return self.state.admin_address

    def _step(self, node: Program, stack: List[Program]):
        """Apply one node; push whatever must run next."""
        log.debug("evaluating %s", node.tag)
        state = self.state

        if isinstance(node, Block):
            # Reversed so the first step is popped first
            stack.extend(reversed(node.steps))

        elif isinstance(node, Execute):
            admin_address = self._require_admin()
            call = node.call
            # Spent once handed to the node, even if the reply is lost
            self.call_numbers.consume(admin_address, call.call_number)
            self._reservations = [
                r for r in self._reservations if r != (admin_address, call.call_number)
            ]
            self.chain.submit_call(admin_address, call)
            state.last_call = call
            log.info("%s call #%d submitted to %s", call.method, call.call_number, admin_address)

        elif isinstance(node, Navigate):
            state.node = node.node

        elif isinstance(node, SelectOperation):
            state.node = WizardNode.OPERATION
            state.operation = node.operation

        elif isinstance(node, RecordField):
            state.field_values[node.name] = node.value

        elif isinstance(node, BindAdminContext):
            state.admin_address = normalize_address(node.address, "administration address")
            stack.append(node.next)

        elif isinstance(node, RequestFreshCallNumber):
            admin_address = self._require_admin()
            number = self.call_numbers.next_call_number(admin_address)
            self._reservations.append((admin_address, number))
            stack.append(node.then.resume(number))

        elif isinstance(node, RequestFieldValue):
            stack.append(node.then.resume(state.field_values.get(node.name, "")))

        elif isinstance(node, ResolveTokenLogic):
            front = normalize_address(node.address, "token address")
            logic = self.chain.read_token_logic_address(front)
            stack.append(node.then.resume(logic))

        else:
            raise TypeError(f"not a program node: {node!r}")


# =============================================================================
# Event boundary
# =============================================================================

class AdminSession:
    """Serializes externally triggered programs into the interpreter.

    `send` may be called from a renderer callback, even while a program is
    evaluating; the program is queued and runs after the current one.
    """

    def __init__(self, interpreter: Interpreter,
                 on_change: Optional[Callable[[StateView], None]] = None):
        self.interpreter = interpreter
        self.on_change = on_change
        self._queue: deque = deque()
        self._lock = threading.Lock()
        self._draining = False

    @property
    def state(self) -> StateView:
        """Snapshot of the interpreter state."""
        return self.interpreter.state.snapshot()

    def send(self, program: Program):
        """Queue `program` and drain the queue unless a drain is already running."""
        with self._lock:
            self._queue.append(program)
            if self._draining:
                return
            self._draining = True

        try:
            while True:
                with self._lock:
                    if not self._queue:
                        self._draining = False
                        return
                    next_program = self._queue.popleft()
                self.interpreter.evaluate(next_program)
                if self.on_change is not None:
                    self.on_change(self.state)
        except BaseException:
            with self._lock:
                self._draining = False
            raise
