"""
Wizard screens and the flows behind them.

`screen_for` describes what to show for a state snapshot: a title, forms
(named input fields plus the program to send on submit), buttons and a body.
A renderer shows the screen, sends a RecordField program for every edit and
the form's `submit` program when the user confirms.
"""

import json
from dataclasses import dataclass, field
from typing import List, Optional

from ..chain.abi import normalize_address
from ..errors import ValidationError
from .interpreter import StateView
from .program import (
    Continuation, Program, bind_admin_context, block, collect_inputs, continuation,
    execute, navigate, request_fresh_call_number, resolve_token_logic, select_operation,
)
from .types import BindCall, ClawbackCall, Operation, WizardNode, call_data_from_dict


@dataclass(frozen=True)
class Form:
    """Input fields plus the program that consumes them."""
    label: str
    fields: List[str]
    submit: Program


@dataclass(frozen=True)
class Button:
    """A labelled program."""
    label: str
    program: Program


@dataclass(frozen=True)
class Screen:
    """What a renderer shows for one state."""
    title: str
    forms: List[Form] = field(default_factory=list)
    buttons: List[Button] = field(default_factory=list)
    body: Optional[str] = None


def form(label: str, fields: List[str], handler: str, **bound) -> Form:
    """A form whose submission collects `fields` and resumes `handler`."""
    return Form(label, fields, collect_inputs(fields, Continuation(handler, bound)))


# =============================================================================
# Flows
# =============================================================================

@continuation("bind-context")
def _bind_context(values: List[str]) -> Program:
    """Bind the typed administration address."""
    (address,) = values
    return bind_admin_context(address.strip(), navigate(WizardNode.OPERATIONS))


@continuation("cosign-blob")
def _cosign_blob(values: List[str]) -> Program:
    """Execute a call blob pasted by a cosigner, with its own call number."""
    (blob,) = values
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"operation blob is not JSON ({exc.msg})")
    return block([execute(call_data_from_dict(data)), navigate(WizardNode.SUMMARY)])


@continuation("bind-token")
def _bind_token(values: List[str]) -> Program:
    """Look up the logic behind the typed token front."""
    (front,) = values
    front = normalize_address(front, "token address")
    return resolve_token_logic(front, "bind-with-logic", front=front)


@continuation("bind-with-logic")
def _bind_with_logic(logic: str, front: str) -> Program:
    return block([
        request_fresh_call_number("submit-bind", logic=logic, front=front),
        navigate(WizardNode.SUMMARY),
    ])


@continuation("submit-bind")
def _submit_bind(call_number: int, logic: str, front: str) -> Program:
    """Submit a Bind under the reserved call number."""
    return execute(BindCall(call_number=call_number, logic=logic, front=front))


@continuation("clawback-inputs")
def _clawback_inputs(values: List[str]) -> Program:
    """Check the Clawback fields and reserve a call number."""
    src, dst, amount = values
    try:
        amount = int(amount.strip())
    except ValueError:
        raise ValidationError(f"not an integer: {amount!r}", field="amount")
    if amount <= 0:
        raise ValidationError("must be > 0", field="amount")
    return block([
        request_fresh_call_number(
            "submit-clawback",
            src=normalize_address(src, "source"),
            dst=normalize_address(dst, "destination"),
            amount=amount,
        ),
        navigate(WizardNode.SUMMARY),
    ])


@continuation("submit-clawback")
def _submit_clawback(call_number: int, src: str, dst: str, amount: int) -> Program:
    """Submit a Clawback under the reserved call number."""
    return execute(ClawbackCall(call_number=call_number, src=src, dst=dst, amount=amount))


# =============================================================================
# Screens
# =============================================================================

def start_screen() -> Screen:
    """Initiate or cosign."""
    return Screen(
        title="welcome to S3 administration",
        forms=[
            form("initiate operation", ["administration address"], "bind-context"),
            form("cosign operation", ["operation blob"], "cosign-blob"),
        ],
    )


def _restart_buttons(view: StateView) -> List[Button]:
    buttons = [Button("start over", navigate(WizardNode.START))]
    if view.admin_address is not None:
        buttons.insert(0, Button("operations", navigate(WizardNode.OPERATIONS)))
    return buttons


def screen_for(view: StateView) -> Screen:
    """Describe the screen for a state snapshot."""
    if view.node == WizardNode.START:
        return start_screen()

    if view.node == WizardNode.OPERATIONS:
        return Screen(
            title="operations:",
            buttons=[
                Button("Bind", select_operation(Operation.BIND)),
                Button("Clawback", select_operation(Operation.CLAWBACK)),
            ],
            body=f"administration: {view.admin_address}",
        )

    if view.node == WizardNode.OPERATION:
        if view.operation == Operation.BIND:
            return Screen(
                title="please enter the token address",
                forms=[form("bind", ["token address"], "bind-token")],
            )
        if view.operation == Operation.CLAWBACK:
            return Screen(
                title="please enter the following",
                forms=[form("clawback", ["source", "destination", "amount"], "clawback-inputs")],
            )
        return start_screen()

    if view.node == WizardNode.SUMMARY:
        if view.last_call is None:
            body = "no call to display"
        else:
            body = json.dumps(view.last_call.to_dict(), indent=2)
        return Screen(title="Call summary", body=body, buttons=_restart_buttons(view))

    body = view.last_error_message or "we cannot find the error"
    return Screen(title="there was a problem", body=body, buttons=_restart_buttons(view))
