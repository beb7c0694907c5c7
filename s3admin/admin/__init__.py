"""
Administration engine: call numbers, the program algebra, the interpreter
and the wizard built on top of it.
"""

from .types import (
    Operation,
    WizardNode,
    CallData,
    BindCall,
    ClawbackCall,
    call_data_from_dict,
)

from .call_numbers import CallNumberProtocol

from .program import (
    Continuation,
    Program,
    continuation,
    block,
    execute,
    navigate,
    select_operation,
    record_field,
    bind_admin_context,
    request_fresh_call_number,
    request_field_value,
    resolve_token_logic,
    collect_inputs,
    program_from_dict,
)

from .interpreter import (
    InterpreterState,
    StateView,
    Interpreter,
    AdminSession,
)

from .screens import Screen, Form, Button, screen_for

__all__ = [
    # Types
    "Operation",
    "WizardNode",
    "CallData",
    "BindCall",
    "ClawbackCall",
    "call_data_from_dict",
    # Call numbers
    "CallNumberProtocol",
    # Programs
    "Continuation",
    "Program",
    "continuation",
    "block",
    "execute",
    "navigate",
    "select_operation",
    "record_field",
    "bind_admin_context",
    "request_fresh_call_number",
    "request_field_value",
    "resolve_token_logic",
    "collect_inputs",
    "program_from_dict",
    # Interpreter
    "InterpreterState",
    "StateView",
    "Interpreter",
    "AdminSession",
    # Screens
    "Screen",
    "Form",
    "Button",
    "screen_for",
]
