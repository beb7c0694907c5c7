"""
Unit tests for the interpreter, the wizard states and the event queue.
"""

import pytest

from s3admin.admin import (
    AdminSession, BindCall, Interpreter, Operation, WizardNode,
    bind_admin_context, block, continuation, execute, navigate, record_field,
    request_field_value, request_fresh_call_number, resolve_token_logic, select_operation,
)
from s3admin.errors import BindingError, ResolutionError, ValidationError


@continuation("test-copy-field")
def _copy_field(value, target):
    return record_field(target, value)


@continuation("test-record-number")
def _record_number(number, target):
    return record_field(target, str(number))


@continuation("test-explode")
def _explode(value):
    raise ValidationError(f"cannot use {value!r}")


def bind_flow(front, logic):
    """Program that reserves a number, submits a Bind and shows the summary."""
    return block([
        request_fresh_call_number("submit-bind", logic=logic, front=front),
        navigate(WizardNode.SUMMARY),
    ])


# =============================================================================
# Evaluation order
# =============================================================================

class TestOrdering:
    """Depth-first, strictly sequential evaluation."""

    def test_block_applies_steps_in_order(self, interpreter):
        """Block steps see the effects of earlier steps."""
        program = block([
            record_field("a", "1"),
            request_field_value("a", "test-copy-field", target="b"),
            record_field("a", "2"),
        ])
        assert interpreter.evaluate(program)
        assert interpreter.state.field_values == {"a": "2", "b": "1"}

    def test_nested_blocks_are_depth_first(self, interpreter):
        """An inner block finishes before the outer block continues."""
        program = block([
            block([record_field("x", "inner"), request_field_value("x", "test-copy-field", target="y")]),
            record_field("x", "outer"),
        ])
        interpreter.evaluate(program)
        assert interpreter.state.field_values["y"] == "inner"
        assert interpreter.state.field_values["x"] == "outer"

    def test_missing_field_resolves_to_empty(self, interpreter):
        """An unset field reads as the empty string."""
        interpreter.evaluate(request_field_value("never", "test-copy-field", target="copy"))
        assert interpreter.state.field_values["copy"] == ""

    def test_later_steps_do_not_run_after_failure(self, interpreter):
        """The first error stops the rest of the program."""
        program = block([
            record_field("before", "yes"),
            request_field_value("before", "test-explode"),
            record_field("after", "yes"),
        ])
        assert not interpreter.evaluate(program)
        assert interpreter.state.field_values == {"before": "yes"}

    def test_no_rollback_of_applied_mutations(self, interpreter):
        """Mutations made before an error stay applied."""
        program = block([
            record_field("kept", "1"),
            select_operation(Operation.CLAWBACK),
            request_fresh_call_number("test-record-number", target="n"),
        ])
        assert not interpreter.evaluate(program)
        assert interpreter.state.field_values["kept"] == "1"
        assert interpreter.state.operation == Operation.CLAWBACK
        assert isinstance(interpreter.state.last_error, BindingError)


# =============================================================================
# Wizard state
# =============================================================================

class TestWizardStates:
    """Transitions between start, operations, operation, summary and error."""

    def test_initial_state(self, interpreter):
        """A new interpreter starts unbound at START."""
        state = interpreter.state
        assert state.node == WizardNode.START
        assert state.admin_address is None
        assert state.last_call is None
        assert state.last_error is None

    def test_bind_context_moves_to_operations(self, interpreter, admin_address):
        """Binding checksums the address and lists operations."""
        interpreter.evaluate(bind_admin_context(admin_address.lower(), navigate(WizardNode.OPERATIONS)))
        assert interpreter.state.node == WizardNode.OPERATIONS
        assert interpreter.state.admin_address == admin_address

    def test_select_operation_moves_to_operation(self, interpreter):
        """Selecting an operation moves to OPERATION."""
        interpreter.evaluate(select_operation(Operation.BIND))
        assert interpreter.state.node == WizardNode.OPERATION
        assert interpreter.state.operation == Operation.BIND

    def test_bad_admin_address_is_error_state(self, interpreter):
        """A malformed administration address ends in ERROR."""
        assert not interpreter.evaluate(bind_admin_context("not-an-address", navigate(WizardNode.OPERATIONS)))
        assert interpreter.state.node == WizardNode.ERROR
        assert isinstance(interpreter.state.last_error, ValidationError)

    def test_error_keeps_last_call(self, interpreter, admin_address, token):
        """An error does not clear the previously submitted call."""
        front, logic = token
        interpreter.evaluate(bind_admin_context(admin_address, navigate(WizardNode.OPERATIONS)))
        interpreter.evaluate(select_operation(Operation.BIND))
        assert interpreter.evaluate(bind_flow(front, logic))
        previous = interpreter.state.last_call
        assert interpreter.state.node == WizardNode.SUMMARY

        interpreter.evaluate(select_operation(Operation.BIND))
        assert not interpreter.evaluate(resolve_token_logic("0x1234", "bind-with-logic", front=front))
        assert interpreter.state.node == WizardNode.ERROR
        assert interpreter.state.last_error is not None
        assert interpreter.state.last_call == previous

    def test_error_state_is_not_terminal_for_session(self, interpreter):
        """A later program can leave ERROR."""
        interpreter.evaluate(request_fresh_call_number("test-record-number", target="n"))
        assert interpreter.state.node == WizardNode.ERROR
        interpreter.evaluate(navigate(WizardNode.START))
        assert interpreter.state.node == WizardNode.START


# =============================================================================
# Chain-backed nodes
# =============================================================================

class TestChainNodes:
    """Call numbers, token logic lookups and submission."""

    def test_fresh_call_number_requires_binding(self, interpreter):
        """Requesting a call number while unbound fails."""
        assert not interpreter.evaluate(request_fresh_call_number("test-record-number", target="n"))
        assert isinstance(interpreter.state.last_error, BindingError)

    def test_execute_requires_binding(self, interpreter, token):
        """Executing while unbound fails and submits nothing."""
        front, logic = token
        assert not interpreter.evaluate(execute(BindCall(call_number=1, logic=logic, front=front)))
        assert isinstance(interpreter.state.last_error, BindingError)
        assert interpreter.state.last_call is None

    def test_resolve_token_logic_reads_front(self, interpreter, network, token):
        """The logic address is read from the token front."""
        front, logic = token
        interpreter.evaluate(resolve_token_logic(front, "test-copy-field", target="logic"))
        assert interpreter.state.field_values["logic"] == logic
        assert (front, "tokenLogic") in network.reads

    def test_resolve_failure_aborts(self, interpreter, network, token):
        """A failed read aborts before the continuation runs."""
        front, _ = token
        network.failing_reads[(front, "tokenLogic")] = "timeout"
        assert not interpreter.evaluate(resolve_token_logic(front, "test-copy-field", target="logic"))
        assert isinstance(interpreter.state.last_error, ResolutionError)
        assert "logic" not in interpreter.state.field_values

    def test_bind_flow_submits_call(self, interpreter, network, admin_address, token):
        """The Bind flow submits one call with number 1."""
        front, logic = token
        interpreter.evaluate(bind_admin_context(admin_address, navigate(WizardNode.OPERATIONS)))
        assert interpreter.evaluate(bind_flow(front, logic))

        assert len(network.submissions) == 1
        submitted_to, call = network.submissions[0]
        assert submitted_to == admin_address
        assert call == BindCall(call_number=1, logic=logic, front=front)
        assert interpreter.state.last_call == call

    def test_consecutive_submissions_never_share_a_number(self, interpreter, network, admin_address, token):
        """Successive submissions get 1, 2, 3."""
        front, logic = token
        interpreter.evaluate(bind_admin_context(admin_address, navigate(WizardNode.OPERATIONS)))
        for _ in range(3):
            assert interpreter.evaluate(bind_flow(front, logic))
        numbers = [call.call_number for _, call in network.submissions]
        assert numbers == [1, 2, 3]

    def test_aborted_program_releases_its_number(self, interpreter, network, admin_address):
        """A number reserved by an aborted program is reused."""
        interpreter.evaluate(bind_admin_context(admin_address, navigate(WizardNode.OPERATIONS)))
        assert not interpreter.evaluate(request_fresh_call_number("test-explode"))
        interpreter.evaluate(request_fresh_call_number("test-record-number", target="n"))
        assert interpreter.state.field_values["n"] == "1"

    def test_lost_submit_reply_still_spends_the_number(self, interpreter, network, admin_address,
                                                       token, monkeypatch):
        """A submission the node took but never acknowledged keeps its call number."""
        front, logic = token
        accept = network.submit_call
        replies = ["lost"]

        def submit_then_time_out(admin, call):
            tx_hash = accept(admin, call)
            if replies:
                replies.pop()
                raise ResolutionError("eth_sendTransaction timed out")
            return tx_hash

        monkeypatch.setattr(network, "submit_call", submit_then_time_out)
        interpreter.evaluate(bind_admin_context(admin_address, navigate(WizardNode.OPERATIONS)))
        assert not interpreter.evaluate(bind_flow(front, logic))
        assert isinstance(interpreter.state.last_error, ResolutionError)
        assert interpreter.evaluate(bind_flow(front, logic))

        numbers = [call.call_number for _, call in network.submissions]
        assert numbers == [1, 2]

    def test_failed_submission_keeps_last_call(self, interpreter, admin_address, token):
        """A refused submission leaves last_call unset."""
        front, logic = token
        interpreter.chain.controller = None
        interpreter.evaluate(bind_admin_context(admin_address, navigate(WizardNode.OPERATIONS)))
        assert not interpreter.evaluate(bind_flow(front, logic))
        assert interpreter.state.last_call is None
        assert interpreter.state.node == WizardNode.ERROR

    def test_cosigned_bind_takes_effect(self, network, admin_address, cosigners, token):
        """A second cosigner executing the blob applies the Bind."""
        front, _ = token
        new_logic = network.deploy_token(cosigners[0].address)[1]

        first = Interpreter(network)
        first.evaluate(bind_admin_context(admin_address, bind_flow(front, new_logic)))
        network.mine()
        assert network.read_token_logic_address(front) != new_logic

        # Second cosigner submits the same call blob
        network.controller = cosigners[1].address
        second = Interpreter(network)
        blob = first.state.last_call
        assert second.evaluate(bind_admin_context(admin_address, execute(blob)))
        network.mine()
        assert network.read_token_logic_address(front) == new_logic


# =============================================================================
# Event queue
# =============================================================================

class TestSession:
    """send() serializes programs."""

    def test_send_evaluates_program(self, session):
        """send runs the program immediately when idle."""
        session.send(record_field("a", "1"))
        assert session.state.field_values == {"a": "1"}

    def test_snapshot_is_read_only(self, session):
        """Snapshots cannot be modified."""
        session.send(record_field("a", "1"))
        view = session.state
        with pytest.raises(TypeError):
            view.field_values["a"] = "2"
        with pytest.raises(AttributeError):
            view.node = WizardNode.ERROR

    def test_snapshot_does_not_follow_later_changes(self, session):
        """A snapshot keeps the values it was taken with."""
        session.send(record_field("a", "1"))
        view = session.state
        session.send(record_field("a", "2"))
        assert view.field_values["a"] == "1"

    def test_program_sent_during_callback_runs_after_current(self, interpreter):
        """A program sent from a callback is queued, not nested."""
        order = []

        def on_change(view):
            order.append(dict(view.field_values))
            if len(order) == 1:
                session.send(record_field("second", "yes"))
                # Queued, not yet evaluated
                assert "second" not in interpreter.state.field_values

        session = AdminSession(interpreter, on_change=on_change)
        session.send(record_field("first", "yes"))

        assert interpreter.evaluations == 2
        assert order == [{"first": "yes"}, {"first": "yes", "second": "yes"}]

    def test_failed_program_does_not_block_queue(self, session):
        """A failing program does not stop later ones."""
        session.send(request_fresh_call_number("test-record-number", target="n"))
        assert session.state.node == WizardNode.ERROR
        session.send(navigate(WizardNode.START))
        assert session.state.node == WizardNode.START

    def test_callback_error_does_not_wedge_session(self, interpreter):
        """A crashing callback leaves the session usable."""
        calls = []

        def on_change(view):
            calls.append(view.node)
            if len(calls) == 1:
                raise RuntimeError("renderer crashed")

        session = AdminSession(interpreter, on_change=on_change)
        with pytest.raises(RuntimeError):
            session.send(navigate(WizardNode.OPERATIONS))
        session.send(navigate(WizardNode.START))
        assert calls == [WizardNode.OPERATIONS, WizardNode.START]
