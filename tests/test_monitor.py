"""Tests for cfn_deployer.lifecycle.monitor — convergence polling."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from cfn_deployer.errors import RemoteServiceError, WaitInterrupted
from cfn_deployer.lifecycle.monitor import (
    DEFAULT_POLL_INTERVAL,
    TERMINAL_STATES,
    CancelToken,
    classify_status,
    wait_for_stack,
)
from cfn_deployer.state.models import Action, OutcomeKind


# ── helpers ──────────────────────────────────────────────────────────────


def _noop_sleep(_: float) -> None:
    """Replacement for the real sleep in tests."""


def _stack(status: str, outputs=None, reason: str = ""):
    stack = {"StackName": "my-stack", "StackId": "arn:stack/my-stack/1", "StackStatus": status}
    if reason:
        stack["StackStatusReason"] = reason
    if outputs is not None:
        stack["Outputs"] = [
            {"OutputKey": k, "OutputValue": v} for k, v in outputs
        ]
    return {"Stacks": [stack]}


def _not_found(name: str = "my-stack") -> ClientError:
    return ClientError(
        {"Error": {"Code": "ValidationError",
                   "Message": f"Stack with id {name} does not exist"}},
        "DescribeStacks",
    )


def _cfn(*responses):
    client = MagicMock()
    client.describe_stacks.side_effect = list(responses)
    return client


# ── TestConstants ────────────────────────────────────────────────────────


class TestConstants:
    def test_poll_interval(self):
        assert DEFAULT_POLL_INTERVAL == 5.0

    def test_create_table(self):
        states = TERMINAL_STATES[Action.CREATE]
        assert states.success == {"CREATE_COMPLETE"}
        assert states.failure == {"CREATE_FAILED", "ROLLBACK_COMPLETE"}

    def test_update_table(self):
        states = TERMINAL_STATES[Action.UPDATE]
        assert states.success == {"UPDATE_COMPLETE"}
        assert states.failure == {"UPDATE_FAILED", "UPDATE_ROLLBACK_COMPLETE"}

    def test_delete_table(self):
        states = TERMINAL_STATES[Action.DELETE]
        assert states.success == frozenset()
        assert states.failure == {"DELETE_FAILED"}


# ── TestClassifyStatus ───────────────────────────────────────────────────


class TestClassifyStatus:
    @pytest.mark.parametrize(
        "action,status,expected",
        [
            (Action.CREATE, "CREATE_COMPLETE", OutcomeKind.SUCCEEDED),
            (Action.CREATE, "ROLLBACK_COMPLETE", OutcomeKind.FAILED),
            (Action.CREATE, "CREATE_IN_PROGRESS", None),
            (Action.UPDATE, "UPDATE_ROLLBACK_COMPLETE", OutcomeKind.FAILED),
            (Action.UPDATE, "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS", None),
            (Action.DELETE, "DELETE_FAILED", OutcomeKind.FAILED),
            (Action.DELETE, "DELETE_IN_PROGRESS", None),
        ],
    )
    def test_table(self, action, status, expected):
        assert classify_status(action, status) is expected

    def test_other_actions_status_is_not_terminal(self):
        # CREATE_COMPLETE means nothing while waiting for an update.
        assert classify_status(Action.UPDATE, "CREATE_COMPLETE") is None


# ── TestWaitForCreate ────────────────────────────────────────────────────


class TestWaitForCreate:
    def test_in_progress_then_complete(self):
        cfn = _cfn(
            _stack("CREATE_IN_PROGRESS"),
            _stack("CREATE_IN_PROGRESS"),
            _stack("CREATE_COMPLETE", outputs=[("RoleArn", "arn:role"), ("Bucket", "b-1")]),
        )
        r = wait_for_stack(cfn, "my-stack", Action.CREATE, _sleep_fn=_noop_sleep)
        assert r.kind is OutcomeKind.SUCCEEDED
        assert r.polls == 3
        assert cfn.describe_stacks.call_count == 3
        assert [(o.key, o.value) for o in r.outputs] == [
            ("RoleArn", "arn:role"),
            ("Bucket", "b-1"),
        ]
        assert r.final_status == "CREATE_COMPLETE"

    def test_rollback_complete_fails_and_stops(self):
        cfn = _cfn(
            _stack("CREATE_IN_PROGRESS"),
            _stack("ROLLBACK_IN_PROGRESS"),
            _stack("ROLLBACK_COMPLETE", reason="The following resource(s) failed"),
            _stack("CREATE_COMPLETE"),
        )
        r = wait_for_stack(cfn, "my-stack", Action.CREATE, _sleep_fn=_noop_sleep)
        assert r.kind is OutcomeKind.FAILED
        assert r.final_status == "ROLLBACK_COMPLETE"
        assert cfn.describe_stacks.call_count == 3
        assert "ROLLBACK_COMPLETE" in r.message
        assert "failed" in r.message

    def test_create_failed(self):
        cfn = _cfn(_stack("CREATE_FAILED"))
        r = wait_for_stack(cfn, "my-stack", Action.CREATE, _sleep_fn=_noop_sleep)
        assert r.kind is OutcomeKind.FAILED
        assert r.outputs == []

    def test_not_found_during_create_propagates(self):
        cfn = _cfn(_not_found())
        with pytest.raises(RemoteServiceError, match="does not exist"):
            wait_for_stack(cfn, "my-stack", Action.CREATE, _sleep_fn=_noop_sleep)

    def test_sleeps_before_each_query(self):
        calls = []
        cfn = MagicMock()

        def describe(**kwargs):
            calls.append("query")
            if calls.count("query") == 4:
                return _stack("CREATE_COMPLETE")
            return _stack("CREATE_IN_PROGRESS")

        cfn.describe_stacks.side_effect = describe
        wait_for_stack(
            cfn, "my-stack", Action.CREATE,
            poll_interval=7.0,
            _sleep_fn=lambda s: calls.append(("sleep", s)),
        )
        assert calls == [("sleep", 7.0), "query"] * 4

    def test_on_status_called_per_poll(self):
        seen = []
        cfn = _cfn(_stack("CREATE_IN_PROGRESS"), _stack("CREATE_COMPLETE"))
        wait_for_stack(
            cfn, "my-stack", Action.CREATE,
            on_status=lambda snap, n, elapsed: seen.append((snap.status, n)),
            _sleep_fn=_noop_sleep,
        )
        assert seen == [("CREATE_IN_PROGRESS", 1), ("CREATE_COMPLETE", 2)]


# ── TestWaitForUpdate ────────────────────────────────────────────────────


class TestWaitForUpdate:
    def test_update_complete_with_outputs(self):
        cfn = _cfn(
            _stack("UPDATE_IN_PROGRESS"),
            _stack("UPDATE_COMPLETE_CLEANUP_IN_PROGRESS"),
            _stack("UPDATE_COMPLETE", outputs=[("Key", "Value")]),
        )
        r = wait_for_stack(cfn, "my-stack", Action.UPDATE, _sleep_fn=_noop_sleep)
        assert r.kind is OutcomeKind.SUCCEEDED
        assert r.outputs[0].key == "Key"
        assert r.message == "Stack updated successfully!"

    def test_update_rollback_complete_fails(self):
        cfn = _cfn(_stack("UPDATE_ROLLBACK_IN_PROGRESS"), _stack("UPDATE_ROLLBACK_COMPLETE"))
        r = wait_for_stack(cfn, "my-stack", Action.UPDATE, _sleep_fn=_noop_sleep)
        assert r.kind is OutcomeKind.FAILED
        assert r.polls == 2


# ── TestWaitForDelete ────────────────────────────────────────────────────


class TestWaitForDelete:
    def test_absent_on_first_query(self):
        cfn = _cfn(_not_found(), _stack("DELETE_IN_PROGRESS"))
        r = wait_for_stack(cfn, "my-stack", Action.DELETE, _sleep_fn=_noop_sleep)
        assert r.kind is OutcomeKind.SUCCEEDED
        assert r.absent is True
        assert r.polls == 1
        assert cfn.describe_stacks.call_count == 1

    def test_absent_after_progress(self):
        cfn = _cfn(
            _stack("DELETE_IN_PROGRESS"),
            _stack("DELETE_IN_PROGRESS"),
            _not_found(),
        )
        r = wait_for_stack(cfn, "my-stack", Action.DELETE, _sleep_fn=_noop_sleep)
        assert r.kind is OutcomeKind.SUCCEEDED
        assert r.final_status == "DELETE_IN_PROGRESS"
        assert r.message == "Stack deleted successfully!"
        assert r.polls == 3

    def test_delete_failed(self):
        cfn = _cfn(_stack("DELETE_IN_PROGRESS"), _stack("DELETE_FAILED"))
        r = wait_for_stack(cfn, "my-stack", Action.DELETE, _sleep_fn=_noop_sleep)
        assert r.kind is OutcomeKind.FAILED
        assert r.final_status == "DELETE_FAILED"

    def test_other_error_propagates(self):
        cfn = MagicMock()
        cfn.describe_stacks.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "not authorized"}},
            "DescribeStacks",
        )
        with pytest.raises(RemoteServiceError) as excinfo:
            wait_for_stack(cfn, "my-stack", Action.DELETE, _sleep_fn=_noop_sleep)
        assert excinfo.value.code == "AccessDenied"

    def test_empty_stack_list_is_absent(self):
        cfn = _cfn({"Stacks": []})
        r = wait_for_stack(cfn, "my-stack", Action.DELETE, _sleep_fn=_noop_sleep)
        assert r.absent is True


# ── TestTimeout ──────────────────────────────────────────────────────────


class TestTimeout:
    def test_timeout_aborts_without_failure(self):
        ticks = iter([0.0, 1.0, 3.0, 11.0])
        cfn = MagicMock()
        cfn.describe_stacks.return_value = _stack("CREATE_IN_PROGRESS")
        r = wait_for_stack(
            cfn, "my-stack", Action.CREATE, timeout=10.0,
            _sleep_fn=_noop_sleep, _clock=lambda: next(ticks),
        )
        assert r.kind is OutcomeKind.ABORTED
        assert "Timed out" in r.message
        assert r.final_status == "CREATE_IN_PROGRESS"
        assert cfn.describe_stacks.call_count == 1


# ── TestCancellation ─────────────────────────────────────────────────────


class TestCancellation:
    def test_cancel_during_sleep(self):
        token = CancelToken()
        cfn = MagicMock()
        cfn.describe_stacks.return_value = _stack("CREATE_IN_PROGRESS")

        def sleep(_):
            token.cancel()

        with pytest.raises(WaitInterrupted):
            wait_for_stack(cfn, "my-stack", Action.CREATE, cancel=token, _sleep_fn=sleep)
        cfn.describe_stacks.assert_not_called()

    def test_cancel_after_some_polls(self):
        token = CancelToken()
        cfn = MagicMock()

        def describe(**kwargs):
            if cfn.describe_stacks.call_count == 2:
                token.cancel()
            return _stack("UPDATE_IN_PROGRESS")

        cfn.describe_stacks.side_effect = describe
        with pytest.raises(WaitInterrupted):
            wait_for_stack(
                cfn, "my-stack", Action.UPDATE, cancel=token, _sleep_fn=_noop_sleep,
            )
        assert cfn.describe_stacks.call_count == 2

    def test_already_cancelled_never_queries(self):
        token = CancelToken()
        token.cancel()
        cfn = MagicMock()
        with pytest.raises(WaitInterrupted):
            wait_for_stack(cfn, "my-stack", Action.DELETE, cancel=token, _sleep_fn=_noop_sleep)
        cfn.describe_stacks.assert_not_called()

    def test_keyboard_interrupt_during_sleep(self):
        def sleep(_):
            raise KeyboardInterrupt

        with pytest.raises(WaitInterrupted):
            wait_for_stack(MagicMock(), "my-stack", Action.CREATE, _sleep_fn=sleep)

    def test_keyboard_interrupt_during_query(self):
        cfn = MagicMock()
        cfn.describe_stacks.side_effect = KeyboardInterrupt
        with pytest.raises(WaitInterrupted):
            wait_for_stack(cfn, "my-stack", Action.CREATE, _sleep_fn=_noop_sleep)

    def test_token_sleep_wakes_on_cancel(self):
        token = CancelToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()
        try:
            with pytest.raises(WaitInterrupted):
                token.sleep(30.0)
        finally:
            timer.cancel()
        assert token.cancelled is True

    def test_token_sleep_returns_when_not_cancelled(self):
        token = CancelToken()
        token.sleep(0.0)
        assert token.cancelled is False
