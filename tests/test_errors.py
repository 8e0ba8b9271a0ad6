"""Tests for error formatting and the workflow error taxonomy."""

import pytest

from crossdeposit.errors import (
    AuthorizationFailed,
    InvalidIntent,
    NotifyFailed,
    PollingTimedOut,
    RemoteFailure,
    ResolutionFailed,
    SigningRejected,
    TransferFailed,
    WorkflowError,
    format_error,
    user_friendly_error,
)
from crossdeposit.models import OnChainOutcome


class TestFormatError:
    """Tests for format_error."""

    def test_short_message_unchanged(self):
        assert format_error(ValueError("boom")) == "boom"

    def test_truncates_to_150(self):
        """Test long messages are cut to 147 chars plus an ellipsis."""
        message = format_error("x" * 500)
        assert len(message) == 150
        assert message.endswith("...")
        assert message[:147] == "x" * 147

    def test_exactly_150_not_truncated(self):
        assert format_error("y" * 150) == "y" * 150

    def test_non_error_value(self):
        assert format_error(None) == "An unknown error occurred"
        assert format_error(42) == "An unknown error occurred"

    def test_empty_exception_uses_class_name(self):
        assert format_error(TimeoutError()) == "TimeoutError"

    def test_custom_length(self):
        assert format_error("abcdefghij", max_length=8) == "abcde..."


class TestUserFriendlyError:
    """Tests for user_friendly_error."""

    def test_insufficient_funds(self):
        message = user_friendly_error(Exception("execution reverted: insufficient funds for gas"))
        assert message == "Insufficient funds. Please check your balance."

    def test_user_rejected(self):
        message = user_friendly_error(Exception("User rejected the request."))
        assert message == "Transaction was rejected. Please try again."

    def test_network(self):
        message = user_friendly_error(Exception("Network request failed"))
        assert message == "Network error. Please check your connection and try again."

    def test_passthrough(self):
        assert user_friendly_error(Exception("module not found")) == "module not found"


class TestWorkflowErrors:
    """Tests for the error taxonomy."""

    def test_all_are_workflow_errors(self):
        for cls in (ResolutionFailed, SigningRejected, AuthorizationFailed, TransferFailed):
            assert issubclass(cls, WorkflowError)

    def test_retryable_flags(self):
        assert SigningRejected.retryable is True
        assert ResolutionFailed.retryable is True
        assert AuthorizationFailed.retryable is False
        assert TransferFailed.retryable is False

    def test_cause_kept(self):
        cause = ConnectionError("connection refused")
        error = ResolutionFailed(cause=cause)
        assert error.cause is cause
        assert str(error) == "connection refused"

    def test_user_message_maps_cause(self):
        error = ResolutionFailed(cause=ConnectionError("connection refused"))
        assert error.user_message == "Network error. Please check your connection and try again."

    def test_user_message_hides_raw_detail(self):
        error = AuthorizationFailed("eth_signTypedData_v4 failed: -32603 internal error", cause=RuntimeError("x"))
        assert error.user_message == AuthorizationFailed.default_message

    def test_detail_is_bounded(self):
        error = TransferFailed("z" * 400)
        assert len(error.detail) == 150

    def test_notify_failed_keeps_outcome(self):
        outcome = OnChainOutcome(tx_hash="0xabc", block_number=7)
        error = NotifyFailed("notify failed", cause=RuntimeError("503"), outcome=outcome)
        assert error.outcome is outcome
        assert error.retryable is True
        assert "notif" in error.user_message.lower()

    def test_polling_timed_out(self):
        error = PollingTimedOut("req-1", 60)
        assert error.request_id == "req-1"
        assert error.attempts == 60
        assert "60" in str(error)

    def test_remote_failure(self):
        error = RemoteFailure("req-2", "bridge reverted")
        assert error.error_message == "bridge reverted"
        assert "bridge reverted" in str(error)

    def test_invalid_intent_message(self):
        error = InvalidIntent("Amount must be greater than zero")
        assert error.user_message == "Amount must be greater than zero"

    @pytest.mark.parametrize("cls", [SigningRejected, NotifyFailed])
    def test_fixed_user_messages(self, cls):
        error = cls(cause=RuntimeError("insufficient funds"))
        assert error.user_message == cls.default_message
