"""Workflow error taxonomy and user-facing message formatting.

Every failure the workflow can surface is a WorkflowError subclass. Each one
carries the underlying cause, whether re-invoking the same step is safe, and
a short message that can be shown to a user.
"""

from typing import Optional

MAX_ERROR_LENGTH = 150


def format_error(error, max_length: int = MAX_ERROR_LENGTH) -> str:
    """Format an error as text, truncated to max_length characters.

    Args:
        error: Exception, string, or anything else
        max_length: Upper bound for the returned text

    Returns:
        The message, with "..." appended when truncated
    """
    if isinstance(error, BaseException):
        message = str(error) or error.__class__.__name__
    elif isinstance(error, str):
        message = error
    else:
        message = "An unknown error occurred"

    if len(message) > max_length:
        return message[: max_length - 3] + "..."
    return message


def user_friendly_error(error, max_length: int = MAX_ERROR_LENGTH) -> str:
    """Map common provider failures to fixed, non-technical messages."""
    formatted = format_error(error, max_length)
    lowered = formatted.lower()

    if "insufficient funds" in lowered or "insufficient balance" in lowered:
        return "Insufficient funds. Please check your balance."

    if "user rejected" in lowered or "user denied" in lowered:
        return "Transaction was rejected. Please try again."

    if "network" in lowered or "timed out" in lowered or "connection" in lowered:
        return "Network error. Please check your connection and try again."

    return formatted


class WorkflowError(Exception):
    """Base class for all deposit workflow errors."""

    retryable: bool = False
    default_message: str = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None):
        self.cause = cause
        detail = message or (format_error(cause) if cause is not None else self.default_message)
        super().__init__(detail)

    @property
    def user_message(self) -> str:
        """Short message safe to show to a user."""
        if self.cause is not None:
            friendly = user_friendly_error(self.cause)
            if friendly != format_error(self.cause):
                return friendly
        return self.default_message

    @property
    def detail(self) -> str:
        """Technical detail, bounded in length."""
        return format_error(str(self))


class ResolutionFailed(WorkflowError):
    """Required state for a module could not be fetched."""

    retryable = True
    default_message = "Could not load the strategy configuration. Please try again."


class OrchestrationCreationFailed(WorkflowError):
    """The coordinator did not create an orchestration record."""

    retryable = True
    default_message = "Could not create the deposit request. Please try again."


class SigningRejected(WorkflowError):
    """The user declined a signature or transaction in their wallet."""

    retryable = True
    default_message = "Transaction was rejected. Please try again."

    @property
    def user_message(self) -> str:
        return self.default_message


class AuthorizationFailed(WorkflowError):
    """Signing the gasless transfer authorization failed."""

    default_message = "Could not sign the deposit authorization."


class TransferFailed(WorkflowError):
    """The on-chain deposit transfer failed, reverted or timed out.

    When the transaction was broadcast but its receipt never arrived, `tx_hash`
    is set and `pending` is True: the transfer may still confirm, so the same
    transaction has to be re-checked instead of sending another one.
    """

    default_message = "The deposit transfer did not complete."

    def __init__(
        self,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
        tx_hash: Optional[str] = None,
        pending: bool = False,
    ):
        super().__init__(message, cause)
        self.tx_hash = tx_hash
        self.pending = pending
        if pending:
            self.retryable = True

    @property
    def user_message(self) -> str:
        if self.pending:
            return f"Transaction {self.tx_hash} is not confirmed yet. Check it again before sending another deposit."
        return super().user_message


class NotifyFailed(WorkflowError):
    """The coordinator was not told about a deposit that may have happened.

    The deposit outcome is kept so the caller can retry the notification
    instead of signing or transferring again.
    """

    retryable = True
    default_message = (
        "Your deposit was made but the service could not be notified. "
        "Retry the notification instead of starting over."
    )

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None, outcome=None):
        super().__init__(message, cause)
        self.outcome = outcome

    @property
    def user_message(self) -> str:
        return self.default_message


class PollingTimedOut(WorkflowError):
    """No terminal status within the attempt budget. The outcome is unknown."""

    retryable = True
    default_message = "Still processing. Check the status again later."

    def __init__(self, request_id: str, attempts: int, last_status=None):
        self.request_id = request_id
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(f"Orchestration {request_id} not finished after {attempts} status checks")

    @property
    def user_message(self) -> str:
        return self.default_message


class PollingCancelled(WorkflowError):
    """Polling was stopped by a reset or navigation away."""

    retryable = True
    default_message = "Status checks were stopped."


class RemoteFailure(WorkflowError):
    """The coordinator reported the orchestration as FAILED."""

    default_message = "The deposit could not be completed."

    def __init__(self, request_id: str, error_message: Optional[str] = None, status=None):
        self.request_id = request_id
        self.error_message = error_message
        self.status = status
        super().__init__(
            f"Orchestration {request_id} failed: {error_message or 'no reason given'}"
        )


class InvalidIntent(WorkflowError):
    """The user's source chain or amount is not acceptable."""

    retryable = True
    default_message = "Please check the chain and amount."

    @property
    def user_message(self) -> str:
        return format_error(str(self))


class InvalidTransition(WorkflowError):
    """A workflow operation was called in a state that does not allow it."""

    default_message = "That step is not available right now."


class RunInProgress(WorkflowError):
    """Another orchestration is still in flight."""

    default_message = "A deposit is already in progress."


class OrchestrationNotFound(WorkflowError):
    """The coordinator does not know the request id."""

    default_message = "No deposit request with that ID was found."

    def __init__(self, request_id: str, cause: Optional[BaseException] = None):
        self.request_id = request_id
        super().__init__(f"Orchestration {request_id} not found", cause=cause)

    @property
    def user_message(self) -> str:
        return self.default_message
