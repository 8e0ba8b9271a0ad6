"""Orchestration status polling.

The poller queries the coordinator at a fixed interval until the
orchestration reaches a terminal status, the attempt budget runs out, or the
caller cancels through a CancellationToken. Snapshots are consumed strictly
in request order and nothing is reported after a terminal status or after
cancellation.
"""

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from crossdeposit.coordinator.base import CoordinatorClient, CoordinatorError
from crossdeposit.errors import (
    OrchestrationNotFound,
    PollingCancelled,
    PollingTimedOut,
    RemoteFailure,
)
from crossdeposit.models import OrchestrationStatus, StatusKind

logger = logging.getLogger(__name__)

StatusCallback = Callable[[OrchestrationStatus], Any]
ErrorCallback = Callable[[Exception], Any]


class CancellationToken:
    """Cooperative cancellation flag that also wakes sleepers."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for `seconds` or until cancelled.

        Returns:
            True if cancelled
        """
        if self.cancelled:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


async def _invoke(callback: Optional[Callable], *args) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as an aware UTC datetime.

    Returns None for missing or unparseable values.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_regression(previous: Optional[OrchestrationStatus], snapshot: OrchestrationStatus) -> bool:
    """True if `snapshot` is older than, or moves back from, `previous`.

    Timestamps are compared as instants. Snapshots whose timestamps cannot
    be parsed are only checked for terminal -> non-terminal moves.
    """
    if previous is None:
        return False
    if previous.is_terminal and not snapshot.is_terminal:
        return True
    previous_at = parse_timestamp(previous.updated_at)
    snapshot_at = parse_timestamp(snapshot.updated_at)
    if previous_at is not None and snapshot_at is not None:
        return snapshot_at < previous_at
    return False


class StatusPoller:
    """Polls orchestration status until a terminal result."""

    def __init__(
        self,
        coordinator: CoordinatorClient,
        interval: float = 5.0,
        max_attempts: int = 60,
    ):
        self.coordinator = coordinator
        self.interval = interval
        self.max_attempts = max_attempts

    async def poll(
        self,
        request_id: str,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        on_update: Optional[StatusCallback] = None,
        on_complete: Optional[StatusCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> OrchestrationStatus:
        """Poll until COMPLETED, FAILED, timeout or cancellation.

        The first query is sent immediately, then one every `interval`
        seconds. `on_update` is called for each accepted non-terminal
        snapshot. Transient query errors use up an attempt and polling
        continues; an unknown request id ends polling at once.

        Args:
            request_id: Orchestration to watch
            interval: Seconds between queries
            max_attempts: Maximum number of queries
            on_update: Called with each in-flight snapshot
            on_complete: Called once with the COMPLETED snapshot
            on_error: Called once with RemoteFailure on FAILED
            cancel_token: Stops polling when cancelled

        Returns:
            The COMPLETED snapshot

        Raises:
            RemoteFailure: The coordinator reported FAILED
            OrchestrationNotFound: The coordinator does not know request_id
            PollingTimedOut: No terminal status within max_attempts queries
            PollingCancelled: The token was cancelled
        """
        interval = self.interval if interval is None else interval
        max_attempts = self.max_attempts if max_attempts is None else max_attempts
        token = cancel_token or CancellationToken()

        last: Optional[OrchestrationStatus] = None
        logger.info(f"Polling {request_id} every {interval}s (max {max_attempts} attempts)")

        for attempt in range(1, max_attempts + 1):
            if token.cancelled:
                raise PollingCancelled(f"Polling of {request_id} cancelled")

            try:
                snapshot = await self.coordinator.get_orchestration_status(request_id)
            except CoordinatorError as e:
                if e.is_not_found:
                    error = OrchestrationNotFound(request_id, cause=e)
                    logger.error(f"Orchestration {request_id} not found")
                    await _invoke(on_error, error)
                    raise error from e
                logger.warning(f"Status query {attempt}/{max_attempts} for {request_id} failed: {e}")
                snapshot = None

            if token.cancelled:
                raise PollingCancelled(f"Polling of {request_id} cancelled")

            if snapshot is not None:
                if is_regression(last, snapshot):
                    logger.debug(f"Ignoring stale snapshot for {request_id}: {snapshot.status.value}")
                else:
                    last = snapshot
                    logger.info(f"[{attempt}/{max_attempts}] {request_id}: {snapshot.status.value}")

                    if snapshot.status == StatusKind.COMPLETED:
                        await _invoke(on_complete, snapshot)
                        return snapshot

                    if snapshot.status == StatusKind.FAILED:
                        error = RemoteFailure(request_id, snapshot.error_message, status=snapshot)
                        logger.error(f"Orchestration {request_id} failed: {snapshot.error_message}")
                        await _invoke(on_error, error)
                        raise error

                    await _invoke(on_update, snapshot)

            if attempt < max_attempts and await token.sleep(interval):
                raise PollingCancelled(f"Polling of {request_id} cancelled")

        logger.warning(f"Orchestration {request_id} still pending after {max_attempts} attempts")
        raise PollingTimedOut(request_id, max_attempts, last)
