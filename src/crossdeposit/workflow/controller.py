"""Deposit workflow controller.

Drives one orchestration run through its steps and owns all run-scoped
data (selection, required state, intent, orchestration, deposit proof,
status). Run data is dropped together on reset or when a new run starts.

States:
    IDLE -> MODULE_SELECTED -> REQUIRED_STATE_READY -> INTENT_READY
    -> ORCHESTRATION_READY -> DEPOSIT_SUBMITTED -> POLLING
    -> COMPLETED | FAILED | TIMED_OUT

A failed notify after a successful deposit leaves the run in
NOTIFY_PENDING: funds (or a redeemable authorization) may already exist, so
the only ways forward are retry_notify() or an explicit reset().
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from crossdeposit.chains import ChainRegistry, UnknownChainError
from crossdeposit.config import Settings, get_settings
from crossdeposit.coordinator.base import CoordinatorClient
from crossdeposit.errors import (
    InvalidIntent,
    InvalidTransition,
    NotifyFailed,
    OrchestrationCreationFailed,
    OrchestrationNotFound,
    PollingCancelled,
    PollingTimedOut,
    RemoteFailure,
    ResolutionFailed,
    RunInProgress,
    TransferFailed,
    WorkflowError,
    format_error,
)
from crossdeposit.models import (
    DepositOutcome,
    Intent,
    ModuleSelection,
    OrchestrationRecord,
    OrchestrationStatus,
    RequiredState,
)
from crossdeposit.modules.base import DepositStrategy, ModuleConfigError
from crossdeposit.modules.registry import ModuleRegistry, UnknownModuleError
from crossdeposit.wallet.base import ChainRpc, WalletSigner
from crossdeposit.workflow.deposit import (
    DepositExecutor,
    create_deposit_executors,
    notify_deposit,
    select_deposit_executor,
)
from crossdeposit.workflow.intent import IntentBuilder
from crossdeposit.workflow.orchestration import (
    OrchestrationRequestBuilder,
    classify_run,
    encode_module_config,
)
from crossdeposit.workflow.poller import (
    CancellationToken,
    ErrorCallback,
    StatusCallback,
    StatusPoller,
)
from crossdeposit.workflow.resolver import ModuleResolver

logger = logging.getLogger(__name__)


def _consume_poll_result(task: asyncio.Task) -> None:
    # Outcomes are recorded by the controller; unawaited tasks must not warn
    if task.cancelled():
        return
    error = task.exception()
    if error is not None and not isinstance(error, WorkflowError):
        logger.error(f"Polling task crashed: {error!r}")


class WorkflowState(str, Enum):
    """Controller states."""
    IDLE = "idle"
    MODULE_SELECTED = "module_selected"
    REQUIRED_STATE_READY = "required_state_ready"
    INTENT_READY = "intent_ready"
    ORCHESTRATION_READY = "orchestration_ready"
    DEPOSIT_SUBMITTED = "deposit_submitted"
    NOTIFY_PENDING = "notify_pending"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


# A new run cannot start from these
IN_FLIGHT_STATES = frozenset({
    WorkflowState.ORCHESTRATION_READY,
    WorkflowState.DEPOSIT_SUBMITTED,
    WorkflowState.NOTIFY_PENDING,
    WorkflowState.POLLING,
})

TERMINAL_STATES = frozenset({
    WorkflowState.COMPLETED,
    WorkflowState.FAILED,
    WorkflowState.TIMED_OUT,
})

# Back navigation: state -> previous state
BACK_TRANSITIONS = {
    WorkflowState.INTENT_READY: WorkflowState.REQUIRED_STATE_READY,
    WorkflowState.REQUIRED_STATE_READY: WorkflowState.MODULE_SELECTED,
}


@dataclass
class WorkflowRun:
    """Run-scoped data owned by the controller."""
    selection: Optional[ModuleSelection] = None
    required_state: Optional[RequiredState] = None
    intent: Optional[Intent] = None
    orchestration: Optional[OrchestrationRecord] = None
    request_id: Optional[str] = None
    outcome: Optional[DepositOutcome] = None
    pending_tx: Optional[str] = None
    status: Optional[OrchestrationStatus] = None


class WorkflowController:
    """Runs one cross-chain deposit at a time."""

    def __init__(
        self,
        chains: ChainRegistry,
        modules: ModuleRegistry,
        coordinator: CoordinatorClient,
        signer: Optional[WalletSigner] = None,
        rpcs: Optional[dict[int, ChainRpc]] = None,
        settings: Optional[Settings] = None,
        executors: Optional[dict[DepositStrategy, DepositExecutor]] = None,
        sign_requests: bool = False,
    ):
        """Initialize controller.

        Args:
            chains: Supported chains
            modules: Module encoder registry
            coordinator: Coordinator client
            signer: Owner wallet, required from set_intent onwards
            rpcs: Chain RPC clients for on-chain deposits
            settings: Application settings
            executors: Deposit executors by strategy (built from signer if omitted)
            sign_requests: Attach an owner signature to orchestration requests
        """
        self.settings = settings or get_settings()
        self.chains = chains
        self.modules = modules
        self.coordinator = coordinator
        self.signer = signer

        self.resolver = ModuleResolver(coordinator, chains)
        self.intent_builder = IntentBuilder(chains)
        self.request_builder = OrchestrationRequestBuilder(
            coordinator, signer if sign_requests else None
        )
        self.poller = StatusPoller(
            coordinator,
            interval=self.settings.poll_interval_seconds,
            max_attempts=self.settings.poll_max_attempts,
        )

        if executors is None and signer is not None:
            executors = create_deposit_executors(
                signer,
                chains,
                rpcs,
                receipt_timeout=self.settings.receipt_timeout_seconds,
                validity_seconds=self.settings.authorization_validity_seconds,
            )
        self.executors = executors or {}

        self.state = WorkflowState.IDLE
        self.current = WorkflowRun()
        self.last_error: Optional[WorkflowError] = None

        self._generation = 0
        self._poll_task: Optional[asyncio.Task] = None
        self._cancel_token: Optional[CancellationToken] = None

    # ======================
    # Guards
    # ======================

    def _require(self, *states: WorkflowState, action: str) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise self._record(InvalidTransition(
                f"Cannot {action} in state {self.state.value} (allowed: {allowed})"
            ))

    def _record(self, error: WorkflowError) -> WorkflowError:
        self.last_error = error
        logger.warning(f"{type(error).__name__} in state {self.state.value}: {error.detail}")
        return error

    def _check_no_run_in_flight(self) -> None:
        if self.state in IN_FLIGHT_STATES:
            raise self._record(RunInProgress(
                f"Orchestration {self.current.request_id or '(pending)'} is still in flight "
                f"({self.state.value})"
            ))

    @property
    def is_busy(self) -> bool:
        return self.state in IN_FLIGHT_STATES

    # ======================
    # Selection and resolution
    # ======================

    def select_module(self, module_kind, destination_chain_id=None) -> ModuleSelection:
        """Pick a module and destination chain.

        Keeps the fetched required state when neither the module nor the
        destination changed.

        Raises:
            RunInProgress: If an orchestration is in flight
            ResolutionFailed: If the module is not registered
        """
        self._check_no_run_in_flight()

        try:
            kind = self.modules.get(module_kind).kind
        except UnknownModuleError as e:
            raise self._record(ResolutionFailed(str(e), cause=e)) from e

        if destination_chain_id is None:
            destination_chain_id = self.settings.default_destination_chain_id
        try:
            destination_chain_id = int(destination_chain_id)
        except (TypeError, ValueError) as e:
            raise self._record(ResolutionFailed(f"Invalid chain id: {destination_chain_id!r}", cause=e)) from e

        if self.state in TERMINAL_STATES:
            self._discard_run()

        selection = ModuleSelection(module_kind=kind, destination_chain_id=destination_chain_id)
        previous = self.current.required_state
        if previous is not None and (
            previous.module_kind != kind or previous.chain_id != destination_chain_id
        ):
            logger.info("Selection changed - discarding required state")
            self.current.required_state = None

        self.current.selection = selection
        self.last_error = None
        self.state = WorkflowState.MODULE_SELECTED
        logger.info(f"Selected {kind.value} on chain {destination_chain_id}")
        return selection

    async def resolve_required_state(self, refresh: bool = False) -> RequiredState:
        """Fetch required state for the selection.

        Reuses state kept across back navigation unless `refresh` is set.

        Raises:
            ResolutionFailed: Coordinator or chain failure (state unchanged)
        """
        self._require(
            WorkflowState.MODULE_SELECTED,
            WorkflowState.REQUIRED_STATE_READY,
            action="resolve required state",
        )
        selection = self.current.selection
        cached = self.current.required_state
        if cached is not None and not refresh and cached.chain_id == selection.destination_chain_id:
            logger.debug("Reusing required state")
            self.state = WorkflowState.REQUIRED_STATE_READY
            return cached

        generation = self._generation
        try:
            required_state = await self.resolver.resolve(
                selection.module_kind, selection.destination_chain_id
            )
        except ResolutionFailed as e:
            raise self._record(e)

        if generation != self._generation or self.current.selection != selection:
            raise InvalidTransition("Selection changed while resolving")

        self.current.required_state = required_state
        self.last_error = None
        self.state = WorkflowState.REQUIRED_STATE_READY
        return required_state

    def set_intent(
        self,
        source_chain_id,
        amount: str,
        owner_address: Optional[str] = None,
        available_balance: Optional[int] = None,
    ) -> Intent:
        """Set what to deposit.

        Raises:
            InvalidIntent: Bad chain, amount or address
        """
        self._require(
            WorkflowState.REQUIRED_STATE_READY,
            WorkflowState.INTENT_READY,
            action="set intent",
        )
        if owner_address is None:
            if self.signer is None:
                raise self._record(InvalidIntent("No owner address and no wallet connected"))
            owner_address = self.signer.address

        try:
            intent = self.intent_builder.build(
                source_chain_id, amount, owner_address, available_balance=available_balance
            )
        except InvalidIntent as e:
            raise self._record(e)

        self.current.intent = intent
        self.last_error = None
        self.state = WorkflowState.INTENT_READY
        return intent

    def back(self) -> WorkflowState:
        """Step back without discarding fetched data.

        Raises:
            InvalidTransition: Outside the selection steps
        """
        previous = BACK_TRANSITIONS.get(self.state)
        if previous is None:
            raise self._record(InvalidTransition(f"Cannot go back from {self.state.value}"))
        self.state = previous
        return previous

    # ======================
    # Orchestration and deposit
    # ======================

    async def create_orchestration(
        self,
        overrides: Optional[dict[str, Any]] = None,
    ) -> OrchestrationRecord:
        """Encode the module config and create the orchestration record.

        Raises:
            RunInProgress: If a record already exists for this run
            OrchestrationCreationFailed: Encoding, signing or coordinator failure
        """
        if self.current.orchestration is not None:
            self._check_no_run_in_flight()
        self._require(WorkflowState.INTENT_READY, action="create orchestration")

        intent = self.current.intent
        required_state = self.current.required_state

        try:
            encoded = encode_module_config(
                required_state, intent, self.chains, self.modules, overrides
            )
        except (ModuleConfigError, UnknownModuleError, UnknownChainError) as e:
            raise self._record(OrchestrationCreationFailed(
                f"Module configuration could not be encoded: {e}", cause=e
            )) from e

        generation = self._generation
        try:
            record = await self.request_builder.build(
                intent,
                required_state,
                intent.owner_address,
                self.settings.coordinator_api_key,
                encoded,
            )
        except OrchestrationCreationFailed as e:
            raise self._record(e)

        if generation != self._generation:
            raise InvalidTransition(
                f"Run was reset while creating {record.request_id}; record discarded"
            )

        self.current.orchestration = record
        self.current.request_id = record.request_id
        self.last_error = None
        self.state = WorkflowState.ORCHESTRATION_READY
        return record

    async def submit_deposit(self) -> DepositOutcome:
        """Deposit with the module's strategy and notify the coordinator.

        If an earlier on-chain transfer was broadcast but not confirmed, this
        re-checks that transaction instead of sending a new one.

        Raises:
            SigningRejected: User declined (retryable)
            AuthorizationFailed: Gasless authorization failed
            TransferFailed: On-chain transfer failed, or still unconfirmed (pending)
            NotifyFailed: Deposit made but coordinator not told (NOTIFY_PENDING)
        """
        self._require(WorkflowState.ORCHESTRATION_READY, action="submit deposit")
        run = self.current
        module = self.modules.get(run.required_state.module_kind)

        try:
            executor = select_deposit_executor(module, self.executors)
        except KeyError as e:
            raise self._record(InvalidTransition(
                f"No wallet configured for {module.deposit_strategy.value} deposits"
            )) from e

        generation = self._generation
        try:
            if run.pending_tx is not None:
                # Broadcast earlier but unconfirmed: never send a second transfer
                outcome = await executor.resume(
                    run.orchestration, run.intent, run.required_state, run.pending_tx
                )
            else:
                run_kind = classify_run(run.intent, run.required_state)
                logger.info(
                    f"Submitting {module.deposit_strategy.value} deposit for "
                    f"{run.request_id} ({run_kind.value})"
                )
                outcome = await executor.submit(run.orchestration, run.intent, run.required_state)
        except WorkflowError as e:
            if generation != self._generation:
                raise
            if isinstance(e, TransferFailed):
                run.pending_tx = e.tx_hash if e.pending else None
            raise self._record(e)

        if generation != self._generation:
            # Abandoned while the user was signing: never notify for it
            raise InvalidTransition(
                f"Run was reset during deposit; {run.request_id} not notified"
            )

        run.pending_tx = None
        run.outcome = outcome
        await self._notify()
        return outcome

    async def _notify(self) -> None:
        run = self.current
        generation = self._generation
        try:
            await notify_deposit(self.coordinator, run.request_id, run.outcome)
        except NotifyFailed as e:
            if generation != self._generation:
                raise
            self.state = WorkflowState.NOTIFY_PENDING
            raise self._record(e)

        if generation != self._generation:
            raise InvalidTransition(
                f"Run was reset while notifying {run.request_id}; state left unchanged"
            )
        self.last_error = None
        self.state = WorkflowState.DEPOSIT_SUBMITTED

    async def retry_notify(self) -> None:
        """Re-send the stored deposit proof. Never signs or transfers again.

        Raises:
            NotifyFailed: Still not accepted (state stays NOTIFY_PENDING)
        """
        self._require(WorkflowState.NOTIFY_PENDING, action="retry notify")
        logger.info(f"Retrying deposit notification for {self.current.request_id}")
        await self._notify()

    # ======================
    # Polling
    # ======================

    def start_polling(
        self,
        on_update: Optional[StatusCallback] = None,
        on_complete: Optional[StatusCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> asyncio.Task:
        """Start the polling task for the current run."""
        self._require(
            WorkflowState.DEPOSIT_SUBMITTED,
            WorkflowState.TIMED_OUT,
            action="poll status",
        )
        self._cancel_token = CancellationToken()
        self.state = WorkflowState.POLLING
        self._poll_task = asyncio.create_task(
            self._poll(
                self.current.request_id,
                self._generation,
                self._cancel_token,
                on_update,
                on_complete,
                on_error,
            )
        )
        self._poll_task.add_done_callback(_consume_poll_result)
        return self._poll_task

    async def poll_status(
        self,
        on_update: Optional[StatusCallback] = None,
        on_complete: Optional[StatusCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> OrchestrationStatus:
        """Poll the current run to a terminal status.

        Raises:
            RemoteFailure: Orchestration FAILED (state FAILED)
            OrchestrationNotFound: Unknown request id (state FAILED)
            PollingTimedOut: Outcome unknown (state TIMED_OUT, resumable)
            PollingCancelled: Stopped by cancel_polling or reset
        """
        task = self.start_polling(on_update, on_complete, on_error)
        return await task

    async def _poll(
        self,
        request_id: str,
        generation: int,
        token: CancellationToken,
        on_update: Optional[StatusCallback],
        on_complete: Optional[StatusCallback],
        on_error: Optional[ErrorCallback],
    ) -> OrchestrationStatus:
        def same_run() -> bool:
            return generation == self._generation

        def is_live() -> bool:
            return same_run() and not token.cancelled

        def track(callback):
            async def wrapper(value):
                if not is_live():
                    return
                if isinstance(value, OrchestrationStatus):
                    self.current.status = value
                if callback is not None:
                    result = callback(value)
                    if asyncio.iscoroutine(result):
                        await result
            return wrapper

        try:
            status = await self.poller.poll(
                request_id,
                on_update=track(on_update),
                on_complete=track(on_complete),
                on_error=track(on_error),
                cancel_token=token,
            )
        except (RemoteFailure, OrchestrationNotFound, PollingTimedOut, PollingCancelled) as e:
            if not same_run():
                # Run was reset, nothing left to update
                raise
            if isinstance(e, (RemoteFailure, OrchestrationNotFound)):
                self.state = WorkflowState.FAILED
            elif isinstance(e, PollingTimedOut):
                self.state = WorkflowState.TIMED_OUT
            else:
                self.state = WorkflowState.DEPOSIT_SUBMITTED
            raise self._record(e)
        finally:
            if same_run():
                self._poll_task = None

        if is_live():
            self.state = WorkflowState.COMPLETED
            self.last_error = None
        return status

    async def resume_polling(
        self,
        request_id: Optional[str] = None,
        on_update: Optional[StatusCallback] = None,
        on_complete: Optional[StatusCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> OrchestrationStatus:
        """Poll again after a timeout, or attach to an existing request id.

        Raises:
            RunInProgress: If another orchestration is in flight
        """
        if request_id is not None and request_id != self.current.request_id:
            self._check_no_run_in_flight()
            self._discard_run()
            self.current.request_id = request_id
            self.state = WorkflowState.DEPOSIT_SUBMITTED
            logger.info(f"Resuming status checks for {request_id}")
        return await self.poll_status(on_update, on_complete, on_error)

    def cancel_polling(self) -> bool:
        """Stop the polling task. Returns True if one was running."""
        if self._cancel_token is None or self._cancel_token.cancelled or self._poll_task is None:
            return False
        self._cancel_token.cancel()
        logger.info(f"Polling of {self.current.request_id} cancelled")
        return True

    # ======================
    # Whole run
    # ======================

    async def run(
        self,
        overrides: Optional[dict[str, Any]] = None,
        on_update: Optional[StatusCallback] = None,
        on_complete: Optional[StatusCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> OrchestrationStatus:
        """Create, deposit, notify and poll from INTENT_READY."""
        await self.create_orchestration(overrides)
        await self.submit_deposit()
        return await self.poll_status(on_update, on_complete, on_error)

    def _discard_run(self) -> None:
        self._generation += 1
        if self._cancel_token is not None:
            self._cancel_token.cancel()
        self._cancel_token = None
        self._poll_task = None
        self.current = WorkflowRun()

    def reset(self) -> None:
        """Drop all run data and return to IDLE. Stops any polling."""
        logger.info(f"Reset from {self.state.value}")
        self._discard_run()
        self.last_error = None
        self.state = WorkflowState.IDLE

    def snapshot(self) -> dict:
        """Plain view of the controller for display."""
        run = self.current
        return {
            "state": self.state.value,
            "module": run.selection.module_kind.value if run.selection else None,
            "destination_chain_id": run.selection.destination_chain_id if run.selection else None,
            "source_chain_id": run.intent.source_chain_id if run.intent else None,
            "amount": run.intent.amount if run.intent else None,
            "request_id": run.request_id,
            "source_account": run.orchestration.account_address_on_source_chain if run.orchestration else None,
            "destination_account": (
                run.orchestration.account_address_on_destination_chain if run.orchestration else None
            ),
            "status": run.status.status.value if run.status else None,
            "error": (
                format_error(self.last_error.user_message, self.settings.max_error_length)
                if self.last_error else None
            ),
            "pending_tx": run.pending_tx,
            "retryable": self.last_error.retryable if self.last_error else None,
        }
