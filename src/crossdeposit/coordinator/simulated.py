"""In-process simulated coordinator for dry-run mode and tests.

Behaves like the real service at the contract level: required state per
module and chain, deterministic smart-account addresses per owner and chain,
and a status that stays PENDING until `settle_after` seconds have passed
since the deposit was notified.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from web3 import Web3

from crossdeposit.chains import ChainRegistry, UnknownChainError
from crossdeposit.coordinator.base import (
    CoordinatorClient,
    CoordinatorError,
    OrchestrationRequest,
)
from crossdeposit.models import (
    DepositOutcome,
    ModuleKind,
    OrchestrationRecord,
    OrchestrationStatus,
    RequiredState,
    StatusKind,
)
from crossdeposit.modules.registry import ModuleRegistry, UnknownModuleError, create_default_registry

logger = logging.getLogger(__name__)

# Target token for the simulated AutoSwap template (WETH on Arbitrum Sepolia)
SIMULATED_SWAP_TOKEN_OUT = "0x980B62Da83eFf3D4576C647993b0c1D7faf17c73"


def derive_address(*parts) -> str:
    """Deterministic pseudo address from arbitrary parts."""
    digest = Web3.keccak(text=":".join(str(p).lower() for p in parts))
    return Web3.to_checksum_address(digest[-20:])


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SimulatedOrchestration:
    """Server-side view of one simulated orchestration."""
    record: OrchestrationRecord
    request: OrchestrationRequest
    created_at: str = field(default_factory=_now_iso)
    notified_at: Optional[float] = None
    proof: Optional[DepositOutcome] = None


class SimulatedCoordinator(CoordinatorClient):
    """Coordinator stand-in that never leaves the process."""

    def __init__(
        self,
        chains: ChainRegistry,
        modules: Optional[ModuleRegistry] = None,
        settle_after: float = 0.0,
        failure_message: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize simulated coordinator.

        Args:
            chains: Supported chains
            modules: Supported modules (defaults to all)
            settle_after: Seconds after notify before the status turns terminal
            failure_message: If set, orchestrations end FAILED with this message
            clock: Monotonic time source
        """
        self.chains = chains
        self.modules = modules or create_default_registry()
        self.settle_after = settle_after
        self.failure_message = failure_message
        self.clock = clock
        self.orchestrations: dict[str, SimulatedOrchestration] = {}
        self.unsupported: set[tuple[ModuleKind, int]] = set()

    @property
    def name(self) -> str:
        return "simulated"

    async def list_modules(self) -> list[ModuleKind]:
        return self.modules.kinds

    def _config_template(self, kind: ModuleKind, chain_id: int) -> dict:
        chain = self.chains.get(chain_id)
        if kind == ModuleKind.AUTOEARN:
            return {"chainId": chain_id, "token": chain.token_address, "aavePool": chain.pool_address}
        if kind == ModuleKind.AUTOSWAP:
            return {"chainId": chain_id, "tokenIn": None, "tokenOut": SIMULATED_SWAP_TOKEN_OUT, "slippageBps": 50}
        if kind == ModuleKind.VERIFIABLE_AGENT:
            return {"agent": derive_address("agent", chain_id), "chainId": chain_id, "token": None, "maxAmount": None}
        return {"tokenAddresses": None, "totalAmounts": None}

    async def resolve_required_state(self, module_kind: ModuleKind, chain_id: int) -> RequiredState:
        try:
            chain = self.chains.get(chain_id)
            module = self.modules.get(module_kind)
        except (UnknownChainError, UnknownModuleError) as e:
            raise CoordinatorError(str(e), status_code=404) from e

        if (module.kind, chain.chain_id) in self.unsupported:
            raise CoordinatorError(
                f"Module {module.kind.value} is not available on chain {chain.chain_id}",
                status_code=404,
            )

        if module.kind == ModuleKind.AUTOEARN and chain.auto_earn_module:
            module_address = chain.auto_earn_module
        else:
            module_address = derive_address("module", module.kind.value, chain.chain_id)

        return RequiredState(
            chain_id=chain.chain_id,
            module_kind=module.kind,
            module_address=module_address,
            config_input_type=",".join(f.type for f in module.required_field_schema),
            required_fields=module.required_field_schema,
            config_template=self._config_template(module.kind, chain.chain_id),
        )

    async def create_orchestration(self, request: OrchestrationRequest) -> OrchestrationRecord:
        if not request.api_key:
            raise CoordinatorError("Missing API key", status_code=401)
        if not request.encoded_config:
            raise CoordinatorError("Missing module configuration", status_code=400)

        source_id = request.intent.source_chain_id
        dest_id = request.required_state.chain_id
        try:
            dest_chain = self.chains.get(dest_id)
            self.chains.get(source_id)
        except UnknownChainError as e:
            raise CoordinatorError(str(e), status_code=400) from e

        owner = request.owner_address
        record = OrchestrationRecord(
            request_id=str(uuid.uuid4()),
            source_chain_id=source_id,
            destination_chain_id=dest_id,
            account_address_on_source_chain=derive_address("account", owner, source_id),
            account_address_on_destination_chain=derive_address("account", owner, dest_id),
            destination_token_address=dest_chain.token_address,
            source_chain_account_modules=[derive_address("bridge-module", source_id)],
            destination_chain_account_modules=[request.required_state.module_address],
        )
        self.orchestrations[record.request_id] = SimulatedOrchestration(record=record, request=request)

        logger.info(
            f"[SIMULATED] Created orchestration {record.request_id} "
            f"({source_id} -> {dest_id}, {request.required_state.module_kind.value})"
        )
        return record

    def _get(self, request_id: str) -> SimulatedOrchestration:
        orchestration = self.orchestrations.get(request_id)
        if orchestration is None:
            raise CoordinatorError(f"Unknown request id: {request_id}", status_code=404)
        return orchestration

    async def notify_deposit(self, request_id: str, outcome: DepositOutcome) -> None:
        orchestration = self._get(request_id)
        if orchestration.proof is not None:
            logger.info(f"[SIMULATED] Duplicate deposit notification for {request_id}")
            return
        orchestration.proof = outcome
        orchestration.notified_at = self.clock()
        logger.info(f"[SIMULATED] Deposit notified for {request_id}: {type(outcome).__name__}")

    async def get_orchestration_status(self, request_id: str) -> OrchestrationStatus:
        orchestration = self._get(request_id)

        status = StatusKind.PENDING
        error_message = None
        if orchestration.notified_at is not None:
            if self.clock() - orchestration.notified_at >= self.settle_after:
                if self.failure_message:
                    status = StatusKind.FAILED
                    error_message = self.failure_message
                else:
                    status = StatusKind.COMPLETED

        return OrchestrationStatus(
            status=status,
            request_id=request_id,
            created_at=orchestration.created_at,
            updated_at=_now_iso(),
            error_message=error_message,
        )
