"""Coordinator client interface.

The coordinator is an opaque backend. The workflow talks to it through four
calls: resolve required state, create an orchestration, notify a deposit,
and read orchestration status.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from crossdeposit.errors import format_error
from crossdeposit.models import (
    DepositOutcome,
    Intent,
    ModuleKind,
    OrchestrationRecord,
    OrchestrationStatus,
    RequiredState,
)


class CoordinatorError(Exception):
    """Raised when a coordinator call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(format_error(message, max_length=500))

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


@dataclass
class OrchestrationRequest:
    """Everything the coordinator needs to create an orchestration.

    Attributes:
        intent: Normalised source intent
        required_state: Module state on the destination chain
        owner_address: User wallet address
        api_key: Coordinator API key
        encoded_config: ABI encoded module configuration
        owner_signature: Optional EIP-191 signature over the request digest
    """
    intent: Intent
    required_state: RequiredState
    owner_address: str
    api_key: str
    encoded_config: bytes
    owner_signature: Optional[str] = None

    def to_payload(self) -> dict:
        payload = {
            "currentState": self.intent.to_current_state(),
            "requiredState": self.required_state.model_dump(mode="json", by_alias=True),
            "ownerAddress": self.owner_address,
            "encodedData": "0x" + self.encoded_config.hex(),
        }
        if self.owner_signature:
            payload["ownerSignature"] = self.owner_signature
        return payload


class CoordinatorClient(ABC):
    """Abstract base class for coordinator clients."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Client name for logging."""
        pass

    @abstractmethod
    async def list_modules(self) -> list[ModuleKind]:
        """Module kinds the coordinator can orchestrate."""
        pass

    @abstractmethod
    async def resolve_required_state(self, module_kind: ModuleKind, chain_id: int) -> RequiredState:
        """Fetch the configuration a module needs on a chain.

        Raises:
            CoordinatorError: On network failure or unknown module/chain pairing
        """
        pass

    @abstractmethod
    async def create_orchestration(self, request: OrchestrationRequest) -> OrchestrationRecord:
        """Create an orchestration record.

        Raises:
            CoordinatorError: If the coordinator rejects the request
        """
        pass

    @abstractmethod
    async def notify_deposit(self, request_id: str, outcome: DepositOutcome) -> None:
        """Tell the coordinator the deposit for request_id has been made.

        Raises:
            CoordinatorError: If the notification was not accepted
        """
        pass

    @abstractmethod
    async def get_orchestration_status(self, request_id: str) -> OrchestrationStatus:
        """Read the current status. Never changes coordinator state."""
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
