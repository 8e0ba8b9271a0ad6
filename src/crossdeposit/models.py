"""Data contracts for the deposit workflow.

Records exchanged with the coordinator are pydantic models that accept the
coordinator's camelCase (and, for status snapshots, snake_case) field names.
Values that only live inside the client are plain dataclasses.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ModuleKind(str, Enum):
    """Strategy modules a deposit can target."""

    AUTOEARN = "AUTOEARN"           # Aave yield
    YIELD_AAVE = "AUTOEARN"         # alias of AUTOEARN
    AUTOSWAP = "AUTOSWAP"
    VERIFIABLE_AGENT = "VERIFIABLE_AGENT"
    BOND = "BOND"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().upper()
            if key in cls.__members__:
                return cls.__members__[key]
        return None


# Coordinator status names outside PENDING/COMPLETED/FAILED
IN_FLIGHT_STATUS_NAMES = frozenset({
    "CREATED",
    "QUEUED",
    "SUBMITTED",
    "DEPOSITED",
    "PROCESSING",
    "IN_PROGRESS",
    "BRIDGING",
    "EXECUTING",
    "WAITING",
})
FAILED_STATUS_NAMES = frozenset({
    "ERROR",
    "CANCELLED",
    "CANCELED",
    "REVERTED",
    "REJECTED",
    "EXPIRED",
})


class StatusKind(str, Enum):
    """Orchestration status reported by the coordinator.

    Known in-flight names map to PENDING and known failure names to FAILED.
    Any other name is rejected.
    """

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.strip().upper().replace("-", "_")
            if key in cls.__members__:
                return cls.__members__[key]
            if key in IN_FLIGHT_STATUS_NAMES:
                return cls.PENDING
            if key in FAILED_STATUS_NAMES:
                return cls.FAILED
        return None

    @property
    def is_terminal(self) -> bool:
        return self in (StatusKind.COMPLETED, StatusKind.FAILED)


class _CoordinatorModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


# ======================
# Module selection / required state
# ======================

@dataclass
class ModuleSelection:
    """The strategy the user picked and where it should run."""
    module_kind: ModuleKind
    destination_chain_id: int


class ConfigField(_CoordinatorModel):
    """One ABI-typed field a module's configuration needs."""

    name: str = Field(..., description="Field name")
    type: str = Field(..., description="Solidity type, e.g. address or uint256")


class RequiredState(_CoordinatorModel):
    """On-chain configuration a module needs on its destination chain."""

    chain_id: int = Field(..., alias="chainId", description="Destination chain id")
    module_kind: ModuleKind = Field(..., alias="moduleName")
    module_address: str = Field(..., alias="moduleAddress")
    config_input_type: str = Field(default="", alias="configInputType")
    required_fields: list[ConfigField] = Field(default_factory=list, alias="requiredFields")
    config_template: dict[str, Any] = Field(default_factory=dict, alias="configTemplate")

    @field_validator("module_kind", mode="before")
    @classmethod
    def _normalise_module(cls, value):
        return ModuleKind(value)


# ======================
# Intent
# ======================

@dataclass(frozen=True)
class Intent:
    """What the user wants to move, normalised.

    Attributes:
        source_chain_id: Chain the funds start on
        source_token_address: Token contract on the source chain
        amount: Decimal string as entered, at most 6 fraction digits
        owner_address: User wallet address
        token_units: Exact integer amount in token units
    """
    source_chain_id: int
    source_token_address: str
    amount: str
    owner_address: str
    token_units: int

    def to_current_state(self) -> dict:
        """Coordinator representation of the intent."""
        return {
            "chainId": str(self.source_chain_id),
            "tokenAddress": self.source_token_address,
            "tokenAmount": str(self.token_units),
            "ownerAddress": self.owner_address,
        }


# ======================
# Orchestration
# ======================

class OrchestrationRecord(_CoordinatorModel):
    """The coordinator's answer to an orchestration request."""

    request_id: str = Field(..., alias="requestId")
    source_chain_id: int = Field(..., alias="sourceChainId")
    destination_chain_id: int = Field(..., alias="destinationChainId")
    account_address_on_source_chain: str = Field(..., alias="accountAddressOnSourceChain")
    account_address_on_destination_chain: str = Field(..., alias="accountAddressOnDestinationChain")
    destination_token_address: str = Field(default="", alias="destinationTokenAddress")
    source_chain_account_modules: list[str] = Field(
        default_factory=list, alias="sourceChainAccountModules"
    )
    destination_chain_account_modules: list[str] = Field(
        default_factory=list, alias="destinationChainAccountModules"
    )


class OrchestrationStatus(_CoordinatorModel):
    """One status snapshot of an orchestration."""

    status: StatusKind
    request_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("requestId", "request_id")
    )
    updated_at: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("updatedAt", "updated_at")
    )
    created_at: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("createdAt", "created_at")
    )
    error_message: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("errorMessage", "error_message")
    )

    @field_validator("status", mode="before")
    @classmethod
    def _normalise_status(cls, value):
        return StatusKind(value)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def without_timestamps(self) -> dict:
        """Snapshot content that should not change between identical queries."""
        return self.model_dump(exclude={"updated_at", "created_at"})


# ======================
# Deposit
# ======================

class TransferType(int, Enum):
    """How the coordinator should pull the deposited funds."""
    TRANSFER = 0
    TRANSFER_WITH_AUTHORIZATION = 1


class SignedAuthorization(_CoordinatorModel):
    """EIP-3009 transferWithAuthorization payload plus signature."""

    from_address: str = Field(..., alias="from")
    to: str
    value: int = Field(..., description="Exact token units")
    valid_after: int = Field(default=0, alias="validAfter")
    valid_before: int = Field(..., alias="validBefore")
    nonce: str = Field(..., description="Random bytes32 as 0x hex")
    v: int
    r: str
    s: str
    signature: str
    chain_id: int = Field(..., alias="chainId")
    token_address: str = Field(..., alias="tokenAddress")


@dataclass(frozen=True)
class TxReceipt:
    """Confirmed transaction summary."""
    tx_hash: str
    block_number: int
    status: int = 1

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass(frozen=True)
class GaslessOutcome:
    """Deposit done as an off-chain signed authorization."""
    signed_authorization: SignedAuthorization

    def to_notify_payload(self) -> dict:
        return {
            "transferType": TransferType.TRANSFER_WITH_AUTHORIZATION.value,
            "transactionHash": "0x",
            "blockNumber": "0",
            "signedAuthorization": self.signed_authorization.model_dump(mode="json", by_alias=True),
        }


@dataclass(frozen=True)
class OnChainOutcome:
    """Deposit done as a confirmed on-chain transfer."""
    tx_hash: str
    block_number: int

    def to_notify_payload(self) -> dict:
        return {
            "transferType": TransferType.TRANSFER.value,
            "transactionHash": self.tx_hash,
            "blockNumber": str(self.block_number),
        }


DepositOutcome = Union[GaslessOutcome, OnChainOutcome]
