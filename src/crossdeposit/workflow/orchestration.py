"""Orchestration request building and run classification."""

import logging
from enum import Enum
from typing import Any, Optional

from web3 import Web3

from crossdeposit.chains import ChainRegistry
from crossdeposit.coordinator.base import (
    CoordinatorClient,
    CoordinatorError,
    OrchestrationRequest,
)
from crossdeposit.errors import OrchestrationCreationFailed, SigningRejected
from crossdeposit.models import Intent, OrchestrationRecord, RequiredState
from crossdeposit.modules.registry import ModuleRegistry
from crossdeposit.wallet.base import SignerRejectedError, SigningError, WalletSigner

logger = logging.getLogger(__name__)


class RunKind(str, Enum):
    """Whether funds have to cross chains."""
    SAME_CHAIN = "same_chain"
    CROSS_CHAIN = "cross_chain"


def classify_run(intent: Intent, required_state: RequiredState) -> RunKind:
    """Classify a run by comparing source and destination chain ids."""
    if intent.source_chain_id == required_state.chain_id:
        return RunKind.SAME_CHAIN
    return RunKind.CROSS_CHAIN


def is_same_chain(intent: Intent, required_state: RequiredState) -> bool:
    return classify_run(intent, required_state) == RunKind.SAME_CHAIN


def encode_module_config(
    required_state: RequiredState,
    intent: Intent,
    chains: ChainRegistry,
    modules: ModuleRegistry,
    overrides: Optional[dict[str, Any]] = None,
) -> bytes:
    """Encode the module configuration with the encoder registered for the module.

    Raises:
        ModuleConfigError: If the configuration cannot be encoded
        UnknownModuleError: If no encoder is registered for the module
        UnknownChainError: If the destination chain is unknown
    """
    module = modules.get(required_state.module_kind)
    destination = chains.get(required_state.chain_id)
    encoded = module.encode_config(required_state, intent, destination, overrides)
    logger.debug(f"Encoded {module.kind.value} config ({len(encoded)} bytes)")
    return encoded


def build_request_message(
    intent: Intent,
    required_state: RequiredState,
    owner_address: str,
    encoded_config: bytes,
) -> str:
    """Canonical text the owner signs (EIP-191) to authorize an orchestration."""
    config_hash = Web3.to_hex(Web3.keccak(encoded_config))
    return "\n".join([
        "Cross-chain deposit orchestration",
        f"Owner: {owner_address}",
        f"Source chain: {intent.source_chain_id}",
        f"Destination chain: {required_state.chain_id}",
        f"Token: {intent.source_token_address}",
        f"Amount: {intent.token_units}",
        f"Module: {required_state.module_kind.value}",
        f"Config hash: {config_hash}",
    ])


class OrchestrationRequestBuilder:
    """Builds and submits orchestration requests."""

    def __init__(self, coordinator: CoordinatorClient, signer: Optional[WalletSigner] = None):
        """Initialize builder.

        Args:
            coordinator: Coordinator client
            signer: If given, the owner signs every request before submission
        """
        self.coordinator = coordinator
        self.signer = signer

    async def build(
        self,
        intent: Intent,
        required_state: RequiredState,
        owner_address: str,
        api_key: str,
        encoded_config: bytes,
    ) -> OrchestrationRecord:
        """Create exactly one orchestration record. Never retries.

        Raises:
            OrchestrationCreationFailed: On missing inputs, signing failure,
                or coordinator rejection
        """
        missing = [
            name for name, value in (
                ("intent", intent),
                ("required_state", required_state),
                ("owner_address", owner_address),
                ("api_key", api_key),
                ("encoded_config", encoded_config),
            ) if not value
        ]
        if missing:
            raise OrchestrationCreationFailed(f"Missing orchestration inputs: {', '.join(missing)}")

        if owner_address.lower() != intent.owner_address.lower():
            raise OrchestrationCreationFailed(
                f"Owner {owner_address} does not match intent owner {intent.owner_address}"
            )

        owner_signature = None
        if self.signer is not None:
            message = build_request_message(intent, required_state, owner_address, encoded_config)
            try:
                result = await self.signer.sign_message(message)
            except SignerRejectedError as e:
                logger.info("Owner declined to sign the orchestration request")
                raise OrchestrationCreationFailed(
                    "Orchestration request signature was rejected",
                    cause=SigningRejected(cause=e),
                ) from e
            except SigningError as e:
                raise OrchestrationCreationFailed(f"Could not sign orchestration request: {e}", cause=e) from e
            owner_signature = result.signature

        request = OrchestrationRequest(
            intent=intent,
            required_state=required_state,
            owner_address=owner_address,
            api_key=api_key,
            encoded_config=encoded_config,
            owner_signature=owner_signature,
        )

        run_kind = classify_run(intent, required_state)
        logger.info(
            f"Creating orchestration: {intent.amount} from chain {intent.source_chain_id} "
            f"to {required_state.module_kind.value} on chain {required_state.chain_id} ({run_kind.value})"
        )

        try:
            record = await self.coordinator.create_orchestration(request)
        except CoordinatorError as e:
            logger.error(f"Orchestration creation failed: {e}")
            raise OrchestrationCreationFailed(f"Coordinator rejected orchestration: {e}", cause=e) from e

        if (
            record.source_chain_id != intent.source_chain_id
            or record.destination_chain_id != required_state.chain_id
        ):
            raise OrchestrationCreationFailed(
                f"Orchestration {record.request_id} has chains "
                f"{record.source_chain_id}->{record.destination_chain_id}, expected "
                f"{intent.source_chain_id}->{required_state.chain_id}"
            )

        logger.info(
            f"Orchestration {record.request_id} created: "
            f"source account {record.account_address_on_source_chain}, "
            f"destination account {record.account_address_on_destination_chain}"
        )
        return record
