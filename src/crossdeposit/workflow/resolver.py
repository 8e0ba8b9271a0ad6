"""Module resolution: fetch the required state for a module on a chain."""

import logging

from crossdeposit.chains import ChainRegistry, UnknownChainError
from crossdeposit.coordinator.base import CoordinatorClient, CoordinatorError
from crossdeposit.errors import ResolutionFailed
from crossdeposit.models import ModuleKind, RequiredState

logger = logging.getLogger(__name__)


class ModuleResolver:
    """Asks the coordinator what a module needs on a destination chain."""

    def __init__(self, coordinator: CoordinatorClient, chains: ChainRegistry):
        self.coordinator = coordinator
        self.chains = chains

    async def resolve(self, module_kind, destination_chain_id) -> RequiredState:
        """Resolve the required state for a module/chain pairing.

        Makes exactly one coordinator call. The result must be discarded
        whenever the destination chain changes.

        Raises:
            ResolutionFailed: On unknown chain or module, coordinator error,
                or a response for a different chain or module
        """
        try:
            kind = ModuleKind(module_kind)
        except ValueError as e:
            raise ResolutionFailed(f"Unknown module: {module_kind}", cause=e) from e

        try:
            chain = self.chains.get(destination_chain_id)
        except UnknownChainError as e:
            raise ResolutionFailed(str(e), cause=e) from e

        logger.info(f"Resolving required state for {kind.value} on {chain.display_name}")

        try:
            required_state = await self.coordinator.resolve_required_state(kind, chain.chain_id)
        except CoordinatorError as e:
            logger.warning(f"Required state lookup failed for {kind.value}/{chain.chain_id}: {e}")
            raise ResolutionFailed(
                f"Could not resolve {kind.value} on {chain.display_name}: {e}", cause=e
            ) from e

        if required_state.chain_id != chain.chain_id:
            raise ResolutionFailed(
                f"Coordinator returned state for chain {required_state.chain_id}, "
                f"expected {chain.chain_id}"
            )
        if required_state.module_kind != kind:
            raise ResolutionFailed(
                f"Coordinator returned state for {required_state.module_kind.value}, "
                f"expected {kind.value}"
            )

        logger.info(
            f"Resolved {kind.value} on {chain.display_name}: module {required_state.module_address}"
        )
        return required_state
