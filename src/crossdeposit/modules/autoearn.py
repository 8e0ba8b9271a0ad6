"""AutoEarn module: supply the deposited token to Aave on the destination chain."""

import logging
from typing import Any, Optional

from web3 import Web3

from crossdeposit.chains import ChainDescriptor
from crossdeposit.models import ConfigField, Intent, ModuleKind, RequiredState
from crossdeposit.modules.base import ModuleConfigError, ModuleSpec

logger = logging.getLogger(__name__)

# Array of (chainId, token, aavePool) entries
AUTOEARN_CONFIG_TYPE = "(uint256,address,address)[]"


class AutoEarnModule(ModuleSpec):
    """Yield module keyed on a token/pool pair per chain."""

    @property
    def kind(self) -> ModuleKind:
        return ModuleKind.AUTOEARN

    @property
    def required_field_schema(self) -> list[ConfigField]:
        return [
            ConfigField(name="chainId", type="uint256"),
            ConfigField(name="token", type="address"),
            ConfigField(name="aavePool", type="address"),
        ]

    def encode_config(
        self,
        required_state: RequiredState,
        intent: Intent,
        destination: ChainDescriptor,
        overrides: Optional[dict[str, Any]] = None,
    ) -> bytes:
        self.check_required_state(required_state)
        overrides = overrides or {}

        token = overrides.get("token") or destination.token_address
        pool = overrides.get("aavePool") or destination.pool_address
        if not pool:
            raise ModuleConfigError(f"No Aave pool configured for {destination.display_name}")

        entry = (
            destination.chain_id,
            Web3.to_checksum_address(token),
            Web3.to_checksum_address(pool),
        )
        logger.debug(f"AutoEarn config for chain {destination.chain_id}: token={token} pool={pool}")
        return self._encode([AUTOEARN_CONFIG_TYPE], [[entry]])
