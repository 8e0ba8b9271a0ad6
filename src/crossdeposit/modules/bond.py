"""Bond module: lock the deposited tokens on the destination chain.

Bonding commits funds on-chain before the coordinator's batch runs, so this
module deposits with a user-paid transfer instead of a gasless authorization.
"""

import logging
from typing import Any, Optional

from crossdeposit.chains import ChainDescriptor
from crossdeposit.models import ConfigField, Intent, ModuleKind, RequiredState
from crossdeposit.modules.base import DepositStrategy, ModuleConfigError, ModuleSpec

logger = logging.getLogger(__name__)


class BondModule(ModuleSpec):
    """Bonding module keyed on parallel token/amount lists."""

    deposit_strategy = DepositStrategy.ON_CHAIN

    @property
    def kind(self) -> ModuleKind:
        return ModuleKind.BOND

    @property
    def required_field_schema(self) -> list[ConfigField]:
        return [
            ConfigField(name="tokenAddresses", type="address[]"),
            ConfigField(name="totalAmounts", type="uint256[]"),
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

        tokens = overrides.get("tokenAddresses") or [destination.token_address]
        amounts = overrides.get("totalAmounts") or [intent.token_units]

        if len(tokens) != len(amounts):
            raise ModuleConfigError(
                f"Bond config needs one amount per token ({len(tokens)} tokens, {len(amounts)} amounts)"
            )

        logger.debug(f"Bond config: tokens={tokens} amounts={amounts}")
        return self._encode(["address[]", "uint256[]"], [tokens, amounts])
