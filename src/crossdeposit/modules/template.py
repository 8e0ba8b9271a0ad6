"""Modules whose config is encoded straight from the coordinator's field list.

The coordinator returns `requiredFields` (name + ABI type) and a
`configTemplate` with suggested values. Values are taken, in order, from
caller overrides, the template, and finally from the run itself (chain,
token, amount, owner).
"""

import logging
from typing import Any, Optional

from crossdeposit.chains import ChainDescriptor
from crossdeposit.models import ConfigField, Intent, ModuleKind, RequiredState
from crossdeposit.modules.base import ModuleConfigError, ModuleSpec

logger = logging.getLogger(__name__)

CHAIN_FIELDS = ("chainId", "destinationChainId")
TOKEN_FIELDS = ("token", "tokenAddress", "tokenIn")
AMOUNT_FIELDS = ("amount", "tokenAmount", "maxAmount")
OWNER_FIELDS = ("owner", "ownerAddress", "recipient")


class TemplateModule(ModuleSpec):
    """Generic encoder driven by required fields and the config template."""

    def __init__(self, kind: ModuleKind, schema: list[ConfigField]):
        self._kind = kind
        self._schema = schema

    @property
    def kind(self) -> ModuleKind:
        return self._kind

    @property
    def required_field_schema(self) -> list[ConfigField]:
        return list(self._schema)

    def _context_value(self, name: str, intent: Intent, destination: ChainDescriptor) -> Any:
        if name in CHAIN_FIELDS:
            return destination.chain_id
        if name in TOKEN_FIELDS:
            return destination.token_address
        if name in AMOUNT_FIELDS:
            return intent.token_units
        if name in OWNER_FIELDS:
            return intent.owner_address
        return None

    def resolve_values(
        self,
        required_state: RequiredState,
        intent: Intent,
        destination: ChainDescriptor,
        overrides: Optional[dict[str, Any]] = None,
    ) -> list[tuple[ConfigField, Any]]:
        """Pick a value for every required field.

        Raises:
            ModuleConfigError: If a field has no value from any source
        """
        overrides = overrides or {}
        fields = required_state.required_fields or self._schema

        resolved = []
        missing = []
        for field in fields:
            value = overrides.get(field.name)
            if value is None:
                value = required_state.config_template.get(field.name)
            if value is None:
                value = self._context_value(field.name, intent, destination)
            if value is None:
                missing.append(field.name)
                continue
            resolved.append((field, value))

        if missing:
            raise ModuleConfigError(
                f"{self.kind.value} config is missing values for: {', '.join(missing)}"
            )
        return resolved

    def encode_config(
        self,
        required_state: RequiredState,
        intent: Intent,
        destination: ChainDescriptor,
        overrides: Optional[dict[str, Any]] = None,
    ) -> bytes:
        self.check_required_state(required_state)
        resolved = self.resolve_values(required_state, intent, destination, overrides)

        types = [field.type for field, _ in resolved]
        values = [value for _, value in resolved]
        logger.debug(f"{self.kind.value} config fields: {[field.name for field, _ in resolved]}")
        return self._encode(types, values)


def create_autoswap_module() -> TemplateModule:
    """Swap the deposited token into a target token on arrival."""
    return TemplateModule(
        ModuleKind.AUTOSWAP,
        [
            ConfigField(name="chainId", type="uint256"),
            ConfigField(name="tokenIn", type="address"),
            ConfigField(name="tokenOut", type="address"),
            ConfigField(name="slippageBps", type="uint24"),
        ],
    )


def create_verifiable_agent_module() -> TemplateModule:
    """Delegate the deposit to an attested agent with a spend cap."""
    return TemplateModule(
        ModuleKind.VERIFIABLE_AGENT,
        [
            ConfigField(name="agent", type="address"),
            ConfigField(name="chainId", type="uint256"),
            ConfigField(name="token", type="address"),
            ConfigField(name="maxAmount", type="uint256"),
        ],
    )
