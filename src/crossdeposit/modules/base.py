"""Abstract module interface.

Each strategy module supplies three things:
- the config fields it expects (its schema)
- an encoder producing the ABI bytes the coordinator installs on the account
- which deposit strategy moves the user's funds
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from eth_abi import encode as abi_encode
from web3 import Web3

from crossdeposit.chains import ChainDescriptor
from crossdeposit.models import ConfigField, Intent, ModuleKind, RequiredState

logger = logging.getLogger(__name__)


class DepositStrategy(str, Enum):
    """How funds get from the user's wallet to the orchestration account."""
    GASLESS = "gasless"       # EIP-3009 signed authorization, redeemed by the coordinator
    ON_CHAIN = "on_chain"     # ERC-20 transfer paid for by the user


class ModuleConfigError(ValueError):
    """Raised when a module configuration cannot be encoded."""
    pass


def coerce_abi_value(abi_type: str, value: Any) -> Any:
    """Convert a loosely typed value (e.g. from JSON) into what eth_abi expects."""
    if abi_type.endswith("[]"):
        inner = abi_type[:-2]
        return [coerce_abi_value(inner, item) for item in value]

    if abi_type.startswith(("uint", "int")):
        return int(value)
    if abi_type == "address":
        return Web3.to_checksum_address(value)
    if abi_type == "bool":
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes")
        return bool(value)
    if abi_type.startswith("bytes"):
        if isinstance(value, str):
            return bytes.fromhex(value.replace("0x", ""))
        return bytes(value)
    return value


class ModuleSpec(ABC):
    """Strategy module definition."""

    deposit_strategy: DepositStrategy = DepositStrategy.GASLESS

    @property
    @abstractmethod
    def kind(self) -> ModuleKind:
        """Module kind handled by this spec."""
        pass

    @property
    @abstractmethod
    def required_field_schema(self) -> list[ConfigField]:
        """Config fields the module expects."""
        pass

    @abstractmethod
    def encode_config(
        self,
        required_state: RequiredState,
        intent: Intent,
        destination: ChainDescriptor,
        overrides: Optional[dict[str, Any]] = None,
    ) -> bytes:
        """Encode the module configuration.

        Args:
            required_state: Resolved state for the destination chain
            intent: The user's normalised intent
            destination: Destination chain
            overrides: Explicit values for config fields

        Returns:
            ABI encoded module data

        Raises:
            ModuleConfigError: If a value is missing or invalid
        """
        pass

    def check_required_state(self, required_state: RequiredState) -> None:
        """Reject required state produced for a different module."""
        if required_state.module_kind != self.kind:
            raise ModuleConfigError(
                f"Required state is for {required_state.module_kind.value}, "
                f"not {self.kind.value}"
            )

    def _encode(self, types: list[str], values: list[Any]) -> bytes:
        try:
            coerced = [coerce_abi_value(t, v) for t, v in zip(types, values)]
            return abi_encode(types, coerced)
        except ModuleConfigError:
            raise
        except Exception as e:
            raise ModuleConfigError(f"{self.kind.value} config encoding failed: {e}") from e

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value}, deposit={self.deposit_strategy.value})"
