"""Strategy modules.

Each module kind supplies its config schema, a config encoder, and the
deposit strategy used to fund it:
- AUTOEARN: Aave supply, gasless deposit
- AUTOSWAP: swap on arrival, gasless deposit
- VERIFIABLE_AGENT: delegated agent, gasless deposit
- BOND: bonding, on-chain deposit
"""

from crossdeposit.modules.base import DepositStrategy, ModuleConfigError, ModuleSpec
from crossdeposit.modules.registry import (
    ModuleRegistry,
    UnknownModuleError,
    create_default_registry,
)

__all__ = [
    "DepositStrategy",
    "ModuleConfigError",
    "ModuleSpec",
    "ModuleRegistry",
    "UnknownModuleError",
    "create_default_registry",
]
