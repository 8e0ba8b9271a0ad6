"""Registry of strategy modules keyed by module kind."""

import logging
from typing import Optional

from crossdeposit.models import ModuleKind
from crossdeposit.modules.autoearn import AutoEarnModule
from crossdeposit.modules.base import ModuleSpec
from crossdeposit.modules.bond import BondModule
from crossdeposit.modules.template import (
    create_autoswap_module,
    create_verifiable_agent_module,
)

logger = logging.getLogger(__name__)


class UnknownModuleError(KeyError):
    """Raised when no spec is registered for a module kind."""

    def __str__(self) -> str:
        kind = self.args[0]
        return f"Unknown module: {getattr(kind, 'value', kind)}"


class ModuleRegistry:
    """Maps each module kind to its spec."""

    def __init__(self, modules: Optional[list[ModuleSpec]] = None):
        self._modules: dict[ModuleKind, ModuleSpec] = {}
        for module in modules or []:
            self.register(module)

    def register(self, module: ModuleSpec) -> None:
        """Add or replace the spec for a module kind."""
        if module.kind in self._modules:
            logger.debug(f"Replacing module spec for {module.kind.value}")
        self._modules[module.kind] = module

    def get(self, kind) -> ModuleSpec:
        """Get the spec for a module kind.

        Raises:
            UnknownModuleError: If the kind is not registered
        """
        try:
            key = ModuleKind(kind)
        except ValueError:
            raise UnknownModuleError(kind) from None

        module = self._modules.get(key)
        if module is None:
            raise UnknownModuleError(kind)
        return module

    @property
    def kinds(self) -> list[ModuleKind]:
        return list(self._modules.keys())

    def __contains__(self, kind) -> bool:
        try:
            self.get(kind)
        except UnknownModuleError:
            return False
        return True


def create_default_registry() -> ModuleRegistry:
    """Registry with every module the coordinator supports."""
    return ModuleRegistry([
        AutoEarnModule(),
        create_autoswap_module(),
        create_verifiable_agent_module(),
        BondModule(),
    ])
