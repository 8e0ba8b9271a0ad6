"""Factory for the coordinator client.

Creates the HTTP client for a real deployment, otherwise falls back to the
in-process simulated coordinator.
"""

import logging
from typing import Optional

from crossdeposit.chains import ChainRegistry, build_default_registry
from crossdeposit.config import Settings, get_settings
from crossdeposit.coordinator.base import CoordinatorClient
from crossdeposit.modules.registry import ModuleRegistry

logger = logging.getLogger(__name__)


def get_coordinator(
    settings: Optional[Settings] = None,
    chains: Optional[ChainRegistry] = None,
    modules: Optional[ModuleRegistry] = None,
) -> CoordinatorClient:
    """Get the coordinator client for the current settings."""
    settings = settings or get_settings()

    if not settings.dry_run and settings.coordinator_url:
        from crossdeposit.coordinator.http import HttpCoordinatorClient
        client = HttpCoordinatorClient(
            settings.coordinator_url,
            api_key=settings.coordinator_api_key,
            timeout=settings.http_timeout_seconds,
        )
        logger.info(f"Using coordinator at {settings.coordinator_url}")
        return client

    from crossdeposit.coordinator.simulated import SimulatedCoordinator
    logger.info("Dry run enabled - using simulated coordinator")
    return SimulatedCoordinator(chains or build_default_registry(settings), modules)
