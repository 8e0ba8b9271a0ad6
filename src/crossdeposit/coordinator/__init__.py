"""Orchestration coordinator clients.

- HttpCoordinatorClient: the hosted coordinator service
- SimulatedCoordinator: in-process stand-in for dry runs and tests
"""

from crossdeposit.coordinator.base import (
    CoordinatorClient,
    CoordinatorError,
    OrchestrationRequest,
)
from crossdeposit.coordinator.factory import get_coordinator
from crossdeposit.coordinator.http import HttpCoordinatorClient
from crossdeposit.coordinator.simulated import SimulatedCoordinator

__all__ = [
    "CoordinatorClient",
    "CoordinatorError",
    "OrchestrationRequest",
    "HttpCoordinatorClient",
    "SimulatedCoordinator",
    "get_coordinator",
]
