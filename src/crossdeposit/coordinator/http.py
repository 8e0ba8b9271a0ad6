"""HTTP coordinator client.

Endpoints (JSON, API key in the X-API-Key header):
- GET  /api/v1/modules
- GET  /api/v1/modules/{module}/required-state?chainId=
- POST /api/v1/orchestrations
- POST /api/v1/orchestrations/{requestId}/deposit
- GET  /api/v1/orchestrations/{requestId}/status
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from crossdeposit.coordinator.base import (
    CoordinatorClient,
    CoordinatorError,
    OrchestrationRequest,
)
from crossdeposit.models import (
    DepositOutcome,
    ModuleKind,
    OrchestrationRecord,
    OrchestrationStatus,
    RequiredState,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class HttpCoordinatorClient(CoordinatorClient):
    """Coordinator client over HTTP."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            base_url: Coordinator base URL
            api_key: Default API key for requests
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return f"http ({self.base_url})"

    def _get_headers(self, api_key: Optional[str] = None) -> dict:
        headers = {"Accept": "application/json"}
        key = api_key or self.api_key
        if key:
            headers["X-API-Key"] = key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        api_key: Optional[str] = None,
        **kwargs,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Bodies wrapped as {"data": ...} are unwrapped.

        Raises:
            CoordinatorError: On network failure, non-2xx status or bad JSON
        """
        url = f"{API_PREFIX}{path}"
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method, url, headers=self._get_headers(api_key), **kwargs
                )
        except httpx.HTTPError as e:
            logger.warning(f"Coordinator {method} {url} failed: {type(e).__name__}: {e}")
            raise CoordinatorError(f"Network error contacting coordinator: {e}") from e

        if response.status_code >= 400:
            logger.warning(f"Coordinator {method} {url} returned {response.status_code}")
            raise CoordinatorError(
                f"Coordinator returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        if not response.content:
            return None

        try:
            data = response.json()
        except ValueError as e:
            raise CoordinatorError(f"Invalid JSON from coordinator: {e}") from e

        if isinstance(data, dict) and data.get("success") is False:
            raise CoordinatorError(
                f"Coordinator error: {data.get('error') or data.get('message') or 'unknown'}",
                status_code=response.status_code,
            )

        if isinstance(data, dict) and isinstance(data.get("data"), (dict, list)):
            return data["data"]
        return data

    async def list_modules(self) -> list[ModuleKind]:
        data = await self._request("GET", "/modules")
        names = data.get("modules", []) if isinstance(data, dict) else data
        modules = []
        for name in names or []:
            try:
                modules.append(ModuleKind(name))
            except ValueError:
                logger.debug(f"Ignoring unknown module from coordinator: {name}")
        return modules

    async def resolve_required_state(self, module_kind: ModuleKind, chain_id: int) -> RequiredState:
        data = await self._request(
            "GET",
            f"/modules/{module_kind.value}/required-state",
            params={"chainId": str(chain_id)},
        )
        try:
            return RequiredState.model_validate(data)
        except ValidationError as e:
            raise CoordinatorError(f"Malformed required state: {e}") from e

    async def create_orchestration(self, request: OrchestrationRequest) -> OrchestrationRecord:
        data = await self._request(
            "POST",
            "/orchestrations",
            api_key=request.api_key,
            json=request.to_payload(),
        )
        try:
            return OrchestrationRecord.model_validate(data)
        except ValidationError as e:
            raise CoordinatorError(f"Malformed orchestration record: {e}") from e

    async def notify_deposit(self, request_id: str, outcome: DepositOutcome) -> None:
        await self._request(
            "POST",
            f"/orchestrations/{request_id}/deposit",
            json={"requestId": request_id, **outcome.to_notify_payload()},
        )

    async def get_orchestration_status(self, request_id: str) -> OrchestrationStatus:
        data = await self._request("GET", f"/orchestrations/{request_id}/status")
        if isinstance(data, dict) and not (data.get("requestId") or data.get("request_id")):
            data = {**data, "requestId": request_id}
        try:
            return OrchestrationStatus.model_validate(data)
        except ValidationError as e:
            raise CoordinatorError(f"Malformed orchestration status: {e}") from e
