"""Tests for the coordinator clients."""

import json

import httpx
import pytest

from crossdeposit.coordinator import (
    CoordinatorError,
    HttpCoordinatorClient,
    OrchestrationRequest,
    SimulatedCoordinator,
    get_coordinator,
)
from crossdeposit.config import Settings
from crossdeposit.models import (
    Intent,
    ModuleKind,
    OnChainOutcome,
    RequiredState,
    StatusKind,
)

OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

REQUIRED_STATE_PAYLOAD = {
    "chainId": 421614,
    "moduleName": "AUTOSWAP",
    "moduleAddress": "0x42CF1b746F96D6cc59e84F87d26Ea64D3fbCa3a0",
    "configInputType": "uint256,address,address,uint24",
    "requiredFields": [{"name": "chainId", "type": "uint256"}],
    "configTemplate": {"slippageBps": 50},
}

RECORD_PAYLOAD = {
    "requestId": "req-123",
    "sourceChainId": 84532,
    "destinationChainId": 421614,
    "accountAddressOnSourceChain": "0x1111111111111111111111111111111111111111",
    "accountAddressOnDestinationChain": "0x2222222222222222222222222222222222222222",
    "destinationTokenAddress": "0x75faf114eafb1bdbe2f0316df893fd58ce46aa4d",
    "sourceChainAccountModules": [],
    "destinationChainAccountModules": [],
}


def make_request() -> OrchestrationRequest:
    intent = Intent(
        source_chain_id=84532,
        source_token_address="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        amount="5.00",
        owner_address=OWNER,
        token_units=5_000_000,
    )
    return OrchestrationRequest(
        intent=intent,
        required_state=RequiredState.model_validate(REQUIRED_STATE_PAYLOAD),
        owner_address=OWNER,
        api_key="request-key",
        encoded_config=b"\x01\x02",
    )


def make_client(handler) -> HttpCoordinatorClient:
    return HttpCoordinatorClient(
        "https://coordinator.test/",
        api_key="default-key",
        transport=httpx.MockTransport(handler),
    )


class TestHttpCoordinatorClient:
    """Tests for HttpCoordinatorClient against a mock transport."""

    @pytest.mark.asyncio
    async def test_resolve_required_state(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["chain"] = request.url.params.get("chainId")
            seen["key"] = request.headers.get("X-API-Key")
            return httpx.Response(200, json=REQUIRED_STATE_PAYLOAD)

        state = await make_client(handler).resolve_required_state(ModuleKind.AUTOSWAP, 421614)

        assert seen == {
            "path": "/api/v1/modules/AUTOSWAP/required-state",
            "chain": "421614",
            "key": "default-key",
        }
        assert state.chain_id == 421614
        assert state.module_kind is ModuleKind.AUTOSWAP

    @pytest.mark.asyncio
    async def test_create_orchestration(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["key"] = request.headers.get("X-API-Key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"success": True, "data": RECORD_PAYLOAD})

        record = await make_client(handler).create_orchestration(make_request())

        assert seen["method"] == "POST"
        assert seen["path"] == "/api/v1/orchestrations"
        assert seen["key"] == "request-key"
        body = seen["body"]
        assert body["currentState"]["tokenAmount"] == "5000000"
        assert body["requiredState"]["moduleName"] == "AUTOSWAP"
        assert body["encodedData"] == "0x0102"
        assert body["ownerAddress"] == OWNER
        assert "ownerSignature" not in body
        assert record.request_id == "req-123"

    @pytest.mark.asyncio
    async def test_notify_on_chain(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        await make_client(handler).notify_deposit(
            "req-123", OnChainOutcome(tx_hash="0xabc", block_number=99)
        )

        assert seen["path"] == "/api/v1/orchestrations/req-123/deposit"
        assert seen["body"] == {
            "requestId": "req-123",
            "transferType": 0,
            "transactionHash": "0xabc",
            "blockNumber": "99",
        }

    @pytest.mark.asyncio
    async def test_status_injects_request_id(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "PENDING", "updated_at": "t1"})

        status = await make_client(handler).get_orchestration_status("req-123")

        assert status.status is StatusKind.PENDING
        assert status.request_id == "req-123"
        assert status.updated_at == "t1"

    @pytest.mark.asyncio
    async def test_list_modules_skips_unknown(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"modules": ["AUTOEARN", "BOND", "STAKING"]})

        modules = await make_client(handler).list_modules()
        assert modules == [ModuleKind.AUTOEARN, ModuleKind.BOND]

    @pytest.mark.asyncio
    async def test_http_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="module not available")

        with pytest.raises(CoordinatorError) as exc_info:
            await make_client(handler).resolve_required_state(ModuleKind.BOND, 1)
        assert exc_info.value.status_code == 404
        assert exc_info.value.is_not_found

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CoordinatorError, match="Network error"):
            await make_client(handler).get_orchestration_status("req-1")

    @pytest.mark.asyncio
    async def test_success_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "error": "invalid api key"})

        with pytest.raises(CoordinatorError, match="invalid api key"):
            await make_client(handler).create_orchestration(make_request())

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"unexpected": True})

        with pytest.raises(CoordinatorError, match="Malformed"):
            await make_client(handler).resolve_required_state(ModuleKind.BOND, 421614)

    def test_error_message_bounded(self):
        error = CoordinatorError("e" * 2000, status_code=500)
        assert len(str(error)) == 500


class TestSimulatedCoordinator:
    """Tests for the in-process coordinator."""

    @pytest.mark.asyncio
    async def test_every_pair_resolves_to_requested_chain(self, coordinator, chains, modules):
        for kind in modules.kinds:
            for chain_id in chains.chain_ids:
                state = await coordinator.resolve_required_state(kind, chain_id)
                assert state.chain_id == chain_id
                assert state.module_kind is kind

    @pytest.mark.asyncio
    async def test_unsupported_pair(self, coordinator):
        coordinator.unsupported.add((ModuleKind.BOND, 84532))
        with pytest.raises(CoordinatorError) as exc_info:
            await coordinator.resolve_required_state(ModuleKind.BOND, 84532)
        assert exc_info.value.is_not_found

    @pytest.mark.asyncio
    async def test_unknown_chain(self, coordinator):
        with pytest.raises(CoordinatorError):
            await coordinator.resolve_required_state(ModuleKind.AUTOSWAP, 1)

    @pytest.mark.asyncio
    async def test_accounts_are_deterministic(self, coordinator):
        first = await coordinator.create_orchestration(make_request())
        second = await coordinator.create_orchestration(make_request())
        assert first.request_id != second.request_id
        assert first.account_address_on_source_chain == second.account_address_on_source_chain
        assert first.account_address_on_source_chain != first.account_address_on_destination_chain

    @pytest.mark.asyncio
    async def test_missing_api_key(self, coordinator):
        request = make_request()
        request.api_key = ""
        with pytest.raises(CoordinatorError) as exc_info:
            await coordinator.create_orchestration(request)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_status_is_idempotent(self, coordinator):
        record = await coordinator.create_orchestration(make_request())

        first = await coordinator.get_orchestration_status(record.request_id)
        second = await coordinator.get_orchestration_status(record.request_id)

        assert first.without_timestamps() == second.without_timestamps()
        assert first.status is StatusKind.PENDING

    @pytest.mark.asyncio
    async def test_completes_after_notify(self, chains, modules):
        now = [100.0]
        coordinator = SimulatedCoordinator(chains, modules, settle_after=10.0, clock=lambda: now[0])
        record = await coordinator.create_orchestration(make_request())
        await coordinator.notify_deposit(record.request_id, OnChainOutcome("0xabc", 1))

        assert (await coordinator.get_orchestration_status(record.request_id)).status is StatusKind.PENDING
        now[0] = 110.0
        assert (await coordinator.get_orchestration_status(record.request_id)).status is StatusKind.COMPLETED

    @pytest.mark.asyncio
    async def test_failure(self, chains, modules):
        coordinator = SimulatedCoordinator(chains, modules, failure_message="bridge reverted")
        record = await coordinator.create_orchestration(make_request())
        await coordinator.notify_deposit(record.request_id, OnChainOutcome("0xabc", 1))

        status = await coordinator.get_orchestration_status(record.request_id)
        assert status.status is StatusKind.FAILED
        assert status.error_message == "bridge reverted"

    @pytest.mark.asyncio
    async def test_unknown_request(self, coordinator):
        with pytest.raises(CoordinatorError) as exc_info:
            await coordinator.get_orchestration_status("nope")
        assert exc_info.value.is_not_found


class TestCoordinatorFactory:
    """Tests for get_coordinator."""

    def test_dry_run_is_simulated(self, chains):
        settings = Settings(_env_file=None, dry_run=True)
        assert isinstance(get_coordinator(settings, chains), SimulatedCoordinator)

    def test_live_is_http(self, chains):
        settings = Settings(_env_file=None, dry_run=False, coordinator_url="https://coordinator.test")
        client = get_coordinator(settings, chains)
        assert isinstance(client, HttpCoordinatorClient)
        assert client.base_url == "https://coordinator.test"
