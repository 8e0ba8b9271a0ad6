"""Pytest configuration and fixtures."""

import os
from typing import Optional

import pytest
from web3 import Web3

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DRY_RUN"] = "true"
os.environ["DEBUG"] = "true"
os.environ.pop("OWNER_PRIVATE_KEY", None)

from crossdeposit.chains import build_default_registry
from crossdeposit.config import Settings
from crossdeposit.coordinator.simulated import SimulatedCoordinator
from crossdeposit.models import TxReceipt
from crossdeposit.modules import create_default_registry
from crossdeposit.wallet.base import ChainRpc, ReceiptTimeoutError
from crossdeposit.wallet.local import LocalWalletSigner
from crossdeposit.workflow.controller import WorkflowController

# Well-known development key (Hardhat/Anvil account #0)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class FakeChainRpc(ChainRpc):
    """In-memory chain: records broadcasts and confirms them at a fixed block."""

    def __init__(self, chain_id: int, block_number: int = 1234):
        self.chain_id = chain_id
        self.block_number = block_number
        self.balances: dict[str, int] = {}
        self.sent: list[bytes] = []
        self.estimated: list[dict] = []
        self.receipt_status = 1
        self.receipt_timeout: Optional[float] = None
        self.time_out = False

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TxReceipt:
        self.receipt_timeout = timeout
        if self.time_out:
            raise ReceiptTimeoutError(f"Transaction {tx_hash} not confirmed after {timeout}s")
        return TxReceipt(tx_hash=tx_hash, block_number=self.block_number, status=self.receipt_status)

    async def read_balance(self, token: str, owner: str) -> int:
        return self.balances.get(owner.lower(), 0)

    async def get_nonce(self, address: str) -> int:
        return len(self.sent)

    async def get_gas_price(self) -> int:
        return 1_000_000_000

    async def estimate_gas(self, tx: dict) -> Optional[int]:
        self.estimated.append(tx)
        return 65_000

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        self.sent.append(bytes(raw_tx))
        return Web3.to_hex(Web3.keccak(raw_tx))


@pytest.fixture
def settings() -> Settings:
    """Settings with fast polling and a local wallet key."""
    return Settings(
        _env_file=None,
        dry_run=True,
        poll_interval_seconds=0.0,
        poll_max_attempts=5,
        receipt_timeout_seconds=30.0,
        owner_private_key=TEST_PRIVATE_KEY,
    )


@pytest.fixture
def chains(settings):
    return build_default_registry(settings)


@pytest.fixture
def modules():
    return create_default_registry()


@pytest.fixture
def coordinator(chains, modules) -> SimulatedCoordinator:
    return SimulatedCoordinator(chains, modules)


@pytest.fixture
def fake_rpcs(chains) -> dict[int, FakeChainRpc]:
    return {chain_id: FakeChainRpc(chain_id) for chain_id in chains.chain_ids}


@pytest.fixture
def confirmations() -> list[str]:
    """Wallet prompts seen by the signer, in order."""
    return []


@pytest.fixture
def signer(fake_rpcs, confirmations) -> LocalWalletSigner:
    def confirm(action: str, details: dict) -> bool:
        confirmations.append(action)
        return True

    return LocalWalletSigner(TEST_PRIVATE_KEY, rpcs=fake_rpcs, confirm=confirm)


@pytest.fixture
def controller(chains, modules, coordinator, signer, fake_rpcs, settings) -> WorkflowController:
    return WorkflowController(
        chains,
        modules,
        coordinator,
        signer=signer,
        rpcs=fake_rpcs,
        settings=settings,
    )
