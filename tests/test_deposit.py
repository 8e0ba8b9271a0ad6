"""Tests for deposit execution and notification."""

from unittest.mock import AsyncMock

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from crossdeposit.coordinator import CoordinatorError
from crossdeposit.errors import AuthorizationFailed, NotifyFailed, SigningRejected, TransferFailed
from crossdeposit.models import (
    GaslessOutcome,
    ModuleKind,
    OnChainOutcome,
    OrchestrationRecord,
    RequiredState,
)
from crossdeposit.wallet.base import encode_erc20_transfer
from crossdeposit.wallet.local import LocalWalletSigner
from crossdeposit.workflow import (
    GaslessDepositExecutor,
    IntentBuilder,
    OnChainDepositExecutor,
    create_deposit_executors,
    notify_deposit,
    select_deposit_executor,
)
from crossdeposit.workflow.deposit import build_transfer_authorization

from conftest import TEST_OWNER, TEST_PRIVATE_KEY

SOURCE_ACCOUNT = "0x1111111111111111111111111111111111111111"
DESTINATION_ACCOUNT = "0x2222222222222222222222222222222222222222"


def make_record(source: int, destination: int) -> OrchestrationRecord:
    return OrchestrationRecord(
        request_id="req-1",
        source_chain_id=source,
        destination_chain_id=destination,
        account_address_on_source_chain=SOURCE_ACCOUNT,
        account_address_on_destination_chain=DESTINATION_ACCOUNT,
    )


def make_state(chain_id: int, kind: ModuleKind) -> RequiredState:
    return RequiredState(
        chain_id=chain_id,
        module_kind=kind,
        module_address="0x42CF1b746F96D6cc59e84F87d26Ea64D3fbCa3a0",
    )


class TestGaslessDepositExecutor:
    """Tests for the EIP-3009 deposit path."""

    @pytest.fixture
    def executor(self, signer, chains) -> GaslessDepositExecutor:
        return GaslessDepositExecutor(signer, chains, validity_seconds=600, clock=lambda: 1_700_000_000)

    def test_cross_chain_recipient(self, executor, chains):
        intent = IntentBuilder(chains).build(84532, "5.00", TEST_OWNER)
        recipient = executor.select_recipient(
            make_record(84532, 421614), intent, make_state(421614, ModuleKind.AUTOSWAP)
        )
        assert recipient == SOURCE_ACCOUNT

    def test_same_chain_recipient(self, executor, chains):
        intent = IntentBuilder(chains).build(421614, "5.00", TEST_OWNER)
        recipient = executor.select_recipient(
            make_record(421614, 421614), intent, make_state(421614, ModuleKind.AUTOEARN)
        )
        assert recipient == DESTINATION_ACCOUNT

    @pytest.mark.asyncio
    async def test_submit_signs_authorization(self, executor, chains, fake_rpcs):
        intent = IntentBuilder(chains).build(84532, "5.00", TEST_OWNER)

        outcome = await executor.submit(
            make_record(84532, 421614), intent, make_state(421614, ModuleKind.AUTOSWAP)
        )

        assert isinstance(outcome, GaslessOutcome)
        auth = outcome.signed_authorization
        assert auth.from_address == TEST_OWNER
        assert auth.to == SOURCE_ACCOUNT
        assert auth.value == 5_000_000
        assert auth.valid_after == 0
        assert auth.valid_before == 1_700_000_600
        assert auth.chain_id == 84532
        assert len(auth.nonce) == 66

        typed_data = build_transfer_authorization(
            chains.get(84532),
            auth.from_address,
            auth.to,
            auth.value,
            auth.valid_after,
            auth.valid_before,
            bytes.fromhex(auth.nonce[2:]),
        )
        recovered = Account.recover_message(encode_typed_data(full_message=typed_data), signature=auth.signature)
        assert recovered == TEST_OWNER

        # Nothing is broadcast
        assert all(not rpc.sent for rpc in fake_rpcs.values())

    @pytest.mark.asyncio
    async def test_fresh_nonce_per_authorization(self, executor, chains):
        token = chains.get(84532).token_address
        first = await executor.deposit_gasless(TEST_OWNER, SOURCE_ACCOUNT, token, 1, 84532)
        second = await executor.deposit_gasless(TEST_OWNER, SOURCE_ACCOUNT, token, 1, 84532)
        assert first.nonce != second.nonce

    @pytest.mark.asyncio
    async def test_rejected(self, chains):
        signer = LocalWalletSigner(TEST_PRIVATE_KEY, confirm=lambda action, details: False)
        executor = GaslessDepositExecutor(signer, chains)
        token = chains.get(84532).token_address

        with pytest.raises(SigningRejected):
            await executor.deposit_gasless(TEST_OWNER, SOURCE_ACCOUNT, token, 1, 84532)

    @pytest.mark.asyncio
    async def test_wrong_token(self, executor, chains):
        with pytest.raises(AuthorizationFailed):
            await executor.deposit_gasless(
                TEST_OWNER, SOURCE_ACCOUNT, chains.get(421614).token_address, 1, 84532
            )

    @pytest.mark.asyncio
    async def test_not_signer_address(self, executor, chains):
        with pytest.raises(AuthorizationFailed):
            await executor.deposit_gasless(
                SOURCE_ACCOUNT, DESTINATION_ACCOUNT, chains.get(84532).token_address, 1, 84532
            )


class TestOnChainDepositExecutor:
    """Tests for the ERC-20 transfer path."""

    @pytest.fixture
    def executor(self, signer, fake_rpcs) -> OnChainDepositExecutor:
        return OnChainDepositExecutor(signer, fake_rpcs, receipt_timeout=30.0)

    @pytest.mark.parametrize("source", [421614, 84532])
    def test_always_source_account(self, executor, chains, source):
        """Test same-chain and cross-chain BOND runs pick the same recipient."""
        intent = IntentBuilder(chains).build(source, "1.50", TEST_OWNER)
        recipient = executor.select_recipient(
            make_record(source, 421614), intent, make_state(421614, ModuleKind.BOND)
        )
        assert recipient == SOURCE_ACCOUNT

    @pytest.mark.asyncio
    async def test_submit_transfers(self, executor, chains, fake_rpcs):
        intent = IntentBuilder(chains).build(421614, "1.50", TEST_OWNER)

        outcome = await executor.submit(
            make_record(421614, 421614), intent, make_state(421614, ModuleKind.BOND)
        )

        assert isinstance(outcome, OnChainOutcome)
        assert outcome.block_number == 1234
        rpc = fake_rpcs[421614]
        assert len(rpc.sent) == 1
        assert rpc.receipt_timeout == 30.0
        tx = rpc.estimated[0]
        assert tx["to"].lower() == chains.get(421614).token_address.lower()
        assert tx["data"] == encode_erc20_transfer(SOURCE_ACCOUNT, 1_500_000)
        assert tx["chainId"] == 421614

    @pytest.mark.asyncio
    async def test_reverted(self, executor, chains, fake_rpcs):
        fake_rpcs[421614].receipt_status = 0
        with pytest.raises(TransferFailed, match="reverted"):
            await executor.transfer(421614, SOURCE_ACCOUNT, chains.get(421614).token_address, 1)

    @pytest.mark.asyncio
    async def test_receipt_timeout(self, executor, chains, fake_rpcs):
        fake_rpcs[421614].time_out = True
        with pytest.raises(TransferFailed) as exc_info:
            await executor.transfer(421614, SOURCE_ACCOUNT, chains.get(421614).token_address, 1)
        assert "not confirmed" in str(exc_info.value)
        assert exc_info.value.pending
        assert exc_info.value.retryable
        assert exc_info.value.tx_hash.startswith("0x")

    @pytest.mark.asyncio
    async def test_resume_rechecks_same_transaction(self, executor, chains, fake_rpcs):
        intent = IntentBuilder(chains).build(421614, "1.50", TEST_OWNER)
        record = make_record(421614, 421614)
        state = make_state(421614, ModuleKind.BOND)
        fake_rpcs[421614].time_out = True

        with pytest.raises(TransferFailed) as exc_info:
            await executor.submit(record, intent, state)
        tx_hash = exc_info.value.tx_hash

        fake_rpcs[421614].time_out = False
        outcome = await executor.resume(record, intent, state, tx_hash)

        assert outcome.tx_hash == tx_hash
        assert len(fake_rpcs[421614].sent) == 1

    @pytest.mark.asyncio
    async def test_reverted_is_not_pending(self, executor, chains, fake_rpcs):
        fake_rpcs[421614].receipt_status = 0
        with pytest.raises(TransferFailed) as exc_info:
            await executor.transfer(421614, SOURCE_ACCOUNT, chains.get(421614).token_address, 1)
        assert not exc_info.value.pending
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_rejected(self, chains, fake_rpcs):
        signer = LocalWalletSigner(TEST_PRIVATE_KEY, rpcs=fake_rpcs, confirm=lambda action, details: False)
        executor = OnChainDepositExecutor(signer, fake_rpcs)

        with pytest.raises(SigningRejected):
            await executor.transfer(421614, SOURCE_ACCOUNT, chains.get(421614).token_address, 1)
        assert not fake_rpcs[421614].sent

    @pytest.mark.asyncio
    async def test_no_rpc(self, signer, chains):
        executor = OnChainDepositExecutor(signer, {})
        with pytest.raises(TransferFailed):
            await executor.transfer(421614, SOURCE_ACCOUNT, chains.get(421614).token_address, 1)


class TestExecutorSelection:
    """Tests for picking the executor by module."""

    def test_by_module(self, signer, chains, fake_rpcs, modules):
        executors = create_deposit_executors(signer, chains, fake_rpcs)

        assert isinstance(select_deposit_executor(modules.get(ModuleKind.BOND), executors), OnChainDepositExecutor)
        for kind in (ModuleKind.AUTOEARN, ModuleKind.AUTOSWAP, ModuleKind.VERIFIABLE_AGENT):
            assert isinstance(select_deposit_executor(modules.get(kind), executors), GaslessDepositExecutor)

    def test_missing_executor(self, modules):
        with pytest.raises(KeyError):
            select_deposit_executor(modules.get(ModuleKind.BOND), {})


class TestNotifyDeposit:
    """Tests for notify_deposit."""

    @pytest.mark.asyncio
    async def test_notify(self):
        coordinator = AsyncMock()
        outcome = OnChainOutcome(tx_hash="0xabc", block_number=5)

        await notify_deposit(coordinator, "req-1", outcome)

        coordinator.notify_deposit.assert_awaited_once_with("req-1", outcome)

    @pytest.mark.asyncio
    async def test_failure_keeps_outcome(self):
        coordinator = AsyncMock()
        coordinator.notify_deposit.side_effect = CoordinatorError("service unavailable", status_code=503)
        outcome = OnChainOutcome(tx_hash="0xabc", block_number=5)

        with pytest.raises(NotifyFailed) as exc_info:
            await notify_deposit(coordinator, "req-1", outcome)

        assert exc_info.value.outcome is outcome
        assert exc_info.value.retryable
