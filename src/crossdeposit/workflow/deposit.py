"""Deposit execution.

Two ways to move the user's tokens into the orchestration account:

- Gasless: the user signs an EIP-3009 transferWithAuthorization off-chain.
  Nothing is broadcast. The coordinator redeems the authorization in its
  own batch.
- On-chain: the user sends an ERC-20 transfer and pays gas. Used by modules
  that need funds committed before the coordinator acts (BOND).

The executor is picked once per run from the module's deposit strategy.
"""

import logging
import secrets
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from web3 import Web3

from crossdeposit.chains import ChainDescriptor, ChainRegistry, UnknownChainError
from crossdeposit.coordinator.base import CoordinatorClient, CoordinatorError
from crossdeposit.errors import (
    AuthorizationFailed,
    NotifyFailed,
    SigningRejected,
    TransferFailed,
)
from crossdeposit.models import (
    DepositOutcome,
    GaslessOutcome,
    Intent,
    OnChainOutcome,
    OrchestrationRecord,
    RequiredState,
    SignedAuthorization,
    TxReceipt,
)
from crossdeposit.modules.base import DepositStrategy, ModuleSpec
from crossdeposit.wallet.base import (
    ChainRpc,
    RpcError,
    SignerRejectedError,
    SigningError,
    TransactionRevertedError,
    WalletSigner,
    encode_erc20_transfer,
)
from crossdeposit.workflow.orchestration import is_same_chain

logger = logging.getLogger(__name__)

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

TRANSFER_WITH_AUTHORIZATION_TYPE = [
    {"name": "from", "type": "address"},
    {"name": "to", "type": "address"},
    {"name": "value", "type": "uint256"},
    {"name": "validAfter", "type": "uint256"},
    {"name": "validBefore", "type": "uint256"},
    {"name": "nonce", "type": "bytes32"},
]


def build_transfer_authorization(
    chain: ChainDescriptor,
    from_address: str,
    to: str,
    value: int,
    valid_after: int,
    valid_before: int,
    nonce: bytes,
) -> dict:
    """EIP-712 typed data for an EIP-3009 transferWithAuthorization."""
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_TYPE,
            "TransferWithAuthorization": TRANSFER_WITH_AUTHORIZATION_TYPE,
        },
        "primaryType": "TransferWithAuthorization",
        "domain": {
            "name": chain.token_name,
            "version": chain.token_version,
            "chainId": chain.chain_id,
            "verifyingContract": Web3.to_checksum_address(chain.token_address),
        },
        "message": {
            "from": Web3.to_checksum_address(from_address),
            "to": Web3.to_checksum_address(to),
            "value": value,
            "validAfter": valid_after,
            "validBefore": valid_before,
            "nonce": nonce,
        },
    }


class DepositExecutor(ABC):
    """Moves the user's funds for one orchestration."""

    strategy: DepositStrategy

    @abstractmethod
    def select_recipient(
        self,
        orchestration: OrchestrationRecord,
        intent: Intent,
        required_state: RequiredState,
    ) -> str:
        """Account that receives the deposit."""
        pass

    @abstractmethod
    async def submit(
        self,
        orchestration: OrchestrationRecord,
        intent: Intent,
        required_state: RequiredState,
    ) -> DepositOutcome:
        """Execute the deposit and return the proof for the coordinator.

        Raises:
            SigningRejected: If the user declined in their wallet
            AuthorizationFailed: If a gasless authorization could not be produced
            TransferFailed: If an on-chain transfer failed, reverted or timed out
        """
        pass

    async def resume(
        self,
        orchestration: OrchestrationRecord,
        intent: Intent,
        required_state: RequiredState,
        tx_hash: str,
    ) -> DepositOutcome:
        """Finish a deposit whose transaction was already broadcast.

        Raises:
            TransferFailed: If the strategy never broadcasts, or the
                transaction is still unconfirmed or reverted
        """
        raise TransferFailed(f"{self.strategy.value} deposits have no transaction to re-check")


# ======================
# Gasless (EIP-3009)
# ======================

class GaslessDepositExecutor(DepositExecutor):
    """Deposit by signed transfer authorization. Never broadcasts."""

    strategy = DepositStrategy.GASLESS

    def __init__(
        self,
        signer: WalletSigner,
        chains: ChainRegistry,
        validity_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.signer = signer
        self.chains = chains
        self.validity_seconds = validity_seconds
        self.clock = clock

    def select_recipient(
        self,
        orchestration: OrchestrationRecord,
        intent: Intent,
        required_state: RequiredState,
    ) -> str:
        # Same-chain runs need no bridge, so funds go straight to the
        # destination account. Otherwise the source account bridges them.
        if is_same_chain(intent, required_state):
            return orchestration.account_address_on_destination_chain
        return orchestration.account_address_on_source_chain

    async def deposit_gasless(
        self,
        from_address: str,
        to: str,
        token: str,
        amount: int,
        chain_id: int,
    ) -> SignedAuthorization:
        """Sign an EIP-3009 authorization for `amount` units of `token`.

        Uses a fresh random 32-byte nonce per call.

        Raises:
            SigningRejected: If the user declined
            AuthorizationFailed: On any other signing failure
        """
        try:
            chain = self.chains.get(chain_id)
        except UnknownChainError as e:
            raise AuthorizationFailed(str(e), cause=e) from e

        if token.lower() != chain.token_address.lower():
            raise AuthorizationFailed(
                f"Token {token} is not the {chain.token_symbol} contract on {chain.display_name}"
            )
        if from_address.lower() != self.signer.address.lower():
            raise AuthorizationFailed(
                f"Signer {self.signer.address} cannot authorize transfers from {from_address}"
            )

        nonce = secrets.token_bytes(32)
        valid_after = 0
        valid_before = int(self.clock()) + self.validity_seconds
        typed_data = build_transfer_authorization(
            chain, from_address, to, amount, valid_after, valid_before, nonce
        )

        logger.info(f"Requesting transfer authorization: {amount} units to {to} on {chain.display_name}")
        try:
            result = await self.signer.sign_typed_data(typed_data)
        except SignerRejectedError as e:
            raise SigningRejected(cause=e) from e
        except SigningError as e:
            logger.error(f"Authorization signing failed: {e}")
            raise AuthorizationFailed(cause=e) from e

        return SignedAuthorization(
            from_address=typed_data["message"]["from"],
            to=typed_data["message"]["to"],
            value=amount,
            valid_after=valid_after,
            valid_before=valid_before,
            nonce="0x" + nonce.hex(),
            v=result.v,
            r=result.r,
            s=result.s,
            signature=result.signature,
            chain_id=chain.chain_id,
            token_address=typed_data["domain"]["verifyingContract"],
        )

    async def submit(
        self,
        orchestration: OrchestrationRecord,
        intent: Intent,
        required_state: RequiredState,
    ) -> DepositOutcome:
        recipient = self.select_recipient(orchestration, intent, required_state)
        authorization = await self.deposit_gasless(
            intent.owner_address,
            recipient,
            intent.source_token_address,
            intent.token_units,
            intent.source_chain_id,
        )
        logger.info(f"Gasless deposit signed for {orchestration.request_id} (no transaction sent)")
        return GaslessOutcome(signed_authorization=authorization)


# ======================
# On-chain ERC-20 transfer
# ======================

class OnChainDepositExecutor(DepositExecutor):
    """Deposit by ERC-20 transfer paid for by the user."""

    strategy = DepositStrategy.ON_CHAIN

    def __init__(
        self,
        signer: WalletSigner,
        rpcs: dict[int, ChainRpc],
        receipt_timeout: float = 120.0,
    ):
        self.signer = signer
        self.rpcs = rpcs
        self.receipt_timeout = receipt_timeout

    def select_recipient(
        self,
        orchestration: OrchestrationRecord,
        intent: Intent,
        required_state: RequiredState,
    ) -> str:
        # Always the source account, same-chain or not
        return orchestration.account_address_on_source_chain

    async def transfer(self, chain_id: int, to: str, token: str, amount: int) -> TxReceipt:
        """Send `amount` units of `token` to `to` and wait for the receipt.

        Raises:
            SigningRejected: If the user declined the transaction
            TransferFailed: On broadcast failure, revert or receipt timeout
        """
        rpc = self.rpcs.get(chain_id)
        if rpc is None:
            raise TransferFailed(f"No RPC configured for chain {chain_id}")

        data = encode_erc20_transfer(to, amount)
        try:
            tx_hash = await self.signer.send_transaction(chain_id, token, data=data)
        except SignerRejectedError as e:
            raise SigningRejected(cause=e) from e
        except (SigningError, RpcError) as e:
            logger.error(f"Deposit transfer could not be sent: {e}")
            raise TransferFailed(cause=e) from e

        logger.info(f"Deposit transfer sent: {tx_hash}, waiting up to {self.receipt_timeout}s")
        return await self.confirm(chain_id, tx_hash)

    async def confirm(self, chain_id: int, tx_hash: str) -> TxReceipt:
        """Wait for the receipt of an already broadcast transfer.

        Raises:
            TransferFailed: Reverted, or pending (tx_hash set) when the
                receipt did not arrive in time
        """
        rpc = self.rpcs.get(chain_id)
        if rpc is None:
            raise TransferFailed(f"No RPC configured for chain {chain_id}", tx_hash=tx_hash, pending=True)

        try:
            receipt = await rpc.wait_for_receipt(tx_hash, timeout=self.receipt_timeout)
        except TransactionRevertedError as e:
            logger.error(f"Deposit transfer {tx_hash} reverted: {e}")
            raise TransferFailed(cause=e, tx_hash=tx_hash) from e
        except RpcError as e:
            logger.warning(f"Deposit transfer {tx_hash} not confirmed: {e}")
            raise TransferFailed(cause=e, tx_hash=tx_hash, pending=True) from e

        if not receipt.succeeded:
            raise TransferFailed(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)

        logger.info(f"Deposit transfer confirmed in block {receipt.block_number}")
        return receipt

    async def submit(
        self,
        orchestration: OrchestrationRecord,
        intent: Intent,
        required_state: RequiredState,
    ) -> DepositOutcome:
        recipient = self.select_recipient(orchestration, intent, required_state)
        receipt = await self.transfer(
            intent.source_chain_id,
            recipient,
            intent.source_token_address,
            intent.token_units,
        )
        return OnChainOutcome(tx_hash=receipt.tx_hash, block_number=receipt.block_number)

    async def resume(
        self,
        orchestration: OrchestrationRecord,
        intent: Intent,
        required_state: RequiredState,
        tx_hash: str,
    ) -> DepositOutcome:
        logger.info(f"Re-checking deposit transfer {tx_hash} for {orchestration.request_id}")
        receipt = await self.confirm(intent.source_chain_id, tx_hash)
        return OnChainOutcome(tx_hash=receipt.tx_hash, block_number=receipt.block_number)


def select_deposit_executor(
    module: ModuleSpec,
    executors: dict[DepositStrategy, DepositExecutor],
) -> DepositExecutor:
    """Pick the executor for a module's deposit strategy.

    Raises:
        KeyError: If no executor is configured for the strategy
    """
    executor = executors.get(module.deposit_strategy)
    if executor is None:
        raise KeyError(f"No deposit executor for strategy {module.deposit_strategy.value}")
    return executor


async def notify_deposit(
    coordinator: CoordinatorClient,
    request_id: str,
    outcome: DepositOutcome,
) -> None:
    """Tell the coordinator a deposit was made.

    Raises:
        NotifyFailed: If the coordinator did not accept the notification. The
            outcome is attached so the same proof can be re-sent.
    """
    logger.info(f"Notifying coordinator of deposit for {request_id}")
    try:
        await coordinator.notify_deposit(request_id, outcome)
    except CoordinatorError as e:
        logger.error(f"Deposit notification failed for {request_id}: {e}")
        raise NotifyFailed(f"Deposit notification failed: {e}", cause=e, outcome=outcome) from e
    logger.info(f"Coordinator notified for {request_id}")


def create_deposit_executors(
    signer: WalletSigner,
    chains: ChainRegistry,
    rpcs: Optional[dict[int, ChainRpc]] = None,
    receipt_timeout: float = 120.0,
    validity_seconds: int = 3600,
) -> dict[DepositStrategy, DepositExecutor]:
    """Both executors sharing one signer."""
    return {
        DepositStrategy.GASLESS: GaslessDepositExecutor(signer, chains, validity_seconds=validity_seconds),
        DepositStrategy.ON_CHAIN: OnChainDepositExecutor(signer, rpcs or {}, receipt_timeout=receipt_timeout),
    }
