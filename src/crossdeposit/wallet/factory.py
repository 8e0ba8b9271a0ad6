"""Wallet and RPC factory.

Creates the chain RPC clients and the local wallet signer from settings.
"""

import logging
from typing import Optional

from crossdeposit.chains import ChainRegistry, build_default_registry
from crossdeposit.config import Settings, get_settings
from crossdeposit.wallet.base import ChainRpc, WalletSigner
from crossdeposit.wallet.local import ConfirmCallback, LocalWalletSigner
from crossdeposit.wallet.rpc import Web3ChainRpc

logger = logging.getLogger(__name__)


def build_chain_rpcs(
    registry: ChainRegistry,
    settings: Optional[Settings] = None,
) -> dict[int, ChainRpc]:
    """Create one RPC client per supported chain."""
    settings = settings or get_settings()
    return {
        chain.chain_id: Web3ChainRpc(chain, request_timeout=settings.http_timeout_seconds)
        for chain in registry
    }


def get_wallet_signer(
    settings: Optional[Settings] = None,
    registry: Optional[ChainRegistry] = None,
    rpcs: Optional[dict[int, ChainRpc]] = None,
    confirm: Optional[ConfirmCallback] = None,
) -> WalletSigner:
    """Get a local wallet signer for the configured owner key.

    Raises:
        RuntimeError: If no owner key is configured
    """
    settings = settings or get_settings()
    if not settings.has_wallet:
        raise RuntimeError("OWNER_PRIVATE_KEY is not set - cannot sign deposits")

    registry = registry or build_default_registry(settings)
    rpcs = rpcs if rpcs is not None else build_chain_rpcs(registry, settings)

    signer = LocalWalletSigner(settings.owner_private_key, rpcs=rpcs, confirm=confirm)
    logger.info(f"Initialized local wallet signer for {signer.address}")
    return signer
