"""Token balances across supported chains.

Balance reads are independent of any run, so all chains are queried
concurrently. A chain that cannot be read is reported with an error rather
than failing the whole lookup.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from crossdeposit.amounts import format_units
from crossdeposit.chains import ChainDescriptor, ChainRegistry
from crossdeposit.errors import format_error
from crossdeposit.wallet.base import ChainRpc, RpcError

logger = logging.getLogger(__name__)


@dataclass
class TokenBalance:
    """Balance of the deposit token on one chain."""
    chain_id: int
    display_name: str
    token_symbol: str
    units: int = 0
    decimals: int = 6
    error: Optional[str] = None

    @property
    def amount(self) -> str:
        return format_units(self.units, self.decimals)

    @property
    def ok(self) -> bool:
        return self.error is None


async def read_token_balance(chain: ChainDescriptor, rpc: ChainRpc, owner: str) -> TokenBalance:
    """Read one chain's balance, capturing RPC failures."""
    balance = TokenBalance(
        chain_id=chain.chain_id,
        display_name=chain.display_name,
        token_symbol=chain.token_symbol,
        decimals=chain.token_decimals,
    )
    try:
        balance.units = await rpc.read_balance(chain.token_address, owner)
    except RpcError as e:
        logger.warning(f"Could not read {chain.token_symbol} balance on {chain.display_name}: {e}")
        balance.error = format_error(e)
    return balance


async def fetch_balances(
    owner: str,
    chains: ChainRegistry,
    rpcs: dict[int, ChainRpc],
) -> dict[int, TokenBalance]:
    """Read the owner's token balance on every chain with an RPC client.

    Returns:
        Balances keyed by chain id
    """
    targets = [chain for chain in chains if chain.chain_id in rpcs]
    results = await asyncio.gather(
        *(read_token_balance(chain, rpcs[chain.chain_id], owner) for chain in targets)
    )
    return {balance.chain_id: balance for balance in results}
