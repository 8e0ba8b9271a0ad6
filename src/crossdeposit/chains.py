"""Supported chains for cross-chain deposits.

Two testnets are supported:
- Base Sepolia (84532)
- Arbitrum Sepolia (421614)

The registry is built once at startup and handed to every component that
needs chain data. It is never mutated afterwards.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from crossdeposit.config import Settings, get_settings

BASE_SEPOLIA_CHAIN_ID = 84532
ARBITRUM_SEPOLIA_CHAIN_ID = 421614


@dataclass(frozen=True)
class ChainDescriptor:
    """Static description of a supported chain."""

    # Required fields (no defaults) - must come first
    chain_id: int
    display_name: str
    token_address: str
    rpc_endpoint: str
    explorer_url_base: str

    # Optional fields (with defaults)
    pool_address: Optional[str] = None  # Aave pool used by the yield module
    auto_earn_module: Optional[str] = None
    token_symbol: str = "USDC"
    token_decimals: int = 6
    # EIP-712 domain of the token, used for transferWithAuthorization
    token_name: str = "USDC"
    token_version: str = "2"

    def tx_url(self, tx_hash: str) -> str:
        """Explorer link for a transaction."""
        return f"{self.explorer_url_base}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        """Explorer link for an address."""
        return f"{self.explorer_url_base}/address/{address}"


class UnknownChainError(KeyError):
    """Raised when a chain id is not in the registry."""

    def __init__(self, chain_id):
        self.chain_id = chain_id
        super().__init__(f"Unsupported chain: {chain_id}")

    def __str__(self) -> str:
        return f"Unsupported chain: {self.chain_id}"


class ChainRegistry:
    """Read-only lookup of supported chains keyed by chain id."""

    def __init__(self, chains: list[ChainDescriptor]):
        self._chains: Mapping[int, ChainDescriptor] = MappingProxyType(
            {chain.chain_id: chain for chain in chains}
        )

    def get(self, chain_id) -> ChainDescriptor:
        """Get a chain by id.

        Args:
            chain_id: Chain id as int or decimal string

        Raises:
            UnknownChainError: If the chain is not supported
        """
        try:
            key = int(chain_id)
        except (TypeError, ValueError):
            raise UnknownChainError(chain_id) from None

        chain = self._chains.get(key)
        if chain is None:
            raise UnknownChainError(chain_id)
        return chain

    def find(self, chain_id) -> Optional[ChainDescriptor]:
        """Get a chain by id, or None if unsupported."""
        try:
            return self.get(chain_id)
        except UnknownChainError:
            return None

    def is_supported(self, chain_id) -> bool:
        return self.find(chain_id) is not None

    @property
    def chain_ids(self) -> list[int]:
        return list(self._chains.keys())

    def __iter__(self) -> Iterator[ChainDescriptor]:
        return iter(self._chains.values())

    def __len__(self) -> int:
        return len(self._chains)


# ======================
# Chain Configurations
# ======================

def build_default_registry(settings: Optional[Settings] = None) -> ChainRegistry:
    """Build the registry of supported testnets.

    RPC endpoints come from settings so they can be overridden per deployment.
    """
    settings = settings or get_settings()

    return ChainRegistry([
        # Base Sepolia
        ChainDescriptor(
            chain_id=BASE_SEPOLIA_CHAIN_ID,
            display_name="Base Sepolia",
            token_address="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
            rpc_endpoint=settings.get_rpc_url(BASE_SEPOLIA_CHAIN_ID),
            explorer_url_base="https://sepolia.basescan.org",
            pool_address="0x07eA79F68B2B3df564D0A34F8e19D9B1e339814b",
            auto_earn_module="0x6e1fAc6e36f01615ef0c0898Bf6c5F260Bf2609a",
        ),

        # Arbitrum Sepolia
        ChainDescriptor(
            chain_id=ARBITRUM_SEPOLIA_CHAIN_ID,
            display_name="Arbitrum Sepolia",
            token_address="0x75faf114eafb1bdbe2f0316df893fd58ce46aa4d",
            rpc_endpoint=settings.get_rpc_url(ARBITRUM_SEPOLIA_CHAIN_ID),
            explorer_url_base="https://sepolia.arbiscan.io",
            pool_address="0xBfC91D59fdAA134A4ED45f7B584cAf96D7792Eff",
            auto_earn_module="0x42CF1b746F96D6cc59e84F87d26Ea64D3fbCa3a0",
        ),
    ])
