"""Application configuration using pydantic-settings.

Everything the deposit workflow needs from the environment: coordinator
endpoint and API key, per-chain RPC overrides, polling budget and the
receipt wait timeout.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Coordinator
    # ======================
    coordinator_url: str = Field(
        default="https://tee.wall8.xyz", description="Orchestration coordinator base URL"
    )
    coordinator_api_key: str = Field(
        default="test-gasless-deposit-eip3009", description="API key sent with orchestration requests"
    )
    http_timeout_seconds: float = Field(default=30.0, description="Coordinator HTTP timeout")

    # ======================
    # Chain RPC Endpoints
    # ======================
    base_sepolia_rpc_url: str = Field(
        default="https://sepolia.base.org", description="Base Sepolia RPC URL"
    )
    arbitrum_sepolia_rpc_url: str = Field(
        default="https://sepolia-rollup.arbitrum.io/rpc", description="Arbitrum Sepolia RPC URL"
    )
    default_destination_chain_id: int = Field(
        default=421614, description="Destination chain used when none is picked"
    )

    # ======================
    # Workflow
    # ======================
    poll_interval_seconds: float = Field(default=5.0, description="Seconds between status queries")
    poll_max_attempts: int = Field(default=60, description="Status queries before giving up")
    receipt_timeout_seconds: float = Field(
        default=120.0, description="Maximum wait for an on-chain deposit receipt"
    )
    authorization_validity_seconds: int = Field(
        default=3600, description="Lifetime of a gasless transfer authorization"
    )
    max_error_length: int = Field(
        default=150, description="User-facing error messages are truncated to this length"
    )

    # ======================
    # Wallet
    # ======================
    owner_private_key: Optional[str] = Field(
        default=None, description="Hex private key for the local wallet signer"
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")
    dry_run: bool = Field(
        default=True, description="Use the in-process simulated coordinator"
    )

    @property
    def has_wallet(self) -> bool:
        """Check if a local signing key is configured."""
        return bool(self.owner_private_key)

    def get_rpc_url(self, chain_id: int) -> str:
        """Get RPC URL for a chain id."""
        rpc_map = {
            84532: self.base_sepolia_rpc_url,
            421614: self.arbitrum_sepolia_rpc_url,
        }
        return rpc_map.get(chain_id, "")

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "coordinator": {
                "url": self.coordinator_url,
                "api_key": "***" if self.coordinator_api_key else "(not set)",
                "timeout": self.http_timeout_seconds,
            },
            "chains": {
                "84532": {"rpc": self.base_sepolia_rpc_url},
                "421614": {"rpc": self.arbitrum_sepolia_rpc_url},
            },
            "polling": {
                "interval": self.poll_interval_seconds,
                "max_attempts": self.poll_max_attempts,
            },
            "receipt_timeout": self.receipt_timeout_seconds,
            "wallet_configured": self.has_wallet,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
