"""Cross-chain USDC deposits into strategy modules via an orchestration coordinator."""

__version__ = "0.1.0"
