"""Intent normalisation.

Turns the user's raw choices (source chain, amount text, wallet address)
into an Intent with the exact token-unit amount attached.
"""

import logging
from typing import Optional

from web3 import Web3

from crossdeposit.amounts import InvalidAmountError, format_units, parse_units
from crossdeposit.chains import ChainRegistry, UnknownChainError
from crossdeposit.errors import InvalidIntent
from crossdeposit.models import Intent

logger = logging.getLogger(__name__)


class IntentBuilder:
    """Validates and builds deposit intents against the chain registry."""

    def __init__(self, chains: ChainRegistry):
        self.chains = chains

    def build(
        self,
        source_chain_id,
        amount: str,
        owner_address: str,
        available_balance: Optional[int] = None,
    ) -> Intent:
        """Build an intent.

        Args:
            source_chain_id: Chain the funds are on
            amount: Decimal amount as entered, e.g. "5.00"
            owner_address: User wallet address
            available_balance: Wallet balance in token units, if known

        Returns:
            Normalised Intent

        Raises:
            InvalidIntent: If the chain, address or amount is not acceptable
        """
        try:
            chain = self.chains.get(source_chain_id)
        except UnknownChainError as e:
            raise InvalidIntent(str(e), cause=e) from e

        if not owner_address or not Web3.is_address(owner_address):
            raise InvalidIntent(f"Invalid owner address: {owner_address!r}")

        text = str(amount).strip()
        try:
            units = parse_units(text, chain.token_decimals)
        except InvalidAmountError as e:
            raise InvalidIntent(str(e), cause=e) from e

        if units <= 0:
            raise InvalidIntent("Amount must be greater than zero")

        if available_balance is not None and units > available_balance:
            raise InvalidIntent(
                f"Amount {text} {chain.token_symbol} exceeds available balance "
                f"{format_units(available_balance, chain.token_decimals)} {chain.token_symbol}"
            )

        intent = Intent(
            source_chain_id=chain.chain_id,
            source_token_address=chain.token_address,
            amount=text,
            owner_address=Web3.to_checksum_address(owner_address),
            token_units=units,
        )
        logger.info(
            f"Intent: {text} {chain.token_symbol} on {chain.display_name} "
            f"from {intent.owner_address}"
        )
        return intent
