"""Tests for the chain registry and amount conversion."""

import dataclasses
from decimal import Decimal

import pytest

from crossdeposit.amounts import InvalidAmountError, format_units, parse_units, to_decimal
from crossdeposit.chains import (
    ARBITRUM_SEPOLIA_CHAIN_ID,
    BASE_SEPOLIA_CHAIN_ID,
    ChainDescriptor,
    ChainRegistry,
    UnknownChainError,
    build_default_registry,
)
from crossdeposit.config import Settings


class TestChainRegistry:
    """Tests for ChainRegistry."""

    def test_default_chains(self, chains):
        """Test both testnets are registered."""
        assert sorted(chains.chain_ids) == [BASE_SEPOLIA_CHAIN_ID, ARBITRUM_SEPOLIA_CHAIN_ID]
        assert len(chains) == 2

    def test_base_sepolia(self, chains):
        """Test Base Sepolia descriptor."""
        chain = chains.get(84532)
        assert chain.display_name == "Base Sepolia"
        assert chain.token_address == "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
        assert chain.pool_address == "0x07eA79F68B2B3df564D0A34F8e19D9B1e339814b"
        assert chain.token_decimals == 6

    def test_lookup_by_string(self, chains):
        """Test chain ids given as strings resolve."""
        assert chains.get("421614").chain_id == ARBITRUM_SEPOLIA_CHAIN_ID

    def test_unknown_chain(self, chains):
        """Test unknown chain raises."""
        with pytest.raises(UnknownChainError) as exc_info:
            chains.get(1)
        assert "1" in str(exc_info.value)
        assert chains.find(1) is None
        assert chains.is_supported(1) is False

    def test_garbage_chain_id(self, chains):
        """Test a non-numeric chain id raises UnknownChainError."""
        with pytest.raises(UnknownChainError):
            chains.get("base")

    def test_descriptor_is_frozen(self, chains):
        """Test descriptors cannot be modified."""
        chain = chains.get(84532)
        with pytest.raises(dataclasses.FrozenInstanceError):
            chain.token_address = "0x0000000000000000000000000000000000000000"

    def test_registry_is_read_only(self, chains):
        """Test the underlying mapping rejects writes."""
        with pytest.raises(TypeError):
            chains._chains[1] = None

    def test_explorer_urls(self, chains):
        """Test explorer link helpers."""
        chain = chains.get(421614)
        assert chain.tx_url("0xabc") == "https://sepolia.arbiscan.io/tx/0xabc"
        assert chain.address_url("0xdef") == "https://sepolia.arbiscan.io/address/0xdef"

    def test_rpc_override(self):
        """Test RPC endpoints come from settings."""
        settings = Settings(_env_file=None, base_sepolia_rpc_url="http://localhost:8545")
        registry = build_default_registry(settings)
        assert registry.get(84532).rpc_endpoint == "http://localhost:8545"

    def test_custom_registry(self):
        """Test a registry can be built from any descriptors."""
        registry = ChainRegistry([
            ChainDescriptor(
                chain_id=1,
                display_name="Local",
                token_address="0x0000000000000000000000000000000000000001",
                rpc_endpoint="http://localhost:8545",
                explorer_url_base="http://localhost",
            )
        ])
        assert [c.chain_id for c in registry] == [1]


class TestAmounts:
    """Tests for exact amount conversion."""

    def test_round_trip(self):
        """Test 12.345000 survives a round trip exactly."""
        units = parse_units("12.345000", 6)
        assert units == 12_345_000
        assert format_units(units, 6) == "12.345000"

    @pytest.mark.parametrize("amount", ["0.000001", "5.00", "1.50", "999999.999999", "0.1", "3"])
    def test_round_trip_preserves_value(self, amount):
        """Test conversion back and forth keeps the exact value."""
        units = parse_units(amount)
        assert Decimal(format_units(units)) == Decimal(amount)
        assert parse_units(format_units(units)) == units

    def test_parse(self):
        """Test basic parsing."""
        assert parse_units("5.00") == 5_000_000
        assert parse_units("1.5") == 1_500_000
        assert parse_units(" 7 ") == 7_000_000

    def test_trailing_zeros_beyond_precision(self):
        """Test extra trailing zeros are not extra precision."""
        assert parse_units("1.5000000000") == 1_500_000

    def test_too_many_decimals(self):
        """Test amounts finer than a token unit are rejected."""
        with pytest.raises(InvalidAmountError):
            parse_units("0.0000001")

    @pytest.mark.parametrize("amount", ["", "abc", "-1", "1e6", "1.", ".5", "1,5"])
    def test_malformed(self, amount):
        """Test malformed amounts are rejected."""
        with pytest.raises(InvalidAmountError):
            parse_units(amount)

    def test_format_small(self):
        """Test formatting always shows six decimals."""
        assert format_units(1) == "0.000001"
        assert format_units(0) == "0.000000"

    def test_format_negative(self):
        """Test negative units are rejected."""
        with pytest.raises(InvalidAmountError):
            format_units(-1)

    def test_to_decimal(self):
        """Test Decimal normalisation."""
        assert to_decimal("2.5") == Decimal("2.500000")
