"""
Unit tests for command-line argument validation.
"""

import pytest

from witness_toolkit.commands.validation import (
    validate_block,
    validate_chain_id,
    validate_eth_address,
    validate_slot,
    validate_token,
)
from witness_toolkit.proofs.types import TokenKind


class TestAddressValidation:
    """Tests for validate_eth_address."""

    def test_lowercase_is_checksummed(self):
        address = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
        assert (
            validate_eth_address(address)
            == "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
        )

    @pytest.mark.parametrize("address", ["", "0x1234", "not-an-address"])
    def test_invalid(self, address):
        with pytest.raises(ValueError, match="holder"):
            validate_eth_address(address, "holder")


class TestChainValidation:
    """Tests for validate_chain_id."""

    @pytest.mark.parametrize("chain_id", [None, 1, 42161, 31337])
    def test_accepted(self, chain_id):
        validate_chain_id(chain_id)

    def test_rejected(self):
        with pytest.raises(ValueError, match="Invalid chain_id"):
            validate_chain_id(999999)


class TestBlockValidation:
    """Tests for validate_block."""

    @pytest.mark.parametrize(
        "block, expected",
        [
            ("latest", "latest"),
            ("Finalized", "finalized"),
            ("12345", 12345),
            ("0x10", 16),
        ],
    )
    def test_accepted(self, block, expected):
        assert validate_block(block) == expected

    @pytest.mark.parametrize("block", ["-1", "yesterday", "0xzz"])
    def test_rejected(self, block):
        with pytest.raises(ValueError):
            validate_block(block)


class TestTokenValidation:
    """Tests for validate_slot and validate_token."""

    def test_slot(self):
        assert validate_slot(None) is None
        assert validate_slot(3) == 3
        with pytest.raises(ValueError):
            validate_slot(-1)

    def test_erc20(self):
        assert validate_token("erc20", None) == TokenKind.ERC20

    def test_erc721_requires_token_id(self):
        with pytest.raises(ValueError, match="token-id"):
            validate_token("ERC721", None)
        assert validate_token("erc-721", 7) == TokenKind.ERC721

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Invalid token kind"):
            validate_token("ERC1155", 1)
