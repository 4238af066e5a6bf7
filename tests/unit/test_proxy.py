"""
Unit tests for proxy resolution and bytecode slot hints.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from witness_toolkit.proofs.proxy import (
    IMPLEMENTATION_SLOT_KEY,
    ProxyResolver,
    extract_slot_hints,
)
from witness_toolkit.shared.exceptions import TransportFailure
from witness_toolkit.shared.retry import RetryConfig

NO_DELAY = RetryConfig(max_attempts=2, base_delay=0.0, max_delay=0.0)

SLOAD = "54"
SSTORE = "55"


class TestExtractSlotHints:
    """Tests for the bytecode scanner."""

    def test_ranks_by_frequency(self):
        # PUSH1 0x09 three times, PUSH1 0x02 once
        code = bytes.fromhex(
            "6009" + SLOAD + "6009" + SLOAD + "6002" + SSTORE + "6009" + SLOAD
        )
        assert extract_slot_hints(code) == [9, 2]

    def test_ties_broken_by_smaller_slot(self):
        code = bytes.fromhex("6007" + "6003" + "6005")
        assert extract_slot_hints(code) == [3, 5, 7]

    def test_push2_operands_in_range(self):
        code = bytes.fromhex("6100ff" + "610100")
        # 0x0100 = 256 is outside the slot range
        assert extract_slot_hints(code) == [255]

    def test_push_immediates_not_read_as_opcodes(self):
        # PUSH32 whose data contains 0x60 0x04 must not count slot 4
        code = bytes.fromhex("7f" + "6004" * 16 + "6001")
        assert extract_slot_hints(code) == [1]

    def test_wider_pushes_ignored(self):
        code = bytes.fromhex("620000ff" + "6001")
        assert extract_slot_hints(code) == [1]

    def test_truncated_push_ignored(self):
        assert extract_slot_hints(bytes.fromhex("61ff")) == []

    def test_limit(self):
        code = bytes.fromhex("6001" + "6002" + "6003")
        assert extract_slot_hints(code, limit=2) == [1, 2]

    def test_max_slot(self):
        code = bytes.fromhex("6010" + "6001")
        assert extract_slot_hints(code, max_slot=10) == [1]

    def test_empty_code(self):
        assert extract_slot_hints(b"") == []


class TestResolveImplementation:
    """Tests for EIP-1967 proxy detection."""

    @pytest.mark.asyncio
    async def test_non_proxy(self, fake_node, sample_token_address):
        resolver = ProxyResolver(fake_node, NO_DELAY)

        info = await resolver.resolve_implementation(sample_token_address)
        assert info.is_proxy is False
        assert info.implementation_address == sample_token_address
        assert info.original_address == sample_token_address

    @pytest.mark.asyncio
    async def test_proxy(
        self, fake_node, sample_proxy_address, sample_implementation_address
    ):
        fake_node.set_implementation(
            sample_proxy_address, sample_implementation_address
        )
        resolver = ProxyResolver(fake_node, NO_DELAY)

        info = await resolver.resolve_implementation(
            sample_proxy_address.lower()
        )
        assert info.is_proxy is True
        assert info.original_address == sample_proxy_address
        assert info.implementation_address == sample_implementation_address

    @pytest.mark.asyncio
    async def test_reads_implementation_slot_of_original(
        self, fake_node, sample_proxy_address
    ):
        resolver = ProxyResolver(fake_node, NO_DELAY)
        await resolver.resolve_implementation(sample_proxy_address)

        assert fake_node.storage_reads == [
            (sample_proxy_address, IMPLEMENTATION_SLOT_KEY)
        ]

    @pytest.mark.asyncio
    async def test_rpc_failure_propagates(self, sample_proxy_address):
        service = MagicMock()
        service.get_storage_at = AsyncMock(
            side_effect=TransportFailure("connection refused")
        )
        resolver = ProxyResolver(service, NO_DELAY)

        with pytest.raises(TransportFailure):
            await resolver.resolve_implementation(sample_proxy_address)
        assert service.get_storage_at.call_count == 2


class TestGetSlotHints:
    """Tests for bytecode hints fetched from the node."""

    @pytest.mark.asyncio
    async def test_hints_from_code(
        self, fake_node, sample_implementation_address
    ):
        fake_node.code[sample_implementation_address] = bytes.fromhex(
            "6009" + SLOAD + "6009" + SLOAD
        )
        resolver = ProxyResolver(fake_node, NO_DELAY)

        hints = await resolver.get_slot_hints(sample_implementation_address)
        assert hints == [9]

    @pytest.mark.asyncio
    async def test_no_code(self, fake_node, sample_implementation_address):
        resolver = ProxyResolver(fake_node, NO_DELAY)
        assert (
            await resolver.get_slot_hints(sample_implementation_address) == []
        )
