"""
Unit tests for Web3Service error mapping and request shaping.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest
from hexbytes import HexBytes
from web3.exceptions import BlockNotFound as Web3BlockNotFound
from web3.exceptions import Web3RPCError
from web3.middleware import ExtraDataToPOAMiddleware

from witness_toolkit.shared.exceptions import BlockNotFound, TransportFailure
from witness_toolkit.shared.services.web3_service import Web3Service

TOKEN = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


def _service(call_timeout: float = 1.0) -> Web3Service:
    w3 = MagicMock()
    return Web3Service("http://127.0.0.1:8545", call_timeout=call_timeout, w3=w3)


class TestErrorMapping:
    """Tests for translating node errors into toolkit errors."""

    @pytest.mark.asyncio
    async def test_timeout_is_transport_failure(self):
        service = _service(call_timeout=0.01)

        async def never_returns(*args, **kwargs):
            await asyncio.sleep(1)

        service.w3.eth.get_block = never_returns
        with pytest.raises(TransportFailure, match="timed out"):
            await service.get_block(1)

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_failure(self):
        service = _service()
        service.w3.eth.get_proof = AsyncMock(
            side_effect=aiohttp.ClientConnectionError("refused")
        )
        with pytest.raises(TransportFailure) as exc_info:
            await service.get_proof(TOKEN, [b"\x01" * 32], 1)
        assert exc_info.value.context["method"] == "eth_getProof"

    @pytest.mark.asyncio
    async def test_web3_block_not_found(self):
        service = _service()
        service.w3.eth.get_block = AsyncMock(
            side_effect=Web3BlockNotFound("Block with id: '0x5' not found.")
        )
        with pytest.raises(BlockNotFound):
            await service.get_block(5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message",
        [
            "missing trie node abc (path ) state 0x... is not available",
            "header not found",
            "historical state not available in path scheme yet",
        ],
    )
    async def test_pruned_state_is_block_not_found(self, message):
        service = _service()
        service.w3.eth.get_proof = AsyncMock(side_effect=Web3RPCError(message))
        with pytest.raises(BlockNotFound):
            await service.get_proof(TOKEN, [b"\x01" * 32], 5)

    @pytest.mark.asyncio
    async def test_rate_limit_is_transport_failure(self):
        service = _service()
        service.w3.eth.call = AsyncMock(
            side_effect=Web3RPCError("Too Many Requests")
        )
        with pytest.raises(TransportFailure):
            await service.call(TOKEN, "0x18160ddd", "latest")

    @pytest.mark.asyncio
    async def test_other_rpc_errors_propagate(self):
        service = _service()
        service.w3.eth.call = AsyncMock(
            side_effect=Web3RPCError("execution reverted")
        )
        with pytest.raises(Web3RPCError):
            await service.call(TOKEN, "0x18160ddd", "latest")

    @pytest.mark.asyncio
    async def test_empty_block_response(self):
        service = _service()
        service.w3.eth.get_block = AsyncMock(return_value=None)
        with pytest.raises(BlockNotFound):
            await service.get_block(5)


class TestRequests:
    """Tests for request arguments and return shapes."""

    @pytest.mark.asyncio
    async def test_get_proof_passes_keys_as_ints(self):
        service = _service()
        service.w3.eth.get_proof = AsyncMock(return_value={"storageProof": []})

        await service.get_proof(TOKEN.lower(), [b"\x00" * 31 + b"\x09"], 7)
        service.w3.eth.get_proof.assert_awaited_once_with(TOKEN, [9], 7)

    @pytest.mark.asyncio
    async def test_get_storage_at_returns_bytes(self):
        service = _service()
        service.w3.eth.get_storage_at = AsyncMock(
            return_value=HexBytes(b"\x00" * 31 + b"\x05")
        )
        value = await service.get_storage_at(TOKEN, b"\x00" * 32, 3)
        assert value == b"\x00" * 31 + b"\x05"
        assert type(value) is bytes

    @pytest.mark.asyncio
    async def test_call_empty_result(self):
        service = _service()
        service.w3.eth.call = AsyncMock(return_value=HexBytes(b""))
        assert await service.call(TOKEN, "0x70a08231", 3) == b""

    @pytest.mark.asyncio
    async def test_chain_id_cached(self):
        service = _service()
        calls = []

        async def chain_id():
            calls.append(1)
            return 31337

        type(service.w3.eth).chain_id = property(lambda self: chain_id())
        assert await service.get_chain_id() == 31337
        assert await service.get_chain_id() == 31337
        assert len(calls) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chain_id, injected", [(137, True), (1, False)])
    async def test_node_reported_chain_enables_poa(self, chain_id, injected):
        service = _service()

        async def reported():
            return chain_id

        type(service.w3.eth).chain_id = property(lambda self: reported())
        assert await service.get_chain_id() == chain_id
        assert service.w3.middleware_onion.inject.called is injected
        if injected:
            service.w3.middleware_onion.inject.assert_called_once_with(
                ExtraDataToPOAMiddleware, layer=0
            )

    def test_poa_middleware_for_non_mainnet(self):
        service = Web3Service("http://127.0.0.1:8545", chain_id=137)
        assert ExtraDataToPOAMiddleware in service.w3.middleware_onion

    def test_no_poa_middleware_on_mainnet(self):
        service = Web3Service("http://127.0.0.1:8545", chain_id=1)
        assert ExtraDataToPOAMiddleware not in service.w3.middleware_onion
