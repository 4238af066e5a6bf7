"""
Web3 Service module for read-only access to an Ethereum JSON-RPC node.

This module provides a Web3Service class that wraps an AsyncWeb3 connection,
bounds every call with its own timeout, and translates transport and node
errors into the toolkit's exception kinds. Only pure reads are exposed:
proofs, blocks, calls, storage and code.
"""

import asyncio
import re
from typing import Any, Dict, List, Optional, Union

import aiohttp
from eth_utils import to_checksum_address
from web3 import AsyncWeb3
from web3.exceptions import BlockNotFound as Web3BlockNotFound
from web3.exceptions import Web3RPCError
from web3.middleware import ExtraDataToPOAMiddleware

from witness_toolkit.shared.exceptions import BlockNotFound, TransportFailure
from witness_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)

BlockTag = Union[int, str]

# Node error texts meaning "this block (or its state) is not available here"
_MISSING_BLOCK_PATTERNS = re.compile(
    r"header not found|unknown block|block not found|missing trie node"
    r"|historical state|state .*not available|pruned|distance to target block",
    re.IGNORECASE,
)
_RATE_LIMIT_PATTERNS = re.compile(
    r"rate limit|too many requests|request limit|capacity exceeded",
    re.IGNORECASE,
)


def _rpc_message(error: Exception) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message
    return str(error)


class Web3Service:
    """
    A service class for read-only Web3 interactions with one node.

    Every request is bounded by `call_timeout`; a timeout or a transport
    error surfaces as TransportFailure, an unknown or pruned block as
    BlockNotFound. Other node errors propagate unchanged for the caller to
    classify.
    """

    def __init__(
        self,
        rpc_url: str,
        call_timeout: float = 10.0,
        chain_id: Optional[int] = None,
        w3: Optional[AsyncWeb3] = None,
    ):
        """
        Initialize the Web3Service.

        Args:
            rpc_url (str): The RPC URL to use.
            call_timeout (float): Per-call timeout in seconds.
            chain_id (int, optional): Known chain id (enables POA middleware
                for non-mainnet chains).
            w3 (AsyncWeb3, optional): Pre-built instance, mainly for tests.
        """
        self.rpc_url = rpc_url
        self.call_timeout = call_timeout
        self.chain_id = chain_id
        self.w3 = w3 or self._initialize_web3(rpc_url)

    def _initialize_web3(self, rpc_url: str) -> AsyncWeb3:
        """Initialize AsyncWeb3 instance with middleware if needed"""
        w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self._apply_chain_middleware(w3)
        return w3

    def _apply_chain_middleware(self, w3: AsyncWeb3) -> None:
        # POA chains carry oversized extraData in their headers
        if self.chain_id is None or self.chain_id == 1:
            return
        if ExtraDataToPOAMiddleware not in w3.middleware_onion:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    async def _request(
        self, method: str, awaitable, context: Optional[Dict[str, Any]] = None
    ) -> Any:
        context = dict(context or {}, method=method, rpc_url=self.rpc_url)
        _logger.debug(f"RPC {method} {context}")
        try:
            return await asyncio.wait_for(awaitable, timeout=self.call_timeout)
        except asyncio.TimeoutError as e:
            raise TransportFailure(
                f"{method} timed out after {self.call_timeout}s", context
            ) from e
        except Web3BlockNotFound as e:
            raise BlockNotFound(
                f"Block not found for {method}: {e}", context
            ) from e
        except (aiohttp.ClientError, ConnectionError, OSError) as e:
            raise TransportFailure(
                f"{method} transport error: {e}", context
            ) from e
        except Web3RPCError as e:
            message = _rpc_message(e)
            if _MISSING_BLOCK_PATTERNS.search(message):
                raise BlockNotFound(
                    f"Block unavailable for {method}: {message}", context
                ) from e
            if _RATE_LIMIT_PATTERNS.search(message):
                raise TransportFailure(
                    f"{method} rate limited: {message}", context
                ) from e
            raise

    async def get_chain_id(self) -> int:
        """Chain id reported by the node (cached after the first call)"""
        if self.chain_id is None:
            self.chain_id = int(
                await self._request("eth_chainId", self.w3.eth.chain_id)
            )
            self._apply_chain_middleware(self.w3)
        return self.chain_id

    async def get_block(self, block_identifier: BlockTag) -> Dict[str, Any]:
        """Get block information for a block number or tag"""
        block = await self._request(
            "eth_getBlockByNumber",
            self.w3.eth.get_block(block_identifier),
            {"block": block_identifier},
        )
        if not block:
            raise BlockNotFound(
                f"Block {block_identifier} not found",
                {"block": block_identifier},
            )
        return block

    async def get_proof(
        self, address: str, storage_keys: List[bytes], block_identifier: BlockTag
    ) -> Dict[str, Any]:
        """eth_getProof for `address` and the given 32-byte storage keys"""
        positions = [int.from_bytes(key, "big") for key in storage_keys]
        return await self._request(
            "eth_getProof",
            self.w3.eth.get_proof(
                to_checksum_address(address), positions, block_identifier
            ),
            {"address": address, "block": block_identifier},
        )

    async def get_storage_at(
        self, address: str, storage_key: bytes, block_identifier: BlockTag
    ) -> bytes:
        """Raw 32-byte storage word at `storage_key`"""
        value = await self._request(
            "eth_getStorageAt",
            self.w3.eth.get_storage_at(
                to_checksum_address(address),
                int.from_bytes(storage_key, "big"),
                block_identifier,
            ),
            {"address": address, "block": block_identifier},
        )
        return bytes(value)

    async def call(
        self, to: str, data: str, block_identifier: BlockTag
    ) -> bytes:
        """eth_call returning the raw return data (possibly empty)"""
        result = await self._request(
            "eth_call",
            self.w3.eth.call(
                {"to": to_checksum_address(to), "data": data},
                block_identifier,
            ),
            {"to": to, "block": block_identifier},
        )
        return bytes(result or b"")

    async def get_code(self, address: str, block_identifier: BlockTag) -> bytes:
        """Runtime bytecode at `address`"""
        code = await self._request(
            "eth_getCode",
            self.w3.eth.get_code(to_checksum_address(address), block_identifier),
            {"address": address, "block": block_identifier},
        )
        return bytes(code or b"")

    async def close(self) -> None:
        """Close the provider's HTTP session"""
        await self.w3.provider.disconnect()
