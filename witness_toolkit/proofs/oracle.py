"""
Ground-truth reads through plain contract calls.

The oracle answers "what does the contract itself say?" via balanceOf,
ownerOf and totalSupply at a pinned block. An empty return (no code,
non-standard token) reads as zero; a revert or an RPC error is raised as
BalanceReadError so that a failed read is never mistaken for a zero balance.
"""

from typing import Optional, Union

from eth_utils import is_address, to_checksum_address
from web3.exceptions import ContractLogicError, Web3RPCError

from witness_toolkit.proofs.types import TokenKind
from witness_toolkit.shared.constants import SelectorConstants, StorageConstants
from witness_toolkit.shared.exceptions import BalanceReadError
from witness_toolkit.shared.logging import get_logger
from witness_toolkit.shared.retry import RPC_RETRY_CONFIG, RetryConfig
from witness_toolkit.shared.services.web3_service import Web3Service
from witness_toolkit.utils.blockchain import pad_address

_logger = get_logger(__name__)

BlockTag = Union[int, str]

ZERO_ADDRESS = "0x" + "00" * StorageConstants.ADDRESS_SIZE


def _decode_word(data: bytes, context: dict) -> int:
    """First 32-byte return word as an unsigned integer; empty means zero."""
    if not data:
        return 0
    if len(data) < StorageConstants.WORD_SIZE:
        raise BalanceReadError(
            f"Short return data ({len(data)} bytes)", context
        )
    return int.from_bytes(data[: StorageConstants.WORD_SIZE], "big")


class BalanceOracle:
    """Read-only balance/ownership lookups for one node."""

    def __init__(
        self,
        web3_service: Web3Service,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.web3_service = web3_service
        self.retry_config = retry_config or RPC_RETRY_CONFIG

    async def _call_word(
        self, contract: str, data: str, block_tag: BlockTag, operation: str
    ) -> int:
        context = {"contract": contract, "block": block_tag, "call": operation}
        try:
            result = await self.retry_config.run(
                self.web3_service.call,
                contract,
                data,
                block_tag,
                operation_name=operation,
            )
        except (ContractLogicError, Web3RPCError) as e:
            raise BalanceReadError(
                f"{operation} failed on {contract}: {e}", context
            ) from e
        return _decode_word(result, context)

    async def read_balance(
        self, contract: str, holder: str, block_tag: BlockTag = "latest"
    ) -> int:
        """
        balanceOf(holder) at `block_tag`.

        Returns:
            int: The balance, 0 for an empty response

        Raises:
            BalanceReadError: The call reverted or the node returned an error
            TransportFailure: The node stayed unreachable after retries
        """
        if not is_address(holder):
            raise ValueError(f"Invalid holder address: {holder!r}")
        holder = to_checksum_address(holder)
        data = SelectorConstants.BALANCE_OF + pad_address(holder.lower())[2:]
        return await self._call_word(contract, data, block_tag, "balanceOf")

    async def read_owner(
        self, contract: str, token_id: int, block_tag: BlockTag = "latest"
    ) -> str:
        """ownerOf(token_id) at `block_tag` as a checksum address."""
        if token_id < 0:
            raise ValueError(f"token_id must be >= 0, got {token_id}")
        data = SelectorConstants.OWNER_OF + format(token_id, "064x")
        word = await self._call_word(contract, data, block_tag, "ownerOf")
        return to_checksum_address(
            "0x" + format(word & ((1 << 160) - 1), "040x")
        )

    async def read_total_supply(
        self, contract: str, block_tag: BlockTag = "latest"
    ) -> int:
        """totalSupply() at `block_tag`."""
        return await self._call_word(
            contract, SelectorConstants.TOTAL_SUPPLY, block_tag, "totalSupply"
        )

    async def read_ground_truth(
        self,
        contract: str,
        token_kind: TokenKind,
        block_tag: BlockTag,
        holder: Optional[str] = None,
        token_id: Optional[int] = None,
    ) -> int:
        """
        The value the mapping slot must hold, as an integer.

        ERC20: the holder's balance. ERC721: the owner address of `token_id`
        (the integer the `_owners` entry stores).
        """
        if TokenKind.parse(token_kind) == TokenKind.ERC721:
            if token_id is None:
                raise ValueError("token_id is required for ERC721 lookups")
            owner = await self.read_owner(contract, token_id, block_tag)
            _logger.debug(f"ownerOf({token_id}) on {contract} = {owner}")
            return int(owner, 16)
        if holder is None:
            raise ValueError("holder is required for ERC20 lookups")
        balance = await self.read_balance(contract, holder, block_tag)
        _logger.debug(f"balanceOf({holder}) on {contract} = {balance}")
        return balance
