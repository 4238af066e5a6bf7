"""
Proxy detection and bytecode slot hints.

Storage always lives at the address that was called; only code may be
delegated. The resolver tells the two apart using the EIP-1967
implementation slot, and can scan runtime bytecode for small PUSH operands
that are likely mapping slot indices.
"""

from collections import Counter
from typing import List, Optional, Union

from eth_utils import to_checksum_address

from witness_toolkit.proofs.types import ProxyInfo
from witness_toolkit.shared.constants import StorageConstants
from witness_toolkit.shared.logging import get_logger
from witness_toolkit.shared.retry import RPC_RETRY_CONFIG, RetryConfig
from witness_toolkit.shared.services.web3_service import Web3Service
from witness_toolkit.utils.blockchain import hex_to_bytes

_logger = get_logger(__name__)

BlockTag = Union[int, str]

PUSH1 = 0x60
PUSH2 = 0x61
PUSH32 = 0x7F

IMPLEMENTATION_SLOT_KEY = hex_to_bytes(
    StorageConstants.EIP1967_IMPLEMENTATION_SLOT
)


def extract_slot_hints(
    bytecode: bytes,
    max_slot: int = StorageConstants.MAX_HINT_SLOT,
    limit: Optional[int] = None,
) -> List[int]:
    """
    Rank plausible slot indices found in runtime bytecode.

    Walks the opcode stream (skipping PUSH immediates, so data bytes are
    never read as opcodes) and counts PUSH1/PUSH2 operands in 0..max_slot.
    The result is ordered by frequency, most frequent first, with ties
    broken by the smaller slot.

    Args:
        bytecode: Runtime code
        max_slot: Largest operand kept
        limit: Keep only the first `limit` hints

    Returns:
        List[int]: Candidate slots, a prioritization and never a certainty
    """
    counts: Counter = Counter()
    code = bytes(bytecode)
    pc = 0
    while pc < len(code):
        opcode = code[pc]
        if PUSH1 <= opcode <= PUSH32:
            width = opcode - PUSH1 + 1
            operand = code[pc + 1 : pc + 1 + width]
            if opcode in (PUSH1, PUSH2) and len(operand) == width:
                value = int.from_bytes(operand, "big")
                if value <= max_slot:
                    counts[value] += 1
            pc += 1 + width
        else:
            pc += 1

    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    hints = [slot for slot, _ in ranked]
    return hints[:limit] if limit is not None else hints


class ProxyResolver:
    """Resolve where a contract's code lives."""

    def __init__(
        self,
        web3_service: Web3Service,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.web3_service = web3_service
        self.retry_config = retry_config or RPC_RETRY_CONFIG

    async def resolve_implementation(
        self, contract: str, block_tag: BlockTag = "latest"
    ) -> ProxyInfo:
        """
        Read the EIP-1967 implementation pointer of `contract`.

        An all-zero pointer means "not a proxy" and the implementation is
        the contract itself. RPC failures propagate.
        """
        original = to_checksum_address(contract)
        word = await self.retry_config.run(
            self.web3_service.get_storage_at,
            original,
            IMPLEMENTATION_SLOT_KEY,
            block_tag,
            operation_name="read_implementation_slot",
        )
        low_bits = int.from_bytes(bytes(word), "big") & ((1 << 160) - 1)
        if low_bits == 0:
            return ProxyInfo(
                original_address=original,
                implementation_address=original,
                is_proxy=False,
            )

        implementation = to_checksum_address("0x" + format(low_bits, "040x"))
        _logger.info(f"{original} is a proxy for {implementation}")
        return ProxyInfo(
            original_address=original,
            implementation_address=implementation,
            is_proxy=True,
        )

    async def get_slot_hints(
        self,
        address: str,
        block_tag: BlockTag = "latest",
        limit: Optional[int] = None,
    ) -> List[int]:
        """Bytecode slot hints for the code at `address` (empty if no code)."""
        code = await self.retry_config.run(
            self.web3_service.get_code,
            address,
            block_tag,
            operation_name="get_code",
        )
        hints = extract_slot_hints(code, limit=limit)
        _logger.debug(f"Bytecode hints for {address}: {hints}")
        return hints
