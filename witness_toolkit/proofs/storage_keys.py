"""
Storage key derivation for Solidity mappings.

For a mapping declared at slot `p`, the value for key `k` lives at
keccak256(pad32(k) . pad32(p)), i.e. keccak256(abi.encode(k, p)). Both
halves are left-padded to 32 bytes independently; hashing an unpadded
20-byte address against a 32-byte slot gives a different, useless key.
"""

from typing import Optional

from eth_abi import encode
from eth_utils import is_address, keccak, to_checksum_address

from witness_toolkit.proofs.types import TokenKind

UINT256_MAX = 2**256 - 1


def _check_uint256(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"{name} must fit in 256 bits, got {value}")
    return value


def resolve_balance_key(holder_address: str, slot: int) -> bytes:
    """
    Storage key of `balances[holder]` for a mapping(address => ...) at `slot`.

    Args:
        holder_address: 20-byte address (any casing)
        slot: Declared-order index of the mapping

    Returns:
        bytes: 32-byte storage key
    """
    if not isinstance(holder_address, str) or not is_address(holder_address):
        raise ValueError(f"Invalid holder address: {holder_address!r}")
    _check_uint256(slot, "slot")
    holder = to_checksum_address(holder_address.lower())
    return keccak(encode(["address", "uint256"], [holder, slot]))


def resolve_ownership_key(token_id: int, slot: int) -> bytes:
    """
    Storage key of `owners[tokenId]` for a mapping(uint256 => address) at `slot`.

    Args:
        token_id: Non-negative token id, at most 2**256 - 1
        slot: Declared-order index of the mapping

    Returns:
        bytes: 32-byte storage key
    """
    _check_uint256(token_id, "token_id")
    _check_uint256(slot, "slot")
    return keccak(encode(["uint256", "uint256"], [token_id, slot]))


def resolve_mapping_key(
    token_kind: TokenKind,
    slot: int,
    holder_address: Optional[str] = None,
    token_id: Optional[int] = None,
) -> bytes:
    """Dispatch on token kind: balances are keyed by holder, owners by token id."""
    if TokenKind.parse(token_kind) == TokenKind.ERC721:
        if token_id is None:
            raise ValueError("token_id is required for ERC721 ownership keys")
        return resolve_ownership_key(token_id, slot)
    if holder_address is None:
        raise ValueError("holder_address is required for ERC20 balance keys")
    return resolve_balance_key(holder_address, slot)
