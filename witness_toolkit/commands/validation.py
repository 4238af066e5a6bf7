from typing import Optional

from eth_utils import is_address, to_checksum_address

from witness_toolkit.proofs.types import TokenKind
from witness_toolkit.shared.registry import get_supported_chains
from witness_toolkit.utils.blockchain import normalize_block_tag

LOCAL_CHAIN_IDS = {1337, 31337}


def validate_eth_address(address: str, param_name: str = "address") -> str:
    """Validate and return checksum ethereum address"""
    if not address or not isinstance(address, str):
        raise ValueError(
            f"Invalid {param_name}: address must be a non-empty string"
        )
    if not is_address(address):
        raise ValueError(
            f"Invalid {param_name}: {address} is not a valid Ethereum address"
        )
    return to_checksum_address(address)


def validate_chain_id(chain_id: Optional[int]) -> None:
    """Validate chain ID (None lets the node report it)"""
    if chain_id is None:
        return
    valid_chain_ids = set(get_supported_chains()) | LOCAL_CHAIN_IDS
    if chain_id not in valid_chain_ids:
        raise ValueError(
            f"Invalid chain_id: {chain_id}. Must be one of {sorted(valid_chain_ids)}"
        )


def validate_block(block: str):
    """Validate a block number or tag (latest, finalized, ...)"""
    return normalize_block_tag(block)


def validate_slot(slot: Optional[int]) -> Optional[int]:
    if slot is not None and slot < 0:
        raise ValueError(f"Invalid slot: {slot}. Must be >= 0")
    return slot


def validate_token(
    token_kind: str, token_id: Optional[int]
) -> TokenKind:
    """Validate token kind and the token id it requires"""
    kind = TokenKind.parse(token_kind)
    if kind == TokenKind.ERC721 and token_id is None:
        raise ValueError("--token-id is required for ERC721")
    if token_id is not None and token_id < 0:
        raise ValueError(f"Invalid token_id: {token_id}. Must be >= 0")
    return kind
