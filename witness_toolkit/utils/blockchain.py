from typing import Any, Union

from hexbytes import HexBytes

SYMBOLIC_BLOCK_TAGS = ("latest", "earliest", "pending", "safe", "finalized")


def pad_address(address: str) -> str:
    """Pad an Ethereum address to 64 characters"""
    # Remove the '0x' prefix
    address = address[2:]
    # Pad the address to 64 characters with zeros
    padded_address = address.zfill(64)
    # Add the '0x' prefix back
    return "0x" + padded_address


def to_0x_hex(value: Union[bytes, bytearray, HexBytes]) -> str:
    """Render bytes as a 0x-prefixed hex string"""
    return "0x" + bytes(value).hex()


def normalize_hex(value: str) -> str:
    """
    Return the hex digits of `value` without prefix, padded to even length.

    Nodes may drop a leading zero nibble ("0x1" instead of "0x01"); a
    single zero nibble is prepended so the numeric value is unchanged.
    """
    digits = value[2:] if value[:2] in ("0x", "0X") else value
    if len(digits) % 2:
        digits = "0" + digits
    return digits.lower()


def hex_to_bytes(value: Any) -> bytes:
    """Bytes from a hex string (odd length tolerated), bytes or HexBytes"""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return bytes.fromhex(normalize_hex(value))
    raise TypeError(f"Cannot convert {type(value).__name__} to bytes")


def storage_value_to_bytes(value: Any) -> bytes:
    """
    Normalize a storage value from a node response to big-endian bytes.

    Accepts the raw hex quantity, an already-decoded int or bytes. Ints
    go through their hex form so "0x0" and 0 both become b"\\x00".
    """
    if isinstance(value, bool):
        raise TypeError("Storage value cannot be a bool")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("Storage value cannot be negative")
        return hex_to_bytes(hex(value))
    return hex_to_bytes(value)


def normalize_block_tag(block: Any) -> Union[int, str]:
    """Block number (int, decimal or hex string) or a symbolic tag"""
    if isinstance(block, bool):
        raise ValueError(f"Invalid block: {block}")
    if isinstance(block, int):
        if block < 0:
            raise ValueError(f"Block number must be >= 0, got {block}")
        return block
    if isinstance(block, str):
        tag = block.strip().lower()
        if tag in SYMBOLIC_BLOCK_TAGS:
            return tag
        try:
            number = int(tag, 16) if tag.startswith("0x") else int(tag)
        except ValueError:
            raise ValueError(f"Invalid block tag: {block}")
        return normalize_block_tag(number)
    raise ValueError(f"Invalid block tag: {block}")
