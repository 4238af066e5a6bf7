from .blockchain import (
    hex_to_bytes,
    normalize_block_tag,
    normalize_hex,
    pad_address,
    storage_value_to_bytes,
    to_0x_hex,
)

__all__ = [
    "hex_to_bytes",
    "normalize_block_tag",
    "normalize_hex",
    "pad_address",
    "storage_value_to_bytes",
    "to_0x_hex",
]
