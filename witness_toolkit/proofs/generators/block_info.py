"""Block header encoder"""

from typing import Any, Dict, Union

import rlp
from hexbytes import HexBytes
from rlp.sedes import big_endian_int

from witness_toolkit.proofs.types import BlockInfo
from witness_toolkit.shared.services.web3_service import Web3Service
from witness_toolkit.utils.blockchain import to_0x_hex

BLOCK_HEADER = (
    "parentHash",
    "sha3Uncles",
    "miner",
    "stateRoot",
    "transactionsRoot",
    "receiptsRoot",
    "logsBloom",
    "difficulty",
    "number",
    "gasLimit",
    "gasUsed",
    "timestamp",
    "extraData",
    "mixHash",
    "nonce",
    "baseFeePerGas",
    "withdrawalsRoot",
    "blobGasUsed",
    "excessBlobGas",
    "parentBeaconBlockRoot",
    "requestsHash",
)

# The POA middleware moves extraData under this name
_FIELD_ALIASES = {"extraData": "proofOfAuthorityData"}


def _header_field(block: Dict[str, Any], key: str) -> Any:
    if key in block:
        return block[key]
    return block.get(_FIELD_ALIASES.get(key, key))


def encode_block_header(block: Dict[str, Any]) -> bytes:
    """Encode a block header -> RLP encoded"""
    block_header = []
    for key in BLOCK_HEADER:
        value = _header_field(block, key)
        if value is None:
            continue
        if isinstance(value, int):
            block_header.append(big_endian_int.serialize(value))
        else:
            block_header.append(HexBytes(value))
    return rlp.encode(block_header)


async def get_block_info(
    web3_service: Web3Service, block_identifier: Union[int, str]
) -> BlockInfo:
    """Get block info -> block number, hash, timestamp, state root, rlp encoded header"""
    block = await web3_service.get_block(block_identifier)
    encoded_header = encode_block_header(block)

    return {
        "block_number": int(block["number"]),
        "block_hash": to_0x_hex(block["hash"]),
        "block_timestamp": int(block["timestamp"]),
        "state_root": to_0x_hex(block["stateRoot"]),
        "rlp_block_header": to_0x_hex(encoded_header),
    }
