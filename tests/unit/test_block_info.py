"""
Unit tests for block header encoding.
"""

import pytest
import rlp
from hexbytes import HexBytes

from witness_toolkit.proofs.generators.block_info import (
    encode_block_header,
    get_block_info,
)


def _header(**extra):
    header = {
        "parentHash": HexBytes(b"\x01" * 32),
        "sha3Uncles": HexBytes(b"\x02" * 32),
        "miner": "0x" + "33" * 20,
        "stateRoot": HexBytes(b"\x04" * 32),
        "transactionsRoot": HexBytes(b"\x05" * 32),
        "receiptsRoot": HexBytes(b"\x06" * 32),
        "logsBloom": HexBytes(b"\x00" * 256),
        "difficulty": 0,
        "number": 1024,
        "gasLimit": 30_000_000,
        "gasUsed": 21_000,
        "timestamp": 1_700_000_000,
        "extraData": HexBytes(b""),
        "mixHash": HexBytes(b"\x07" * 32),
        "nonce": HexBytes(b"\x00" * 8),
        "baseFeePerGas": 7,
    }
    header.update(extra)
    return header


class TestEncodeBlockHeader:
    """Tests for RLP header encoding."""

    def test_fields_in_header_order(self):
        decoded = rlp.decode(encode_block_header(_header()))
        assert len(decoded) == 16
        assert decoded[0] == b"\x01" * 32
        assert decoded[2] == b"\x33" * 20
        assert decoded[7] == b""
        assert decoded[8] == (1024).to_bytes(2, "big")
        assert decoded[15] == b"\x07"

    def test_optional_fields_skipped(self):
        """Pre-London headers simply have fewer fields."""
        header = _header()
        del header["baseFeePerGas"]
        assert len(rlp.decode(encode_block_header(header))) == 15

    def test_poa_extra_data_alias(self):
        header = _header()
        del header["extraData"]
        header["proofOfAuthorityData"] = HexBytes(b"\xab\xcd")
        decoded = rlp.decode(encode_block_header(header))
        assert decoded[12] == b"\xab\xcd"


class TestGetBlockInfo:
    """Tests for block info retrieval."""

    @pytest.mark.asyncio
    async def test_block_info(self, fake_node, sample_block_number):
        info = await get_block_info(fake_node, sample_block_number)
        assert info["block_number"] == sample_block_number
        assert info["block_hash"] == "0x" + sample_block_number.to_bytes(32, "big").hex()
        assert info["state_root"] == "0x" + "5a" * 32
        assert info["rlp_block_header"].startswith("0x")
