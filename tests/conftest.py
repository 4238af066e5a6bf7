"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests,
including FakeNode, an in-memory stand-in for Web3Service.
"""

import asyncio
from typing import Any, Dict, Optional

import pytest
from eth_utils import to_checksum_address
from hexbytes import HexBytes
from web3.exceptions import ContractLogicError

from witness_toolkit.proofs.storage_keys import (
    resolve_balance_key,
    resolve_ownership_key,
)
from witness_toolkit.shared.config import WitnessConfig
from witness_toolkit.shared.constants import SelectorConstants, StorageConstants
from witness_toolkit.shared.exceptions import BlockNotFound

LATEST_BLOCK = 21000000

ACCOUNT_PROOF = [b"\xf9\x02\x11" + b"\x01" * 40, b"\xf8\x51" + b"\x02" * 30]
STORAGE_PROOF = [b"\xf8\x91" + b"\x03" * 36, b"\xe2" + b"\x04" * 20]


def _word(value: int) -> bytes:
    return value.to_bytes(32, "big")


class FakeNode:
    """
    In-memory node serving the Web3Service read surface.

    Storage is kept per (address, key) and is the same at every known
    block. Blocks listed in `pruned` have headers but no state.
    """

    def __init__(self, chain_id: int = 31337, latest: int = LATEST_BLOCK):
        self.chain_id = chain_id
        self.latest = latest
        self.storage: Dict[tuple, int] = {}
        self.balances: Dict[tuple, int] = {}
        self.owners: Dict[tuple, str] = {}
        self.total_supply: Dict[str, int] = {}
        self.code: Dict[str, bytes] = {}
        self.reverting = set()
        self.pruned = set()
        self.echo_key: Optional[bytes] = None
        self.empty_storage_proof = False
        self.proof_variants = []
        self.account_proof = list(ACCOUNT_PROOF)
        self.storage_proof = list(STORAGE_PROOF)
        self.probe_delays: Dict[bytes, float] = {}
        self.storage_reads = []
        self.proof_requests = []
        self.calls = []

    # --- setup helpers ---------------------------------------------------

    def set_balance(self, contract: str, holder: str, slot: int, amount: int):
        contract = to_checksum_address(contract)
        holder = to_checksum_address(holder)
        self.balances[(contract, holder)] = amount
        self.storage[(contract, resolve_balance_key(holder, slot))] = amount

    def set_owner(self, contract: str, token_id: int, owner: str, slot: int):
        contract = to_checksum_address(contract)
        owner = to_checksum_address(owner)
        self.owners[(contract, token_id)] = owner
        self.storage[(contract, resolve_ownership_key(token_id, slot))] = int(
            owner, 16
        )

    def set_implementation(self, proxy: str, implementation: str):
        key = bytes.fromhex(StorageConstants.EIP1967_IMPLEMENTATION_SLOT[2:])
        self.storage[(to_checksum_address(proxy), key)] = int(implementation, 16)

    # --- Web3Service surface ---------------------------------------------

    def _number(self, block: Any) -> int:
        if isinstance(block, str):
            if block in ("latest", "safe", "finalized", "pending"):
                return self.latest
            if block == "earliest":
                return 0
            raise BlockNotFound(f"Unknown block tag {block}")
        if block > self.latest:
            raise BlockNotFound(f"Block {block} not found")
        return block

    async def get_chain_id(self) -> int:
        return self.chain_id

    async def get_block(self, block_identifier) -> Dict[str, Any]:
        number = self._number(block_identifier)
        return {
            "number": number,
            "hash": HexBytes(number.to_bytes(32, "big")),
            "parentHash": HexBytes((number - 1).to_bytes(32, "big")),
            "stateRoot": HexBytes(b"\x5a" * 32),
            "timestamp": 1700000000 + number * 12,
            "miner": HexBytes(b"\x00" * 20),
            "gasLimit": 30000000,
            "gasUsed": 0,
            "extraData": HexBytes(b""),
            "difficulty": 0,
        }

    async def get_storage_at(self, address, storage_key, block_identifier):
        self._number(block_identifier)
        address = to_checksum_address(address)
        self.storage_reads.append((address, bytes(storage_key)))
        delay = self.probe_delays.get(bytes(storage_key))
        if delay:
            await asyncio.sleep(delay)
        return _word(self.storage.get((address, bytes(storage_key)), 0))

    async def call(self, to, data, block_identifier) -> bytes:
        self._number(block_identifier)
        to = to_checksum_address(to)
        self.calls.append((to, data))
        if to in self.reverting:
            raise ContractLogicError("execution reverted")
        selector, args = data[:10], data[10:]
        if selector == SelectorConstants.BALANCE_OF:
            holder = to_checksum_address("0x" + args[-40:])
            if (to, holder) not in self.balances:
                return b""
            return _word(self.balances[(to, holder)])
        if selector == SelectorConstants.OWNER_OF:
            owner = self.owners.get((to, int(args, 16)))
            return _word(int(owner, 16) if owner else 0)
        if selector == SelectorConstants.TOTAL_SUPPLY:
            if to not in self.total_supply:
                return b""
            return _word(self.total_supply[to])
        return b""

    async def get_proof(self, address, storage_keys, block_identifier):
        number = self._number(block_identifier)
        if number in self.pruned:
            raise BlockNotFound(f"missing trie node at block {number}")
        address = to_checksum_address(address)
        key = bytes(storage_keys[0])
        self.proof_requests.append((address, key, number))

        account_proof = list(self.account_proof)
        if self.proof_variants:
            account_proof = self.proof_variants.pop(0)
        if self.empty_storage_proof:
            return {"accountProof": account_proof, "storageProof": []}
        return {
            "address": address,
            "accountProof": [HexBytes(n) for n in account_proof],
            "storageProof": [
                {
                    "key": HexBytes(self.echo_key or key),
                    "value": HexBytes(
                        hex(self.storage.get((address, key), 0))
                    ),
                    "proof": [HexBytes(n) for n in self.storage_proof],
                }
            ],
        }

    async def get_code(self, address, block_identifier) -> bytes:
        self._number(block_identifier)
        return self.code.get(to_checksum_address(address), b"")

    async def close(self) -> None:
        pass


@pytest.fixture
def fake_node() -> FakeNode:
    """Empty in-memory node."""
    return FakeNode()


@pytest.fixture
def witness_config() -> WitnessConfig:
    """Local config without optional providers or backoff delays."""
    return WitnessConfig(
        rpc_url="http://127.0.0.1:8545",
        chain_id=31337,
        use_bytecode_hints=False,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
    )


@pytest.fixture
def sample_token_address() -> str:
    """Sample ERC20 token address for tests."""
    return "0x5FbDB2315678afecb367f032d93F642f64180aa3"


@pytest.fixture
def sample_proxy_address() -> str:
    """Sample proxy address for tests."""
    return "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"


@pytest.fixture
def sample_implementation_address() -> str:
    """Sample implementation address for tests."""
    return "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0"


@pytest.fixture
def sample_holder_address() -> str:
    """Sample holder address for tests."""
    return "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


@pytest.fixture
def sample_block_number() -> int:
    """Sample block number for tests."""
    return LATEST_BLOCK - 100


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line("markers", "slow: mark test as slow-running")
