"""
Proof retrieval from an Ethereum node.

A fetch pins the block first (hash and number from the header), then asks
for eth_getProof at that exact number, so header and proof always describe
the same block. Each node call has its own timeout and is retried on
transport failures only; data-absence errors are final.
"""

from typing import Any, Dict, List, Optional, Union

from eth_utils import to_checksum_address

from witness_toolkit.proofs.oracle import BalanceOracle
from witness_toolkit.proofs.types import ProofBundle, TokenKind
from witness_toolkit.shared.exceptions import (
    ProofInconsistency,
    ProofKeyMismatch,
    ProofNotFound,
)
from witness_toolkit.shared.logging import get_logger
from witness_toolkit.shared.retry import RPC_RETRY_CONFIG, RetryConfig
from witness_toolkit.shared.services.web3_service import Web3Service
from witness_toolkit.utils.blockchain import (
    hex_to_bytes,
    storage_value_to_bytes,
    to_0x_hex,
)

_logger = get_logger(__name__)

BlockTag = Union[int, str]


def _key_as_int(key: Any) -> int:
    # Nodes may strip leading zeros from the echoed key
    if isinstance(key, int):
        return key
    return int.from_bytes(hex_to_bytes(key), "big")


def _nodes(raw_nodes: Optional[List[Any]]) -> List[bytes]:
    return [hex_to_bytes(node) for node in raw_nodes or []]


class ProofFetcher:
    """Fetch storage proofs into ProofBundle objects."""

    def __init__(
        self,
        web3_service: Web3Service,
        oracle: Optional[BalanceOracle] = None,
        retry_config: Optional[RetryConfig] = None,
        verify_consistency: bool = False,
    ):
        self.web3_service = web3_service
        self.retry_config = retry_config or RPC_RETRY_CONFIG
        self.oracle = oracle or BalanceOracle(web3_service, self.retry_config)
        self.verify_consistency = verify_consistency

    async def get_block(self, block_tag: BlockTag) -> Dict[str, Any]:
        """Block header for a number or tag (BlockNotFound if unknown)."""
        return await self.retry_config.run(
            self.web3_service.get_block,
            block_tag,
            operation_name="get_block",
        )

    async def _get_proof(
        self, contract: str, storage_key: bytes, block_number: int
    ) -> Dict[str, Any]:
        return await self.retry_config.run(
            self.web3_service.get_proof,
            contract,
            [storage_key],
            block_number,
            operation_name="get_proof",
        )

    async def fetch_proof(
        self,
        contract: str,
        storage_key: bytes,
        block_tag: BlockTag = "latest",
        holder: Optional[str] = None,
        token_kind: TokenKind = TokenKind.ERC20,
        token_id: Optional[int] = None,
    ) -> ProofBundle:
        """
        Fetch the account and storage proof of one storage key.

        Args:
            contract: Contract whose storage is proven (the proxy, if any)
            storage_key: 32-byte storage key
            block_tag: Block number or tag
            holder: When set (or `token_id` for ERC721), the oracle is read
                at the same block and recorded as `oracle_value`
            token_kind: Kind of mapping the key belongs to
            token_id: Token id for ERC721 cross-checks

        Returns:
            ProofBundle: Proof material pinned to one block

        Raises:
            BlockNotFound: Unknown or pruned block
            ProofNotFound: The node returned no storage proof entry
            ProofKeyMismatch: The echoed storage key differs from the request
            ProofInconsistency: A consistency re-fetch returned other nodes
            TransportFailure: The node stayed unreachable after retries
        """
        contract = to_checksum_address(contract)
        storage_key = bytes(storage_key)

        block = await self.get_block(block_tag)
        block_number = int(block["number"])
        block_hash = hex_to_bytes(block["hash"])
        state_root = block.get("stateRoot")

        proof = await self._get_proof(contract, storage_key, block_number)
        value, account_nodes, storage_nodes = self._parse_proof(
            proof, contract, storage_key, block_number
        )

        if self.verify_consistency:
            again = await self._get_proof(contract, storage_key, block_number)
            _, account_again, storage_again = self._parse_proof(
                again, contract, storage_key, block_number
            )
            if account_again != account_nodes or storage_again != storage_nodes:
                raise ProofInconsistency(
                    f"Proof nodes changed between fetches at block {block_number}",
                    {"contract": contract, "block": block_number},
                )

        oracle_value = None
        if holder is not None or token_id is not None:
            oracle_value = await self.oracle.read_ground_truth(
                contract,
                token_kind,
                block_number,
                holder=holder,
                token_id=token_id,
            )
            proven = int.from_bytes(value, "big")
            if TokenKind.parse(token_kind) == TokenKind.ERC721:
                proven &= (1 << 160) - 1
            if proven != oracle_value:
                _logger.warning(
                    f"Proven value {proven} differs from oracle value "
                    f"{oracle_value} on {contract} at block {block_number}"
                )

        _logger.info(
            f"Fetched proof for {contract} key {to_0x_hex(storage_key)} "
            f"at block {block_number}"
        )
        return ProofBundle(
            block_hash=block_hash,
            block_number=block_number,
            account_proof_nodes=account_nodes,
            storage_proof_nodes=storage_nodes,
            storage_value=value,
            contract_address=contract,
            storage_key=storage_key,
            state_root=hex_to_bytes(state_root) if state_root else None,
            oracle_value=oracle_value,
        )

    def _parse_proof(
        self,
        proof: Dict[str, Any],
        contract: str,
        storage_key: bytes,
        block_number: int,
    ):
        context = {
            "contract": contract,
            "storage_key": to_0x_hex(storage_key),
            "block": block_number,
        }
        entries = proof.get("storageProof") or []
        if not entries:
            raise ProofNotFound(
                f"No storage proof returned for {contract}", context
            )

        entry = entries[0]
        echoed = entry.get("key")
        if echoed is None or _key_as_int(echoed) != int.from_bytes(
            storage_key, "big"
        ):
            raise ProofKeyMismatch(
                f"Node echoed storage key {echoed!r}, requested "
                f"{to_0x_hex(storage_key)}",
                dict(context, echoed_key=str(echoed)),
            )

        value = storage_value_to_bytes(entry.get("value", 0))
        return (
            value,
            _nodes(proof.get("accountProof")),
            _nodes(entry.get("proof")),
        )
