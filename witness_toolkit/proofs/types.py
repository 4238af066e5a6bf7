"""
Type definitions for Ethereum state witnesses.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, TypedDict


def _hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


# =============================================================================
# TOKEN TYPES
# =============================================================================


class TokenKind(str, Enum):
    """What the witnessed mapping stores."""

    ERC20 = "ERC20"  # mapping(address => uint256) balances
    ERC721 = "ERC721"  # mapping(uint256 => address) owners

    @classmethod
    def parse(cls, value: Any) -> "TokenKind":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().upper().replace("-", "")
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(
                f"Invalid token kind: {value}. Must be ERC20 or ERC721"
            )


# =============================================================================
# BLOCK TYPES
# =============================================================================


class BlockInfo(TypedDict):
    """Ethereum block information for proof verification."""

    block_number: int  # Block number
    block_hash: str  # Block hash (hex string)
    block_timestamp: int  # Block timestamp
    state_root: str  # State root (hex string)
    rlp_block_header: str  # RLP encoded block header


# =============================================================================
# PROXY TYPES
# =============================================================================


@dataclass(frozen=True)
class ProxyInfo:
    """Where code lives versus where storage lives."""

    original_address: str
    implementation_address: str
    is_proxy: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_address": self.original_address,
            "implementation_address": self.implementation_address,
            "is_proxy": self.is_proxy,
        }


# =============================================================================
# SLOT DISCOVERY TYPES
# =============================================================================


@dataclass(frozen=True)
class SlotCandidate:
    """A slot index to try, tagged with the provider that proposed it."""

    slot: int
    source: str


@dataclass(frozen=True)
class SlotDiscoveryResult:
    """Outcome of a slot search.

    `reason` is None on success, otherwise "ZeroGroundTruthBalance" or
    "SlotNotDiscoverable".
    """

    found: bool
    slot: Optional[int]
    ground_truth: int
    reason: Optional[str] = None
    source: Optional[str] = None
    candidates_tried: int = 0
    warnings: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "found": self.found,
            "slot": self.slot,
            "ground_truth": str(self.ground_truth),
            "reason": self.reason,
            "source": self.source,
            "candidates_tried": self.candidates_tried,
            "warnings": list(self.warnings),
        }


# =============================================================================
# PROOF TYPES
# =============================================================================


@dataclass(frozen=True)
class ProofBundle:
    """Raw proof material for one (contract, storage key, block) query."""

    block_hash: bytes
    block_number: int
    account_proof_nodes: Tuple[bytes, ...]
    storage_proof_nodes: Tuple[bytes, ...]
    storage_value: bytes  # Big-endian, even number of hex digits
    contract_address: str = ""
    storage_key: bytes = b""
    state_root: Optional[bytes] = None
    oracle_value: Optional[int] = None  # balanceOf() at the same block, if read

    def __post_init__(self):
        object.__setattr__(
            self, "account_proof_nodes", tuple(self.account_proof_nodes)
        )
        object.__setattr__(
            self, "storage_proof_nodes", tuple(self.storage_proof_nodes)
        )

    @property
    def value_as_int(self) -> int:
        return int.from_bytes(self.storage_value, "big")


@dataclass(frozen=True)
class Witness:
    """
    Canonical, transmittable proof that a storage value held at a block.

    Field widths are checked by WitnessValidator, not here, so that
    deliberately malformed witnesses can still be represented and rejected.
    """

    block_hash: bytes  # 32 bytes
    block_number: int
    holder_address: bytes  # 20 bytes
    contract_address: bytes  # 20 bytes
    storage_key: bytes  # 32 bytes
    storage_value: bytes  # Variable length
    account_proof: Tuple[bytes, ...] = field(default_factory=tuple)
    storage_proof: Tuple[bytes, ...] = field(default_factory=tuple)
    chain_id: int = 1
    token_kind: TokenKind = TokenKind.ERC20
    token_id: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(
            self, "account_proof", tuple(bytes(n) for n in self.account_proof)
        )
        object.__setattr__(
            self, "storage_proof", tuple(bytes(n) for n in self.storage_proof)
        )
        object.__setattr__(self, "token_kind", TokenKind.parse(self.token_kind))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly rendering (0x-hex strings)."""
        return {
            "block_hash": _hex(self.block_hash),
            "block_number": self.block_number,
            "holder_address": _hex(self.holder_address),
            "contract_address": _hex(self.contract_address),
            "storage_key": _hex(self.storage_key),
            "storage_value": _hex(self.storage_value),
            "account_proof": [_hex(n) for n in self.account_proof],
            "storage_proof": [_hex(n) for n in self.storage_proof],
            "chain_id": self.chain_id,
            "token_kind": self.token_kind.value,
            "token_id": (
                str(self.token_id) if self.token_id is not None else None
            ),
        }


@dataclass(frozen=True)
class ValidationReport:
    """Structural pre-flight check outcome."""

    valid: bool
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class WitnessRequest:
    """One witness to generate."""

    contract: str
    holder: str
    block: Any = "latest"  # Block number or symbolic tag
    token_kind: TokenKind = TokenKind.ERC20
    token_id: Optional[int] = None
    slot: Optional[int] = None  # Skip discovery heuristics, still cross-checked


@dataclass(frozen=True)
class WitnessArtifact:
    """A validated witness with its wire encoding."""

    witness: Witness
    encoded: bytes
    discovery: SlotDiscoveryResult
    proxy_info: ProxyInfo

    def to_dict(self) -> Dict[str, Any]:
        return {
            "witness": self.witness.to_dict(),
            "encoded": _hex(self.encoded),
            "discovery": self.discovery.to_dict(),
            "proxy": self.proxy_info.to_dict(),
        }
