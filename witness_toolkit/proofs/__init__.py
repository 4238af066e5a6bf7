from witness_toolkit.proofs.codec import WitnessCodec, build_witness
from witness_toolkit.proofs.discovery import SlotDiscoveryEngine
from witness_toolkit.proofs.fetcher import ProofFetcher
from witness_toolkit.proofs.manager import WitnessManager
from witness_toolkit.proofs.oracle import BalanceOracle
from witness_toolkit.proofs.proxy import ProxyResolver, extract_slot_hints
from witness_toolkit.proofs.storage_keys import (
    resolve_balance_key,
    resolve_mapping_key,
    resolve_ownership_key,
)
from witness_toolkit.proofs.types import (
    BlockInfo,
    ProofBundle,
    ProxyInfo,
    SlotDiscoveryResult,
    TokenKind,
    ValidationReport,
    Witness,
    WitnessArtifact,
    WitnessRequest,
)
from witness_toolkit.proofs.validator import WitnessValidator

__all__ = [
    "WitnessManager",
    "BalanceOracle",
    "ProxyResolver",
    "SlotDiscoveryEngine",
    "ProofFetcher",
    "WitnessCodec",
    "WitnessValidator",
    "build_witness",
    "extract_slot_hints",
    "resolve_balance_key",
    "resolve_ownership_key",
    "resolve_mapping_key",
    "BlockInfo",
    "ProofBundle",
    "ProxyInfo",
    "SlotDiscoveryResult",
    "TokenKind",
    "ValidationReport",
    "Witness",
    "WitnessArtifact",
    "WitnessRequest",
]
