"""
Structural pre-flight checks for witnesses.

These checks do not verify Merkle proofs; they reject witnesses that are
obviously unusable (wrong widths, empty "mock" proof lists) before they
are transmitted.
"""

from typing import List

from witness_toolkit.proofs.codec import ADDRESS_SIZE, HASH_SIZE
from witness_toolkit.proofs.types import TokenKind, ValidationReport, Witness
from witness_toolkit.shared.exceptions import MalformedWitness
from witness_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)


class WitnessValidator:
    """Reject malformed or empty witnesses."""

    def validate(self, witness: Witness) -> ValidationReport:
        """
        Run every check and collect all failures.

        Returns:
            ValidationReport: valid only when no check failed
        """
        reasons: List[str] = []

        if len(witness.block_hash) != HASH_SIZE:
            reasons.append(
                f"block_hash must be {HASH_SIZE} bytes, "
                f"got {len(witness.block_hash)}"
            )
        if len(witness.holder_address) != ADDRESS_SIZE:
            reasons.append(
                f"holder_address must be {ADDRESS_SIZE} bytes, "
                f"got {len(witness.holder_address)}"
            )
        if len(witness.contract_address) != ADDRESS_SIZE:
            reasons.append(
                f"contract_address must be {ADDRESS_SIZE} bytes, "
                f"got {len(witness.contract_address)}"
            )
        if len(witness.storage_key) != HASH_SIZE:
            reasons.append(
                f"storage_key must be {HASH_SIZE} bytes, "
                f"got {len(witness.storage_key)}"
            )
        if not witness.account_proof:
            reasons.append("account_proof is empty")
        if not witness.storage_proof:
            reasons.append("storage_proof is empty")
        if witness.token_kind == TokenKind.ERC721 and witness.token_id is None:
            reasons.append("ERC721 witness has no token_id")

        return ValidationReport(valid=not reasons, reasons=tuple(reasons))

    def ensure_valid(self, witness: Witness) -> Witness:
        """Return the witness unchanged, or raise MalformedWitness."""
        report = self.validate(witness)
        if not report.valid:
            _logger.error(f"Rejected witness: {'; '.join(report.reasons)}")
            raise MalformedWitness(
                "Witness failed validation: " + "; ".join(report.reasons),
                list(report.reasons),
            )
        return witness
