"""
Witness wire codec.

A witness travels as one RLP list of 11 positional items, with no field
names, so an independent verifier only has to know the field order:

    [blockHash, blockNumber, holderAddress, contractAddress, storageKey,
     storageValue, [accountProofNodes], [storageProofNodes], chainId,
     tokenKind, tokenId]

Fixed-width fields are written at their declared width; integers use
canonical big-endian RLP; tokenId is empty when absent, otherwise 32 bytes.
"""

from typing import Any, List, Optional, Union

import rlp
from eth_utils import is_address, to_canonical_address
from rlp.exceptions import DecodingError, DeserializationError, SerializationError
from rlp.sedes import big_endian_int

from witness_toolkit.proofs.types import ProofBundle, TokenKind, Witness
from witness_toolkit.shared.exceptions import MalformedWitness
from witness_toolkit.utils.blockchain import (
    hex_to_bytes,
    storage_value_to_bytes,
    to_0x_hex,
)

FIELD_COUNT = 11
HASH_SIZE = 32
ADDRESS_SIZE = 20
TOKEN_ID_SIZE = 32

FIXED_WIDTHS = {
    "block_hash": HASH_SIZE,
    "holder_address": ADDRESS_SIZE,
    "contract_address": ADDRESS_SIZE,
    "storage_key": HASH_SIZE,
}


def _address_bytes(address: Union[str, bytes]) -> bytes:
    if isinstance(address, (bytes, bytearray)):
        return bytes(address)
    if not is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_canonical_address(address)


def build_witness(
    bundle: ProofBundle,
    holder_address: Union[str, bytes],
    chain_id: int,
    token_kind: TokenKind = TokenKind.ERC20,
    token_id: Optional[int] = None,
) -> Witness:
    """
    Fold a proof bundle into the canonical Witness record.

    The storage value is re-normalized so that an odd-length hex value
    from a node becomes whole bytes without changing its numeric value.
    """
    return Witness(
        block_hash=hex_to_bytes(bundle.block_hash),
        block_number=bundle.block_number,
        holder_address=_address_bytes(holder_address),
        contract_address=_address_bytes(bundle.contract_address),
        storage_key=hex_to_bytes(bundle.storage_key),
        storage_value=storage_value_to_bytes(bundle.storage_value),
        account_proof=bundle.account_proof_nodes,
        storage_proof=bundle.storage_proof_nodes,
        chain_id=chain_id,
        token_kind=token_kind,
        token_id=token_id,
    )


class WitnessCodec:
    """Encode and decode witnesses in the positional RLP wire format."""

    def _fixed(self, name: str, value: bytes) -> bytes:
        width = FIXED_WIDTHS[name]
        value = bytes(value)
        if len(value) > width:
            raise MalformedWitness(
                f"{name} is {len(value)} bytes, wider than {width}",
                [f"{name} exceeds {width} bytes"],
            )
        return value.rjust(width, b"\x00")

    def _uint(self, name: str, value: int) -> bytes:
        try:
            return big_endian_int.serialize(value)
        except SerializationError as e:
            raise MalformedWitness(
                f"{name} is not a valid unsigned integer: {value!r}",
                [f"invalid {name}"],
            ) from e

    def encode(self, witness: Witness) -> bytes:
        """Serialize a witness (fixed-width fields are left-padded)."""
        token_id = b""
        if witness.token_id is not None:
            if not 0 <= witness.token_id < 2 ** (8 * TOKEN_ID_SIZE):
                raise MalformedWitness(
                    f"token_id out of range: {witness.token_id}",
                    ["invalid token_id"],
                )
            token_id = witness.token_id.to_bytes(TOKEN_ID_SIZE, "big")

        payload = [
            self._fixed("block_hash", witness.block_hash),
            self._uint("block_number", witness.block_number),
            self._fixed("holder_address", witness.holder_address),
            self._fixed("contract_address", witness.contract_address),
            self._fixed("storage_key", witness.storage_key),
            bytes(witness.storage_value),
            list(witness.account_proof),
            list(witness.storage_proof),
            self._uint("chain_id", witness.chain_id),
            witness.token_kind.value.encode("ascii"),
            token_id,
        ]
        return rlp.encode(payload)

    def encode_hex(self, witness: Witness) -> str:
        return to_0x_hex(self.encode(witness))

    def decode(self, data: bytes) -> Witness:
        """
        Parse a wire witness.

        Raises:
            MalformedWitness: Not RLP, wrong shape, non-canonical integers,
                unknown token kind or fixed-width fields of the wrong width
        """
        try:
            items = rlp.decode(bytes(data))
        except DecodingError as e:
            raise MalformedWitness(f"Not a valid RLP payload: {e}") from e

        if not isinstance(items, list):
            raise MalformedWitness("Witness payload is not a list")
        if len(items) != FIELD_COUNT:
            raise MalformedWitness(
                f"Expected {FIELD_COUNT} fields, got {len(items)}",
                [f"field count {len(items)}"],
            )

        (
            block_hash,
            block_number,
            holder,
            contract,
            storage_key,
            storage_value,
            account_proof,
            storage_proof,
            chain_id,
            token_kind,
            token_id,
        ) = items

        reasons: List[str] = []
        for name, value in (
            ("block_hash", block_hash),
            ("holder_address", holder),
            ("contract_address", contract),
            ("storage_key", storage_key),
        ):
            if not isinstance(value, bytes) or len(value) != FIXED_WIDTHS[name]:
                reasons.append(f"{name} must be {FIXED_WIDTHS[name]} bytes")
        if not isinstance(storage_value, bytes):
            reasons.append("storage_value must be a byte string")
        for name, nodes in (
            ("account_proof", account_proof),
            ("storage_proof", storage_proof),
        ):
            if not isinstance(nodes, list) or not all(
                isinstance(node, bytes) for node in nodes
            ):
                reasons.append(f"{name} must be a flat list of byte strings")
        if not isinstance(token_id, bytes) or len(token_id) not in (
            0,
            TOKEN_ID_SIZE,
        ):
            reasons.append(f"token_id must be empty or {TOKEN_ID_SIZE} bytes")
        if reasons:
            raise MalformedWitness("; ".join(reasons), reasons)

        return Witness(
            block_hash=block_hash,
            block_number=self._decode_uint("block_number", block_number),
            holder_address=holder,
            contract_address=contract,
            storage_key=storage_key,
            storage_value=storage_value,
            account_proof=account_proof,
            storage_proof=storage_proof,
            chain_id=self._decode_uint("chain_id", chain_id),
            token_kind=self._decode_token_kind(token_kind),
            token_id=int.from_bytes(token_id, "big") if token_id else None,
        )

    def decode_hex(self, value: str) -> Witness:
        try:
            data = hex_to_bytes(value.strip())
        except ValueError as e:
            raise MalformedWitness(f"Not a hex string: {e}") from e
        return self.decode(data)

    def _decode_uint(self, name: str, value: Any) -> int:
        if not isinstance(value, bytes):
            raise MalformedWitness(f"{name} must be a byte string", [name])
        try:
            return big_endian_int.deserialize(value)
        except DeserializationError as e:
            raise MalformedWitness(
                f"{name} is not a canonical integer", [f"invalid {name}"]
            ) from e

    def _decode_token_kind(self, value: Any) -> TokenKind:
        if not isinstance(value, bytes):
            raise MalformedWitness("token_kind must be a byte string")
        try:
            return TokenKind(value.decode("ascii"))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedWitness(
                f"Unknown token kind {value!r}", ["unknown token_kind"]
            ) from e
