"""
Commitment encoding, signing and verification.

Signatures are computed over `canonical_bytes(terms)`; any change to the
layout below breaks signature compatibility with other implementations.
Bump ENCODING_VERSION instead of editing it.
"""
import logging
from dataclasses import dataclass
from typing import Collection

from coincurve import PrivateKey

from ..errors import SerializationError
from .crypto import compressed_public_key, sign_compact, verify_secp256k1_signature
from .keys import KeyPair, U64_MAX

logger = logging.getLogger("codec")

ENCODING_VERSION = 1


@dataclass(frozen=True)
class DealTerms:
    amount: int
    deal_id: str
    buyer: str

    def to_dict(self) -> dict:
        return {"amount": self.amount, "deal_id": self.deal_id, "buyer": self.buyer}


@dataclass(frozen=True)
class SignedCommitment:
    public_key: bytes
    terms: DealTerms
    signature: bytes

    def to_wire(self) -> dict:
        return {
            "public_key": self.public_key.hex(),
            "terms": self.terms.to_dict(),
            "signature": self.signature.hex(),
        }

    @classmethod
    def from_wire(cls, data: dict) -> "SignedCommitment":
        """Parse the JSON wire form. Raises SerializationError if malformed."""
        try:
            terms = data["terms"]
            commitment = cls(
                public_key=bytes.fromhex(data["public_key"]),
                terms=DealTerms(
                    amount=terms["amount"],
                    deal_id=terms["deal_id"],
                    buyer=terms["buyer"],
                ),
                signature=bytes.fromhex(data["signature"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Malformed commitment: {e}") from e
        # Reject terms that cannot be encoded
        canonical_bytes(commitment.terms)
        return commitment


@dataclass(frozen=True)
class CommittedOutput:
    """The only information a successful proof discloses."""
    proved_amount: int
    deal_id: str
    buyer: str

    def to_dict(self) -> dict:
        return {"proved_amount": self.proved_amount, "deal_id": self.deal_id, "buyer": self.buyer}

    @classmethod
    def from_dict(cls, data: dict) -> "CommittedOutput":
        try:
            output = cls(
                proved_amount=data["proved_amount"],
                deal_id=data["deal_id"],
                buyer=data["buyer"],
            )
        except (KeyError, TypeError) as e:
            raise SerializationError(f"Malformed committed output: {e}") from e
        if not _is_u64(output.proved_amount) or not isinstance(output.deal_id, str) \
                or not isinstance(output.buyer, str):
            raise SerializationError("Malformed committed output field types")
        return output


def _is_u64(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= U64_MAX


def _encode_str(value, field: str) -> bytes:
    if not isinstance(value, str):
        raise SerializationError(f"{field} must be a string")
    try:
        raw = value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise SerializationError(f"{field} is not encodable as UTF-8") from e
    return len(raw).to_bytes(8, "little") + raw


def canonical_bytes(terms: DealTerms) -> bytes:
    """
    Canonical pre-sign encoding of deal terms.

    Layout (version 1):
        version: u8                  = 1          // 1 byte
        amount: u64 LE                            // 8 bytes
        deal_id_len: u64 LE                       // 8 bytes
        deal_id: [u8; N]             UTF-8        // N bytes
        buyer_len: u64 LE                         // 8 bytes
        buyer: [u8; M]               UTF-8        // M bytes

    Everything after the version byte matches bincode's default encoding
    of {amount: u64, deal_id: String, buyer: String}.
    """
    if not _is_u64(terms.amount):
        raise SerializationError(f"amount must be a uint64, got {terms.amount!r}")
    return (
        bytes([ENCODING_VERSION])
        + terms.amount.to_bytes(8, "little")
        + _encode_str(terms.deal_id, "deal_id")
        + _encode_str(terms.buyer, "buyer")
    )


def decode_terms(data: bytes) -> DealTerms:
    """Inverse of canonical_bytes. Raises SerializationError on any malformation."""
    view = memoryview(data)
    if len(view) < 1 or view[0] != ENCODING_VERSION:
        raise SerializationError("Unknown or missing encoding version")
    offset = 1

    def take(n: int) -> bytes:
        nonlocal offset
        if n > len(view) - offset:
            raise SerializationError("Truncated deal terms encoding")
        chunk = bytes(view[offset:offset + n])
        offset += n
        return chunk

    def take_str(field: str) -> str:
        length = int.from_bytes(take(8), "little")
        try:
            return take(length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise SerializationError(f"{field} is not valid UTF-8") from e

    amount = int.from_bytes(take(8), "little")
    deal_id = take_str("deal_id")
    buyer = take_str("buyer")
    if offset != len(view):
        raise SerializationError("Trailing bytes after deal terms")
    return DealTerms(amount=amount, deal_id=deal_id, buyer=buyer)


def sign(key: KeyPair | PrivateKey, amount: int, deal_id: str, buyer: str) -> SignedCommitment:
    """Build deal terms and sign their canonical encoding."""
    private_key = key.private_key if isinstance(key, KeyPair) else key
    terms = DealTerms(amount=amount, deal_id=deal_id, buyer=buyer)
    signature = sign_compact(private_key, canonical_bytes(terms))
    return SignedCommitment(
        public_key=compressed_public_key(private_key),
        terms=terms,
        signature=signature,
    )


def verify_signature(commitment: SignedCommitment) -> bool:
    """Signature check only; never raises."""
    try:
        message = canonical_bytes(commitment.terms)
    except SerializationError:
        return False
    except Exception as e:
        logger.warning(f"Could not encode commitment terms: {e}")
        return False
    is_valid, reason = verify_secp256k1_signature(message, commitment.public_key, commitment.signature)
    if not is_valid:
        logger.debug(f"Commitment signature rejected: {reason}")
    return is_valid


def verify(commitment: SignedCommitment, allowed_keys: Collection[bytes]) -> bool:
    """True iff the key is allow-listed and the signature is valid."""
    try:
        if commitment.public_key not in allowed_keys:
            return False
    except TypeError:
        return False
    return verify_signature(commitment)
