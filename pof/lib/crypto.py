"""
secp256k1 signing and verification helpers.

SECURITY: Verification functions FAIL CLOSED - malformed keys or signatures
return False, they never raise.
"""
import hashlib
import logging

from coincurve import PrivateKey, PublicKey
from coincurve.ecdsa import cdata_to_der, deserialize_compact

logger = logging.getLogger(__name__)

COMPACT_SIGNATURE_LEN = 64
COMPRESSED_PUBKEY_LEN = 33
UNCOMPRESSED_PUBKEY_LEN = 65


def sha256_hex(data: str | bytes) -> str:
    """Compute SHA-256 hash and return as hex string."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def compressed_public_key(private_key: PrivateKey) -> bytes:
    """33-byte SEC1 compressed encoding of the key's public point."""
    return private_key.public_key.format(compressed=True)


def sign_compact(private_key: PrivateKey, message: bytes) -> bytes:
    """
    Sign SHA-256(message) with deterministic (RFC 6979) ECDSA.

    Returns the 64-byte compact r || s encoding. libsecp256k1 always emits
    low-s signatures.
    """
    recoverable = private_key.sign_recoverable(message)
    # Strip the trailing recovery id
    return recoverable[:COMPACT_SIGNATURE_LEN]


def verify_secp256k1_signature(
    message: bytes,
    pubkey_bytes: bytes,
    signature: bytes,
) -> tuple[bool, str]:
    """
    Verify a secp256k1 signature over SHA-256(message).

    Args:
        message: The raw message bytes that were signed
        pubkey_bytes: Public key (33 bytes compressed or 65 bytes uncompressed)
        signature: 64 bytes compact r || s

    Returns:
        Tuple of (is_valid, message)
    """
    try:
        if len(pubkey_bytes) not in (COMPRESSED_PUBKEY_LEN, UNCOMPRESSED_PUBKEY_LEN):
            return False, f"Invalid public key length: {len(pubkey_bytes)} (expected 33 or 65)"

        pubkey = PublicKey(bytes(pubkey_bytes))

        sig_bytes = bytes(signature)
        # Exactly r || s, no recovery id
        if len(sig_bytes) != COMPACT_SIGNATURE_LEN:
            return False, f"Invalid signature length: {len(sig_bytes)} (expected 64)"

        der = cdata_to_der(deserialize_compact(sig_bytes))

        if pubkey.verify(der, message):
            return True, "Signature verified"
        return False, "Signature verification failed"

    except (ValueError, TypeError) as e:
        return False, f"Invalid key or signature format: {e}"
    except Exception as e:
        logger.warning(f"Unexpected signature verification error: {e}")
        return False, f"Verification error: {e}"
