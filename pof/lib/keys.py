"""
Deterministic party keys and the known-party registry.

Keys are derived from small integer party indices. This stands in for a
real identity / key-management layer: anyone who knows an index can derive
its private key.
"""
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional

from coincurve import PrivateKey

from .crypto import compressed_public_key, sha256_hex

logger = logging.getLogger("keys")

SEED = 31337
U64_MAX = 2**64 - 1

KNOWN_PARTY_INDICES = (0, 1)


@dataclass(frozen=True)
class KeyPair:
    index: int
    private_key: PrivateKey
    public_key: bytes  # 33-byte compressed SEC1


def secret_bytes(index: int) -> bytes:
    """
    32-byte secret scalar for a party index.

    Layout:
        (SEED + index) mod 2**64 as u64 LE   // 8 bytes
        zero padding                          // 24 bytes
    """
    if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index <= U64_MAX:
        raise ValueError(f"party index must be a uint64, got {index!r}")
    seeded = (SEED + index) & U64_MAX
    return seeded.to_bytes(8, "little") + b"\x00" * 24


@lru_cache(maxsize=256, typed=True)
def derive(index: int) -> KeyPair:
    """Derive the keypair for a party index. Same index, same keypair."""
    secret = secret_bytes(index)
    if secret == b"\x00" * 32:
        raise ValueError(f"party index {index} derives the zero scalar")
    private_key = PrivateKey(secret)
    return KeyPair(index=index, private_key=private_key,
                   public_key=compressed_public_key(private_key))


def allow_list(indices: Iterable[int] = KNOWN_PARTY_INDICES) -> frozenset[bytes]:
    """Public keys of the known parties."""
    return frozenset(derive(i).public_key for i in indices)


class PartyRegistry:
    """
    Maps party index -> public key for the parties allowed to commit funds.

    Injected into the HTTP layer and the proving backend so the allow-list
    has an explicit owner instead of being a process-wide constant.
    """

    def __init__(self, indices: Iterable[int] = ()):
        self._keys: dict[int, bytes] = {}
        for index in indices:
            self.register(index)

    @classmethod
    def default(cls) -> "PartyRegistry":
        from ..config import KNOWN_PARTIES
        return cls(KNOWN_PARTIES or KNOWN_PARTY_INDICES)

    def register(self, index: int) -> bytes:
        public_key = derive(index).public_key
        self._keys[index] = public_key
        logger.info(f"Registered party {index} key={sha256_hex(public_key)[:16]}")
        return public_key

    def unregister(self, index: int) -> None:
        if self._keys.pop(index, None) is not None:
            logger.info(f"Unregistered party {index}")

    def public_key(self, index: int) -> Optional[bytes]:
        return self._keys.get(index)

    def indices(self) -> list[int]:
        return sorted(self._keys)

    def allowed_keys(self) -> frozenset[bytes]:
        return frozenset(self._keys.values())

    def __contains__(self, public_key: bytes) -> bool:
        return public_key in self._keys.values()

    def __len__(self) -> int:
        return len(self._keys)
