from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

# Opaque key id / ARN understood by the key service. No secret material.
KeyHandle = str

DIGEST_LEN = 32


def check_digest(digest: bytes) -> bytes:
    if len(digest) != DIGEST_LEN:
        raise ValueError(f"digest must be {DIGEST_LEN} bytes, got {len(digest)}")
    return bytes(digest)


class KeyService(ABC):
    """
    A custodial secp256k1 key store. Keys never leave it; it only hands back DER-encoded
    public keys and DER-encoded ECDSA signatures over caller-supplied 32-byte digests
    (it never hashes).
    """

    @abstractmethod
    async def create_key(self, description: Optional[str] = None) -> KeyHandle:
        raise NotImplementedError

    @abstractmethod
    async def get_public_key(self, key_id: KeyHandle) -> bytes:
        """DER SubjectPublicKeyInfo."""
        raise NotImplementedError

    @abstractmethod
    async def sign_digest(self, key_id: KeyHandle, digest: bytes) -> bytes:
        """DER ECDSA-Sig-Value over exactly `digest`."""
        raise NotImplementedError
