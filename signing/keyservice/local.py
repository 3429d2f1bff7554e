from __future__ import annotations

import uuid
from typing import Dict, Optional

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, utils

from errors import UpstreamError

from .base import KeyHandle, KeyService, check_digest


class LocalKeyService(KeyService):
    """
    In-process secp256k1 keys returning the same DER shapes as KMS.

    Development and tests only: the private keys live in this process. Signatures use a
    random nonce and are not low-s normalized, like a real HSM.
    """

    def __init__(self) -> None:
        self._keys: Dict[KeyHandle, ec.EllipticCurvePrivateKey] = {}

    def import_private_key(self, secret: int | bytes, key_id: Optional[KeyHandle] = None) -> KeyHandle:
        value = int.from_bytes(secret, "big") if isinstance(secret, (bytes, bytearray)) else int(secret)
        handle = key_id or str(uuid.uuid4())
        self._keys[handle] = ec.derive_private_key(value, ec.SECP256K1())
        return handle

    def _key(self, key_id: KeyHandle, operation: str) -> ec.EllipticCurvePrivateKey:
        key = self._keys.get(key_id)
        if key is None:
            raise UpstreamError("key_not_found", f"unknown key {key_id}", {"operation": operation, "key_id": key_id})
        return key

    async def create_key(self, description: Optional[str] = None) -> KeyHandle:
        handle = str(uuid.uuid4())
        self._keys[handle] = ec.generate_private_key(ec.SECP256K1())
        return handle

    async def get_public_key(self, key_id: KeyHandle) -> bytes:
        return self._key(key_id, "get_public_key").public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    async def sign_digest(self, key_id: KeyHandle, digest: bytes) -> bytes:
        # Prehashed: the 32 bytes are signed as-is
        return self._key(key_id, "sign_digest").sign(
            check_digest(digest),
            ec.ECDSA(utils.Prehashed(hashes.SHA256())),
        )
