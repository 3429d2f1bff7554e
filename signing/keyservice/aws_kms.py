from __future__ import annotations

import asyncio
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from errors import UpstreamError, classify_exception

from .base import KeyHandle, KeyService, check_digest

KEY_SPEC = "ECC_SECG_P256K1"
KEY_USAGE = "SIGN_VERIFY"
SIGNING_ALGORITHM = "ECDSA_SHA_256"


class AwsKmsKeyService(KeyService):
    """
    AWS KMS backed key service.

    boto3 is synchronous; every call is pushed to a worker thread so concurrent signing
    flows share one event loop. The boto3 client is thread-safe and shared.
    """

    def __init__(
        self,
        *,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        default_description: str = "EVM Wallet Key",
        client: Any = None,
    ) -> None:
        if client is None:
            client = boto3.client(
                "kms",
                region_name=region,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
            )
        self._client = client
        self._default_description = default_description

    async def _call(self, operation: str, key_id: Optional[str], **params: Any) -> dict:
        fn = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(fn, **params)
        except (ClientError, BotoCoreError) as e:
            raise classify_exception(e, operation=operation, key_id=key_id) from e

    async def create_key(self, description: Optional[str] = None) -> KeyHandle:
        resp = await self._call(
            "create_key",
            None,
            KeySpec=KEY_SPEC,
            KeyUsage=KEY_USAGE,
            Description=description or self._default_description,
        )
        key_id = (resp.get("KeyMetadata") or {}).get("KeyId")
        if not key_id:
            raise UpstreamError("kms_empty_response", "KMS CreateKey returned no KeyId", {"operation": "create_key"})
        return str(key_id)

    async def get_public_key(self, key_id: KeyHandle) -> bytes:
        resp = await self._call("get_public_key", key_id, KeyId=key_id)
        pub = resp.get("PublicKey")
        if not pub:
            raise UpstreamError(
                "kms_empty_response",
                "KMS GetPublicKey returned no PublicKey",
                {"operation": "get_public_key", "key_id": key_id},
            )
        return bytes(pub)

    async def sign_digest(self, key_id: KeyHandle, digest: bytes) -> bytes:
        resp = await self._call(
            "sign",
            key_id,
            KeyId=key_id,
            Message=check_digest(digest),
            MessageType="DIGEST",
            SigningAlgorithm=SIGNING_ALGORITHM,
        )
        sig = resp.get("Signature")
        if not sig:
            raise UpstreamError(
                "kms_empty_response",
                "KMS Sign returned no Signature",
                {"operation": "sign", "key_id": key_id, "digest_length": len(digest)},
            )
        return bytes(sig)
