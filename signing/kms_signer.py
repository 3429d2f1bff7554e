from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Optional, Union

from cache import TTLCache
from errors import AppError, RecoveryError
from observability import Metrics, build_log_context, log_event

from .address import derive_address
from .base import Signer
from .der import RawPublicKey, decode_public_key, decode_signature
from .keyservice.base import KeyHandle, KeyService, check_digest
from .message import hash_personal_message
from .signature import SignatureComponents, normalize_signature, resolve_recovery_id
from .transaction import (
    SignedTransaction,
    UnsignedTransaction,
    attach_signature,
    build_unsigned_encoding,
    compute_signing_digest,
)


class KmsSigner(Signer):
    """
    EVM signer whose keys live in a custodial key service.

    This signer does NOT hold a private key. It asks the key service to sign a 32-byte
    digest, then locally normalizes the signature to low-s, resolves the recovery bit
    against the key's address and assembles the signed transaction / message signature.

    Steps of one flow run strictly in order:
    unsigned -> digest_computed -> signature_requested -> signature_normalized
    -> recovery_resolved -> signed
    Nothing from a failed flow is kept; the signer is safe to call again from a retry
    wrapper owned by the caller.
    """

    def __init__(
        self,
        key_service: KeyService,
        *,
        metrics: Optional[Metrics] = None,
        address_cache_ttl_sec: float = 0.0,
    ) -> None:
        self._keys = key_service
        self._metrics = metrics or Metrics()
        self._addresses: TTLCache[KeyHandle, str] = TTLCache(ttl_seconds=address_cache_ttl_sec)

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    def _failed(self, operation: str, ctx: Dict[str, Any], e: Exception) -> None:
        if isinstance(e, AppError):
            e.data.setdefault("operation", operation)
            if ctx.get("key_id") is not None:
                e.data.setdefault("key_id", ctx["key_id"])
        code = getattr(e, "code", type(e).__name__)
        self._metrics.inc("sign_failures_total" if operation.startswith("sign") else f"{operation}_failures_total")
        if isinstance(e, RecoveryError):
            self._metrics.inc("recovery_failures_total")
        log_event(f"{operation}_failed", ctx=ctx, data={"error_code": code, "error": str(e)}, level=logging.ERROR)

    # -- key operations ---------------------------------------------------------------

    async def create_key(self, description: Optional[str] = None) -> KeyHandle:
        ctx = build_log_context(operation="create_key")
        try:
            key_id = await self._keys.create_key(description)
        except Exception as e:
            self._failed("create_key", ctx, e)
            raise
        log_event("key_created", ctx=ctx, data={"key_id": key_id})
        return key_id

    async def _get_public_key(self, key_id: KeyHandle) -> RawPublicKey:
        return decode_public_key(await self._keys.get_public_key(key_id))

    async def _get_address(self, key_id: KeyHandle) -> str:
        cached = self._addresses.get(key_id)
        if cached:
            return cached
        address = derive_address(await self._get_public_key(key_id))
        self._addresses.set(key_id, address)
        self._metrics.set_gauge("address_cache_size", len(self._addresses))
        return address

    async def get_public_key(self, key_id: KeyHandle) -> RawPublicKey:
        ctx = build_log_context(operation="get_public_key", key_id=key_id)
        try:
            return await self._get_public_key(key_id)
        except Exception as e:
            self._failed("get_public_key", ctx, e)
            raise

    async def get_address(self, key_id: KeyHandle) -> str:
        ctx = build_log_context(operation="get_address", key_id=key_id)
        try:
            return await self._get_address(key_id)
        except Exception as e:
            self._failed("get_address", ctx, e)
            raise

    # -- signature pipeline -----------------------------------------------------------

    async def _sign_digest(self, key_id: KeyHandle, digest: bytes, ctx: Dict[str, Any]) -> SignatureComponents:
        log_event("signature_requested", ctx=ctx, level=logging.DEBUG)
        r, s = decode_signature(await self._keys.sign_digest(key_id, digest))
        r_n, s_n = normalize_signature(r, s)
        if s_n != s:
            self._metrics.inc("s_normalized_total")
        log_event("signature_normalized", ctx=ctx, data={"flipped_s": s_n != s}, level=logging.DEBUG)
        return SignatureComponents(r=r_n, s=s_n)

    async def _sign_and_resolve(self, key_id: KeyHandle, digest: bytes, ctx: Dict[str, Any]) -> SignatureComponents:
        sig = await self._sign_digest(key_id, digest, ctx)
        address = await self._get_address(key_id)
        recid = resolve_recovery_id(address, digest, sig.r, sig.s)
        log_event("recovery_resolved", ctx=ctx, data={"recovery_id": recid, "address": address}, level=logging.DEBUG)
        return sig.with_recovery_id(recid)

    async def sign_digest(self, key_id: KeyHandle, digest: bytes) -> SignatureComponents:
        """
        Low-s (r, s) over `digest`; the recovery id is left unresolved.
        """
        ctx = build_log_context(operation="sign_digest", key_id=key_id)
        try:
            return await self._sign_digest(key_id, check_digest(digest), ctx)
        except Exception as e:
            self._failed("sign_digest", ctx, e)
            raise

    async def recover_recovery_id(self, key_id: KeyHandle, digest: bytes, r: int, s: int) -> int:
        ctx = build_log_context(operation="recover_recovery_id", key_id=key_id)
        try:
            address = await self._get_address(key_id)
            return resolve_recovery_id(address, check_digest(digest), r, s)
        except Exception as e:
            self._failed("recover_recovery_id", ctx, e)
            raise

    async def sign_transaction(
        self,
        key_id: KeyHandle,
        tx: Union[UnsignedTransaction, Dict[str, Any]],
        *,
        chain_id: int | None = None,
    ) -> SignedTransaction:
        ctx = build_log_context(operation="sign_transaction", key_id=key_id)
        try:
            if isinstance(tx, UnsignedTransaction):
                unsigned = tx if chain_id is None else replace(tx, chain_id=int(chain_id))
            else:
                unsigned = UnsignedTransaction.from_dict(tx, chain_id=chain_id)
            ctx["chain_id"] = unsigned.chain_id

            encoding = build_unsigned_encoding(unsigned)
            digest = compute_signing_digest(encoding)
            log_event(
                "digest_computed",
                ctx=ctx,
                data={"digest": digest, "encoding_length": len(encoding)},
                level=logging.DEBUG,
            )

            sig = await self._sign_and_resolve(key_id, digest, ctx)
            signed = attach_signature(unsigned, sig.r, sig.s, sig.recovery_id)
        except Exception as e:
            self._failed("sign_transaction", ctx, e)
            raise

        self._metrics.inc("sign_transaction_total")
        log_event(
            "transaction_signed",
            ctx=ctx,
            data={"tx_hash": signed.hash, "nonce": unsigned.nonce, "serialized_length": len(signed.serialized)},
        )
        return signed

    async def sign_message(self, key_id: KeyHandle, message: Union[str, bytes]) -> str:
        """
        personal_sign style signature: 0x || r || s || v (v = 27 or 28).
        """
        ctx = build_log_context(operation="sign_message", key_id=key_id)
        try:
            digest = hash_personal_message(message)
            log_event("digest_computed", ctx=ctx, data={"digest": digest}, level=logging.DEBUG)
            sig = await self._sign_and_resolve(key_id, digest, ctx)
            out = sig.to_message_hex()
        except Exception as e:
            self._failed("sign_message", ctx, e)
            raise

        self._metrics.inc("sign_message_total")
        log_event("message_signed", ctx=ctx, data={"digest": digest})
        return out
