from .address import derive_address
from .base import Signer
from .der import RawPublicKey, decode_public_key, decode_signature
from .factory import get_key_service
from .keyservice import AwsKmsKeyService, HttpKeyService, KeyHandle, KeyService, LocalKeyService
from .kms_signer import KmsSigner
from .message import hash_personal_message
from .signature import SECP256K1_N, SignatureComponents, normalize_signature, resolve_recovery_id
from .transaction import (
    SignedTransaction,
    UnsignedTransaction,
    attach_signature,
    build_unsigned_encoding,
    compute_signing_digest,
)

__all__ = [
    "Signer",
    "KmsSigner",
    "KeyHandle",
    "KeyService",
    "AwsKmsKeyService",
    "HttpKeyService",
    "LocalKeyService",
    "get_key_service",
    "RawPublicKey",
    "decode_public_key",
    "decode_signature",
    "derive_address",
    "SECP256K1_N",
    "SignatureComponents",
    "normalize_signature",
    "resolve_recovery_id",
    "hash_personal_message",
    "UnsignedTransaction",
    "SignedTransaction",
    "build_unsigned_encoding",
    "compute_signing_digest",
    "attach_signature",
]
