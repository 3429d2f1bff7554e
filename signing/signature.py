from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from eth_keys import keys
from eth_keys.exceptions import BadSignature

from errors import FormatError, RecoveryError

from .address import derive_address, same_address
from .der import RawPublicKey

SECP256K1_N = int(
    "0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141",
    16,
)
SECP256K1_HALF_N = SECP256K1_N // 2

# personal_sign / eth_sign encode the recovery id with this offset
LEGACY_V_OFFSET = 27


@dataclass(frozen=True)
class SignatureComponents:
    r: int
    s: int
    recovery_id: Optional[int] = None

    @property
    def is_canonical(self) -> bool:
        return 0 < self.s <= SECP256K1_HALF_N

    def with_recovery_id(self, recovery_id: int) -> "SignatureComponents":
        if recovery_id not in (0, 1):
            raise ValueError(f"recovery id must be 0 or 1, got {recovery_id}")
        return replace(self, recovery_id=recovery_id)

    def to_message_hex(self) -> str:
        """
        r (32 bytes) || s (32 bytes) || v, with v = recovery_id + 27.
        """
        if self.recovery_id is None:
            raise ValueError("recovery id not resolved")
        v = self.recovery_id + LEGACY_V_OFFSET
        return "0x" + self.r.to_bytes(32, "big").hex() + self.s.to_bytes(32, "big").hex() + f"{v:02x}"


def normalize_signature(r: int, s: int) -> Tuple[int, int]:
    """
    Return the low-s form of (r, s) (EIP-2). Applying it twice is the same as once.
    """
    if r <= 0 or r >= SECP256K1_N:
        raise FormatError("invalid_signature_r", "r out of range [1, n)", {"r_bits": int(r).bit_length()})
    if s <= 0 or s >= SECP256K1_N:
        raise FormatError("invalid_signature_s", "s out of range [1, n)", {"s_bits": int(s).bit_length()})
    if s > SECP256K1_HALF_N:
        s = SECP256K1_N - s
    return r, s


def recover_address(digest: bytes, r: int, s: int, recovery_id: int) -> Optional[str]:
    """
    Address of the key that produced (r, s, recovery_id) over `digest`, or None when no
    point exists for that candidate.
    """
    sig = keys.Signature(vrs=(recovery_id, r, s))
    try:
        pub = sig.recover_public_key_from_msg_hash(digest)
    except BadSignature:
        return None
    return derive_address(RawPublicKey(b"\x04" + pub.to_bytes()))


def resolve_recovery_id(bound_address: str, digest: bytes, r: int, s: int) -> int:
    """
    Find the recovery bit whose recovered key matches `bound_address`.

    (r, s) alone is consistent with two public keys; only one of them is ours. There is
    no fallback: a mismatch on both candidates means the digest/signature pair is not
    from this key.
    """
    if len(digest) != 32:
        raise ValueError(f"digest must be 32 bytes, got {len(digest)}")
    for recid in (0, 1):
        recovered = recover_address(digest, r, s, recid)
        if recovered is not None and same_address(recovered, bound_address):
            return recid
    raise RecoveryError(
        "recovery_id_not_found",
        "could not determine recovery id (address mismatch)",
        {"address": bound_address, "digest": "0x" + digest.hex(), "digest_length": len(digest)},
    )
