import pytest
from eth_keys import keys
from eth_utils import keccak

from errors import FormatError, RecoveryError
from signing.address import derive_address
from signing.der import RawPublicKey
from signing.signature import (
    SECP256K1_HALF_N,
    SECP256K1_N,
    SignatureComponents,
    normalize_signature,
    recover_address,
    resolve_recovery_id,
)

from .vectors import KEY_ONE_ADDRESS

KEY_ONE = keys.PrivateKey((1).to_bytes(32, "big"))


def test_high_s_is_flipped():
    r, s = normalize_signature(7, SECP256K1_N - 1)
    assert (r, s) == (7, 1)

    r, s = normalize_signature(7, SECP256K1_HALF_N + 1)
    assert s == SECP256K1_N - (SECP256K1_HALF_N + 1)
    assert s <= SECP256K1_HALF_N


def test_low_s_is_unchanged_and_idempotent():
    assert normalize_signature(7, SECP256K1_HALF_N) == (7, SECP256K1_HALF_N)
    assert normalize_signature(7, 1) == (7, 1)
    once = normalize_signature(9, SECP256K1_N - 12345)
    assert normalize_signature(*once) == once


@pytest.mark.parametrize("r,s", [(0, 1), (1, 0), (SECP256K1_N, 1), (1, SECP256K1_N)])
def test_out_of_range_components_rejected(r, s):
    with pytest.raises(FormatError):
        normalize_signature(r, s)


def test_resolve_matches_signing_key():
    digest = keccak(b"kms signer test digest")
    sig = KEY_ONE.sign_msg_hash(digest)
    assert resolve_recovery_id(KEY_ONE_ADDRESS, digest, sig.r, sig.s) == sig.v


def test_resolve_after_normalization():
    digest = keccak(b"another digest")
    sig = KEY_ONE.sign_msg_hash(digest)
    # present the high-s twin; normalization must bring back a resolvable pair
    high_s = sig.s if sig.s > SECP256K1_HALF_N else SECP256K1_N - sig.s
    r, s = normalize_signature(sig.r, high_s)
    recid = resolve_recovery_id(KEY_ONE_ADDRESS, digest, r, s)
    assert recid in (0, 1)
    assert recover_address(digest, r, s, recid) == KEY_ONE_ADDRESS


def test_only_one_candidate_matches():
    digest = keccak(b"two candidates")
    sig = KEY_ONE.sign_msg_hash(digest)
    candidates = [recover_address(digest, sig.r, sig.s, v) for v in (0, 1)]
    assert candidates.count(KEY_ONE_ADDRESS) == 1


def test_flipped_digest_bit_fails_closed():
    digest = keccak(b"flip me")
    sig = KEY_ONE.sign_msg_hash(digest)
    tampered = bytes([digest[0] ^ 0x01]) + digest[1:]
    with pytest.raises(RecoveryError) as e:
        resolve_recovery_id(KEY_ONE_ADDRESS, tampered, sig.r, sig.s)
    assert e.value.code == "recovery_id_not_found"
    assert e.value.data["digest_length"] == 32


def test_wrong_address_fails_closed():
    digest = keccak(b"wrong owner")
    sig = KEY_ONE.sign_msg_hash(digest)
    with pytest.raises(RecoveryError):
        resolve_recovery_id("0x" + "ab" * 20, digest, sig.r, sig.s)


def test_resolve_requires_32_byte_digest():
    with pytest.raises(ValueError):
        resolve_recovery_id(KEY_ONE_ADDRESS, b"\x00" * 31, 1, 1)


def test_message_hex_layout():
    sig = SignatureComponents(r=1, s=2).with_recovery_id(1)
    out = sig.to_message_hex()
    assert len(out) == 132
    assert out == "0x" + "00" * 31 + "01" + "00" * 31 + "02" + "1c"


def test_message_hex_requires_recovery_id():
    with pytest.raises(ValueError):
        SignatureComponents(r=1, s=2).to_message_hex()
    with pytest.raises(ValueError):
        SignatureComponents(r=1, s=2).with_recovery_id(2)


def test_recovered_address_uses_same_derivation_as_bound_key():
    digest = keccak(b"shared derivation")
    sig = KEY_ONE.sign_msg_hash(digest)
    expected = derive_address(RawPublicKey(b"\x04" + KEY_ONE.public_key.to_bytes()))
    assert recover_address(digest, sig.r, sig.s, sig.v) == expected == KEY_ONE_ADDRESS
