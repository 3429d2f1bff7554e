from __future__ import annotations

from eth_utils import keccak, to_checksum_address

from .der import RawPublicKey


def derive_address(pub: RawPublicKey) -> str:
    """
    EVM address for an uncompressed public key: last 20 bytes of keccak256(X || Y),
    rendered with EIP-55 checksum casing.
    """
    digest = keccak(pub.to_bytes()[1:])
    return to_checksum_address("0x" + digest[-20:].hex())


def _norm(addr: str) -> str:
    s = addr.strip().lower()
    return s if s.startswith("0x") else "0x" + s


def same_address(a: str, b: str) -> bool:
    return _norm(a) == _norm(b)
