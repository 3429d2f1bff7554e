"""
DER decoding for the two structures a key service hands back:

- SubjectPublicKeyInfo:  SEQUENCE { SEQUENCE { OID, OID }, BIT STRING }
- ECDSA-Sig-Value:       SEQUENCE { INTEGER r, INTEGER s }

Signatures go through cryptography's `decode_dss_signature`. The public key is read by
the small tagged reader below, which keeps the raw BIT STRING payload so a compressed
point can be rejected. Only the node kinds SPKI uses are modelled (Sequence, BitString,
Integer); anything else (OIDs, NULL, ...) is kept as an opaque `Other` node.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from errors import FormatError

TAG_INTEGER = 0x02
TAG_BIT_STRING = 0x03
TAG_SEQUENCE = 0x30

# SPKI nests one SEQUENCE inside another; nothing we accept goes deeper
MAX_SEQUENCE_DEPTH = 2

RAW_PUBLIC_KEY_LEN = 65
UNCOMPRESSED_PREFIX = 0x04


@dataclass(frozen=True)
class Sequence:
    children: Tuple["Node", ...]


@dataclass(frozen=True)
class BitString:
    unused_bits: int
    payload: bytes


@dataclass(frozen=True)
class Integer:
    value: int


@dataclass(frozen=True)
class Other:
    tag: int
    content: bytes


Node = Union[Sequence, BitString, Integer, Other]


@dataclass(frozen=True)
class RawPublicKey:
    """
    Uncompressed secp256k1 point: 0x04 || X (32 bytes) || Y (32 bytes).
    """

    data: bytes

    def __post_init__(self) -> None:
        if len(self.data) != RAW_PUBLIC_KEY_LEN:
            raise FormatError(
                "invalid_public_key_length",
                f"public key must be {RAW_PUBLIC_KEY_LEN} bytes, got {len(self.data)}",
                {"length": len(self.data)},
            )
        if self.data[0] != UNCOMPRESSED_PREFIX:
            raise FormatError(
                "invalid_public_key_prefix",
                f"public key must be uncompressed (0x04 prefix), got 0x{self.data[0]:02x}",
                {"prefix": self.data[0], "length": len(self.data)},
            )

    @property
    def x(self) -> int:
        return int.from_bytes(self.data[1:33], "big")

    @property
    def y(self) -> int:
        return int.from_bytes(self.data[33:65], "big")

    def to_bytes(self) -> bytes:
        return self.data


def _read_length(buf: bytes, pos: int) -> Tuple[int, int]:
    if pos >= len(buf):
        raise FormatError("der_truncated", "missing length octet", {"offset": pos, "length": len(buf)})
    first = buf[pos]
    pos += 1
    if first < 0x80:
        return first, pos
    n = first & 0x7F
    # 0x80 is the BER indefinite form, not allowed in DER
    if n == 0 or n > 4:
        raise FormatError("der_bad_length", f"unsupported length form 0x{first:02x}", {"offset": pos - 1})
    if pos + n > len(buf):
        raise FormatError("der_truncated", "length octets run past end", {"offset": pos, "length": len(buf)})
    length = int.from_bytes(buf[pos : pos + n], "big")
    if length < 0x80 or buf[pos] == 0:
        raise FormatError("der_bad_length", "non-minimal length encoding", {"offset": pos - 1})
    return length, pos + n


def _read_node(buf: bytes, pos: int, depth: int = 0) -> Tuple[Node, int]:
    if pos >= len(buf):
        raise FormatError("der_truncated", "missing tag octet", {"offset": pos, "length": len(buf)})
    tag = buf[pos]
    length, start = _read_length(buf, pos + 1)
    end = start + length
    if end > len(buf):
        raise FormatError(
            "der_truncated",
            f"element of {length} bytes runs past end of {len(buf)}-byte input",
            {"offset": pos, "tag": tag, "element_length": length, "length": len(buf)},
        )
    content = buf[start:end]

    if tag == TAG_SEQUENCE:
        if depth >= MAX_SEQUENCE_DEPTH:
            raise FormatError(
                "der_too_deep",
                f"SEQUENCE nested deeper than {MAX_SEQUENCE_DEPTH} levels",
                {"offset": pos, "depth": depth + 1, "length": len(buf)},
            )
        children = []
        cur = start
        while cur < end:
            child, cur = _read_node(buf[:end], cur, depth + 1)
            children.append(child)
        return Sequence(tuple(children)), end

    if tag == TAG_BIT_STRING:
        if not content:
            raise FormatError("der_bad_bit_string", "empty BIT STRING", {"offset": pos})
        unused = content[0]
        if unused > 7:
            raise FormatError("der_bad_bit_string", f"invalid unused-bits count {unused}", {"offset": pos})
        return BitString(unused, bytes(content[1:])), end

    if tag == TAG_INTEGER:
        if not content:
            raise FormatError("der_bad_integer", "empty INTEGER", {"offset": pos})
        # a leading 0x00 / 0xff is only allowed when it carries the sign bit
        if len(content) > 1 and (
            (content[0] == 0x00 and content[1] < 0x80) or (content[0] == 0xFF and content[1] >= 0x80)
        ):
            raise FormatError("der_bad_integer", "non-minimal INTEGER encoding", {"offset": pos})
        return Integer(int.from_bytes(content, "big", signed=True)), end

    return Other(tag, bytes(content)), end


def parse(der: bytes) -> Node:
    """
    Parse exactly one DER element; trailing bytes are an error.
    """
    buf = bytes(der)
    node, end = _read_node(buf, 0)
    if end != len(buf):
        raise FormatError(
            "der_trailing_bytes",
            f"{len(buf) - end} trailing bytes after DER element",
            {"length": len(buf), "consumed": end},
        )
    return node


def decode_public_key(der: bytes) -> RawPublicKey:
    """
    Extract the uncompressed EC point from a DER SubjectPublicKeyInfo.
    """
    spki = parse(der)
    if not isinstance(spki, Sequence) or len(spki.children) < 2:
        raise FormatError(
            "invalid_spki",
            "public key is not a SubjectPublicKeyInfo SEQUENCE",
            {"length": len(der)},
        )
    algorithm, bits = spki.children[0], spki.children[1]
    if not isinstance(algorithm, Sequence):
        raise FormatError("invalid_spki", "missing AlgorithmIdentifier SEQUENCE", {"length": len(der)})
    if not isinstance(bits, BitString) or bits.unused_bits != 0:
        raise FormatError("invalid_spki", "subjectPublicKey is not a whole-byte BIT STRING", {"length": len(der)})
    return RawPublicKey(bits.payload)


def decode_signature(der: bytes) -> Tuple[int, int]:
    """
    Decode an ECDSA-Sig-Value into (r, s).
    """
    try:
        r, s = decode_dss_signature(bytes(der))
    except ValueError as e:
        raise FormatError(
            "invalid_signature",
            f"signature is not a DER ECDSA-Sig-Value: {e}",
            {"length": len(der)},
        ) from e
    if r <= 0 or s <= 0:
        raise FormatError("invalid_signature", "r and s must be positive", {"length": len(der)})
    return r, s
