from __future__ import annotations

from typing import Union

from eth_utils import keccak

PERSONAL_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n"


def _message_bytes(message: Union[str, bytes]) -> bytes:
    if isinstance(message, str):
        return message.encode("utf-8")
    if isinstance(message, (bytes, bytearray)):
        return bytes(message)
    raise ValueError(f"message must be str or bytes, got {type(message).__name__}")


def hash_personal_message(message: Union[str, bytes]) -> bytes:
    """
    EIP-191 version 0x45 digest: keccak256(prefix || len(message) || message).
    Strings are UTF-8 encoded; the length is the decimal byte count.
    """
    body = _message_bytes(message)
    return keccak(PERSONAL_MESSAGE_PREFIX + str(len(body)).encode("ascii") + body)
