from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import rlp
from eth_utils import is_checksum_address, keccak

from .signature import SignatureComponents

# EIP-1559 fee-market transaction
TX_TYPE_DYNAMIC_FEE = 2


def _to_int(v: Any, *, name: str) -> int:
    if v is None:
        raise ValueError(f"Missing required tx field: {name}")
    if isinstance(v, bool):
        raise ValueError(f"Invalid int field {name}: {v}")
    if isinstance(v, int):
        out = v
    elif isinstance(v, str):
        s = v.strip().lower()
        out = int(s, 16) if s.startswith("0x") else int(s, 10)
    else:
        raise ValueError(f"Invalid int field {name}: {type(v).__name__}")
    if out < 0:
        raise ValueError(f"Negative int field {name}: {out}")
    return out


def _to_bytes(v: Any, *, name: str) -> bytes:
    if v is None:
        return b""
    if isinstance(v, (bytes, bytearray)):
        return bytes(v)
    if isinstance(v, str):
        s = v.strip()
        if s.startswith("0x"):
            s = s[2:]
        if s == "":
            return b""
        return bytes.fromhex(s)
    raise ValueError(f"Invalid bytes field {name}: {type(v).__name__}")


def _to_address_bytes(v: Any) -> Optional[bytes]:
    if v is None or v == "" or v == b"":
        return None
    if isinstance(v, (bytes, bytearray)):
        b = bytes(v)
    elif isinstance(v, str):
        s = v.strip()
        if s == "":
            return None
        body = s[2:] if s.startswith("0x") else s
        # mixed case means the caller supplied an EIP-55 checksum; it must verify
        if body.lower() != body and body.upper() != body and not is_checksum_address("0x" + body):
            raise ValueError(f"to has an invalid checksum: {s}")
        b = bytes.fromhex(body)
    else:
        raise ValueError("to must be hex string or bytes")
    if len(b) != 20:
        raise ValueError("to must be 20 bytes")
    return b


def _rlp_int(i: int) -> bytes:
    if i == 0:
        return b""
    return int(i).to_bytes((int(i).bit_length() + 7) // 8, "big")


@dataclass(frozen=True)
class UnsignedTransaction:
    """
    Fields of an EIP-1559 transaction. `to=None` is a contract creation.
    """

    nonce: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    gas_limit: int
    chain_id: int
    to: Optional[bytes] = None
    value: int = 0
    data: bytes = b""
    type: int = TX_TYPE_DYNAMIC_FEE

    def __post_init__(self) -> None:
        if self.type != TX_TYPE_DYNAMIC_FEE:
            raise ValueError(f"Unsupported tx type: {self.type} (supported: 2)")
        if self.to is not None and len(self.to) != 20:
            raise ValueError("to must be 20 bytes")

    @classmethod
    def from_dict(cls, tx: Dict[str, Any], *, chain_id: int | None = None) -> "UnsignedTransaction":
        """
        Build from a web3/ethers style dict (camelCase keys, ints or hex strings).
        An explicit `chain_id` wins over `tx["chainId"]`.
        """
        tx_type = tx.get("type", TX_TYPE_DYNAMIC_FEE)
        if isinstance(tx_type, str):
            tx_type = _to_int(tx_type, name="type")
        if "gasPrice" in tx:
            raise ValueError("gasPrice is not supported; use maxFeePerGas / maxPriorityFeePerGas")
        if tx.get("accessList"):
            raise ValueError("non-empty accessList is not supported")

        gas = tx.get("gas") if tx.get("gas") is not None else tx.get("gasLimit")
        cid = chain_id if chain_id is not None else tx.get("chainId")
        return cls(
            nonce=_to_int(tx.get("nonce"), name="nonce"),
            max_fee_per_gas=_to_int(tx.get("maxFeePerGas"), name="maxFeePerGas"),
            max_priority_fee_per_gas=_to_int(tx.get("maxPriorityFeePerGas"), name="maxPriorityFeePerGas"),
            gas_limit=_to_int(gas, name="gas"),
            chain_id=_to_int(cid, name="chainId"),
            to=_to_address_bytes(tx.get("to")),
            value=_to_int(tx.get("value", 0), name="value"),
            data=_to_bytes(tx.get("data", b""), name="data"),
            type=int(tx_type),
        )

    def _fields(self, chain_id: int) -> List[Any]:
        return [
            _rlp_int(chain_id),
            _rlp_int(self.nonce),
            _rlp_int(self.max_priority_fee_per_gas),
            _rlp_int(self.max_fee_per_gas),
            _rlp_int(self.gas_limit),
            self.to or b"",
            _rlp_int(self.value),
            self.data,
            [],  # access list
        ]


@dataclass(frozen=True)
class SignedTransaction:
    tx: UnsignedTransaction
    signature: SignatureComponents
    serialized: bytes

    @property
    def raw_transaction_hex(self) -> str:
        return "0x" + self.serialized.hex()

    @property
    def hash(self) -> bytes:
        return keccak(self.serialized)


def build_unsigned_encoding(tx: UnsignedTransaction, chain_id: int | None = None) -> bytes:
    cid = tx.chain_id if chain_id is None else int(chain_id)
    return bytes([TX_TYPE_DYNAMIC_FEE]) + rlp.encode(tx._fields(cid))


def compute_signing_digest(encoding: bytes) -> bytes:
    return keccak(encoding)


def attach_signature(
    tx: UnsignedTransaction,
    r: int,
    s: int,
    recovery_id: int,
    chain_id: int | None = None,
) -> SignedTransaction:
    sig = SignatureComponents(r=r, s=s).with_recovery_id(recovery_id)
    cid = tx.chain_id if chain_id is None else int(chain_id)
    fields = tx._fields(cid) + [_rlp_int(recovery_id), _rlp_int(r), _rlp_int(s)]
    raw = bytes([TX_TYPE_DYNAMIC_FEE]) + rlp.encode(fields)
    return SignedTransaction(tx=tx, signature=sig, serialized=raw)
