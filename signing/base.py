from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Union

from .keyservice.base import KeyHandle
from .transaction import SignedTransaction, UnsignedTransaction


class Signer(ABC):
    """
    A minimal signing interface for EVM transactions and personal messages, keyed by an
    opaque key handle.
    """

    @abstractmethod
    async def get_address(self, key_id: KeyHandle) -> str:
        raise NotImplementedError

    @abstractmethod
    async def sign_transaction(
        self,
        key_id: KeyHandle,
        tx: Union[UnsignedTransaction, Dict[str, Any]],
        *,
        chain_id: int | None = None,
    ) -> SignedTransaction:
        raise NotImplementedError

    @abstractmethod
    async def sign_message(self, key_id: KeyHandle, message: Union[str, bytes]) -> str:
        raise NotImplementedError
