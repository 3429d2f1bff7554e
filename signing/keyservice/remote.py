from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from errors import UpstreamError, classify_exception

from .base import KeyHandle, KeyService, check_digest


def _hex_field(data: Dict[str, Any], name: str, *, operation: str, key_id: Optional[str]) -> bytes:
    raw = str(data.get(name) or "").strip()
    if raw.startswith("0x"):
        raw = raw[2:]
    if not raw:
        raise UpstreamError(
            "upstream_empty_response",
            f"key service returned no {name}",
            {"operation": operation, "key_id": key_id},
        )
    try:
        return bytes.fromhex(raw)
    except ValueError as e:
        raise UpstreamError(
            "upstream_bad_response",
            f"key service returned non-hex {name}",
            {"operation": operation, "key_id": key_id},
        ) from e


class HttpKeyService(KeyService):
    """
    Key service reached over HTTP JSON (an internal KMS/HSM proxy).

    Protocol:
    POST {base}/keys                        body: {"description": "..."}  -> {"key_id": "..."}
    GET  {base}/keys/{id}/public_key                                      -> {"public_key_der_hex": "0x..."}
    POST {base}/keys/{id}/sign_digest       body: {"digest_hex": "0x..."} -> {"signature_der_hex": "0x..."}
    """

    def __init__(self, base_url: str, *, timeout: float = 10.0, session: requests.Session | None = None) -> None:
        if not base_url:
            raise ValueError("key service base URL not set")
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout)
        self._session = session or requests.Session()

    def _request(self, method: str, path: str, *, operation: str, key_id: Optional[str], json: Any = None) -> Dict[str, Any]:
        try:
            r = self._session.request(method, f"{self._base_url}{path}", json=json, timeout=self._timeout)
            r.raise_for_status()
            data = r.json()
        except requests.RequestException as e:
            raise classify_exception(e, operation=operation, key_id=key_id) from e
        except ValueError as e:
            raise UpstreamError(
                "upstream_bad_response",
                "key service returned invalid JSON",
                {"operation": operation, "key_id": key_id},
            ) from e
        if not isinstance(data, dict):
            raise UpstreamError(
                "upstream_bad_response",
                "key service returned a non-object body",
                {"operation": operation, "key_id": key_id},
            )
        return data

    async def create_key(self, description: Optional[str] = None) -> KeyHandle:
        data = await asyncio.to_thread(
            self._request, "POST", "/keys", operation="create_key", key_id=None, json={"description": description}
        )
        key_id = str(data.get("key_id") or "").strip()
        if not key_id:
            raise UpstreamError("upstream_empty_response", "key service returned no key_id", {"operation": "create_key"})
        return key_id

    async def get_public_key(self, key_id: KeyHandle) -> bytes:
        data = await asyncio.to_thread(
            self._request, "GET", f"/keys/{quote(key_id, safe='')}/public_key", operation="get_public_key", key_id=key_id
        )
        return _hex_field(data, "public_key_der_hex", operation="get_public_key", key_id=key_id)

    async def sign_digest(self, key_id: KeyHandle, digest: bytes) -> bytes:
        payload = {"digest_hex": "0x" + check_digest(digest).hex()}
        data = await asyncio.to_thread(
            self._request,
            "POST",
            f"/keys/{quote(key_id, safe='')}/sign_digest",
            operation="sign_digest",
            key_id=key_id,
            json=payload,
        )
        return _hex_field(data, "signature_der_hex", operation="sign_digest", key_id=key_id)
