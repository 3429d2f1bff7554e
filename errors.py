from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from botocore.exceptions import BotoCoreError, ClientError


@dataclass
class AppError(Exception):
    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class FormatError(AppError):
    """
    The key service returned a DER structure we cannot use (bad nesting, wrong element
    kind, wrong point prefix or length). Indicates a protocol mismatch; never retryable.
    """


class RecoveryError(AppError):
    """
    Neither recovery bit reproduces the address bound to the key.
    """


class UpstreamError(AppError):
    """
    The key service call itself failed. `data["retryable"]` is a hint for caller-owned
    retry wrappers; nothing in this package retries.
    """

    @property
    def retryable(self) -> bool:
        return bool(self.data.get("retryable", False))


_KMS_THROTTLE_CODES = {"ThrottlingException", "LimitExceededException", "KMSInternalException"}
_KMS_DENIED_CODES = {
    "AccessDeniedException",
    "UnrecognizedClientException",
    "InvalidSignatureException",
    "ExpiredTokenException",
    "DisabledException",
    "KMSInvalidStateException",
}
_KMS_NOT_FOUND_CODES = {"NotFoundException"}


def classify_exception(e: Exception, *, operation: str, key_id: Optional[str] = None) -> UpstreamError:
    """
    Map boto3 / requests failures into stable upstream error codes.
    """
    if isinstance(e, UpstreamError):
        return e

    data: Dict[str, Any] = {"operation": operation, "key_id": key_id, "exception": type(e).__name__}

    if isinstance(e, ClientError):
        aws_code = str(e.response.get("Error", {}).get("Code") or "")
        data["aws_error_code"] = aws_code
        if aws_code in _KMS_THROTTLE_CODES:
            return UpstreamError("kms_throttled", str(e), {**data, "retryable": True})
        if aws_code in _KMS_DENIED_CODES:
            return UpstreamError("kms_access_denied", str(e), {**data, "retryable": False})
        if aws_code in _KMS_NOT_FOUND_CODES:
            return UpstreamError("kms_not_found", str(e), {**data, "retryable": False})
        return UpstreamError("kms_error", str(e), {**data, "retryable": False})
    if isinstance(e, BotoCoreError):
        # endpoint / credential resolution / connection problems
        return UpstreamError("upstream_network_error", str(e), {**data, "retryable": True})

    if isinstance(e, requests.HTTPError):
        status = e.response.status_code if e.response is not None else None
        data["status_code"] = status
        retryable = status is not None and (status == 429 or status >= 500)
        return UpstreamError("upstream_http_error", str(e), {**data, "retryable": retryable})
    if isinstance(e, (requests.ConnectionError, requests.Timeout)):
        return UpstreamError("upstream_network_error", str(e), {**data, "retryable": True})
    if isinstance(e, requests.RequestException):
        return UpstreamError("upstream_http_error", str(e), {**data, "retryable": False})

    return UpstreamError("unknown_error", str(e), {**data, "retryable": False})
