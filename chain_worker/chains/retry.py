"""Failure classification for RPC call retries"""

import asyncio
import errno
from enum import Enum
from typing import AbstractSet, Optional

from chain_worker.config.models import QUICK_RETRY_ERROR_CODES


class RetryClass(Enum):
    """Retry buckets that select the backoff timeout"""

    QUICK = "quick"  # Transient network-layer failures
    STANDARD = "standard"  # Everything else


def failure_code(error: BaseException) -> Optional[str]:
    """
    Derive a failure code from an exception raised by a provider.

    A string ``code`` attribute set by the provider wins. Otherwise builtin
    network exceptions are mapped onto the network-layer codes. Returns None
    when nothing identifies the failure.
    """
    code = getattr(error, "code", None)
    if isinstance(code, str):
        return code

    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return "TIMEOUT"
    if isinstance(error, ConnectionResetError):
        return "ECONNRESET"
    if isinstance(error, ConnectionRefusedError):
        return "ECONNREFUSED"
    if isinstance(error, OSError):
        if error.errno == errno.ECONNRESET:
            return "ECONNRESET"
        if error.errno == errno.ECONNREFUSED:
            return "ECONNREFUSED"
        if error.errno == errno.ETIMEDOUT:
            return "TIMEOUT"
        return "NETWORK_ERROR"

    if code is not None:
        return str(code)
    return None


def classify_failure(
    code: Optional[str],
    quick_retry_error_codes: AbstractSet[str] = QUICK_RETRY_ERROR_CODES,
) -> RetryClass:
    """Map a failure code to its retry class; unknown or missing codes are STANDARD"""
    if code is not None and code in quick_retry_error_codes:
        return RetryClass.QUICK
    return RetryClass.STANDARD
