"""Retry policy for model provider failures.

Classifies an exception raised while opening or consuming a model stream as
retryable or fatal, and computes the backoff delay for the next attempt.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Any, Mapping

import httpx

from .constants import (
    RETRY_BACKOFF_FACTOR,
    RETRY_INITIAL_DELAY_MS,
    RETRY_MAX_DELAY_NO_HEADERS_MS,
)
from .exceptions import AbortError

logger = logging.getLogger(__name__)

RETRY_MAX_DELAY_MS = 2_147_483_647

TRANSIENT_ERROR_CODES = frozenset(
    {
        "ECONNRESET",
        "ETIMEDOUT",
        "EPIPE",
        "ECONNREFUSED",
        "ENOTFOUND",
        "UND_ERR_CONNECT_TIMEOUT",
        "UND_ERR_HEADERS_TIMEOUT",
        "UND_ERR_BODY_TIMEOUT",
        "UND_ERR_SOCKET",
    }
)

OVERLOADED_STATUS_CODES = frozenset({502, 503, 504, 529})

TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    httpx.TransportError,
)


@dataclass
class RetryReason:
    """Why an error is retryable.

    Attributes:
        message: Short user-facing description ("Too Many Requests", ...)
        retry_after_ms: Server-provided delay hint, if any
    """

    message: str
    retry_after_ms: float | None = None


def compute_delay_ms(attempt: int, retry_after_ms: float | None = None) -> float:
    """Backoff delay in milliseconds for a 1-based ``attempt``.

    A positive server hint wins. Otherwise the delay doubles from
    RETRY_INITIAL_DELAY_MS and is capped at RETRY_MAX_DELAY_NO_HEADERS_MS.
    """
    if retry_after_ms is not None and retry_after_ms > 0:
        return min(float(int(retry_after_ms + 0.999)), RETRY_MAX_DELAY_MS)
    computed = RETRY_INITIAL_DELAY_MS * RETRY_BACKOFF_FACTOR ** max(0, attempt - 1)
    return min(computed, RETRY_MAX_DELAY_NO_HEADERS_MS)


def _status_code(error: Any) -> int | None:
    candidates = [
        getattr(error, "status_code", None),
        getattr(error, "status", None),
        getattr(getattr(error, "response", None), "status_code", None),
        getattr(getattr(error, "__cause__", None), "status_code", None),
    ]
    for value in candidates:
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
    return None


def _error_code(error: Any) -> str | None:
    for source in (error, getattr(error, "__cause__", None)):
        code = getattr(source, "code", None)
        if isinstance(code, str) and code.strip():
            return code.strip()
    return None


def _headers(error: Any) -> dict[str, str]:
    candidates = [
        getattr(error, "headers", None),
        getattr(getattr(error, "response", None), "headers", None),
        getattr(getattr(error, "__cause__", None), "headers", None),
    ]
    for value in candidates:
        if isinstance(value, (Mapping, httpx.Headers)) and value:
            return {str(k).lower(): str(v) for k, v in value.items()}
    return {}


def parse_retry_after_ms(headers: Mapping[str, str] | None) -> float | None:
    """Read retry-after-ms, or retry-after as seconds or an HTTP date."""
    if not headers:
        return None

    retry_after_ms = headers.get("retry-after-ms")
    if retry_after_ms:
        try:
            return float(retry_after_ms)
        except ValueError:
            pass

    retry_after = headers.get("retry-after")
    if retry_after:
        try:
            return float(int(float(retry_after) * 1000 + 0.999))
        except ValueError:
            pass
        try:
            when = parsedate_to_datetime(retry_after)
        except (TypeError, ValueError):
            return None
        delta_ms = when.timestamp() * 1000 - time.time() * 1000
        if delta_ms > 0:
            return float(int(delta_ms + 0.999))

    return None


def _classify_json_body(text: str, retry_after_ms: float | None) -> RetryReason | None:
    try:
        body = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(body, dict):
        return None

    error = body.get("error") if isinstance(body.get("error"), dict) else {}
    body_type = body.get("type") if isinstance(body.get("type"), str) else ""
    error_type = error.get("type") if isinstance(error.get("type"), str) else ""
    error_code = error.get("code") if isinstance(error.get("code"), str) else ""
    code = body.get("code") if isinstance(body.get("code"), str) else ""
    message = error.get("message") if isinstance(error.get("message"), str) else ""

    if body_type == "error" and error_type == "too_many_requests":
        return RetryReason("Too Many Requests", retry_after_ms)
    if body_type == "error" and ("rate_limit" in error_code or "rate_limit" in code):
        return RetryReason("Rate limited", retry_after_ms)
    if "exhausted" in code or "unavailable" in code:
        return RetryReason("Provider is overloaded", retry_after_ms)
    if "no_kv_space" in message or (body_type == "error" and error_type == "server_error") or body.get("error"):
        return RetryReason("Provider server error", retry_after_ms)
    return None


def classify_error(error: BaseException) -> RetryReason | None:
    """Return a RetryReason if ``error`` is worth retrying, else None.

    Args:
        error: Exception raised by the provider or the stream

    Returns:
        RetryReason for transient failures; None for fatal ones and for
        cancellation
    """
    if isinstance(error, (AbortError, asyncio.CancelledError)):
        return None

    status = _status_code(error)
    retry_after_ms = parse_retry_after_ms(_headers(error))

    if status == 429:
        return RetryReason("Too Many Requests", retry_after_ms)
    if status in OVERLOADED_STATUS_CODES:
        return RetryReason("Provider is overloaded", retry_after_ms)
    if status is not None and status >= 500:
        return RetryReason("Provider server error", retry_after_ms)

    code = _error_code(error)
    if code and code in TRANSIENT_ERROR_CODES:
        return RetryReason("Network error", retry_after_ms)
    if isinstance(error, TRANSIENT_EXCEPTIONS):
        return RetryReason("Network error", retry_after_ms)

    message = str(error)
    lower = message.lower()
    if "terminated" in lower:
        return RetryReason("Connection terminated", retry_after_ms)
    if "socket hang up" in lower:
        return RetryReason("Network error", retry_after_ms)
    if "rate limit" in lower or "too many requests" in lower:
        return RetryReason("Rate limited", retry_after_ms)
    if "overloaded" in lower or "exhausted" in lower or "unavailable" in lower:
        return RetryReason("Provider is overloaded", retry_after_ms)
    if "no_kv_space" in lower or "server_error" in lower or "internal server error" in lower:
        return RetryReason("Provider server error", retry_after_ms)

    body = getattr(error, "body", None)
    for text in (message, body if isinstance(body, str) else None):
        if text:
            reason = _classify_json_body(text, retry_after_ms)
            if reason:
                return reason

    return None
