"""
HTTP and network failure descriptions.

Every transport failure becomes a ``TransportError`` whose message is ready
to show to the user.
"""

import json
import math
import re
from typing import Any, Mapping, Optional

import httpx

from deckstream.domain.exceptions import TransportError

CONNECTION_FAILED = "Connection failed"
NETWORK_ERROR = "Network error. Is the API server running?"
TIMEOUT_ERROR = "Request timed out."

_STATUS_MESSAGES = {
    401: "Invalid API key (401 Unauthorized)",
    403: "Access denied (403 Forbidden)",
    404: "Endpoint not found (404). Check your API URL.",
    429: "Rate limited (429). Try again later.",
}
_RETRY_DELAY = re.compile(r"^\s*(\d+(?:\.\d+)?)s?\s*$")


def describe_http_error(
    status_code: int, body: str = "", headers: Optional[Mapping[str, str]] = None
) -> TransportError:
    """Error for a non-success HTTP response."""
    payload = _load_json(body)
    retry_after = _retry_after(headers or {}, payload)

    if status_code == 429 and retry_after is not None:
        message = f"Rate limited (429). Try again in {retry_after}s."
    elif status_code in _STATUS_MESSAGES:
        message = _STATUS_MESSAGES[status_code]
    elif status_code >= 500:
        message = f"Server error ({status_code})"
    else:
        message = backend_error_message(payload) or CONNECTION_FAILED

    return TransportError(message, status_code=status_code, retry_after=retry_after)


def describe_exception(exc: Exception) -> TransportError:
    """Error for a failure that produced no HTTP response."""
    if isinstance(exc, httpx.TimeoutException):
        return TransportError(TIMEOUT_ERROR)
    if isinstance(exc, httpx.NetworkError):
        return TransportError(NETWORK_ERROR)
    return TransportError(str(exc) or CONNECTION_FAILED)


def backend_error_message(payload: Any) -> Optional[str]:
    """Message a backend put in its error body, in any of the common shapes."""
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"] or None
    if isinstance(error, str) and error:
        return error
    message = payload.get("message")
    return message if isinstance(message, str) and message else None


def _retry_after(headers: Mapping[str, str], payload: Any) -> Optional[int]:
    header = headers.get("retry-after") or headers.get("Retry-After")
    if header:
        match = _RETRY_DELAY.match(header)
        if match:
            return math.ceil(float(match.group(1)))

    # Gemini: error.details[] entry of type google.rpc.RetryInfo
    error = payload.get("error") if isinstance(payload, dict) else None
    details = error.get("details") if isinstance(error, dict) else None
    for detail in details or []:
        if not isinstance(detail, dict):
            continue
        if str(detail.get("@type", "")).endswith("RetryInfo"):
            match = _RETRY_DELAY.match(str(detail.get("retryDelay", "")))
            if match:
                return math.ceil(float(match.group(1)))
    return None


def _load_json(body: str) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None
