"""Maps HTTP and transport failures onto the closed ``ApiError`` taxonomy.

Priority: the HTTP status code, when there is one, decides before the
transport-level cause. Nothing here performs I/O or mutates state; the
credential expiry side effect of a 401 belongs to the transport.
"""
import errno
import socket
import ssl
from dataclasses import dataclass
from typing import Any, Iterator, Optional

import httpx

from payflow.core.exceptions import (
    ApiError, Forbidden, NetworkError, NoInternetConnection, NotFound,
    RateLimitExceeded, ServerError, Timeout, Unauthorized, Unknown, ValidationError
)

GENERIC_VALIDATION_MESSAGE = "Please check your input"
GENERIC_SERVER_MESSAGE = "Server error. Please try again later."
CANNOT_REACH_SERVER = "cannot reach server"
SECURE_CONNECTION_FAILED = "secure connection failed"

_OFFLINE_ERRNOS = {getattr(errno, name) for name in ("ENETUNREACH", "ENETDOWN") if hasattr(errno, name)}
_UNREACHABLE_ERRNOS = {
    getattr(errno, name) for name in ("EHOSTUNREACH", "ECONNREFUSED", "EHOSTDOWN") if hasattr(errno, name)
}

_OFFLINE_MARKERS = ("network is unreachable", "network is down", "not connected to the internet")
_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)
_TLS_MARKERS = ("[ssl", "certificate_verify_failed", "tlsv1", "ssl handshake")


@dataclass(frozen=True)
class TransportFailure:
    """What went wrong with one request.

    Either the server answered with an error ``status_code`` (and possibly a
    decoded JSON ``body``), or the request never completed and ``exception``
    holds the cause.
    """
    status_code: Optional[int] = None
    body: Any = None
    exception: Optional[BaseException] = None


def extract_message(body: Any, fallback: str = GENERIC_VALIDATION_MESSAGE) -> str:
    """Pick the most specific human-readable message from an error body.

    Field-level validation messages (``errors[field][0]``) win over the
    top-level ``message``, which wins over ``fallback``.
    """
    if not isinstance(body, dict):
        return fallback

    errors = body.get("errors")
    if isinstance(errors, dict):
        for messages in errors.values():
            if isinstance(messages, list) and messages and isinstance(messages[0], str):
                return messages[0]
            if isinstance(messages, str) and messages:
                return messages

    message = body.get("message")
    if isinstance(message, str) and message:
        return message

    return fallback


def classify(failure: TransportFailure) -> ApiError:
    if failure.status_code is not None:
        error = _classify_status(failure.status_code, failure.body)
        if error is not None:
            return error

    if failure.exception is not None:
        return _classify_exception(failure.exception)

    if failure.status_code is not None:
        return Unknown(f"Request failed with status {failure.status_code}", status_code=failure.status_code)

    return Unknown("Request failed")


def _classify_status(status_code: int, body: Any) -> Optional[ApiError]:
    if status_code == 401:
        return Unauthorized(status_code=status_code)
    if status_code == 403:
        return Forbidden(status_code=status_code)
    if status_code == 404:
        return NotFound(status_code=status_code)
    if status_code == 422:
        return ValidationError(extract_message(body), status_code=status_code)
    if status_code == 429:
        return RateLimitExceeded(status_code=status_code)
    if status_code >= 500:
        return ServerError(GENERIC_SERVER_MESSAGE, status_code=status_code)
    if 400 <= status_code < 500 and isinstance(body, dict) and body.get("success") is False:
        return ValidationError(extract_message(body), status_code=status_code)
    return None


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def _classify_exception(exc: BaseException) -> ApiError:
    chain = list(_causes(exc))

    if any(isinstance(e, (httpx.TimeoutException, TimeoutError, socket.timeout)) for e in chain):
        return Timeout()

    if any(isinstance(e, ssl.SSLError) for e in chain):
        return NetworkError(SECURE_CONNECTION_FAILED)

    for e in chain:
        if isinstance(e, socket.gaierror):
            return NetworkError(CANNOT_REACH_SERVER)
        if isinstance(e, OSError) and e.errno in _OFFLINE_ERRNOS:
            return NoInternetConnection()
        if isinstance(e, OSError) and e.errno in _UNREACHABLE_ERRNOS:
            return NetworkError(CANNOT_REACH_SERVER)

    # Some transports only keep the text of the underlying error
    text = " ".join(str(e) for e in chain).lower()
    if any(marker in text for marker in _OFFLINE_MARKERS):
        return NoInternetConnection()
    if any(marker in text for marker in _TLS_MARKERS):
        return NetworkError(SECURE_CONNECTION_FAILED)
    if any(marker in text for marker in _DNS_MARKERS):
        return NetworkError(CANNOT_REACH_SERVER)

    return Unknown(str(exc) or type(exc).__name__)
