from __future__ import annotations

import socket
from typing import Iterable

import requests

_HTTP_NOT_READY_STATUS = {404, 416}

_NOT_READY_PATTERNS = (
    "upstream not ready",
    "not published",
    "grib2 file not found",
    "herbie did not return a grib2 path",
    "index not ready",
    "idx missing",
    "no index file was found",
    "download the full file first",
    "inventory not found",
    "no inventory",
    "http 404",
    "404 client error",
    "416 client error",
    "status code 404",
    "status code 416",
)


def _iter_exception_chain(exc: BaseException) -> Iterable[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        next_exc = current.__cause__ or current.__context__
        current = next_exc if isinstance(next_exc, BaseException) else None


def _http_status_from_exception(exc: BaseException) -> int | None:
    for candidate in _iter_exception_chain(exc):
        response = getattr(candidate, "response", None)
        status_code = getattr(response, "status_code", None)
        if isinstance(status_code, int):
            return status_code
    return None


def is_timeout_error(exc: BaseException) -> bool:
    timeout_types: tuple[type[BaseException], ...] = (
        TimeoutError,
        socket.timeout,
        requests.exceptions.Timeout,
    )
    return any(isinstance(candidate, timeout_types) for candidate in _iter_exception_chain(exc))


def is_upstream_not_ready_error(exc: BaseException | str) -> bool:
    """True when ``exc`` means the cycle is not published yet.

    Timeouts are not included: they are transient and retried on the same
    cycle rather than stepping back to an older one.
    """
    if isinstance(exc, str):
        text = exc.lower()
        return any(pattern in text for pattern in _NOT_READY_PATTERNS)

    if _http_status_from_exception(exc) in _HTTP_NOT_READY_STATUS:
        return True
    if is_timeout_error(exc):
        return False
    return any(
        is_upstream_not_ready_error(str(candidate)) for candidate in _iter_exception_chain(exc)
    )
