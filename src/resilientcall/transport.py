"""Minimal HTTP GET transport used to build retryable operations."""

from __future__ import annotations

import logging as py_logging
from dataclasses import dataclass, field
from typing import Protocol
from urllib.error import HTTPError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from resilientcall.errors import ExitCode, ResilientCallError
from resilientcall.models import Operation

logger = py_logging.getLogger(__name__)

USER_AGENT = "resilientcall"
DEFAULT_TIMEOUT = 20.0

HttpResponseTuple = tuple[int, str, dict[str, str]]


class HttpRequester(Protocol):
    def __call__(self, url: str, headers: dict[str, str]) -> HttpResponseTuple: ...


@dataclass(frozen=True)
class HttpResponse:
    status: int
    body: str
    headers: dict[str, str] = field(default_factory=dict)


class HttpStatusError(Exception):
    """Non-2xx response from the remote side."""

    def __init__(self, url: str, status: int, body: str = "", headers: dict[str, str] | None = None) -> None:
        self.url = url
        self.status = status
        self.body = body
        self.headers = dict(headers or {})
        super().__init__(f"HTTP {status} from {url}")


def _validate_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ResilientCallError(
            f"Unsupported URL: {url}",
            code=ExitCode.VALIDATION_ERROR,
            hint="Only absolute http:// and https:// URLs are supported.",
        )


def _default_requester(url: str, headers: dict[str, str], *, timeout: float = DEFAULT_TIMEOUT) -> HttpResponseTuple:
    request = Request(url, headers=headers, method="GET")
    try:
        with urlopen(request, timeout=timeout) as response:  # nosec B310
            status = int(getattr(response, "status", response.getcode()))
            body = response.read().decode("utf-8", errors="replace")
            response_headers = {key.lower(): value for key, value in response.headers.items()}
            return status, body, response_headers
    except HTTPError as exc:
        payload = ""
        if exc.fp is not None:
            payload = exc.read().decode("utf-8", errors="replace")
        response_headers = {key.lower(): value for key, value in (exc.headers.items() if exc.headers else [])}
        return exc.code, payload, response_headers


def fetch(
    url: str,
    *,
    requester: HttpRequester | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> HttpResponse:
    """GET ``url`` once.

    Raises ``HttpStatusError`` for any non-2xx status. Network failures
    (``URLError``, ``TimeoutError``) propagate unchanged so a classifier can
    see them.
    """
    _validate_url(url)
    request_headers = {"User-Agent": USER_AGENT, "Accept": "*/*"}
    request_headers.update(headers or {})

    if requester is None:
        status, body, response_headers = _default_requester(url, request_headers, timeout=timeout)
    else:
        status, body, response_headers = requester(url, request_headers)

    header_map = {key.lower(): value for key, value in response_headers.items()}
    if not 200 <= status < 300:
        logger.debug("GET %s returned %s", url, status)
        raise HttpStatusError(url, status, body, header_map)
    return HttpResponse(status=status, body=body, headers=header_map)


def http_operation(
    url: str,
    *,
    requester: HttpRequester | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Operation[HttpResponse]:
    _validate_url(url)
    return Operation(
        call=lambda: fetch(url, requester=requester, headers=headers, timeout=timeout),
        name=f"GET {url}",
        idempotent=True,
    )
