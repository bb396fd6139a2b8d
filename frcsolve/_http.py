"""HttpClient -- thin async wrapper over rnet.Client.

Used for fetching pages, fetching puzzle data and posting solved
forms. Adds default browser headers, Chrome emulation matching the
browser strategy's user agent, and retries for connection errors and
5xx responses.
"""

import asyncio
import datetime
import json
import logging
import time
from typing import Any

from rnet import Client, Emulation, Method

from frcsolve._errors import ConnectionFailed, HTTPStatusError
from frcsolve._retry import RetryState

logger = logging.getLogger("frcsolve")

# Keep in step with browser.USER_AGENT (Chrome 120).
DEFAULT_EMULATION = Emulation.Chrome120

DEFAULT_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
}

DEFAULT_CONNECT_TIMEOUT = datetime.timedelta(seconds=10)
DEFAULT_TIMEOUT = datetime.timedelta(seconds=30)

_METHOD_MAP: dict[str, Method] = {
    "GET": Method.GET,
    "POST": Method.POST,
}


def _to_method(method: str) -> Method:
    try:
        return _METHOD_MAP[method.upper()]
    except KeyError:
        raise ValueError(f"Unsupported HTTP method: {method}") from None


def _normalize_timeout(val) -> datetime.timedelta:
    if isinstance(val, datetime.timedelta):
        return val
    return datetime.timedelta(seconds=float(val))


def _decode_headers(header_map) -> dict[str, str]:
    """Decode rnet HeaderMap to a lowercase string dict.

    Multi-value headers are joined with "; ".
    """
    result: dict[str, str] = {}
    for raw_key in header_map.keys():
        k = raw_key.decode("ascii", errors="replace").lower()
        parts = [
            v.decode("utf-8", errors="replace")
            for v in header_map.get_all(k)
        ]
        result[k] = "; ".join(parts)
    return result


class HttpResponse:
    """Minimal response object: status, text body, headers, url."""

    __slots__ = ("status_code", "text", "headers", "url", "elapsed")

    def __init__(
        self,
        *,
        status_code: int,
        text: str,
        url: str,
        headers: dict[str, str] | None = None,
        elapsed: float = 0.0,
    ):
        self.status_code = status_code
        self.text = text
        self.url = url
        self.headers = headers or {}
        self.elapsed = elapsed

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self, **kwargs) -> Any:
        return json.loads(self.text, **kwargs)

    def raise_for_status(self) -> None:
        if not self.ok:
            raise HTTPStatusError(self.status_code, self.url)

    def __repr__(self) -> str:
        return f"<HttpResponse [{self.status_code}]>"


class HttpClient:
    """Async HTTP client with retry on connection errors and 5xx.

    Args:
        max_retries: Retries for connection errors and 5xx responses.
            When they run out a connection error raises
            ConnectionFailed and a 5xx response is returned as-is.
        headers: Client-level headers. Defaults to DEFAULT_HEADERS.
        connect_timeout, timeout: timedelta or seconds.
        proxy: Optional proxy URL for all requests.
    """

    def __init__(
        self,
        max_retries: int = 3,
        headers: dict[str, str] | None = None,
        emulation: Emulation | None = None,
        connect_timeout: datetime.timedelta | float | int | None = None,
        timeout: datetime.timedelta | float | int | None = None,
        proxy: str | None = None,
    ):
        self.max_retries = max_retries
        self.headers = dict(headers) if headers is not None else dict(DEFAULT_HEADERS)
        self.connect_timeout = (
            _normalize_timeout(connect_timeout)
            if connect_timeout is not None
            else DEFAULT_CONNECT_TIMEOUT
        )
        self.timeout = (
            _normalize_timeout(timeout) if timeout is not None else DEFAULT_TIMEOUT
        )
        kwargs = {
            "emulation": emulation or DEFAULT_EMULATION,
            "headers": self.headers,
            "connect_timeout": self.connect_timeout,
            "timeout": self.timeout,
            "cookie_store": True,
        }
        if proxy:
            from rnet import Proxy

            kwargs["proxies"] = [Proxy.all(proxy)]
        self._client = Client(**kwargs)

    async def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        body: str | None = None,
    ) -> HttpResponse:
        start = time.monotonic()
        m = _to_method(method)
        state = RetryState(self.max_retries)
        kwargs: dict = {}
        if headers:
            kwargs["headers"] = headers
        if body is not None:
            kwargs["body"] = body

        logger.debug("%s %s", method, url)
        while True:
            try:
                resp = await self._client.request(m, url, **kwargs)
                status = resp.status.as_int()
                text = await resp.text()
            except Exception as e:
                if not state.can_retry:
                    raise ConnectionFailed(url, str(e)) from e
                delay = state.use_retry()
                logger.debug(
                    "Connection error, retry %d/%d in %.1fs: %s",
                    state.retries, state.max_retries, delay, e,
                )
                await asyncio.sleep(delay)
                continue

            if 500 <= status < 600 and state.can_retry:
                delay = state.use_retry()
                logger.debug(
                    "HTTP %d from %s, retry %d/%d in %.1fs",
                    status, url, state.retries, state.max_retries, delay,
                )
                await asyncio.sleep(delay)
                continue

            return HttpResponse(
                status_code=status,
                text=text,
                url=url,
                headers=_decode_headers(resp.headers),
                elapsed=time.monotonic() - start,
            )

    async def get(
        self, url: str, headers: dict[str, str] | None = None
    ) -> HttpResponse:
        return await self.request("GET", url, headers=headers)

    async def post(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        body: str | None = None,
    ) -> HttpResponse:
        return await self.request("POST", url, headers=headers, body=body)
