"""HTTP fetcher for stylesheets and font binaries.

Every call returns an explicit outcome, :class:`FetchOk` or
:class:`FetchFailed`, instead of raising, so the style inliner can count and
report soft failures.
"""

import asyncio
import ipaddress
import logging
import socket
from typing import Awaitable, Callable, NamedTuple, Union
from urllib.parse import urljoin, urlparse

import httpx

from chatsnap.errors import FetchError

logger = logging.getLogger(__name__)

MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB
TIMEOUT = 10  # seconds
MAX_REDIRECTS = 10
ALLOWED_SCHEMES = {"http", "https"}
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class FetchOk(NamedTuple):
    url: str  # final URL, after redirects
    content: bytes
    content_type: str = ""


class FetchFailed(NamedTuple):
    url: str
    reason: str


FetchResult = Union[FetchOk, FetchFailed]
Fetcher = Callable[[str], Awaitable[FetchResult]]


def _is_private_address(hostname: str) -> bool:
    """Return True if *hostname* resolves to a private, loopback, or link-local address."""
    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        return False

    for info in infos:
        # Strip IPv6 zone IDs (e.g. "::1%eth0" → "::1")
        raw_ip = info[4][0].split("%")[0]
        try:
            addr = ipaddress.ip_address(raw_ip)
        except ValueError:
            continue
        if addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved:
            return True
    return False


def validate_url(url: str, *, allow_private: bool = False) -> None:
    """Raise ValueError if *url* fails scheme / host validation."""
    parsed = urlparse(url)

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Scheme '{parsed.scheme}' is not allowed. Use http or https.")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL must have a valid hostname.")

    if not allow_private and _is_private_address(hostname):
        raise ValueError("Requests to private/internal addresses are not allowed.")


async def check_url(url: str, *, allow_private: bool = False) -> None:
    """Run :func:`validate_url` in a worker thread, since the host lookup blocks."""
    await asyncio.to_thread(validate_url, url, allow_private=allow_private)


async def _download(client: httpx.AsyncClient, url: str, allow_private: bool) -> FetchOk:
    """Follow redirects by hand, validating every hop, and return the body bytes."""
    current_url = url
    for _ in range(MAX_REDIRECTS + 1):
        async with client.stream("GET", current_url) as response:
            if response.is_redirect:
                location = response.headers.get("location", "")
                next_url = urljoin(current_url, location)
                await check_url(next_url, allow_private=allow_private)
                current_url = next_url
                continue

            response.raise_for_status()

            content_length = response.headers.get("content-length")
            if content_length and int(content_length) > MAX_CONTENT_SIZE:
                raise FetchError("Response body exceeds the maximum allowed size.")

            chunks = []
            total = 0
            async for chunk in response.aiter_bytes():
                total += len(chunk)
                if total > MAX_CONTENT_SIZE:
                    raise FetchError("Response body exceeds the maximum allowed size.")
                chunks.append(chunk)

            content_type = response.headers.get("content-type", "")
            return FetchOk(url=current_url, content=b"".join(chunks), content_type=content_type)

    raise FetchError("Too many redirects.")


async def fetch_resource(
    url: str,
    *,
    allow_private: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FetchResult:
    """Fetch *url* and return its body as a :class:`FetchOk`.

    Network errors, HTTP error statuses, oversize bodies, and URLs that fail
    validation all come back as :class:`FetchFailed`; nothing is raised.
    """
    try:
        await check_url(url, allow_private=allow_private)
        async with httpx.AsyncClient(
            follow_redirects=False,
            timeout=TIMEOUT,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        ) as client:
            return await _download(client, url, allow_private)
    except httpx.HTTPStatusError as exc:
        reason = f"HTTP {exc.response.status_code}"
    except httpx.TimeoutException:
        reason = "timed out"
    except (ValueError, httpx.HTTPError, FetchError) as exc:
        reason = str(exc) or exc.__class__.__name__

    logger.debug("Fetch failed for %s – %s", url, reason)
    return FetchFailed(url=url, reason=reason)
