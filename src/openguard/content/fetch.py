"""SSRF-safe pre-fetch of web pages for content inspection.

Redirects are followed by hand so that every hop is re-validated: the
scheme must be ``http`` or ``https``, the host must not be ``localhost``
or a non-public literal IP, and the hostname must resolve only to public
addresses.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urljoin

import httpx

from openguard.core.errors import FetchError
from openguard.core.interfaces import HostResolver
from openguard.network.addresses import is_disallowed_hostname, is_disallowed_ip, parse_ip
from openguard.network.resolver import DEFAULT_DNS_TIMEOUT_MS, SystemResolver, check_dns_resolution
from openguard.network.urls import extract_hostname

logger = logging.getLogger(__name__)

DEFAULT_MAX_REDIRECTS = 5
DEFAULT_FETCH_TIMEOUT_MS = 10_000

_ALLOWED_SCHEMES = ("http://", "https://")


@dataclass(frozen=True, slots=True)
class PreFetchResult:
    """Outcome of a pre-fetch.

    ``ok`` results carry the page body.  Failed results set ``unsafe_url``
    when a hop was refused for SSRF reasons, as opposed to an ordinary
    transport or HTTP failure.
    """

    ok: bool
    content: str = ""
    unsafe_url: bool = False
    url: str | None = None


def is_allowed_url(url: str) -> bool:
    """Static SSRF check of *url*, without DNS."""
    if not url.strip().lower().startswith(_ALLOWED_SCHEMES):
        return False
    host = extract_hostname(url)
    if not host:
        return False
    if is_disallowed_hostname(host):
        return False
    if parse_ip(host) is not None and is_disallowed_ip(host):
        return False
    return True


async def is_allowed_public_destination(
    url: str,
    resolver: HostResolver,
    dns_timeout_ms: int = DEFAULT_DNS_TIMEOUT_MS,
) -> bool:
    """:func:`is_allowed_url` plus DNS resolution to public addresses only."""
    host = extract_hostname(url)
    if host is None or not is_allowed_url(url):
        return False
    return await check_dns_resolution(host, resolver, dns_timeout_ms)


async def _get(client: httpx.AsyncClient, url: str) -> httpx.Response:
    try:
        return await client.get(url)
    except httpx.HTTPError as exc:
        raise FetchError(f"Pre-fetch of {url} failed: {exc}", details={"url": url}) from exc


async def pre_fetch(
    url: str,
    *,
    resolver: HostResolver | None = None,
    timeout_ms: int = DEFAULT_FETCH_TIMEOUT_MS,
    max_redirects: int = DEFAULT_MAX_REDIRECTS,
    dns_timeout_ms: int = DEFAULT_DNS_TIMEOUT_MS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PreFetchResult:
    """Fetch *url*, validating every redirect hop before requesting it.

    Never raises for network problems: they produce a failed result with
    ``unsafe_url=False``.  More than *max_redirects* redirects produce a
    failed result with ``unsafe_url=True``.
    """
    resolver = resolver or SystemResolver()
    current = url

    async with httpx.AsyncClient(
        timeout=timeout_ms / 1000,
        follow_redirects=False,
        transport=transport,
    ) as client:
        for _hop in range(max_redirects + 1):
            if not await is_allowed_public_destination(current, resolver, dns_timeout_ms):
                logger.warning("Blocked pre-fetch to non-public URL: %s", current)
                return PreFetchResult(ok=False, unsafe_url=True, url=current)

            try:
                response = await _get(client, current)
            except FetchError as exc:
                logger.debug("%s", exc.message)
                return PreFetchResult(ok=False, url=current)

            if 300 <= response.status_code < 400:
                location = response.headers.get("location")
                if not location:
                    return PreFetchResult(ok=False, url=current)
                current = urljoin(current, location)
                continue

            if not response.is_success:
                logger.debug("Pre-fetch of %s returned HTTP %d", current, response.status_code)
                return PreFetchResult(ok=False, url=current)
            return PreFetchResult(ok=True, content=response.text, url=current)

    logger.warning("Blocked pre-fetch for excessive redirects: %s", url)
    return PreFetchResult(ok=False, unsafe_url=True, url=current)
