"""DNS re-resolution checks.

A hostname passes only if it resolves, within the timeout, to at least
one address and every address it resolves to is public.  A timeout and a
lookup failure are the same outcome: the host is not verified.
"""
from __future__ import annotations

import asyncio
import logging
import socket

from openguard.core.errors import ResolutionError
from openguard.core.interfaces import HostResolver
from openguard.network.addresses import is_disallowed_ip, parse_ip

logger = logging.getLogger(__name__)

DEFAULT_DNS_TIMEOUT_MS = 2000


class SystemResolver:
    """Resolve hostnames with the event loop's ``getaddrinfo``."""

    async def resolve(self, host: str) -> list[str]:
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as exc:
            raise ResolutionError(
                f"Lookup failed for {host}: {exc}", details={"host": host}
            ) from exc
        addresses: list[str] = []
        for _family, _type, _proto, _canon, sockaddr in infos:
            address = str(sockaddr[0])
            if address not in addresses:
                addresses.append(address)
        return addresses


async def resolves_to_public_ips(host: str, resolver: HostResolver) -> bool:
    """Return ``True`` if every address *host* resolves to is public.

    Literal IP hosts are classified directly.  Raises
    :class:`ResolutionError` if the lookup fails.
    """
    if parse_ip(host) is not None:
        return not is_disallowed_ip(host)
    addresses = await resolver.resolve(host)
    if not addresses:
        return False
    return all(not is_disallowed_ip(address) for address in addresses)


async def check_dns_resolution(
    host: str,
    resolver: HostResolver,
    timeout_ms: int = DEFAULT_DNS_TIMEOUT_MS,
) -> bool:
    """Bounded :func:`resolves_to_public_ips` that never raises.

    Returns ``False`` on timeout or lookup failure.
    """
    try:
        return await asyncio.wait_for(
            resolves_to_public_ips(host, resolver), timeout=timeout_ms / 1000
        )
    except TimeoutError:
        logger.debug("DNS lookup for %s timed out after %d ms", host, timeout_ms)
        return False
    except ResolutionError as exc:
        logger.debug("DNS lookup for %s failed: %s", host, exc.message)
        return False
