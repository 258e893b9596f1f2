"""IP address and hostname classification for SSRF prevention.

Everything in this module is a pure function of its input; nothing here
performs I/O.  Classification is done on the parsed address bytes with
the standard library :mod:`ipaddress` module, never on string prefixes.

Host parsing follows the WHATWG URL host rules where they matter for
SSRF: a hostname whose last label is numeric is an IPv4 address in one
of the legacy number forms (``2130706433``, ``0x7f.1``, ``0177.0.0.1``)
and is canonicalised to a dotted quad before any check runs.
"""
from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from urllib.parse import unquote

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

# ---------------------------------------------------------------------------
# Private / reserved ranges
# ---------------------------------------------------------------------------

PRIVATE_IPV4_NETWORKS: tuple[ipaddress.IPv4Network, ...] = tuple(
    ipaddress.IPv4Network(cidr)
    for cidr in (
        "0.0.0.0/8",        # "this" network
        "10.0.0.0/8",
        "100.64.0.0/10",    # carrier-grade NAT
        "127.0.0.0/8",
        "169.254.0.0/16",   # link-local, cloud metadata
        "172.16.0.0/12",
        "192.168.0.0/16",
        "198.18.0.0/15",    # benchmarking
        "224.0.0.0/3",      # multicast, reserved and broadcast
    )
)

PRIVATE_IPV6_NETWORKS: tuple[ipaddress.IPv6Network, ...] = tuple(
    ipaddress.IPv6Network(cidr)
    for cidr in (
        "::/128",
        "::1/128",
        "fe80::/10",
        "fc00::/7",
        "fec0::/10",
        "ff00::/8",
    )
)

# ---------------------------------------------------------------------------
# Classification result
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AddressClassification:
    """The outcome of classifying one IP address.

    Attributes
    ----------
    address:
        Canonical textual form of the address.
    version:
        ``4`` or ``6``.
    is_private_or_reserved:
        ``True`` if the address must never be contacted.
    matched_range:
        The CIDR block that made it private, if any.  For IPv4-mapped IPv6
        addresses this is the embedded IPv4 range.
    """

    address: str
    version: int
    is_private_or_reserved: bool
    matched_range: str | None = None

    @property
    def is_public(self) -> bool:
        return not self.is_private_or_reserved


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _strip_brackets_and_zone(value: str) -> str:
    text = value.strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    if "%" in text and ":" in text:
        text = text.split("%", 1)[0]
    return text


def parse_ip(value: str) -> IPAddress | None:
    """Parse *value* as an IPv4 or IPv6 address.

    Brackets (``[::1]``) and IPv6 zone ids (``fe80::1%eth0``) are
    accepted and discarded.  Returns ``None`` if *value* is not an IP.
    """
    text = _strip_brackets_and_zone(value)
    if not text:
        return None
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def is_ip_address(value: str) -> bool:
    return parse_ip(value) is not None


_DIGITS_BY_BASE = {
    16: frozenset("0123456789abcdefABCDEF"),
    10: frozenset("0123456789"),
    8: frozenset("01234567"),
}


def _parse_ipv4_number(part: str) -> int | None:
    if part[:2] in ("0x", "0X"):
        digits, base = part[2:], 16
    elif len(part) > 1 and part.startswith("0"):
        digits, base = part[1:], 8
    else:
        digits, base = part, 10
    if digits == "":
        return 0
    if not set(digits) <= _DIGITS_BY_BASE[base]:
        return None
    return int(digits, base)


def ends_in_number(host: str) -> bool:
    """Return ``True`` if the last label of *host* looks numeric.

    Such a host must parse as IPv4 or it is invalid.
    """
    labels = host.split(".")
    if labels[-1] == "" and len(labels) > 1:
        labels.pop()
    last = labels[-1]
    if last.isdigit() and last.isascii():
        return True
    return _parse_ipv4_number(last) is not None and last[:2] in ("0x", "0X")


def parse_ipv4_number_host(host: str) -> ipaddress.IPv4Address | None:
    """Parse a WHATWG IPv4 host (1-4 decimal, octal or hex parts).

    Returns ``None`` when *host* is not a valid IPv4 host.
    """
    labels = host.split(".")
    if labels[-1] == "" and len(labels) > 1:
        labels.pop()
    if not 1 <= len(labels) <= 4 or any(label == "" for label in labels):
        return None

    numbers: list[int] = []
    for label in labels:
        if not label.isascii():
            return None
        number = _parse_ipv4_number(label)
        if number is None or number < 0:
            return None
        numbers.append(number)

    if any(number > 255 for number in numbers[:-1]):
        return None
    if numbers[-1] >= 256 ** (5 - len(numbers)):
        return None

    value = numbers[-1]
    for index, number in enumerate(numbers[:-1]):
        value += number * 256 ** (3 - index)
    return ipaddress.IPv4Address(value)


class MalformedHostError(ValueError):
    """A host that ends in a number but is not a valid IPv4 address."""


def normalize_hostname(raw: str) -> str:
    """Canonicalise a URL host for classification.

    Percent-decodes, lowercases, removes IPv6 brackets and zone ids and a
    trailing dot, and rewrites IPv4 number forms as dotted quads.

    Raises
    ------
    MalformedHostError
        If the host ends in a number but is not a valid IPv4 address.
    """
    host = unquote(raw).strip().lower()
    if host.startswith("[") or ":" in host:
        inner = _strip_brackets_and_zone(host)
        parsed = parse_ip(inner)
        return str(parsed) if parsed is not None else inner

    host = host.rstrip(".")
    if host and ends_in_number(host):
        ipv4 = parse_ipv4_number_host(host)
        if ipv4 is None:
            raise MalformedHostError(f"invalid IPv4 host: {raw!r}")
        return str(ipv4)
    return host


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def _match_ipv4(address: ipaddress.IPv4Address) -> str | None:
    for network in PRIVATE_IPV4_NETWORKS:
        if address in network:
            return str(network)
    return None


def is_private_or_reserved_ipv4(address: ipaddress.IPv4Address | str) -> bool:
    if isinstance(address, str):
        address = ipaddress.IPv4Address(address)
    return _match_ipv4(address) is not None


def mapped_ipv4_from_ipv6(address: ipaddress.IPv6Address) -> ipaddress.IPv4Address | None:
    """Return the IPv4 address embedded in ``::ffff:0:0/96``, if any.

    The dotted (``::ffff:1.2.3.4``) and hextet (``::ffff:7f00:1``)
    notations parse to the same bytes, so both are handled here.
    """
    return address.ipv4_mapped


def _match_ipv6(address: ipaddress.IPv6Address) -> str | None:
    mapped = mapped_ipv4_from_ipv6(address)
    if mapped is not None:
        return _match_ipv4(mapped)
    for network in PRIVATE_IPV6_NETWORKS:
        if address in network:
            return str(network)
    return None


def is_private_or_reserved_ipv6(address: ipaddress.IPv6Address | str) -> bool:
    if isinstance(address, str):
        address = ipaddress.IPv6Address(_strip_brackets_and_zone(address))
    return _match_ipv6(address) is not None


def classify_address(value: str | IPAddress) -> AddressClassification:
    """Classify an IP address.

    Raises
    ------
    ValueError
        If *value* is not an IP address.
    """
    address = value if not isinstance(value, str) else parse_ip(value)
    if address is None:
        raise ValueError(f"not an IP address: {value!r}")

    if isinstance(address, ipaddress.IPv4Address):
        matched = _match_ipv4(address)
    else:
        matched = _match_ipv6(address)
    return AddressClassification(
        address=str(address),
        version=address.version,
        is_private_or_reserved=matched is not None,
        matched_range=matched,
    )


def is_disallowed_ip(value: str) -> bool:
    """Return ``True`` unless *value* is a public IP address.

    Anything that does not parse as an IP is disallowed.
    """
    address = parse_ip(value)
    if address is None:
        return True
    return classify_address(address).is_private_or_reserved


def is_disallowed_hostname(host: str) -> bool:
    """Return ``True`` for ``localhost`` and any ``*.localhost`` name."""
    name = host.strip().lower().rstrip(".")
    return name == "localhost" or name.endswith(".localhost")
