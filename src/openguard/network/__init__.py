"""Network egress and SSRF protection.

* **addresses** -- pure IP and hostname classification (private and
  reserved ranges, IPv4-mapped IPv6, WHATWG IPv4 number forms).
* **urls** -- URL extraction, hostname normalisation, allowlist matching
  and network-command detection.
* **resolver** -- bounded DNS re-resolution.
* **NetworkGuard** -- the domain pipeline and exfiltration checks.
* **NetworkGuardPlugin** -- the interception adapter (``network-guard``).
"""
from __future__ import annotations

from openguard.network.addresses import (
    AddressClassification,
    classify_address,
    is_disallowed_hostname,
    is_disallowed_ip,
    is_ip_address,
    is_private_or_reserved_ipv4,
    is_private_or_reserved_ipv6,
    mapped_ipv4_from_ipv6,
    normalize_hostname,
)
from openguard.network.guard import DomainCheck, NetworkGuard
from openguard.network.plugin import NetworkGuardPlugin
from openguard.network.resolver import (
    SystemResolver,
    check_dns_resolution,
    resolves_to_public_ips,
)
from openguard.network.urls import (
    DomainMatcher,
    detect_network_command,
    extract_hostname,
    extract_urls,
    is_domain_allowed,
    match_blocked_pattern,
)

__all__ = [
    "AddressClassification",
    "DomainCheck",
    "DomainMatcher",
    "NetworkGuard",
    "NetworkGuardPlugin",
    "SystemResolver",
    "check_dns_resolution",
    "classify_address",
    "detect_network_command",
    "extract_hostname",
    "extract_urls",
    "is_disallowed_hostname",
    "is_disallowed_ip",
    "is_domain_allowed",
    "is_ip_address",
    "is_private_or_reserved_ipv4",
    "is_private_or_reserved_ipv6",
    "mapped_ipv4_from_ipv6",
    "match_blocked_pattern",
    "normalize_hostname",
    "resolves_to_public_ips",
]
