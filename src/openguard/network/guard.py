"""Network egress and SSRF guard.

:meth:`NetworkGuard.evaluate` handles two kinds of target:

``fetch``
    A URL about to be fetched.  Its hostname goes through the domain
    pipeline; a URL whose hostname cannot be parsed is blocked.
``exec``
    A shell command.  Commands that do not run a network tool pass.
    Network commands are blocked outright if they match an exfiltration
    pattern; otherwise every ``http(s)://`` URL in them goes through the
    domain pipeline.

Domain pipeline (first failure wins): direct IP, ``localhost``, allowlist,
DNS re-resolution.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from openguard.core.config import NetworkGuardConfig
from openguard.core.interfaces import HostResolver
from openguard.core.types import GuardVerdict, TargetKind
from openguard.network.addresses import classify_address, is_disallowed_hostname, parse_ip
from openguard.network.resolver import SystemResolver, check_dns_resolution
from openguard.network.urls import (
    DomainMatcher,
    detect_network_command,
    extract_hostname,
    extract_urls,
    match_blocked_pattern,
)

logger = logging.getLogger(__name__)

GUARD_ERROR_REASON = "Network guard error — blocking as a precaution."
EXFILTRATION_REASON = (
    "Network guard blocked exec: matches blocked pattern (potential data exfiltration)."
)

# Verdict labels
DIRECT_IP = "direct_ip"
DISALLOWED_HOSTNAME = "disallowed_hostname"
NOT_ALLOWLISTED = "not_allowlisted"
DNS_UNVERIFIED = "dns_unverified"
INVALID_URL = "invalid_url"
EXFILTRATION = "exfiltration"
GUARD_ERROR = "guard_error"


@dataclass(frozen=True, slots=True)
class DomainCheck:
    """Outcome of running one hostname through the domain pipeline."""

    hostname: str
    label: str | None = None
    reason: str | None = None

    @property
    def blocked(self) -> bool:
        return self.reason is not None


class NetworkGuard:
    """Evaluates fetch URLs and shell commands against the egress policy.

    The base allowlist matcher and one matcher per ``agent_overrides``
    entry are built here and never modified afterwards.

    Parameters
    ----------
    config:
        Validated network-guard options.
    resolver:
        DNS backend; defaults to :class:`SystemResolver`.
    """

    def __init__(
        self,
        config: NetworkGuardConfig | None = None,
        resolver: HostResolver | None = None,
    ) -> None:
        self._config = config or NetworkGuardConfig()
        self._resolver: HostResolver = resolver or SystemResolver()
        self._base_matcher = DomainMatcher(self._config.allowed_domains)
        self._agent_matchers: dict[str, DomainMatcher] = {
            agent_id: self._base_matcher.extended(extra)
            for agent_id, extra in self._config.agent_overrides.items()
        }

    @property
    def config(self) -> NetworkGuardConfig:
        return self._config

    def matcher_for(self, agent_id: str | None = None) -> DomainMatcher:
        """Return the effective allowlist matcher for *agent_id*."""
        if agent_id and agent_id in self._agent_matchers:
            return self._agent_matchers[agent_id]
        return self._base_matcher

    # -- domain pipeline ----------------------------------------------------

    async def check_domain(self, hostname: str, agent_id: str | None = None) -> DomainCheck:
        """Run a normalised *hostname* through the domain pipeline."""
        config = self._config
        address = parse_ip(hostname)

        if address is not None and config.block_direct_ip:
            classification = classify_address(address)
            reason = f"direct IP access blocked: {hostname}"
            if classification.is_private_or_reserved:
                reason += " (non-public/reserved address)"
            return DomainCheck(hostname, DIRECT_IP, reason)

        if is_disallowed_hostname(hostname):
            return DomainCheck(hostname, DISALLOWED_HOSTNAME, f"hostname blocked: {hostname}")

        if not self.matcher_for(agent_id).matches(hostname):
            return DomainCheck(hostname, NOT_ALLOWLISTED, f"domain not in allowlist: {hostname}")

        if config.resolve_dns and not await check_dns_resolution(
            hostname, self._resolver, config.dns_timeout_ms
        ):
            return DomainCheck(
                hostname,
                DNS_UNVERIFIED,
                f"DNS resolution blocked: {hostname} resolves to private/reserved IP",
            )

        return DomainCheck(hostname)

    # -- evaluation -----------------------------------------------------------

    async def evaluate(
        self,
        kind: TargetKind | str,
        target: str | None,
        agent_id: str | None = None,
    ) -> GuardVerdict:
        """Return the verdict for a fetch URL or an exec command.

        Never raises: unexpected errors block, or pass when the guard is
        configured to fail open.
        """
        if not target or not target.strip():
            return GuardVerdict.passed()
        kind = TargetKind(kind)

        try:
            if kind is TargetKind.FETCH:
                verdict = await self._evaluate_fetch(target, agent_id)
            else:
                verdict = await self._evaluate_exec(target, agent_id)
        except Exception:
            logger.exception("Network guard failed while evaluating a %s target", kind.value)
            if self._config.fail_open:
                logger.warning("Network guard failing open after an internal error")
                return GuardVerdict.passed(label=GUARD_ERROR)
            return GuardVerdict.blocked(GUARD_ERROR_REASON, label=GUARD_ERROR)

        if verdict.is_blocked and self._config.log_blocks:
            logger.warning(
                "Blocked %s (agent: %s, %s): %s",
                kind.value,
                agent_id or "unknown",
                verdict.label,
                verdict.reason,
            )
        return verdict

    async def _evaluate_fetch(self, url: str, agent_id: str | None) -> GuardVerdict:
        hostname = extract_hostname(url)
        if hostname is None:
            return GuardVerdict.blocked(
                "Network guard blocked web_fetch: invalid URL.",
                label=INVALID_URL,
                evidence=url[:200],
            )
        check = await self.check_domain(hostname, agent_id)
        if check.blocked:
            return GuardVerdict.blocked(
                f"Network guard blocked web_fetch: {check.reason}",
                label=check.label or NOT_ALLOWLISTED,
                evidence=hostname,
            )
        return GuardVerdict.passed(label="allowed")

    async def _evaluate_exec(self, command: str, agent_id: str | None) -> GuardVerdict:
        if not detect_network_command(command):
            return GuardVerdict.passed()

        pattern = match_blocked_pattern(command, self._config.blocked_patterns)
        if pattern is not None:
            return GuardVerdict.blocked(EXFILTRATION_REASON, label=EXFILTRATION, evidence=pattern)

        for url in extract_urls(command):
            hostname = extract_hostname(url)
            if hostname is None:
                return GuardVerdict.blocked(
                    "Network guard blocked exec: invalid URL.",
                    label=INVALID_URL,
                    evidence=url[:200],
                )
            check = await self.check_domain(hostname, agent_id)
            if check.blocked:
                return GuardVerdict.blocked(
                    f"Network guard blocked exec: {check.reason}",
                    label=check.label or NOT_ALLOWLISTED,
                    evidence=hostname,
                )
        return GuardVerdict.passed(label="allowed")
