"""Interception adapter for the network guard."""
from __future__ import annotations

import logging

from openguard.core.config import NetworkGuardConfig, plugin_options
from openguard.core.interfaces import HostResolver, InterceptionApi
from openguard.core.types import HookResult, TargetKind, ToolCallEvent
from openguard.network.guard import GUARD_ERROR_REASON, NetworkGuard

logger = logging.getLogger(__name__)


class NetworkGuardPlugin:
    """Applies the egress policy to ``web_fetch`` URLs and ``exec`` commands.

    A tool call carrying a ``command`` parameter is evaluated as a shell
    command; one carrying only a ``url`` is evaluated as a fetch.
    """

    id = "network-guard"
    name = "Network Access Guard"

    def __init__(
        self,
        config: NetworkGuardConfig | None = None,
        resolver: HostResolver | None = None,
    ) -> None:
        self._config = config
        self._resolver = resolver
        self._guard: NetworkGuard | None = None

    @property
    def guard(self) -> NetworkGuard | None:
        return self._guard

    def register(self, api: InterceptionApi) -> None:
        config = self._config or NetworkGuardConfig.model_validate(plugin_options(api.config, self.id))
        self._config = config
        self._guard = NetworkGuard(config, resolver=self._resolver)
        logger.info(
            "%s registered: guarding %s (domains: %d, blockDirectIp: %s, resolveDns: %s, failOpen: %s)",
            self.name,
            ", ".join(config.guarded_tools),
            len(config.allowed_domains),
            config.block_direct_ip,
            config.resolve_dns,
            config.fail_open,
        )
        api.on_tool_call(self.handle_tool_call)

    async def handle_tool_call(self, event: ToolCallEvent) -> HookResult | None:
        config = self._config
        guard = self._guard
        if config is None or guard is None or event.tool_name not in config.guarded_tools:
            return None

        command = event.param("command")
        url = event.param("url")
        if isinstance(command, str) and command.strip():
            kind, target = TargetKind.EXEC, command
        elif isinstance(url, str) and url.strip():
            kind, target = TargetKind.FETCH, url
        else:
            return None

        try:
            verdict = await guard.evaluate(kind, target, event.agent_id)
        except Exception:
            logger.exception("%s failed while handling %s", self.name, event.tool_name)
            return None if config.fail_open else HookResult.blocking(GUARD_ERROR_REASON)

        if verdict.is_blocked:
            return HookResult.blocking(verdict.reason or GUARD_ERROR_REASON)
        return None
