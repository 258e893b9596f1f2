"""OpenGuard host -- builds and registers every enabled guard plugin.

Usage
-----
::

    from openguard.core.interfaces import InMemoryInterceptionApi
    from openguard.host import GuardHost

    api = InMemoryInterceptionApi(host_config)
    host = GuardHost(api)
    host.register_all()

    result = await api.dispatch_tool_call(
        {"toolName": "exec", "params": {"command": "rm -rf /"}}
    )

Plugins are registered in a fixed order: command, network, web, agent,
channel.  A plugin whose entry sets ``enabled: false`` is skipped.
Content plugins whose ``classifier`` options are identical share one
lazily-loaded classifier, so the model is loaded once per process.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from openguard.commands.plugin import CommandGuardPlugin
from openguard.content.classifiers import LazyClassifier, build_classifier
from openguard.content.plugins import AgentGuardPlugin, ChannelGuardPlugin, WebGuardPlugin
from openguard.core.config import ClassifierConfig, GuardsConfig
from openguard.network.plugin import NetworkGuardPlugin

if TYPE_CHECKING:
    import httpx

    from openguard.core.interfaces import (
        GuardPlugin,
        HostResolver,
        InjectionClassifier,
        InterceptionApi,
    )

logger = logging.getLogger(__name__)


class GuardHost:
    """Composes the guard plugins for one interception API.

    Parameters
    ----------
    api:
        The gateway's interception surface.  Its ``config`` mapping is
        read when *config* is not given.
    config:
        Pre-validated configuration for every plugin.
    resolver:
        DNS backend shared by the network and web guards.
    classifier:
        Oracle shared by every content plugin.  When ``None`` one is built
        per distinct ``classifier`` configuration.
    transport:
        ``httpx`` transport for the web guard's pre-fetch.
    """

    def __init__(
        self,
        api: InterceptionApi,
        config: GuardsConfig | None = None,
        *,
        resolver: HostResolver | None = None,
        classifier: InjectionClassifier | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api = api
        self._config = config or GuardsConfig.from_host_config(api.config)
        self._resolver = resolver
        self._classifier = classifier
        self._transport = transport
        self._classifiers: dict[str, LazyClassifier] = {}
        self._plugins: list[GuardPlugin] = []

    @property
    def config(self) -> GuardsConfig:
        return self._config

    @property
    def plugins(self) -> list[GuardPlugin]:
        return list(self._plugins)

    def _classifier_for(self, config: ClassifierConfig) -> InjectionClassifier:
        if self._classifier is not None:
            return self._classifier
        key = config.model_dump_json()
        if key not in self._classifiers:
            self._classifiers[key] = build_classifier(config)
        return self._classifiers[key]

    def build_plugins(self) -> list[GuardPlugin]:
        """Instantiate every enabled plugin without registering it."""
        config = self._config
        candidates: list[GuardPlugin] = [
            CommandGuardPlugin(config.command_guard),
            NetworkGuardPlugin(config.network_guard, resolver=self._resolver),
            WebGuardPlugin(
                config.web_guard,
                self._classifier_for(config.web_guard.classifier),
                resolver=self._resolver,
                transport=self._transport,
            ),
            AgentGuardPlugin(config.agent_guard, self._classifier_for(config.agent_guard.classifier)),
            ChannelGuardPlugin(
                config.channel_guard, self._classifier_for(config.channel_guard.classifier)
            ),
        ]
        return [plugin for plugin in candidates if config.is_enabled(plugin.id)]

    def register_all(self) -> list[GuardPlugin]:
        """Register every enabled plugin on the API and return them."""
        if self._plugins:
            return self.plugins
        for plugin in self.build_plugins():
            plugin.register(self._api)
            self._plugins.append(plugin)
        skipped = sorted(self._config.disabled)
        logger.info(
            "OpenGuard registered %d plugins%s",
            len(self._plugins),
            f" (disabled: {', '.join(skipped)})" if skipped else "",
        )
        return self.plugins
