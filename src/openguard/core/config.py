"""OpenGuard plugin configuration.

Defines the validated configuration models consumed by every guard.  The
host gateway stores each plugin's options under
``plugins.entries.<plugin-id>.config`` using camelCase keys; every model
accepts those aliases as well as the snake_case field names.  All fields
carry defaults, so an empty mapping is a valid configuration.
"""
from __future__ import annotations

import os
import re
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_ALLOWED_DOMAINS: list[str] = [
    "github.com", "*.github.com",
    "npmjs.org", "registry.npmjs.org",
    "pypi.org", "*.pypi.org",
    "api.anthropic.com",
]

DEFAULT_BLOCKED_PATTERNS: list[str] = [
    r"curl.*\|\s*sh", r"wget.*\|\s*sh",
    r"\|\s*curl\s+.*-X\s+POST", r"\|\s*curl\s+.*-XPOST",
    r"\|\s*curl\s+.*--request\s+POST",
    r"curl\s+.*-d\s+", r"curl\s+.*--data", r"curl\s+.*-F\s+",
    r"base64\s+-d", r"echo.*\|.*base64",
]

DEFAULT_MODEL_ID = "ProtectAI/deberta-v3-base-prompt-injection-v2"
DEFAULT_OPENROUTER_MODEL = "anthropic/claude-haiku-4-5"


class _PluginConfig(BaseModel):
    """Shared model settings: camelCase aliases, immutable, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


# ---------------------------------------------------------------------------
# Command guard
# ---------------------------------------------------------------------------

class CommandGuardConfig(_PluginConfig):
    """Options for the destructive-command guard."""

    guarded_tools: list[str] = Field(
        default=["exec", "bash"],
        description="Tool names whose ``command`` parameter is inspected.",
    )
    fail_open: bool = Field(
        default=False,
        description=(
            "When True, commands pass uninspected if no rule set could be "
            "compiled.  This is a degraded-security mode."
        ),
    )
    log_blocks: bool = True
    rules_path: str | None = Field(
        default=None,
        description="Rule file to load instead of the bundled one.",
    )


# ---------------------------------------------------------------------------
# Network guard
# ---------------------------------------------------------------------------

class NetworkGuardConfig(_PluginConfig):
    """Options for the network-egress / SSRF guard."""

    guarded_tools: list[str] = Field(default=["web_fetch", "exec"])
    allowed_domains: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_DOMAINS),
        description="Glob patterns of permitted hostnames.",
    )
    blocked_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_PATTERNS),
        description=(
            "Exfiltration regexes; a network command matching any of them "
            "is blocked regardless of destination."
        ),
    )
    block_direct_ip: bool = True
    resolve_dns: bool = True
    dns_timeout_ms: int = Field(default=2000, ge=0, le=60_000)
    agent_overrides: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Extra allowlist patterns per agent id.",
    )
    fail_open: bool = False
    log_blocks: bool = True

    @field_validator("blocked_patterns")
    @classmethod
    def _patterns_compile(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as exc:
                msg = f"blocked pattern does not compile: {pattern!r} ({exc})"
                raise ValueError(msg) from exc
        return value


# ---------------------------------------------------------------------------
# Content classification
# ---------------------------------------------------------------------------

class ClassifierConfig(_PluginConfig):
    """Which oracle backs the content guards and how to reach it."""

    backend: Literal["transformers", "openrouter"] = "transformers"
    model_id: str = DEFAULT_MODEL_ID
    cache_dir: str | None = None
    open_router_api_key: str | None = Field(default=None, repr=False)
    open_router_model: str = DEFAULT_OPENROUTER_MODEL
    timeout_ms: int = Field(default=15_000, ge=1)

    def resolved_api_key(self) -> str | None:
        """Return the configured OpenRouter key, falling back to ``OPENROUTER_API_KEY``."""
        return self.open_router_api_key or os.environ.get("OPENROUTER_API_KEY")


class ClassificationConfig(_PluginConfig):
    """Three-tier scoring thresholds shared by every content guard.

    ``sensitivity`` is the floor below which a chunk's score is ignored.
    ``block_threshold`` is checked before ``warn_threshold``, so a score
    crossing both always blocks.
    """

    sensitivity: float = Field(default=0.5, ge=0.0, le=1.0)
    warn_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    block_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    fail_open: bool = False
    log_detections: bool = True
    chunk_size: int = Field(default=1500, ge=1)
    max_content_length: int = Field(default=50_000, ge=1)
    classifier_timeout_ms: int = Field(default=30_000, ge=1)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)


class ChannelGuardConfig(ClassificationConfig):
    """Options for inbound channel-message classification."""


class AgentGuardConfig(ClassificationConfig):
    """Options for inter-agent ``sessions_send`` classification."""

    guard_agents: list[str] = Field(
        default_factory=list,
        description="Only scan messages sent by these agents.  Empty scans all.",
    )
    skip_target_agents: list[str] = Field(
        default_factory=list,
        description="Never scan messages addressed to these agents.",
    )


class WebGuardConfig(ClassificationConfig):
    """Options for pre-fetch classification of ``web_fetch`` targets."""

    timeout_ms: int = Field(default=10_000, ge=1)
    max_redirects: int = Field(default=5, ge=0, le=20)


# ---------------------------------------------------------------------------
# Host configuration
# ---------------------------------------------------------------------------

_PLUGIN_MODELS: dict[str, type[_PluginConfig]] = {
    "command-guard": CommandGuardConfig,
    "network-guard": NetworkGuardConfig,
    "channel-guard": ChannelGuardConfig,
    "agent-guard": AgentGuardConfig,
    "web-guard": WebGuardConfig,
}


def plugin_entry(host_config: Mapping[str, Any] | None, plugin_id: str) -> Mapping[str, Any]:
    """Return ``plugins.entries.<plugin_id>`` from a host config, or ``{}``."""
    if not host_config:
        return {}
    plugins = host_config.get("plugins") or {}
    entries = plugins.get("entries") or {}
    return entries.get(plugin_id) or {}


def plugin_options(host_config: Mapping[str, Any] | None, plugin_id: str) -> Mapping[str, Any]:
    """Return ``plugins.entries.<plugin_id>.config`` from a host config, or ``{}``."""
    return plugin_entry(host_config, plugin_id).get("config") or {}


class GuardsConfig(BaseModel):
    """Validated configuration for every guard plugin.

    Built from the host gateway's configuration mapping with
    :meth:`from_host_config`; plugins absent from the mapping get their
    defaults.  ``disabled`` lists plugin ids whose entry sets
    ``enabled: false``.
    """

    model_config = ConfigDict(frozen=True)

    command_guard: CommandGuardConfig = Field(default_factory=CommandGuardConfig)
    network_guard: NetworkGuardConfig = Field(default_factory=NetworkGuardConfig)
    channel_guard: ChannelGuardConfig = Field(default_factory=ChannelGuardConfig)
    agent_guard: AgentGuardConfig = Field(default_factory=AgentGuardConfig)
    web_guard: WebGuardConfig = Field(default_factory=WebGuardConfig)
    disabled: frozenset[str] = frozenset()

    @classmethod
    def from_host_config(cls, host_config: Mapping[str, Any] | None) -> GuardsConfig:
        fields: dict[str, Any] = {}
        disabled: set[str] = set()
        for plugin_id, model in _PLUGIN_MODELS.items():
            entry = plugin_entry(host_config, plugin_id)
            if entry.get("enabled", True) is False:
                disabled.add(plugin_id)
            fields[plugin_id.replace("-", "_")] = model.model_validate(
                plugin_options(host_config, plugin_id)
            )
        return cls(**fields, disabled=frozenset(disabled))

    def is_enabled(self, plugin_id: str) -> bool:
        return plugin_id not in self.disabled
