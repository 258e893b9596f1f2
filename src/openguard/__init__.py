"""OpenGuard -- request-interception guards for autonomous agents.

Every intercepted action is decided as pass, warn or block before it
runs.

Guards
------
1. Command guard (:mod:`openguard.commands`) -- destructive shell commands.
2. Network guard (:mod:`openguard.network`) -- egress allowlist and SSRF.
3. Content guards (:mod:`openguard.content`) -- prompt-injection
   classification of channel messages, inter-agent messages and fetched
   web pages.

:class:`~openguard.host.GuardHost` builds and registers all of them on a
gateway's :class:`~openguard.core.interfaces.InterceptionApi`.
"""
from __future__ import annotations

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Guards and plugins
# ---------------------------------------------------------------------------
from openguard.commands import (
    CommandGuard,
    CommandGuardPlugin,
    RuleSet,
    load_rule_set,
    load_rules,
)
from openguard.content import (
    AgentGuardPlugin,
    ChannelGuardPlugin,
    ContentGuard,
    LazyClassifier,
    OpenRouterClassifier,
    TransformersClassifier,
    WebGuardPlugin,
    build_classifier,
    chunk_content,
)

# ---------------------------------------------------------------------------
# Core types, errors, config, interfaces
# ---------------------------------------------------------------------------
from openguard.core.config import (
    AgentGuardConfig,
    ChannelGuardConfig,
    ClassificationConfig,
    ClassifierConfig,
    CommandGuardConfig,
    GuardsConfig,
    NetworkGuardConfig,
    WebGuardConfig,
)
from openguard.core.errors import (
    ClassifierLoadError,
    ClassifierRequestError,
    ConfigCompileError,
    ConfigError,
    ConfigLoadError,
    FetchError,
    GuardError,
    InvalidInputError,
    OracleError,
    ResolutionError,
)
from openguard.core.interfaces import (
    GuardPlugin,
    HostResolver,
    InjectionClassifier,
    InMemoryInterceptionApi,
    InterceptionApi,
    StaticClassifier,
    StaticHostResolver,
)
from openguard.core.types import (
    ClassifierResult,
    GuardAction,
    GuardVerdict,
    HookResult,
    MessageEvent,
    RuleCategory,
    TargetKind,
    ToolCallEvent,
)
from openguard.host import GuardHost
from openguard.network import (
    NetworkGuard,
    NetworkGuardPlugin,
    classify_address,
    is_disallowed_hostname,
    is_disallowed_ip,
)
from openguard.shell import split_command, strip_single_quotes

__all__ = [
    "__version__",
    # Guards
    "CommandGuard",
    "ContentGuard",
    "GuardHost",
    "NetworkGuard",
    # Plugins
    "AgentGuardPlugin",
    "ChannelGuardPlugin",
    "CommandGuardPlugin",
    "NetworkGuardPlugin",
    "WebGuardPlugin",
    # Classifiers
    "LazyClassifier",
    "OpenRouterClassifier",
    "TransformersClassifier",
    "build_classifier",
    # Helpers
    "RuleSet",
    "chunk_content",
    "classify_address",
    "is_disallowed_hostname",
    "is_disallowed_ip",
    "load_rule_set",
    "load_rules",
    "split_command",
    "strip_single_quotes",
    # Config
    "AgentGuardConfig",
    "ChannelGuardConfig",
    "ClassificationConfig",
    "ClassifierConfig",
    "CommandGuardConfig",
    "GuardsConfig",
    "NetworkGuardConfig",
    "WebGuardConfig",
    # Errors
    "ClassifierLoadError",
    "ClassifierRequestError",
    "ConfigCompileError",
    "ConfigError",
    "ConfigLoadError",
    "FetchError",
    "GuardError",
    "InvalidInputError",
    "OracleError",
    "ResolutionError",
    # Interfaces
    "GuardPlugin",
    "HostResolver",
    "InMemoryInterceptionApi",
    "InjectionClassifier",
    "InterceptionApi",
    "StaticClassifier",
    "StaticHostResolver",
    # Types
    "ClassifierResult",
    "GuardAction",
    "GuardVerdict",
    "HookResult",
    "MessageEvent",
    "RuleCategory",
    "TargetKind",
    "ToolCallEvent",
]
