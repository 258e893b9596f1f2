"""OpenGuard abstract interfaces and in-memory implementations.

This module defines the *structural* interfaces (``typing.Protocol``) for
every collaborator the guards consume -- the host gateway's interception
API, the DNS resolver, and the text-classification oracle -- plus
lightweight in-memory implementations suitable for testing and local
development.

Every Protocol class is decorated with ``@runtime_checkable`` so that
``isinstance`` checks work at run-time in addition to static analysis.
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from openguard.core.errors import ResolutionError
from openguard.core.types import (
    INJECTION_LABEL,
    SAFE_LABEL,
    ClassifierResult,
    HookResult,
    MessageEvent,
    ToolCallEvent,
)

ToolCallHandler = Callable[[ToolCallEvent], Awaitable[HookResult | None]]
MessageHandler = Callable[[MessageEvent], Awaitable[HookResult | None]]

# ===================================================================
# Protocol (interface) definitions
# ===================================================================

@runtime_checkable
class InterceptionApi(Protocol):
    """The registration surface the host gateway exposes to guard plugins.

    A tagged callback registry: tool-call handlers run before a tool
    executes, message handlers run before an inbound message reaches the
    agent.
    """

    @property
    def config(self) -> Mapping[str, Any]:
        """The host configuration mapping (``plugins.entries`` lives here)."""
        ...

    def on_tool_call(self, handler: ToolCallHandler) -> None:
        """Register *handler* for every intercepted tool call."""
        ...

    def on_message(self, handler: MessageHandler) -> None:
        """Register *handler* for every inbound channel message."""
        ...


@runtime_checkable
class GuardPlugin(Protocol):
    """A guard that attaches itself to an :class:`InterceptionApi`."""

    id: str
    name: str

    def register(self, api: InterceptionApi) -> None:
        """Build immutable state from ``api.config`` and register handlers."""
        ...


@runtime_checkable
class InjectionClassifier(Protocol):
    """The text-classification oracle: text in, label and confidence out."""

    async def score(self, text: str) -> ClassifierResult:
        """Classify *text*.

        Raises :class:`~openguard.core.errors.OracleError` when the
        oracle cannot produce an answer.
        """
        ...


@runtime_checkable
class HostResolver(Protocol):
    """Backend for hostname resolution used by SSRF verification."""

    async def resolve(self, host: str) -> list[str]:
        """Return every address *host* resolves to.

        Raises :class:`~openguard.core.errors.ResolutionError` on failure.
        """
        ...


# ===================================================================
# In-memory implementations (testing / development)
# ===================================================================

class InMemoryInterceptionApi:
    """In-process interception registry.

    Stands in for the host gateway: plugins register handlers on it and
    callers dispatch events through :meth:`dispatch_tool_call` and
    :meth:`dispatch_message`.  Handlers run in registration order; the
    first block wins, otherwise the first warning is returned.
    """

    def __init__(self, config: Mapping[str, Any] | None = None) -> None:
        self._config: Mapping[str, Any] = config or {}
        self._tool_handlers: list[ToolCallHandler] = []
        self._message_handlers: list[MessageHandler] = []

    # -- InterceptionApi ------------------------------------------------

    @property
    def config(self) -> Mapping[str, Any]:
        return self._config

    def on_tool_call(self, handler: ToolCallHandler) -> None:
        self._tool_handlers.append(handler)

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handlers.append(handler)

    # -- dispatch helpers (not part of the Protocol) --------------------

    @property
    def tool_call_handlers(self) -> list[ToolCallHandler]:
        return list(self._tool_handlers)

    @property
    def message_handlers(self) -> list[MessageHandler]:
        return list(self._message_handlers)

    async def dispatch_tool_call(
        self, event: ToolCallEvent | Mapping[str, Any]
    ) -> HookResult | None:
        """Run every tool-call handler against *event* and combine results."""
        if not isinstance(event, ToolCallEvent):
            event = ToolCallEvent.model_validate(event)
        return await self._dispatch(self._tool_handlers, event)

    async def dispatch_message(
        self, event: MessageEvent | Mapping[str, Any]
    ) -> HookResult | None:
        """Run every message handler against *event* and combine results."""
        if not isinstance(event, MessageEvent):
            event = MessageEvent.model_validate(event)
        return await self._dispatch(self._message_handlers, event)

    @staticmethod
    async def _dispatch(handlers: list[Any], event: Any) -> HookResult | None:
        warning: HookResult | None = None
        for handler in handlers:
            result = await handler(event)
            if result is None:
                continue
            if result.block:
                return result
            if result.warn and warning is None:
                warning = result
        return warning


class StaticHostResolver:
    """Resolver backed by a fixed ``host -> addresses`` table.

    Unknown hosts raise :class:`ResolutionError`, like an NXDOMAIN answer.
    """

    def __init__(self, records: Mapping[str, list[str]] | None = None) -> None:
        self._records: dict[str, list[str]] = {
            host.lower(): list(addresses) for host, addresses in (records or {}).items()
        }
        self.lookups: list[str] = []

    def add(self, host: str, *addresses: str) -> None:
        """Add or replace a record (test helper)."""
        self._records[host.lower()] = list(addresses)

    async def resolve(self, host: str) -> list[str]:
        self.lookups.append(host)
        try:
            return list(self._records[host.lower()])
        except KeyError:
            raise ResolutionError(
                f"No address records for {host}", details={"host": host}
            ) from None


class StaticClassifier:
    """Phrase-table classifier for tests and local development.

    Text containing any configured phrase (case-insensitive) is labelled
    INJECTION with the highest matching confidence; anything else is SAFE.
    """

    def __init__(
        self,
        phrases: Mapping[str, float] | None = None,
        *,
        safe_confidence: float = 0.99,
    ) -> None:
        self._phrases = {phrase.lower(): conf for phrase, conf in (phrases or {}).items()}
        self._safe_confidence = safe_confidence
        self.calls: list[str] = []

    async def score(self, text: str) -> ClassifierResult:
        self.calls.append(text)
        lowered = text.lower()
        hits = [conf for phrase, conf in self._phrases.items() if phrase in lowered]
        if hits:
            return ClassifierResult(label=INJECTION_LABEL, confidence=max(hits))
        return ClassifierResult(label=SAFE_LABEL, confidence=self._safe_confidence)
