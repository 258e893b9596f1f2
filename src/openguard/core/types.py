"""OpenGuard shared domain types.

This module defines every value type, enum, and Pydantic model that is
shared across the guards and the interception adapters.

Key design decisions:
* Verdicts are produced fresh per evaluation and never persisted, so
  :class:`GuardVerdict` is a frozen model.
* Host events arrive as loosely-typed mappings; :class:`ToolCallEvent` and
  :class:`MessageEvent` accept the host's camelCase keys and keep ``params``
  as an untyped ``dict`` so unknown tools can be parsed before dispatch.
* Enums use *string* values so they serialise cleanly to JSON.
"""
from __future__ import annotations

import enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from openguard.core.errors import InvalidInputError

INJECTION_LABEL = "INJECTION"
SAFE_LABEL = "SAFE"

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class GuardAction(enum.StrEnum):
    """The three possible outcomes of a guard evaluation."""

    PASS = "pass"
    WARN = "warn"
    BLOCK = "block"


class RuleCategory(enum.StrEnum):
    """Categories of destructive shell-command rules.

    Only :attr:`PIPE_TO_SHELL` matches can be exempted by safe pipe
    targets.
    """

    DESTRUCTIVE = "destructive"
    SYSTEM_DAMAGE = "system_damage"
    PIPE_TO_SHELL = "pipe_to_shell"
    GIT_DESTRUCTIVE = "git_destructive"
    INTERPRETER_ESCAPE = "interpreter_escape"


class TargetKind(enum.StrEnum):
    """What a network evaluation inspects: a fetch URL or a shell command."""

    FETCH = "fetch"
    EXEC = "exec"


# ---------------------------------------------------------------------------
# Verdicts
# ---------------------------------------------------------------------------

class GuardVerdict(BaseModel):
    """The decision a guard reached for one intercepted action.

    ``label`` names what produced the decision: a rule category, a network
    check, or a classifier label.  ``reason`` is the human-readable text
    surfaced to the agent when the action is blocked or warned.
    """

    model_config = ConfigDict(frozen=True)

    action: GuardAction
    label: str
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    evidence: str | None = None
    reason: str | None = None
    category: str | None = None

    @classmethod
    def passed(cls, label: str = SAFE_LABEL, score: float = 0.0) -> GuardVerdict:
        return cls(action=GuardAction.PASS, label=label, score=score)

    @classmethod
    def blocked(
        cls,
        reason: str,
        *,
        label: str,
        score: float = 1.0,
        evidence: str | None = None,
        category: str | None = None,
    ) -> GuardVerdict:
        return cls(
            action=GuardAction.BLOCK,
            label=label,
            score=score,
            evidence=evidence,
            reason=reason,
            category=category,
        )

    @classmethod
    def warned(
        cls,
        reason: str,
        *,
        label: str,
        score: float,
        evidence: str | None = None,
    ) -> GuardVerdict:
        return cls(
            action=GuardAction.WARN,
            label=label,
            score=score,
            evidence=evidence,
            reason=reason,
        )

    @property
    def is_blocked(self) -> bool:
        return self.action is GuardAction.BLOCK

    @property
    def is_warning(self) -> bool:
        return self.action is GuardAction.WARN


class ClassifierResult(BaseModel):
    """Output of the text-classification oracle for one piece of text."""

    model_config = ConfigDict(frozen=True)

    label: Literal["INJECTION", "SAFE"]
    confidence: float = Field(ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Interception events and results
# ---------------------------------------------------------------------------

class ToolCallEvent(BaseModel):
    """A tool invocation intercepted before it runs."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    tool_name: str = Field(alias="toolName")
    params: dict[str, Any] = Field(default_factory=dict)
    agent_id: str | None = Field(default=None, alias="agentId")

    def param(self, name: str) -> Any:
        """Return ``params[name]`` or ``None`` when absent."""
        return self.params.get(name)

    def text_param(self, name: str) -> str:
        """Return ``params[name]`` as non-blank text.

        Raises
        ------
        InvalidInputError
            If the parameter is missing, not a string, or blank.
        """
        value = self.params.get(name)
        if not isinstance(value, str) or not value.strip():
            raise InvalidInputError(
                f"Tool call has no {name!r} text to evaluate",
                details={"tool": self.tool_name, "param": name},
            )
        return value


class MessageEvent(BaseModel):
    """An inbound channel message intercepted before the agent sees it."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    message: dict[str, Any] = Field(default_factory=dict)
    text: str | None = None
    channel: str | None = None

    @property
    def content(self) -> str:
        """The message text (``message.text`` first, then top-level ``text``)."""
        raw = self.message.get("text")
        if isinstance(raw, str) and raw:
            return raw
        return self.text or ""


class HookResult(BaseModel):
    """What a guard hands back to the gateway for enforcement.

    A pass is represented by returning ``None`` instead of a result.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    block: bool = False
    block_reason: str | None = Field(default=None, alias="blockReason")
    warn: bool = False
    warn_message: str | None = Field(default=None, alias="warnMessage")

    @classmethod
    def blocking(cls, reason: str) -> HookResult:
        return cls(block=True, block_reason=reason)

    @classmethod
    def warning(cls, message: str) -> HookResult:
        return cls(warn=True, warn_message=message)

    def to_wire(self) -> dict[str, Any]:
        """Serialise with the gateway's camelCase keys, dropping unset fields."""
        return self.model_dump(by_alias=True, exclude_defaults=True)
