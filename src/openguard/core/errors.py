"""OpenGuard error-code hierarchy.

Every failure a guard can run into while deciding a verdict is represented
as a concrete exception class carrying a stable error code.

Hierarchy
---------
::

    GuardError
    +-- ConfigError          (OG-E1xx)
    |   +-- ConfigLoadError
    |   +-- ConfigCompileError
    +-- InvalidInputError    (OG-E200)
    +-- ResolutionError      (OG-E300)
    +-- OracleError          (OG-E4xx)
    |   +-- ClassifierLoadError
    |   +-- ClassifierRequestError
    +-- FetchError           (OG-E500)

Usage
-----
Guards raise concrete subclasses internally and absorb them into a
:class:`~openguard.core.types.GuardVerdict` at their public boundary::

    try:
        rule_set = load_rules(path)
    except ConfigError:
        rule_set = compile_rules(FALLBACK_RULES, FALLBACK_SOURCE)

Nothing in this hierarchy is ever raised across the interception boundary.
"""
from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class GuardError(Exception):
    """Base exception for all OpenGuard errors.

    Attributes
    ----------
    code : str
        OpenGuard error code, e.g. ``"OG-E100"``.
    message : str
        Human-readable description.
    details : dict[str, Any]
        Machine-readable context specific to the error instance.
    resolution : str
        Suggested action for the operator.
    """

    code: str = "OG-E000"
    message: str = "Unknown guard error"
    resolution: str = ""

    def __init__(
        self,
        message: str | None = None,
        *,
        details: dict[str, Any] | None = None,
        resolution: str | None = None,
    ) -> None:
        self.details: dict[str, Any] = details or {}
        if message is not None:
            self.message = message
        if resolution is not None:
            self.resolution = resolution
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialise the error for structured logs."""
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["detail"] = self.details
        if self.resolution:
            payload["resolution"] = self.resolution
        return {"error": payload}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ===================================================================
# OG-E1xx  Configuration errors
# ===================================================================

class ConfigError(GuardError):
    """OG-E1xx -- Rule or plugin configuration could not be used."""

    code = "OG-E1XX"


class ConfigLoadError(ConfigError):
    """OG-E100 -- Rule file missing, unreadable, or structurally invalid.

    Not fatal: the command guard falls back to its embedded rule set.
    """

    code = "OG-E100"
    message = "Rule configuration could not be loaded"
    resolution = (
        "Check that the rule file exists and contains 'patterns' and "
        "'safe_pipe_targets' arrays."
    )


class ConfigCompileError(ConfigError):
    """OG-E101 -- A rule pattern failed to compile."""

    code = "OG-E101"
    message = "Rule pattern failed to compile"
    resolution = "Fix the offending regular expression in the rule file."


# ===================================================================
# OG-E200  Input errors
# ===================================================================

class InvalidInputError(GuardError):
    """OG-E200 -- Nothing to evaluate (empty command, text, or URL).

    Guards treat this as a pass-through no-op.
    """

    code = "OG-E200"
    message = "Nothing to evaluate"


# ===================================================================
# OG-E300  Resolution errors
# ===================================================================

class ResolutionError(GuardError):
    """OG-E300 -- DNS resolution failed or timed out.

    A timeout and a lookup failure are treated identically: the host is
    not verified and the request is blocked unless the guard fails open.
    """

    code = "OG-E300"
    message = "Hostname could not be resolved"
    resolution = "Verify the hostname resolves to public addresses."


# ===================================================================
# OG-E4xx  Classification oracle errors
# ===================================================================

class OracleError(GuardError):
    """OG-E4xx -- The text-classification oracle is unavailable or failed."""

    code = "OG-E4XX"
    message = "Classification oracle failed"


class ClassifierLoadError(OracleError):
    """OG-E401 -- The classifier could not be initialised.

    The lazy classifier forgets the failed load so a later call retries.
    """

    code = "OG-E401"
    message = "Classifier could not be loaded"
    resolution = (
        "Check the model id, cache directory, or API key for the "
        "configured classifier backend."
    )


class ClassifierRequestError(OracleError):
    """OG-E402 -- A classification request failed or timed out."""

    code = "OG-E402"
    message = "Classification request failed"


# ===================================================================
# OG-E500  Fetch errors
# ===================================================================

class FetchError(GuardError):
    """OG-E500 -- Pre-fetching a URL for inspection failed."""

    code = "OG-E500"
    message = "Content pre-fetch failed"
