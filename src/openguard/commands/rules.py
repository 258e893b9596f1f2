"""Destructive-command rule loading and compilation.

A rule file is a JSON document of the form::

    {
      "patterns": [
        {"regex": "...", "message": "...", "category": "destructive"}
      ],
      "safe_pipe_targets": ["jq", "grep"]
    }

:func:`load_rules` either returns a fully compiled :class:`RuleSet` or
raises; there is never a partially loaded rule set.
:func:`load_rule_set` wraps it with the atomic fallback to
:data:`FALLBACK_RULES`.
"""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from openguard.core.errors import ConfigCompileError, ConfigLoadError
from openguard.core.types import RuleCategory
from openguard.shell import all_pipe_targets_safe

logger = logging.getLogger(__name__)

BUNDLED_RULES_FILE = "blocked_commands.json"
BUNDLED_SOURCE = "bundled"
FALLBACK_SOURCE = "fallback"

# ---------------------------------------------------------------------------
# Compiled rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PatternRule:
    """One compiled destructive-command pattern.

    Attributes
    ----------
    pattern:
        Compiled regex, searched anywhere in the command.
    message:
        Reason surfaced to the agent when the rule blocks.
    category:
        The rule's :class:`RuleCategory`.
    """

    pattern: re.Pattern[str]
    message: str
    category: RuleCategory

    def matches(self, text: str, safe_pipe_targets: frozenset[str]) -> bool:
        """Return ``True`` if the rule fires on *text*.

        A ``pipe_to_shell`` hit is suppressed when every pipe target in
        *text* is a safe program.
        """
        if self.pattern.search(text) is None:
            return False
        if self.category is RuleCategory.PIPE_TO_SHELL:
            return not all_pipe_targets_safe(text, safe_pipe_targets)
        return True


@dataclass(frozen=True, slots=True)
class RuleSet:
    """An ordered, immutable collection of compiled rules."""

    rules: tuple[PatternRule, ...]
    safe_pipe_targets: frozenset[str] = field(default_factory=frozenset)
    source: str = BUNDLED_SOURCE

    def __len__(self) -> int:
        return len(self.rules)

    def first_match(self, text: str) -> PatternRule | None:
        """Return the first rule (in file order) that fires on *text*."""
        for rule in self.rules:
            if rule.matches(text, self.safe_pipe_targets):
                return rule
        return None

    def by_category(self) -> dict[RuleCategory, list[PatternRule]]:
        grouped: dict[RuleCategory, list[PatternRule]] = {}
        for rule in self.rules:
            grouped.setdefault(rule.category, []).append(rule)
        return grouped


# ---------------------------------------------------------------------------
# Rule file schema
# ---------------------------------------------------------------------------


class RuleEntry(BaseModel):
    """A single ``patterns[]`` element of a rule file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    regex: str = Field(min_length=1)
    message: str
    category: RuleCategory


class RuleDocument(BaseModel):
    """Top-level structure of a rule file."""

    model_config = ConfigDict(frozen=True)

    patterns: list[RuleEntry]
    safe_pipe_targets: list[str]


# ---------------------------------------------------------------------------
# Embedded fallback
# ---------------------------------------------------------------------------

FALLBACK_RULES: dict[str, Any] = {
    "patterns": [
        {
            "regex": r"\brm\s+(-[a-zA-Z]*r[a-zA-Z]*\s+-[a-zA-Z]*f[a-zA-Z]*|(-[a-zA-Z]*f[a-zA-Z]*\s+-[a-zA-Z]*r[a-zA-Z]*)|(-[a-zA-Z]*rf[a-zA-Z]*)|(-[a-zA-Z]*fr[a-zA-Z]*))\b",
            "message": "Recursive force delete blocked.",
            "category": "destructive",
        },
        {"regex": r"\bsudo\s+rm\b", "message": "sudo rm blocked.", "category": "destructive"},
        {
            "regex": r":\(\)\{\s*:\|:\&\s*\}\s*;\s*:",
            "message": "Fork bomb blocked.",
            "category": "system_damage",
        },
        {
            "regex": r"\bchmod\s+(-[a-zA-Z]+\s+)*777\b",
            "message": "chmod 777 blocked.",
            "category": "system_damage",
        },
        {
            "regex": r"\bdd\s+.*if=.*of=/dev/",
            "message": "dd to device blocked.",
            "category": "system_damage",
        },
        {"regex": r"\bmkfs(\.|\s)", "message": "Filesystem format blocked.", "category": "system_damage"},
        {
            "regex": r">\s*/dev/(sd|hd|vd|xvd|nvme|mmcblk)",
            "message": "Direct write to block device blocked.",
            "category": "system_damage",
        },
        {
            "regex": r"\b(curl|wget)\b.*\|\s*(sudo\s+)?(sh|bash|zsh|dash|ksh|python|python3|perl|ruby|node)\b",
            "message": "Pipe-to-shell blocked.",
            "category": "pipe_to_shell",
        },
        {
            "regex": r"\bgit\s+push\s+.*(-f\b|--force\b|--force-with-lease\b)",
            "message": "Git force push blocked.",
            "category": "git_destructive",
        },
        {
            "regex": r"\bgit\s+reset\s+--hard\b",
            "message": "git reset --hard blocked.",
            "category": "git_destructive",
        },
        {
            "regex": r"\bgit\s+branch\s+-D\b",
            "message": "git branch -D blocked.",
            "category": "git_destructive",
        },
        {
            "regex": r"\bgit\s+config\s+--global\s+(?!--get\b)",
            "message": "git config --global write blocked.",
            "category": "git_destructive",
        },
        {
            "regex": r"\bgit\s+rebase\s+--skip\b",
            "message": "git rebase --skip blocked.",
            "category": "git_destructive",
        },
        {
            "regex": r"\bgit\s+clean\s+-[a-zA-Z]*f[a-zA-Z]*(?!.*-n)(?!.*--dry-run)",
            "message": "git clean -f blocked.",
            "category": "git_destructive",
        },
        {
            "regex": r"\b(bash|sh|zsh|dash|ksh)\s+-c\s+[\"']",
            "message": "Shell interpreter escape blocked.",
            "category": "interpreter_escape",
        },
        {"regex": r"\beval\s+[\"']", "message": "eval blocked.", "category": "interpreter_escape"},
        {
            "regex": r"\b(python3?|node|ruby|perl)\s+-(c|e)\s+[\"']",
            "message": "Interpreter inline execution blocked.",
            "category": "interpreter_escape",
        },
    ],
    "safe_pipe_targets": [
        "jq", "grep", "sort", "wc", "head", "tail", "less", "cat", "tee", "tr", "uniq",
    ],
}

# ---------------------------------------------------------------------------
# Loading and compilation
# ---------------------------------------------------------------------------


def compile_rules(document: RuleDocument | Mapping[str, Any], source: str) -> RuleSet:
    """Validate and compile *document* into a :class:`RuleSet`.

    Raises
    ------
    ConfigLoadError
        If *document* does not match the rule file schema.
    ConfigCompileError
        If any regex fails to compile.  No rules are returned in that case.
    """
    if not isinstance(document, RuleDocument):
        try:
            document = RuleDocument.model_validate(document)
        except ValidationError as exc:
            raise ConfigLoadError(
                f"Rule configuration from {source} is invalid",
                details={"source": source, "errors": exc.errors(include_url=False)},
            ) from exc

    compiled: list[PatternRule] = []
    for index, entry in enumerate(document.patterns):
        try:
            pattern = re.compile(entry.regex)
        except re.error as exc:
            raise ConfigCompileError(
                f"Rule {index} from {source} failed to compile: {exc}",
                details={"source": source, "index": index, "regex": entry.regex},
            ) from exc
        compiled.append(PatternRule(pattern=pattern, message=entry.message, category=entry.category))

    return RuleSet(
        rules=tuple(compiled),
        safe_pipe_targets=frozenset(document.safe_pipe_targets),
        source=source,
    )


def _read_rule_text(path: str | Path | None) -> tuple[str, str]:
    if path is None:
        resource = resources.files("openguard.commands").joinpath(BUNDLED_RULES_FILE)
        return resource.read_text(encoding="utf-8"), BUNDLED_SOURCE
    rule_path = Path(path)
    return rule_path.read_text(encoding="utf-8"), str(rule_path)


def load_rules(path: str | Path | None = None) -> RuleSet:
    """Load and compile a rule file (the bundled one when *path* is ``None``).

    Raises
    ------
    ConfigLoadError
        The file is missing, unreadable, not JSON, or fails validation.
    ConfigCompileError
        A pattern does not compile.
    """
    try:
        text, source = _read_rule_text(path)
    except OSError as exc:
        raise ConfigLoadError(
            f"Rule file could not be read: {exc}",
            details={"path": str(path) if path is not None else BUNDLED_RULES_FILE},
        ) from exc

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigLoadError(
            f"Rule file {source} is not valid JSON: {exc}",
            details={"source": source},
        ) from exc

    return compile_rules(raw, source)


def load_rule_set(path: str | Path | None = None) -> RuleSet:
    """Load rules from *path*, falling back to :data:`FALLBACK_RULES`.

    The fallback replaces the whole rule set; rules from a file that
    failed part-way are never mixed in.  Raises :class:`ConfigError` only
    if the embedded fallback itself cannot be compiled.
    """
    try:
        rule_set = load_rules(path)
    except (ConfigLoadError, ConfigCompileError) as exc:
        logger.error(
            "Command rules unavailable (%s: %s); using embedded fallback rules",
            exc.code,
            exc.message,
        )
        return compile_rules(FALLBACK_RULES, FALLBACK_SOURCE)

    logger.debug("Loaded %d command rules from %s", len(rule_set), rule_set.source)
    return rule_set
