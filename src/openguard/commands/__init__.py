"""Destructive shell-command guard.

* **CommandGuard** -- pattern evaluation over the full command and each
  chained segment, after single-quoted literals are emptied.
* **RuleSet** / **PatternRule** -- the compiled, immutable rule set.
* **load_rules** / **load_rule_set** -- rule file loading, the latter with
  atomic fallback to **FALLBACK_RULES**.
* **CommandGuardPlugin** -- the interception adapter (``command-guard``).
"""
from __future__ import annotations

from openguard.commands.guard import CommandGuard
from openguard.commands.plugin import CommandGuardPlugin
from openguard.commands.rules import (
    FALLBACK_RULES,
    PatternRule,
    RuleDocument,
    RuleEntry,
    RuleSet,
    compile_rules,
    load_rules,
    load_rule_set,
)

__all__ = [
    "FALLBACK_RULES",
    "CommandGuard",
    "CommandGuardPlugin",
    "PatternRule",
    "RuleDocument",
    "RuleEntry",
    "RuleSet",
    "compile_rules",
    "load_rule_set",
    "load_rules",
]
