"""Destructive shell-command guard.

Evaluation order for one command:

1. Single-quoted content is emptied (it is an inert literal).
2. The full command is matched against every rule.
3. Each ``&&`` / ``||`` / ``;`` segment is matched against every rule.

The first rule that fires (and is not a suppressed ``pipe_to_shell``
hit) blocks the command.
"""
from __future__ import annotations

import logging

from openguard.commands.rules import PatternRule, RuleSet, load_rule_set
from openguard.core.config import CommandGuardConfig
from openguard.core.errors import ConfigError
from openguard.core.types import GuardVerdict
from openguard.shell import split_command, strip_single_quotes

logger = logging.getLogger(__name__)

CONFIG_UNAVAILABLE_REASON = "Command guard config unavailable — blocking for safety."
CONFIG_FAILED_LABEL = "config_failed"

_LOG_COMMAND_CHARS = 200


class CommandGuard:
    """Pattern-based guard for shell commands.

    Parameters
    ----------
    rule_set:
        Compiled rules, or ``None`` when no rule set could be built.  In
        that case every command blocks unless *fail_open* is set.
    fail_open:
        Pass commands uninspected when *rule_set* is ``None``.
    log_blocks:
        Log every block at WARNING.
    """

    def __init__(
        self,
        rule_set: RuleSet | None,
        *,
        fail_open: bool = False,
        log_blocks: bool = True,
    ) -> None:
        self._rule_set = rule_set
        self._fail_open = fail_open
        self._log_blocks = log_blocks

    @classmethod
    def from_config(cls, config: CommandGuardConfig) -> CommandGuard:
        """Build a guard from plugin options, loading its rule file."""
        try:
            rule_set: RuleSet | None = load_rule_set(config.rules_path)
        except ConfigError as exc:
            logger.critical("Command guard has no usable rules: %s", exc.message)
            rule_set = None
        return cls(rule_set, fail_open=config.fail_open, log_blocks=config.log_blocks)

    @property
    def config_failed(self) -> bool:
        return self._rule_set is None

    @property
    def rule_set(self) -> RuleSet | None:
        return self._rule_set

    def evaluate(self, command: str | None) -> GuardVerdict:
        """Return the verdict for *command*."""
        if not command or not command.strip():
            return GuardVerdict.passed()

        if self._rule_set is None:
            if self._fail_open:
                logger.critical(
                    "Command guard running without rules (fail-open); passing %r",
                    command[:_LOG_COMMAND_CHARS],
                )
                return GuardVerdict.passed(label=CONFIG_FAILED_LABEL)
            return GuardVerdict.blocked(CONFIG_UNAVAILABLE_REASON, label=CONFIG_FAILED_LABEL)

        rule = self._match(self._rule_set, command)
        if rule is None:
            return GuardVerdict.passed()

        if self._log_blocks:
            logger.warning(
                "Blocked command (%s): %s",
                rule.category.value,
                command[:_LOG_COMMAND_CHARS],
            )
        return GuardVerdict.blocked(
            rule.message,
            label=rule.category.value,
            category=rule.category.value,
            evidence=command[:_LOG_COMMAND_CHARS],
        )

    @staticmethod
    def _match(rule_set: RuleSet, command: str) -> PatternRule | None:
        stripped = strip_single_quotes(command)

        rule = rule_set.first_match(stripped)
        if rule is not None:
            return rule

        for segment in split_command(stripped):
            rule = rule_set.first_match(segment)
            if rule is not None:
                return rule
        return None
