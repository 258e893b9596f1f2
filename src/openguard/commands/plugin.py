"""Interception adapter for the command guard."""
from __future__ import annotations

import logging

from openguard.commands.guard import CommandGuard
from openguard.core.config import CommandGuardConfig, plugin_options
from openguard.core.errors import InvalidInputError
from openguard.core.interfaces import InterceptionApi
from openguard.core.types import HookResult, ToolCallEvent

logger = logging.getLogger(__name__)


class CommandGuardPlugin:
    """Blocks destructive shell commands sent to the guarded tools.

    The tool's ``command`` parameter is evaluated by :class:`CommandGuard`.
    Any unexpected error blocks unless ``failOpen`` is set.
    """

    id = "command-guard"
    name = "Command Guard"

    def __init__(self, config: CommandGuardConfig | None = None) -> None:
        self._config = config
        self._guard: CommandGuard | None = None

    @property
    def guard(self) -> CommandGuard | None:
        return self._guard

    def register(self, api: InterceptionApi) -> None:
        config = self._config or CommandGuardConfig.model_validate(plugin_options(api.config, self.id))
        self._config = config
        self._guard = CommandGuard.from_config(config)

        rule_count = len(self._guard.rule_set) if self._guard.rule_set is not None else 0
        logger.info(
            "%s registered: %d rules, guarding %s",
            self.name,
            rule_count,
            ", ".join(config.guarded_tools),
        )
        api.on_tool_call(self.handle_tool_call)

    async def handle_tool_call(self, event: ToolCallEvent) -> HookResult | None:
        config = self._config
        guard = self._guard
        if config is None or guard is None or event.tool_name not in config.guarded_tools:
            return None

        try:
            command = event.text_param("command")
        except InvalidInputError:
            return None

        try:
            verdict = guard.evaluate(command)
        except Exception:
            logger.exception("%s failed while evaluating a command", self.name)
            if config.fail_open:
                return None
            return HookResult.blocking("Command guard error — blocking as a precaution.")

        if verdict.is_blocked:
            return HookResult.blocking(verdict.reason or "Command blocked.")
        return None
