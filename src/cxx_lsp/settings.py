"""
Server settings read from the command line and ``initializationOptions``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from cxx_lsp.trigger import (
    DEFAULT_ELECTRIC_PATTERN,
    DEFAULT_TRIGGER_COMMANDS,
    TriggerPolicy,
    pattern_predicate,
)

logger = logging.getLogger(__name__)

# Known backend shortcuts: name -> command
KNOWN_BACKENDS: dict[str, list[str]] = {
    "clangd": ["clangd"],
    "ccls": ["ccls"],
}

DEFAULT_COMPLETION_TIMEOUT = 2.0


@dataclass
class CompletionSettings:
    """Settings shared by all completion sessions."""

    backend: str = "clangd"
    backend_command: list[str] | None = None
    backend_settings: dict[str, Any] = field(default_factory=dict)
    trigger_commands: frozenset[str] = DEFAULT_TRIGGER_COMMANDS
    electric_command_pattern: str = DEFAULT_ELECTRIC_PATTERN
    completion_timeout: float = DEFAULT_COMPLETION_TIMEOUT
    snippet_support: bool | None = None  # None: follow client capabilities

    def resolve_command(self) -> list[str] | None:
        """Command that spawns the backend, or None if unknown."""
        if self.backend_command:
            return list(self.backend_command)
        command = KNOWN_BACKENDS.get(self.backend)
        if command is None:
            logger.error(
                f"Unknown backend '{self.backend}'. "
                f"Known backends: {', '.join(KNOWN_BACKENDS)}"
            )
        return command

    def trigger_policy(self) -> TriggerPolicy:
        return TriggerPolicy(
            trigger_commands=self.trigger_commands,
            command_predicate=pattern_predicate(self.electric_command_pattern),
        )

    def update_from_options(self, opts: Any) -> None:
        """Apply the client's ``initializationOptions``."""
        if not isinstance(opts, dict):
            return

        self.backend = opts.get("backend", self.backend)
        backend_command = opts.get("backendCommand")
        if isinstance(backend_command, str):
            backend_command = backend_command.split()
        if backend_command:
            self.backend_command = list(backend_command)
        backend_settings = opts.get("backendSettings")
        if backend_settings:
            self.backend_settings = backend_settings

        trigger_commands = opts.get("triggerCommands")
        if trigger_commands is not None:
            self.trigger_commands = frozenset(trigger_commands)
        self.electric_command_pattern = opts.get(
            "electricCommandPattern", self.electric_command_pattern
        )

        timeout = opts.get("completionTimeout")
        if timeout is not None:
            try:
                self.completion_timeout = float(timeout)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid completionTimeout: {timeout!r}")

        snippet_support = opts.get("snippetSupport")
        if snippet_support is not None:
            self.snippet_support = bool(snippet_support)

    @classmethod
    def from_options(cls, opts: Any, **defaults: Any) -> CompletionSettings:
        settings = cls(**defaults)
        settings.update_from_options(opts)
        return settings
