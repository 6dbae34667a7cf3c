"""
Trigger heuristics deciding when to ask the backend for completions.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable

from cxx_lsp.buffer import BufferHost

# Object member access, pointer member access, scope resolution
MEMBER_ACCESS_OPERATORS: tuple[str, ...] = (".", "->", "::")

DEFAULT_TRIGGER_COMMANDS: frozenset[str] = frozenset(
    {
        "self-insert-command",
        "newline-and-indent",
        "c-context-line-break",
        "c-scope-operator",
    }
)

DEFAULT_ELECTRIC_PATTERN = r"^(c-)?electric-"

CommandPredicate = Callable[[str], bool]
ContextPredicate = Callable[[int, BufferHost], bool]


def pattern_predicate(pattern: str) -> CommandPredicate:
    """Build a command predicate from a regular expression."""
    regex = re.compile(pattern)
    return lambda name: regex.search(name) is not None


def member_access_predicate(
    operators: Iterable[str] = MEMBER_ACCESS_OPERATORS,
) -> ContextPredicate:
    """Accept contexts anchored right after one of ``operators``."""
    operators = tuple(operators)

    def predicate(context: int, host: BufferHost) -> bool:
        return host.search_backward_for_operator(context, operators)

    return predicate


class TriggerPolicy:
    """Decides which editor commands and contexts warrant a request."""

    def __init__(
        self,
        trigger_commands: Iterable[str] = DEFAULT_TRIGGER_COMMANDS,
        command_predicate: CommandPredicate | None = None,
        context_predicate: ContextPredicate | None = None,
    ) -> None:
        self.trigger_commands = frozenset(trigger_commands)
        self.command_predicate = (
            command_predicate
            if command_predicate is not None
            else pattern_predicate(DEFAULT_ELECTRIC_PATTERN)
        )
        self.context_predicate = (
            context_predicate
            if context_predicate is not None
            else member_access_predicate()
        )

    def is_trigger_command(self, name: str | None) -> bool:
        if not name:
            return False
        return name in self.trigger_commands or self.command_predicate(name)

    def should_request_for_context(self, context: int | None, host: BufferHost) -> bool:
        return context is not None and self.context_predicate(context, host)
