"""
Cursor context tracking.

A context is the buffer offset right before the identifier under the
cursor (whitespace skipped), or None when the cursor is inside a string
or comment. Every change of context bumps the session's context tick.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cxx_lsp.buffer import BufferHost

if TYPE_CHECKING:
    from cxx_lsp.session import SessionState

logger = logging.getLogger(__name__)


def compute_context(host: BufferHost) -> int | None:
    """Derive the context identifier from the live cursor position."""
    cursor = host.get_cursor_offset()
    if not host.get_syntax_category(cursor).is_code:
        return None

    start, _ = host.scan_identifier_boundaries(cursor)
    return host.skip_whitespace_backward(start)


class ContextTracker:
    """Owns the context and context tick of a session."""

    def __init__(self, host: BufferHost):
        self.host = host

    def compute_context(self) -> int | None:
        return compute_context(self.host)

    def update(self, state: SessionState) -> bool:
        """Refresh the stored context; return True when it changed.

        A change bumps the tick and clears the candidates. A transition
        to no context makes the empty candidate set valid immediately.
        """
        context = self.compute_context()
        if context == state.context:
            return False

        state.context = context
        state.context_tick += 1
        state.candidates = []
        if context is None:
            state.candidates_tick = state.context_tick

        logger.debug(f"Context changed to {context} (tick {state.context_tick})")
        return True
