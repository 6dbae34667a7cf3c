"""
Per-document completion session.

Wires the context tracker, trigger policy, request coordinator, candidate
store and callback queue around one explicit ``SessionState``. All state
changes happen on the event loop thread, either while handling an editor
event or when a backend response arrives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from cxx_lsp.backend import CompletionBackend
from cxx_lsp.buffer import BufferHost
from cxx_lsp.callbacks import Callback, CallbackQueue
from cxx_lsp.candidates import Candidate, CandidateStore
from cxx_lsp.context import ContextTracker
from cxx_lsp.coordinator import RequestCoordinator
from cxx_lsp.snippet import Insertion, expand_candidate
from cxx_lsp.trigger import TriggerPolicy

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """Mutable completion state of one editing session."""

    context: int | None = None
    context_tick: int = 0
    candidates: list[Candidate] = field(default_factory=list)
    candidates_tick: int = 0
    request_tick: int | None = None
    callbacks: CallbackQueue = field(default_factory=CallbackQueue)


@dataclass(frozen=True)
class CompletionAtPoint:
    """Answer to a completion-at-point query."""

    start: int
    end: int
    candidates: list[Candidate]
    annotation: Callable[[Candidate], str]


def candidate_annotation(candidate: Candidate) -> str:
    return candidate.annotation


class CompletionSession:
    """Completion engine for one document."""

    def __init__(
        self,
        host: BufferHost,
        backend: CompletionBackend,
        policy: TriggerPolicy | None = None,
        snippet_support: bool = True,
    ) -> None:
        self.host = host
        self.state = SessionState()
        self.policy = policy if policy is not None else TriggerPolicy()
        self.snippet_support = snippet_support
        self.tracker = ContextTracker(host)
        self.store = CandidateStore(self.tracker)
        self.coordinator = RequestCoordinator(host, backend, self.store)

    def update(self) -> bool:
        return self.tracker.update(self.state)

    def is_available(self) -> bool:
        return self.store.is_available(self.state)

    def get_candidates(self) -> list[Candidate]:
        return self.store.get(self.state)

    def is_trigger_command(self, name: str | None) -> bool:
        return self.policy.is_trigger_command(name)

    def add_update_listener(self, listener: Callable[[], None]) -> None:
        """Run ``listener`` whenever a response is committed."""
        self.coordinator.update_listeners.append(listener)

    def post_command(self, name: str | None) -> bool:
        """Handle an editor command; return True if a request was sent."""
        if not (
            self.is_trigger_command(name)
            and self.update()
            and self.policy.should_request_for_context(self.state.context, self.host)
        ):
            return False
        return self.coordinator.maybe_send(self.state)

    def subscribe(self, callback: Callback) -> None:
        """Run ``callback`` once candidates for the current context exist.

        Runs synchronously when they already do; otherwise a request is
        sent if none is pending and the callback waits for its commit.
        """
        self.update()
        if self.is_available():
            callback()
            return

        if self.state.context is not None:
            if not self.coordinator.is_pending(self.state):
                self.coordinator.maybe_send(self.state)
            self.state.callbacks.enqueue(callback)

    def accept_candidate(self, candidate: Candidate) -> Insertion:
        """Text to insert after ``candidate`` is chosen."""
        return expand_candidate(candidate, self.snippet_support)

    def completion_at_point(self) -> CompletionAtPoint | None:
        """Bounds of the identifier at point and the ready candidates."""
        if self.state.context is None or not self.is_available():
            return None
        start, end = self.host.scan_identifier_boundaries(self.host.get_cursor_offset())
        return CompletionAtPoint(
            start=start,
            end=end,
            candidates=self.get_candidates(),
            annotation=candidate_annotation,
        )

    def teardown(self) -> None:
        """Reset to the initial state, dropping waiting consumers."""
        self.coordinator.cancel_all()
        self.state = SessionState()
        logger.debug("Completion session reset")
