"""
Request coordination between the session and the completion backend.

At most one request is outstanding per context tick. Responses carry the
tick they were sent for and are committed only while that tick is live;
anything older is dropped without a cancel message to the backend.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Sequence

from cxx_lsp.backend import CompletionBackend, CompletionRequest
from cxx_lsp.buffer import BufferHost
from cxx_lsp.candidates import CandidateStore, decode_candidates

if TYPE_CHECKING:
    from cxx_lsp.session import SessionState

logger = logging.getLogger(__name__)


class RequestCoordinator:
    """Sends deduplicated completion requests and routes their responses."""

    def __init__(
        self,
        host: BufferHost,
        backend: CompletionBackend,
        store: CandidateStore,
    ) -> None:
        self.host = host
        self.backend = backend
        self.store = store
        self.update_listeners: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Task] = set()

    def is_pending(self, state: SessionState) -> bool:
        """A request is outstanding for the current tick."""
        return state.request_tick == state.context_tick

    def build_request(self, state: SessionState) -> CompletionRequest:
        line, column = self.host.offset_to_line_byte_column(state.context)
        return CompletionRequest(
            line=line,
            column=column,
            token=state.context_tick,
            source=self.host.source,
            path=self.host.path,
        )

    def maybe_send(self, state: SessionState) -> bool:
        """Dispatch a request for the current tick unless one is pending."""
        if self.is_pending(state) or state.context is None:
            return False

        request = self.build_request(state)
        state.request_tick = request.token
        state.callbacks.clear()
        logger.debug(
            f"Requesting completions at {request.line}:{request.column} "
            f"(tick {request.token})"
        )

        task = asyncio.get_running_loop().create_task(self._dispatch(state, request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _dispatch(self, state: SessionState, request: CompletionRequest) -> None:
        try:
            candidates = await self.backend.complete(request)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Completion backend failed (tick {request.token}): {e}")
            if state.request_tick == request.token:
                state.request_tick = None
            return
        self.on_response(state, candidates, request.token)

    def on_response(
        self, state: SessionState, candidates: Sequence[Any] | None, token: int
    ) -> bool:
        """Commit a response if ``token`` is still the live tick."""
        if state.request_tick == token:
            state.request_tick = None

        if token != state.context_tick:
            logger.debug(f"Dropping stale response (tick {token}, now {state.context_tick})")
            return False

        decoded = decode_candidates(candidates)
        self.store.commit(state, decoded, token)
        logger.debug(f"Committed {len(decoded)} candidates (tick {token})")

        for listener in list(self.update_listeners):
            try:
                listener()
            except Exception as e:
                logger.error(f"Candidate update listener failed: {e}")

        state.callbacks.drain()
        return True

    def cancel_all(self) -> None:
        """Cancel local dispatch tasks; the backend is not notified."""
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
