"""
Completion provider for cxx LSP.

Bridges LSP completion requests onto per-document completion sessions:
positions become cursor offsets, a request waits for the session's
candidates, and ready candidates become completion items with snippet
or plain insert text.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from lsprotocol import types as lsp

from cxx_lsp.buffer import DocumentBuffer
from cxx_lsp.candidates import Candidate
from cxx_lsp.session import CompletionSession

if TYPE_CHECKING:
    from cxx_lsp.server import CxxLanguageServer

logger = logging.getLogger(__name__)

# Editor command names reported for LSP completion triggers
TRIGGER_KIND_COMMANDS: dict[lsp.CompletionTriggerKind, str] = {
    lsp.CompletionTriggerKind.Invoked: "complete-symbol",
    lsp.CompletionTriggerKind.TriggerCharacter: "self-insert-command",
    lsp.CompletionTriggerKind.TriggerForIncompleteCompletions: "complete-symbol",
}


class CxxCompletionProvider:
    """Provides completions for C/C++ files."""

    def __init__(self, server: CxxLanguageServer):
        self.server = server
        self._sessions: dict[str, CompletionSession] = {}
        self._buffers: dict[str, DocumentBuffer] = {}

    def open_session(self, uri: str) -> CompletionSession | None:
        """Create the completion session of a document, if needed."""
        if uri in self._sessions:
            return self._sessions[uri]

        doc = self.server.get_document(uri)
        backend = self.server.completion_backend
        if doc is None or backend is None:
            return None

        settings = self.server.settings
        buffer = DocumentBuffer(doc.source, doc.path, self.server.parser)
        session = CompletionSession(
            buffer,
            backend,
            policy=settings.trigger_policy(),
            snippet_support=self.server.snippet_support,
        )
        self._buffers[uri] = buffer
        self._sessions[uri] = session
        logger.debug(f"Opened completion session for {uri}")
        return session

    def close_session(self, uri: str) -> None:
        """Tear down the completion session of a closed document."""
        session = self._sessions.pop(uri, None)
        buffer = self._buffers.pop(uri, None)
        if session is not None:
            session.teardown()
        if buffer is not None and self.server.completion_backend is not None:
            self.server.completion_backend.did_close(buffer.path)

    def _prepare(self, uri: str, position: lsp.Position) -> CompletionSession | None:
        """Sync the session buffer with the document and place the cursor."""
        session = self.open_session(uri)
        doc = self.server.get_document(uri)
        if session is None or doc is None:
            return None

        buffer = self._buffers[uri]
        buffer.set_source(doc.source)
        buffer.set_cursor(doc.offset_at_position(position))
        return session

    def document_changed(self, uri: str) -> None:
        """Keep the session buffer in step with the document text."""
        buffer = self._buffers.get(uri)
        doc = self.server.get_document(uri)
        if buffer is not None and doc is not None:
            buffer.set_source(doc.source)

    def post_command(self, uri: str, position: lsp.Position, command: str | None) -> bool:
        """Run the trigger heuristic after an editor command."""
        session = self._prepare(uri, position)
        if session is None:
            return False
        sent = session.post_command(command)
        logger.debug(
            f"Command {command!r} at {position.line}:{position.character}, "
            f"request sent: {sent}"
        )
        return sent

    async def wait_for_candidates(self, session: CompletionSession) -> bool:
        """Subscribe and wait until the session's candidates are ready."""
        loop = asyncio.get_running_loop()
        ready: asyncio.Future[None] = loop.create_future()

        def on_ready() -> None:
            if not ready.done():
                ready.set_result(None)

        session.subscribe(on_ready)
        if not ready.done():
            try:
                await asyncio.wait_for(ready, self.server.settings.completion_timeout)
            except asyncio.TimeoutError:
                logger.debug("Timed out waiting for completion candidates")
                return False
        return session.is_available()

    async def get_completions(self, params: lsp.CompletionParams) -> lsp.CompletionList | None:
        """Get completions at the given position."""
        uri = params.text_document.uri
        session = self._prepare(uri, params.position)
        if session is None:
            logger.debug(f"No completion session for {uri}")
            return None

        if params.context is not None:
            command = TRIGGER_KIND_COMMANDS.get(params.context.trigger_kind)
            session.post_command(command)

        if not await self.wait_for_candidates(session):
            return lsp.CompletionList(is_incomplete=True, items=[])

        result = session.completion_at_point()
        if result is None:
            return lsp.CompletionList(is_incomplete=False, items=[])

        cursor = session.host.get_cursor_offset()
        line = params.position.line
        # Identifier characters are ASCII, one UTF-16 unit each
        edit_range = lsp.Range(
            start=lsp.Position(line=line, character=params.position.character - (cursor - result.start)),
            end=lsp.Position(line=line, character=params.position.character + (result.end - cursor)),
        )

        items = [
            self._candidate_to_item(session, candidate, index, edit_range, result.annotation(candidate))
            for index, candidate in enumerate(result.candidates)
        ]
        logger.debug(f"Returning {len(items)} completions")
        return lsp.CompletionList(is_incomplete=False, items=items)

    def _candidate_to_item(
        self,
        session: CompletionSession,
        candidate: Candidate,
        index: int,
        edit_range: lsp.Range,
        annotation: str,
    ) -> lsp.CompletionItem:
        insertion = session.accept_candidate(candidate)
        new_text = candidate.typed_text + insertion.text
        data: dict[str, Any] = {"type": "candidate", "brief": candidate.brief}
        return lsp.CompletionItem(
            label=candidate.typed_text,
            label_details=lsp.CompletionItemLabelDetails(
                detail=annotation or None,
                description=candidate.result_type,
            ),
            kind=lsp.CompletionItemKind.Function if candidate.placeholders else lsp.CompletionItemKind.Field,
            detail=" ".join(p for p in (candidate.result_type, candidate.signature) if p),
            filter_text=candidate.typed_text,
            sort_text=f"{index:06d}",
            insert_text_format=(
                lsp.InsertTextFormat.Snippet if insertion.is_snippet else lsp.InsertTextFormat.PlainText
            ),
            text_edit=lsp.TextEdit(range=edit_range, new_text=new_text),
            data=data,
        )

    def resolve_completion(self, item: lsp.CompletionItem) -> lsp.CompletionItem:
        """Resolve additional completion item details."""
        if isinstance(item.data, dict) and item.data.get("type") == "candidate":
            brief = item.data.get("brief")
            if brief:
                item.documentation = lsp.MarkupContent(
                    kind=lsp.MarkupKind.PlainText,
                    value=brief,
                )
        return item
