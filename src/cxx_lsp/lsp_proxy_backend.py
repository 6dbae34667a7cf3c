"""
LSP proxy backend for cxx LSP.

This module implements the CompletionBackend protocol by delegating to a
child LSP server (e.g. clangd, ccls). It spawns the child process, keeps
documents synchronized, forwards completion requests and converts the
child's completion items into candidate wire tuples.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from lsprotocol import types as lsp
from pygls.lsp.client import LanguageClient

from cxx_lsp.backend import CompletionRequest
from cxx_lsp.buffer import is_identifier_char
from cxx_lsp.snippet import parse_snippet

if TYPE_CHECKING:
    from pygls.lsp.server import LanguageServer

logger = logging.getLogger(__name__)

_LANGUAGE_IDS: dict[str, str] = {
    ".c": "c",
    ".h": "c",
    ".m": "objective-c",
    ".mm": "objective-cpp",
}

# clangd prefixes labels of items that insert an #include with a bullet
_LABEL_DECORATIONS = " •"


def _language_id(path: str | None) -> str:
    if path is None:
        return "cpp"
    return _LANGUAGE_IDS.get(Path(path).suffix.lower(), "cpp")


def _documentation_text(documentation: Any) -> str | None:
    if isinstance(documentation, lsp.MarkupContent):
        return documentation.value or None
    if isinstance(documentation, str):
        return documentation or None
    return None


def _utf16_column(line_text: str, byte_column: int) -> int:
    """Convert a 0-based UTF-8 byte column to UTF-16 code units."""
    prefix = line_text.encode("utf-8")[:byte_column].decode("utf-8", errors="ignore")
    return len(prefix.encode("utf-16-le")) // 2


def item_to_wire(item: lsp.CompletionItem, priority: int) -> tuple:
    """Convert a child completion item into a 7-field candidate tuple.

    The inserted text is split into the typed text and the
    post-completion text whose placeholders become tab-stops.
    """
    signature = item.label.lstrip(_LABEL_DECORATIONS)
    typed_text = (item.filter_text or signature).strip()

    if item.text_edit is not None:
        new_text = item.text_edit.new_text
    else:
        new_text = item.insert_text or typed_text

    if item.insert_text_format == lsp.InsertTextFormat.Snippet:
        text, placeholders = parse_snippet(new_text)
    else:
        text, placeholders = new_text, ()

    if not text.startswith(typed_text):
        split = 0
        while split < len(text) and is_identifier_char(text[split]):
            split += 1
        typed_text = text[:split] or typed_text
    prefix = len(typed_text) if text.startswith(typed_text) else 0

    post_text = text[prefix:]
    offsets: list[int] = []
    for start, end in placeholders:
        if start < prefix:
            continue
        offsets.extend((start - prefix, end - prefix))

    annotation_start = len(typed_text) if signature.startswith(typed_text) else 0
    return (
        typed_text,
        priority,
        item.detail,
        _documentation_text(item.documentation),
        signature,
        annotation_start,
        (post_text, *offsets),
    )


class LspProxyBackend:
    """Completion backend that delegates to a child LSP server.

    Implements the CompletionBackend protocol by spawning a child LSP
    process (e.g. clangd) and forwarding completion requests.
    """

    def __init__(
        self,
        command: list[str],
        backend_settings: dict[str, Any] | None = None,
        server: "LanguageServer | None" = None,
    ) -> None:
        """Initialize the proxy backend.

        Args:
            command: Command to spawn the child LSP server (e.g. ["clangd"]).
            backend_settings: Initialization options for the child, also used
                as fallback when the editor doesn't answer
                workspace/configuration requests.
            server: The parent LanguageServer instance, used to forward
                workspace/configuration requests from the child to the editor.
        """
        self._command = command
        self._client: LanguageClient | None = None
        self._backend_settings = backend_settings or {}
        self._server: LanguageServer | None = server
        self._doc_versions: dict[str, int] = {}
        self._doc_sources: dict[str, str] = {}
        self._position_encoding: str = lsp.PositionEncodingKind.Utf16
        self._started = False

    async def start(self, workspace_root: str | None = None) -> None:
        """Start the child LSP server.

        Spawns the child process, sends initialize/initialized, and registers
        handlers for requests and notifications from the child.
        """
        logger.info(f"PROXY: starting child: command={self._command}, workspace={workspace_root}")

        self._client = LanguageClient("cxx-lsp-proxy", "0.1.0")

        # Forward workspace/configuration requests to the editor
        @self._client.feature(lsp.WORKSPACE_CONFIGURATION)
        async def on_workspace_configuration(
            params: lsp.ConfigurationParams,
        ) -> list[Any]:
            return await self._handle_configuration_request(params)

        # Forward window/logMessage from child (avoids "unknown method" warnings)
        @self._client.feature(lsp.WINDOW_LOG_MESSAGE)
        def on_log_message(params: lsp.LogMessageParams) -> None:
            self._handle_log_message(params)

        # Diagnostics are not surfaced; accept them silently
        @self._client.feature(lsp.TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS)
        def on_publish_diagnostics(params: lsp.PublishDiagnosticsParams) -> None:
            logger.debug(f"PROXY: ignoring {len(params.diagnostics)} diagnostics for {params.uri}")

        try:
            await self._client.start_io(*self._command)
            logger.info("PROXY: child process spawned")
        except Exception as e:
            logger.error(f"PROXY: Failed to start backend: {self._command}: {e}")
            self._client = None
            return

        workspace_uri = Path(workspace_root).as_uri() if workspace_root else None
        workspace_folders = None
        if workspace_root:
            workspace_folders = [
                lsp.WorkspaceFolder(
                    uri=workspace_uri,
                    name=Path(workspace_root).name,
                )
            ]

        try:
            result = await self._client.initialize_async(
                lsp.InitializeParams(
                    capabilities=lsp.ClientCapabilities(
                        general=lsp.GeneralClientCapabilities(
                            position_encodings=[
                                lsp.PositionEncodingKind.Utf8,
                                lsp.PositionEncodingKind.Utf16,
                            ],
                        ),
                        text_document=lsp.TextDocumentClientCapabilities(
                            completion=lsp.CompletionClientCapabilities(
                                completion_item=lsp.ClientCompletionItemOptions(
                                    snippet_support=True,
                                ),
                            ),
                        ),
                        workspace=lsp.WorkspaceClientCapabilities(
                            configuration=True,
                            workspace_folders=True,
                        ),
                    ),
                    root_uri=workspace_uri,
                    workspace_folders=workspace_folders,
                    initialization_options=self._backend_settings if self._backend_settings else None,
                )
            )
            server_info = getattr(result, "server_info", None)
            logger.info(f"PROXY: backend initialized: {server_info}")
            encoding = getattr(result.capabilities, "position_encoding", None)
            if encoding is not None:
                self._position_encoding = encoding
        except Exception as e:
            logger.error(f"PROXY: initialization failed: {e}")
            await self._try_stop_client()
            return

        self._client.initialized(lsp.InitializedParams())
        self._started = True
        logger.info(f"PROXY: backend ready: {' '.join(self._command)}")

    async def stop(self) -> None:
        """Stop the child LSP server."""
        await self._try_stop_client()
        self._started = False

    async def _try_stop_client(self) -> None:
        """Attempt to gracefully stop the client."""
        if self._client is None:
            return
        try:
            await self._client.shutdown_async(None)
            self._client.exit(None)
        except Exception as e:
            logger.debug(f"Error during backend shutdown: {e}")
        try:
            await self._client.stop()
        except Exception as e:
            logger.debug(f"Error stopping backend client: {e}")
        self._client = None

    def _file_uri(self, path: str | None) -> str:
        """Convert a file path to a URI for the child."""
        if path is None:
            return "file:///untitled.cpp"
        return Path(path).as_uri()

    def _sync_document(self, source: str, path: str | None) -> str:
        """Synchronize document content with the child LSP server.

        Sends didOpen the first time a document is seen and a full-content
        didChange whenever its text differs from what the child has.

        Returns:
            The URI the child knows the document by.
        """
        uri = self._file_uri(path)
        if self._client is None:
            return uri

        if uri not in self._doc_versions:
            self._doc_versions[uri] = 0
            self._client.text_document_did_open(
                lsp.DidOpenTextDocumentParams(
                    text_document=lsp.TextDocumentItem(
                        uri=uri,
                        language_id=_language_id(path),
                        version=self._doc_versions[uri],
                        text=source,
                    )
                )
            )
        elif self._doc_sources.get(uri) != source:
            self._doc_versions[uri] += 1
            self._client.text_document_did_change(
                lsp.DidChangeTextDocumentParams(
                    text_document=lsp.VersionedTextDocumentIdentifier(
                        uri=uri,
                        version=self._doc_versions[uri],
                    ),
                    content_changes=[
                        lsp.TextDocumentContentChangeWholeDocument(
                            text=source,
                        )
                    ],
                )
            )
        self._doc_sources[uri] = source
        return uri

    def did_close(self, path: str | None) -> None:
        """Close a document in the child LSP server."""
        uri = self._file_uri(path)
        self._doc_sources.pop(uri, None)
        if self._doc_versions.pop(uri, None) is None:
            return
        if not self._started or self._client is None:
            return
        try:
            self._client.text_document_did_close(
                lsp.DidCloseTextDocumentParams(
                    text_document=lsp.TextDocumentIdentifier(uri=uri),
                )
            )
        except Exception as e:
            logger.debug(f"PROXY: didClose error: {e}")

    def _child_position(self, request: CompletionRequest) -> lsp.Position:
        """Map the 1-based line / byte column to the child's encoding."""
        line = request.line - 1
        byte_column = request.column - 1
        if self._position_encoding == lsp.PositionEncodingKind.Utf8:
            return lsp.Position(line=line, character=byte_column)

        lines = request.source.split("\n")
        line_text = lines[line] if line < len(lines) else ""
        if self._position_encoding == lsp.PositionEncodingKind.Utf32:
            prefix = line_text.encode("utf-8")[:byte_column].decode("utf-8", errors="ignore")
            return lsp.Position(line=line, character=len(prefix))
        return lsp.Position(line=line, character=_utf16_column(line_text, byte_column))

    async def complete(self, request: CompletionRequest) -> Sequence[Any]:
        """Get completion candidates from the child LSP server."""
        if not self._started or self._client is None:
            return []

        try:
            uri = self._sync_document(request.source, request.path)
            result = await self._client.text_document_completion_async(
                lsp.CompletionParams(
                    text_document=lsp.TextDocumentIdentifier(uri=uri),
                    position=self._child_position(request),
                )
            )
        except Exception as e:
            logger.debug(f"PROXY: completion error: {e}")
            return []

        if result is None:
            return []

        items: list[lsp.CompletionItem] = []
        if isinstance(result, lsp.CompletionList):
            items = result.items
        elif isinstance(result, list):
            items = result

        ordered = sorted(items, key=lambda item: item.sort_text or item.label)
        return [item_to_wire(item, priority) for priority, item in enumerate(ordered)]

    def _handle_log_message(self, params: lsp.LogMessageParams) -> None:
        """Forward window/logMessage from child to parent logger."""
        level_map = {
            lsp.MessageType.Error: logging.ERROR,
            lsp.MessageType.Warning: logging.WARNING,
            lsp.MessageType.Info: logging.INFO,
            lsp.MessageType.Log: logging.DEBUG,
            lsp.MessageType.Debug: logging.DEBUG,
        }
        level = level_map.get(params.type, logging.DEBUG)
        logger.log(level, f"[backend] {params.message}")

    async def _handle_configuration_request(
        self, params: lsp.ConfigurationParams
    ) -> list[Any]:
        """Handle workspace/configuration requests from the child backend.

        Forwards the request to the editor via the parent server. Falls back
        to backendSettings if the editor doesn't respond.
        """
        if self._server is not None:
            try:
                logger.debug(f"PROXY: forwarding config request to editor: {[i.section for i in params.items]}")
                result = await self._server.send_request_async(
                    lsp.WORKSPACE_CONFIGURATION, params
                )
                if result is not None:
                    return result
            except Exception as e:
                logger.debug(f"PROXY: editor config request failed, using fallback: {e}")

        return self._resolve_settings(params)

    def _resolve_settings(self, params: lsp.ConfigurationParams) -> list[Any]:
        """Resolve configuration from backendSettings (fallback)."""
        results = []
        for item in params.items:
            section = item.section or ""
            value = self._backend_settings
            if section:
                for part in section.split("."):
                    if isinstance(value, dict) and part in value:
                        value = value[part]
                    else:
                        value = {}
                        break
            results.append(value)
        return results
