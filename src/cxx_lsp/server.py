"""
C/C++ Completion Language Server

Main LSP server implementation using pygls.
"""

from __future__ import annotations

import argparse
import logging
from typing import TYPE_CHECKING, Any

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from cxx_lsp import __version__
from cxx_lsp.completions import CxxCompletionProvider
from cxx_lsp.parser import CxxParser
from cxx_lsp.settings import KNOWN_BACKENDS, CompletionSettings

if TYPE_CHECKING:
    from pygls.workspace import TextDocument
    from cxx_lsp.backend import CompletionBackend

# WARNING by default so stderr stays quiet
# (Neovim treats all stderr as [ERROR])
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

POST_COMMAND = "cxx/postCommand"


class CxxLanguageServer(LanguageServer):
    """Language Server for C/C++ completions."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)

        self.parser = CxxParser()
        self.completion_backend: CompletionBackend | None = None
        self.completion_provider = CxxCompletionProvider(self)

        # Set from CLI args, then initializationOptions
        self.settings = CompletionSettings()
        self._client_snippet_support = False
        self._workspace_root: str | None = None

    @property
    def snippet_support(self) -> bool:
        """Whether accepted candidates expand into snippets."""
        if self.settings.snippet_support is not None:
            return self.settings.snippet_support
        return self._client_snippet_support

    def get_document(self, uri: str) -> TextDocument | None:
        """Get a document from the workspace."""
        return self.workspace.get_text_document(uri)


# Create server instance
server = CxxLanguageServer(
    name="cxx-lsp",
    version=__version__,
)


def _create_backend(settings: CompletionSettings) -> CompletionBackend | None:
    """Create the completion backend from configuration."""
    command = settings.resolve_command()
    if command is None:
        logger.error("No command specified for the completion backend")
        return None

    from cxx_lsp.lsp_proxy_backend import LspProxyBackend

    return LspProxyBackend(
        command=command,
        backend_settings=settings.backend_settings,
        server=server,
    )


def _client_supports_snippets(capabilities: lsp.ClientCapabilities | None) -> bool:
    try:
        return bool(capabilities.text_document.completion.completion_item.snippet_support)
    except AttributeError:
        return False


# ============================================================================
# Lifecycle Events
# ============================================================================


@server.feature(lsp.INITIALIZE)
async def initialize(params: lsp.InitializeParams) -> None:
    """Handle the initialize request - configure backend from initializationOptions."""
    server.settings.update_from_options(params.initialization_options or {})
    server._client_snippet_support = _client_supports_snippets(params.capabilities)

    # Create the backend (started in `initialized` after handshake completes)
    server.completion_backend = _create_backend(server.settings)

    server.protocol.server_info = lsp.ServerInfo(
        name=f"cxx-lsp[{server.settings.backend}]",
        version=server.version,
    )

    server._workspace_root = None
    if params.root_uri:
        from urllib.parse import unquote, urlparse
        parsed = urlparse(params.root_uri)
        server._workspace_root = unquote(parsed.path)
    elif params.root_path:
        server._workspace_root = params.root_path


@server.feature(lsp.INITIALIZED)
async def initialized(params: lsp.InitializedParams) -> None:
    """Handle the initialized notification and start the backend.

    Deferred from initialize so that the editor is ready to handle
    server-to-client requests (e.g. workspace/configuration forwarding).
    """
    if server.completion_backend is not None:
        await server.completion_backend.start(server._workspace_root)

        # Documents opened while the backend was starting
        for uri in list(server.workspace.text_documents):
            server.completion_provider.open_session(uri)


@server.feature(lsp.SHUTDOWN)
async def shutdown(params: Any) -> None:
    """Handle the shutdown request."""
    for uri in list(server.workspace.text_documents):
        server.completion_provider.close_session(uri)
    if server.completion_backend is not None:
        await server.completion_backend.stop()


# ============================================================================
# Document Events
# ============================================================================


@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
async def did_open(params: lsp.DidOpenTextDocumentParams) -> None:
    """Handle document open."""
    uri = params.text_document.uri
    logger.debug(f"Document opened: {uri}")
    server.completion_provider.open_session(uri)


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
async def did_change(params: lsp.DidChangeTextDocumentParams) -> None:
    """Handle document change."""
    uri = params.text_document.uri
    logger.debug(f"Document changed: {uri}")
    server.completion_provider.document_changed(uri)


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
async def did_close(params: lsp.DidCloseTextDocumentParams) -> None:
    """Handle document close."""
    uri = params.text_document.uri
    logger.debug(f"Document closed: {uri}")
    server.completion_provider.close_session(uri)


def _param(obj: Any, name: str) -> Any:
    """Read a field of custom notification params (dict or object)."""
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


@server.feature(POST_COMMAND)
def post_command(params: Any) -> None:
    """Handle an editor command reported by the client's command loop.

    Params: ``{"textDocument": {"uri"}, "position": {"line", "character"},
    "command": str}``.
    """
    text_document = _param(params, "textDocument")
    position = _param(params, "position")
    if text_document is None or position is None:
        logger.warning(f"Malformed {POST_COMMAND} params: {params}")
        return

    server.completion_provider.post_command(
        _param(text_document, "uri"),
        lsp.Position(line=_param(position, "line"), character=_param(position, "character")),
        _param(params, "command"),
    )


# ============================================================================
# Completion
# ============================================================================


@server.feature(
    lsp.TEXT_DOCUMENT_COMPLETION,
    lsp.CompletionOptions(
        trigger_characters=[".", ">", ":"],
        resolve_provider=True,
    ),
)
async def completion(params: lsp.CompletionParams) -> lsp.CompletionList | None:
    """Provide completions."""
    return await server.completion_provider.get_completions(params)


@server.feature(lsp.COMPLETION_ITEM_RESOLVE)
async def completion_resolve(item: lsp.CompletionItem) -> lsp.CompletionItem:
    """Resolve additional completion item details."""
    return server.completion_provider.resolve_completion(item)


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the language server."""
    parser = argparse.ArgumentParser(
        description="C/C++ Completion Language Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--stdio",
        action="store_true",
        default=True,
        help="Use stdio for communication (default)",
    )
    parser.add_argument(
        "--tcp",
        action="store_true",
        help="Use TCP for communication",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="TCP host (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=2087,
        help="TCP port (default: 2087)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set the logging level (default: WARNING)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cxx-lsp {__version__}",
    )
    parser.add_argument(
        "--backend",
        choices=list(KNOWN_BACKENDS.keys()),
        default="clangd",
        help="Completion backend (default: clangd)",
    )
    parser.add_argument(
        "--backend-command",
        nargs="+",
        help='Command to start the backend LSP server (e.g. "clangd --background-index")',
    )

    args = parser.parse_args()

    logging.getLogger().setLevel(getattr(logging, args.log_level))

    # Stored for use during initialization
    server.settings.backend = args.backend
    server.settings.backend_command = args.backend_command

    if args.tcp:
        logger.info(f"Starting cxx-lsp in TCP mode on {args.host}:{args.port}")
        server.start_tcp(args.host, args.port)
    else:
        logger.info("Starting cxx-lsp in stdio mode")
        server.start_io()


if __name__ == "__main__":
    main()
