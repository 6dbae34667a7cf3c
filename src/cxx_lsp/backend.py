"""
Completion backend protocol for cxx LSP.

Defines the interface the completion engine uses to reach the
out-of-process analysis backend (e.g. LspProxyBackend driving clangd).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class CompletionRequest:
    """Position payload of a completion request.

    ``token`` is the context tick at send time; the engine uses it to
    match the response to the context that asked for it.
    """

    line: int  # 1-based
    column: int  # 1-based, UTF-8 bytes from line start
    token: int
    source: str = ""
    path: str | None = None


@runtime_checkable
class CompletionBackend(Protocol):
    """Protocol for completion backends.

    All methods are async; a backend answers each request at most once.
    """

    async def start(self, workspace_root: str | None = None) -> None:
        """Start the backend. Called once during server initialization.

        Args:
            workspace_root: Path to the workspace root directory.
        """
        ...

    async def stop(self) -> None:
        """Stop the backend. Called during server shutdown."""
        ...

    async def complete(self, request: CompletionRequest) -> Sequence[Any]:
        """Get completion candidates at the request position.

        Args:
            request: Position, correlation token and document snapshot.

        Returns:
            Candidates, either as ``Candidate`` objects or 7-field wire tuples.
        """
        ...

    def did_close(self, path: str | None) -> None:
        """Forget a document the editor closed."""
        ...
