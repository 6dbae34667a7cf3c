"""
Buffer introspection for the completion engine.

Defines the interface the engine needs from the editor's text buffer
(cursor, syntax classification, identifier scanning, position conversion)
and a document-backed implementation used by the language server.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol, runtime_checkable

from tree_sitter import Tree

from cxx_lsp.parser import CODE, CxxParser, SyntaxCategory

logger = logging.getLogger(__name__)

WHITESPACE = " \t\n\r\f\v"


def is_identifier_char(char: str) -> bool:
    """ASCII letters, digits and underscore."""
    return char == "_" or (char.isascii() and char.isalnum())


@runtime_checkable
class BufferHost(Protocol):
    """Protocol for the text buffer the completion engine observes.

    Offsets are character offsets into ``source``.
    """

    @property
    def source(self) -> str:
        ...

    @property
    def path(self) -> str | None:
        ...

    def get_cursor_offset(self) -> int:
        ...

    def get_syntax_category(self, offset: int) -> SyntaxCategory:
        ...

    def scan_identifier_boundaries(self, offset: int) -> tuple[int, int]:
        """Return ``(start, end)`` of the identifier around ``offset``.

        A token starting with a digit is not an identifier and collapses
        to ``(offset, offset)``.
        """
        ...

    def skip_whitespace_backward(self, offset: int) -> int:
        ...

    def offset_to_line_byte_column(self, offset: int) -> tuple[int, int]:
        """Return the 1-based line and 1-based UTF-8 byte column."""
        ...

    def search_backward_for_operator(
        self, offset: int, operators: Iterable[str]
    ) -> bool:
        """True when the text ending exactly at ``offset`` is an operator."""
        ...


class DocumentBuffer:
    """BufferHost over a document's source text and a cursor offset.

    The syntax tree is parsed lazily and reused until the source changes.
    """

    def __init__(
        self,
        source: str = "",
        path: str | None = None,
        parser: CxxParser | None = None,
    ) -> None:
        self._source = source
        self._path = path
        self._cursor = 0
        self._parser = parser if parser is not None else CxxParser()
        self._tree: Tree | None = None
        self._encoded = b""
        self._tree_stale = True

    @property
    def source(self) -> str:
        return self._source

    @property
    def path(self) -> str | None:
        return self._path

    def set_source(self, source: str) -> None:
        if source != self._source:
            self._source = source
            self._tree_stale = True
        self._cursor = min(self._cursor, len(source))

    def set_cursor(self, offset: int) -> None:
        self._cursor = max(0, min(offset, len(self._source)))

    def get_cursor_offset(self) -> int:
        return self._cursor

    def _syntax_tree(self) -> Tree | None:
        if self._tree_stale:
            self._tree = self._parser.parse(self._source)
            self._encoded = self._source.encode("utf-8")
            self._tree_stale = False
        return self._tree

    def get_syntax_category(self, offset: int) -> SyntaxCategory:
        if not self._parser.available:
            return CODE
        byte_offset = len(self._source[:offset].encode("utf-8"))
        tree = self._syntax_tree()
        return self._parser.syntax_category(tree, byte_offset, self._encoded)

    def scan_identifier_boundaries(self, offset: int) -> tuple[int, int]:
        source = self._source
        start = offset
        while start > 0 and is_identifier_char(source[start - 1]):
            start -= 1
        end = offset
        while end < len(source) and is_identifier_char(source[end]):
            end += 1
        if start < end and source[start].isdigit():
            return offset, offset
        return start, end

    def skip_whitespace_backward(self, offset: int) -> int:
        while offset > 0 and self._source[offset - 1] in WHITESPACE:
            offset -= 1
        return offset

    def offset_to_line_byte_column(self, offset: int) -> tuple[int, int]:
        before = self._source[:offset]
        line_start = before.rfind("\n") + 1
        line = before.count("\n") + 1
        column = len(before[line_start:].encode("utf-8")) + 1
        return line, column

    def search_backward_for_operator(
        self, offset: int, operators: Iterable[str]
    ) -> bool:
        before = self._source[:offset]
        return any(before.endswith(op) for op in operators)
