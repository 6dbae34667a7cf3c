"""
Tree-sitter integration for C/C++ parsing.

Classifies buffer positions as string or comment so the completion engine
knows when the cursor has no completable context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import tree_sitter_cpp
from tree_sitter import Language, Node, Parser, Tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyntaxCategory:
    """Syntactic class of a buffer position."""

    in_string: bool = False
    in_comment: bool = False

    @property
    def is_code(self) -> bool:
        return not (self.in_string or self.in_comment)


CODE = SyntaxCategory()


class CxxParser:
    """Parser for C/C++ sources using tree-sitter-cpp."""

    # Node types whose interior is string text
    STRING_TYPES = {
        "string_literal",
        "raw_string_literal",
        "char_literal",
        "system_lib_string",
    }
    COMMENT_TYPES = {"comment"}

    def __init__(self):
        self._parser: Parser | None = None
        self._language: Language | None = None
        self._init_parser()

    def _init_parser(self) -> None:
        """Initialize the tree-sitter parser."""
        try:
            self._language = Language(tree_sitter_cpp.language())
            self._parser = Parser()
            self._parser.language = self._language
        except Exception as e:
            logger.error(f"Failed to initialize parser: {e}")
            self._parser = None
            self._language = None

    @property
    def available(self) -> bool:
        return self._parser is not None

    def parse(self, source: str) -> Tree | None:
        """Parse C/C++ source code."""
        if self._parser is None:
            return None

        try:
            return self._parser.parse(source.encode("utf-8"))
        except Exception as e:
            logger.error(f"Parse error: {e}")
            return None

    def syntax_category(
        self, tree: Tree | None, byte_offset: int, source: bytes | None = None
    ) -> SyntaxCategory:
        """Classify the cursor position ``byte_offset`` in ``tree``.

        The cursor sits between two bytes, so it is inside a string or
        comment when the enclosing node starts strictly before it and ends
        strictly after it. Line comments also cover the position right at
        their end, since the terminating newline is not part of the node.

        An unterminated string or block comment has no node of its own, only
        error recovery around it. When ``source`` is given and the tree has
        errors, the text is rescanned from the first broken top-level node.
        """
        if tree is None or byte_offset <= 0:
            return CODE

        # Descend through nodes with start < byte_offset <= end
        node: Node | None = tree.root_node
        while node is not None:
            if node.type in self.STRING_TYPES:
                if node.start_byte < byte_offset < node.end_byte:
                    return SyntaxCategory(in_string=True)
            elif node.type in self.COMMENT_TYPES:
                if node.start_byte < byte_offset < node.end_byte:
                    return SyntaxCategory(in_comment=True)
                if byte_offset == node.end_byte and self._is_line_comment(node):
                    return SyntaxCategory(in_comment=True)
            node = self._child_covering(node, byte_offset)

        if source is not None and tree.root_node.has_error:
            return self._recover_category(tree, byte_offset, source)
        return CODE

    def _recover_category(self, tree: Tree, byte_offset: int, source: bytes) -> SyntaxCategory:
        for child in tree.root_node.children:
            if child.start_byte >= byte_offset:
                break
            if child.has_error:
                return scan_syntax_category(source, child.start_byte, byte_offset)
        return CODE

    @staticmethod
    def _child_covering(node: Node, byte_offset: int) -> Node | None:
        for child in node.children:
            if child.start_byte < byte_offset <= child.end_byte:
                return child
        return None

    @staticmethod
    def _is_line_comment(node: Node) -> bool:
        return bool(node.text) and node.text.startswith(b"//")


_RAW_STRING_PREFIXES = {b"R", b"LR", b"uR", b"UR", b"u8R"}


def _token_start(source: bytes, i: int) -> int:
    """Start of the identifier or number token ending right before ``i``."""
    while i > 0 and (source[i - 1 : i].isalnum() or source[i - 1 : i] in (b"_", b"'")):
        i -= 1
    return i


def _line_end(source: bytes, i: int) -> int:
    """Index of the newline ending a line comment, honouring continuations."""
    while True:
        newline = source.find(b"\n", i)
        if newline == -1:
            return len(source)
        if not source[i:newline].rstrip(b"\r").endswith(b"\\"):
            return newline
        i = newline + 1


def _quote_end(source: bytes, i: int, quote: bytes) -> tuple[int, bool]:
    """Scan a quoted literal body from ``i``.

    Returns the offset after the closing quote and True, or the offset of
    the newline that cuts an unterminated literal short and False.
    """
    while i < len(source):
        char = source[i : i + 1]
        if char == b"\\":
            i += 2
        elif char == quote:
            return i + 1, True
        elif char == b"\n":
            return i, False
        else:
            i += 1
    return len(source), False


def scan_syntax_category(source: bytes, start: int, byte_offset: int) -> SyntaxCategory:
    """Lexically classify ``byte_offset`` by scanning ``source`` from ``start``.

    ``start`` must be outside any string or comment.
    """
    byte_offset = min(byte_offset, len(source))
    i = start
    while i < byte_offset:
        char = source[i : i + 1]
        pair = source[i : i + 2]
        if pair == b"//":
            end = _line_end(source, i + 2)
            if byte_offset <= end:
                return SyntaxCategory(in_comment=True)
            i = end
        elif pair == b"/*":
            close = source.find(b"*/", i + 2)
            if close == -1 or byte_offset < close + 2:
                return SyntaxCategory(in_comment=True)
            i = close + 2
        elif char == b'"' and source[_token_start(source, i) : i] in _RAW_STRING_PREFIXES:
            paren = source.find(b"(", i + 1)
            if paren == -1:
                return SyntaxCategory(in_string=True)
            terminator = b")" + source[i + 1 : paren] + b'"'
            close = source.find(terminator, paren + 1)
            if close == -1 or byte_offset < close + len(terminator):
                return SyntaxCategory(in_string=True)
            i = close + len(terminator)
        elif char == b'"' or char == b"'":
            token_start = _token_start(source, i)
            if char == b"'" and source[token_start : token_start + 1].isdigit():
                # digit separator, as in 1'000'000
                i += 1
                continue
            end, terminated = _quote_end(source, i + 1, char)
            if byte_offset < end or (not terminated and byte_offset == end):
                return SyntaxCategory(in_string=True)
            i = end
        else:
            i += 1
    return CODE
