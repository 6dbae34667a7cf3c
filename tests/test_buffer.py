"""Tests for the document-backed buffer host."""

import pytest

from cxx_lsp.buffer import BufferHost, DocumentBuffer, is_identifier_char


@pytest.fixture
def buffer(parser):
    return DocumentBuffer("int a\nfoo.bar", "/test/main.cpp", parser)


class TestIdentifierChars:
    """Test the identifier character class."""

    def test_ascii_identifier_chars(self):
        assert all(is_identifier_char(c) for c in "azAZ09_")

    def test_non_identifier_chars(self):
        assert not any(is_identifier_char(c) for c in ".-> :\n(é")


class TestDocumentBuffer:
    """Test the DocumentBuffer host implementation."""

    def test_implements_protocol(self, buffer):
        assert isinstance(buffer, BufferHost)

    def test_cursor_is_clamped(self, buffer):
        buffer.set_cursor(100)
        assert buffer.get_cursor_offset() == len(buffer.source)
        buffer.set_cursor(-3)
        assert buffer.get_cursor_offset() == 0

    def test_set_source_clamps_cursor(self, buffer):
        buffer.set_cursor(12)
        buffer.set_source("int")
        assert buffer.get_cursor_offset() == 3

    def test_identifier_boundaries(self, buffer):
        assert buffer.scan_identifier_boundaries(12) == (10, 13)

    def test_identifier_boundaries_at_operator(self, buffer):
        assert buffer.scan_identifier_boundaries(10) == (10, 13)

    def test_identifier_boundaries_leading_digit(self, parser):
        buffer = DocumentBuffer("x = 12ab", None, parser)
        assert buffer.scan_identifier_boundaries(7) == (7, 7)

    def test_identifier_boundaries_outside_identifier(self, parser):
        buffer = DocumentBuffer("a + b", None, parser)
        assert buffer.scan_identifier_boundaries(2) == (2, 2)

    def test_skip_whitespace_backward(self, parser):
        buffer = DocumentBuffer("foo. \n\t bar", None, parser)
        assert buffer.skip_whitespace_backward(8) == 4

    def test_line_byte_column(self, buffer):
        assert buffer.offset_to_line_byte_column(10) == (2, 5)
        assert buffer.offset_to_line_byte_column(0) == (1, 1)

    def test_line_byte_column_counts_bytes(self, parser):
        buffer = DocumentBuffer("x\n/*é*/ foo.", None, parser)
        # "/*é*/ foo." : é takes two bytes
        assert buffer.offset_to_line_byte_column(len(buffer.source)) == (2, 12)

    def test_search_backward_for_operator(self, parser):
        buffer = DocumentBuffer("p->x; a::b; c.d; e - f", None, parser)
        ops = (".", "->", "::")
        assert buffer.search_backward_for_operator(3, ops)
        assert buffer.search_backward_for_operator(9, ops)
        assert buffer.search_backward_for_operator(14, ops)
        assert not buffer.search_backward_for_operator(21, ops)

    def test_syntax_category_uses_characters(self, parser):
        buffer = DocumentBuffer('auto s = "é.x";', None, parser)
        assert buffer.get_syntax_category(12).in_string
        assert buffer.get_syntax_category(15).is_code

    def test_tree_reparsed_after_change(self, buffer):
        assert buffer.get_syntax_category(12).is_code
        buffer.set_source('int a;\nauto s = "foo.bar";')
        assert buffer.get_syntax_category(19).in_string
