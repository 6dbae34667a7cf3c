"""Tests for cursor context tracking."""

import pytest

from cxx_lsp.buffer import DocumentBuffer
from cxx_lsp.context import ContextTracker, compute_context
from cxx_lsp.session import SessionState

SOURCE = "int a;\nvoid f() {\n  obj.  mem\n  ptr->x; // see obj.\n}\n"


@pytest.fixture
def buffer(parser):
    return DocumentBuffer(SOURCE, "/test/main.cpp", parser)


@pytest.fixture
def tracker(buffer):
    return ContextTracker(buffer)


def at(buffer, marker: str, delta: int = 0) -> DocumentBuffer:
    buffer.set_cursor(SOURCE.index(marker) + delta)
    return buffer


class TestComputeContext:
    """Test context computation from the cursor."""

    def test_skips_identifier_and_whitespace(self, buffer):
        at(buffer, "mem", 2)
        assert compute_context(buffer) == SOURCE.index("obj.") + 4

    def test_right_after_operator(self, buffer):
        at(buffer, "x;")
        assert compute_context(buffer) == SOURCE.index("->") + 2

    def test_inside_identifier_matches_end(self, buffer):
        start = compute_context(at(buffer, "mem", 1))
        end = compute_context(at(buffer, "mem", 3))
        assert start == end

    def test_comment_has_no_context(self, buffer):
        at(buffer, "see obj.", 8)
        assert compute_context(buffer) is None

    def test_leading_digit_collapses_token(self, parser):
        buffer = DocumentBuffer("x = 12ab", None, parser)
        buffer.set_cursor(8)
        assert compute_context(buffer) == 8


class TestContextTracker:
    """Test context change detection and the context tick."""

    def test_first_update_changes(self, buffer, tracker):
        state = SessionState()
        at(buffer, "mem", 3)
        assert tracker.update(state)
        assert state.context_tick == 1
        assert state.context == SOURCE.index("obj.") + 4

    def test_unchanged_context_has_no_side_effects(self, buffer, tracker):
        state = SessionState()
        at(buffer, "mem", 1)
        tracker.update(state)
        state.candidates = ["kept"]
        at(buffer, "mem", 3)
        assert not tracker.update(state)
        assert state.context_tick == 1
        assert state.candidates == ["kept"]

    def test_change_clears_candidates(self, buffer, tracker):
        state = SessionState()
        at(buffer, "mem", 3)
        tracker.update(state)
        state.candidates = ["stale"]
        at(buffer, "x;")
        assert tracker.update(state)
        assert state.candidates == []

    def test_tick_strictly_increases(self, buffer, tracker):
        state = SessionState()
        ticks = []
        for marker in ["mem", "x;", "see obj.", "mem", "int a"]:
            at(buffer, marker, 2)
            tracker.update(state)
            ticks.append(state.context_tick)
        assert ticks == sorted(set(ticks))
        assert ticks == [1, 2, 3, 4, 5]

    def test_null_context_is_immediately_valid(self, buffer, tracker):
        state = SessionState()
        at(buffer, "mem", 3)
        tracker.update(state)
        at(buffer, "see obj.", 8)
        assert tracker.update(state)
        assert state.context is None
        assert state.candidates_tick == state.context_tick
        assert state.candidates == []

    def test_non_null_context_is_not_valid(self, buffer, tracker):
        state = SessionState()
        at(buffer, "mem", 3)
        tracker.update(state)
        assert state.candidates_tick != state.context_tick


class TestUnterminatedLiterals:
    """Test that unclosed strings and comments have no context."""

    @pytest.mark.parametrize(
        "source",
        [
            'void f() {\n  printf("obj.\n  return;\n}\n',
            "void f() {\n  /* obj.\n  return;\n}\n",
        ],
    )
    def test_no_context(self, parser, source):
        buffer = DocumentBuffer(source, "/test/main.cpp", parser)
        buffer.set_cursor(source.index("obj.") + 4)
        assert compute_context(buffer) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "source",
        [
            'void f() {\n  printf("obj.\n  return;\n}\n',
            "void f() {\n  /* obj.\n  return;\n}\n",
        ],
    )
    async def test_member_access_sends_nothing(self, make_session, backend, source):
        session = make_session(source, source.index("obj.") + 4)
        assert not session.post_command("self-insert-command")
        assert session.state.context is None
        assert backend.requests == []
