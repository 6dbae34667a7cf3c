"""Tests for the per-document completion session."""

from unittest.mock import MagicMock

import pytest

from cxx_lsp.candidates import Candidate
from cxx_lsp.snippet import Insertion

from conftest import settle

SOURCE = "void f(Vec v) {\n  v.pu\n  // v.\n}\n"
MEMBER = SOURCE.index("pu") + 2
COMMENT = SOURCE.index("// v.") + 5
WIRE = (
    "push_back",
    0,
    "void",
    "Appends a value",
    "push_back(int value)",
    9,
    ("(int value)", 1, 10),
)


class TestSubscribe:
    """Test waiting for candidates."""

    @pytest.mark.asyncio
    async def test_waits_for_response(self, make_session, backend):
        session = make_session(SOURCE, MEMBER)
        callback = MagicMock()
        session.subscribe(callback)
        await settle()

        callback.assert_not_called()
        assert len(backend.requests) == 1

        backend.reply(backend.requests[0].token, [WIRE])
        await settle()
        callback.assert_called_once_with()
        assert session.is_available()

    @pytest.mark.asyncio
    async def test_synchronous_when_available(self, make_session, backend):
        session = make_session(SOURCE, MEMBER)
        session.subscribe(MagicMock())
        await settle()
        backend.reply(backend.requests[0].token, [WIRE])
        await settle()

        callback = MagicMock()
        session.subscribe(callback)
        callback.assert_called_once_with()
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_repeated_subscribe_sends_once(self, make_session, backend):
        session = make_session(SOURCE, MEMBER)
        first, second = MagicMock(), MagicMock()
        session.subscribe(first)
        session.subscribe(second)
        await settle()
        assert len(backend.requests) == 1

        backend.reply(backend.requests[0].token, [WIRE])
        await settle()
        first.assert_called_once_with()
        second.assert_called_once_with()

    def test_null_context_needs_no_backend(self, make_session, backend):
        session = make_session(SOURCE, COMMENT)
        callback = MagicMock()
        session.subscribe(callback)
        callback.assert_called_once_with()
        assert backend.requests == []
        assert session.get_candidates() == []


class TestPostCommand:
    """Test the net trigger decision after editor commands."""

    @pytest.mark.asyncio
    async def test_member_access_triggers(self, make_session, backend):
        session = make_session("a.b;\nv.", 7)
        assert session.post_command("self-insert-command")
        await settle()
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_repeated_trigger_sends_once(self, make_session, backend):
        session = make_session("a.b;\nv.", 7)
        assert session.post_command("self-insert-command")
        assert not session.post_command("self-insert-command")
        await settle()
        assert len(backend.requests) == 1

    def test_non_trigger_command(self, make_session, backend):
        session = make_session("a.b;\nv.", 7)
        assert not session.post_command("forward-char")
        assert session.state.context_tick == 0
        assert backend.requests == []

    def test_no_member_access(self, make_session, backend):
        session = make_session("int x = y", 9)
        assert not session.post_command("self-insert-command")
        assert session.state.context_tick == 1
        assert backend.requests == []


class TestSessionQueries:
    """Test accept, completion-at-point and teardown."""

    def test_accept_candidate_snippet(self, make_session):
        session = make_session(SOURCE, MEMBER)
        insertion = session.accept_candidate(Candidate.from_wire(WIRE))
        assert insertion == Insertion("(${1:int value})$0", is_snippet=True)

    def test_accept_candidate_fallback(self, make_session):
        session = make_session(SOURCE, MEMBER, snippet_support=False)
        insertion = session.accept_candidate(Candidate.from_wire(WIRE))
        assert insertion == Insertion("(", is_snippet=False)

    def test_completion_at_point(self, make_session):
        session = make_session(SOURCE, MEMBER)
        session.update()
        session.coordinator.on_response(session.state, [WIRE], session.state.context_tick)

        result = session.completion_at_point()
        assert (result.start, result.end) == (SOURCE.index("pu"), MEMBER)
        [candidate] = result.candidates
        assert result.annotation(candidate) == "(int value)"

    def test_completion_at_point_not_ready(self, make_session):
        session = make_session(SOURCE, MEMBER)
        session.update()
        assert session.completion_at_point() is None

    @pytest.mark.asyncio
    async def test_teardown_resets_state(self, make_session, backend):
        session = make_session(SOURCE, MEMBER)
        session.subscribe(MagicMock())
        await settle()
        token = backend.requests[0].token

        session.teardown()
        assert session.state.context is None
        assert session.state.context_tick == 0
        assert session.state.request_tick is None
        assert len(session.state.callbacks) == 0

        backend.reply(token, [WIRE])
        await settle()
        assert session.state.candidates == []
