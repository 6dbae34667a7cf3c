"""Shared fixtures for the completion engine tests."""

import asyncio

import pytest

from cxx_lsp.backend import CompletionRequest
from cxx_lsp.buffer import DocumentBuffer
from cxx_lsp.parser import CxxParser
from cxx_lsp.session import CompletionSession


class FakeBackend:
    """Backend whose responses are released by the test."""

    def __init__(self):
        self.requests: list[CompletionRequest] = []
        self.pending: dict[int, asyncio.Future] = {}
        self.closed: list[str | None] = []

    async def start(self, workspace_root=None):
        pass

    async def stop(self):
        pass

    async def complete(self, request):
        self.requests.append(request)
        future = asyncio.get_running_loop().create_future()
        self.pending[request.token] = future
        return await future

    def did_close(self, path):
        self.closed.append(path)

    def reply(self, token, candidates):
        future = self.pending[token]
        if not future.done():
            future.set_result(candidates)

    def fail(self, token, error):
        future = self.pending[token]
        if not future.done():
            future.set_exception(error)


async def settle():
    """Let dispatched requests and responses run."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture(scope="session")
def parser():
    return CxxParser()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def make_session(parser, backend):
    """Build a session over ``source`` with the cursor at ``cursor``."""

    def factory(source, cursor=None, **kwargs):
        buffer = DocumentBuffer(source, "/test/main.cpp", parser)
        buffer.set_cursor(len(source) if cursor is None else cursor)
        return CompletionSession(buffer, backend, **kwargs)

    return factory
