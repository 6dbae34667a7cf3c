"""
Completion candidates and the per-session candidate store.

Backends answer with candidates either as ``Candidate`` objects or as
7-field wire tuples::

    (typed_text, priority, result_type, brief, signature,
     annotation_start, (post_completion_text, start1, end1, start2, end2, ...))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Sequence

if TYPE_CHECKING:
    from cxx_lsp.context import ContextTracker
    from cxx_lsp.session import SessionState

logger = logging.getLogger(__name__)

WIRE_FIELD_COUNT = 7


class MalformedCandidate(ValueError):
    """A candidate record that does not have the expected shape."""


@dataclass(frozen=True)
class Candidate:
    """One backend-suggested completion."""

    typed_text: str
    priority: float = 0
    result_type: str | None = None
    brief: str | None = None
    signature: str = ""
    annotation_start: int = 0
    post_completion_text: str = ""
    placeholders: tuple[tuple[int, int], ...] = field(default_factory=tuple)

    @property
    def annotation(self) -> str:
        """Signature suffix shown next to the typed text."""
        return self.signature[self.annotation_start:]

    @classmethod
    def from_wire(cls, record: Sequence[Any]) -> Candidate:
        """Build a candidate from a 7-field wire tuple."""
        if isinstance(record, (str, bytes)) or len(record) != WIRE_FIELD_COUNT:
            raise MalformedCandidate(f"expected {WIRE_FIELD_COUNT} fields: {record!r}")

        typed_text, priority, result_type, brief, signature, annotation_start, post = record
        if not isinstance(typed_text, str) or not typed_text:
            raise MalformedCandidate(f"invalid typed text: {typed_text!r}")

        text, placeholders = _split_post_completion(post)
        return cls(
            typed_text=typed_text,
            priority=priority if priority is not None else 0,
            result_type=result_type or None,
            brief=brief or None,
            signature=signature or "",
            annotation_start=int(annotation_start or 0),
            post_completion_text=text,
            placeholders=placeholders,
        )


def _split_post_completion(post: Any) -> tuple[str, tuple[tuple[int, int], ...]]:
    if post is None:
        return "", ()
    if isinstance(post, str):
        return post, ()
    if not post or not isinstance(post[0], str):
        raise MalformedCandidate(f"invalid post-completion data: {post!r}")

    text, *offsets = post
    if offsets and not isinstance(offsets[0], int):
        # Already paired: (text, [(start, end), ...])
        offsets = [value for pair in offsets[0] for value in pair]
    if len(offsets) % 2:
        raise MalformedCandidate(f"odd placeholder offset count: {post!r}")

    placeholders = tuple(zip(offsets[::2], offsets[1::2]))
    previous_end = 0
    for start, end in placeholders:
        if not (previous_end <= start <= end <= len(text)):
            raise MalformedCandidate(f"placeholder out of order or range: {post!r}")
        previous_end = end
    return text, placeholders


def decode_candidates(raw: Iterable[Any] | None) -> list[Candidate]:
    """Normalize a backend response, skipping malformed records."""
    candidates: list[Candidate] = []
    for record in raw or ():
        if isinstance(record, Candidate):
            candidates.append(record)
            continue
        try:
            candidates.append(Candidate.from_wire(record))
        except (MalformedCandidate, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed candidate: {e}")
    return candidates


class CandidateStore:
    """Holds the latest candidate set of a session and judges its validity."""

    def __init__(self, tracker: ContextTracker):
        self.tracker = tracker

    def is_available(self, state: SessionState) -> bool:
        """Candidates match both the live tick and the live cursor context."""
        return (
            self.tracker.compute_context() == state.context
            and state.candidates_tick == state.context_tick
        )

    def get(self, state: SessionState) -> list[Candidate]:
        if not self.is_available(state):
            return []
        return state.candidates

    def commit(self, state: SessionState, candidates: list[Candidate], tick: int) -> None:
        state.candidates = candidates
        state.candidates_tick = tick
