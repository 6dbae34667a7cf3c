"""
Snippet expansion for accepted completions.

Turns a flat completion string plus placeholder offsets into an LSP
snippet (``${1:...}`` tab-stops, ``$0`` end marker), or into the plain
text before the first placeholder when the editor has no snippet support.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from cxx_lsp.candidates import Candidate

END_MARKER = "$0"

_SNIPPET_SPECIALS = re.compile(r"([\\$}])")


@dataclass(frozen=True)
class Insertion:
    """Text to insert for an accepted candidate."""

    text: str
    is_snippet: bool


def escape_snippet_text(text: str) -> str:
    """Escape characters that snippet syntax would otherwise interpret."""
    return _SNIPPET_SPECIALS.sub(r"\\\1", text)


def expand_snippet(text: str, placeholders: Sequence[tuple[int, int]]) -> str:
    """Wrap each placeholder range of ``text`` as a numbered tab-stop.

    >>> expand_snippet("foo(int a, int b)", [(4, 9), (11, 16)])
    'foo(${1:int a}, ${2:int b})$0'
    """
    parts: list[str] = []
    previous_end = 0
    for number, (start, end) in enumerate(placeholders, start=1):
        parts.append(escape_snippet_text(text[previous_end:start]))
        parts.append(f"${{{number}:{escape_snippet_text(text[start:end])}}}")
        previous_end = end
    parts.append(escape_snippet_text(text[previous_end:]))
    parts.append(END_MARKER)
    return "".join(parts)


def fallback_text(text: str, placeholders: Sequence[tuple[int, int]]) -> str:
    """Literal text up to the first placeholder."""
    if not placeholders:
        return text
    return text[: placeholders[0][0]]


def expand_candidate(candidate: Candidate, snippet_support: bool) -> Insertion:
    """Insertion performed after ``candidate``'s typed text is in place."""
    text = candidate.post_completion_text
    if snippet_support and candidate.placeholders:
        return Insertion(expand_snippet(text, candidate.placeholders), is_snippet=True)
    return Insertion(fallback_text(text, candidate.placeholders), is_snippet=False)


def parse_snippet(snippet: str) -> tuple[str, tuple[tuple[int, int], ...]]:
    """Flatten an LSP snippet into text plus placeholder offsets.

    Tab-stops with a default (``${1:int a}``) become placeholders; bare
    tab-stops (``$1``, ``${2}``, ``$0``) and choices are dropped from the
    text. Nested placeholders are flattened into their parent.
    """
    text: list[str] = []
    placeholders: list[tuple[int, int]] = []
    length = 0
    depth = 0
    starts: list[int] = []
    i = 0
    while i < len(snippet):
        char = snippet[i]
        if char == "\\" and i + 1 < len(snippet) and snippet[i + 1] in "\\$},|":
            text.append(snippet[i + 1])
            length += 1
            i += 2
            continue

        if char == "$":
            match = re.match(r"\$(\d+)|\$\{(\d+)\}|\$\{\d+\|[^}]*\}", snippet[i:])
            if match:
                i += match.end()
                continue
            match = re.match(r"\$\{\d+:", snippet[i:])
            if match:
                depth += 1
                starts.append(length)
                i += match.end()
                continue

        if char == "}" and depth:
            depth -= 1
            start = starts.pop()
            if not depth:
                placeholders.append((start, length))
            i += 1
            continue

        text.append(char)
        length += 1
        i += 1

    return "".join(text), tuple(placeholders)
