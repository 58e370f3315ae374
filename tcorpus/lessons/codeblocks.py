"""Find fenced code blocks in a lesson and classify them by role."""

from __future__ import annotations

import re
from bisect import bisect_left
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from tcorpus.core.config import CorpusConfig, RoleMarkers

from .model import CodeBlock, CodeRole, split_lines

FENCE_OPEN_RE = re.compile(r"^(?P<indent>[ \t]*)(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
HEADING_RE = re.compile(r"^ {0,3}(?P<hashes>#{1,6})(?:[ \t]+(?P<text>.*?))?[ \t]*\r?$")
SETEXT_UNDERLINE_RE = re.compile(r"^ {0,3}(?P<rule>=+|-+)[ \t]*\r?$")
_CLOSING_HASHES_RE = re.compile(r"[ \t]+#+$")
_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])(?:\s|$)")
_HTML_TAG_RE = re.compile(r"</?[A-Za-z][^>]*>")
_LEADING_MARKUP_RE = re.compile(r"^[\s>*_#\-+\d.)]*")
# Lines that carry no content of their own inside a starter-code block.
_STRUCTURAL_ONLY = {"{", "}", "(", ")", "};", "});", "...", "//", "#", "/*", "*/"}
LABEL_MAX_WORDS = 5


@dataclass(frozen=True)
class FenceSpan:
    """Line span of one fenced block; ``end`` is the closing fence (or last line when unclosed)."""

    start: int
    end: int
    fence: str
    info: str
    closed: bool
    content: Tuple[str, ...]


def scan_fences(lines: Sequence[str]) -> List[FenceSpan]:
    """Locate every fenced code block in ``lines``."""
    spans: List[FenceSpan] = []
    index = 0
    total = len(lines)
    while index < total:
        match = FENCE_OPEN_RE.match(lines[index])
        if not match:
            index += 1
            continue
        fence = match.group("fence")
        info = match.group("info").strip()
        if fence[0] == "`" and "`" in info:
            index += 1
            continue
        closing = re.compile(r"^[ \t]*" + re.escape(fence[0]) + "{" + str(len(fence)) + r",}[ \t]*\r?$")
        end = index + 1
        while end < total and not closing.match(lines[end]):
            end += 1
        closed = end < total
        content = tuple(lines[index + 1 : end])
        spans.append(
            FenceSpan(
                start=index,
                end=end if closed else total - 1,
                fence=fence,
                info=info,
                closed=closed,
                content=content,
            )
        )
        index = end + 1
    return spans


def fenced_lines(spans: Iterable[FenceSpan]) -> set[int]:
    """Line numbers covered by fences, including the fence lines themselves."""
    covered: set[int] = set()
    for span in spans:
        covered.update(range(span.start, span.end + 1))
    return covered


def heading_text(line: str) -> Optional[Tuple[int, str]]:
    """Return ``(level, text)`` for an ATX heading line, else None."""
    match = HEADING_RE.match(line)
    if not match:
        return None
    text = _CLOSING_HASHES_RE.sub("", match.group("text") or "").strip()
    if text and set(text) == {"#"}:
        text = ""
    return len(match.group("hashes")), text


@dataclass(frozen=True)
class Heading:
    line: int
    level: int
    text: str
    end: int  # last line of the heading: the underline of a setext heading


def _setext_text(lines: Sequence[str], line_no: int, start: int, covered: set[int], found: Sequence[Heading]) -> bool:
    if line_no < start or line_no in covered:
        return False
    text = lines[line_no]
    if not text.strip() or text.startswith(("    ", "\t")):
        return False
    if found and found[-1].end == line_no:
        return False
    return not (_LIST_ITEM_RE.match(text) or SETEXT_UNDERLINE_RE.match(text) or text.lstrip().startswith(">"))


def find_headings(lines: Sequence[str], covered: set[int], start: int = 0) -> List[Heading]:
    """ATX and setext headings from ``start`` on, skipping fenced lines."""
    found: List[Heading] = []
    for line_no in range(start, len(lines)):
        if line_no in covered:
            continue
        parsed = heading_text(lines[line_no])
        if parsed is not None:
            found.append(Heading(line_no, parsed[0], parsed[1], line_no))
            continue
        underline = SETEXT_UNDERLINE_RE.match(lines[line_no])
        if underline and _setext_text(lines, line_no - 1, start, covered, found):
            level = 1 if underline.group("rule")[0] == "=" else 2
            found.append(Heading(line_no - 1, level, lines[line_no - 1].strip(), line_no))
    return found


def _raw_text(content: Sequence[str]) -> str:
    # The closing fence's line terminator is not part of the code.
    raw = "\n".join(content)
    return raw[:-1] if raw.endswith("\r") else raw


def _word_pattern(words: Sequence[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(word) for word in sorted(words, key=len, reverse=True) if word)
    return re.compile(r"\b(?:" + (alternatives or r"(?!x)x") + r")\b", re.IGNORECASE)


class RoleClassifier:
    """Deterministic role inference from heading context and block content."""

    def __init__(self, markers: RoleMarkers | None = None) -> None:
        markers = markers or RoleMarkers()
        self._solution_word = _word_pattern(markers.solution)
        todo = "|".join(re.escape(word) for word in markers.todo if word) or r"(?!x)x"
        self._todo_line = re.compile(
            r"^(?://+|#+|--|/\*+|\*+|<!--)\s*(?:" + todo + r")\b", re.IGNORECASE
        )

    def is_solution_heading(self, text: str) -> bool:
        return bool(self._solution_word.search(text))

    def is_solution_line(self, line: str) -> bool:
        """Whether a prose line labels the next block as a solution.

        Inline HTML tags are dropped first. The line is a label when it starts
        with the marker, when the marker is followed by ``:``, or when it is a
        short line (at most ``LABEL_MAX_WORDS`` words) with the marker
        capitalised, e.g. ``<summary>Solution</summary>`` or ``Here is the
        Solution``. A lowercase mention mid-sentence is narrative.
        """
        stripped = _LEADING_MARKUP_RE.sub("", _HTML_TAG_RE.sub(" ", line).strip())
        match = self._solution_word.search(stripped)
        if not match:
            return False
        if match.start() == 0:
            return True
        tail = stripped[match.end() :].lstrip("*_ ")
        if tail.startswith(":"):
            return True
        return match.group(0)[0].isupper() and len(stripped.split()) <= LABEL_MAX_WORDS

    def is_todo_only(self, content: Sequence[str]) -> bool:
        meaningful = [line.strip() for line in content if line.strip()]
        meaningful = [line for line in meaningful if line not in _STRUCTURAL_ONLY]
        if not meaningful:
            return False
        return all(self._todo_line.match(line) for line in meaningful)

    def classify(
        self,
        content: Sequence[str],
        nearest_heading: Optional[str],
        prose: Sequence[str],
    ) -> CodeRole:
        if any(self.is_solution_line(line) for line in prose):
            return CodeRole.EXERCISE_SOLUTION
        if nearest_heading is not None and self.is_solution_heading(nearest_heading):
            return CodeRole.EXERCISE_SOLUTION
        if self.is_todo_only(content):
            return CodeRole.EXERCISE_PROMPT
        return CodeRole.EXAMPLE


def extract(
    lesson_text: str,
    owner_lesson_id: str = "",
    config: CorpusConfig | None = None,
) -> Tuple[CodeBlock, ...]:
    """Return the lesson's fenced code blocks, in document order."""
    config = config or CorpusConfig()
    lines = split_lines(lesson_text)
    spans = scan_fences(lines)
    covered = fenced_lines(spans)
    classifier = RoleClassifier(config.markers)

    headings = find_headings(lines, covered)
    heading_lines = [heading.line for heading in headings]

    blocks: List[CodeBlock] = []
    previous_end = -1
    for index, span in enumerate(spans):
        position = bisect_left(heading_lines, span.start) - 1
        nearest = headings[position] if position >= 0 else None
        nearest_end, nearest_text = (nearest.end, nearest.text) if nearest else (-1, None)
        window_start = max(nearest_end, previous_end) + 1
        prose = [line for line in lines[window_start : span.start] if line.strip()]
        role = classifier.classify(span.content, nearest_text, prose)
        tag = span.info.split()[0].strip("{}.") if span.info else ""
        blocks.append(
            CodeBlock(
                language=config.canonical_language(tag),
                role=role,
                raw_text=_raw_text(span.content),
                owner_lesson_id=owner_lesson_id,
                index=index,
                start_line=span.start,
                end_line=span.end,
                closed=span.closed,
                info=span.info,
            )
        )
        previous_end = span.end
    return tuple(blocks)


__all__ = [
    "FenceSpan",
    "Heading",
    "RoleClassifier",
    "extract",
    "fenced_lines",
    "find_headings",
    "heading_text",
    "scan_fences",
]
