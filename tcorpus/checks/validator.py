"""Integrity checks over a link graph and its lessons."""

from __future__ import annotations

import logging
from collections import deque
from itertools import combinations
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from tcorpus.core.config import CorpusConfig
from tcorpus.graph.builder import EdgeKind, LinkGraph
from tcorpus.lessons.model import CodeBlock, CodeRole, Lesson
from tcorpus.lessons.parser import document_links
from tcorpus.lessons.paths import is_lesson_link, lesson_id_from_path, resolve_reference

from .report import (
    BrokenLinkWarning,
    CycleWarning,
    MalformedBlockWarning,
    OrderingConflictWarning,
    OrphanWarning,
    ValidationReport,
)

LOGGER = logging.getLogger(__name__)

EMPTY_BLOCK = "empty code block"
UNCLOSED_FENCE = "unclosed code fence"

_WHITE, _GRAY, _BLACK = 0, 1, 2
_CLOSERS = {")": "(", "]": "[", "}": "{"}


def validate(
    graph: LinkGraph,
    lessons: Iterable[Lesson] | Mapping[str, Lesson],
    *,
    entry_points: Optional[Sequence[str]] = None,
    config: CorpusConfig | None = None,
    toc_orders: Optional[Mapping[str, Sequence[str]]] = None,
) -> ValidationReport:
    """Run every check and collect all findings; content problems never raise.

    Raises TypeError only when ``graph`` or ``lessons`` is missing.
    """
    if graph is None:
        raise TypeError("validate() requires a LinkGraph")
    if lessons is None:
        raise TypeError("validate() requires the lesson collection")
    config = config or CorpusConfig()
    by_id = _index(lessons)
    if entry_points is None and config.entry_points:
        entry_points = config.entry_points

    report = ValidationReport(
        broken_links=tuple(find_broken_links(graph)),
        cycles=tuple(find_cycles(graph)),
        orphan_lessons=tuple(find_orphans(graph, entry_points)),
        malformed_code_blocks=tuple(find_malformed_blocks(by_id.values(), config)),
        ordering_conflicts=tuple(find_ordering_conflicts(toc_orders or {})),
    )
    LOGGER.info(
        f"Validation finished: {len(report.broken_links)} broken links, {len(report.cycles)} cycles, "
        f"{len(report.orphan_lessons)} orphans, {len(report.malformed_code_blocks)} malformed blocks"
    )
    return report


def _index(lessons: Iterable[Lesson] | Mapping[str, Lesson]) -> Dict[str, Lesson]:
    if isinstance(lessons, Mapping):
        return dict(lessons)
    return {lesson.id: lesson for lesson in lessons}


def find_broken_links(graph: LinkGraph) -> List[BrokenLinkWarning]:
    return [
        BrokenLinkWarning(lesson_id=edge.source, reference=edge.reference, relation=edge.kind.value)
        for edge in graph.dangling_edges()
    ]


def find_cycles(graph: LinkGraph) -> List[CycleWarning]:
    """Three-colour DFS over resolved prerequisite edges.

    Each cycle is reported once, following edge direction and starting at its
    lowest lesson id.
    """
    color = {node: _WHITE for node in graph.nodes}
    found: Dict[Tuple[str, ...], None] = {}
    for root in sorted(graph.nodes):
        if color[root] != _WHITE:
            continue
        color[root] = _GRAY
        path = [root]
        stack = [iter(graph.prerequisites(root))]
        while stack:
            child = next(stack[-1], None)
            if child is None:
                color[path.pop()] = _BLACK
                stack.pop()
                continue
            state = color.get(child)
            if state == _WHITE:
                color[child] = _GRAY
                path.append(child)
                stack.append(iter(graph.prerequisites(child)))
            elif state == _GRAY:
                found.setdefault(_rotate(path[path.index(child) :]), None)
    return [CycleWarning(lesson_ids=cycle) for cycle in sorted(found)]


def _rotate(cycle: Sequence[str]) -> Tuple[str, ...]:
    start = cycle.index(min(cycle))
    return tuple(cycle[start:]) + tuple(cycle[:start])


def entry_lessons(graph: LinkGraph, entry_points: Optional[Sequence[str]] = None) -> List[str]:
    """Resolve explicit entry points, or derive them from the graph.

    Derived entry points are chain heads: lessons with no declared
    prerequisites, no incoming next-lesson link, and at least one outgoing one.
    """
    if entry_points:
        roots: List[str] = []
        for entry in entry_points:
            resolved = entry if entry in graph.nodes else resolve_reference("", entry, graph.nodes)
            if resolved is None:
                LOGGER.warning(f"Entry point {entry!r} does not match any lesson")
                continue
            if resolved not in roots:
                roots.append(resolved)
        return roots

    declares_prerequisite = {edge.source for edge in graph.edges if edge.kind is EdgeKind.PREREQUISITE}
    return [
        lesson_id
        for lesson_id in sorted(graph.nodes)
        if lesson_id not in declares_prerequisite
        and not graph.previous_lessons(lesson_id)
        and graph.next_lessons(lesson_id)
    ]


def find_orphans(graph: LinkGraph, entry_points: Optional[Sequence[str]] = None) -> List[OrphanWarning]:
    reached: set[str] = set()
    queue = deque(entry_lessons(graph, entry_points))
    while queue:
        current = queue.popleft()
        if current in reached:
            continue
        reached.add(current)
        queue.extend(lesson_id for lesson_id in graph.next_lessons(current) if lesson_id not in reached)
    return [OrphanWarning(lesson_id=lesson_id) for lesson_id in sorted(graph.nodes - reached)]


def find_malformed_blocks(lessons: Iterable[Lesson], config: CorpusConfig) -> List[MalformedBlockWarning]:
    findings: List[MalformedBlockWarning] = []
    for lesson in sorted(lessons, key=lambda item: item.id):
        for block in lesson.code_blocks:
            for reason in block_problems(block, lesson, config):
                findings.append(MalformedBlockWarning(block=block, reason=reason))
    return findings


def block_problems(block: CodeBlock, lesson: Lesson, config: CorpusConfig) -> List[str]:
    """Reasons ``block`` looks malformed; reports only, never edits the block."""
    if not block.raw_text.strip():
        return [EMPTY_BLOCK]
    problems: List[str] = []
    if not block.closed:
        problems.append(UNCLOSED_FENCE)
    language = block.language
    if (
        block.role is CodeRole.EXAMPLE
        and language != "unknown"
        and language != lesson.language
        and language not in config.code.compatible_languages
    ):
        problems.append(f"language '{language}' does not match lesson language '{lesson.language}'")
    if (
        config.code.check_brackets
        and block.closed
        and block.role is not CodeRole.EXERCISE_PROMPT
        and language in config.code.bracket_languages
    ):
        problem = bracket_problem(block.raw_text)
        if problem:
            problems.append(problem)
    return problems


def _skip_quoted(text: str, start: int, quote: str) -> Optional[int]:
    index = start + 1
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == quote:
            return index + 1
        if char == "\n":
            return None
        index += 1
    return None


def bracket_problem(text: str) -> Optional[str]:
    """Check bracket balance for C-family code (Kotlin, Java).

    String, char and raw-string literals are skipped, as are line comments and
    (nested) block comments.
    """
    stack: List[Tuple[str, int]] = []
    line = 1
    depth = 0
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        if char == "\n":
            line += 1
            index += 1
            continue
        if depth:
            if text.startswith("/*", index):
                depth += 1
                index += 2
            elif text.startswith("*/", index):
                depth -= 1
                index += 2
            else:
                index += 1
            continue
        if text.startswith("//", index):
            newline = text.find("\n", index)
            if newline == -1:
                break
            index = newline
            continue
        if text.startswith("/*", index):
            depth = 1
            index += 2
            continue
        if text.startswith('"""', index):
            end = text.find('"""', index + 3)
            if end == -1:
                return f"unterminated raw string starting at line {line}"
            line += text.count("\n", index, end)
            index = end + 3
            continue
        if char in "\"'":
            after = _skip_quoted(text, index, char)
            if after is None:
                literal = "string" if char == '"' else "char"
                return f"unterminated {literal} literal at line {line}"
            index = after
            continue
        if char in "([{":
            stack.append((char, line))
        elif char in _CLOSERS:
            if not stack or stack[-1][0] != _CLOSERS[char]:
                return f"unbalanced brackets: unexpected '{char}' at line {line}"
            stack.pop()
        index += 1
    if depth:
        return "unterminated block comment"
    if stack:
        char, opened = stack[-1]
        return f"unbalanced brackets: '{char}' opened at line {opened} is never closed"
    return None


def toc_order(toc_path: str, text: str, known_ids: Iterable[str]) -> List[str]:
    """Ordered, de-duplicated lesson ids linked from a table-of-contents document."""
    known = set(known_ids)
    source_id = lesson_id_from_path(toc_path)
    order: List[str] = []
    for _, target in document_links(text):
        if not is_lesson_link(target):
            continue
        resolved = resolve_reference(source_id, target, known)
        if resolved is not None and resolved not in order:
            order.append(resolved)
    return order


def find_ordering_conflicts(toc_orders: Mapping[str, Sequence[str]]) -> List[OrderingConflictWarning]:
    """Report each pair of TOCs that disagree on the relative order of two lessons."""
    conflicts: List[OrderingConflictWarning] = []
    for first, second in combinations(sorted(toc_orders), 2):
        positions = {lesson_id: index for index, lesson_id in enumerate(toc_orders[second])}
        common = [lesson_id for lesson_id in toc_orders[first] if lesson_id in positions]
        conflict = _first_inversion(common, positions)
        if conflict is not None:
            earlier, later = conflict
            conflicts.append(
                OrderingConflictWarning(first_toc=first, second_toc=second, earlier=earlier, later=later)
            )
    return conflicts


def _first_inversion(order: Sequence[str], positions: Mapping[str, int]) -> Optional[Tuple[str, str]]:
    for i, earlier in enumerate(order):
        for later in order[i + 1 :]:
            if positions[earlier] > positions[later]:
                return earlier, later
    return None


__all__ = [
    "EMPTY_BLOCK",
    "UNCLOSED_FENCE",
    "block_problems",
    "bracket_problem",
    "entry_lessons",
    "find_broken_links",
    "find_cycles",
    "find_malformed_blocks",
    "find_ordering_conflicts",
    "find_orphans",
    "toc_order",
    "validate",
]
