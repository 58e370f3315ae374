"""Ordered learning paths and renderable lesson views."""

from __future__ import annotations

import heapq
from collections import deque
from typing import Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from tcorpus.core.errors import LessonNotFoundError, PartialOrderError
from tcorpus.graph.builder import EdgeKind, LinkGraph
from tcorpus.lessons.model import CodeBlock, CodeRole, Lesson, Section


def _scope(graph: LinkGraph, start_id: str) -> Dict[str, int]:
    """Lessons reachable from ``start_id`` via prerequisite or leads-to edges, by discovery order."""
    order: Dict[str, int] = {start_id: 0}
    queue = deque([start_id])
    while queue:
        current = queue.popleft()
        for neighbour in graph.prerequisites(current) + graph.next_lessons(current):
            if neighbour not in order:
                order[neighbour] = len(order)
                queue.append(neighbour)
    return order


def learning_path(graph: LinkGraph, start_id: str) -> List[str]:
    """Topologically ordered lessons for a learner starting at ``start_id``.

    The scope is ``start_id`` plus everything reachable through prerequisite
    and next-lesson links. Prerequisites always come before the lessons that
    need them; otherwise lessons keep their discovery order. Raises
    `PartialOrderError` with the orderable prefix when a prerequisite cycle
    blocks the rest.
    """
    if start_id not in graph.nodes:
        raise LessonNotFoundError(start_id)
    discovered = _scope(graph, start_id)
    pending = {
        lesson_id: sum(1 for prerequisite in graph.prerequisites(lesson_id) if prerequisite in discovered)
        for lesson_id in discovered
    }
    ready = [(discovered[lesson_id], lesson_id) for lesson_id, count in pending.items() if count == 0]
    heapq.heapify(ready)

    path: List[str] = []
    while ready:
        _, lesson_id = heapq.heappop(ready)
        path.append(lesson_id)
        for dependent in graph.dependents(lesson_id):
            if dependent not in pending:
                continue
            pending[dependent] -= 1
            if pending[dependent] == 0:
                heapq.heappush(ready, (discovered[dependent], dependent))

    if len(path) < len(discovered):
        placed = set(path)
        raise PartialOrderError(path, sorted(lesson_id for lesson_id in discovered if lesson_id not in placed))
    return path


class ProseItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["prose"] = "prose"
    text: str


class CodeItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["code"] = "code"
    index: int
    language: str
    role: CodeRole
    raw_text: str


class SectionView(BaseModel):
    model_config = ConfigDict(frozen=True)

    heading: Optional[str] = None
    level: int = 0
    kind: Optional[str] = None
    items: Tuple[Union[ProseItem, CodeItem], ...] = ()


class NeighbourLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    relation: str
    reference: str
    text: str
    lesson_id: Optional[str] = None
    title: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.lesson_id is not None


class LessonView(BaseModel):
    """Template-agnostic view model for one lesson."""

    model_config = ConfigDict(frozen=True)

    id: str
    path: str
    title: str
    language: str
    objectives: Tuple[str, ...] = ()
    source_ref: Optional[str] = None
    sections: Tuple[SectionView, ...] = ()
    code_blocks: Tuple[CodeItem, ...] = ()
    prerequisites: Tuple[NeighbourLink, ...] = ()
    next_lessons: Tuple[NeighbourLink, ...] = ()
    missing_sections: Tuple[str, ...] = Field(default=(), description="Recognised sections the lesson lacks.")


def _code_item(block: CodeBlock) -> CodeItem:
    return CodeItem(index=block.index, language=block.language, role=block.role, raw_text=block.raw_text)


def _section_items(lesson: Lesson, section: Section, lines: List[str], title_lines: range) -> List[Union[ProseItem, CodeItem]]:
    items: List[Union[ProseItem, CodeItem]] = []
    blocks = {block.start_line: block for block in lesson.code_blocks}
    prose: List[str] = []

    def flush() -> None:
        text = "\n".join(prose).strip("\r\n")
        if text.strip():
            items.append(ProseItem(text=text))
        prose.clear()

    line_no = section.start_line
    while line_no < section.end_line:
        block = blocks.get(line_no)
        if block is not None:
            flush()
            items.append(_code_item(block))
            line_no = block.end_line + 1
            continue
        if line_no not in title_lines:
            prose.append(lines[line_no])
        line_no += 1
    flush()
    return items


def _neighbours(
    lesson: Lesson,
    graph: Optional[LinkGraph],
    titles: Mapping[str, str],
) -> Tuple[Tuple[NeighbourLink, ...], Tuple[NeighbourLink, ...]]:
    resolved: Dict[Tuple[EdgeKind, str], str] = {}
    if graph is not None:
        for edge in graph.edges_from(lesson.id):
            if not edge.dangling:
                resolved[(edge.kind, edge.reference)] = edge.target

    def links(kind: EdgeKind, refs) -> Tuple[NeighbourLink, ...]:
        result = []
        for ref in refs:
            target = resolved.get((kind, ref.target))
            result.append(
                NeighbourLink(
                    relation=kind.value,
                    reference=ref.target,
                    text=ref.text,
                    lesson_id=target,
                    title=titles.get(target) if target else None,
                )
            )
        return tuple(result)

    return links(EdgeKind.PREREQUISITE, lesson.prerequisites), links(EdgeKind.LEADS_TO, lesson.next_lessons)


def render(
    lesson: Lesson,
    graph: Optional[LinkGraph] = None,
    titles: Optional[Mapping[str, str]] = None,
) -> LessonView:
    """Build the view model for ``lesson``; code text is carried over byte-for-byte."""
    lines = lesson.lines()
    title_lines = range(0)
    if lesson.title_line is not None:
        title_lines = range(lesson.title_line, (lesson.title_end_line or lesson.title_line) + 1)
    sections = tuple(
        SectionView(
            heading=section.heading,
            level=section.level,
            kind=section.kind.value if section.kind is not None else None,
            items=tuple(_section_items(lesson, section, lines, title_lines)),
        )
        for section in lesson.sections
    )
    prerequisites, next_lessons = _neighbours(lesson, graph, titles or {})
    return LessonView(
        id=lesson.id,
        path=lesson.path,
        title=lesson.title,
        language=lesson.language,
        objectives=lesson.objectives,
        source_ref=lesson.source_ref,
        sections=sections,
        code_blocks=tuple(_code_item(block) for block in lesson.code_blocks),
        prerequisites=prerequisites,
        next_lessons=next_lessons,
        missing_sections=tuple(kind.value for kind in lesson.missing_sections),
    )


__all__ = [
    "CodeItem",
    "LessonView",
    "NeighbourLink",
    "ProseItem",
    "SectionView",
    "learning_path",
    "render",
]
