"""Assemble lesson cross-references into a directed link graph."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from typing import Dict, FrozenSet, Iterable, List, Mapping, Tuple

from tcorpus.lessons.model import Lesson
from tcorpus.lessons.paths import resolve_reference

LOGGER = logging.getLogger(__name__)

# Sentinel node for references that match no lesson.
UNRESOLVED = "<unresolved>"


class EdgeKind(str, Enum):
    PREREQUISITE = "prerequisite-of"
    LEADS_TO = "leads-to"


@dataclass(frozen=True, order=True)
class Edge:
    """A cross-reference from ``source`` (the declaring lesson) to ``target``.

    For prerequisite edges the target is a prerequisite of the source; for
    leads-to edges the target is a "what's next" lesson. ``reference`` keeps
    the literal link target so broken links can be reported verbatim.
    """

    kind: EdgeKind
    source: str
    target: str
    reference: str

    @property
    def dangling(self) -> bool:
        return self.target == UNRESOLVED


@dataclass(frozen=True)
class LinkGraph:
    """Immutable directed graph over lesson ids.

    Prerequisite and leads-to edges are separate relations; they are not
    assumed to be inverses of each other.
    """

    nodes: FrozenSet[str] = field(default_factory=frozenset)
    edges: FrozenSet[Edge] = field(default_factory=frozenset)

    @cached_property
    def _outgoing(self) -> Mapping[Tuple[EdgeKind, str], Tuple[str, ...]]:
        index: Dict[Tuple[EdgeKind, str], set[str]] = defaultdict(set)
        for edge in self.edges:
            if not edge.dangling:
                index[(edge.kind, edge.source)].add(edge.target)
        return {key: tuple(sorted(values)) for key, values in index.items()}

    @cached_property
    def _incoming(self) -> Mapping[Tuple[EdgeKind, str], Tuple[str, ...]]:
        index: Dict[Tuple[EdgeKind, str], set[str]] = defaultdict(set)
        for edge in self.edges:
            if not edge.dangling:
                index[(edge.kind, edge.target)].add(edge.source)
        return {key: tuple(sorted(values)) for key, values in index.items()}

    def __contains__(self, lesson_id: object) -> bool:
        return lesson_id in self.nodes

    def lesson_ids(self) -> List[str]:
        return sorted(self.nodes)

    def prerequisites(self, lesson_id: str) -> Tuple[str, ...]:
        """Resolved prerequisites declared by ``lesson_id``."""
        return self._outgoing.get((EdgeKind.PREREQUISITE, lesson_id), ())

    def dependents(self, lesson_id: str) -> Tuple[str, ...]:
        """Lessons that declare ``lesson_id`` as a prerequisite."""
        return self._incoming.get((EdgeKind.PREREQUISITE, lesson_id), ())

    def next_lessons(self, lesson_id: str) -> Tuple[str, ...]:
        return self._outgoing.get((EdgeKind.LEADS_TO, lesson_id), ())

    def previous_lessons(self, lesson_id: str) -> Tuple[str, ...]:
        return self._incoming.get((EdgeKind.LEADS_TO, lesson_id), ())

    def edges_from(self, lesson_id: str, kind: EdgeKind | None = None) -> List[Edge]:
        return [
            edge
            for edge in self.sorted_edges()
            if edge.source == lesson_id and (kind is None or edge.kind is kind)
        ]

    def dangling_edges(self) -> List[Edge]:
        return [edge for edge in self.sorted_edges() if edge.dangling]

    def sorted_edges(self) -> List[Edge]:
        return sorted(self.edges, key=lambda edge: (edge.kind.value, edge.source, edge.target, edge.reference))


def build(lessons: Iterable[Lesson]) -> LinkGraph:
    """Build the link graph for a complete lesson set.

    Raises ValueError when two lessons share an id.
    """
    lessons = list(lessons)
    known: Dict[str, Lesson] = {}
    for lesson in lessons:
        if lesson.id in known:
            raise ValueError(f"Duplicate lesson id: {lesson.id} ({known[lesson.id].path}, {lesson.path})")
        known[lesson.id] = lesson

    edges: set[Edge] = set()
    for lesson in lessons:
        for kind, refs in (
            (EdgeKind.PREREQUISITE, lesson.prerequisites),
            (EdgeKind.LEADS_TO, lesson.next_lessons),
        ):
            for ref in refs:
                target = resolve_reference(lesson.id, ref.target, known)
                if target is None:
                    LOGGER.debug(f"Unresolved {kind.value} reference {ref.target!r} in {lesson.id}")
                    target = UNRESOLVED
                edges.add(Edge(kind=kind, source=lesson.id, target=target, reference=ref.target))

    graph = LinkGraph(nodes=frozenset(known), edges=frozenset(edges))
    LOGGER.info(f"Built link graph: {len(graph.nodes)} lessons, {len(graph.edges)} edges")
    return graph


__all__ = ["UNRESOLVED", "Edge", "EdgeKind", "LinkGraph", "build"]
