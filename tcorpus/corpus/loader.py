"""Corpus lifecycle: discover, parse, link, validate, publish a snapshot.

A load moves through ``unloaded -> loading -> validated -> ready``; structural
problems end it in ``failed``. Each successful load publishes a new immutable
`CorpusSnapshot`; readers holding an older snapshot keep a consistent view.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from tcorpus.checks.report import ParseFailure, ValidationReport
from tcorpus.checks.validator import toc_order, validate
from tcorpus.core.config import CorpusConfig
from tcorpus.core.errors import LessonNotFoundError, NotReadyError
from tcorpus.core.report_log import ReportRecord
from tcorpus.core.validation import validation
from tcorpus.graph.builder import LinkGraph, build
from tcorpus.lessons.model import Lesson, ParseOutcome
from tcorpus.lessons.parser import LessonParser
from tcorpus.lessons.paths import lesson_id_from_path

from .navigation import LessonView, learning_path, render

LOGGER = logging.getLogger(__name__)


class CorpusState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    VALIDATED = "validated"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class CorpusSnapshot:
    """Immutable view of one successful load."""

    root: Path
    lessons: Mapping[str, Lesson]
    graph: LinkGraph
    report: ValidationReport
    failures: Tuple[ParseFailure, ...] = ()

    def lesson(self, lesson_id: str) -> Lesson:
        try:
            return self.lessons[lesson_id]
        except KeyError:
            raise LessonNotFoundError(lesson_id) from None

    def titles(self) -> Dict[str, str]:
        return {lesson_id: lesson.title for lesson_id, lesson in self.lessons.items()}

    def learning_path(self, start_id: str) -> List[str]:
        return learning_path(self.graph, start_id)

    def render(self, lesson_id: str) -> LessonView:
        return render(self.lesson(lesson_id), self.graph, self.titles())

    def records(self) -> List[ReportRecord]:
        """Parse failures followed by validation findings, one record each."""
        return [failure.to_record() for failure in self.failures] + self.report.records()

    @property
    def has_errors(self) -> bool:
        return bool(self.failures) or self.report.has_errors


@dataclass(frozen=True)
class LoadResult:
    state: CorpusState
    snapshot: Optional[CorpusSnapshot] = None
    failures: Tuple[ParseFailure, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is CorpusState.READY


def discover_documents(config: CorpusConfig) -> List[Path]:
    """Markdown files under the corpus root matching include/exclude globs, sorted."""
    root = config.root
    found: Dict[str, Path] = {}
    for pattern in config.include:
        for path in root.glob(pattern):
            if not path.is_file():
                continue
            relative = path.relative_to(root)
            if any(relative.match(excluded) or relative.as_posix() == excluded for excluded in config.exclude):
                continue
            found[relative.as_posix()] = path
    return [found[key] for key in sorted(found)]


class Corpus:
    """Owns the lifecycle state and the currently published snapshot."""

    def __init__(self, config: CorpusConfig | None = None) -> None:
        self.config = config or CorpusConfig()
        self._parser = LessonParser(self.config)
        self._lock = threading.Lock()
        self._state = CorpusState.UNLOADED
        self._snapshot: Optional[CorpusSnapshot] = None

    @property
    def state(self) -> CorpusState:
        return self._state

    def _transition(self, state: CorpusState) -> None:
        with self._lock:
            LOGGER.debug(f"Corpus state {self._state.value} -> {state.value}")
            self._state = state

    def _fail(self, reason: str, failures: Tuple[ParseFailure, ...] = ()) -> LoadResult:
        LOGGER.error(f"Corpus load failed: {reason}")
        self._transition(CorpusState.FAILED)
        return LoadResult(state=CorpusState.FAILED, failures=failures, error=reason)

    @property
    def snapshot(self) -> CorpusSnapshot:
        with self._lock:
            if self._state is not CorpusState.READY or self._snapshot is None:
                raise NotReadyError(self._state.value)
            return self._snapshot

    def learning_path(self, start_id: str) -> List[str]:
        return self.snapshot.learning_path(start_id)

    def render(self, lesson_id: str) -> LessonView:
        return self.snapshot.render(lesson_id)

    def _read_and_parse(self, path: Path) -> ParseOutcome:
        relative = path.relative_to(self.config.root).as_posix()
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return ParseOutcome.failed(relative, f"unreadable document: {exc}")
        LOGGER.debug(f"Parsing {relative}")
        return self._parser.parse_document(relative, text)

    def load(self) -> LoadResult:
        """Run a full load and publish a new snapshot when it succeeds."""
        self._transition(CorpusState.LOADING)
        root = self.config.root
        if not validation.validate_directory(root).valid:
            return self._fail(f"corpus root {root} is not a directory")

        documents = discover_documents(self.config)
        if not documents:
            return self._fail(f"no lesson documents found under {root}")
        LOGGER.info(f"Loading {len(documents)} documents from {root}")

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            outcomes = list(pool.map(self._read_and_parse, documents))

        lessons: Dict[str, Lesson] = {}
        failures: List[ParseFailure] = []
        for outcome in outcomes:
            for warning in outcome.warnings:
                LOGGER.warning(f"{outcome.path}: {warning}")
            if outcome.lesson is None:
                LOGGER.warning(f"Excluding {outcome.path}: {outcome.reason}")
                failures.append(ParseFailure(path=outcome.path, reason=outcome.reason or "parse failed"))
                continue
            existing = lessons.get(outcome.lesson.id)
            if existing is not None:
                reason = f"duplicate lesson id '{outcome.lesson.id}' (also {existing.path})"
                LOGGER.warning(f"Excluding {outcome.path}: {reason}")
                failures.append(ParseFailure(path=outcome.path, reason=reason))
                continue
            lessons[outcome.lesson.id] = outcome.lesson

        graph = build(lessons.values())
        report = validate(
            graph,
            lessons,
            config=self.config,
            toc_orders=self._toc_orders(graph),
        )
        self._transition(CorpusState.VALIDATED)

        frozen_failures = tuple(failures)
        if self.config.strict and (frozen_failures or report.has_errors):
            return self._fail("strict mode: parse failures or error findings present", frozen_failures)

        snapshot = CorpusSnapshot(
            root=root,
            lessons=MappingProxyType(dict(sorted(lessons.items()))),
            graph=graph,
            report=report,
            failures=frozen_failures,
        )
        with self._lock:
            self._snapshot = snapshot
            self._state = CorpusState.READY
        LOGGER.info(f"Corpus ready: {len(lessons)} lessons, {len(frozen_failures)} excluded")
        return LoadResult(state=CorpusState.READY, snapshot=snapshot, failures=frozen_failures)

    def _toc_orders(self, graph: LinkGraph) -> Dict[str, List[str]]:
        orders: Dict[str, List[str]] = {}
        for toc in self.config.toc_files:
            path = self.config.root / toc
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                LOGGER.warning(f"Skipping table of contents {toc}: {exc}")
                continue
            orders[lesson_id_from_path(toc)] = toc_order(toc, text, graph.nodes)
        return orders


def load_corpus(root: Path | str | None = None, config: CorpusConfig | None = None) -> LoadResult:
    """Convenience wrapper: load a corpus in one call."""
    config = config or CorpusConfig()
    if root is not None:
        config = config.with_root(Path(root))
    return Corpus(config).load()


__all__ = [
    "Corpus",
    "CorpusSnapshot",
    "CorpusState",
    "LoadResult",
    "discover_documents",
    "load_corpus",
]
