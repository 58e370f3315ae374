"""Turn one markdown document into a `Lesson`.

The parser is tolerant: optional sections may be missing, heading levels may
drift, and unrecognised sections are kept as opaque spans. Only a document
without any title is rejected.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from tcorpus.core.config import CorpusConfig
from tcorpus.core.errors import ParseError

from .codeblocks import Heading, extract, fenced_lines, find_headings, scan_fences
from .model import CANONICAL_SECTION_ORDER, Lesson, LessonRef, ParseOutcome, Section, SectionKind, split_lines
from .paths import has_source_suffix, is_lesson_link, lesson_id_from_path

LOGGER = logging.getLogger(__name__)

INLINE_LINK_RE = re.compile(r"(?<!!)\[(?P<text>[^\]]*)\]\(\s*<?(?P<target>[^)\s>]*)>?(?:\s+[\"'(][^)]*)?\)")
REFERENCE_LINK_RE = re.compile(r"(?<!!)\[(?P<text>[^\]]+)\]\[(?P<ref>[^\]]*)\]")
REFERENCE_DEF_RE = re.compile(r"^ {0,3}\[(?P<ref>[^\]]+)\]:\s*<?(?P<target>\S+?)>?(?:\s+.*)?$")
LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+(?P<text>.+?)\s*$")
_LABEL_NOISE_RE = re.compile(r"[^a-z0-9' ]+")
_LEADING_NUMBER_RE = re.compile(r"^(?:\d+[.)]?\s+)+")


def _normalize_label(text: str) -> str:
    lowered = text.lower().replace("’", "'").replace("`", "")
    lowered = _LABEL_NOISE_RE.sub(" ", lowered)
    lowered = " ".join(lowered.split())
    return _LEADING_NUMBER_RE.sub("", lowered).strip(" '")


class LessonParser:
    """Parses lesson documents according to a `CorpusConfig`."""

    def __init__(self, config: CorpusConfig | None = None) -> None:
        self.config = config or CorpusConfig()
        labels = self.config.sections
        self._labels: List[Tuple[str, SectionKind]] = []
        for kind, values in (
            (SectionKind.OBJECTIVES, labels.objectives),
            (SectionKind.PREREQUISITES, labels.prerequisites),
            (SectionKind.NEXT, labels.next),
        ):
            for value in values:
                self._labels.append((_normalize_label(value), kind))
        # Longest labels first so "next steps" wins over "next".
        self._labels.sort(key=lambda item: len(item[0]), reverse=True)

    def section_kind(self, heading: str) -> Optional[SectionKind]:
        """Map a heading onto a recognised section kind."""
        normalized = _normalize_label(heading)
        if not normalized:
            return None
        for label, kind in self._labels:
            if normalized == label:
                return kind
            if " " in label and normalized.startswith(label + " "):
                return kind
        return None

    def parse_document(self, path: str | Path, text: str) -> ParseOutcome:
        """Parse ``text`` without raising for content problems."""
        rel_path = Path(path).as_posix()
        lesson_id = lesson_id_from_path(rel_path)
        lines = split_lines(text)
        warnings: List[str] = []

        front, body_start = self._front_matter(lines, warnings)
        spans = [span for span in scan_fences(lines) if span.start >= body_start]
        covered = fenced_lines(spans)
        for span in spans:
            if not span.closed:
                warnings.append(f"unclosed code fence at line {span.start + 1}")

        headings = find_headings(lines, covered, body_start)
        title, title_heading = self._title(headings, front)
        if not title:
            LOGGER.debug(f"No title heading in {rel_path}")
            return ParseOutcome.failed(rel_path, "missing title heading")

        sections = self._sections(lines, headings, title_heading, body_start, warnings)
        references = self._reference_definitions(lines, covered)
        section_links = {
            kind: self._section_links(lines, sections, kind, covered, references)
            for kind in (SectionKind.PREREQUISITES, SectionKind.NEXT)
        }

        prerequisites = _dedupe(self._front_refs(front, "prerequisites") + section_links[SectionKind.PREREQUISITES])
        next_lessons = _dedupe(self._front_refs(front, "next") + section_links[SectionKind.NEXT])

        objectives = list(_string_list(front.get("objectives")))
        for item in self._objectives(lines, sections, covered):
            if item not in objectives:
                objectives.append(item)

        present = {section.kind for section in sections if section.kind is not None}
        if front.get("prerequisites"):
            present.add(SectionKind.PREREQUISITES)
        if front.get("next"):
            present.add(SectionKind.NEXT)
        if front.get("objectives"):
            present.add(SectionKind.OBJECTIVES)
        missing = tuple(kind for kind in CANONICAL_SECTION_ORDER if kind not in present)

        language = front.get("language")
        language = language.strip().lower() if isinstance(language, str) and language.strip() else self.config.subject_language

        lesson = Lesson(
            id=lesson_id,
            path=rel_path,
            title=title,
            title_line=title_heading.line if title_heading else None,
            title_end_line=title_heading.end if title_heading else None,
            objectives=tuple(objectives),
            prerequisites=prerequisites,
            next_lessons=next_lessons,
            code_blocks=extract(text, lesson_id, self.config),
            sections=tuple(sections),
            missing_sections=missing,
            language=language,
            source_ref=self._source_ref(front, lines, covered, references),
            text=text,
        )
        return ParseOutcome.from_lesson(lesson, tuple(warnings))

    def parse(self, path: str | Path, text: str) -> Lesson:
        """Parse ``text`` into a Lesson, raising `ParseError` when it has no title."""
        outcome = self.parse_document(path, text)
        if outcome.lesson is None:
            raise ParseError(path, outcome.reason or "unparseable document")
        return outcome.lesson

    # ------------------------------------------------------------------
    # Structure

    def _front_matter(self, lines: Sequence[str], warnings: List[str]) -> Tuple[Dict[str, Any], int]:
        """YAML mapping between leading ``---`` lines, and the first body line.

        A block that is not a YAML mapping is most likely a thematic break, so
        the body is scanned from the top.
        """
        if not lines or lines[0].strip() != "---":
            return {}, 0
        for index in range(1, len(lines)):
            if lines[index].strip() in ("---", "..."):
                break
        else:
            return {}, 0
        try:
            data = yaml.safe_load("\n".join(lines[1:index])) or {}
        except yaml.YAMLError as exc:
            warnings.append(f"invalid front matter: {exc}")
            return {}, 0
        if not isinstance(data, dict):
            warnings.append("front matter is not a mapping")
            return {}, 0
        return data, index + 1

    def _title(self, headings: Sequence[Heading], front: Dict[str, Any]) -> Tuple[str, Optional[Heading]]:
        for heading in headings:
            if heading.level == 1 and heading.text:
                return heading.text, heading
        for heading in headings:
            if heading.text:
                return heading.text, heading
        title = front.get("title")
        if isinstance(title, str) and title.strip():
            return title.strip(), None
        return "", None

    def _sections(
        self,
        lines: Sequence[str],
        headings: Sequence[Heading],
        title: Optional[Heading],
        body_start: int,
        warnings: List[str],
    ) -> List[Section]:
        section_heads = [heading for heading in headings if heading is not title]
        sections: List[Section] = []
        first_heading = section_heads[0].line if section_heads else len(lines)
        intro_start = body_start
        if title is not None and title.line < first_heading:
            # Banners and badges above the title.
            if any(line.strip() for line in lines[body_start : title.line]):
                sections.append(Section(kind=SectionKind.INTRO, start_line=body_start, end_line=title.line))
            intro_start = title.end + 1
        if any(line.strip() for line in lines[intro_start:first_heading]):
            sections.append(Section(kind=SectionKind.INTRO, start_line=intro_start, end_line=first_heading))

        stack: List[Tuple[int, Optional[SectionKind]]] = []
        seen: List[SectionKind] = []
        for position, heading in enumerate(section_heads):
            end = section_heads[position + 1].line if position + 1 < len(section_heads) else len(lines)
            own_kind = self.section_kind(heading.text)
            while stack and stack[-1][0] >= heading.level:
                stack.pop()
            kind = own_kind if own_kind is not None else (stack[-1][1] if stack else None)
            stack.append((heading.level, kind))
            if own_kind is not None:
                self._check_order(own_kind, seen, warnings)
                seen.append(own_kind)
            sections.append(
                Section(
                    heading=heading.text,
                    level=heading.level,
                    kind=kind,
                    heading_line=heading.line,
                    start_line=heading.end + 1,
                    end_line=end,
                )
            )
        return sections

    @staticmethod
    def _check_order(kind: SectionKind, seen: Sequence[SectionKind], warnings: List[str]) -> None:
        if kind in seen:
            warnings.append(f"duplicate '{kind.value}' section")
            return
        rank = CANONICAL_SECTION_ORDER.index(kind)
        for earlier in seen:
            if CANONICAL_SECTION_ORDER.index(earlier) > rank:
                warnings.append(f"section '{kind.value}' appears after '{earlier.value}'")
                return

    # ------------------------------------------------------------------
    # Content

    @staticmethod
    def _reference_definitions(lines: Sequence[str], covered: set[int]) -> Dict[str, str]:
        definitions: Dict[str, str] = {}
        for line_no, line in enumerate(lines):
            if line_no in covered:
                continue
            match = REFERENCE_DEF_RE.match(line)
            if match:
                definitions.setdefault(match.group("ref").strip().lower(), match.group("target"))
        return definitions

    @staticmethod
    def _links(line: str, references: Dict[str, str]) -> List[Tuple[str, str]]:
        found: List[Tuple[int, str, str]] = []
        for match in INLINE_LINK_RE.finditer(line):
            found.append((match.start(), match.group("text").strip(), match.group("target").strip()))
        for match in REFERENCE_LINK_RE.finditer(line):
            text = match.group("text").strip()
            ref = (match.group("ref") or text).strip().lower()
            target = references.get(ref)
            if target:
                found.append((match.start(), text, target))
        found.sort(key=lambda item: item[0])
        return [(text, target) for _, text, target in found]

    def _section_links(
        self,
        lines: Sequence[str],
        sections: Sequence[Section],
        kind: SectionKind,
        covered: set[int],
        references: Dict[str, str],
    ) -> List[LessonRef]:
        refs: List[LessonRef] = []
        for section in sections:
            if section.kind is not kind:
                continue
            for line_no in range(section.start_line, section.end_line):
                if line_no in covered or REFERENCE_DEF_RE.match(lines[line_no]):
                    continue
                for text, target in self._links(lines[line_no], references):
                    if is_lesson_link(target):
                        refs.append(LessonRef(text=text or target, target=target))
        return refs

    @staticmethod
    def _front_refs(front: Dict[str, Any], key: str) -> List[LessonRef]:
        return [LessonRef(text=target, target=target) for target in _string_list(front.get(key))]

    @staticmethod
    def _objectives(lines: Sequence[str], sections: Sequence[Section], covered: set[int]) -> List[str]:
        items: List[str] = []
        for section in sections:
            if section.kind is not SectionKind.OBJECTIVES:
                continue
            for line_no in range(section.start_line, section.end_line):
                if line_no in covered:
                    continue
                match = LIST_ITEM_RE.match(lines[line_no])
                if match and match.group("text") not in items:
                    items.append(match.group("text"))
        return items

    def _source_ref(
        self,
        front: Dict[str, Any],
        lines: Sequence[str],
        covered: set[int],
        references: Dict[str, str],
    ) -> Optional[str]:
        source = front.get("source")
        if isinstance(source, str) and source.strip():
            return source.strip()
        extensions = self.config.source_extensions
        for line_no, line in enumerate(lines):
            if line_no in covered:
                continue
            for _, target in self._links(line, references):
                if has_source_suffix(target, extensions):
                    return target
        return None


def document_links(text: str) -> List[Tuple[str, str]]:
    """All ``(text, target)`` markdown links outside code fences, in document order."""
    lines = split_lines(text)
    covered = fenced_lines(scan_fences(lines))
    references = LessonParser._reference_definitions(lines, covered)
    links: List[Tuple[str, str]] = []
    for line_no, line in enumerate(lines):
        if line_no in covered or REFERENCE_DEF_RE.match(line):
            continue
        links.extend(LessonParser._links(line, references))
    return links


def _string_list(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(item).strip() for item in value if str(item).strip())


def _dedupe(refs: Sequence[LessonRef]) -> Tuple[LessonRef, ...]:
    seen: set[str] = set()
    unique: List[LessonRef] = []
    for ref in refs:
        if ref.target in seen:
            continue
        seen.add(ref.target)
        unique.append(ref)
    return tuple(unique)


def parse_document(path: str | Path, text: str, config: CorpusConfig | None = None) -> ParseOutcome:
    """Parse one document into a tagged `ParseOutcome`."""
    return LessonParser(config).parse_document(path, text)


def parse(path: str | Path, text: str, config: CorpusConfig | None = None) -> Lesson:
    """Parse one document into a `Lesson`; raises `ParseError` when it has no title."""
    return LessonParser(config).parse(path, text)


__all__ = ["LessonParser", "document_links", "parse", "parse_document"]
