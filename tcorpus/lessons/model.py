"""Immutable records produced by parsing one lesson document."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def split_lines(text: str) -> List[str]:
    """Split on ``\\n`` only, so ``\\r`` and other line-break characters stay in the text."""
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


class CodeRole(str, Enum):
    """Role of a fenced code block inside a lesson."""

    EXAMPLE = "example"
    EXERCISE_PROMPT = "exercise-prompt"
    EXERCISE_SOLUTION = "exercise-solution"


class SectionKind(str, Enum):
    """Recognised structural sections, in canonical order."""

    INTRO = "intro"
    OBJECTIVES = "objectives"
    PREREQUISITES = "prerequisites"
    NEXT = "next"


# Order in which recognised sections are expected to appear.
CANONICAL_SECTION_ORDER: Tuple[SectionKind, ...] = (
    SectionKind.OBJECTIVES,
    SectionKind.PREREQUISITES,
    SectionKind.NEXT,
)


class CodeBlock(BaseModel):
    """One fenced code sample; ``raw_text`` is the verbatim content between the fences."""

    model_config = ConfigDict(frozen=True)

    language: str = "unknown"
    role: CodeRole = CodeRole.EXAMPLE
    raw_text: str = ""
    owner_lesson_id: str = ""
    index: int = Field(0, ge=0, description="Position of the block within its lesson.")
    start_line: int = Field(0, ge=0, description="0-based line of the opening fence.")
    end_line: int = Field(0, ge=0, description="0-based line of the closing fence (last line when unclosed).")
    closed: bool = True
    info: str = Field("", description="Full fence info string.")


class LessonRef(BaseModel):
    """An unresolved cross-reference as written in the document."""

    model_config = ConfigDict(frozen=True)

    text: str
    target: str


class Section(BaseModel):
    """A heading-delimited span of the document.

    ``start_line``/``end_line`` delimit the body (end exclusive); the heading
    itself sits on ``heading_line``. ``kind`` is None for sections the parser
    does not recognise; their content is kept as-is.
    """

    model_config = ConfigDict(frozen=True)

    heading: Optional[str] = None
    level: int = Field(0, ge=0, le=6)
    kind: Optional[SectionKind] = None
    heading_line: Optional[int] = None
    start_line: int = 0
    end_line: int = 0


class Lesson(BaseModel):
    """Structured record for one tutorial document."""

    model_config = ConfigDict(frozen=True)

    id: str
    path: str
    title: str
    title_line: Optional[int] = Field(None, description="0-based line of the title heading; None when taken from front matter.")
    title_end_line: Optional[int] = Field(None, description="Last line of the title heading; the underline of a setext title.")
    objectives: Tuple[str, ...] = ()
    prerequisites: Tuple[LessonRef, ...] = ()
    next_lessons: Tuple[LessonRef, ...] = ()
    code_blocks: Tuple[CodeBlock, ...] = ()
    sections: Tuple[Section, ...] = ()
    missing_sections: Tuple[SectionKind, ...] = ()
    language: str = "unknown"
    source_ref: Optional[str] = None
    text: str = Field("", repr=False)

    def lines(self) -> List[str]:
        return split_lines(self.text)

    def section_text(self, section: Section) -> str:
        """Return the raw markdown body of ``section``."""
        return "\n".join(self.lines()[section.start_line : section.end_line])


class ParseStatus(str, Enum):
    PARSED = "parsed"
    PARTIALLY_PARSED = "partially-parsed"
    FAILED = "failed"


class ParseOutcome(BaseModel):
    """Tagged result of parsing a document: parsed, partially parsed, or failed."""

    model_config = ConfigDict(frozen=True)

    path: str
    status: ParseStatus
    lesson: Optional[Lesson] = None
    warnings: Tuple[str, ...] = ()
    reason: Optional[str] = None

    @classmethod
    def from_lesson(cls, lesson: Lesson, warnings: Tuple[str, ...] = ()) -> "ParseOutcome":
        status = ParseStatus.PARTIALLY_PARSED if warnings else ParseStatus.PARSED
        return cls(path=lesson.path, status=status, lesson=lesson, warnings=tuple(warnings))

    @classmethod
    def failed(cls, path: str, reason: str) -> "ParseOutcome":
        return cls(path=path, status=ParseStatus.FAILED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status is not ParseStatus.FAILED


__all__ = [
    "CANONICAL_SECTION_ORDER",
    "CodeBlock",
    "CodeRole",
    "Lesson",
    "LessonRef",
    "ParseOutcome",
    "ParseStatus",
    "Section",
    "SectionKind",
    "split_lines",
]
