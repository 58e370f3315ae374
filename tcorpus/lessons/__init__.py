"""Lesson document model: parsing markdown lessons and their code blocks."""

from .codeblocks import extract
from .model import CodeBlock, CodeRole, Lesson, LessonRef, ParseOutcome, ParseStatus, Section, SectionKind
from .parser import LessonParser, parse, parse_document
from .paths import lesson_id_from_path, resolve_reference

__all__ = [
    "CodeBlock",
    "CodeRole",
    "Lesson",
    "LessonParser",
    "LessonRef",
    "ParseOutcome",
    "ParseStatus",
    "Section",
    "SectionKind",
    "extract",
    "lesson_id_from_path",
    "parse",
    "parse_document",
    "resolve_reference",
]
