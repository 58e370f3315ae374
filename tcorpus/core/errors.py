"""Error taxonomy for corpus loading, validation, and navigation."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class CorpusError(Exception):
    """Base class for every error raised by the corpus manager."""


class ConfigError(CorpusError, ValueError):
    """Configuration file is missing sections or has invalid values."""


class ParseError(CorpusError):
    """A document lacks the minimum structure required to become a lesson."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class NotReadyError(CorpusError):
    """Navigation or rendering was requested before the corpus reached `ready`."""

    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(f"Corpus is not ready (state={state})")


class LessonNotFoundError(CorpusError, KeyError):
    """Lookup of an unknown lesson id."""

    def __init__(self, lesson_id: str) -> None:
        self.lesson_id = lesson_id
        super().__init__(lesson_id)

    def __str__(self) -> str:
        return f"Unknown lesson id: {self.lesson_id}"


class PartialOrderError(CorpusError):
    """A learning path could not be fully ordered because of a prerequisite cycle.

    ``partial`` holds the longest valid prefix, ``remainder`` the lessons that
    could not be placed.
    """

    def __init__(self, partial: Sequence[str], remainder: Sequence[str]) -> None:
        self.partial = list(partial)
        self.remainder = list(remainder)
        super().__init__(
            f"Prerequisite cycle prevents a full order; unorderable lessons: {', '.join(self.remainder)}"
        )


__all__ = [
    "ConfigError",
    "CorpusError",
    "LessonNotFoundError",
    "NotReadyError",
    "ParseError",
    "PartialOrderError",
]
