"""
Foundational configuration, error, and reporting utilities.

Higher-level modules (lessons, graph, checks, corpus) depend on these
without depending on each other's internals.
"""

from .config import CorpusConfig, load_corpus_config
from .errors import (
    ConfigError,
    CorpusError,
    LessonNotFoundError,
    NotReadyError,
    ParseError,
    PartialOrderError,
)
from .report_log import ReportRecord, ReportWriter

__all__ = [
    "ConfigError",
    "CorpusConfig",
    "CorpusError",
    "LessonNotFoundError",
    "NotReadyError",
    "ParseError",
    "PartialOrderError",
    "ReportRecord",
    "ReportWriter",
    "load_corpus_config",
]
