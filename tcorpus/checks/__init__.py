"""Corpus validation: report records and integrity checks."""

from .report import (
    BrokenLinkWarning,
    CycleWarning,
    MalformedBlockWarning,
    OrderingConflictWarning,
    OrphanWarning,
    ParseFailure,
    ValidationReport,
)
from .validator import toc_order, validate

__all__ = [
    "BrokenLinkWarning",
    "CycleWarning",
    "MalformedBlockWarning",
    "OrderingConflictWarning",
    "OrphanWarning",
    "ParseFailure",
    "ValidationReport",
    "toc_order",
    "validate",
]
