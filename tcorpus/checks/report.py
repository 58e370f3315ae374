"""Validation report records.

Content problems never raise; each one becomes a record here. Broken links
and cycles are errors, everything else is a warning that warrants review.
"""

from __future__ import annotations

from typing import List, Literal, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field

from tcorpus.core.report_log import ReportRecord
from tcorpus.lessons.model import CodeBlock

Severity = Literal["error", "warning"]


class _Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str = "finding"
    severity: Severity = "warning"

    @computed_field
    @property
    def message(self) -> str:
        return self.describe()

    def describe(self) -> str:
        raise NotImplementedError

    def subject(self) -> str | None:
        return None

    def details(self) -> dict:
        return self.model_dump(mode="json", exclude={"kind", "severity", "message"})

    def to_record(self) -> ReportRecord:
        return ReportRecord(
            kind=self.kind,
            severity=self.severity,
            lesson_id=self.subject(),
            message=self.message,
            details=self.details(),
        )


class BrokenLinkWarning(_Finding):
    kind: Literal["broken-link"] = "broken-link"
    severity: Severity = "error"
    lesson_id: str
    reference: str
    relation: str = Field(..., description="Edge kind the reference was declared as.")

    def describe(self) -> str:
        return f"{self.lesson_id} declares {self.relation} link to missing lesson '{self.reference}'"

    def subject(self) -> str | None:
        return self.lesson_id


class CycleWarning(_Finding):
    kind: Literal["cycle"] = "cycle"
    severity: Severity = "error"
    lesson_ids: Tuple[str, ...]

    def describe(self) -> str:
        chain = " -> ".join(self.lesson_ids + self.lesson_ids[:1])
        return f"prerequisite cycle: {chain}"

    def subject(self) -> str | None:
        return self.lesson_ids[0] if self.lesson_ids else None


class OrphanWarning(_Finding):
    kind: Literal["orphan"] = "orphan"
    lesson_id: str

    def describe(self) -> str:
        return f"{self.lesson_id} is not reachable from any entry point via next-lesson links"

    def subject(self) -> str | None:
        return self.lesson_id


class MalformedBlockWarning(_Finding):
    kind: Literal["malformed-code-block"] = "malformed-code-block"
    block: CodeBlock
    reason: str

    def describe(self) -> str:
        return (
            f"{self.block.owner_lesson_id} code block #{self.block.index + 1} "
            f"(line {self.block.start_line + 1}): {self.reason}"
        )

    def subject(self) -> str | None:
        return self.block.owner_lesson_id

    def details(self) -> dict:
        return {
            "reason": self.reason,
            "index": self.block.index,
            "line": self.block.start_line + 1,
            "language": self.block.language,
            "role": self.block.role.value,
        }


class OrderingConflictWarning(_Finding):
    """Two table-of-contents documents order the same pair of lessons differently."""

    kind: Literal["ordering-conflict"] = "ordering-conflict"
    first_toc: str
    second_toc: str
    earlier: str
    later: str

    def describe(self) -> str:
        return (
            f"{self.first_toc} lists {self.earlier} before {self.later}, "
            f"but {self.second_toc} lists them the other way round"
        )


class ParseFailure(_Finding):
    """A document excluded from the corpus; reported next to validation findings."""

    kind: Literal["parse-error"] = "parse-error"
    severity: Severity = "error"
    path: str
    reason: str

    def describe(self) -> str:
        return f"{self.path}: {self.reason}"

    def subject(self) -> str | None:
        return self.path


class ValidationReport(BaseModel):
    """Read-only result of one validation run."""

    model_config = ConfigDict(frozen=True)

    broken_links: Tuple[BrokenLinkWarning, ...] = ()
    cycles: Tuple[CycleWarning, ...] = ()
    orphan_lessons: Tuple[OrphanWarning, ...] = ()
    malformed_code_blocks: Tuple[MalformedBlockWarning, ...] = ()
    ordering_conflicts: Tuple[OrderingConflictWarning, ...] = ()

    def findings(self) -> List[_Finding]:
        return [
            *self.broken_links,
            *self.cycles,
            *self.orphan_lessons,
            *self.malformed_code_blocks,
            *self.ordering_conflicts,
        ]

    @property
    def has_errors(self) -> bool:
        return any(finding.severity == "error" for finding in self.findings())

    @property
    def has_warnings(self) -> bool:
        return any(finding.severity == "warning" for finding in self.findings())

    @property
    def is_empty(self) -> bool:
        return not self.findings()

    @property
    def orphan_ids(self) -> List[str]:
        return [orphan.lesson_id for orphan in self.orphan_lessons]

    def records(self) -> List[ReportRecord]:
        return [finding.to_record() for finding in self.findings()]


__all__ = [
    "BrokenLinkWarning",
    "CycleWarning",
    "MalformedBlockWarning",
    "OrderingConflictWarning",
    "OrphanWarning",
    "ParseFailure",
    "ValidationReport",
]
