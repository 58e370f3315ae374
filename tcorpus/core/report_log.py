"""JSONL writer for machine-readable validation reports."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Literal, Optional, TextIO

from pydantic import BaseModel, Field


class ReportRecord(BaseModel):
    """One line of a validation report, suitable for CI gating."""

    kind: str = Field(..., description="Record type, e.g. 'broken-link' or 'cycle'.")
    severity: Literal["error", "warning"]
    lesson_id: Optional[str] = None
    message: str = Field(..., description="Human-readable description of the finding.")
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ReportWriter:
    """Append-only JSONL writer for report records.

    Writes to a file when ``output_path`` is given, otherwise to ``stream``.
    With ``overwrite`` the file is truncated once, so each run starts clean.
    """

    def __init__(
        self,
        output_path: Path | None = None,
        *,
        stream: TextIO | None = None,
        overwrite: bool = False,
    ):
        if output_path is None and stream is None:
            raise ValueError("ReportWriter needs an output path or a stream")
        self.output_path = output_path
        self.stream = stream
        if self.output_path is not None:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            if overwrite:
                self.output_path.write_text("", encoding="utf-8")

    def log(self, record: ReportRecord | Dict[str, Any]) -> ReportRecord:
        """Write a single record and return the normalized object."""
        if not isinstance(record, ReportRecord):
            record = ReportRecord(**record)
        line = record.model_dump_json()
        if self.output_path is not None:
            with self.output_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        else:
            self.stream.write(line + "\n")
        return record

    def extend(self, records: Iterable[ReportRecord | Dict[str, Any]]) -> int:
        """Batch-write multiple records; returns how many were written."""
        count = 0
        for record in records:
            self.log(record)
            count += 1
        return count


__all__ = ["ReportRecord", "ReportWriter"]
