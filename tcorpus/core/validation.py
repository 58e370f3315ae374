"""Pre-flight checks on the corpus root and config file before a load."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

LOGGER = logging.getLogger(__name__)


class ValidationFailure(ValueError):
    """Raised by a strict validator when an input check fails."""


@dataclass
class ValidationResult:
    path: Path
    errors: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


class InputValidator:
    """Filesystem checks; a strict validator raises instead of returning a failed result."""

    def __init__(self, *, strict: bool = True) -> None:
        self.strict = strict

    def _finish(self, result: ValidationResult) -> ValidationResult:
        if result.valid:
            return result
        LOGGER.error(f"Input check failed for {result.path}: {'; '.join(result.errors)}")
        if self.strict:
            raise ValidationFailure("; ".join(result.errors))
        return result

    def validate_file_exists(self, path: Path | str) -> ValidationResult:
        """The config file must exist and be readable as UTF-8 text."""
        result = ValidationResult(Path(path))
        problem: Optional[str] = None
        if not result.path.exists():
            problem = f"File does not exist: {path}"
        elif not result.path.is_file():
            problem = f"Path is not a file: {path}"
        else:
            try:
                result.path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                problem = f"Cannot read file {path}: {exc}"
        if problem:
            result.errors.append(problem)
        return self._finish(result)

    def validate_directory(self, path: Path | str) -> ValidationResult:
        """The corpus root must be an existing directory."""
        result = ValidationResult(Path(path))
        if not result.path.exists():
            result.errors.append(f"Directory does not exist: {path}")
        elif not result.path.is_dir():
            result.errors.append(f"Path is not a directory: {path}")
        return self._finish(result)


validation = InputValidator(strict=False)
strict_validation = InputValidator(strict=True)


__all__ = [
    "InputValidator",
    "ValidationFailure",
    "ValidationResult",
    "strict_validation",
    "validation",
]
