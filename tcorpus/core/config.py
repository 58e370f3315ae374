"""
Typed configuration for the tutorial corpus manager.

Every field has a default tuned for the Kotlin tutorial corpus so a bare
``CorpusConfig(root=...)`` is usable; a YAML file only needs to list the
values it overrides.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError


def _strip_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()]
    if isinstance(value, (list, tuple)):
        return [item.strip() if isinstance(item, str) else item for item in value]
    return value


class SectionLabels(BaseModel):
    """Heading labels recognised as structural lesson sections (case-insensitive)."""

    objectives: List[str] = Field(
        default_factory=lambda: ["objectives", "learning objectives", "what you'll learn", "what you will learn", "goals"]
    )
    prerequisites: List[str] = Field(
        default_factory=lambda: ["prerequisites", "prerequisite", "requirements", "before you begin"]
    )
    next: List[str] = Field(
        default_factory=lambda: ["what's next", "whats next", "next steps", "next lesson", "next lessons", "up next", "next"]
    )

    @field_validator("objectives", "prerequisites", "next", mode="before")
    @classmethod
    def strip_items(cls, value: Any) -> Any:
        return _strip_list(value)


class RoleMarkers(BaseModel):
    """Words that drive code block role inference."""

    solution: List[str] = Field(default_factory=lambda: ["solution", "solutions"])
    todo: List[str] = Field(default_factory=lambda: ["TODO"])

    @field_validator("solution", "todo", mode="before")
    @classmethod
    def strip_items(cls, value: Any) -> Any:
        return _strip_list(value)


class CodeCheckConfig(BaseModel):
    """Settings for code block classification and well-formedness checks."""

    language_aliases: Dict[str, str] = Field(
        default_factory=lambda: {"kt": "kotlin", "kts": "kotlin", "sh": "shell", "bash": "shell", "console": "shell"}
    )
    compatible_languages: List[str] = Field(
        default_factory=lambda: ["java", "shell", "text", "plaintext", "output", "groovy", "gradle", "xml", "json", "yaml"]
    )
    check_brackets: bool = True
    bracket_languages: List[str] = Field(default_factory=lambda: ["kotlin", "java"])

    @field_validator("compatible_languages", "bracket_languages", mode="before")
    @classmethod
    def lower_items(cls, value: Any) -> Any:
        items = _strip_list(value)
        if isinstance(items, list):
            return [item.lower() if isinstance(item, str) else item for item in items]
        return items


class CorpusConfig(BaseModel):
    """Top-level configuration for loading and validating a corpus."""

    model_config = ConfigDict(extra="forbid")

    root: Path = Field(default=Path("."), description="Directory holding the markdown lessons.")
    include: List[str] = Field(default_factory=lambda: ["**/*.md", "**/*.markdown"])
    exclude: List[str] = Field(default_factory=list, description="Glob patterns (relative to root) to skip.")
    subject_language: str = "kotlin"
    entry_points: List[str] = Field(
        default_factory=list,
        description="Lesson paths/ids that start the curriculum; derived from the graph when empty.",
    )
    toc_files: List[str] = Field(
        default_factory=list,
        description="Table-of-contents documents whose lesson orderings are cross-checked.",
    )
    source_extensions: List[str] = Field(default_factory=lambda: [".kt", ".kts", ".java"])
    strict: bool = Field(default=False, description="Fail the load on parse failures or error findings.")
    max_workers: int = Field(default=4, ge=1, le=64)
    sections: SectionLabels = Field(default_factory=SectionLabels)
    markers: RoleMarkers = Field(default_factory=RoleMarkers)
    code: CodeCheckConfig = Field(default_factory=CodeCheckConfig)

    @field_validator("root", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path:
        return Path(value).expanduser()

    @field_validator("subject_language", mode="before")
    @classmethod
    def lower_language(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("include", "exclude", "entry_points", "toc_files", "source_extensions", mode="before")
    @classmethod
    def strip_items(cls, value: Any) -> Any:
        return _strip_list(value)

    def canonical_language(self, tag: str | None) -> str:
        """Map a fence info tag onto its canonical language name."""
        if not tag:
            return "unknown"
        lowered = tag.strip().lower()
        return self.code.language_aliases.get(lowered, lowered)

    def with_root(self, root: Path) -> "CorpusConfig":
        """Return a copy of this config pointed at another corpus root."""
        return self.model_copy(update={"root": Path(root).expanduser()})


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected mapping at root of {path}, received {type(data).__name__}")
    return data


def load_corpus_config(path: Path, *, base_dir: Path | None = None) -> CorpusConfig:
    """Load a corpus config YAML; a relative ``root`` resolves against the file's directory."""
    path = Path(path).expanduser().resolve()
    data = read_yaml_file(path)
    anchor = (base_dir or path.parent).resolve()
    if data.get("root"):
        root = Path(data["root"]).expanduser()
        data["root"] = str(root if root.is_absolute() else (anchor / root).resolve())
    else:
        data["root"] = str(anchor)
    try:
        return CorpusConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid corpus config in {path}: {exc}") from exc


__all__ = [
    "CodeCheckConfig",
    "CorpusConfig",
    "RoleMarkers",
    "SectionLabels",
    "load_corpus_config",
    "read_yaml_file",
]
