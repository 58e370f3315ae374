"""Lesson id derivation and cross-reference normalization."""

from __future__ import annotations

import posixpath
import re
from pathlib import Path, PurePosixPath
from typing import Collection, Optional
from urllib.parse import unquote

LESSON_SUFFIXES = (".md", ".markdown")
# Suffixes dropped when normalizing, so links to rendered pages still match.
DOCUMENT_SUFFIXES = LESSON_SUFFIXES + (".mdx", ".html", ".htm")

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_WHITESPACE_RE = re.compile(r"\s+")


def _split_target(target: str) -> str:
    """Drop ``#anchor`` and ``?query`` from a link target."""
    for marker in ("#", "?"):
        target = target.split(marker, 1)[0]
    return target.strip()


def _strip_document_suffix(path: str) -> str:
    lowered = path.lower()
    for suffix in DOCUMENT_SUFFIXES:
        if lowered.endswith(suffix) and len(path) > len(suffix):
            return path[: -len(suffix)]
    return path


def normalize_key(value: str) -> str:
    """Case-insensitive, extension-agnostic key for a relative document path."""
    text = unquote(value).replace("\\", "/").strip()
    text = text.rstrip("/")
    if not text:
        return "."
    text = posixpath.normpath(text)
    text = _strip_document_suffix(text)
    return _WHITESPACE_RE.sub("-", text.lower())


def lesson_id_from_path(path: str | Path) -> str:
    """Stable lesson id for a path relative to the corpus root."""
    posix = PurePosixPath(str(path).replace("\\", "/"))
    return normalize_key(posix.as_posix())


def is_lesson_link(target: str) -> bool:
    """True when a markdown link target looks like a reference to another lesson."""
    target = (target or "").strip()
    if not target or target.startswith("#") or target.startswith("//"):
        return False
    if _SCHEME_RE.match(target):
        return False
    path_part = _split_target(target)
    if not path_part:
        return False
    if path_part.endswith("/"):
        return True
    suffix = PurePosixPath(path_part).suffix.lower()
    return suffix == "" or suffix in LESSON_SUFFIXES


def has_source_suffix(target: str, extensions: Collection[str]) -> bool:
    """True when a link target points at a source file with one of ``extensions``."""
    target = (target or "").strip()
    if not target or (_SCHEME_RE.match(target) and not target.lower().startswith("file:")):
        return False
    suffix = PurePosixPath(_split_target(target)).suffix.lower()
    return bool(suffix) and suffix in {ext.lower() for ext in extensions}


def resolve_reference(source_id: str, target: str, known_ids: Collection[str]) -> Optional[str]:
    """Resolve a link written in lesson ``source_id`` to a known lesson id.

    Relative targets are joined with the source lesson's directory; a leading
    ``/`` anchors the target at the corpus root. Directory targets also try
    ``<dir>/readme`` and ``<dir>/index``. Returns None when nothing matches or
    the target escapes the corpus root.
    """
    path_part = _split_target(target or "")
    if not path_part:
        return None
    if path_part.startswith("/"):
        joined = path_part.lstrip("/")
    else:
        joined = posixpath.join(posixpath.dirname(source_id), path_part)
    key = normalize_key(joined)
    if key == ".." or key.startswith("../"):
        return None
    if key == ".":
        candidates = ["readme", "index"]
    else:
        candidates = [key, f"{key}/readme", f"{key}/index"]
    for candidate in candidates:
        if candidate in known_ids:
            return candidate
    return None


__all__ = [
    "DOCUMENT_SUFFIXES",
    "LESSON_SUFFIXES",
    "has_source_suffix",
    "is_lesson_link",
    "lesson_id_from_path",
    "normalize_key",
    "resolve_reference",
]
