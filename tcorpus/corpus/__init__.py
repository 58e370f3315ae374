"""Corpus lifecycle, learning paths, and lesson rendering."""

from .loader import Corpus, CorpusSnapshot, CorpusState, LoadResult, discover_documents, load_corpus
from .navigation import LessonView, learning_path, render

__all__ = [
    "Corpus",
    "CorpusSnapshot",
    "CorpusState",
    "LessonView",
    "LoadResult",
    "discover_documents",
    "learning_path",
    "load_corpus",
    "render",
]
