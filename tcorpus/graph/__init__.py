"""Lesson link graph."""

from .builder import UNRESOLVED, Edge, EdgeKind, LinkGraph, build

__all__ = ["UNRESOLVED", "Edge", "EdgeKind", "LinkGraph", "build"]
