"""
Core package for the tutorial corpus manager.

Loads a directory of markdown lessons, models the prerequisite and
"what's next" link graph, validates it, and serves ordered learning paths.
"""

from importlib import metadata


def get_version() -> str:
    """Return the installed project version."""
    try:
        return metadata.version("tutorial-corpus")
    except metadata.PackageNotFoundError:
        return "0.0.0"


__all__ = ["get_version"]
