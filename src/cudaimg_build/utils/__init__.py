"""Utility modules for cudaimg-build."""

from .project import find_library_root

__all__ = [
    "find_library_root",
]
