"""Library root detection.

The pipelines work relative to the directory that holds the libcudaimg
submodule and the data folder. Lookup order:
1. Directory containing the solution marker (libcudaimg/libcudaimg.sln)
2. Git root (.git directory or worktree file)
3. The start directory itself
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


def find_library_root(
    start_dir: str | Path | None = None,
    marker: str = "libcudaimg/libcudaimg.sln",
    boundary: str | Path | None = None,
) -> Path:
    """Find the library root by walking up from a directory.

    Falls back to start_dir if no marker is found, so a missing submodule
    surfaces as a missing solution file rather than a lookup error.

    Args:
        start_dir: Directory to start search from. Defaults to CWD.
        marker: Relative path whose presence identifies the root
        boundary: If provided, search stops at this directory

    Returns:
        Path to library root
    """
    current = Path(start_dir or Path.cwd()).resolve()
    stop = Path(boundary).resolve() if boundary is not None else None

    def ancestors() -> Iterator[Path]:
        """Yield current directory and ancestors up to boundary."""
        yield current
        if stop is not None and current == stop:
            return
        for parent in current.parents:
            yield parent
            if stop is not None and parent == stop:
                return

    for directory in ancestors():
        if (directory / marker).is_file():
            logger.debug(f"Found {marker} under {directory}")
            return directory

    for directory in ancestors():
        if (directory / ".git").exists():  # .git can be file (worktree/submodule) or dir
            return directory

    return current
