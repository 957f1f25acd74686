"""Artifact publishing.

Copies the built library into the data folder the image application loads
it from, and stages that folder next to a consumer's executable.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .state import PublishError

logger = logging.getLogger(__name__)

# Status of a failed `copy`
COPY_FAILED_EXIT_CODE: int = 1


def publish_artifact(artifact: str | Path, destination_dir: str | Path) -> Path:
    """Copy artifact into destination_dir, overwriting an existing copy.

    The destination directory is created if absent.

    Args:
        artifact: Built file to publish
        destination_dir: Directory to copy into

    Returns:
        Path of the published file

    Raises:
        PublishError: If the directory cannot be created or the copy fails
    """
    source = Path(artifact)
    destination = Path(destination_dir)
    try:
        destination.mkdir(parents=True, exist_ok=True)
        target = Path(shutil.copy2(source, destination / source.name))
    except OSError as e:
        logger.error(f"Copy {source} -> {destination} failed: {e}")
        raise PublishError("Copy failed!", COPY_FAILED_EXIT_CODE) from e

    logger.info(f"Published {source.name} to {destination}")
    return target


def stage_data(data_dir: str | Path, output_dir: str | Path) -> Path:
    """Copy the data folder into output_dir, merging with and overwriting what is there.

    Args:
        data_dir: The data folder (holding the published library)
        output_dir: Directory the consumer's executable runs from

    Returns:
        Path of the staged data folder

    Raises:
        PublishError: If data_dir is missing or copying fails
    """
    source = Path(data_dir)
    target = Path(output_dir) / source.name
    if not source.is_dir():
        raise PublishError(f"Data folder not found: {source}", COPY_FAILED_EXIT_CODE)
    try:
        shutil.copytree(source, target, dirs_exist_ok=True)
    except OSError as e:
        logger.error(f"Staging {source} -> {target} failed: {e}")
        raise PublishError("Copy failed!", COPY_FAILED_EXIT_CODE) from e

    logger.info(f"Staged {source} to {target}")
    return target
