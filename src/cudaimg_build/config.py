"""Build settings.

All values default to the constants the libcudaimg build has always used.
Environment variables override them:

- CUDAIMG_ROOT: directory holding the libcudaimg submodule and data folder
- CUDAIMG_VCVARS: toolchain initialization script
- CUDAIMG_MSBUILD_DIR: MSBuild binary directory
- CUDAIMG_ARCH / CUDAIMG_CONFIG: target architecture and configuration
- CUDAIMG_STRICT_ENV: fail when the toolchain script fails
- CUDAIMG_TIMEOUT: per-process timeout in seconds
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Final

from .utils.project import find_library_root

logger = logging.getLogger(__name__)

DEFAULT_ARCH: Final[str] = "x64"
DEFAULT_CONFIGURATION: Final[str] = "Release"
LIBRARY_NAME: Final[str] = "libcudaimg"
DATA_DIR_NAME: Final[str] = "data"

DEFAULT_VCVARS_PATH: Final[str] = (
    r"C:\Program Files\Microsoft Visual Studio\2022\Community"
    r"\VC\Auxiliary\Build\vcvarsall.bat"
)
DEFAULT_MSBUILD_DIR: Final[str] = (
    r"C:\Program Files\Microsoft Visual Studio\2022\Community\MSBuild\Current\Bin"
)

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class BuildSettings:
    """Fixed parameters of the clean and build pipelines."""

    root: Path
    arch: str = DEFAULT_ARCH
    configuration: str = DEFAULT_CONFIGURATION
    library_name: str = LIBRARY_NAME
    vcvars_path: str = DEFAULT_VCVARS_PATH
    msbuild_dir: str = DEFAULT_MSBUILD_DIR
    strict_environment: bool = False
    timeout: float | None = None

    @property
    def solution_dir(self) -> Path:
        """Directory the build tool runs in."""
        return self.root / self.library_name

    @property
    def solution_name(self) -> str:
        return f"{self.library_name}.sln"

    @property
    def solution_file(self) -> Path:
        return self.solution_dir / self.solution_name

    @property
    def artifact_name(self) -> str:
        return f"{self.library_name}.dll"

    @property
    def artifact_path(self) -> Path:
        """Build output, e.g. libcudaimg/x64/Release/libcudaimg.dll."""
        return self.solution_dir / self.arch / self.configuration / self.artifact_name

    @property
    def data_dir(self) -> Path:
        return self.root / DATA_DIR_NAME

    @property
    def published_artifact(self) -> Path:
        return self.data_dir / self.artifact_name

    def with_root(self, root: str | Path) -> BuildSettings:
        return replace(self, root=Path(root).resolve())

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        root: str | Path | None = None,
    ) -> BuildSettings:
        """Create settings from defaults and CUDAIMG_* environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)
            root: Explicit root directory, takes precedence over CUDAIMG_ROOT

        Returns:
            Build settings
        """
        env = os.environ if environ is None else environ

        if root is None:
            root = env.get("CUDAIMG_ROOT") or find_library_root(
                marker=f"{LIBRARY_NAME}/{LIBRARY_NAME}.sln"
            )

        timeout: float | None = None
        raw_timeout = env.get("CUDAIMG_TIMEOUT")
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                logger.warning(f"Ignoring invalid CUDAIMG_TIMEOUT={raw_timeout!r}")
            else:
                if timeout <= 0:
                    timeout = None

        settings = cls(
            root=Path(root).resolve(),
            arch=env.get("CUDAIMG_ARCH") or DEFAULT_ARCH,
            configuration=env.get("CUDAIMG_CONFIG") or DEFAULT_CONFIGURATION,
            vcvars_path=env.get("CUDAIMG_VCVARS") or DEFAULT_VCVARS_PATH,
            msbuild_dir=env.get("CUDAIMG_MSBUILD_DIR") or DEFAULT_MSBUILD_DIR,
            strict_environment=env.get("CUDAIMG_STRICT_ENV", "").strip().lower() in _TRUE_VALUES,
            timeout=timeout,
        )
        logger.debug(f"Build settings: {settings}")
        return settings
