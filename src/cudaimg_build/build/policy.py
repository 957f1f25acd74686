"""Build policy - path and argument validation for MSBuild invocations.

Security measures:
- Configuration and platform whitelisting
- Path canonicalization with symlink/junction rejection
- UNC and device path denial
- Solution path must stay inside the library root
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final


class BuildCommand(str, Enum):
    """Supported build tool actions."""

    CLEAN = "clean"
    BUILD = "build"


# Allowed configuration values
ALLOWED_CONFIGURATIONS: Final[frozenset[str]] = frozenset({"Debug", "Release"})

# Architectures accepted by vcvarsall.bat and used as output folder names
ALLOWED_ARCHITECTURES: Final[frozenset[str]] = frozenset({"x64", "x86", "ARM64", "Win32"})

# MSBuild target per action; BUILD uses the solution's default target
MSBUILD_TARGETS: Final[dict[BuildCommand, str | None]] = {
    BuildCommand.CLEAN: "Clean",
    BuildCommand.BUILD: None,
}

MSBUILD_EXECUTABLE: Final[str] = "MSBuild.exe"


@dataclass
class BuildPolicy:
    """Validation policy for pipeline paths and build tool arguments.

    Validates:
    - Paths are within the library root
    - No symlinks, junctions, or reparse points
    - No UNC or device paths
    - Configuration and architecture are whitelisted
    """

    root: str
    allow_unc_paths: bool = False
    allow_device_paths: bool = False

    def __post_init__(self) -> None:
        """Validate and canonicalize the root."""
        self.root = self._validate_path(str(self.root), allow_symlinks=True, context="root")

    def _validate_path(
        self,
        path: str,
        allow_symlinks: bool = False,
        context: str = "path",
    ) -> str:
        """Validate and canonicalize a path.

        Args:
            path: Path to validate
            allow_symlinks: Whether to allow symlinks (default False)
            context: Context for error messages

        Returns:
            Canonicalized absolute path

        Raises:
            ValueError: If path is invalid or violates security policy
        """
        if not path:
            raise ValueError(f"Empty {context}")

        # Deny device paths (\\?\, \\.\) - check before UNC since they start with \\
        if path.startswith(("\\\\.\\", "\\\\?\\")):
            if not self.allow_device_paths:
                raise ValueError(f"Device paths not allowed in {context}: {path}")
        elif path.startswith("\\\\") and not self.allow_unc_paths:
            raise ValueError(f"UNC paths not allowed in {context}: {path}")

        abs_path = os.path.abspath(path)

        if ".." in Path(path).parts:
            raise ValueError(f"Path traversal detected in {context}: {path}")

        if os.path.lexists(abs_path) and not allow_symlinks:
            try:
                attrs = os.lstat(abs_path)
            except OSError as e:
                raise ValueError(f"Cannot access {context}: {path} ({e})") from e
            if stat.S_ISLNK(attrs.st_mode):
                raise ValueError(f"Symlink not allowed in {context}: {path}")
            # On Windows, junctions show up only as a reparse point attribute
            FILE_ATTRIBUTE_REPARSE_POINT = 0x400
            if getattr(attrs, "st_file_attributes", 0) & FILE_ATTRIBUTE_REPARSE_POINT:
                raise ValueError(
                    f"Reparse point (junction/symlink) not allowed in {context}: {path}"
                )

        return abs_path

    def _ensure_inside_root(self, validated: str, original: str, context: str) -> None:
        try:
            common = os.path.commonpath([validated, self.root])
        except ValueError as e:
            # Different drives on Windows
            raise ValueError(f"{context} outside root: {original}") from e
        if common != self.root:
            raise ValueError(f"{context} outside root: {original}")

    def validate_solution_path(self, solution_path: str | Path) -> str:
        """Validate solution path is within the library root.

        Args:
            solution_path: Path to the solution file

        Returns:
            Validated absolute path

        Raises:
            ValueError: If path is invalid or outside the root
        """
        validated = self._validate_path(
            str(solution_path), allow_symlinks=False, context="solution path"
        )
        self._ensure_inside_root(validated, str(solution_path), "Solution path")
        return validated

    def validate_output_path(self, output_path: str | Path) -> str:
        """Validate a publish destination is within the library root."""
        validated = self._validate_path(
            str(output_path), allow_symlinks=False, context="output path"
        )
        self._ensure_inside_root(validated, str(output_path), "Output path")
        return validated

    def validate_configuration(self, configuration: str) -> str:
        if configuration not in ALLOWED_CONFIGURATIONS:
            raise ValueError(f"Invalid configuration: {configuration}")
        return configuration

    def validate_arch(self, arch: str) -> str:
        if arch not in ALLOWED_ARCHITECTURES:
            raise ValueError(f"Invalid architecture: {arch}")
        return arch

    def get_msbuild_command(
        self,
        command: BuildCommand,
        solution_path: str | Path,
        configuration: str = "Release",
        msbuild: str = MSBUILD_EXECUTABLE,
    ) -> list[str]:
        """Build validated MSBuild command line.

        The solution is passed by file name; the caller runs the tool in the
        solution directory.

        Args:
            command: Build tool action
            solution_path: Path to the solution file
            configuration: Build configuration (Debug/Release)
            msbuild: MSBuild executable (name or resolved path)

        Returns:
            Complete command line as list
        """
        validated_solution = self.validate_solution_path(solution_path)
        self.validate_configuration(configuration)

        if command not in MSBUILD_TARGETS:
            raise ValueError(f"Unknown command: {command}")

        cmd = [msbuild, os.path.basename(validated_solution)]
        target = MSBUILD_TARGETS[command]
        if target is not None:
            cmd.append(f"/t:{target}")
        cmd.append(f"/p:Configuration={configuration}")
        return cmd
