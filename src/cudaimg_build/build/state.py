"""Pipeline state, errors and result types.

State machine for clean/build pipelines:
START → ENVIRONMENT_READY → PROJECT_LOCATED → ACTION_INVOKED → [PUBLISHED] → DONE
  any step ────────────────────────────────────────────────────────────────→ FAILED
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PipelineState(str, Enum):
    """Pipeline state machine states."""

    START = "start"
    ENVIRONMENT_READY = "environment_ready"
    PROJECT_LOCATED = "project_located"
    ACTION_INVOKED = "action_invoked"
    PUBLISHED = "published"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.FAILED)


class BuildErrorSeverity(str, Enum):
    """MSBuild error severity levels."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class BuildDiagnostic:
    """Parsed MSBuild/cl/nvcc diagnostic (error/warning)."""

    severity: BuildErrorSeverity
    code: str
    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    project: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
        }
        if self.file:
            result["file"] = self.file
        if self.line is not None:
            result["line"] = self.line
        if self.column is not None:
            result["column"] = self.column
        if self.project:
            result["project"] = self.project
        return result


# Format: path(line[,col]): [fatal ]severity code: message [project]
# cl.exe and nvcc report only the line, MSBuild tasks report line and column.
# nvcc omits the code.
MSBUILD_DIAGNOSTIC_PATTERN = re.compile(
    r"^(?P<file>[^(]+)\((?P<line>\d+)(?:,(?P<col>\d+))?\)\s*:\s*"
    r"(?:fatal\s+)?(?P<severity>error|warning|info)(?:\s+(?P<code>\w+))?\s*:\s*"
    r"(?P<message>.+?)(?:\s+\[(?P<project>[^\]]+)\])?$",
    re.IGNORECASE,
)

# Location-less format: [tool : ]severity code: message [project]
MSBUILD_SIMPLE_PATTERN = re.compile(
    r"^(?:[\w.\- ]+\s:\s)?(?:fatal\s+)?(?P<severity>error|warning|info)\s+(?P<code>\w+)\s*:\s*"
    r"(?P<message>.+?)(?:\s+\[(?P<project>[^\]]+)\])?$",
    re.IGNORECASE,
)


def parse_msbuild_output(output: str) -> list[BuildDiagnostic]:
    """Parse MSBuild output into structured diagnostics.

    MSBuild repeats every diagnostic in its closing summary, so identical
    entries are reported once.

    Args:
        output: MSBuild console output

    Returns:
        List of parsed diagnostics
    """
    diagnostics: list[BuildDiagnostic] = []
    seen: set[tuple[Any, ...]] = set()

    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue

        match = MSBUILD_DIAGNOSTIC_PATTERN.match(line)
        if match:
            col = match.group("col")
            diagnostic = BuildDiagnostic(
                severity=BuildErrorSeverity(match.group("severity").lower()),
                code=match.group("code") or "",
                message=match.group("message"),
                file=match.group("file").strip(),
                line=int(match.group("line")),
                column=int(col) if col is not None else None,
                project=match.group("project"),
            )
        else:
            match = MSBUILD_SIMPLE_PATTERN.match(line)
            if not match:
                continue
            diagnostic = BuildDiagnostic(
                severity=BuildErrorSeverity(match.group("severity").lower()),
                code=match.group("code"),
                message=match.group("message"),
                project=match.group("project"),
            )

        key = (
            diagnostic.severity,
            diagnostic.code,
            diagnostic.message,
            diagnostic.file,
            diagnostic.line,
            diagnostic.column,
        )
        if key in seen:
            continue
        seen.add(key)
        diagnostics.append(diagnostic)

    return diagnostics


class PipelineError(Exception):
    """Pipeline step failure carrying the process exit code to report."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"error": str(self), "exitCode": self.exit_code}


class PolicyViolationError(PipelineError):
    """Raised when settings or paths are rejected by the build policy."""


class SolutionNotFoundError(PipelineError):
    """Raised when the solution descriptor is missing."""


class EnvironmentSetupError(PipelineError):
    """Raised when the toolchain initialization script fails (strict mode)."""


class InvokeError(PipelineError):
    """Raised when the build tool returns a non-zero status."""

    def __init__(self, message: str, exit_code: int, stdout: str = "", stderr: str = ""):
        super().__init__(message, exit_code)
        self.stdout = stdout
        self.stderr = stderr


class PublishError(PipelineError):
    """Raised when the artifact cannot be copied."""


@dataclass
class PipelineResult:
    """Result of a clean or build pipeline run."""

    success: bool
    state: PipelineState
    action: str
    solution: str
    configuration: str
    exit_code: int = 0
    message: str = ""
    stdout: str = ""
    stderr: str = ""
    diagnostics: list[BuildDiagnostic] = field(default_factory=list)
    duration_ms: float = 0.0
    artifact: str | None = None

    def __post_init__(self) -> None:
        """Parse diagnostics from output if not provided."""
        if not self.diagnostics and (self.stdout or self.stderr):
            self.diagnostics = parse_msbuild_output(self.stdout + "\n" + self.stderr)

    @property
    def errors(self) -> list[BuildDiagnostic]:
        """Get only error diagnostics."""
        return [d for d in self.diagnostics if d.severity == BuildErrorSeverity.ERROR]

    @property
    def warnings(self) -> list[BuildDiagnostic]:
        """Get only warning diagnostics."""
        return [d for d in self.diagnostics if d.severity == BuildErrorSeverity.WARNING]

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "success": self.success,
            "state": self.state.value,
            "action": self.action,
            "solution": self.solution,
            "configuration": self.configuration,
            "exitCode": self.exit_code,
            "message": self.message,
            "errorCount": self.error_count,
            "warningCount": self.warning_count,
            "durationMs": round(self.duration_ms, 2),
        }
        if self.artifact:
            result["artifact"] = self.artifact
        if self.diagnostics:
            result["diagnostics"] = [d.to_dict() for d in self.diagnostics]
        return result

    def to_summary(self) -> str:
        """Generate human-readable summary."""
        status = "[OK]" if self.success else f"[FAILED {self.exit_code}]"

        parts = [
            f"{status} {self.message}",
            f"  Solution: {self.solution}",
            f"  Configuration: {self.configuration}",
            f"  Duration: {self.duration_ms:.0f}ms",
        ]
        if self.artifact:
            parts.append(f"  Artifact: {self.artifact}")
        if self.error_count > 0:
            parts.append(f"  Errors: {self.error_count}")
        if self.warning_count > 0:
            parts.append(f"  Warnings: {self.warning_count}")

        for err in self.errors[:5]:
            location = ""
            if err.file:
                location = f"{err.file}"
                if err.line:
                    location += f"({err.line})" if err.column is None else f"({err.line},{err.column})"
                location += ": "
            code = f"{err.code}: " if err.code else ""
            parts.append(f"    {location}{code}{err.message}")

        if self.error_count > 5:
            parts.append(f"    ... and {self.error_count - 5} more errors")

        return "\n".join(parts)
