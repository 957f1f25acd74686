"""Build orchestration for the libcudaimg native library.

Provides the clean and build pipelines with:
- Visual C++ toolchain environment capture (vcvarsall.bat)
- Solution precondition check
- MSBuild invocation with exit code propagation
- Publishing of the built DLL into the data folder
"""

from .environment import load_toolchain_environment, prepend_to_path, setup_environment
from .locator import locate_solution
from .pipeline import BuildPipeline
from .policy import BuildCommand, BuildPolicy
from .publisher import publish_artifact, stage_data
from .runner import CommandResult, run_command
from .state import (
    EnvironmentSetupError,
    InvokeError,
    PipelineError,
    PipelineResult,
    PipelineState,
    PolicyViolationError,
    PublishError,
    SolutionNotFoundError,
)

__all__ = [
    "BuildPolicy",
    "BuildCommand",
    "BuildPipeline",
    "PipelineState",
    "PipelineResult",
    "PipelineError",
    "PolicyViolationError",
    "SolutionNotFoundError",
    "EnvironmentSetupError",
    "InvokeError",
    "PublishError",
    "CommandResult",
    "run_command",
    "load_toolchain_environment",
    "setup_environment",
    "prepend_to_path",
    "locate_solution",
    "publish_artifact",
    "stage_data",
]
