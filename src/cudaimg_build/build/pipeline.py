"""Clean/build pipeline - sequential state machine over external tools.

State machine:
START → ENVIRONMENT_READY → PROJECT_LOCATED → ACTION_INVOKED → [PUBLISHED] → DONE
  └──────────────── any step failing ──────────────────────→ FAILED(code)

Every step either succeeds or stops the pipeline with the status code the
caller must exit with. There is no retry and no partial recovery.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Final

from ..config import BuildSettings
from .environment import find_executable, setup_environment
from .locator import locate_solution
from .policy import MSBUILD_EXECUTABLE, BuildCommand, BuildPolicy
from .publisher import COPY_FAILED_EXIT_CODE, publish_artifact, stage_data
from .runner import OutputCallback, run_command
from .state import (
    InvokeError,
    PipelineError,
    PipelineResult,
    PipelineState,
    PolicyViolationError,
    PublishError,
)

logger = logging.getLogger(__name__)

SUCCESS_MESSAGES: Final[dict[BuildCommand, str]] = {
    BuildCommand.CLEAN: "Clean completed successfully!",
    BuildCommand.BUILD: "Build and copy completed successfully!",
}

FAILURE_MESSAGES: Final[dict[BuildCommand, str]] = {
    BuildCommand.CLEAN: "Clean failed!",
    BuildCommand.BUILD: "Build failed!",
}

# Status reported when the build tool is killed after a timeout
TIMEOUT_EXIT_CODE: Final[int] = 1


class BuildPipeline:
    """Runs the clean and build pipelines for one library root.

    Only one pipeline runs at a time; concurrent calls are serialized.
    """

    def __init__(
        self,
        settings: BuildSettings,
        policy: BuildPolicy | None = None,
        on_output: OutputCallback | None = None,
    ):
        """Initialize pipeline.

        Args:
            settings: Paths, toolchain locations and build parameters
            policy: Validation policy (created for settings.root if not provided)
            on_output: Receives build tool output lines as they arrive
        """
        self._settings = settings
        self._policy = policy or BuildPolicy(root=str(settings.root))
        self._on_output = on_output
        self._state = PipelineState.START
        self._lock = asyncio.Lock()
        self._running = False
        self._last_result: PipelineResult | None = None
        self._state_listeners: list[Callable[[PipelineState], None]] = []

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def settings(self) -> BuildSettings:
        return self._settings

    @property
    def last_result(self) -> PipelineResult | None:
        """Result of the last completed run."""
        return self._last_result

    @property
    def is_running(self) -> bool:
        return self._running

    def on_state_change(self, listener: Callable[[PipelineState], None]) -> None:
        """Register state change listener."""
        self._state_listeners.append(listener)

    def _set_state(self, new_state: PipelineState) -> None:
        """Update state and notify listeners."""
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.info(f"Pipeline state: {old_state.value} -> {new_state.value}")
            for listener in self._state_listeners:
                try:
                    listener(new_state)
                except Exception:
                    logger.exception("State listener error")

    async def clean(self) -> PipelineResult:
        """Run the build tool's Clean target on the solution."""
        return await self.run(BuildCommand.CLEAN)

    async def build(self) -> PipelineResult:
        """Build the solution and publish the library into the data folder."""
        return await self.run(BuildCommand.BUILD)

    async def run(self, command: BuildCommand) -> PipelineResult:
        """Execute one pipeline.

        Args:
            command: Pipeline to run

        Returns:
            Pipeline result; failures carry the exit code to report

        Raises:
            PolicyViolationError: If settings violate the build policy
            PipelineError: If an unexpected error occurs
        """
        async with self._lock:
            self._running = True
            self._set_state(PipelineState.START)
            start_time = time.perf_counter()
            settings = self._settings
            stdout = ""
            stderr = ""

            def finish(
                success: bool,
                exit_code: int,
                message: str,
                artifact: str | None = None,
            ) -> PipelineResult:
                result = PipelineResult(
                    success=success,
                    state=PipelineState.DONE if success else PipelineState.FAILED,
                    action=command.value,
                    solution=str(settings.solution_file),
                    configuration=settings.configuration,
                    exit_code=exit_code,
                    message=message,
                    stdout=stdout,
                    stderr=stderr,
                    duration_ms=(time.perf_counter() - start_time) * 1000,
                    artifact=artifact,
                )
                self._last_result = result
                self._set_state(result.state)
                return result

            try:
                try:
                    self._policy.validate_configuration(settings.configuration)
                    self._policy.validate_arch(settings.arch)
                except ValueError as e:
                    raise PolicyViolationError(str(e)) from e

                env = await setup_environment(
                    settings.vcvars_path,
                    settings.arch,
                    settings.msbuild_dir,
                    strict=settings.strict_environment,
                    timeout=settings.timeout,
                )
                self._set_state(PipelineState.ENVIRONMENT_READY)

                try:
                    solution = locate_solution(
                        settings.solution_dir, settings.solution_name, self._policy
                    )
                except ValueError as e:
                    raise PolicyViolationError(str(e)) from e
                self._set_state(PipelineState.PROJECT_LOCATED)

                msbuild = find_executable(MSBUILD_EXECUTABLE, env) or MSBUILD_EXECUTABLE
                cmd = self._policy.get_msbuild_command(
                    command, solution, settings.configuration, msbuild
                )
                logger.info(f"Running: {' '.join(cmd)}")
                invoked = await run_command(
                    cmd,
                    cwd=solution.parent,
                    env=env,
                    timeout=settings.timeout,
                    on_output=self._on_output,
                )
                stdout, stderr = invoked.stdout, invoked.stderr
                if not invoked.success:
                    raise InvokeError(
                        FAILURE_MESSAGES[command], invoked.exit_code, stdout, stderr
                    )
                self._set_state(PipelineState.ACTION_INVOKED)

                artifact = None
                if command == BuildCommand.BUILD:
                    try:
                        self._policy.validate_output_path(settings.data_dir)
                    except ValueError as e:
                        logger.error(f"Refusing to publish into {settings.data_dir}: {e}")
                        raise PublishError("Copy failed!", COPY_FAILED_EXIT_CODE) from e
                    published = await asyncio.to_thread(
                        publish_artifact, settings.artifact_path, settings.data_dir
                    )
                    artifact = str(published)
                    self._set_state(PipelineState.PUBLISHED)

                return finish(True, 0, SUCCESS_MESSAGES[command], artifact)

            except PolicyViolationError:
                self._set_state(PipelineState.FAILED)
                raise

            except PipelineError as e:
                logger.debug(f"{command.value} stopped in state {self._state.value}: {e}")
                return finish(False, e.exit_code, str(e))

            except asyncio.TimeoutError:
                stderr = f"{command.value} timed out after {settings.timeout}s"
                return finish(False, TIMEOUT_EXIT_CODE, FAILURE_MESSAGES[command])

            except Exception as e:
                self._set_state(PipelineState.FAILED)
                raise PipelineError(f"{FAILURE_MESSAGES[command]} {e}") from e

            finally:
                self._running = False

    async def stage(self, output_dir: str | Path) -> Path:
        """Copy the data folder into output_dir.

        Waits for a running pipeline so a half-published library is never staged.

        Raises:
            PublishError: If the data folder is missing or copying fails
        """
        async with self._lock:
            return await asyncio.to_thread(stage_data, self._settings.data_dir, output_dir)
