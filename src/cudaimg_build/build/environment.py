"""Toolchain environment setup.

Runs the Visual C++ environment script (vcvarsall.bat) in a throwaway
cmd.exe, captures the environment it leaves behind and prepends the MSBuild
binary directory to PATH. The resulting mapping is handed to the build tool;
this process's own environment is never modified.
"""

from __future__ import annotations

import asyncio
import locale
import logging
import os
import shutil
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field

from .state import EnvironmentSetupError

logger = logging.getLogger(__name__)

# Exit status stashed by the wrapper script, removed from the captured environment
STATUS_VARIABLE = "CUDAIMG_VCVARS_STATUS"

_WRAPPER_TEMPLATE = (
    "@echo off\r\n"
    'call "{script}" {arch} >nul 2>&1\r\n'
    'set "{status}=%ERRORLEVEL%"\r\n'
    "set\r\n"
    "exit /b %{status}%\r\n"
)


@dataclass
class ToolchainEnvironment:
    """Environment captured from the toolchain initialization script."""

    variables: dict[str, str] = field(default_factory=dict)
    exit_code: int = 0
    script_found: bool = True

    @property
    def ok(self) -> bool:
        return self.script_found and self.exit_code == 0


def parse_set_output(output: str) -> dict[str, str]:
    """Parse the output of cmd.exe `set` into a variable mapping.

    Lines without '=' and cmd's hidden per-drive variables (=C:) are skipped.
    """
    variables: dict[str, str] = {}
    for line in output.splitlines():
        line = line.rstrip("\r")
        if not line or line.startswith("="):
            continue
        name, sep, value = line.partition("=")
        if not sep:
            continue
        variables[name] = value
    return variables


def _path_key(env: Mapping[str, str]) -> str:
    """Return the spelling of PATH used by env (Windows keys are case-insensitive)."""
    for key in env:
        if key.upper() == "PATH":
            return key
    return "PATH"


def find_executable(name: str, env: Mapping[str, str]) -> str | None:
    """Resolve name against env's PATH.

    Child processes are looked up on the parent's PATH, so tools that only
    exist on the toolchain PATH must be resolved up front.
    """
    return shutil.which(name, path=env.get(_path_key(env)))


def prepend_to_path(env: Mapping[str, str], directory: str) -> dict[str, str]:
    """Return a copy of env with directory at the front of PATH."""
    result = dict(env)
    key = _path_key(result)
    current = result.get(key, "")
    result[key] = f"{directory}{os.pathsep}{current}" if current else directory
    return result


async def load_toolchain_environment(
    vcvars_path: str,
    arch: str,
    base_env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> ToolchainEnvironment:
    """Run the toolchain script and capture the environment it produces.

    Args:
        vcvars_path: Path to vcvarsall.bat
        arch: Architecture argument passed to the script (e.g. x64)
        base_env: Environment the script starts from (defaults to os.environ)
        timeout: Timeout in seconds, None waits indefinitely

    Returns:
        Captured environment, also when the script reports a failure. The
        variables are a copy of base_env when nothing could be captured
    """
    base = dict(os.environ if base_env is None else base_env)

    if not os.path.isfile(vcvars_path):
        logger.warning(f"Toolchain script not found: {vcvars_path}")
        return ToolchainEnvironment(variables=base, exit_code=1, script_found=False)

    fd, wrapper_path = tempfile.mkstemp(prefix="cudaimg_env_", suffix=".bat")
    try:
        with os.fdopen(fd, "w", encoding=locale.getpreferredencoding(False), newline="") as f:
            f.write(
                _WRAPPER_TEMPLATE.format(script=vcvars_path, arch=arch, status=STATUS_VARIABLE)
            )

        # /u makes internal commands (set) write UTF-16LE to the pipe
        process = await asyncio.create_subprocess_exec(
            "cmd.exe",
            "/d",
            "/u",
            "/c",
            wrapper_path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            env=base,
        )
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(f"Toolchain script timed out after {timeout}s")
            return ToolchainEnvironment(variables=base, exit_code=1)
    except FileNotFoundError:
        logger.warning("cmd.exe not available, toolchain environment not loaded")
        return ToolchainEnvironment(variables=base, exit_code=1)
    finally:
        try:
            os.unlink(wrapper_path)
        except OSError:
            logger.debug(f"Could not remove {wrapper_path}")

    exit_code = process.returncode or 0
    variables = parse_set_output(stdout.decode("utf-16-le", errors="replace"))
    variables.pop(STATUS_VARIABLE, None)

    if not variables:
        logger.warning(
            f"Toolchain script {vcvars_path} produced no environment (status {exit_code})"
        )
        return ToolchainEnvironment(variables=base, exit_code=exit_code or 1)

    if exit_code != 0:
        # Keep what the script set; later steps fail on their own if it is unusable
        logger.warning(f"Toolchain script {vcvars_path} failed with status {exit_code}")
        return ToolchainEnvironment(variables=variables, exit_code=exit_code)

    logger.info(f"Loaded toolchain environment ({arch}): {len(variables)} variables")
    return ToolchainEnvironment(variables=variables, exit_code=0)


async def setup_environment(
    vcvars_path: str,
    arch: str,
    msbuild_dir: str,
    strict: bool = False,
    base_env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> dict[str, str]:
    """Prepare the environment the build tool runs in.

    A failing toolchain script is only logged unless strict is set; the build
    tool then fails on its own if the toolchain is really unusable.

    Raises:
        EnvironmentSetupError: In strict mode, when the script is missing or fails
    """
    toolchain = await load_toolchain_environment(vcvars_path, arch, base_env, timeout)
    if not toolchain.ok and strict:
        raise EnvironmentSetupError("Environment setup failed!", toolchain.exit_code)
    return prepend_to_path(toolchain.variables, msbuild_dir)
