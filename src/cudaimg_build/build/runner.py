"""Blocking external process invocation with streamed, bounded output capture."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Output buffer limits
MAX_OUTPUT_BYTES: int = 5_000_000  # 5MB total
MAX_OUTPUT_LINE: int = 10_000  # 10KB per line

# Status cmd.exe reports when a command cannot be found
COMMAND_NOT_FOUND_EXIT_CODE: int = 9009

OutputCallback = Callable[[str], None]


@dataclass
class CommandResult:
    """Exit status and captured output of one external process."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0


async def _readline(stream: asyncio.StreamReader) -> bytes:
    """Read one line; a line over the reader limit keeps only its first chunk.

    Returns b"" at end of stream. An unterminated last line is returned as is.
    """
    head = b""
    overrun = False
    while True:
        try:
            line = await stream.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            line = e.partial
        except asyncio.LimitOverrunError as e:
            # The buffer is left untouched; drop the oversized part of the line
            chunk = await stream.readexactly(e.consumed)
            if not overrun:
                head = chunk
                overrun = True
            continue
        if not overrun:
            return line
        return head + b"\n"

async def _read_stream(
    stream: asyncio.StreamReader | None,
    lines: list[str],
    byte_counter: list[int],
    on_line: OutputCallback | None,
) -> None:
    if stream is None:
        return
    while True:
        line = await _readline(stream)
        if not line:
            break
        decoded = line.decode("utf-8", errors="replace")
        if on_line is not None:
            try:
                on_line(decoded)
            except Exception:
                logger.exception("Output callback error")
        # Truncate long lines
        if len(decoded) > MAX_OUTPUT_LINE:
            decoded = decoded[:MAX_OUTPUT_LINE] + "...[truncated]\n"
        lines.append(decoded)
        byte_counter[0] += len(decoded)
        # Drop old lines if buffer too large
        while byte_counter[0] > MAX_OUTPUT_BYTES and lines:
            removed = lines.pop(0)
            byte_counter[0] -= len(removed)


async def run_command(
    command: list[str],
    cwd: str | os.PathLike[str] | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    on_output: OutputCallback | None = None,
) -> CommandResult:
    """Run a command to completion, capturing its output.

    Args:
        command: Command and arguments
        cwd: Working directory for the child process
        env: Complete child environment (inherits ours when None)
        timeout: Timeout in seconds, None waits indefinitely
        on_output: Called with each decoded stdout/stderr line as it arrives

    Returns:
        Exit code with captured stdout/stderr. A command that cannot be
        started yields COMMAND_NOT_FOUND_EXIT_CODE.

    Raises:
        asyncio.TimeoutError: If timeout exceeded (the process is killed)
    """
    logger.debug(f"Running: {' '.join(command)} (cwd={cwd})")
    try:
        # Never use shell=True
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=dict(env) if env is not None else None,
        )
    except FileNotFoundError as e:
        logger.warning(f"Cannot start {command[0]}: {e}")
        message = f"'{command[0]}' is not recognized as an internal or external command\n"
        if on_output is not None:
            on_output(message)
        return CommandResult(COMMAND_NOT_FOUND_EXIT_CODE, stderr=message)

    stdout_lines: list[str] = []
    stderr_lines: list[str] = []
    stdout_counter = [0]
    stderr_counter = [0]

    try:
        await asyncio.wait_for(
            asyncio.gather(
                _read_stream(process.stdout, stdout_lines, stdout_counter, on_output),
                _read_stream(process.stderr, stderr_lines, stderr_counter, on_output),
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(f"{command[0]} timed out after {timeout}s")
        process.kill()
        await process.wait()
        raise
    except Exception:
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise

    await process.wait()
    exit_code = process.returncode or 0
    logger.debug(f"{command[0]} exited with {exit_code}")

    return CommandResult(exit_code, "".join(stdout_lines), "".join(stderr_lines))
