"""MCP Server exposing the libcudaimg clean/build pipelines."""

from __future__ import annotations

import json
import logging
from collections import deque
from pathlib import Path

from mcp.server.fastmcp import Context, FastMCP
from pydantic import AnyUrl

from .build import BuildPipeline, PipelineError, PipelineState
from .config import BuildSettings

logger = logging.getLogger(__name__)

# Tool output kept for the build://output resource
MAX_OUTPUT_LINES = 2000

# Global pipeline (single client mode)
_pipeline: BuildPipeline | None = None
_output: deque[str] = deque(maxlen=MAX_OUTPUT_LINES)
_initial_root: str | None = None


def _clear_output_on_start(state: PipelineState) -> None:
    # START is entered inside the pipeline lock, after any previous run ended
    if state == PipelineState.START:
        _output.clear()


def get_pipeline() -> BuildPipeline:
    """Get or create the pipeline for the configured root."""
    global _pipeline
    if _pipeline is None:
        settings = BuildSettings.from_env(root=_initial_root)
        _pipeline = BuildPipeline(settings, on_output=_output.append)
        _pipeline.on_state_change(_clear_output_on_start)
    return _pipeline


def create_server(root: str | None = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        root: Library root directory. Defaults to CUDAIMG_ROOT or the
            nearest ancestor of the CWD holding libcudaimg/libcudaimg.sln.
    """
    global _initial_root, _pipeline
    _initial_root = root
    _pipeline = None
    _output.clear()
    mcp = FastMCP("cudaimg-build")
    pipeline = get_pipeline()

    async def notify_state_changed(ctx: Context) -> None:
        """Notify client that build://state resource has changed."""
        try:
            if ctx.session:
                await ctx.session.send_resource_updated(AnyUrl("build://state"))
        except Exception:
            pass  # Notification failure shouldn't break the tool

    # ============== Build Tools ==============

    @mcp.tool()
    async def clean_library(ctx: Context) -> dict:
        """
        Clean libcudaimg build outputs (MSBuild /t:Clean, Release).

        Fails with exit code 1 if libcudaimg/libcudaimg.sln is missing,
        otherwise reports MSBuild's exit code on failure.
        """
        try:
            result = await pipeline.clean()
            await notify_state_changed(ctx)
            return {"success": result.success, "data": result.to_dict()}
        except PipelineError as e:
            return {"success": False, "error": str(e), "exitCode": e.exit_code}

    @mcp.tool()
    async def build_library(ctx: Context) -> dict:
        """
        Build libcudaimg (Release) and copy libcudaimg.dll into the data folder.

        The image application loads data/libcudaimg.dll, so a successful
        build replaces the library it will use on next start.
        """
        try:
            result = await pipeline.build()
            await notify_state_changed(ctx)
            return {"success": result.success, "data": result.to_dict()}
        except PipelineError as e:
            return {"success": False, "error": str(e), "exitCode": e.exit_code}

    @mcp.tool()
    async def stage_data(output_dir: str) -> dict:
        """
        Copy the data folder (including libcudaimg.dll) into a consumer's output directory.

        Existing files are overwritten.

        Args:
            output_dir: Directory the consuming executable runs from
        """
        try:
            target = await pipeline.stage(Path(output_dir))
            return {"success": True, "data": {"staged": str(target)}}
        except PipelineError as e:
            return {"success": False, "error": str(e), "exitCode": e.exit_code}

    @mcp.tool()
    async def get_build_state() -> dict:
        """Get the current pipeline state and the last result."""
        last = pipeline.last_result
        return {
            "success": True,
            "data": {
                "state": pipeline.state.value,
                "running": pipeline.is_running,
                "root": str(pipeline.settings.root),
                "lastResult": last.to_dict() if last else None,
            },
        }

    # ============== Resources ==============

    @mcp.resource("build://state", mime_type="application/json")
    async def build_state_resource() -> str:
        """Current pipeline state (JSON).

        Contains: state, last result with exit code and diagnostics.
        Updates when: a clean or build finishes.
        """
        last = pipeline.last_result
        return json.dumps(
            {
                "state": pipeline.state.value,
                "lastResult": last.to_dict() if last else None,
            },
            indent=2,
        )

    @mcp.resource("build://output", mime_type="text/plain")
    async def build_output_resource() -> str:
        """MSBuild output of the last run (plain text)."""
        return "".join(_output)

    logger.info(f"cudaimg-build MCP Server initialized (root: {pipeline.settings.root})")
    return mcp
