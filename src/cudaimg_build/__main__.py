"""Command line entry points for the libcudaimg clean/build pipelines."""

import argparse
import asyncio
import logging
import os
import sys

from .build import BuildCommand, BuildPipeline, PipelineError, stage_data
from .config import BuildSettings

# Exit status after Ctrl+C
INTERRUPTED_EXIT_CODE = 130


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _echo(line: str) -> None:
    sys.stdout.write(line)
    sys.stdout.flush()


async def run_pipeline(command: BuildCommand, settings: BuildSettings | None = None) -> int:
    """Run one pipeline, print its outcome and return the exit code."""
    try:
        pipeline = BuildPipeline(settings or BuildSettings.from_env(), on_output=_echo)
        result = await pipeline.run(command)
    except PipelineError as e:
        print(str(e))
        return e.exit_code
    except ValueError as e:
        # Root rejected by the build policy
        print(str(e))
        return 1

    print(result.message)
    if not result.success:
        logging.getLogger(__name__).debug(result.to_summary())
    return result.exit_code


def run_stage(output_dir: str, settings: BuildSettings | None = None) -> int:
    """Copy the data folder next to a consumer's executable."""
    settings = settings or BuildSettings.from_env()
    try:
        target = stage_data(settings.data_dir, output_dir)
    except PipelineError as e:
        print(str(e))
        return e.exit_code
    print(f"Staged {settings.data_dir} to {target}")
    return 0


async def serve(root: str | None) -> None:
    """Run the MCP server over stdio."""
    from .server import create_server

    logger = logging.getLogger(__name__)
    mcp = create_server(root)
    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        logger.info("Server stopped")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="cudaimg_build",
        description="Clean, build and publish the libcudaimg CUDA library",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("clean", help="MSBuild /t:Clean on libcudaimg.sln (Release)")
    subparsers.add_parser(
        "build", help="Build libcudaimg.sln (Release) and copy libcudaimg.dll to data/"
    )
    stage = subparsers.add_parser("stage", help="Copy the data folder into OUTPUT_DIR")
    stage.add_argument("output_dir", help="Directory the consuming executable runs from")
    server = subparsers.add_parser("serve", help="Run the MCP server over stdio")
    server.add_argument(
        "--root",
        type=str,
        default=None,
        help="Library root (directory holding libcudaimg/ and data/). "
        "Defaults to CUDAIMG_ROOT or the nearest ancestor containing libcudaimg/libcudaimg.sln.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    configure_logging()
    args = parse_args(argv)

    try:
        if args.command == "clean":
            return asyncio.run(run_pipeline(BuildCommand.CLEAN))
        if args.command == "build":
            return asyncio.run(run_pipeline(BuildCommand.BUILD))
        if args.command == "stage":
            return run_stage(args.output_dir)
        asyncio.run(serve(args.root))
        return 0
    except KeyboardInterrupt:
        return INTERRUPTED_EXIT_CODE


def run() -> None:
    sys.exit(main())


def run_clean() -> None:
    """cudaimg-clean: no arguments."""
    sys.exit(main(["clean"]))


def run_build() -> None:
    """cudaimg-build: no arguments."""
    sys.exit(main(["build"]))


def run_stage_cli() -> None:
    """cudaimg-stage OUTPUT_DIR."""
    sys.exit(main(["stage", *sys.argv[1:]]))


def run_server() -> None:
    """cudaimg-build-mcp [--root DIR]."""
    sys.exit(main(["serve", *sys.argv[1:]]))


if __name__ == "__main__":
    run()
