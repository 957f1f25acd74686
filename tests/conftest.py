"""Pytest fixtures for cudaimg-build tests."""

import asyncio
import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from cudaimg_build.config import BuildSettings  # noqa: E402


def _eof():
    return asyncio.IncompleteReadError(b"", None)


def make_process(returncode=0, stdout_lines=(), stderr_lines=()):
    """Build a mock asyncio subprocess that emits the given output lines."""
    process = MagicMock()
    process.pid = None
    process.returncode = returncode
    process.stdout = MagicMock()
    process.stdout.readuntil = AsyncMock(side_effect=[*stdout_lines, _eof()])
    process.stderr = MagicMock()
    process.stderr.readuntil = AsyncMock(side_effect=[*stderr_lines, _eof()])
    process.wait = AsyncMock(return_value=returncode)
    process.kill = MagicMock()
    return process


@pytest.fixture
def library_root(tmp_path):
    """Library root with the solution file and a built DLL."""
    root = tmp_path / "app"
    solution_dir = root / "libcudaimg"
    solution_dir.mkdir(parents=True)
    (solution_dir / "libcudaimg.sln").write_text("Microsoft Visual Studio Solution File\n")
    output_dir = solution_dir / "x64" / "Release"
    output_dir.mkdir(parents=True)
    (output_dir / "libcudaimg.dll").write_bytes(b"MZ\x90\x00fresh")
    return root.resolve()


@pytest.fixture
def settings(library_root, tmp_path):
    """Settings pointing at library_root with a toolchain script that does not exist."""
    return BuildSettings(
        root=library_root,
        vcvars_path=str(tmp_path / "missing" / "vcvarsall.bat"),
        msbuild_dir=str(tmp_path / "msbuild" / "bin"),
    )


@pytest.fixture
def msbuild_output():
    """Sample MSBuild console output for a failed CUDA build."""
    return (
        "Build started 10/19/2026 10:00:00 AM.\n"
        "C:\\app\\libcudaimg\\kernel.cu(42): error: identifier \"pixel\" is undefined "
        "[C:\\app\\libcudaimg\\libcudaimg.vcxproj]\n"
        "C:\\app\\libcudaimg\\image.cpp(7,12): warning C4244: conversion from 'double' to "
        "'float', possible loss of data [C:\\app\\libcudaimg\\libcudaimg.vcxproj]\n"
        "LINK : fatal error LNK1181: cannot open input file 'cudart.lib' "
        "[C:\\app\\libcudaimg\\libcudaimg.vcxproj]\n"
        "Build FAILED.\n"
        "C:\\app\\libcudaimg\\kernel.cu(42): error: identifier \"pixel\" is undefined "
        "[C:\\app\\libcudaimg\\libcudaimg.vcxproj]\n"
        "    1 Warning(s)\n"
        "    2 Error(s)\n"
    )


@pytest.fixture
def process_factory():
    """Factory for mock subprocesses (see make_process)."""
    return make_process
