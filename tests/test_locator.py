"""Tests for the solution precondition check."""

import pytest

from cudaimg_build.build.locator import locate_solution
from cudaimg_build.build.policy import BuildPolicy
from cudaimg_build.build.state import SolutionNotFoundError


class TestLocateSolution:
    """Tests for locate_solution."""

    def test_finds_solution(self, library_root):
        """Test the solution path is returned when present."""
        policy = BuildPolicy(root=str(library_root))

        solution = locate_solution(library_root / "libcudaimg", "libcudaimg.sln", policy)

        assert solution == library_root / "libcudaimg" / "libcudaimg.sln"

    def test_missing_solution(self, library_root):
        """Test a missing solution fails with exit code 1 and the fixed message."""
        (library_root / "libcudaimg" / "libcudaimg.sln").unlink()
        policy = BuildPolicy(root=str(library_root))

        with pytest.raises(SolutionNotFoundError) as exc_info:
            locate_solution(library_root / "libcudaimg", "libcudaimg.sln", policy)

        assert str(exc_info.value) == "Solution file libcudaimg.sln not found!"
        assert exc_info.value.exit_code == 1

    def test_missing_submodule_directory(self, tmp_path):
        """Test an uninitialized submodule reports the missing solution."""
        policy = BuildPolicy(root=str(tmp_path))

        with pytest.raises(SolutionNotFoundError):
            locate_solution(tmp_path / "libcudaimg", "libcudaimg.sln", policy)

    def test_directory_named_like_solution(self, library_root):
        """Test a directory with the solution's name does not count."""
        solution = library_root / "libcudaimg" / "libcudaimg.sln"
        solution.unlink()
        solution.mkdir()
        policy = BuildPolicy(root=str(library_root))

        with pytest.raises(SolutionNotFoundError):
            locate_solution(library_root / "libcudaimg", "libcudaimg.sln", policy)

    def test_outside_root(self, library_root, tmp_path):
        """Test the policy is applied."""
        policy = BuildPolicy(root=str(library_root))

        with pytest.raises(ValueError, match="outside root"):
            locate_solution(tmp_path, "libcudaimg.sln", policy)
