"""Tests for library root detection."""

from cudaimg_build.utils.project import find_library_root


class TestFindLibraryRoot:
    """Tests for find_library_root function."""

    def _make_solution(self, root):
        solution_dir = root / "libcudaimg"
        solution_dir.mkdir(parents=True)
        (solution_dir / "libcudaimg.sln").touch()

    def test_finds_root_from_itself(self, tmp_path):
        """Test the directory holding libcudaimg/ is found."""
        self._make_solution(tmp_path)

        assert find_library_root(tmp_path) == tmp_path.resolve()

    def test_searches_upward(self, tmp_path):
        """Test that search goes up the directory tree."""
        self._make_solution(tmp_path)
        deep_dir = tmp_path / "src" / "ui" / "widgets"
        deep_dir.mkdir(parents=True)

        assert find_library_root(deep_dir) == tmp_path.resolve()

    def test_from_inside_submodule(self, tmp_path):
        """Test starting inside the submodule finds the outer root."""
        self._make_solution(tmp_path)

        assert find_library_root(tmp_path / "libcudaimg") == tmp_path.resolve()

    def test_finds_git_when_no_solution(self, tmp_path):
        """Test that .git is found as fallback."""
        (tmp_path / ".git").mkdir()
        subdir = tmp_path / "src"
        subdir.mkdir()

        assert find_library_root(subdir) == tmp_path.resolve()

    def test_prefers_solution_over_git(self, tmp_path):
        """Test the solution marker wins over a nearer .git."""
        self._make_solution(tmp_path)
        nested = tmp_path / "vendor" / "other"
        nested.mkdir(parents=True)
        (nested / ".git").write_text("gitdir: ../../.git/modules/other\n")

        assert find_library_root(nested) == tmp_path.resolve()

    def test_falls_back_to_start(self, tmp_path):
        """Test fallback to the start directory when no markers found."""
        start = tmp_path / "empty"
        start.mkdir()

        assert find_library_root(start, boundary=tmp_path) == start.resolve()

    def test_respects_boundary(self, tmp_path):
        """Test that boundary parameter constrains search."""
        self._make_solution(tmp_path)
        boundary = tmp_path / "restricted"
        subdir = boundary / "project"
        subdir.mkdir(parents=True)

        assert find_library_root(subdir, boundary=boundary) == subdir.resolve()

    def test_defaults_to_cwd(self, tmp_path, monkeypatch):
        """Test CWD is the default start directory."""
        self._make_solution(tmp_path)
        monkeypatch.chdir(tmp_path / "libcudaimg")

        assert find_library_root() == tmp_path.resolve()
