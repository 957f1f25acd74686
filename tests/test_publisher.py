"""Tests for artifact publishing and data staging."""

import pytest

from cudaimg_build.build.publisher import publish_artifact, stage_data
from cudaimg_build.build.state import PublishError


@pytest.fixture
def artifact(library_root):
    return library_root / "libcudaimg" / "x64" / "Release" / "libcudaimg.dll"


class TestPublishArtifact:
    """Tests for publish_artifact."""

    def test_creates_destination(self, library_root, artifact):
        """Test the data directory is created when absent."""
        data = library_root / "data"
        assert not data.exists()

        published = publish_artifact(artifact, data)

        assert published == data / "libcudaimg.dll"
        assert published.read_bytes() == artifact.read_bytes()

    def test_existing_destination_and_overwrite(self, library_root, artifact):
        """Test re-publishing into an existing directory replaces the old file."""
        data = library_root / "data"
        data.mkdir()
        (data / "libcudaimg.dll").write_bytes(b"stale")
        (data / "lena.png").write_bytes(b"png")

        publish_artifact(artifact, data)
        publish_artifact(artifact, data)

        assert (data / "libcudaimg.dll").read_bytes() == b"MZ\x90\x00fresh"
        assert (data / "lena.png").read_bytes() == b"png"

    def test_missing_artifact(self, library_root, artifact):
        """Test a missing build output is a copy failure with status 1."""
        artifact.unlink()

        with pytest.raises(PublishError, match="Copy failed!") as exc_info:
            publish_artifact(artifact, library_root / "data")

        assert exc_info.value.exit_code == 1

    def test_destination_is_a_file(self, library_root, artifact):
        """Test an unusable destination is a copy failure."""
        (library_root / "data").write_text("not a directory")

        with pytest.raises(PublishError, match="Copy failed!"):
            publish_artifact(artifact, library_root / "data")


class TestStageData:
    """Tests for stage_data."""

    def test_copies_data_folder(self, library_root, artifact, tmp_path):
        """Test the data folder lands under the output directory."""
        publish_artifact(artifact, library_root / "data")
        out = tmp_path / "target" / "release"

        staged = stage_data(library_root / "data", out)

        assert staged == out / "data"
        assert (staged / "libcudaimg.dll").read_bytes() == artifact.read_bytes()

    def test_merges_and_overwrites(self, library_root, artifact, tmp_path):
        """Test existing staged files are overwritten and others kept."""
        publish_artifact(artifact, library_root / "data")
        out = tmp_path / "out"
        (out / "data").mkdir(parents=True)
        (out / "data" / "libcudaimg.dll").write_bytes(b"old")
        (out / "data" / "keep.txt").write_text("keep")

        stage_data(library_root / "data", out)

        assert (out / "data" / "libcudaimg.dll").read_bytes() == artifact.read_bytes()
        assert (out / "data" / "keep.txt").read_text() == "keep"

    def test_missing_data_folder(self, library_root, tmp_path):
        """Test staging without a data folder fails."""
        with pytest.raises(PublishError, match="Data folder not found"):
            stage_data(library_root / "data", tmp_path / "out")
