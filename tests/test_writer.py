"""Tests for writing artifacts to disk"""

import pytest

from xplatgen.errors import OutputError
from xplatgen.types import Artifact
from xplatgen.writer import artifact_path, clean_output, write_artifacts


@pytest.fixture
def artifacts():
    return [
        Artifact(path="test_api.h", content="// header\n"),
        Artifact(path="bindings/TestApi.kt", content="package test.api\n"),
        Artifact(path="test_api_impl.cpp", content="// impl\n", scaffold=True, project_file=True),
    ]


class TestWriteArtifacts:

    def test_generated_and_project_files(self, tmp_path, artifacts):
        output_dir = tmp_path / "generated"
        result = write_artifacts(artifacts, output_dir)

        assert (output_dir / "test_api.h").read_text() == "// header\n"
        assert (output_dir / "bindings" / "TestApi.kt").exists()
        assert (tmp_path / "test_api_impl.cpp").read_text() == "// impl\n"
        assert not (output_dir / "test_api_impl.cpp").exists()
        assert len(result.written) == 3
        assert result.preserved == []

    def test_existing_scaffold_preserved(self, tmp_path, artifacts):
        impl = tmp_path / "test_api_impl.cpp"
        impl.write_text("// my edits\n")
        (tmp_path / "generated").mkdir()
        (tmp_path / "generated" / "test_api.h").write_text("// stale\n")

        result = write_artifacts(artifacts, tmp_path / "generated")

        assert impl.read_text() == "// my edits\n"
        assert result.preserved == [impl]
        assert (tmp_path / "generated" / "test_api.h").read_text() == "// header\n"

    def test_dry_run_writes_nothing(self, tmp_path, artifacts):
        result = write_artifacts(artifacts, tmp_path / "generated", dry_run=True)

        assert result.written == []
        assert result.planned == [artifact_path(a, tmp_path / "generated") for a in artifacts]
        assert not (tmp_path / "generated").exists()
        assert not (tmp_path / "test_api_impl.cpp").exists()

    def test_unwritable_destination(self, tmp_path):
        blocker = tmp_path / "generated"
        blocker.write_text("not a directory")
        with pytest.raises(OutputError, match="writing"):
            write_artifacts([Artifact(path="test_api.h", content="")], blocker)


class TestCleanOutput:

    def test_removes_directory(self, tmp_path):
        output_dir = tmp_path / "generated"
        (output_dir / "nested").mkdir(parents=True)
        (output_dir / "nested" / "file.txt").write_text("x")

        clean_output(output_dir)
        assert not output_dir.exists()

    def test_dry_run_keeps_directory(self, tmp_path):
        output_dir = tmp_path / "generated"
        output_dir.mkdir()
        clean_output(output_dir, dry_run=True)
        assert output_dir.exists()

    def test_missing_directory_is_fine(self, tmp_path):
        clean_output(tmp_path / "absent")
