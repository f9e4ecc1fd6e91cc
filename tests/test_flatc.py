"""Tests for locating and running flatc"""

import shutil
import subprocess

import pytest

from xplatgen.errors import FlatcError
from xplatgen.flatc import FLATC_ENV_VAR, FlatcConfig, find_flatc, flatc_commands, flatc_langs, run_flatc


@pytest.fixture
def config(tmp_path):
    return FlatcConfig(
        flatc_path="/opt/bin/flatc",
        fbs_files=["schemas/common.fbs", "schemas/geo.fbs"],
        output_dir=str(tmp_path / "generated"),
        targets=["android", "ios", "macos", "web"],
        impl_lang="rust",
    )


class TestLanguages:

    def test_swift_deduplicated(self):
        assert flatc_langs(["ios", "macos"], "cpp") == [
            ("--swift", "flatbuffers/swift"),
            ("--cpp", "flatbuffers/cpp"),
        ]

    def test_desktop_targets_add_nothing(self):
        assert flatc_langs(["linux", "windows"], "c") == []

    def test_commands(self, config, tmp_path):
        commands = flatc_commands(config)
        assert [cmd[1] for cmd in commands] == ["--kotlin", "--swift", "--ts", "--rust"]
        assert commands[0] == [
            "/opt/bin/flatc", "--kotlin", "-o", str(tmp_path / "generated" / "flatbuffers" / "kotlin"),
            "schemas/common.fbs", "schemas/geo.fbs",
        ]


class TestFindFlatc:

    def test_explicit_path(self, tmp_path):
        flatc = tmp_path / "flatc"
        flatc.write_text("")
        assert find_flatc(str(flatc)) == str(flatc)

    def test_explicit_path_missing(self, tmp_path):
        with pytest.raises(FlatcError, match="flatc not found"):
            find_flatc(str(tmp_path / "nope"))

    def test_environment_variable(self, tmp_path, monkeypatch):
        flatc = tmp_path / "flatc"
        flatc.write_text("")
        monkeypatch.setenv(FLATC_ENV_VAR, str(flatc))
        assert find_flatc() == str(flatc)

    def test_falls_back_to_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv(FLATC_ENV_VAR, str(tmp_path / "missing"))
        monkeypatch.setattr(shutil, "which", lambda name: f"/usr/bin/{name}")
        assert find_flatc() == "/usr/bin/flatc"

    def test_not_found(self, monkeypatch):
        monkeypatch.delenv(FLATC_ENV_VAR, raising=False)
        monkeypatch.setattr(shutil, "which", lambda name: None)
        assert find_flatc() is None


class TestRunFlatc:

    def test_runs_each_language(self, config, monkeypatch):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

        monkeypatch.setattr(subprocess, "run", fake_run)
        assert run_flatc(config) == 4
        assert calls == flatc_commands(config)

    def test_nonzero_exit(self, config, monkeypatch):
        def fake_run(cmd, **kwargs):
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="error: bad schema\n")

        monkeypatch.setattr(subprocess, "run", fake_run)
        with pytest.raises(FlatcError, match="bad schema"):
            run_flatc(config)

    def test_cannot_start(self, config, monkeypatch):
        def fake_run(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(subprocess, "run", fake_run)
        with pytest.raises(FlatcError, match="running /opt/bin/flatc"):
            run_flatc(config)

    def test_dry_run_prints(self, config, monkeypatch, capsys):
        def fake_run(cmd, **kwargs):
            raise AssertionError("flatc must not run in dry-run mode")

        monkeypatch.setattr(subprocess, "run", fake_run)
        config.dry_run = True

        assert run_flatc(config) == 0
        out = capsys.readouterr().out
        assert out.count("  Would run: /opt/bin/flatc") == 4
