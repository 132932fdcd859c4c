"""Tests for whisperaccel.hardware._openvino -- version checks and the runtime probe waterfall."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from whisperaccel.hardware._openvino import (
    OpenVINODetector,
    compare_versions,
    normalize_version,
    validate_openvino_version,
)

_QUERY_OK = (
    "VERSION:2024.6.0-17404-4c0f47d2335-releases/2024/6\n"
    "DEVICES:CPU,GPU\n"
    "FORMATS:ONNX,IR,TensorFlow\n"
    "SUCCESS:true\n"
)


def _completed(stdout: str = "", returncode: int = 0) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=["tool"], returncode=returncode, stdout=stdout, stderr="")


def _commands(python: subprocess.CompletedProcess[str] | None = None, cli: dict[str, str] | None = None):
    cli = cli or {}

    def run(cmd, **kwargs):
        if cmd[0] == sys.executable:
            if python is None:
                return _completed(returncode=1)
            return python
        if cmd[0] in cli:
            return _completed(cli[cmd[0]])
        raise FileNotFoundError(cmd[0])

    return run


@pytest.fixture
def no_manual_install(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PATH", "")
    monkeypatch.setattr("whisperaccel.hardware._openvino._POSIX_DIRS", (str(tmp_path / "absent"),))


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------


class TestCompareVersions:
    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ("2024.6.0", "2024.6.0", 0),
            ("2025.0", "2024.6.0", 1),
            ("2024.5.9", "2024.6", -1),
            ("2024.6", "2024.6.0", 0),
            ("2024.6.0-17404-abc", "2024.6.0", 0),
            ("2024.10.0", "2024.9.0", 1),
        ],
    )
    def test_compare(self, a: str, b: str, expected: int) -> None:
        assert compare_versions(a, b) == expected


class TestValidateOpenvinoVersion:
    def test_minimum_accepted(self) -> None:
        assert validate_openvino_version("2024.6.0") is True

    def test_newer_accepted(self) -> None:
        assert validate_openvino_version("2025.1.0") is True

    def test_older_rejected(self) -> None:
        assert validate_openvino_version("2023.3.0") is False

    def test_missing_rejected(self) -> None:
        assert validate_openvino_version(None) is False
        assert validate_openvino_version("") is False

    def test_custom_minimum(self) -> None:
        assert validate_openvino_version("2023.3.0", minimum="2023.0.0") is True


class TestNormalizeVersion:
    def test_extracts_triplet(self) -> None:
        assert normalize_version("OpenVINO Runtime version ......... 2024.6.0-17404") == "2024.6.0"

    def test_none_when_absent(self) -> None:
        assert normalize_version("no version here") is None


# ---------------------------------------------------------------------------
# OpenVINODetector
# ---------------------------------------------------------------------------


class TestOpenVINODetector:
    def test_python_probe(self, no_manual_install: None) -> None:
        with patch("whisperaccel.hardware._base.subprocess.run", side_effect=_commands(_completed(_QUERY_OK))):
            info = OpenVINODetector(platform="linux").detect()

        assert info.is_installed is True
        assert info.version == "2024.6.0"
        assert info.validation_status == "valid"
        assert info.installation_method == "package"
        assert info.supported_devices == ["CPU", "GPU"]
        assert info.model_formats == ["ONNX", "IR", "TensorFlow"]
        assert info.detection_errors == []

    def test_old_version_is_invalid(self, no_manual_install: None) -> None:
        old = _completed("VERSION:2023.3.0\nDEVICES:CPU\nSUCCESS:true\n")
        with patch("whisperaccel.hardware._base.subprocess.run", side_effect=_commands(old)):
            info = OpenVINODetector(platform="linux").detect()

        assert info.is_installed is True
        assert info.validation_status == "invalid"
        assert info.model_formats == ["ONNX", "IR", "TensorFlow", "PyTorch"]

    def test_cli_fallback(self, no_manual_install: None) -> None:
        cli = {"benchmark_app": "[ INFO ] OpenVINO:\n[ INFO ] Build ................................. 2024.6.0-17404\n"}
        with patch("whisperaccel.hardware._base.subprocess.run", side_effect=_commands(cli=cli)):
            info = OpenVINODetector(platform="linux").detect()

        assert info.is_installed is True
        assert info.version == "2024.6.0"
        assert info.runtime_path == "benchmark_app"
        assert info.supported_devices == ["GPU", "CPU"]
        assert len(info.detection_errors) == 1
        assert info.detection_errors[0].startswith("openvino/python")

    def test_not_found(self, no_manual_install: None) -> None:
        with patch("whisperaccel.hardware._base.subprocess.run", side_effect=_commands()):
            info = OpenVINODetector(platform="linux").detect()

        assert info.is_installed is False
        assert info.validation_status == "invalid"
        assert info.version is None
        assert [e.split(":")[0] for e in info.detection_errors] == [
            "openvino/python",
            "openvino/cli",
            "openvino/path",
            "openvino/common",
        ]

    def test_manual_install_in_common_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        install = tmp_path / "openvino_2024"
        install.mkdir()
        (install / "setupvars.sh").write_text("# env\n")
        (install / "version.txt").write_text("2024.6.0-17404\n")
        monkeypatch.setenv("PATH", "")
        monkeypatch.setattr("whisperaccel.hardware._openvino._POSIX_DIRS", (str(install),))

        with patch("whisperaccel.hardware._base.subprocess.run", side_effect=_commands()):
            info = OpenVINODetector(platform="linux").detect()

        assert info.is_installed is True
        assert info.installation_method == "manual"
        assert info.version == "2024.6.0"
        assert info.validation_status == "valid"
        assert info.runtime_path == str(install)
        assert "NPU" in info.supported_devices

    def test_manual_install_on_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        install = tmp_path / "openvino_2025.0.0"
        (install / "bin").mkdir(parents=True)
        (install / "setupvars.sh").write_text("# env\n")
        monkeypatch.setenv("PATH", str(install / "bin"))
        monkeypatch.setattr("whisperaccel.hardware._openvino._POSIX_DIRS", ())

        with patch("whisperaccel.hardware._base.subprocess.run", side_effect=_commands()):
            info = OpenVINODetector(platform="linux").detect()

        assert info.installation_method == "manual"
        assert info.version == "2025.0.0"
        assert info.validation_status == "valid"

    def test_unknown_version_status(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        install = tmp_path / "ov"
        install.mkdir()
        monkeypatch.setenv("PATH", "")
        monkeypatch.setattr("whisperaccel.hardware._openvino._POSIX_DIRS", (str(install),))

        with patch("whisperaccel.hardware._base.subprocess.run", side_effect=_commands()):
            info = OpenVINODetector(platform="linux").detect()

        assert info.is_installed is True
        assert info.version is None
        assert info.validation_status == "unknown"
