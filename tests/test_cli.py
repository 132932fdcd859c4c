"""Tests for whisperaccel.cli -- Click command-line interface."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from whisperaccel import __version__
from whisperaccel.cli import main
from whisperaccel.config import EngineConfig
from whisperaccel.hardware import HardwareDetector, RuntimeInfo

_OPENVINO_KEYS = (
    "OPENVINO_DEVICE_ID",
    "OPENVINO_CACHE_DIR",
    "OPENVINO_ENABLE_OPTIMIZATIONS",
    "OPENVINO_PERFORMANCE_HINT",
)


def _use_detector(monkeypatch: pytest.MonkeyPatch, detector: HardwareDetector) -> None:
    for target in (
        "whisperaccel.commands.hardware.get_detector",
        "whisperaccel.commands.backend.get_detector",
        "whisperaccel.gpu_config.get_detector",
    ):
        monkeypatch.setattr(target, lambda: detector)


@pytest.fixture
def mock_hardware(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> HardwareDetector:
    for key in _OPENVINO_KEYS:
        monkeypatch.setenv(key, "")
    detector = HardwareDetector(
        EngineConfig(mock_hardware=True, openvino_cache_dir=tmp_path / "ov-cache"),
        platform="linux",
    )
    _use_detector(monkeypatch, detector)
    return detector


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


class TestMainGroup:
    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("detect", "classify", "runtime", "select", "load"):
            assert command in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------


class TestClassify:
    def test_text(self):
        runner = CliRunner()
        result = runner.invoke(main, ["classify", "Intel Arc A770 Graphics"])
        assert result.exit_code == 0
        assert "Vendor: intel" in result.output
        assert "Type: discrete" in result.output
        assert "Priority: 70" in result.output

    def test_json(self):
        runner = CliRunner()
        result = runner.invoke(main, ["classify", "--json", "Intel(R) UHD Graphics 770"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["vendor"] == "intel"
        assert data["type"] == "integrated"
        assert data["priority"] == 25


# ---------------------------------------------------------------------------
# detect
# ---------------------------------------------------------------------------


class TestDetect:
    def test_json(self, mock_hardware):
        runner = CliRunner()
        result = runner.invoke(main, ["detect", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["total_gpus"] == 2
        assert data["detection_success"] is True
        assert [g["id"] for g in data["intel_gpus"]] == ["mock-gpu-0", "mock-gpu-1"]
        assert data["openvino_info"]["version"] == "2024.6.0"

    def test_text(self, mock_hardware):
        runner = CliRunner()
        result = runner.invoke(main, ["detect"])
        assert result.exit_code == 0
        assert "[mock-gpu-0] Intel Arc A770 Graphics (recommended)" in result.output
        assert "OpenVINO: 2024.6.0 (valid)" in result.output
        assert "(Core Ultra)" in result.output
        assert "Platform: linux" in result.output

    def test_no_gpus(self, monkeypatch):
        detector = MagicMock()
        detector.detect_available_gpus.return_value = HardwareDetector(
            EngineConfig(), platform="sunos5", runtime_detector=MagicMock(), core_ultra_detector=MagicMock()
        ).detect_available_gpus()
        _use_detector(monkeypatch, detector)

        runner = CliRunner()
        result = runner.invoke(main, ["detect"])
        assert result.exit_code == 0
        assert "GPU: None detected" in result.output
        assert "Unsupported platform" in result.output


# ---------------------------------------------------------------------------
# runtime
# ---------------------------------------------------------------------------


class TestRuntime:
    def test_installed(self, mock_hardware):
        runner = CliRunner()
        result = runner.invoke(main, ["runtime"])
        assert result.exit_code == 0
        assert "OpenVINO 2024.6.0 (valid)" in result.output

    def test_not_installed(self, monkeypatch):
        runtime = MagicMock()
        runtime.detect.return_value = RuntimeInfo(
            is_installed=False, detection_errors=["openvino/python: openvino not importable"]
        )
        _use_detector(monkeypatch, HardwareDetector(EngineConfig(), platform="linux", runtime_detector=runtime))

        runner = CliRunner()
        result = runner.invoke(main, ["runtime"])
        assert result.exit_code == 1
        assert "OpenVINO runtime not found" in result.output
        assert "openvino/python" in result.output

    def test_json(self, mock_hardware):
        runner = CliRunner()
        result = runner.invoke(main, ["runtime", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output)["validation_status"] == "valid"


# ---------------------------------------------------------------------------
# select / load
# ---------------------------------------------------------------------------


class TestSelect:
    def test_json(self, mock_hardware):
        runner = CliRunner()
        result = runner.invoke(main, ["select", "--model", "base", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["addon"]["type"] == "openvino"
        assert data["addon"]["device_config"]["device_id"] == "mock-gpu-0"
        assert data["whisper_params"]["performance_mode"] == "throughput"
        assert data["environment"]["OPENVINO_DEVICE_ID"] == "GPU.1"

    def test_text(self, mock_hardware):
        runner = CliRunner()
        result = runner.invoke(main, ["select"])
        assert result.exit_code == 0
        assert "Backend: openvino" in result.output
        assert "export OPENVINO_PERFORMANCE_HINT=THROUGHPUT" in result.output

    def test_priority(self, mock_hardware):
        runner = CliRunner()
        result = runner.invoke(main, ["select", "--priority", "cpu", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output)["addon"]["type"] == "cpu"

    def test_gpu_id(self, mock_hardware):
        runner = CliRunner()
        result = runner.invoke(main, ["select", "--gpu-id", "mock-gpu-1", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output)["addon"]["display_name"].endswith("(User Selected)")


class TestLoad:
    def test_no_addons_installed(self, mock_hardware, tmp_path):
        addons = tmp_path / "addons"
        addons.mkdir()
        runner = CliRunner()
        result = runner.invoke(main, ["load", "--addons-dir", str(addons)])
        assert result.exit_code == 1
        assert "Could not load any addon" in result.output
