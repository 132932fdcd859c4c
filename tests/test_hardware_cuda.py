"""Tests for the CUDA runtime probe (whisperaccel.hardware._cuda)."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from whisperaccel.hardware._cuda import (
    check_cuda_support,
    cuda_addon_for_version,
    parse_nvidia_smi_header,
)

_SMI_HEADER = """\
Thu Feb 22 10:12:31 2024
+-----------------------------------------------------------------------------------------+
| NVIDIA-SMI 550.54.14              Driver Version: 550.54.14      CUDA Version: 12.4     |
|-----------------------------------------+------------------------+----------------------+
"""


def _smi_result(stdout: str, returncode: int = 0) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=["nvidia-smi"], returncode=returncode, stdout=stdout, stderr="")


# ---------------------------------------------------------------------------
# cuda_addon_for_version
# ---------------------------------------------------------------------------


class TestCudaAddonForVersion:
    @pytest.mark.parametrize(
        "major,minor,platform,expected",
        [
            (12, 4, "win32", "addon-windows-cuda-1241-generic"),
            (12, 6, "linux", "addon-linux-cuda-1241-generic"),
            (12, 3, "win32", "addon-windows-cuda-1220-generic"),
            (12, 2, "linux", "addon-linux-cuda-1220-generic"),
            (12, 1, "linux", "addon-linux-cuda-1180-generic"),
            (11, 8, "win32", "addon-windows-cuda-1180-generic"),
            (10, 2, "win32", "addon-windows-no-cuda"),
            (12, 4, "darwin", "addon-cuda"),
        ],
    )
    def test_mapping(self, major: int, minor: int, platform: str, expected: str) -> None:
        assert cuda_addon_for_version(major, minor, platform) == expected


class TestParseNvidiaSmiHeader:
    def test_versions(self) -> None:
        assert parse_nvidia_smi_header(_SMI_HEADER) == ("12.4", "550.54.14")

    def test_missing(self) -> None:
        assert parse_nvidia_smi_header("No devices were found") == (None, None)


# ---------------------------------------------------------------------------
# check_cuda_support
# ---------------------------------------------------------------------------


class TestCheckCudaSupport:
    def test_macos_never_probes(self) -> None:
        with patch("whisperaccel.hardware._cuda.subprocess.run") as mock_run:
            assert check_cuda_support(platform="darwin") is None
        mock_run.assert_not_called()

    def test_nvidia_smi(self) -> None:
        with patch("whisperaccel.hardware._cuda.subprocess.run", return_value=_smi_result(_SMI_HEADER)):
            info = check_cuda_support(platform="linux")

        assert info is not None
        assert info.version == "12.4"
        assert (info.major_version, info.minor_version) == (12, 4)
        assert info.driver_version == "550.54.14"
        assert info.supported is True
        assert info.addon_name == "addon-linux-cuda-1241-generic"

    def test_no_driver(self) -> None:
        with patch("whisperaccel.hardware._cuda.subprocess.run", side_effect=FileNotFoundError) as mock_run:
            assert check_cuda_support(platform="win32") is None
        assert mock_run.call_count == 1

    def test_timeout(self) -> None:
        with patch(
            "whisperaccel.hardware._cuda.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="nvidia-smi", timeout=5),
        ):
            assert check_cuda_support(platform="linux") is None

    def test_nvcc_fallback(self) -> None:
        def side_effect(cmd, **kwargs):
            if cmd == ["nvidia-smi"]:
                return _smi_result("NVIDIA-SMI has failed", returncode=9)
            return _smi_result("nvcc: NVIDIA (R) Cuda compiler driver\nCuda compilation tools, release 11.8, V11.8.89\n")

        with patch("whisperaccel.hardware._cuda.subprocess.run", side_effect=side_effect):
            info = check_cuda_support(platform="win32")

        assert info is not None
        assert info.version == "11.8"
        assert info.driver_version is None
        assert info.addon_name == "addon-windows-cuda-1180-generic"

    def test_old_cuda_is_unsupported(self) -> None:
        header = _SMI_HEADER.replace("CUDA Version: 12.4", "CUDA Version: 10.2")
        with patch("whisperaccel.hardware._cuda.subprocess.run", return_value=_smi_result(header)):
            info = check_cuda_support(platform="linux")

        assert info is not None
        assert info.supported is False
        assert info.addon_name == "addon-linux-no-cuda"

    def test_neither_tool_reports_version(self) -> None:
        with patch("whisperaccel.hardware._cuda.subprocess.run", return_value=_smi_result("")):
            assert check_cuda_support(platform="linux") is None
