"""Tests for whisperaccel.hardware._sysinfo -- NVML enumeration."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from whisperaccel.hardware._sysinfo import nvml_devices


def _nvml(names: list[bytes], init_error: Exception | None = None):
    memory = SimpleNamespace(total=12282 * 1024 * 1024)
    return [
        patch("pynvml.nvmlInit", side_effect=init_error),
        patch("pynvml.nvmlShutdown"),
        patch("pynvml.nvmlSystemGetDriverVersion", return_value=b"550.54.14"),
        patch("pynvml.nvmlDeviceGetCount", return_value=len(names)),
        patch("pynvml.nvmlDeviceGetHandleByIndex", side_effect=lambda i: i),
        patch("pynvml.nvmlDeviceGetName", side_effect=lambda h: names[h]),
        patch("pynvml.nvmlDeviceGetMemoryInfo", return_value=memory),
        patch(
            "pynvml.nvmlDeviceGetPciInfo",
            side_effect=lambda h: SimpleNamespace(pciDeviceId=0x278610DE, busId=f"00000000:0{h + 1}:00.0".encode()),
        ),
    ]


def _run(patches):
    for p in patches:
        p.start()
    try:
        return nvml_devices()
    finally:
        for p in reversed(patches):
            p.stop()


class TestNvmlDevices:
    def test_enumerates(self) -> None:
        devices = _run(_nvml([b"NVIDIA GeForce RTX 4070", b"NVIDIA GeForce RTX 3050"]))

        assert [d.id for d in devices] == ["nvml-gpu-0", "nvml-gpu-1"]
        first = devices[0]
        assert first.vendor == "nvidia"
        assert first.memory == 12282
        assert first.driver_version == "550.54.14"
        assert first.device_id == "2786"
        assert first.detection_method == "nvml"
        assert first.platform_info == {"nvml_index": 0, "pci_bus": "01:00.0"}
        assert devices[1].platform_info["pci_bus"] == "02:00.0"

    def test_shutdown_after_failure(self) -> None:
        patches = _nvml([b"NVIDIA GeForce RTX 4070"])
        patches[3] = patch("pynvml.nvmlDeviceGetCount", side_effect=RuntimeError("NVML_ERROR_UNKNOWN"))
        mocks = [p.start() for p in patches]
        try:
            with pytest.raises(RuntimeError):
                nvml_devices()
            mocks[1].assert_called_once()
        finally:
            for p in reversed(patches):
                p.stop()

    def test_init_failure_propagates(self) -> None:
        with pytest.raises(RuntimeError, match="driver not loaded"):
            _run(_nvml([], init_error=RuntimeError("driver not loaded")))
