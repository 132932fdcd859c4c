"""macOS GPU detection through system_profiler, sysctl and NVML."""

from __future__ import annotations

import json
import logging
import platform
from typing import Any, Callable

from ..errors import DetectionError
from ._base import PlatformDetector, ProbeOutcome, make_device, merge_devices, parse_memory_mb
from ._sysinfo import nvml_devices
from ._types import GPUDevice, Memory

logger = logging.getLogger(__name__)


def is_apple_silicon() -> bool:
    return platform.system() == "Darwin" and platform.machine() in ("arm64", "aarch64")


def _first(entry: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = entry.get(key)
        if value not in (None, ""):
            return value
    return None


def _entry_memory(entry: dict[str, Any]) -> Memory:
    if _first(entry, "spdisplays_vram_shared", "sppci_vram_shared") is not None:
        return "shared"
    return parse_memory_mb(_first(entry, "spdisplays_vram", "sppci_vram", "vram"))


def parse_system_profiler(output: str) -> list[dict[str, Any]]:
    """Flatten ``system_profiler SPDisplaysDataType -json`` into GPU records."""
    try:
        data = json.loads(output)
    except json.JSONDecodeError as exc:
        raise DetectionError(f"system_profiler returned invalid JSON: {exc}") from exc

    records: list[dict[str, Any]] = []
    for entry in data.get("SPDisplaysDataType", []):
        name = _first(entry, "sppci_model", "_name")
        if not name:
            continue
        records.append(
            {
                "name": str(name),
                "memory": _entry_memory(entry),
                "device_id": str(_first(entry, "spdisplays_device-id", "sppci_device_id") or "unknown"),
                "driver_version": str(
                    _first(entry, "sppci_driver_version", "spdisplays_driver_version") or "unknown"
                ),
                "cores": _first(entry, "sppci_cores"),
                "metal": _first(entry, "spdisplays_mtlgpufamilysupport", "spdisplays_metal"),
            }
        )
    return records


class MacOSDetector(PlatformDetector):
    @property
    def name(self) -> str:
        return "darwin"

    def probes(self) -> dict[str, Callable[[], Any]]:
        return {
            "system_profiler": self._detect_system_profiler,
            "sysctl": self._detect_apple_chip,
            "nvml": nvml_devices,
        }

    def _detect_system_profiler(self) -> list[GPUDevice]:
        output = self._run(["system_profiler", "SPDisplaysDataType", "-json"])
        devices = []
        for index, record in enumerate(parse_system_profiler(output)):
            info = {k: record[k] for k in ("cores", "metal") if record[k] is not None}
            device = make_device(
                f"profiler-gpu-{index}",
                record["name"],
                hw_id=record["device_id"],
                driver_version=record["driver_version"],
                memory=record["memory"],
                detection_method="system_profiler",
                platform_info=info,
            )
            if device is not None:
                devices.append(device)
        return devices

    def _detect_apple_chip(self) -> list[GPUDevice]:
        """Apple Silicon GPU named after the SoC (``Apple M2 Pro``)."""
        if not is_apple_silicon():
            return []
        chip = self._run(["sysctl", "-n", "machdep.cpu.brand_string"]).strip()
        if not chip:
            raise DetectionError("sysctl returned an empty brand string")
        device = make_device(
            "sysctl-gpu-0",
            chip,
            detection_method="sysctl",
            platform_info={"unified_memory": True},
        )
        return [device] if device is not None else []

    def combine(self, outcomes: dict[str, ProbeOutcome]) -> list[GPUDevice]:
        sources = [
            outcomes[k].value
            for k in ("system_profiler", "sysctl", "nvml")
            if k in outcomes and outcomes[k].ok
        ]
        return merge_devices(*sources)

    def validate(self, device: GPUDevice) -> GPUDevice:
        caps = device.capabilities
        if device.vendor == "apple":
            caps.coreml_compatible = True
            caps.openvino_compatible = False
            caps.cuda_compatible = False
        elif device.vendor == "intel":
            caps.openvino_compatible = caps.openvino_compatible and device.has_known_driver
        elif device.vendor == "nvidia":
            caps.openvino_compatible = False
        return device
