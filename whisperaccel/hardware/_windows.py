"""Windows GPU detection through WMI (PowerShell) and NVML."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable

from ._base import PlatformDetector, ProbeOutcome, make_device, merge_devices, parse_memory_mb
from ._sysinfo import nvml_devices
from ._types import GPUDevice

logger = logging.getLogger(__name__)

_WMI_SCRIPT = """
$gpus = Get-CimInstance -ClassName Win32_VideoController
foreach ($gpu in $gpus) {
  Write-Output "GPU_START"
  Write-Output "Name: $($gpu.Name)"
  Write-Output "DeviceID: $($gpu.DeviceID)"
  Write-Output "DriverVersion: $($gpu.DriverVersion)"
  if ($gpu.AdapterRAM -and $gpu.AdapterRAM -gt 0) {
    Write-Output "Memory: $([math]::Round($gpu.AdapterRAM / 1MB))"
  } else {
    Write-Output "Memory: shared"
  }
  Write-Output "Status: $($gpu.Status)"
  Write-Output "Availability: $($gpu.Availability)"
  Write-Output "PNPDeviceID: $($gpu.PNPDeviceID)"
  Write-Output "GPU_END"
}
"""

_VEN_RE = re.compile(r"VEN_([0-9A-F]{4})", re.IGNORECASE)
_DEV_RE = re.compile(r"DEV_([0-9A-F]{4})", re.IGNORECASE)


def parse_wmi_output(output: str) -> list[dict[str, str]]:
    """Split ``GPU_START``/``GPU_END`` delimited output into field dicts."""
    records: list[dict[str, str]] = []
    current: dict[str, str] | None = None
    for raw in output.splitlines():
        line = raw.strip()
        if line == "GPU_START":
            current = {}
        elif line == "GPU_END":
            if current and current.get("Name"):
                records.append(current)
            current = None
        elif current is not None and ":" in line:
            key, _, value = line.partition(":")
            current[key.strip()] = value.strip()
    return records


def _record_to_device(index: int, record: dict[str, str]) -> GPUDevice | None:
    pnp = record.get("PNPDeviceID", "")
    ven = _VEN_RE.search(pnp)
    dev = _DEV_RE.search(pnp)
    info: dict[str, Any] = {
        "wmi_device_id": record.get("DeviceID", ""),
        "status": record.get("Status", "unknown"),
        "availability": record.get("Availability", "unknown"),
        "pnp_device_id": pnp,
    }
    if ven:
        info["pci_vendor_id"] = ven.group(1).lower()
    return make_device(
        f"wmi-gpu-{index}",
        record["Name"],
        hw_id=dev.group(1).lower() if dev else record.get("DeviceID") or "unknown",
        driver_version=record.get("DriverVersion") or "unknown",
        memory=parse_memory_mb(record.get("Memory")),
        detection_method="wmi",
        platform_info=info,
    )


class WindowsDetector(PlatformDetector):
    @property
    def name(self) -> str:
        return "windows"

    def probes(self) -> dict[str, Callable[[], Any]]:
        return {"wmi": self._detect_wmi, "nvml": nvml_devices}

    def _detect_wmi(self) -> list[GPUDevice]:
        output = self._run(["powershell", "-NoProfile", "-NonInteractive", "-Command", _WMI_SCRIPT])
        devices = []
        for index, record in enumerate(parse_wmi_output(output)):
            device = _record_to_device(index, record)
            if device is not None:
                devices.append(device)
        return devices

    def combine(self, outcomes: dict[str, ProbeOutcome]) -> list[GPUDevice]:
        # NVML first: WMI AdapterRAM is a 32-bit field and caps out at 4 GB.
        sources = [outcomes[k].value for k in ("nvml", "wmi") if k in outcomes and outcomes[k].ok]
        return merge_devices(*sources)

    def validate(self, device: GPUDevice) -> GPUDevice:
        if device.vendor == "intel" and not device.has_known_driver:
            device.capabilities.openvino_compatible = False
        return device
