"""Linux GPU detection through lspci, NVML and procfs."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable

from ._base import (
    PlatformDetector,
    ProbeOutcome,
    make_device,
    merge_devices,
    normalize_pci_bus,
)
from ._sysinfo import nvml_devices
from ._types import GPUDevice

logger = logging.getLogger(__name__)

INTEL_KERNEL_MODULES = ("i915", "xe")
NVIDIA_PROC_VERSION_PATH = "/proc/driver/nvidia/version"

_LSPCI_HEAD = re.compile(
    r"^(?P<slot>[0-9a-fA-F:.]+)\s+(?P<klass>[^:]*(?:VGA|3D|Display)[^:]*):\s*(?P<rest>.+)$"
)
_PCI_IDS = re.compile(r"\[([0-9a-fA-F]{4}):([0-9a-fA-F]{4})\]")
_NVIDIA_PROC_VERSION = re.compile(r"Kernel Module\s+(?:for\s+\S+\s+)?([0-9]+(?:\.[0-9]+)+)")


def _split_blocks(output: str) -> list[list[str]]:
    blocks: list[list[str]] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        if not line[0].isspace():
            blocks.append([line])
        elif blocks:
            blocks[-1].append(line)
    return blocks


def parse_lspci_output(output: str) -> list[dict[str, Any]]:
    """Parse ``lspci -nn -v`` output into display-controller records."""
    records: list[dict[str, Any]] = []
    for block in _split_blocks(output):
        head = _LSPCI_HEAD.match(block[0].strip())
        if not head:
            continue
        rest = head.group("rest")
        ids = _PCI_IDS.search(rest)
        if ids:
            name = rest[: ids.start()].strip()
        else:
            name = re.sub(r"\s*\((rev|prog-if)\b.*$", "", rest).strip()
        record: dict[str, Any] = {
            "slot": head.group("slot"),
            "name": name,
            "vendor_id": ids.group(1).lower() if ids else None,
            "device_id": ids.group(2).lower() if ids else None,
            "kernel_driver": None,
            "kernel_modules": [],
        }
        for line in block[1:]:
            text = line.strip()
            if text.startswith("Kernel driver in use:"):
                record["kernel_driver"] = text.split(":", 1)[1].strip()
            elif text.startswith("Kernel modules:"):
                record["kernel_modules"] = [
                    m.strip() for m in text.split(":", 1)[1].split(",") if m.strip()
                ]
        records.append(record)
    return records


def guess_kernel_module(name: str) -> str:
    lower = name.lower()
    if "intel" in lower and "arc" in lower:
        return "xe"
    if "intel" in lower:
        return "i915"
    if "nvidia" in lower:
        return "nvidia"
    if "amd" in lower or "radeon" in lower:
        return "amdgpu"
    return "unknown"


def parse_nvidia_proc_version(text: str) -> str | None:
    match = _NVIDIA_PROC_VERSION.search(text)
    return match.group(1) if match else None


class LinuxDetector(PlatformDetector):
    @property
    def name(self) -> str:
        return "linux"

    def probes(self) -> dict[str, Callable[[], Any]]:
        return {"lspci": self._detect_lspci, "nvml": nvml_devices, "proc": self._read_proc}

    def _detect_lspci(self) -> list[GPUDevice]:
        output = self._run(["lspci", "-nn", "-v"])
        devices = []
        for index, record in enumerate(parse_lspci_output(output)):
            device = make_device(
                f"lspci-gpu-{index}",
                record["name"],
                hw_id=record["device_id"] or "unknown",
                driver_version=record["kernel_driver"] or "unknown",
                detection_method="lspci",
                platform_info={
                    "pci_bus": normalize_pci_bus(record["slot"]),
                    "pci_vendor_id": record["vendor_id"],
                    "kernel_driver": record["kernel_driver"],
                    "kernel_modules": record["kernel_modules"],
                    "expected_kernel_module": guess_kernel_module(record["name"]),
                },
            )
            if device is not None:
                devices.append(device)
        return devices

    def _read_proc(self) -> dict[str, Any]:
        """NVIDIA driver version, loaded Intel GPU modules and system memory."""
        import psutil

        info: dict[str, Any] = {"nvidia_driver": None, "intel_modules": []}
        try:
            with open(NVIDIA_PROC_VERSION_PATH) as f:
                info["nvidia_driver"] = parse_nvidia_proc_version(f.read())
        except (FileNotFoundError, PermissionError):
            pass

        lsmod = self._run(["lsmod"])
        loaded = {line.split()[0] for line in lsmod.splitlines()[1:] if line.split()}
        info["intel_modules"] = [m for m in INTEL_KERNEL_MODULES if m in loaded]
        info["system_memory_mb"] = int(psutil.virtual_memory().total // (1024 * 1024))
        return info

    def combine(self, outcomes: dict[str, ProbeOutcome]) -> list[GPUDevice]:
        sources = [outcomes[k].value for k in ("nvml", "lspci") if k in outcomes and outcomes[k].ok]
        devices = merge_devices(*sources)
        proc = outcomes.get("proc")
        if proc is not None and proc.ok:
            for device in devices:
                self._apply_proc_info(device, proc.value)
        return devices

    def _apply_proc_info(self, device: GPUDevice, proc: dict[str, Any]) -> None:
        if device.vendor == "intel":
            modules: list[str] = proc.get("intel_modules", [])
            driver = device.platform_info.get("kernel_driver")
            if modules:
                device.platform_info["kernel_module"] = driver if driver in modules else modules[0]
            device.capabilities.openvino_compatible = (
                device.capabilities.openvino_compatible
                and device.has_known_driver
                and bool(modules)
            )
            if not device.has_numeric_memory and proc.get("system_memory_mb"):
                device.platform_info["system_memory_mb"] = proc["system_memory_mb"]
        elif device.vendor == "nvidia":
            # lspci reports the kernel module name ("nvidia") rather than a version
            if proc.get("nvidia_driver") and not device.driver_version[:1].isdigit():
                device.driver_version = proc["nvidia_driver"]

    def validate(self, device: GPUDevice) -> GPUDevice:
        if device.vendor != "intel":
            return device
        module = device.platform_info.get("kernel_module")
        if module is None and device.platform_info.get("kernel_driver") in INTEL_KERNEL_MODULES:
            module = device.platform_info["kernel_driver"]
            device.platform_info["kernel_module"] = module
        if not module:
            device.capabilities.openvino_compatible = False
        return device
