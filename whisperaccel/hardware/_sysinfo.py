"""Cross-platform GPU probe through NVML (``nvidia-ml-py``)."""

from __future__ import annotations

import logging

from ._base import make_device, normalize_pci_bus
from ._types import GPUDevice

logger = logging.getLogger(__name__)


def _text(value: object) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


def nvml_devices(id_prefix: str = "nvml-gpu") -> list[GPUDevice]:
    """Enumerate NVIDIA devices with exact VRAM, driver version and PCI bus id."""
    import pynvml

    pynvml.nvmlInit()
    try:
        driver_version = _text(pynvml.nvmlSystemGetDriverVersion())
        devices: list[GPUDevice] = []
        for index in range(pynvml.nvmlDeviceGetCount()):
            handle = pynvml.nvmlDeviceGetHandleByIndex(index)
            name = _text(pynvml.nvmlDeviceGetName(handle))
            mem = pynvml.nvmlDeviceGetMemoryInfo(handle)
            pci = pynvml.nvmlDeviceGetPciInfo(handle)
            device = make_device(
                f"{id_prefix}-{index}",
                name,
                hw_id=f"{pci.pciDeviceId >> 16:04x}",
                driver_version=driver_version,
                memory=int(mem.total // (1024 * 1024)),
                detection_method="nvml",
                platform_info={
                    "nvml_index": index,
                    "pci_bus": normalize_pci_bus(_text(pci.busId)),
                },
            )
            if device is not None:
                devices.append(device)
    finally:
        pynvml.nvmlShutdown()

    logger.debug("nvml: %d device(s)", len(devices))
    return devices
