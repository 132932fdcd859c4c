"""Canned hardware for development runs (``WHISPERACCEL_MOCK_HARDWARE=1``)."""

from __future__ import annotations

from ._base import make_device
from ._types import CoreUltraInfo, GPUDevice, RuntimeInfo

MOCK_OPENVINO_VERSION = "2024.6.0"


def mock_devices() -> list[GPUDevice]:
    specs = [
        ("mock-gpu-0", "Intel Arc A770 Graphics", "56a0", 16384),
        ("mock-gpu-1", "Intel Core Ultra 7 155H with Intel Arc Graphics", "7d55", "shared"),
    ]
    devices = []
    for device_id, name, hw_id, memory in specs:
        device = make_device(
            device_id,
            name,
            hw_id=hw_id,
            driver_version="32.0.101.6078",
            memory=memory,
            detection_method="mock",
            platform_info={"mock": True},
        )
        if device is not None:
            devices.append(device)
    return devices


def mock_runtime() -> RuntimeInfo:
    return RuntimeInfo(
        is_installed=True,
        version=MOCK_OPENVINO_VERSION,
        runtime_path="mock",
        supported_devices=["GPU", "CPU", "NPU"],
        model_formats=["ONNX", "IR"],
        validation_status="valid",
        installation_method="mock",
    )


def mock_core_ultra() -> CoreUltraInfo:
    return CoreUltraInfo(
        is_intel_core_ultra=True,
        has_integrated_graphics=True,
        cpu_brand="Intel(R) Core(TM) Ultra 7 155H",
        cpu_manufacturer="GenuineIntel",
        detection_method="mock",
        confidence="high",
    )
