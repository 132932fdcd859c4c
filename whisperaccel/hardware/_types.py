"""Shared dataclasses for hardware detection."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")

Memory = Union[int, str]  # MB, or "shared"


@dataclass
class DeviceCapabilities:
    openvino_compatible: bool = False
    cuda_compatible: bool = False
    coreml_compatible: bool = False


@dataclass
class GPUDevice:
    id: str
    name: str
    type: str  # "discrete", "integrated"
    vendor: str  # "nvidia", "intel", "apple", "amd"
    device_id: str = "unknown"
    priority: int = 1
    driver_version: str = "unknown"
    memory: Memory = "shared"
    capabilities: DeviceCapabilities = field(default_factory=DeviceCapabilities)
    power_efficiency: str = "good"  # "excellent", "good", "moderate"
    performance: str = "medium"  # "high", "medium", "low"
    detection_method: str = "unknown"
    platform_info: dict[str, Any] = field(default_factory=dict)

    @property
    def has_numeric_memory(self) -> bool:
        return isinstance(self.memory, int)

    @property
    def has_known_driver(self) -> bool:
        return bool(self.driver_version) and self.driver_version != "unknown"


@dataclass(frozen=True)
class GPUClassification:
    type: str
    priority: int
    performance: str
    power_efficiency: str


@dataclass(frozen=True)
class OpenVINOValidation:
    version_valid: bool
    device_supported: bool
    runtime_available: bool
    model_format_supported: bool
    compatibility_score: int
    recommendations: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.compatibility_score >= 80 and not self.errors


@dataclass(frozen=True)
class RuntimeInfo:
    is_installed: bool
    version: str | None = None
    runtime_path: str | None = None
    supported_devices: list[str] = field(default_factory=list)
    model_formats: list[str] = field(default_factory=list)
    validation_status: str = "unknown"  # "valid", "invalid", "unknown"
    installation_method: str | None = None  # "package", "manual"
    detection_errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CoreUltraInfo:
    is_intel_core_ultra: bool
    has_integrated_graphics: bool = False
    cpu_brand: str = "unknown"
    cpu_manufacturer: str = "unknown"
    detection_method: str = "unknown"
    confidence: str = "low"  # "high", "medium", "low"


@dataclass(frozen=True)
class CudaInfo:
    version: str
    major_version: int
    minor_version: int
    driver_version: str | None = None
    supported: bool = True
    addon_name: str | None = None


@dataclass(frozen=True)
class DetectionResult(Generic[T]):
    success: bool
    data: T | None = None
    error: str | None = None
    timestamp: float = field(default_factory=time.time)
    detection_time_ms: float = 0.0
    diagnostics: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)  # failed probes


@dataclass(frozen=True)
class HardwareCapabilities:
    total_gpus: int = 0
    intel_gpus: list[GPUDevice] = field(default_factory=list)
    nvidia_gpus: list[GPUDevice] = field(default_factory=list)
    apple_gpus: list[GPUDevice] = field(default_factory=list)
    amd_gpus: list[GPUDevice] = field(default_factory=list)
    recommended_gpu: GPUDevice | None = None
    openvino_info: RuntimeInfo | None = None
    core_ultra: CoreUltraInfo | None = None
    detection_timestamp: float = 0.0
    detection_platform: str = "linux"  # "windows", "linux", "darwin"
    detection_success: bool = False
    detection_errors: list[str] = field(default_factory=list)

    @property
    def all_gpus(self) -> list[GPUDevice]:
        return [*self.nvidia_gpus, *self.intel_gpus, *self.apple_gpus, *self.amd_gpus]


@dataclass(frozen=True)
class DetectionEvent:
    type: str  # "detection_start", "detection_complete", "error"
    timestamp: float
    data: Any = None
    message: str | None = None
