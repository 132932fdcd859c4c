"""Hardware detection subsystem for whisperaccel.

Enumerates GPUs per platform, classifies them, probes the OpenVINO runtime
and caches the resulting capability snapshot.
"""

from __future__ import annotations

from ._classifier import (
    calculate_gpu_priority,
    classify_gpu,
    classify_gpu_type,
    validate_model_compatibility,
)
from ._cuda import check_cuda_support
from ._openvino import OpenVINODetector, compare_versions, validate_openvino_version
from ._types import (
    CoreUltraInfo,
    CudaInfo,
    DetectionEvent,
    DetectionResult,
    DeviceCapabilities,
    GPUClassification,
    GPUDevice,
    HardwareCapabilities,
    OpenVINOValidation,
    RuntimeInfo,
)
from ._unified import HardwareDetector, detect_available_gpus, get_detector, reset_detector

__all__ = [
    "CoreUltraInfo",
    "CudaInfo",
    "DetectionEvent",
    "DetectionResult",
    "DeviceCapabilities",
    "GPUClassification",
    "GPUDevice",
    "HardwareCapabilities",
    "HardwareDetector",
    "OpenVINODetector",
    "OpenVINOValidation",
    "RuntimeInfo",
    "calculate_gpu_priority",
    "check_cuda_support",
    "classify_gpu",
    "classify_gpu_type",
    "compare_versions",
    "detect_available_gpus",
    "get_detector",
    "reset_detector",
    "validate_model_compatibility",
    "validate_openvino_version",
]
