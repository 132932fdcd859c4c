"""
whisperaccel: hardware detection and compute-backend selection.

Detects the GPUs present on the machine, picks the best processing
backend (CUDA, OpenVINO, CoreML or CPU) for a whisper model and loads the
matching native addon, falling back along a fixed chain when it can't.
"""

from __future__ import annotations

__version__ = "0.4.0"

from .addons import AddonInfo, AddonLoadState, AddonManager, DeviceConfig, LoadedAddon
from .config import EngineConfig
from .errors import (
    AddonEnvironmentError,
    AddonLoadError,
    DetectionError,
    FallbackExhaustedError,
    RuntimeUnavailableError,
    StructuralAddonError,
)
from .gpu_config import GPUConfiguration, SelectionSettings, determine_gpu_configuration
from .hardware import (
    GPUDevice,
    HardwareCapabilities,
    HardwareDetector,
    detect_available_gpus,
    get_detector,
    reset_detector,
)
from .selector import SelectionCapabilities, resolve_specific_gpu, select_optimal_backend

__all__ = [
    "AddonEnvironmentError",
    "AddonInfo",
    "AddonLoadError",
    "AddonLoadState",
    "AddonManager",
    "DetectionError",
    "DeviceConfig",
    "EngineConfig",
    "FallbackExhaustedError",
    "GPUConfiguration",
    "GPUDevice",
    "HardwareCapabilities",
    "HardwareDetector",
    "LoadedAddon",
    "RuntimeUnavailableError",
    "SelectionCapabilities",
    "SelectionSettings",
    "StructuralAddonError",
    "__version__",
    "detect_available_gpus",
    "determine_gpu_configuration",
    "get_detector",
    "reset_detector",
    "resolve_specific_gpu",
    "select_optimal_backend",
]
