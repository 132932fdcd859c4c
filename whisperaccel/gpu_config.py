"""Per-job GPU configuration: selection plus the parameters and environment it implies."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .addons.base import AddonInfo
from .addons.naming import cpu_addon_name
from .config import EngineConfig
from .hardware import HardwareCapabilities, HardwareDetector, get_detector
from .hardware._ranking import DEFAULT_VENDOR_PRIORITY
from .selector import (
    CudaProbe,
    SelectionCapabilities,
    memory_requirement_mb,
    resolve_specific_gpu,
    select_optimal_backend,
)

logger = logging.getLogger(__name__)


@dataclass
class SelectionSettings:
    """User GPU preferences as kept by the settings store."""

    selected_gpu_id: str = "auto"
    gpu_preference: list[str] = field(default_factory=lambda: list(DEFAULT_VENDOR_PRIORITY))

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> SelectionSettings:
        preference = settings.get("gpu_preference") or DEFAULT_VENDOR_PRIORITY
        return cls(
            selected_gpu_id=str(settings.get("selected_gpu_id") or "auto"),
            gpu_preference=[str(v) for v in preference],
        )


@dataclass(frozen=True)
class WhisperGPUParams:
    use_gpu: bool = False
    flash_attn: bool = False
    performance_mode: str = "balanced"  # "throughput", "latency", "balanced"
    openvino_device: str | None = None
    openvino_cache_dir: str | None = None
    openvino_enable_optimization: bool | None = None
    cuda_device: int | None = None
    coreml_enabled: bool | None = None

    def as_dict(self) -> dict[str, Any]:
        return {k: v for k, v in dataclasses.asdict(self).items() if v is not None}


@dataclass(frozen=True)
class PerformanceHints:
    expected_speedup: float
    memory_usage: str
    power_efficiency: str
    processing_priority: str


@dataclass
class GPUConfiguration:
    addon_info: AddonInfo
    whisper_params: WhisperGPUParams
    performance_hints: PerformanceHints
    environment_config: dict[str, str]
    capabilities: HardwareCapabilities | None = None


def _is_discrete(info: AddonInfo) -> bool:
    return info.device_config is not None and info.device_config.type == "discrete"


def whisper_params_for(info: AddonInfo, config: EngineConfig) -> WhisperGPUParams:
    if info.type == "openvino":
        return WhisperGPUParams(
            use_gpu=True,
            openvino_device=info.device_config.openvino_device if info.device_config else "GPU",
            openvino_cache_dir=str(config.openvino_cache_dir),
            openvino_enable_optimization=config.openvino_enable_optimizations,
            performance_mode="throughput" if _is_discrete(info) else "latency",
        )
    if info.type == "cuda":
        return WhisperGPUParams(use_gpu=True, cuda_device=0, flash_attn=True, performance_mode="throughput")
    if info.type == "coreml":
        return WhisperGPUParams(use_gpu=True, coreml_enabled=True, performance_mode="latency")
    return WhisperGPUParams()


def performance_hints_for(info: AddonInfo) -> PerformanceHints:
    if info.type == "openvino":
        if _is_discrete(info):
            return PerformanceHints(3.5, "medium", "good", "high")
        return PerformanceHints(2.5, "low", "excellent", "high")
    if info.type == "cuda":
        return PerformanceHints(4.0, "high", "moderate", "high")
    if info.type == "coreml":
        return PerformanceHints(2.8, "low", "excellent", "high")
    return PerformanceHints(1.0, "medium", "good", "normal")


def environment_config_for(info: AddonInfo, config: EngineConfig) -> dict[str, str]:
    if info.type != "openvino":
        return {}
    return {
        "OPENVINO_DEVICE_ID": info.device_config.openvino_device if info.device_config else "GPU",
        "OPENVINO_CACHE_DIR": str(config.openvino_cache_dir),
        "OPENVINO_ENABLE_OPTIMIZATIONS": "true" if config.openvino_enable_optimizations else "false",
        "OPENVINO_PERFORMANCE_HINT": "THROUGHPUT" if _is_discrete(info) else "LATENCY",
    }


def apply_environment_config(env: Mapping[str, str]) -> None:
    for key, value in env.items():
        os.environ[key] = value
        logger.debug("set %s=%s", key, value)


def validate_gpu_memory(info: AddonInfo, model: str) -> bool:
    """Whether the selected device has room for ``model``; CPU always does."""
    if info.type == "cpu" or info.device_config is None:
        return True
    required = memory_requirement_mb(model)
    memory = info.device_config.memory
    if info.device_config.type == "integrated" or not isinstance(memory, int):
        return required <= memory_requirement_mb("medium")
    return memory >= required


def _configuration(
    info: AddonInfo, config: EngineConfig, capabilities: HardwareCapabilities | None
) -> GPUConfiguration:
    return GPUConfiguration(
        addon_info=info,
        whisper_params=whisper_params_for(info, config),
        performance_hints=performance_hints_for(info),
        environment_config=environment_config_for(info, config),
        capabilities=capabilities,
    )


def determine_gpu_configuration(
    model: str,
    settings: SelectionSettings | None = None,
    detector: HardwareDetector | None = None,
    *,
    cuda_probe: CudaProbe | None = None,
    priority: Sequence[str] | None = None,
) -> GPUConfiguration:
    """Resolve the backend for one job: user override first, then auto selection.

    Any failure yields the emergency CPU configuration.
    """
    settings = settings or SelectionSettings()
    detector = detector or get_detector()
    config = detector.config

    try:
        snapshot = detector.detect_available_gpus()
        caps = SelectionCapabilities.from_snapshot(snapshot)

        info = None
        if settings.selected_gpu_id and settings.selected_gpu_id != "auto":
            info = resolve_specific_gpu(settings.selected_gpu_id, caps, cuda_probe=cuda_probe)
            if info is None:
                logger.warning(
                    "selected GPU %s not available, falling back to auto-selection",
                    settings.selected_gpu_id,
                )
        if info is None:
            info = select_optimal_backend(
                priority or settings.gpu_preference, caps, model, cuda_probe=cuda_probe
            )
    except Exception:
        logger.exception("GPU configuration failed, using CPU")
        emergency = AddonInfo(
            type="cpu",
            path=cpu_addon_name(),
            display_name="CPU Processing (Emergency Fallback)",
            fallback_reason="GPU configuration failed",
        )
        return _configuration(emergency, config, None)

    logger.info("GPU configuration: %s (%s)", info.type, info.display_name)
    return _configuration(info, config, snapshot)
