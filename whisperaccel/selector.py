"""Compute-backend selection from a hardware capability snapshot."""

from __future__ import annotations

import logging
import re
import sys
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .addons.base import AddonInfo, DeviceConfig
from .addons.naming import coreml_addon_name, cpu_addon_name, cuda_addon_name, openvino_addon_name
from .hardware._cuda import check_cuda_support
from .hardware._macos import is_apple_silicon
from .hardware._ranking import DEFAULT_VENDOR_PRIORITY, pick_nvidia_device, rank_devices
from .hardware._types import CudaInfo, GPUDevice, HardwareCapabilities
from .logging_utils import new_correlation_id

logger = logging.getLogger(__name__)

CudaProbe = Callable[[], Optional[CudaInfo]]

# ---------------------------------------------------------------------------
# Memory / model compatibility
# ---------------------------------------------------------------------------

MODEL_MEMORY_REQUIREMENTS: dict[str, int] = {
    "tiny": 1024,
    "base": 1024,
    "small": 2048,
    "medium": 3072,
    "large": 6400,
    "large-v1": 6400,
    "large-v2": 6400,
    "large-v3": 6400,
}
DEFAULT_MEMORY_REQUIREMENT = 2048

SHARED_MEMORY_MODELS = ("tiny", "base", "small", "medium")

_QUANTIZED_RE = re.compile(r"^(?P<base>.+?)-q\d+_\d+$", re.IGNORECASE)


def base_model(model: str) -> str:
    """``large-v3-q5_0`` -> ``large-v3``, ``small.en`` -> ``small``."""
    name = model.strip().lower()
    match = _QUANTIZED_RE.match(name)
    if match:
        name = match.group("base")
    if name.endswith(".en"):
        name = name[:-3]
    return name


def model_size_class(model: str) -> str | None:
    base = base_model(model)
    if base.startswith("large"):
        return "large"
    if base in MODEL_MEMORY_REQUIREMENTS:
        return base
    return None


def memory_requirement_mb(model: str) -> int:
    base = base_model(model)
    if base in MODEL_MEMORY_REQUIREMENTS:
        return MODEL_MEMORY_REQUIREMENTS[base]
    if model_size_class(model) == "large":
        return MODEL_MEMORY_REQUIREMENTS["large"]
    return DEFAULT_MEMORY_REQUIREMENT


def fits_memory(device: GPUDevice, model: str) -> bool:
    """Shared-memory devices serve up to ``medium``; unknown models are allowed."""
    if not isinstance(device.memory, int):
        size = model_size_class(model)
        return size is None or size in SHARED_MEMORY_MODELS
    return device.memory >= memory_requirement_mb(model)


def validate_model_support(addon_type: str, model: str) -> bool:
    if model_size_class(model) is None:
        logger.warning("unknown model %r for %s, assuming supported", model, addon_type)
        return True
    if _QUANTIZED_RE.match(model.strip()):
        logger.debug("quantized model %s resolves to %s", model, base_model(model))
    return True


# ---------------------------------------------------------------------------
# Selection input
# ---------------------------------------------------------------------------


@dataclass
class SelectionCapabilities:
    nvidia: bool = False
    nvidia_devices: list[GPUDevice] = field(default_factory=list)
    intel: list[GPUDevice] = field(default_factory=list)  # OpenVINO-usable
    intel_all: list[GPUDevice] = field(default_factory=list)
    apple: bool = False
    cpu: bool = True
    openvino_version: str | None = None
    multi_gpu: bool = False
    hybrid_system: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: HardwareCapabilities) -> SelectionCapabilities:
        usable = [d for d in snapshot.intel_gpus if d.capabilities.openvino_compatible]
        runtime = snapshot.openvino_info
        version = None
        if runtime is not None and runtime.is_installed and runtime.validation_status != "invalid":
            version = runtime.version
        nvidia = bool(snapshot.nvidia_gpus)
        return cls(
            nvidia=nvidia,
            nvidia_devices=list(snapshot.nvidia_gpus),
            intel=usable,
            intel_all=list(snapshot.intel_gpus),
            apple=bool(snapshot.apple_gpus),
            openvino_version=version,
            multi_gpu=snapshot.total_gpus > 1,
            hybrid_system=nvidia and bool(usable),
        )

    @property
    def has_gpu(self) -> bool:
        return self.nvidia or bool(self.intel_all) or self.apple


def _vendor_name(vendor: str, name: str) -> str:
    return name if name.lower().startswith(vendor.lower()) else f"{vendor} {name}"


def openvino_device_name(device: GPUDevice, intel_devices: Sequence[GPUDevice]) -> str:
    """``GPU`` for a lone Intel GPU, otherwise ``GPU.N``.

    OpenVINO numbers integrated GPUs before discrete ones.
    """
    if len(intel_devices) <= 1:
        return "GPU"
    ordered = sorted(intel_devices, key=lambda d: d.type != "integrated")
    for index, candidate in enumerate(ordered):
        if candidate.id == device.id:
            return f"GPU.{index}"
    return "GPU"


def _device_config(device: GPUDevice | None, openvino_device: str = "GPU") -> DeviceConfig | None:
    if device is None:
        return None
    return DeviceConfig(
        device_id=device.id, memory=device.memory, type=device.type, openvino_device=openvino_device
    )


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


class _Attempt:
    """Per-call selection state; runtime probes run at most once."""

    def __init__(
        self,
        capabilities: SelectionCapabilities,
        model: str,
        cuda_probe: CudaProbe,
        apple_silicon: Callable[[], bool],
        platform: str,
        correlation_id: str,
    ) -> None:
        self.caps = capabilities
        self.model = model
        self.platform = platform
        self.cid = correlation_id
        self.reasons: list[str] = []
        self._cuda_probe = cuda_probe
        self._cuda_checked = False
        self._cuda: CudaInfo | None = None
        self._apple_silicon = apple_silicon

    def _reject(self, vendor: str, reason: str) -> None:
        logger.debug("[%s] %s rejected: %s", self.cid, vendor, reason)
        self.reasons.append(f"{vendor}: {reason}")

    def cuda(self) -> CudaInfo | None:
        if not self._cuda_checked:
            self._cuda_checked = True
            try:
                self._cuda = self._cuda_probe()
            except Exception as exc:
                logger.warning("[%s] CUDA probe failed: %s", self.cid, exc)
                self._cuda = None
        return self._cuda

    def _first_fitting(self, candidates: list[GPUDevice]) -> GPUDevice | None:
        for device in candidates:
            if fits_memory(device, self.model):
                return device
        return None

    def try_vendor(self, vendor: str) -> AddonInfo | None:
        if vendor == "nvidia":
            return self._try_nvidia()
        if vendor == "intel":
            return self._try_intel()
        if vendor == "apple":
            return self._try_apple()
        if vendor == "cpu":
            return AddonInfo(
                type="cpu",
                path=cpu_addon_name(self.platform),
                display_name="CPU Processing",
                fallback_reason=self.cpu_reason(),
            )
        logger.warning("[%s] unknown GPU type in priority list: %s", self.cid, vendor)
        return None

    def _try_nvidia(self) -> AddonInfo | None:
        if not self.caps.nvidia:
            self._reject("nvidia", "no NVIDIA GPU detected")
            return None

        device = None
        if self.caps.nvidia_devices:
            preferred = pick_nvidia_device(self.caps.nvidia_devices)
            others = [d for d in rank_devices(self.caps.nvidia_devices) if d is not preferred]
            device = self._first_fitting([preferred, *others])
            if device is None:
                self._reject("nvidia", f"insufficient memory for {self.model}")
                return None

        if not validate_model_support("cuda", self.model):
            self._reject("nvidia", f"model {self.model} not supported")
            return None

        cuda = self.cuda()
        if cuda is None or not cuda.supported:
            self._reject("nvidia", "CUDA runtime unavailable")
            return None

        name = _vendor_name("NVIDIA", device.name) if device else "NVIDIA CUDA GPU"
        return AddonInfo(
            type="cuda",
            path=cuda_addon_name(self.platform, cuda),
            display_name=f"{name} (CUDA {cuda.version})",
            device_config=_device_config(device),
        )

    def _try_intel(self) -> AddonInfo | None:
        if not self.caps.intel:
            self._reject("intel", "no OpenVINO-compatible Intel GPU")
            return None
        if not self.caps.openvino_version:
            self._reject("intel", "OpenVINO runtime not detected")
            return None
        device = self._first_fitting(rank_devices(self.caps.intel))
        if device is None:
            self._reject("intel", f"insufficient memory for {self.model}")
            return None
        if not validate_model_support("openvino", self.model):
            self._reject("intel", f"model {self.model} not supported")
            return None
        return AddonInfo(
            type="openvino",
            path=openvino_addon_name(self.platform),
            display_name=_vendor_name("Intel", device.name),
            device_config=_device_config(device, openvino_device_name(device, self.caps.intel)),
        )

    def _try_apple(self) -> AddonInfo | None:
        if not self.caps.apple:
            self._reject("apple", "no Apple GPU detected")
            return None
        if not self._apple_silicon():
            self._reject("apple", "Apple Silicon required for CoreML")
            return None
        if not validate_model_support("coreml", self.model):
            self._reject("apple", f"model {self.model} not supported")
            return None
        return AddonInfo(
            type="coreml",
            path=coreml_addon_name(self.platform),
            display_name="Apple Silicon (CoreML)",
        )

    def cpu_reason(self) -> str | None:
        if self.reasons:
            return "; ".join(self.reasons)
        if not self.caps.has_gpu:
            return "No compatible GPU detected"
        return None

    def emergency_cpu(self) -> AddonInfo:
        logger.warning("[%s] no backend in priority list succeeded: %s", self.cid, self.reasons)
        return AddonInfo(
            type="cpu",
            path=cpu_addon_name(self.platform),
            display_name="CPU Processing (Emergency Fallback)",
            fallback_reason="All GPU acceleration methods unavailable",
        )


def select_optimal_backend(
    priority: Sequence[str] | None,
    capabilities: SelectionCapabilities,
    model: str,
    *,
    cuda_probe: CudaProbe | None = None,
    apple_silicon: Callable[[], bool] | None = None,
    platform: str | None = None,
) -> AddonInfo:
    """Pick the backend for ``model``. Always returns a descriptor.

    A machine with both NVIDIA and usable Intel GPUs tries NVIDIA first
    whatever the priority says. Vendors whose runtime probe fails at
    selection time are skipped.
    """
    attempt = _Attempt(
        capabilities,
        model,
        cuda_probe or check_cuda_support,
        apple_silicon or is_apple_silicon,
        platform or sys.platform,
        new_correlation_id(),
    )
    order = list(priority or DEFAULT_VENDOR_PRIORITY)
    logger.info("[%s] selecting backend for %s, priority=%s", attempt.cid, model, order)

    if capabilities.nvidia and capabilities.intel:
        info = attempt.try_vendor("nvidia")
        if info is not None:
            logger.info("[%s] hybrid system: NVIDIA preferred over Intel", attempt.cid)
            return info
        order = [v for v in order if v != "nvidia"]

    for vendor in order:
        info = attempt.try_vendor(vendor)
        if info is not None:
            logger.info("[%s] selected %s (%s)", attempt.cid, info.type, info.display_name)
            return info

    return attempt.emergency_cpu()


def resolve_specific_gpu(
    gpu_id: str | None,
    capabilities: SelectionCapabilities,
    *,
    platform: str | None = None,
    cuda_probe: CudaProbe | None = None,
) -> AddonInfo | None:
    """Descriptor for a user-chosen device, or ``None`` for ``"auto"`` / absent devices.

    NVIDIA choices use the same versioned CUDA addon as automatic selection.
    """
    if not gpu_id or gpu_id == "auto":
        return None
    platform = platform or sys.platform

    def cuda_path() -> str:
        probe = cuda_probe or (lambda: check_cuda_support(platform))
        try:
            cuda = probe()
        except Exception as exc:
            logger.warning("CUDA probe failed: %s", exc)
            cuda = None
        return cuda_addon_name(platform, cuda)

    lower = gpu_id.lower()

    for device in capabilities.nvidia_devices:
        if device.id == gpu_id:
            return AddonInfo(
                type="cuda",
                path=cuda_path(),
                display_name=f"{device.name} (User Selected)",
                device_config=_device_config(device),
            )

    for device in capabilities.intel_all:
        if device.id == gpu_id:
            if not capabilities.openvino_version or not device.capabilities.openvino_compatible:
                logger.warning("selected Intel GPU %s is not usable with OpenVINO", gpu_id)
                return None
            return AddonInfo(
                type="openvino",
                path=openvino_addon_name(platform),
                display_name=f"{_vendor_name('Intel', device.name)} (User Selected)",
                device_config=_device_config(device, openvino_device_name(device, capabilities.intel)),
            )

    if "nvidia" in lower and capabilities.nvidia:
        device = pick_nvidia_device(capabilities.nvidia_devices)
        return AddonInfo(
            type="cuda",
            path=cuda_path(),
            display_name="NVIDIA CUDA GPU (User Selected)",
            device_config=_device_config(device),
        )
    if "intel" in lower and capabilities.intel and capabilities.openvino_version:
        device = rank_devices(capabilities.intel)[0]
        return AddonInfo(
            type="openvino",
            path=openvino_addon_name(platform),
            display_name=f"{_vendor_name('Intel', device.name)} (User Selected)",
            device_config=_device_config(device, openvino_device_name(device, capabilities.intel)),
        )
    if "apple" in lower and capabilities.apple:
        return AddonInfo(
            type="coreml",
            path=coreml_addon_name(platform),
            display_name="Apple Silicon (User Selected)",
        )
    if "cpu" in lower:
        return AddonInfo(
            type="cpu",
            path=cpu_addon_name(platform),
            display_name="CPU Processing (User Selected)",
        )

    logger.warning("selected GPU %s is not available", gpu_id)
    return None
