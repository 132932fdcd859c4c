"""Hardware detection coordinator with a short-lived snapshot cache."""

from __future__ import annotations

import copy
import dataclasses
import logging
import sys
import threading
import time
from typing import Any, Callable

from ..config import EngineConfig
from ..errors import DetectionError, RuntimeUnavailableError
from ._base import PlatformDetector
from ._classifier import calculate_gpu_priority, classify_gpu_type, validate_model_compatibility
from ._coreultra import CoreUltraDetector
from ._mock import mock_core_ultra, mock_devices, mock_runtime
from ._openvino import OpenVINODetector, validate_openvino_version
from ._ranking import rank_devices, recommend_device
from ._types import (
    CoreUltraInfo,
    DetectionEvent,
    GPUDevice,
    HardwareCapabilities,
    OpenVINOValidation,
    RuntimeInfo,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[DetectionEvent], None]

_PLATFORM_NAMES = {"win32": "windows", "linux": "linux", "darwin": "darwin"}


def _require_runtime(info: RuntimeInfo, minimum: str) -> None:
    if not info.is_installed:
        raise RuntimeUnavailableError("OpenVINO runtime not installed")
    if info.validation_status == "invalid":
        raise RuntimeUnavailableError(
            f"OpenVINO {info.version or 'unknown'} is below the minimum version {minimum}"
        )


def _default_detector(platform_key: str, timeout: float) -> PlatformDetector:
    if platform_key == "windows":
        from ._windows import WindowsDetector

        return WindowsDetector(command_timeout=timeout)
    if platform_key == "darwin":
        from ._macos import MacOSDetector

        return MacOSDetector(command_timeout=timeout)
    from ._linux import LinuxDetector

    return LinuxDetector(command_timeout=timeout)


class HardwareDetector:
    """Owns the platform detectors, the OpenVINO probe and the snapshot cache.

    ``detect_available_gpus`` never raises; failures come back as a snapshot
    with ``detection_success=False``. Only successful snapshots are cached,
    and cache hits return a deep copy that keeps the original timestamp.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        platform: str | None = None,
        detector: PlatformDetector | None = None,
        runtime_detector: OpenVINODetector | None = None,
        core_ultra_detector: CoreUltraDetector | None = None,
    ) -> None:
        self.config = config or EngineConfig.from_env()
        self.platform = platform or sys.platform
        self._detector = detector
        self._runtime = runtime_detector or OpenVINODetector(
            timeout=self.config.runtime_timeout_s,
            min_version=self.config.min_openvino_version,
            platform=self.platform,
        )
        self._core_ultra = core_ultra_detector or CoreUltraDetector()
        self._cache: HardwareCapabilities | None = None
        self._cache_time: float = 0.0
        self._cache_lock = threading.Lock()
        self._detect_lock = threading.Lock()
        self._listeners: list[EventListener] = []

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def add_listener(self, listener: EventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, type_: str, data: Any = None, message: str | None = None) -> None:
        event = DetectionEvent(type=type_, timestamp=time.time(), data=data, message=message)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("detection listener failed on %s", type_)

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _cached(self) -> HardwareCapabilities | None:
        with self._cache_lock:
            if self._cache is None:
                return None
            if time.monotonic() - self._cache_time >= self.config.cache_ttl_s:
                return None
            return copy.deepcopy(self._cache)

    def cached_capabilities(self) -> HardwareCapabilities | None:
        """The cached snapshot if still fresh, without triggering detection."""
        return self._cached()

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache = None
            self._cache_time = 0.0

    def update_config(self, **changes: Any) -> None:
        """Replace config fields and drop the cached snapshot."""
        self.config = dataclasses.replace(self.config, **changes)
        self.clear_cache()

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect_available_gpus(self, force: bool = False) -> HardwareCapabilities:
        if not force:
            cached = self._cached()
            if cached is not None:
                return cached

        with self._detect_lock:
            if not force:
                cached = self._cached()
                if cached is not None:
                    return cached

            self._emit("detection_start")
            started = time.monotonic()
            try:
                snapshot = self._detect()
            except Exception as exc:
                logger.error("hardware detection failed: %s", exc)
                failed = HardwareCapabilities(
                    detection_timestamp=time.time(),
                    detection_platform=_PLATFORM_NAMES.get(self.platform, self.platform),
                    detection_success=False,
                    detection_errors=[str(exc)],
                )
                self._emit("error", data=copy.deepcopy(failed), message=str(exc))
                return failed

            with self._cache_lock:
                self._cache = snapshot
                self._cache_time = time.monotonic()

            logger.info(
                "detected %d GPU(s) in %.0f ms (recommended: %s)",
                snapshot.total_gpus,
                (time.monotonic() - started) * 1000,
                snapshot.recommended_gpu.name if snapshot.recommended_gpu else "none",
            )
            self._emit("detection_complete", data=copy.deepcopy(snapshot))
            return copy.deepcopy(snapshot)

    def _detect(self) -> HardwareCapabilities:
        platform_key = _PLATFORM_NAMES.get(self.platform)
        if platform_key is None:
            raise DetectionError(f"Unsupported platform: {self.platform}")

        errors: list[str] = []
        if self.config.mock_hardware:
            logger.info("using mock hardware")
            devices = mock_devices()
            core_ultra: CoreUltraInfo | None = mock_core_ultra()
        else:
            detector = self._detector or _default_detector(
                platform_key, self.config.command_timeout_s
            )
            result = detector.detect()
            if not result.success:
                raise DetectionError(result.error or "GPU detection failed")
            devices = list(result.data or [])
            errors.extend(result.warnings)
            core_ultra = self._core_ultra.detect()

        devices = [d for d in devices if self._vendor_enabled(d.vendor)]
        intel = rank_devices(d for d in devices if d.vendor == "intel")
        nvidia = rank_devices(d for d in devices if d.vendor == "nvidia")
        apple = rank_devices(d for d in devices if d.vendor == "apple")
        amd = rank_devices(d for d in devices if d.vendor == "amd")

        openvino_info: RuntimeInfo | None = None
        if intel and self.config.enable_openvino_validation:
            openvino_info = mock_runtime() if self.config.mock_hardware else self._runtime.detect()
            try:
                _require_runtime(openvino_info, self.config.min_openvino_version)
            except RuntimeUnavailableError as exc:
                logger.warning("%s; disabling OpenVINO on %d Intel GPU(s)", exc, len(intel))
                errors.append(str(exc))
                for device in intel:
                    device.capabilities.openvino_compatible = False

        return HardwareCapabilities(
            total_gpus=len(intel) + len(nvidia) + len(apple) + len(amd),
            intel_gpus=intel,
            nvidia_gpus=nvidia,
            apple_gpus=apple,
            amd_gpus=amd,
            recommended_gpu=recommend_device([*nvidia, *intel, *apple, *amd]),
            openvino_info=openvino_info,
            core_ultra=core_ultra,
            detection_timestamp=time.time(),
            detection_platform=platform_key,
            detection_success=True,
            detection_errors=errors,
        )

    def _vendor_enabled(self, vendor: str) -> bool:
        return {
            "intel": self.config.enable_intel,
            "nvidia": self.config.enable_nvidia,
            "apple": self.config.enable_apple,
            "amd": self.config.enable_amd,
        }.get(vendor, False)

    # ------------------------------------------------------------------
    # Secondary calls
    # ------------------------------------------------------------------

    def enumerate_compatible_gpus(self) -> list[GPUDevice]:
        """OpenVINO-capable Intel devices from the (cached) snapshot."""
        snapshot = self.detect_available_gpus()
        return [d for d in snapshot.intel_gpus if d.capabilities.openvino_compatible]

    def check_runtime_support(self) -> RuntimeInfo:
        if self.config.mock_hardware:
            return mock_runtime()
        return self._runtime.detect()

    def validate_compatibility(self, device: GPUDevice, model: str) -> OpenVINOValidation:
        return validate_model_compatibility(device, model)

    def validate_runtime_version(self, version: str | None) -> bool:
        return validate_openvino_version(version, self.config.min_openvino_version)

    @staticmethod
    def classify_type(name: str) -> str:
        return classify_gpu_type(name)

    @staticmethod
    def priority_of(name: str) -> int:
        return calculate_gpu_priority(name)


_detector: HardwareDetector | None = None


def get_detector() -> HardwareDetector:
    global _detector
    if _detector is None:
        _detector = HardwareDetector()
    return _detector


def reset_detector() -> None:
    global _detector
    _detector = None


def detect_available_gpus(force: bool = False) -> HardwareCapabilities:
    """One-liner API: detect GPUs and the OpenVINO runtime."""
    return get_detector().detect_available_gpus(force=force)
