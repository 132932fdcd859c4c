"""Load native processing addons with validation and an ordered fallback chain."""

from __future__ import annotations

import enum
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from ..config import EngineConfig
from ..errors import (
    AddonEnvironmentError,
    AddonLoadError,
    FallbackExhaustedError,
    StructuralAddonError,
)
from ..hardware._cuda import check_cuda_support
from ..hardware._types import CudaInfo
from ..logging_utils import new_correlation_id
from .base import AddonInfo, AddonLoader, DeviceConfig, ExtensionModuleLoader, ProcessingFunction
from .naming import addon_name_for

logger = logging.getLogger(__name__)

CudaProbe = Callable[[], Optional[CudaInfo]]

_FALLBACK_ORDER: dict[str, tuple[str, ...]] = {
    "openvino": ("cuda", "coreml", "cpu"),
    "cuda": ("openvino", "coreml", "cpu"),
    "coreml": ("cuda", "openvino", "cpu"),
    "cpu": (),
}

_DISPLAY_NAMES = {
    "cuda": "NVIDIA CUDA GPU",
    "openvino": "Intel OpenVINO GPU",
    "coreml": "Apple Silicon (CoreML)",
    "cpu": "CPU Processing",
}

_VALIDATION_TIMEOUTS = {"openvino": 10.0}
_DEFAULT_VALIDATION_TIMEOUT = 5.0


class AddonLoadState(enum.Enum):
    SELECTING = "selecting"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"
    EXHAUSTED = "exhausted"


@dataclass
class LoadedAddon:
    process: ProcessingFunction
    type: str
    display_name: str
    device_config: DeviceConfig | None = None
    attempts: list[AddonInfo] = field(default_factory=list)


@dataclass(frozen=True)
class AddonPerformanceInfo:
    expected_performance: str
    power_efficiency: str
    memory_usage: str


def performance_hint_for(device_config: DeviceConfig | None) -> str:
    if device_config is not None and device_config.type == "discrete":
        return "THROUGHPUT"
    return "LATENCY"


def validate_addon_structure(module: Any, addon_type: str | None = None) -> ProcessingFunction:
    """Return the addon's ``whisper`` entry point or raise :class:`StructuralAddonError`."""
    if module is None:
        raise StructuralAddonError("Invalid addon structure: Missing exports", addon_type)
    process = getattr(module, "whisper", None)
    if process is None:
        raise StructuralAddonError("Invalid addon structure: Missing whisper function", addon_type)
    if not callable(process):
        raise StructuralAddonError("Invalid addon structure: Invalid whisper function", addon_type)
    return process


class AddonManager:
    """Loads the addon for a selected backend, walking the fallback chain on failure.

    ``state`` moves SELECTING -> LOADING -> LOADED, or through FAILED to the
    next candidate, ending in LOADED or EXHAUSTED.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        loader: AddonLoader | None = None,
        platform: str | None = None,
        cuda_probe: CudaProbe | None = None,
    ) -> None:
        self.config = config or EngineConfig.from_env()
        self.loader = loader or ExtensionModuleLoader()
        self.platform = platform
        self.state = AddonLoadState.SELECTING
        self._cuda_probe = cuda_probe or (lambda: check_cuda_support(platform))
        self._cuda_checked = False
        self._cuda: CudaInfo | None = None

    def cuda_info(self) -> CudaInfo | None:
        """CUDA probe result, queried once per manager."""
        if not self._cuda_checked:
            self._cuda_checked = True
            try:
                self._cuda = self._cuda_probe()
            except Exception as exc:
                logger.warning("CUDA probe failed: %s", exc)
        return self._cuda

    def _transition(self, state: AddonLoadState, cid: str, addon_type: str) -> None:
        logger.debug("[%s] %s: %s -> %s", cid, addon_type, self.state.value, state.value)
        self.state = state

    def resolve_addon_path(self, filename: str) -> Path:
        path = Path(filename)
        if not path.is_absolute():
            path = Path(self.config.addons_dir) / filename
        if not path.exists():
            logger.warning("addon not found at %s", path)
        return path

    def setup_runtime_environment(self, device_config: DeviceConfig | None) -> dict[str, str]:
        """Export the OpenVINO device, cache dir and performance hint. Never raises."""
        if device_config is None:
            env = {"OPENVINO_DEVICE_ID": "CPU"}
            os.environ.update(env)
            return env

        cache_dir = Path(self.config.openvino_cache_dir).expanduser()
        try:
            cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("cannot create OpenVINO cache dir %s: %s", cache_dir, exc)

        env = {
            "OPENVINO_DEVICE_ID": device_config.openvino_device,
            "OPENVINO_CACHE_DIR": str(cache_dir),
            "OPENVINO_ENABLE_OPTIMIZATIONS": "true" if self.config.openvino_enable_optimizations else "false",
            "OPENVINO_PERFORMANCE_HINT": performance_hint_for(device_config),
        }
        os.environ.update(env)
        logger.debug("openvino environment: %s", env)
        return env

    def _check_binary(self, path: Path, addon_type: str) -> None:
        try:
            size = path.stat().st_size
        except FileNotFoundError as exc:
            raise AddonEnvironmentError(f"{addon_type} addon not found: {path}", addon_type) from exc
        except OSError as exc:
            raise AddonEnvironmentError(f"{addon_type} addon unreadable: {path}: {exc}", addon_type) from exc
        if size == 0:
            raise AddonEnvironmentError(f"{addon_type} addon is empty: {path}", addon_type)

    def _validate_function(self, process: ProcessingFunction, addon_type: str) -> None:
        """Smoke-call the entry point with an empty model.

        Complaints about the model or file are expected and accepted. The call
        runs on a daemon thread and is abandoned, still running, at the timeout.
        """
        timeout = _VALIDATION_TIMEOUTS.get(addon_type, _DEFAULT_VALIDATION_TIMEOUT)
        outcome: list[BaseException | None] = []

        def call() -> None:
            try:
                process({"model": "", "validate_only": True})
            except Exception as exc:
                outcome.append(exc)
            else:
                outcome.append(None)

        worker = threading.Thread(target=call, name=f"addon-validate-{addon_type}", daemon=True)
        worker.start()
        worker.join(timeout)
        if worker.is_alive():
            logger.warning("%s validation call still running after %gs, abandoning it", addon_type, timeout)
            raise StructuralAddonError(f"{addon_type} addon validation timed out after {timeout:g}s", addon_type)

        exc = outcome[0] if outcome else None
        if exc is None:
            return
        message = str(exc).lower()
        if "model" in message or "file" in message:
            logger.debug("%s validation call rejected empty model: %s", addon_type, exc)
            return
        raise StructuralAddonError(f"{addon_type} addon failed validation: {exc}", addon_type) from exc

    def _wrap_openvino(
        self, process: ProcessingFunction, device_config: DeviceConfig | None
    ) -> ProcessingFunction:
        injected = {
            "openvino_device": device_config.openvino_device if device_config else "CPU",
            "openvino_cache_dir": str(Path(self.config.openvino_cache_dir).expanduser()),
            "openvino_performance_hint": performance_hint_for(device_config),
        }

        def run(params: dict) -> Any:
            return process({**params, **injected})

        return run

    def load_and_validate(self, info: AddonInfo) -> ProcessingFunction:
        """Load one addon and return its processing function.

        Raises :class:`AddonEnvironmentError` for missing or broken binaries
        and :class:`StructuralAddonError` for a missing or unusable entry point.
        """
        path = self.resolve_addon_path(info.path)
        if info.type == "openvino":
            self.setup_runtime_environment(info.device_config)
        self._check_binary(path, info.type)

        try:
            module = self.loader.load(path)
        except AddonLoadError:
            raise
        except Exception as exc:
            raise AddonEnvironmentError(
                f"Failed to load {info.type} addon from {path}: {exc}", info.type
            ) from exc

        process = validate_addon_structure(module, info.type)
        if info.type != "coreml":
            self._validate_function(process, info.type)
        if info.type == "openvino":
            process = self._wrap_openvino(process, info.device_config)
        logger.info("loaded %s addon from %s", info.type, path)
        return process

    def build_fallback_chain(self, info: AddonInfo) -> list[AddonInfo]:
        """Candidates tried after ``info`` fails. CUDA entries use the versioned addon name."""
        return [
            AddonInfo(
                type=addon_type,
                path=addon_name_for(
                    addon_type, self.platform, cuda_info=self.cuda_info() if addon_type == "cuda" else None
                ),
                display_name=_DISPLAY_NAMES[addon_type],
                fallback_reason=f"{info.type} addon failed to load",
            )
            for addon_type in _FALLBACK_ORDER.get(info.type, ("cpu",))
        ]

    def recover_from_load_failure(
        self,
        error: BaseException,
        primary: AddonInfo,
        chain: list[AddonInfo],
        cid: str | None = None,
    ) -> LoadedAddon:
        cid = cid or new_correlation_id()
        errors: list[BaseException] = [error]
        if not chain:
            self._transition(AddonLoadState.EXHAUSTED, cid, primary.type)
            raise FallbackExhaustedError("No fallback options available", errors, primary.type)

        attempts = [primary]
        for candidate in chain:
            attempts.append(candidate)
            self._transition(AddonLoadState.LOADING, cid, candidate.type)
            try:
                process = self.load_and_validate(candidate)
            except AddonLoadError as exc:
                logger.warning("[%s] fallback %s failed: %s", cid, candidate.type, exc)
                errors.append(exc)
                self._transition(AddonLoadState.FAILED, cid, candidate.type)
                continue
            self._transition(AddonLoadState.LOADED, cid, candidate.type)
            logger.info("[%s] recovered with %s after %s failed", cid, candidate.type, primary.type)
            return LoadedAddon(
                process=process,
                type=candidate.type,
                display_name=candidate.display_name,
                device_config=candidate.device_config,
                attempts=attempts,
            )

        self._transition(AddonLoadState.EXHAUSTED, cid, primary.type)
        raise FallbackExhaustedError("All fallback options exhausted", errors, primary.type)

    def load_with_fallback(self, info: AddonInfo) -> LoadedAddon:
        cid = new_correlation_id()
        self._transition(AddonLoadState.LOADING, cid, info.type)
        try:
            process = self.load_and_validate(info)
        except AddonLoadError as exc:
            self._transition(AddonLoadState.FAILED, cid, info.type)
            if info.type == "cpu":
                logger.error("[%s] CPU addon failed to load, the install is incomplete: %s", cid, exc)
            else:
                logger.warning("[%s] %s addon failed: %s", cid, info.type, exc)
            return self.recover_from_load_failure(exc, info, self.build_fallback_chain(info), cid)

        self._transition(AddonLoadState.LOADED, cid, info.type)
        return LoadedAddon(
            process=process,
            type=info.type,
            display_name=info.display_name,
            device_config=info.device_config,
            attempts=[info],
        )

    def get_addon_performance_info(self, info: AddonInfo) -> AddonPerformanceInfo:
        if info.type == "openvino":
            if info.device_config is not None and info.device_config.type == "discrete":
                return AddonPerformanceInfo("high", "moderate", "medium")
            return AddonPerformanceInfo("medium", "excellent", "low")
        if info.type == "cuda":
            return AddonPerformanceInfo("high", "moderate", "high")
        if info.type == "coreml":
            return AddonPerformanceInfo("high", "excellent", "low")
        return AddonPerformanceInfo("low", "good", "medium")
