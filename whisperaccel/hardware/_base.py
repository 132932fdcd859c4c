"""Platform detector base class, probe fan-out and device merge helpers."""

from __future__ import annotations

import abc
import logging
import re
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable

from ..errors import DetectionError
from ._classifier import classify_gpu, determine_vendor
from ._types import DetectionResult, DeviceCapabilities, GPUDevice, Memory

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 15.0


def run_command(cmd: list[str], timeout: float = DEFAULT_COMMAND_TIMEOUT) -> str:
    """Run an OS tool and return its stdout.

    Raises :class:`DetectionError` when the tool is missing, times out or
    exits non-zero.
    """
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise DetectionError(f"{cmd[0]} not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise DetectionError(f"{cmd[0]} timed out after {timeout:g}s") from exc
    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise DetectionError(f"{cmd[0]} exited with {result.returncode}: {stderr}")
    return result.stdout


@dataclass(frozen=True)
class ProbeOutcome:
    name: str
    ok: bool
    value: Any = None
    error: str | None = None
    elapsed_ms: float = 0.0


def run_probes(probes: dict[str, Callable[[], Any]]) -> dict[str, ProbeOutcome]:
    """Run independent probes concurrently and join all of them.

    A probe that raises is recorded as a failed outcome; the others are
    unaffected. Probes are expected to time-box their own external calls.
    """
    outcomes: dict[str, ProbeOutcome] = {}
    if not probes:
        return outcomes

    started: dict[str, float] = {}
    with ThreadPoolExecutor(max_workers=len(probes)) as pool:
        futures = {}
        for name, fn in probes.items():
            started[name] = time.monotonic()
            futures[pool.submit(fn)] = name
        for future in as_completed(futures):
            name = futures[future]
            elapsed = (time.monotonic() - started[name]) * 1000
            try:
                value = future.result()
                outcomes[name] = ProbeOutcome(name, True, value=value, elapsed_ms=elapsed)
            except Exception as exc:
                logger.debug("probe %s failed: %s", name, exc)
                outcomes[name] = ProbeOutcome(name, False, error=str(exc), elapsed_ms=elapsed)
    return outcomes


def vendor_capabilities(vendor: str) -> DeviceCapabilities:
    """Initial capability flags; each runtime is gated to its own vendor."""
    return DeviceCapabilities(
        openvino_compatible=vendor == "intel",
        cuda_compatible=vendor == "nvidia",
        coreml_compatible=vendor == "apple",
    )


def make_device(
    device_id: str,
    name: str,
    *,
    hw_id: str = "unknown",
    driver_version: str = "unknown",
    memory: Memory = "shared",
    detection_method: str = "unknown",
    platform_info: dict[str, Any] | None = None,
) -> GPUDevice | None:
    """Normalize a raw record; returns ``None`` for unknown vendors."""
    vendor = determine_vendor(name)
    if vendor is None:
        logger.debug("discarding device with unknown vendor: %r", name)
        return None
    cls = classify_gpu(name)
    return GPUDevice(
        id=device_id,
        name=name,
        type=cls.type,
        vendor=vendor,
        device_id=hw_id or "unknown",
        priority=cls.priority,
        driver_version=driver_version or "unknown",
        memory=memory,
        capabilities=vendor_capabilities(vendor),
        power_efficiency=cls.power_efficiency,
        performance=cls.performance,
        detection_method=detection_method,
        platform_info=dict(platform_info or {}),
    )


def parse_memory_mb(raw: str | int | None) -> Memory:
    """Turn a memory string (``"8192"``, ``"8 GB"``, ``"512 MB"``) into MB or ``"shared"``."""
    if raw is None:
        return "shared"
    if isinstance(raw, int):
        return raw if raw > 0 else "shared"
    text = raw.strip().lower()
    if not text or "shared" in text:
        return "shared"
    match = re.search(r"(\d+(?:\.\d+)?)\s*(mb|gb)?", text)
    if not match:
        return "shared"
    value = float(match.group(1))
    if match.group(2) == "gb":
        value *= 1024
    mb = int(value)
    return mb if mb > 0 else "shared"


def same_device(a: GPUDevice, b: GPUDevice) -> bool:
    if a.name.strip().lower() == b.name.strip().lower():
        return True
    if a.device_id != "unknown" and a.device_id == b.device_id:
        return True
    bus_a = a.platform_info.get("pci_bus")
    return bool(bus_a) and bus_a == b.platform_info.get("pci_bus")


def fill_missing(target: GPUDevice, source: GPUDevice) -> None:
    """Copy the fields ``target`` lacks from ``source``."""
    if not target.has_known_driver and source.has_known_driver:
        target.driver_version = source.driver_version
    if not target.has_numeric_memory and source.has_numeric_memory:
        target.memory = source.memory
    if target.device_id == "unknown" and source.device_id != "unknown":
        target.device_id = source.device_id
    for key, value in source.platform_info.items():
        target.platform_info.setdefault(key, value)


def merge_devices(*sources: list[GPUDevice]) -> list[GPUDevice]:
    """Merge per-source device lists; the first source to report a device owns it."""
    merged: list[GPUDevice] = []
    for devices in sources:
        for device in devices:
            existing = next((d for d in merged if same_device(d, device)), None)
            if existing is None:
                merged.append(device)
            else:
                fill_missing(existing, device)
    return merged


class PlatformDetector(abc.ABC):
    """Base class for per-OS GPU detectors.

    Subclasses declare their probes and how to combine the probe outputs;
    :meth:`detect` fans the probes out and never raises.
    """

    def __init__(self, command_timeout: float = DEFAULT_COMMAND_TIMEOUT) -> None:
        self.command_timeout = command_timeout

    @property
    @abc.abstractmethod
    def name(self) -> str: ...

    @abc.abstractmethod
    def probes(self) -> dict[str, Callable[[], Any]]: ...

    @abc.abstractmethod
    def combine(self, outcomes: dict[str, ProbeOutcome]) -> list[GPUDevice]: ...

    def validate(self, device: GPUDevice) -> GPUDevice:
        """Platform-specific capability downgrades. Default: unchanged."""
        return device

    def _run(self, cmd: list[str]) -> str:
        return run_command(cmd, timeout=self.command_timeout)

    def detect(self) -> DetectionResult[list[GPUDevice]]:
        start = time.monotonic()
        diagnostics: list[str] = []
        warnings: list[str] = []
        try:
            outcomes = run_probes(self.probes())
            for key in sorted(outcomes):
                outcome = outcomes[key]
                if outcome.ok:
                    count = len(outcome.value) if isinstance(outcome.value, list) else None
                    suffix = f" ({count} device(s))" if count is not None else ""
                    diagnostics.append(f"{self.name}/{outcome.name}: ok{suffix}")
                else:
                    message = f"{self.name}/{outcome.name}: {outcome.error}"
                    diagnostics.append(message)
                    warnings.append(message)

            if outcomes and not any(o.ok for o in outcomes.values()):
                raise DetectionError("all detection probes failed")

            devices = [self.validate(d) for d in self.combine(outcomes)]
        except Exception as exc:
            logger.warning("%s detection failed: %s", self.name, exc)
            return DetectionResult(
                success=False,
                error=str(exc),
                detection_time_ms=(time.monotonic() - start) * 1000,
                diagnostics=diagnostics,
                warnings=warnings,
            )

        logger.debug("%s detection found %d device(s)", self.name, len(devices))
        return DetectionResult(
            success=True,
            data=devices,
            detection_time_ms=(time.monotonic() - start) * 1000,
            diagnostics=diagnostics,
            warnings=warnings,
        )


def normalize_pci_bus(bus_id: str) -> str:
    """``"00000000:01:00.0"`` and ``"01:00.0"`` both become ``"01:00.0"``."""
    parts = bus_id.strip().lower().split(":")
    return ":".join(parts[-2:])
