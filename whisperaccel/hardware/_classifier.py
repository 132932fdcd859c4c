"""GPU name classification: vendor, device type, priority, performance and power class."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from ._types import GPUClassification, GPUDevice, OpenVINOValidation

logger = logging.getLogger(__name__)

_ARC_PATTERNS = (
    re.compile(r"Intel\s*Arc\s*A\d+", re.IGNORECASE),
    re.compile(r"Arc\s*A\d+", re.IGNORECASE),
    re.compile(r"Intel.*Arc.*Graphics", re.IGNORECASE),
)

_CORE_ULTRA_PATTERNS = (
    re.compile(r"Intel\s*Core\s*Ultra.*Arc.*Graphics", re.IGNORECASE),
    re.compile(r"Core\s*Ultra.*Intel\s*Arc", re.IGNORECASE),
    re.compile(r"Intel\s*Core\s*Ultra.*Integrated.*graphic", re.IGNORECASE),
)

_INTEL_INTEGRATED_PATTERNS = (
    re.compile(r"Intel.*Xe.*Graphics", re.IGNORECASE),
    re.compile(r"Intel.*Iris.*Xe", re.IGNORECASE),
    re.compile(r"Intel.*UHD.*Graphics", re.IGNORECASE),
    re.compile(r"Intel.*HD.*Graphics", re.IGNORECASE),
)

_TRADEMARK_RE = re.compile(r"\((?:R|TM|C)\)|[\u00ae\u2122]", re.IGNORECASE)

_APPLE_RE = re.compile(r"\bapple\b|\bM[1-9]\b", re.IGNORECASE)
_NVIDIA_RE = re.compile(r"nvidia|geforce|quadro|tesla|titan|\brtx\b|\bgtx\b", re.IGNORECASE)
_AMD_RE = re.compile(r"\bamd\b|radeon|advanced micro devices", re.IGNORECASE)

# Relative NVIDIA throughput scores; thresholds bucket cards into performance and power classes
_NVIDIA_SPEED: dict[str, int] = {
    "RTX 5090": 120,
    "RTX 5080": 95,
    "RTX 5070": 70,
    "RTX 4090": 105,
    "RTX 4080": 80,
    "RTX 4070": 55,
    "RTX 4060": 40,
    "RTX 3090": 60,
    "RTX 3080": 50,
    "RTX 3070": 38,
    "RTX 3060": 30,
    "RTX 2080": 28,
    "RTX 2070": 22,
    "RTX 2060": 18,
    "GTX 1080": 18,
    "GTX 1070": 14,
    "GTX 1660": 15,
    "GTX 1650": 8,
    "MX": 4,
    "H100": 180,
    "A100": 130,
    "L40": 80,
    "L4": 40,
    "T4": 20,
    "V100": 30,
    "Orin": 25,
    "Xavier": 12,
    "Jetson": 10,
}


def _any(patterns: tuple[re.Pattern[str], ...]) -> Callable[[str], bool]:
    return lambda name: any(p.search(name) for p in patterns)


def _regex(pattern: str) -> Callable[[str], bool]:
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda name: compiled.search(name) is not None


def _is_apple(name: str) -> bool:
    # "NVIDIA Tesla M6" also matches the M-series pattern
    return _APPLE_RE.search(name) is not None and not _NVIDIA_RE.search(name)


def _plain(name: str) -> str:
    """Drop (R)/(TM) marks so "Intel(R) Core(TM) Ultra" reads "Intel Core Ultra"."""
    return " ".join(_TRADEMARK_RE.sub(" ", name).split())


def is_core_ultra(name: str) -> bool:
    name = _plain(name)
    return any(p.search(name) for p in _CORE_ULTRA_PATTERNS)


def is_discrete_arc(name: str) -> bool:
    name = _plain(name)
    return not is_core_ultra(name) and any(p.search(name) for p in _ARC_PATTERNS)


# Evaluated top to bottom; first match wins. Core Ultra names also mention
# "Arc Graphics", so the Core Ultra rule has to precede the discrete Arc rule.
_TYPE_RULES: tuple[tuple[Callable[[str], bool], str], ...] = (
    (is_core_ultra, "integrated"),
    (is_discrete_arc, "discrete"),
    (_any(_INTEL_INTEGRATED_PATTERNS), "integrated"),
    (_is_apple, "integrated"),
    (_regex(r"tegra|jetson"), "integrated"),
    (_NVIDIA_RE.search, "discrete"),
    (_regex(r"radeon\s*(rx|pro)|instinct|firepro"), "discrete"),
    (_regex(r"radeon"), "integrated"),
    (lambda name: "arc" in name.lower() and "core ultra" not in name.lower(), "discrete"),
    (_regex(r"integrated|xe|iris|core ultra"), "integrated"),
)


def classify_gpu_type(name: str) -> str:
    """Return ``"discrete"`` or ``"integrated"``; unknown names are integrated."""
    if not name:
        return "integrated"
    name = _plain(name)
    for predicate, result in _TYPE_RULES:
        if predicate(name):
            return result
    return "integrated"


@dataclass(frozen=True)
class PriorityWeights:
    """Default tuning data for :func:`calculate_gpu_priority`."""

    arc: int = 50
    arc_sku: tuple[tuple[str, int], ...] = (
        ("a770", 20),
        ("a750", 18),
        ("a580", 15),
        ("a380", 12),
        ("a310", 10),
    )
    core_ultra: int = 30
    xe: int = 25
    iris: int = 20
    iris_max: int = 5
    uhd: int = 15
    hd: int = 10
    memory: tuple[tuple[str, int], ...] = (
        ("16gb", 8),
        ("12gb", 6),
        ("8gb", 4),
        ("4gb", 2),
    )


DEFAULT_WEIGHTS = PriorityWeights()


def calculate_gpu_priority(name: str, weights: PriorityWeights = DEFAULT_WEIGHTS) -> int:
    """Additive priority score; never below 1."""
    name = _plain(name)
    lower = name.lower()
    priority = 0

    if is_discrete_arc(name):
        priority += weights.arc
        for sku, bonus in weights.arc_sku:
            if sku in lower:
                priority += bonus
                break

    if is_core_ultra(name):
        priority += weights.core_ultra

    if "xe" in lower:
        priority += weights.xe
    if "iris" in lower:
        priority += weights.iris
        if "max" in lower:
            priority += weights.iris_max
    if "uhd" in lower:
        priority += weights.uhd
    if "hd" in lower:
        priority += weights.hd

    for marker, bonus in weights.memory:
        if marker in lower:
            priority += bonus
            break

    return max(priority, 1)


def _lookup_nvidia_speed(name: str) -> int:
    """Longest match first, like the nvidia-smi tables."""
    upper = name.upper()
    for key in sorted(_NVIDIA_SPEED, key=len, reverse=True):
        if key.upper() in upper:
            return _NVIDIA_SPEED[key]
    return 0


def performance_class(name: str) -> str:
    name = _plain(name)
    lower = name.lower()

    if "a770" in lower or "a750" in lower:
        return "high"
    if "a580" in lower or "a380" in lower or is_core_ultra(name):
        return "medium"
    if "iris" in lower and "max" in lower:
        return "medium"
    if "uhd" in lower or "hd graphics" in lower:
        return "low"

    if _NVIDIA_RE.search(name) or "jetson" in lower:
        speed = _lookup_nvidia_speed(name)
        if speed >= 50:
            return "high"
        if speed >= 20:
            return "medium"
        if speed > 0:
            return "low"

    return "medium"


def power_class(name: str) -> str:
    name = _plain(name)
    lower = name.lower()

    if is_core_ultra(name):
        return "excellent"
    if "xe" in lower or "iris" in lower:
        return "excellent"
    if _is_apple(name) or "jetson" in lower or "tegra" in lower:
        return "excellent"
    if "a380" in lower or "a310" in lower:
        return "good"
    if "a770" in lower or "a750" in lower or "a580" in lower:
        return "moderate"
    if _NVIDIA_RE.search(name) and _lookup_nvidia_speed(name) >= 50:
        return "moderate"
    return "good"


def classify_gpu(name: str, weights: PriorityWeights = DEFAULT_WEIGHTS) -> GPUClassification:
    return GPUClassification(
        type=classify_gpu_type(name),
        priority=calculate_gpu_priority(name, weights),
        performance=performance_class(name),
        power_efficiency=power_class(name),
    )


def determine_vendor(name: str) -> str | None:
    """Map a raw device name to a vendor; ``None`` means the record is discarded."""
    lower = name.lower()
    if "intel" in lower or "arc" in lower or "iris" in lower or re.search(r"\bxe\b", lower):
        return "intel"
    if _NVIDIA_RE.search(name):
        return "nvidia"
    if _APPLE_RE.search(name):
        return "apple"
    if _AMD_RE.search(name):
        return "amd"
    return None


def is_intel_gpu(name: str) -> bool:
    lower = name.lower()
    return any(marker in lower for marker in ("intel", "arc", "xe", "iris"))


def validate_model_compatibility(device: GPUDevice, model: str) -> OpenVINOValidation:
    """Score how well an Intel device can run ``model`` through OpenVINO (0-100)."""
    recommendations: list[str] = []
    warnings: list[str] = []
    errors: list[str] = []
    score = 0

    if device.vendor != "intel":
        errors.append("Device is not an Intel GPU")
        return OpenVINOValidation(
            version_valid=False,
            device_supported=False,
            runtime_available=False,
            model_format_supported=False,
            compatibility_score=0,
            errors=errors,
        )

    if not device.capabilities.openvino_compatible:
        errors.append("Device does not support OpenVINO")
        return OpenVINOValidation(
            version_valid=False,
            device_supported=False,
            runtime_available=False,
            model_format_supported=False,
            compatibility_score=0,
            errors=errors,
        )

    score += 40

    memory_mb = device.memory if isinstance(device.memory, int) else 0
    if "large" in model or "medium" in model:
        if memory_mb >= 8192:
            score += 30
        elif memory_mb >= 4096:
            score += 20
            warnings.append("Model may run slowly with limited GPU memory")
        else:
            score += 10
            warnings.append("Insufficient GPU memory for optimal performance")
    else:
        score += 25

    if device.type == "discrete":
        score += 20
        recommendations.append("Discrete GPU provides optimal performance")
    else:
        score += 15
        if is_core_ultra(device.name):
            recommendations.append("Core Ultra integrated GPU offers good power efficiency")
        else:
            warnings.append("Integrated GPU may have limited performance")

    if device.performance == "high":
        score += 15
    elif device.performance == "medium":
        score += 10
    else:
        score += 5
        warnings.append("Low performance GPU may result in slower processing")

    if device.has_known_driver:
        score += 5
    else:
        warnings.append("Unknown driver version, compatibility not guaranteed")

    score = min(score, 100)
    result = OpenVINOValidation(
        version_valid=True,
        device_supported=True,
        runtime_available=True,
        model_format_supported=True,
        compatibility_score=score,
        recommendations=recommendations,
        warnings=warnings,
        errors=errors,
    )
    logger.debug(
        "model compatibility %s on %s: score=%d valid=%s",
        model,
        device.name,
        score,
        result.valid,
    )
    return result
