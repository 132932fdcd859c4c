"""Intel Core Ultra CPU detection via py-cpuinfo."""

from __future__ import annotations

import logging
import re
import threading

from ._types import CoreUltraInfo

logger = logging.getLogger(__name__)

_CORE_ULTRA_RE = re.compile(r"Core(?:\(TM\))?\s+Ultra\s+\d+", re.IGNORECASE)
# KF / F SKUs ship without the integrated Arc GPU
_NO_IGPU_RE = re.compile(r"Ultra\s+\d+\s+\d+[A-Z]*F\b", re.IGNORECASE)


def classify_cpu_brand(brand: str, vendor: str) -> CoreUltraInfo:
    is_core_ultra = vendor == "GenuineIntel" and bool(_CORE_ULTRA_RE.search(brand))
    return CoreUltraInfo(
        is_intel_core_ultra=is_core_ultra,
        has_integrated_graphics=is_core_ultra and not _NO_IGPU_RE.search(brand),
        cpu_brand=brand,
        cpu_manufacturer=vendor,
        detection_method="cpuinfo",
        confidence="high" if brand != "unknown" else "low",
    )


class CoreUltraDetector:
    """Caches the first result; the CPU does not change under a running process."""

    def __init__(self) -> None:
        self._cached: CoreUltraInfo | None = None
        self._lock = threading.Lock()

    def detect(self) -> CoreUltraInfo:
        with self._lock:
            if self._cached is None:
                self._cached = self._detect()
            return self._cached

    def clear_cache(self) -> None:
        with self._lock:
            self._cached = None

    def _detect(self) -> CoreUltraInfo:
        import cpuinfo

        try:
            info = cpuinfo.get_cpu_info()
        except Exception as exc:
            logger.warning("cpuinfo failed: %s", exc)
            return CoreUltraInfo(is_intel_core_ultra=False, detection_method="error")

        result = classify_cpu_brand(
            str(info.get("brand_raw") or "unknown"),
            str(info.get("vendor_id_raw") or "unknown"),
        )
        logger.debug("cpu %s core_ultra=%s", result.cpu_brand, result.is_intel_core_ultra)
        return result
