"""CUDA runtime probe and version-specific addon naming."""

from __future__ import annotations

import logging
import re
import subprocess
import sys

from ._types import CudaInfo

logger = logging.getLogger(__name__)

# (minimum (major, minor), addon build tag); newest first
_CUDA_BUILDS: tuple[tuple[tuple[int, int], str], ...] = (
    ((12, 4), "1241"),
    ((12, 2), "1220"),
    ((11, 0), "1180"),
)

_OS_KEYS = {"win32": "windows", "linux": "linux"}


def cuda_addon_for_version(major: int, minor: int, platform: str | None = None) -> str:
    """Addon stem for a CUDA version, e.g. ``addon-windows-cuda-1220-generic``.

    CUDA older than 11.0 maps to the ``no-cuda`` build.
    """
    os_key = _OS_KEYS.get(platform or sys.platform)
    if os_key is None:
        return "addon-cuda"
    for minimum, tag in _CUDA_BUILDS:
        if (major, minor) >= minimum:
            return f"addon-{os_key}-cuda-{tag}-generic"
    return f"addon-{os_key}-no-cuda"


def parse_nvidia_smi_header(output: str) -> tuple[str | None, str | None]:
    """Return ``(cuda_version, driver_version)`` from the nvidia-smi banner."""
    cuda = re.search(r"CUDA Version:\s*([\d.]+)", output)
    driver = re.search(r"Driver Version:\s*([\d.]+)", output)
    return (cuda.group(1) if cuda else None, driver.group(1) if driver else None)


def _get_cuda_version(timeout: float) -> tuple[str | None, str | None]:
    """CUDA and driver version from nvidia-smi, falling back to nvcc."""
    try:
        result = subprocess.run(
            ["nvidia-smi"],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        if result.returncode == 0:
            cuda, driver = parse_nvidia_smi_header(result.stdout)
            if cuda:
                return cuda, driver
    except FileNotFoundError:
        logger.debug("cuda: nvidia-smi not found")
        return None, None
    except subprocess.TimeoutExpired:
        logger.debug("cuda: nvidia-smi timed out")
        return None, None

    try:
        result = subprocess.run(
            ["nvcc", "--version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            match = re.search(r"release\s+([\d.]+)", result.stdout)
            if match:
                return match.group(1), None
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass

    return None, None


def check_cuda_support(platform: str | None = None, timeout: float = 5.0) -> CudaInfo | None:
    """Probe the NVIDIA driver for a usable CUDA runtime.

    Only Windows and Linux ship CUDA addons; other platforms return ``None``.
    """
    platform = platform or sys.platform
    if platform not in _OS_KEYS:
        return None

    version, driver = _get_cuda_version(timeout)
    if not version:
        return None

    pieces = version.split(".")
    try:
        major = int(pieces[0])
        minor = int(pieces[1]) if len(pieces) > 1 else 0
    except ValueError:
        logger.warning("cuda: unparseable version %r", version)
        return None

    addon = cuda_addon_for_version(major, minor, platform)
    logger.debug("cuda %s (driver %s) -> %s", version, driver, addon)
    return CudaInfo(
        version=version,
        major_version=major,
        minor_version=minor,
        driver_version=driver,
        supported=not addon.endswith("no-cuda"),
        addon_name=addon,
    )
