"""Platform-specific addon file names."""

from __future__ import annotations

import platform as _platform
import sys

from ..hardware._types import CudaInfo

_OS_KEYS = {"win32": "windows", "linux": "linux", "darwin": "macos"}


def addon_suffix(platform: str | None = None) -> str:
    return ".pyd" if (platform or sys.platform) == "win32" else ".so"


def _is_arm(machine: str | None) -> bool:
    return (machine or _platform.machine()).lower() in ("arm64", "aarch64")


def _filename(stem: str, platform: str | None) -> str:
    return stem + addon_suffix(platform)


def cuda_addon_name(platform: str | None = None, cuda_info: CudaInfo | None = None) -> str:
    platform = platform or sys.platform
    if cuda_info is not None and cuda_info.addon_name:
        return _filename(cuda_info.addon_name, platform)
    if platform in ("win32", "linux"):
        return _filename(f"addon-{_OS_KEYS[platform]}-cuda", platform)
    return _filename("addon-cuda", platform)


def openvino_addon_name(platform: str | None = None, machine: str | None = None) -> str:
    platform = platform or sys.platform
    if platform in ("win32", "linux"):
        return _filename(f"addon-{_OS_KEYS[platform]}-openvino", platform)
    if platform == "darwin":
        arch = "arm" if _is_arm(machine) else "x86"
        return _filename(f"addon-macos-{arch}-openvino", platform)
    return _filename("addon-openvino", platform)


def coreml_addon_name(platform: str | None = None, machine: str | None = None) -> str:
    platform = platform or sys.platform
    if platform == "darwin":
        stem = "addon-macos-arm64-coreml" if _is_arm(machine) else "addon-macos-coreml"
        return _filename(stem, platform)
    return _filename("addon-coreml", platform)


def cpu_addon_name(platform: str | None = None, machine: str | None = None) -> str:
    platform = platform or sys.platform
    if platform in ("win32", "linux"):
        return _filename(f"addon-{_OS_KEYS[platform]}-cpu", platform)
    if platform == "darwin":
        stem = "addon-macos-arm64" if _is_arm(machine) else "addon-macos-x64"
        return _filename(stem, platform)
    return _filename("addon", platform)


def addon_name_for(
    addon_type: str,
    platform: str | None = None,
    machine: str | None = None,
    cuda_info: CudaInfo | None = None,
) -> str:
    if addon_type == "cuda":
        return cuda_addon_name(platform, cuda_info)
    if addon_type == "openvino":
        return openvino_addon_name(platform, machine)
    if addon_type == "coreml":
        return coreml_addon_name(platform, machine)
    return cpu_addon_name(platform, machine)
