"""Native processing addons: descriptors, loaders and the fallback manager."""

from __future__ import annotations

from .base import AddonInfo, AddonLoader, DeviceConfig, ExtensionModuleLoader
from .manager import AddonLoadState, AddonManager, LoadedAddon

__all__ = [
    "AddonInfo",
    "AddonLoadState",
    "AddonLoader",
    "AddonManager",
    "DeviceConfig",
    "ExtensionModuleLoader",
    "LoadedAddon",
]
