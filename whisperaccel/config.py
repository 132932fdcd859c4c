"""Engine configuration read from ``WHISPERACCEL_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

MIN_OPENVINO_VERSION = "2024.6.0"

_TRUTHY = ("1", "true", "yes", "on")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _default_addons_dir() -> Path:
    return Path(__file__).resolve().parent / "addons" / "bin"


def _default_openvino_cache_dir() -> Path:
    return Path.home() / ".openvino-cache"


@dataclass
class EngineConfig:
    cache_ttl_s: float = 30.0
    command_timeout_s: float = 15.0
    runtime_timeout_s: float = 10.0
    enable_intel: bool = True
    enable_nvidia: bool = True
    enable_apple: bool = True
    enable_amd: bool = True
    enable_openvino_validation: bool = True
    mock_hardware: bool = False
    addons_dir: Path = field(default_factory=_default_addons_dir)
    openvino_cache_dir: Path = field(default_factory=_default_openvino_cache_dir)
    openvino_enable_optimizations: bool = True
    min_openvino_version: str = MIN_OPENVINO_VERSION

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build a config from the environment, falling back to defaults."""
        defaults = cls()
        addons_dir = os.environ.get("WHISPERACCEL_ADDONS_DIR")
        cache_dir = os.environ.get("OPENVINO_CACHE_DIR")
        return cls(
            cache_ttl_s=_env_float("WHISPERACCEL_CACHE_TTL", defaults.cache_ttl_s),
            command_timeout_s=_env_float(
                "WHISPERACCEL_COMMAND_TIMEOUT", defaults.command_timeout_s
            ),
            runtime_timeout_s=_env_float(
                "WHISPERACCEL_RUNTIME_TIMEOUT", defaults.runtime_timeout_s
            ),
            enable_intel=_env_bool("WHISPERACCEL_ENABLE_INTEL", True),
            enable_nvidia=_env_bool("WHISPERACCEL_ENABLE_NVIDIA", True),
            enable_apple=_env_bool("WHISPERACCEL_ENABLE_APPLE", True),
            enable_amd=_env_bool("WHISPERACCEL_ENABLE_AMD", True),
            enable_openvino_validation=_env_bool(
                "WHISPERACCEL_OPENVINO_VALIDATION", True
            ),
            mock_hardware=_env_bool("WHISPERACCEL_MOCK_HARDWARE", False),
            addons_dir=Path(addons_dir) if addons_dir else defaults.addons_dir,
            openvino_cache_dir=(
                Path(cache_dir).expanduser() if cache_dir else defaults.openvino_cache_dir
            ),
            openvino_enable_optimizations=_env_bool(
                "WHISPERACCEL_OPENVINO_OPTIMIZATIONS", True
            ),
            min_openvino_version=os.environ.get(
                "WHISPERACCEL_MIN_OPENVINO", MIN_OPENVINO_VERSION
            ),
        )
