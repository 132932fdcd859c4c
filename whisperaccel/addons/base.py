"""Backend descriptors and the native-module loader interface."""

from __future__ import annotations

import abc
import importlib.machinery
import importlib.util
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Union

logger = logging.getLogger(__name__)

ProcessingFunction = Callable[[dict], Any]


@dataclass(frozen=True)
class DeviceConfig:
    """The device an addon runs on.

    ``device_id`` is the detection id (e.g. ``lspci-gpu-0``); ``openvino_device``
    is the OpenVINO device name (``GPU`` or ``GPU.N``) handed to the addon.
    """

    device_id: str
    memory: Union[int, str]
    type: str  # "discrete", "integrated"
    openvino_device: str = "GPU"


@dataclass(frozen=True)
class AddonInfo:
    type: str  # "cuda", "openvino", "coreml", "cpu"
    path: str
    display_name: str
    device_config: DeviceConfig | None = None
    fallback_reason: str | None = None


class AddonLoader(abc.ABC):
    """Turns an addon file into a module-like object exposing ``whisper``."""

    @abc.abstractmethod
    def load(self, path: Path) -> Any: ...


class ExtensionModuleLoader(AddonLoader):
    """Loads a compiled CPython extension module from an explicit path.

    ``module_name`` must match the extension's ``PyInit_<name>`` symbol.
    """

    def __init__(self, module_name: str = "whisper_addon") -> None:
        self.module_name = module_name

    def load(self, path: Path) -> Any:
        loader = importlib.machinery.ExtensionFileLoader(self.module_name, str(path))
        spec = importlib.util.spec_from_file_location(self.module_name, str(path), loader=loader)
        if spec is None:
            raise ImportError(f"cannot build a module spec for {path}")
        module = importlib.util.module_from_spec(spec)
        loader.exec_module(module)
        logger.debug("loaded extension %s from %s", self.module_name, path)
        return module
