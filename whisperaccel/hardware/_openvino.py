"""OpenVINO runtime detection.

Probes are tried in order and the first one that finds the runtime wins:

1. a scripted query through the current interpreter (``import openvino``)
2. the companion CLI tools (``benchmark_app``, ``ovc``, ``mo``)
3. ``PATH`` entries pointing into an OpenVINO install with ``setupvars``
4. the usual per-OS install directories
"""

from __future__ import annotations

import logging
import os
import re
import sys
from pathlib import Path
from typing import Callable

from ..config import MIN_OPENVINO_VERSION
from ..errors import DetectionError
from ._base import run_command
from ._types import RuntimeInfo

logger = logging.getLogger(__name__)

DEFAULT_MODEL_FORMATS = ["ONNX", "IR", "TensorFlow", "PyTorch"]

_VERSION_RE = re.compile(r"(\d+\.\d+\.\d+)")
_DIR_VERSION_RE = re.compile(r"openvino[_-]?(\d{4}(?:\.\d+){0,2})", re.IGNORECASE)
_VERSION_FILES = ("version.txt", "runtime/version.txt", "VERSION")
_CLI_TOOLS = ("benchmark_app", "ovc", "mo")

_QUERY_SCRIPT = """
import openvino as ov
core = ov.Core()
print("VERSION:" + ov.get_version())
print("DEVICES:" + ",".join(core.available_devices))
print("FORMATS:ONNX,IR,TensorFlow,PyTorch")
print("SUCCESS:true")
"""

_WINDOWS_DIRS = (
    r"C:\Program Files (x86)\Intel\openvino_2024",
    r"C:\Program Files\Intel\openvino_2024",
    r"C:\intel\openvino_2024",
    r"C:\openvino",
)

_POSIX_DIRS = (
    "/opt/intel/openvino_2024",
    "/opt/intel/openvino",
    "/usr/local/intel/openvino_2024",
    "/home/intel/openvino_2024",
    "~/intel/openvino_2024",
)


def compare_versions(a: str, b: str) -> int:
    """Numeric dotted comparison; missing components count as zero.

    Non-numeric suffixes (``2024.6.0-17404-abc``) are ignored.
    """

    def parts(version: str) -> list[int]:
        out = []
        for piece in version.strip().split("."):
            match = re.match(r"\d+", piece)
            out.append(int(match.group(0)) if match else 0)
        return out

    pa, pb = parts(a), parts(b)
    width = max(len(pa), len(pb))
    pa += [0] * (width - len(pa))
    pb += [0] * (width - len(pb))
    return (pa > pb) - (pa < pb)


def validate_openvino_version(version: str | None, minimum: str = MIN_OPENVINO_VERSION) -> bool:
    if not version:
        return False
    return compare_versions(version, minimum) >= 0


def normalize_version(raw: str) -> str | None:
    match = _VERSION_RE.search(raw)
    return match.group(1) if match else None


def _version_from_dir(path: Path) -> str | None:
    for rel in _VERSION_FILES:
        candidate = path / rel
        try:
            if candidate.is_file():
                version = normalize_version(candidate.read_text(errors="replace"))
                if version:
                    return version
        except OSError:
            continue
    match = _DIR_VERSION_RE.search(path.name)
    return match.group(1) if match else None


def _has_setupvars(path: Path) -> bool:
    return (path / "setupvars.sh").is_file() or (path / "setupvars.bat").is_file()


class OpenVINODetector:
    def __init__(
        self,
        timeout: float = 10.0,
        min_version: str = MIN_OPENVINO_VERSION,
        platform: str | None = None,
    ) -> None:
        self.timeout = timeout
        self.min_version = min_version
        self.platform = platform or sys.platform

    def detect(self) -> RuntimeInfo:
        """Run the probe waterfall. Never raises."""
        errors: list[str] = []
        probes: list[tuple[str, Callable[[], RuntimeInfo | None]]] = [
            ("python", self._probe_python),
            ("cli", self._probe_cli),
            ("path", self._probe_path),
            ("common", self._probe_common_dirs),
        ]
        for name, probe in probes:
            try:
                info = probe()
            except Exception as exc:
                errors.append(f"openvino/{name}: {exc}")
                continue
            if info is not None:
                logger.debug("openvino found via %s: %s", name, info.version)
                return RuntimeInfo(
                    is_installed=True,
                    version=info.version,
                    runtime_path=info.runtime_path,
                    supported_devices=info.supported_devices,
                    model_formats=info.model_formats,
                    validation_status=self._status(info.version),
                    installation_method=info.installation_method,
                    detection_errors=errors,
                )
            errors.append(f"openvino/{name}: not found")

        logger.debug("openvino not detected: %s", errors)
        return RuntimeInfo(is_installed=False, validation_status="invalid", detection_errors=errors)

    def _status(self, version: str | None) -> str:
        if not version:
            return "unknown"
        return "valid" if validate_openvino_version(version, self.min_version) else "invalid"

    def _probe_python(self) -> RuntimeInfo | None:
        output = run_command([sys.executable, "-c", _QUERY_SCRIPT], timeout=self.timeout)
        fields: dict[str, str] = {}
        for line in output.splitlines():
            key, sep, value = line.partition(":")
            if sep:
                fields[key.strip()] = value.strip()
        if fields.get("SUCCESS") != "true":
            raise DetectionError("runtime query did not report success")
        devices = [d for d in fields.get("DEVICES", "").split(",") if d]
        formats = [f for f in fields.get("FORMATS", "").split(",") if f] or list(DEFAULT_MODEL_FORMATS)
        return RuntimeInfo(
            is_installed=True,
            version=normalize_version(fields.get("VERSION", "")),
            runtime_path=sys.executable,
            supported_devices=devices,
            model_formats=formats,
            installation_method="package",
        )

    def _probe_cli(self) -> RuntimeInfo | None:
        for tool in _CLI_TOOLS:
            try:
                output = run_command([tool, "--help"], timeout=min(self.timeout, 5.0))
            except DetectionError:
                continue
            version = normalize_version(output)
            if version:
                return RuntimeInfo(
                    is_installed=True,
                    version=version,
                    runtime_path=tool,
                    supported_devices=["GPU", "CPU"],
                    model_formats=list(DEFAULT_MODEL_FORMATS),
                    installation_method="package",
                )
        return None

    def _probe_path(self) -> RuntimeInfo | None:
        for entry in os.environ.get("PATH", "").split(os.pathsep):
            if "openvino" not in entry.lower():
                continue
            path = Path(entry)
            for candidate in (path, *list(path.parents)[:2]):
                if _has_setupvars(candidate):
                    return self._manual_install(candidate)
        return None

    def _probe_common_dirs(self) -> RuntimeInfo | None:
        dirs = _WINDOWS_DIRS if self.platform == "win32" else _POSIX_DIRS
        for raw in dirs:
            path = Path(raw).expanduser()
            if path.is_dir():
                return self._manual_install(path)
        return None

    def _manual_install(self, path: Path) -> RuntimeInfo:
        return RuntimeInfo(
            is_installed=True,
            version=_version_from_dir(path),
            runtime_path=str(path),
            supported_devices=["GPU", "CPU", "NPU"],
            model_formats=list(DEFAULT_MODEL_FORMATS),
            installation_method="manual",
        )
