"""Device ordering rules shared by the coordinator and backend selection."""

from __future__ import annotations

from typing import Iterable, Sequence

from ._types import GPUDevice

_PERFORMANCE_RANK = {"high": 3, "medium": 2, "low": 1}

DEFAULT_VENDOR_PRIORITY = ("nvidia", "intel", "apple", "cpu")


def rank_devices(devices: Iterable[GPUDevice]) -> list[GPUDevice]:
    """Best first: priority score, then performance class."""
    return sorted(
        devices,
        key=lambda d: (d.priority, _PERFORMANCE_RANK.get(d.performance, 0)),
        reverse=True,
    )


def is_low_power(device: GPUDevice) -> bool:
    return device.type == "integrated" or bool(device.platform_info.get("is_igpu"))


def pick_nvidia_device(devices: Sequence[GPUDevice]) -> GPUDevice | None:
    """With several NVIDIA devices prefer the integrated/low-power one,
    otherwise take the best discrete device."""
    if not devices:
        return None
    if len(devices) > 1:
        low_power = [d for d in devices if is_low_power(d)]
        if low_power:
            return rank_devices(low_power)[0]
    discrete = [d for d in devices if d.type == "discrete"] or list(devices)
    return rank_devices(discrete)[0]


def recommend_device(
    devices: Iterable[GPUDevice],
    vendor_priority: Sequence[str] = DEFAULT_VENDOR_PRIORITY,
) -> GPUDevice | None:
    """Best device by vendor preference, without runtime probes.

    NVIDIA leads the default preference, so a hybrid NVIDIA + Intel system
    recommends the NVIDIA device.
    """
    by_vendor: dict[str, list[GPUDevice]] = {}
    for device in devices:
        by_vendor.setdefault(device.vendor, []).append(device)

    order = [v for v in vendor_priority if v != "cpu"]
    order += [v for v in by_vendor if v not in order]
    for vendor in order:
        candidates = by_vendor.get(vendor)
        if not candidates:
            continue
        if vendor == "nvidia":
            return pick_nvidia_device(candidates)
        return rank_devices(candidates)[0]
    return None
