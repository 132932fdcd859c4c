"""Tests for whisperaccel.hardware._classifier -- GPU name classification."""

from __future__ import annotations

import pytest

from whisperaccel.hardware._base import make_device
from whisperaccel.hardware._classifier import (
    PriorityWeights,
    calculate_gpu_priority,
    classify_gpu,
    classify_gpu_type,
    determine_vendor,
    is_core_ultra,
    is_discrete_arc,
    performance_class,
    power_class,
    validate_model_compatibility,
)

CORE_ULTRA_WMI = "Intel(R) Core(TM) Ultra 7 155H with Intel(R) Arc(TM) Graphics"


# ---------------------------------------------------------------------------
# classify_gpu_type
# ---------------------------------------------------------------------------


class TestClassifyGpuType:
    @pytest.mark.parametrize(
        "name",
        [
            CORE_ULTRA_WMI,
            "Intel Core Ultra 7 155H with Intel Arc Graphics",
            "Intel Core Ultra 5 125U Integrated graphics",
        ],
    )
    def test_core_ultra_is_integrated_despite_arc(self, name: str) -> None:
        assert classify_gpu_type(name) == "integrated"

    @pytest.mark.parametrize(
        "name",
        [
            "Intel(R) Arc(TM) A770 Graphics",
            "Intel Arc A380",
            "Intel Corporation DG2 [Arc A750]",
        ],
    )
    def test_discrete_arc(self, name: str) -> None:
        assert classify_gpu_type(name) == "discrete"

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Intel(R) Iris(R) Xe Graphics", "integrated"),
            ("Intel(R) UHD Graphics 770", "integrated"),
            ("NVIDIA GeForce RTX 4090", "discrete"),
            ("NVIDIA Jetson Orin", "integrated"),
            ("Apple M2 Pro", "integrated"),
            ("AMD Radeon RX 7900 XTX", "discrete"),
            ("AMD Radeon Graphics", "integrated"),
        ],
    )
    def test_vendor_families(self, name: str, expected: str) -> None:
        assert classify_gpu_type(name) == expected

    def test_nvidia_m_series_not_mistaken_for_apple(self) -> None:
        assert classify_gpu_type("NVIDIA Tesla M6") == "discrete"
        assert classify_gpu_type("Apple M3") == "integrated"
        assert determine_vendor("NVIDIA Tesla M6") == "nvidia"
        assert power_class("NVIDIA Tesla M6") != "excellent"

    def test_empty_and_unknown_default_to_integrated(self) -> None:
        assert classify_gpu_type("") == "integrated"
        assert classify_gpu_type("Mystery Display Device") == "integrated"

    def test_core_ultra_excluded_from_discrete_arc(self) -> None:
        assert is_core_ultra(CORE_ULTRA_WMI) is True
        assert is_discrete_arc(CORE_ULTRA_WMI) is False


# ---------------------------------------------------------------------------
# calculate_gpu_priority
# ---------------------------------------------------------------------------


class TestCalculateGpuPriority:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Intel(R) Arc(TM) A770 Graphics", 70),
            ("Intel Arc A770 16GB", 78),
            ("Intel Arc A380", 62),
            (CORE_ULTRA_WMI, 30),
            ("Intel(R) Iris(R) Xe Graphics", 45),
            ("Intel Iris Xe MAX Graphics", 50),
            ("Intel(R) UHD Graphics 770", 25),
            ("Intel(R) HD Graphics 620", 10),
        ],
    )
    def test_intel_scores(self, name: str, expected: int) -> None:
        assert calculate_gpu_priority(name) == expected

    @pytest.mark.parametrize("name", ["NVIDIA GeForce RTX 4090", "Apple M2", "", "whatever"])
    def test_floor_is_one(self, name: str) -> None:
        assert calculate_gpu_priority(name) == 1

    def test_custom_weights(self) -> None:
        weights = PriorityWeights(arc=100)
        assert calculate_gpu_priority("Intel Arc A770", weights) == 120

    def test_discrete_arc_outranks_core_ultra(self) -> None:
        assert calculate_gpu_priority("Intel Arc A380") > calculate_gpu_priority(CORE_ULTRA_WMI)


# ---------------------------------------------------------------------------
# performance / power classes
# ---------------------------------------------------------------------------


class TestPerformanceClass:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Intel Arc A770", "high"),
            ("Intel Arc A380", "medium"),
            (CORE_ULTRA_WMI, "medium"),
            ("Intel(R) UHD Graphics 630", "low"),
            ("NVIDIA GeForce RTX 4090", "high"),
            ("NVIDIA GeForce RTX 3060", "medium"),
            ("NVIDIA GeForce GTX 1650", "low"),
            ("NVIDIA Quadro Something", "medium"),
            ("Apple M1", "medium"),
        ],
    )
    def test_performance(self, name: str, expected: str) -> None:
        assert performance_class(name) == expected


class TestPowerClass:
    @pytest.mark.parametrize(
        "name,expected",
        [
            (CORE_ULTRA_WMI, "excellent"),
            ("Intel(R) Iris(R) Xe Graphics", "excellent"),
            ("Apple M1 Max", "excellent"),
            ("Intel Arc A380", "good"),
            ("Intel Arc A770", "moderate"),
            ("NVIDIA GeForce RTX 4090", "moderate"),
            ("NVIDIA GeForce GTX 1650", "good"),
        ],
    )
    def test_power(self, name: str, expected: str) -> None:
        assert power_class(name) == expected


class TestClassifyGpu:
    def test_combines_all_fields(self) -> None:
        result = classify_gpu("Intel(R) Arc(TM) A770 Graphics")
        assert result.type == "discrete"
        assert result.priority == 70
        assert result.performance == "high"
        assert result.power_efficiency == "moderate"


# ---------------------------------------------------------------------------
# determine_vendor
# ---------------------------------------------------------------------------


class TestDetermineVendor:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Intel(R) UHD Graphics", "intel"),
            ("Intel Arc A770", "intel"),
            ("NVIDIA GeForce RTX 3050", "nvidia"),
            ("GeForce GTX 1080", "nvidia"),
            ("Apple M2 Max", "apple"),
            ("AMD Radeon Pro 5500M", "amd"),
            ("Microsoft Basic Display Adapter", None),
        ],
    )
    def test_vendor(self, name: str, expected: str | None) -> None:
        assert determine_vendor(name) == expected


# ---------------------------------------------------------------------------
# validate_model_compatibility
# ---------------------------------------------------------------------------


def _device(name: str, **kwargs):
    device = make_device("gpu-0", name, **kwargs)
    assert device is not None
    return device


class TestValidateModelCompatibility:
    def test_non_intel_is_hard_failure(self) -> None:
        result = validate_model_compatibility(_device("NVIDIA GeForce RTX 4090", memory=24564), "base")
        assert result.compatibility_score == 0
        assert result.errors
        assert result.valid is False

    def test_openvino_incapable_intel_is_hard_failure(self) -> None:
        device = _device("Intel Arc A770", memory=16384)
        device.capabilities.openvino_compatible = False
        result = validate_model_compatibility(device, "base")
        assert result.compatibility_score == 0
        assert result.device_supported is False

    def test_discrete_arc_large_model_is_capped_at_100(self) -> None:
        device = _device("Intel Arc A770", memory=16384, driver_version="31.0.101.5186")
        result = validate_model_compatibility(device, "large-v3")
        assert result.compatibility_score == 100
        assert result.valid is True
        assert "Discrete GPU provides optimal performance" in result.recommendations

    def test_core_ultra_small_model(self) -> None:
        device = _device(CORE_ULTRA_WMI, driver_version="32.0.101.6078")
        result = validate_model_compatibility(device, "base")
        # 40 base + 25 small model + 15 integrated + 10 medium perf + 5 driver
        assert result.compatibility_score == 95
        assert result.valid is True
        assert any("Core Ultra" in r for r in result.recommendations)

    def test_weak_integrated_fails_threshold(self) -> None:
        device = _device("Intel(R) UHD Graphics 630")
        result = validate_model_compatibility(device, "medium")
        # 40 + 10 shared memory + 15 integrated + 5 low perf + 0 unknown driver
        assert result.compatibility_score == 70
        assert result.valid is False
        assert result.errors == []
        assert "Insufficient GPU memory for optimal performance" in result.warnings
        assert "Unknown driver version, compatibility not guaranteed" in result.warnings

    def test_mid_memory_warns(self) -> None:
        device = _device("Intel Arc A380", memory=6144, driver_version="31.0")
        result = validate_model_compatibility(device, "medium")
        assert "Model may run slowly with limited GPU memory" in result.warnings
