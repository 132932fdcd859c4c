"""whisperaccel detect / classify / runtime -- hardware inspection commands."""

from __future__ import annotations

import dataclasses
import json as json_mod
import sys

import click

from whisperaccel.hardware import GPUDevice, classify_gpu, get_detector
from whisperaccel.hardware._classifier import determine_vendor


def _echo_json(payload: object) -> None:
    click.echo(json_mod.dumps(payload, indent=2, default=str))


def _echo_device(gpu: GPUDevice, recommended: bool) -> None:
    marker = click.style(" (recommended)", fg="green") if recommended else ""
    click.echo(f"    [{gpu.id}] {gpu.name}{marker}")
    memory = f"{gpu.memory} MB" if isinstance(gpu.memory, int) else gpu.memory
    click.echo(f"        Type: {gpu.type}  Priority: {gpu.priority}  Memory: {memory}")
    click.echo(f"        Driver: {gpu.driver_version}  Detection: {gpu.detection_method}")
    caps = [
        label
        for label, flag in (
            ("OpenVINO", gpu.capabilities.openvino_compatible),
            ("CUDA", gpu.capabilities.cuda_compatible),
            ("CoreML", gpu.capabilities.coreml_compatible),
        )
        if flag
    ]
    if caps:
        click.echo(f"        Backends: {', '.join(caps)}")


# ---------------------------------------------------------------------------
# detect
# ---------------------------------------------------------------------------


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--force", is_flag=True, help="Bypass the capability cache.")
def detect(as_json: bool, force: bool) -> None:
    """Detect GPUs and the OpenVINO runtime.

    Prints every detected device grouped by vendor, the recommended
    device and any detection errors.
    """
    snapshot = get_detector().detect_available_gpus(force=force)

    if as_json:
        _echo_json(dataclasses.asdict(snapshot))
        return

    click.secho("\n  Hardware Capabilities\n", bold=True)
    recommended_id = snapshot.recommended_gpu.id if snapshot.recommended_gpu else None

    groups = [
        ("NVIDIA", snapshot.nvidia_gpus),
        ("Intel", snapshot.intel_gpus),
        ("Apple", snapshot.apple_gpus),
        ("AMD", snapshot.amd_gpus),
    ]
    if snapshot.total_gpus == 0:
        click.secho("  GPU: None detected", fg="yellow")
    for label, devices in groups:
        if not devices:
            continue
        click.secho(f"  {label}", bold=True)
        for gpu in devices:
            _echo_device(gpu, gpu.id == recommended_id)
        click.echo()

    runtime = snapshot.openvino_info
    if runtime is not None:
        status = runtime.version or "not installed"
        click.echo(f"  OpenVINO: {status} ({runtime.validation_status})")
    if snapshot.core_ultra is not None and snapshot.core_ultra.is_intel_core_ultra:
        click.echo(f"  CPU: {snapshot.core_ultra.cpu_brand} (Core Ultra)")
    click.echo(f"  Platform: {snapshot.detection_platform}")

    if snapshot.detection_errors:
        click.echo()
        click.secho("  Diagnostics", bold=True, fg="yellow")
        for err in snapshot.detection_errors:
            click.echo(f"    • {err}")
    click.echo()


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------


@click.command()
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def classify(name: str, as_json: bool) -> None:
    """Classify a GPU by its marketing NAME."""
    result = classify_gpu(name)
    vendor = determine_vendor(name) or "unknown"
    if as_json:
        _echo_json({"name": name, "vendor": vendor, **dataclasses.asdict(result)})
        return
    click.echo(f"{name}")
    click.echo(f"  Vendor: {vendor}")
    click.echo(f"  Type: {result.type}")
    click.echo(f"  Priority: {result.priority}")
    click.echo(f"  Performance: {result.performance}")
    click.echo(f"  Power efficiency: {result.power_efficiency}")


# ---------------------------------------------------------------------------
# runtime
# ---------------------------------------------------------------------------


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def runtime(as_json: bool) -> None:
    """Check the OpenVINO runtime installation."""
    detector = get_detector()
    config = detector.config
    info = detector.check_runtime_support()

    if as_json:
        _echo_json(dataclasses.asdict(info))
        return

    if not info.is_installed:
        click.secho("OpenVINO runtime not found", fg="red")
        for err in info.detection_errors:
            click.echo(f"  • {err}")
        sys.exit(1)

    color = "green" if info.validation_status == "valid" else "yellow"
    click.secho(f"OpenVINO {info.version} ({info.validation_status})", fg=color)
    click.echo(f"  Installed via: {info.installation_method}")
    if info.runtime_path:
        click.echo(f"  Path: {info.runtime_path}")
    click.echo(f"  Devices: {', '.join(info.supported_devices) or 'none'}")
    click.echo(f"  Formats: {', '.join(info.model_formats)}")
    if info.validation_status == "invalid":
        click.echo(f"  Minimum supported version: {config.min_openvino_version}")


def register(cli: click.Group) -> None:
    """Register the hardware commands with the CLI group."""
    cli.add_command(detect)
    cli.add_command(classify)
    cli.add_command(runtime)
