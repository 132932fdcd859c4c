"""whisperaccel select / load -- backend selection and addon loading commands."""

from __future__ import annotations

import dataclasses
import json as json_mod
from pathlib import Path

import click

from whisperaccel.addons import AddonManager
from whisperaccel.errors import AddonLoadError
from whisperaccel.gpu_config import SelectionSettings, determine_gpu_configuration
from whisperaccel.hardware import get_detector


def _parse_priority(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [v.strip().lower() for v in value.split(",") if v.strip()]


# ---------------------------------------------------------------------------
# select
# ---------------------------------------------------------------------------


@click.command()
@click.option("--model", "-m", default="base", show_default=True, help="Whisper model name.")
@click.option(
    "--priority",
    "-p",
    default=None,
    help="Comma-separated vendor order (default: nvidia,intel,apple,cpu).",
)
@click.option("--gpu-id", default="auto", show_default=True, help="Device id or vendor keyword.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def select(model: str, priority: str | None, gpu_id: str, as_json: bool) -> None:
    """Pick the processing backend for MODEL on this machine."""
    settings = SelectionSettings(selected_gpu_id=gpu_id)
    config = determine_gpu_configuration(model, settings, priority=_parse_priority(priority))
    info = config.addon_info

    if as_json:
        click.echo(
            json_mod.dumps(
                {
                    "addon": dataclasses.asdict(info),
                    "whisper_params": config.whisper_params.as_dict(),
                    "performance_hints": dataclasses.asdict(config.performance_hints),
                    "environment": config.environment_config,
                },
                indent=2,
                default=str,
            )
        )
        return

    click.secho(f"\n  {info.display_name}\n", bold=True)
    click.echo(f"    Backend: {info.type}")
    click.echo(f"    Addon: {info.path}")
    if info.device_config is not None:
        click.echo(
            f"    Device: {info.device_config.device_id} "
            f"({info.device_config.type}, memory: {info.device_config.memory})"
        )
    if info.fallback_reason:
        click.secho(f"    Fallback reason: {info.fallback_reason}", fg="yellow")
    hints = config.performance_hints
    click.echo(f"    Expected speedup: {hints.expected_speedup:.1f}x")
    click.echo(f"    Memory usage: {hints.memory_usage}  Power: {hints.power_efficiency}")
    if config.environment_config:
        click.echo()
        click.secho("  Environment variables:", bold=True)
        for k, v in config.environment_config.items():
            click.echo(f"    export {k}={v}")
    click.echo()


# ---------------------------------------------------------------------------
# load
# ---------------------------------------------------------------------------


@click.command()
@click.option("--model", "-m", default="base", show_default=True, help="Whisper model name.")
@click.option(
    "--addons-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the native addon binaries.",
)
def load(model: str, addons_dir: Path | None) -> None:
    """Select a backend for MODEL and load its addon, falling back on failure."""
    detector = get_detector()
    engine_config = detector.config
    if addons_dir is not None:
        engine_config = dataclasses.replace(engine_config, addons_dir=addons_dir)

    gpu_config = determine_gpu_configuration(model, detector=detector)
    manager = AddonManager(engine_config)
    try:
        loaded = manager.load_with_fallback(gpu_config.addon_info)
    except AddonLoadError as exc:
        raise click.ClickException(f"Could not load any addon: {exc}") from exc

    click.secho(f"Loaded {loaded.display_name} ({loaded.type})", fg="green")
    if len(loaded.attempts) > 1:
        tried = " -> ".join(a.type for a in loaded.attempts)
        click.echo(f"  Fallback path: {tried}")


def register(cli: click.Group) -> None:
    """Register the backend commands with the CLI group."""
    cli.add_command(select)
    cli.add_command(load)
