"""
vidscript.cli - Typer CLI entry point.

Provides all subcommands for the Vidscript pipeline.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from vidscript import __version__
from vidscript.config import CONFIG_FILENAME, create_default_config, load_config, write_config
from vidscript.events import Observer, log_event
from vidscript.exceptions import DependencyError, VidscriptError
from vidscript.logging import configure_logging
from vidscript.utils import format_duration, format_size

app = typer.Typer(
    name="vidscript",
    help="Video-to-transcript toolkit.\n\n"
    "Extracts the audio track of a video without transcoding and transcribes it "
    "with a remote speech-recognition service.",
    add_completion=False,
)
console = Console()

PROGRESS_MESSAGES = {
    "extract.track_selected": "Audio track {track_id}: {codec}, {sample_rate} Hz, {channels} ch",
    "extract.fallback": "Built-in extraction unavailable, falling back to FFmpeg",
    "extract.completed": "Extracted {frames} frames to {path}",
    "session.upload_requested": "Uploading {file_size} bytes in {chunks} chunk(s)",
    "session.chunk_uploaded": "  Chunk {chunk}/{total} uploaded",
    "session.task_created": "Recognition task {task_id} created",
    "session.poll": "  Waiting for result (attempt {attempt}, state {state})",
}


def console_observer(con: Console) -> Observer:
    """Observer that prints progress lines and forwards every event to the log."""

    def observe(event: str, fields: dict[str, Any]) -> None:
        log_event(event, fields)
        template = PROGRESS_MESSAGES.get(event)
        if template:
            con.print(f"[dim]{template.format(**fields)}[/dim]")

    return observe


def version_callback(value: bool) -> None:
    if value:
        console.print(f"vidscript {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Vidscript - video-to-transcript toolkit."""
    configure_logging(verbose)


@app.command("init")
def init_config(
    path: str = typer.Option(".", "--path", "-d", help="Directory to write the config in"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
) -> None:
    """Write a default vidscript.yaml."""
    config_path = Path(path) / CONFIG_FILENAME

    if config_path.exists() and not force:
        console.print(f"[red]Error: '{config_path}' already exists[/red]")
        raise typer.Exit(1)

    write_config(create_default_config(), config_path)
    console.print(f"[green]✓[/green] Wrote {config_path}")


@app.command("probe")
def probe_media(
    source: Path = typer.Argument(..., help="MP4/MOV file to inspect"),
) -> None:
    """List the tracks of an MP4 container and how their audio would be handled."""
    from vidscript.extract.audio import classify_track
    from vidscript.extract.mp4 import open_container

    try:
        container = open_container(source)
    except VidscriptError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"{source.name} ({container.major_brand or '?'})")
    table.add_column("Track", style="cyan")
    table.add_column("Type")
    table.add_column("Codec", style="green")
    table.add_column("Rate")
    table.add_column("Channels")
    table.add_column("Samples")

    for track in container.tracks:
        codec = track.codec_params.get("entry", "-")
        if track.is_audio and not track.encrypted:
            codec = classify_track(track).label
        elif track.encrypted:
            codec = f"{codec} (encrypted)"
        table.add_row(
            str(track.track_id),
            track.handler or "-",
            codec,
            str(track.timescale) if track.is_audio else "-",
            str(track.channel_count) if track.is_audio else "-",
            str(len(track.sample_sizes)),
        )

    console.print(table)
    console.print(f"[dim]Duration: {format_duration(container.duration_seconds)}[/dim]")


@app.command("extract")
def extract_audio_cmd(
    source: Path = typer.Argument(..., help="Video file to extract audio from"),
    no_fallback: bool = typer.Option(
        False, "--no-fallback", help="Never fall back to FFmpeg"
    ),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Extract the audio track as a standalone .aac/.mp3 file."""
    from vidscript.extract.audio import prepare_audio

    try:
        config = load_config(config_file)
        audio = prepare_audio(
            source,
            fallback=config.fallback_enabled and not no_fallback,
            ffmpeg_path=config.ffmpeg_path,
            observer=console_observer(console),
        )
    except (VidscriptError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if not audio.extracted:
        console.print(f"[yellow]{source.name} is already an audio file ({audio.format})[/yellow]")
        return

    console.print(
        f"[green]✓[/green] {audio.path} ({audio.format}, {format_size(audio.path)})"
    )


@app.command("transcribe")
def transcribe(
    source: Path = typer.Argument(..., help="Audio or video file to transcribe"),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Transcript path (default: <input>.txt)"
    ),
    json_output: Path | None = typer.Option(
        None, "--json", help="Also write utterances with timestamps as JSON"
    ),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
    keep_audio: bool = typer.Option(
        False, "--keep-audio", help="Keep the extracted temporary audio file"
    ),
    no_fallback: bool = typer.Option(
        False, "--no-fallback", help="Never fall back to FFmpeg"
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Give up waiting for the result after N seconds"
    ),
) -> None:
    """Transcribe an audio or video file with the remote recognition service."""
    from vidscript.io import save_transcript, save_utterances
    from vidscript.pipeline import transcribe_media

    try:
        config = load_config(config_file)
    except (VidscriptError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    updates: dict[str, Any] = {}
    if keep_audio:
        updates["keep_audio"] = True
    if no_fallback:
        updates["fallback"] = "never"
    if updates:
        config = config.model_copy(update=updates)

    cancel = threading.Event()
    timer = None
    if timeout:
        timer = threading.Timer(timeout, cancel.set)
        timer.daemon = True
        timer.start()

    console.print(f"[cyan]Transcribing {source.name}...[/cyan]\n")

    try:
        result = transcribe_media(
            source,
            config=config,
            observer=console_observer(console),
            cancel=cancel,
        )
    except VidscriptError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    finally:
        if timer is not None:
            timer.cancel()

    output_path = output or source.with_suffix(".txt")
    save_transcript(output_path, result)
    if json_output:
        save_utterances(json_output, result)

    console.print(
        f"\n[green]✓[/green] {len(result.utterances)} utterance(s) written to {output_path}"
    )


@app.command("doctor")
def run_doctor(
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Check configuration and optional dependencies."""
    from vidscript.extract.ffmpeg import check_ffmpeg

    console.print("[cyan]Running preflight checks...[/cyan]\n")

    table = Table(title="Environment")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    all_passed = True

    try:
        config = load_config(config_file)
        source = str(config.config_path) if config.config_path else "built-in defaults"
        table.add_row("Config", "✓ Valid", source)
        table.add_row("Service", "✓ Configured", config.service.api_base)
        ffmpeg_path = config.ffmpeg_path
        fallback_enabled = config.fallback_enabled
    except (VidscriptError, FileNotFoundError) as e:
        table.add_row("Config", "✗ Invalid", str(e))
        all_passed = False
        ffmpeg_path = "ffmpeg"
        fallback_enabled = True

    try:
        versions = check_ffmpeg(ffmpeg_path)
        table.add_row("FFmpeg", "✓ Installed", versions.get("ffmpeg_version", "unknown"))
    except DependencyError as e:
        if fallback_enabled:
            table.add_row("FFmpeg", "⚠ Missing (fallback unavailable)", e.install_hint or "")
        else:
            table.add_row("FFmpeg", "- Not needed", "fallback disabled")

    console.print(table)

    if all_passed:
        console.print("\n[green]✓ All checks passed[/green]")
    else:
        console.print("\n[yellow]⚠ Some checks failed[/yellow]")
        raise typer.Exit(1)
