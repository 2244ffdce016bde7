"""CLI entrypoint for emoset dataset tools."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from urllib.parse import urlparse

import typer
from dotenv import load_dotenv
from sqlmodel.ext.asyncio.session import AsyncSession

from ..audio.codec import AudioProcessingError, decode_audio, encode_wav
from ..audio.metadata import extract_metadata
from ..audio.renderer import RasterSurface, RenderMode, render_waveform
from ..audio.waveform import DEFAULT_SAMPLE_COUNT, WaveformError, compute_envelope, extract_waveform
from ..config import load_config
from ..db.config import get_engine
from ..utils import derive_output_name

app = typer.Typer(
    name="emoset",
    help="Curate an emotion-labelled speech audio dataset",
    no_args_is_help=True,
)


def _read_audio(path: Path):
    try:
        return decode_audio(path.read_bytes())
    except (OSError, AudioProcessingError) as e:
        typer.echo(f"Error: could not read {path}: {e}", err=True)
        raise typer.Exit(code=1)


@app.command("version")
def version() -> None:
    """Print the current version of emoset."""
    typer.echo("emoset version v0")


@app.command("convert")
def convert(
    source: Path,
    output: Path | None = typer.Option(None, "--output", "-o", help="Output WAV path"),
) -> None:
    """Convert any decodable audio file to 16-bit PCM WAV."""
    buffer = _read_audio(source)
    target = output or source.with_suffix(".wav")
    if target.resolve() == source.resolve():
        typer.echo("Error: output would overwrite the input file", err=True)
        raise typer.Exit(code=1)

    data = encode_wav(buffer)
    _ = target.write_bytes(data)
    typer.echo(
        f"✓ Wrote {target} ({buffer.channel_count} ch, {buffer.sample_rate_hz} Hz, "
        + f"{buffer.duration_seconds:.2f}s, {len(data) / 1024 / 1024:.2f} MB)"
    )


@app.command("inspect")
def inspect(path: Path) -> None:
    """Show duration, sample rate, channels and average level of an audio file."""
    metadata = extract_metadata(_read_audio(path))
    typer.echo(f"File:          {path}")
    typer.echo(f"Duration:      {metadata.duration_seconds:.2f} s")
    typer.echo(f"Sample rate:   {metadata.sample_rate_hz} Hz")
    typer.echo(f"Channels:      {metadata.channel_count}")
    typer.echo(f"Average level: {metadata.average_level_db:.1f} dB")


@app.command("waveform")
def waveform(
    source: str = typer.Argument(..., help="Audio file path or http(s) URL"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output PNG path"),
    mode: RenderMode = typer.Option(RenderMode.PROGRESS, help="overlay or progress"),
    progress: float = typer.Option(0.0, min=0.0, max=1.0, help="Playback fraction"),
    width: int = typer.Option(600, min=1, help="Logical width"),
    height: int = typer.Option(80, min=1, help="Logical height"),
    dpr: float = typer.Option(1.0, min=0.25, help="Device pixel ratio"),
    samples: int = typer.Option(DEFAULT_SAMPLE_COUNT, min=1, help="Envelope buckets"),
) -> None:
    """Render the waveform of an audio file or a (signed) URL to PNG."""
    if source.startswith(("http://", "https://")):
        try:
            envelope = asyncio.run(extract_waveform(source, samples))
        except WaveformError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=1)
        stem = derive_output_name(urlparse(source).path.rsplit("/", 1)[-1])
        default_target = Path(f"{stem}_waveform.png")
    else:
        path = Path(source)
        envelope = compute_envelope(_read_audio(path), samples)
        default_target = path.with_name(f"{path.stem}_waveform.png")

    surface = render_waveform(RasterSurface(width, height, dpr), envelope.values, progress, mode)
    target = output or default_target
    _ = target.write_bytes(surface.to_png_bytes())
    typer.echo(f"✓ Wrote {target} ({surface.physical_size[0]}x{surface.physical_size[1]} px)")


@app.command("play")
def play(path: Path, meter_width: int = typer.Option(40, min=8, help="Level meter width")) -> None:
    """Play an audio file with a realtime level meter.

    Note: This requires an audio output device (sounddevice/PortAudio).
    """
    from ..audio.analyzer import PlaybackElement, calculate_average_level, get_realtime_analyzer

    buffer = _read_audio(path)

    async def _play() -> None:
        element = PlaybackElement(buffer)
        analyzer = get_realtime_analyzer()

        def show(levels) -> None:
            filled = int(calculate_average_level(levels) / 255 * meter_width)
            bar = "█" * filled + " " * (meter_width - filled)
            typer.echo(f"\r{element.current_time:6.2f}s |{bar}|", nl=False)

        try:
            element.open_stream()
        except Exception as e:
            typer.echo(f"Error: could not open audio output: {e}", err=True)
            raise typer.Exit(code=1)

        handle = analyzer.start(element, show)
        element.play()
        try:
            while not element.ended and not element.paused:
                await asyncio.sleep(0.05)
        finally:
            handle.stop()
            element.close()
        typer.echo("")

    try:
        asyncio.run(_play())
    except KeyboardInterrupt:
        typer.echo("\nStopped.")


@app.command("export")
def export(
    fmt: str = typer.Option("csv", "--format", "-f", help="csv or json"),
    dataset_type: str | None = typer.Option(None, "--split", help="train, test or validation"),
    output_dir: Path = typer.Option(Path("."), "--output-dir", "-o"),
) -> None:
    """Export clip metadata to a dated CSV or JSON file."""
    from ..dataset.export import export_csv, export_json, filter_by_dataset_type
    from ..db.operations import list_files
    from ..utils import dated_filename

    if fmt not in ("csv", "json"):
        typer.echo(f"Error: unknown format {fmt}", err=True)
        raise typer.Exit(code=1)

    async def _export() -> None:
        async with AsyncSession(get_engine(), expire_on_commit=False) as session:
            files = filter_by_dataset_type(await list_files(session), dataset_type)

        content = export_csv(files) if fmt == "csv" else export_json(files)
        target = output_dir / dated_filename("audio_dataset", dataset_type, fmt)
        _ = target.write_text(content, encoding="utf-8")
        typer.echo(f"✓ Exported {len(files)} file(s) to {target}")

    asyncio.run(_export())


@app.command("import-csv")
def import_csv(path: Path) -> None:
    """Apply label edits (emotion, description, split) from a CSV file."""
    from uuid import UUID

    from ..dataset.bulk import run_batch
    from ..dataset.export import ImportRow, parse_import_csv
    from ..db.operations import update_file_labels

    config = load_config()
    rows, skipped = parse_import_csv(path.read_text(encoding="utf-8"), config.dataset)

    async def _import() -> None:
        async def apply(row: ImportRow) -> None:
            async with AsyncSession(get_engine(), expire_on_commit=False) as session:
                _ = await update_file_labels(session, UUID(row.file_id), row.changes)

        report = await run_batch(rows, apply, describe=lambda row: row.file_id)

        report.skipped += skipped
        typer.echo(f"✓ Import finished: {report.summary()}")
        for error in report.errors:
            typer.echo(f"  - {error}", err=True)
        if report.failed:
            raise typer.Exit(code=1)

    asyncio.run(_import())


@app.command("stats")
def stats() -> None:
    """Show clip counts per team member and emotion."""
    from ..dataset.statistics import compute_statistics
    from ..db.operations import list_files

    config = load_config()

    async def _stats() -> None:
        async with AsyncSession(get_engine(), expire_on_commit=False) as session:
            files = await list_files(session)

        result = compute_statistics(files, config.dataset)
        typer.echo(
            f"Total: {result.total_files}/{result.target_clips} clips "
            + f"({result.progress_percent:.1f}%, {result.remaining_clips} to go)"
        )
        typer.echo("\nBy emotion:")
        for emotion, count in result.emotion_totals.items():
            typer.echo(f"  {emotion:<12} {count}")
        typer.echo("\nBy team member:")
        for member, count in result.member_totals.items():
            breakdown = ", ".join(
                f"{e} {n}" for e, n in result.member_emotions[member].items() if n
            )
            typer.echo(f"  {member:<12} {count}" + (f"  ({breakdown})" if breakdown else ""))
        typer.echo("\nBy split:")
        for split, count in result.split_totals.items():
            typer.echo(f"  {split:<12} {count}")

    asyncio.run(_stats())


def main() -> None:
    """Main CLI entrypoint."""
    # Load .env file if it exists (doesn't override existing env vars)
    _ = load_dotenv()
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    app()


if __name__ == "__main__":
    main()
