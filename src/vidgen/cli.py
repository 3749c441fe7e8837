"""CLI entry point for the text-to-video generator."""

import logging
import typer
from pathlib import Path
from typing import Optional
from enum import Enum

from . import __version__
from .config import config
from .models import VideoArtifact, VideoMetadata

app = typer.Typer(
    name="vidgen",
    help="AI-powered text-to-video generator",
    no_args_is_help=True
)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"vidgen version {__version__}")
        raise typer.Exit()


def echo_progress(message: str) -> None:
    """Progress callback that prints status lines."""
    typer.echo(f"   {message}")


def sidecar_path(video: Path) -> Path:
    """YAML metadata file stored next to a video."""
    return video.with_suffix(video.suffix + ".yaml")


def _finish(artifact: VideoArtifact, output: Optional[Path]) -> Path:
    """Move the artifact to ``output`` (if given) and write its sidecar."""
    if output is None:
        artifact.metadata.to_yaml(sidecar_path(artifact.path))
        return artifact.path
    artifact.save(output)
    artifact.release()
    return output


def _show_metadata(metadata: VideoMetadata) -> None:
    typer.echo(f"   Resolution: {metadata.width}x{metadata.height}")
    typer.echo(f"   Frame rate: {metadata.fps} fps")
    typer.echo(f"   Frames: {metadata.frame_count} ({metadata.frame_count / metadata.fps:.1f}s)")


class UpscalerEngine(str, Enum):
    """Frame upscaler engines."""
    LANCZOS = "lanczos"
    IMAGEN = "imagen"


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    """Text-to-video generator - turn a prompt into a rendered video."""
    pass


@app.command()
def generate(
    prompt: str = typer.Argument(
        ...,
        help="Natural-language description of the video"
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output video file path (defaults to the output directory)"
    ),
    upscale: bool = typer.Option(
        False,
        "--upscale",
        "-u",
        help="Also produce a 2x enhanced version"
    ),
    engine: UpscalerEngine = typer.Option(
        UpscalerEngine.LANCZOS,
        "--engine",
        "-e",
        help="Upscaler engine used with --upscale"
    ),
    save_source: Optional[Path] = typer.Option(
        None,
        "--save-source",
        "-s",
        help="Also write the generated scene code to this file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Generate a video from a prompt: scene code, frames, encode."""
    from .editor import UpscalePipeline, create_upscaler
    from .errors import VideoPipelineError
    from .pipeline import VideoPipeline

    setup_logging(verbose)
    typer.echo(f"🎬 Generating: {prompt}")

    # Validate API key
    try:
        config.validate_required()
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    pipeline = VideoPipeline()
    try:
        typer.echo(f"   Using model: {pipeline.agent.model}")
        source = pipeline.generate_scene(prompt, echo_progress)
        if save_source:
            save_source.parent.mkdir(parents=True, exist_ok=True)
            save_source.write_text(source.code, encoding="utf-8")
            typer.echo(f"   Scene code saved: {save_source}")
        artifact = pipeline.render_source(source, echo_progress)
    except VideoPipelineError as e:
        typer.echo(f"❌ Generation failed: {e}")
        raise typer.Exit(1)

    path = _finish(artifact, output)
    typer.echo(f"\n✅ Video saved: {path}")
    _show_metadata(artifact.metadata)

    if upscale:
        try:
            upscaler = UpscalePipeline(engine=create_upscaler(engine.value))
            hd = upscaler.upscale(artifact.payload, artifact.metadata, echo_progress)
        except ValueError as e:
            typer.echo(f"❌ Configuration error: {e}")
            raise typer.Exit(1)
        except VideoPipelineError as e:
            typer.echo(f"❌ Upscale failed: {e}")
            raise typer.Exit(1)
        hd_output = path.with_name(f"{path.stem}_hd{path.suffix}")
        hd_path = _finish(hd, hd_output)
        typer.echo(f"\n✅ HD video saved: {hd_path}")
        _show_metadata(hd.metadata)


@app.command()
def render(
    source_file: Path = typer.Argument(
        ...,
        help="Scene code file (e.g. saved with --save-source)",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output video file path"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Render and encode an existing scene file without calling the model."""
    from .errors import VideoPipelineError
    from .pipeline import VideoPipeline

    setup_logging(verbose)
    typer.echo(f"🎬 Rendering {source_file}")

    try:
        artifact = VideoPipeline().render_source(source_file.read_text(encoding="utf-8"), echo_progress)
    except VideoPipelineError as e:
        typer.echo(f"❌ Render failed: {e}")
        raise typer.Exit(1)

    path = _finish(artifact, output)
    typer.echo(f"\n✅ Video saved: {path}")
    _show_metadata(artifact.metadata)


@app.command()
def inspect(
    source_file: Path = typer.Argument(
        ...,
        help="Scene code file",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
) -> None:
    """Show the render config and renderer a scene file would get."""
    from .render import extract_config, validate_scene

    code = source_file.read_text(encoding="utf-8")
    render_config = extract_config(code)
    validation = validate_scene(code)

    typer.echo(f"📄 {source_file}")
    typer.echo(f"   Frames: {render_config.frame_count}")
    typer.echo(f"   Frame rate: {render_config.fps} fps")
    typer.echo(f"   Resolution: {render_config.width}x{render_config.height}")
    typer.echo(f"   Duration: {render_config.duration:.1f}s")
    if validation.ok:
        typer.echo("   Renderer: procedural")
    else:
        typer.echo(f"   Renderer: placeholder (missing: {', '.join(validation.missing)})")


@app.command()
def upscale(
    video: Path = typer.Argument(
        ...,
        help="Video produced by 'vidgen generate' or 'vidgen render'",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file path (defaults to <video>_hd.mp4)"
    ),
    fps: Optional[int] = typer.Option(None, "--fps", help="Source frame rate", min=1),
    width: Optional[int] = typer.Option(None, "--width", help="Source width", min=1),
    height: Optional[int] = typer.Option(None, "--height", help="Source height", min=1),
    frames: Optional[int] = typer.Option(None, "--frames", help="Source frame count", min=1),
    engine: UpscalerEngine = typer.Option(
        UpscalerEngine.LANCZOS,
        "--engine",
        "-e",
        help="Upscaler engine"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Re-render a video at 2x resolution through a per-frame upscaler."""
    from .editor import UpscalePipeline, create_upscaler
    from .errors import VideoPipelineError

    setup_logging(verbose)
    typer.echo(f"✨ Upscaling {video}")

    sidecar = sidecar_path(video)
    overrides = {"fps": fps, "width": width, "height": height, "frame_count": frames}
    try:
        data = VideoMetadata.from_yaml(sidecar).model_dump() if sidecar.exists() else {}
        data.update({k: v for k, v in overrides.items() if v is not None})
        data.setdefault("frame_count", 1)
        metadata = VideoMetadata(**data)
    except Exception as e:
        typer.echo(f"❌ Missing video metadata ({e})")
        typer.echo(f"   Provide {sidecar.name} or pass --fps, --width and --height")
        raise typer.Exit(1)

    try:
        upscaler = UpscalePipeline(engine=create_upscaler(engine.value))
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    try:
        hd = upscaler.upscale(video.read_bytes(), metadata, echo_progress)
    except VideoPipelineError as e:
        typer.echo(f"❌ Upscale failed: {e}")
        raise typer.Exit(1)

    output = output or video.with_name(f"{video.stem}_hd{video.suffix}")
    path = _finish(hd, output)
    typer.echo(f"\n✅ HD video saved: {path}")
    _show_metadata(hd.metadata)


if __name__ == "__main__":
    app()
