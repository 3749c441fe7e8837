"""Video encoder: ordered frames -> H.264/MP4 artifact."""

import logging
import subprocess
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Optional, Protocol

from moviepy.config import FFMPEG_BINARY
from PIL import Image

from ..cancel import CancellationToken
from ..config import config
from ..errors import EncodeFailure, RenderFailure
from ..models import Frame, RenderConfig, VideoArtifact, VideoMetadata
from ..progress import ProgressCallback, ProgressReporter, as_reporter
from .scratch import ScratchSpace

logger = logging.getLogger(__name__)

STAGE = "encoding"
FRAME_PREFIX = "frame"
MIN_INDEX_DIGITS = 5

# yuv420p needs even dimensions; odd ones get one black row/column
EVEN_PAD_FILTER = "pad=ceil(iw/2)*2:ceil(ih/2)*2"


def index_digits(frame_count: int) -> int:
    """Zero-padding width that keeps lexical order equal to index order."""
    return max(MIN_INDEX_DIGITS, len(str(max(0, frame_count - 1))))


def frame_filename(index: int, frame_count: int, prefix: str = FRAME_PREFIX) -> str:
    return f"{prefix}{index:0{index_digits(frame_count)}d}.png"


@dataclass(frozen=True)
class EncodeSettings:
    """Parameters of one encoder invocation.

    Mirrors the command-line surface of the encoding tool: input frame rate,
    input sequence pattern, codec, pixel format, speed preset, optional
    quality constant and output filename.
    """

    fps: int
    prefix: str = FRAME_PREFIX
    codec: str = "libx264"
    pixel_format: str = "yuv420p"
    preset: str = "fast"
    crf: Optional[int] = None
    output_name: str = "output.mp4"

    def input_pattern(self, frame_count: int) -> str:
        """Sequence pattern matching :func:`frame_filename` for ``frame_count`` frames."""
        return f"{self.prefix}%0{index_digits(frame_count)}d.png"

    def frame_names(self, frame_count: int) -> list[str]:
        return [frame_filename(i, frame_count, self.prefix) for i in range(frame_count)]

    def to_ffmpeg_args(self, frame_count: int, output: Optional[str] = None) -> list[str]:
        """The ``ffmpeg`` argument list, relative to the frame directory."""
        args = [
            "-framerate", str(self.fps),
            "-start_number", "0",
            "-i", self.input_pattern(frame_count),
            "-frames:v", str(frame_count),
            "-vf", EVEN_PAD_FILTER,
            "-c:v", self.codec,
            "-pix_fmt", self.pixel_format,
            "-preset", self.preset,
        ]
        if self.crf is not None:
            args.extend(["-crf", str(self.crf)])
        args.append(output or self.output_name)
        return args


# Initial pass favours speed; the upscale re-encode favours fidelity.
FAST_SETTINGS = EncodeSettings(fps=30)
HIGH_QUALITY_SETTINGS = EncodeSettings(
    fps=30,
    prefix=f"hd_{FRAME_PREFIX}",
    preset="slow",
    crf=18,
    output_name="output_hd.mp4",
)


class EncoderBackend(Protocol):
    """The external encoding procedure."""

    def encode_sequence(self, frame_paths: list[Path], settings: EncodeSettings, output_path: Path) -> None:
        """Encode ``frame_paths`` (named by ``settings``, in index order) into ``output_path``."""
        ...

    def extract_frames(self, video_path: Path, dest_dir: Path, prefix: str = FRAME_PREFIX) -> list[Path]:
        """Demux every frame of ``video_path`` into ordered PNG files under ``dest_dir``."""
        ...

    def count_frames(self, video_path: Path) -> int:
        """Number of frames ``video_path`` decodes to."""
        ...


def run_ffmpeg(ffmpeg_binary: str, args: list[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
    """Run ffmpeg quietly, raising with the tail of stderr on failure."""
    cmd = [ffmpeg_binary, "-y", "-hide_banner", "-loglevel", "error", *args]
    logger.debug(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True)
    if result.returncode != 0:
        tail = " ".join(result.stderr.strip().splitlines()[-3:])
        raise RuntimeError(f"ffmpeg exited with status {result.returncode}: {tail}")
    return result


class MoviePyBackend:
    """Encoder backend on the ffmpeg binary that moviepy resolves."""

    def __init__(self, ffmpeg_binary: Optional[str] = None) -> None:
        self._ffmpeg = ffmpeg_binary or FFMPEG_BINARY

    def encode_sequence(self, frame_paths: list[Path], settings: EncodeSettings, output_path: Path) -> None:
        if not frame_paths:
            raise ValueError("No frames provided")

        frame_dir = frame_paths[0].parent
        names = [p.name for p in frame_paths]
        if names != settings.frame_names(len(frame_paths)) or any(p.parent != frame_dir for p in frame_paths):
            raise ValueError(
                f"Frames must be named {settings.input_pattern(len(frame_paths))} "
                f"from index 0 in one directory"
            )

        args = settings.to_ffmpeg_args(len(frame_paths), str(Path(output_path).resolve()))
        run_ffmpeg(self._ffmpeg, args, cwd=frame_dir)

    def count_frames(self, video_path: Path) -> int:
        result = run_ffmpeg(
            self._ffmpeg,
            ["-nostats", "-progress", "pipe:1", "-i", str(video_path), "-map", "0:v:0", "-f", "null", "-"],
        )
        counts = [line.split("=", 1)[1] for line in result.stdout.splitlines() if line.startswith("frame=")]
        if not counts:
            raise RuntimeError(f"Could not count frames in {Path(video_path).name}")
        return int(counts[-1].strip())

    def extract_frames(self, video_path: Path, dest_dir: Path, prefix: str = FRAME_PREFIX) -> list[Path]:
        total = self.count_frames(video_path)
        settings = EncodeSettings(fps=1, prefix=prefix)
        run_ffmpeg(
            self._ffmpeg,
            [
                "-i", str(video_path),
                "-map", "0:v:0",
                "-fps_mode", "passthrough",
                "-start_number", "0",
                str(Path(dest_dir) / settings.input_pattern(total)),
            ],
        )
        paths = [Path(dest_dir) / name for name in settings.frame_names(total)]
        missing = [p.name for p in paths if not p.exists()]
        if missing:
            raise RuntimeError(f"Extraction stopped short: {missing[0]} missing of {total} frames")
        return paths


class VideoEncoder:
    """Writes ordered frames to a scratch workspace and encodes them.

    Every frame is written before the backend is invoked, and the workspace
    is removed before :meth:`encode` returns or raises.
    """

    def __init__(
        self,
        backend: Optional[EncoderBackend] = None,
        scratch_root: Optional[Path] = None,
        output_dir: Optional[Path] = None,
        settings: EncodeSettings = FAST_SETTINGS,
    ) -> None:
        self._backend = backend or MoviePyBackend()
        self._scratch_root = scratch_root
        self._output_dir = Path(output_dir) if output_dir is not None else config.output_dir
        self._settings = settings

    @property
    def backend(self) -> EncoderBackend:
        return self._backend

    def encode(
        self,
        frames: Iterable[Frame],
        render_config: RenderConfig,
        on_progress: "Optional[ProgressCallback | ProgressReporter]" = None,
        cancel: Optional[CancellationToken] = None,
    ) -> VideoArtifact:
        """Encode the full frame sequence into an MP4 artifact.

        Args:
            frames: Frames ``0..frame_count-1`` in ascending order.
            render_config: Resolved fps and dimensions.
            on_progress: Status callback or reporter.
            cancel: Optional cancellation token.

        Returns:
            The encoded artifact, persisted under the output directory.

        Raises:
            RenderFailure: If the sequence has gaps, duplicates or bad shapes.
            EncodeFailure: If the encoding backend fails, or its output is
                empty or does not decode to ``frame_count`` frames.
        """
        progress = as_reporter(on_progress)
        settings = replace(self._settings, fps=render_config.fps)
        frame_iter = iter(frames)

        try:
            with ScratchSpace("encode", self._scratch_root) as scratch:
                paths = self._write_frames(frame_iter, render_config, scratch, cancel)

                if cancel is not None:
                    cancel.raise_if_cancelled("encoding")
                progress.update(STAGE, 0.0, "🔧 Encoding video...")
                logger.info(f"Encoding {len(paths)} frames (ffmpeg {' '.join(settings.to_ffmpeg_args(len(paths)))})")

                output_path = scratch.file(settings.output_name)
                try:
                    self._backend.encode_sequence(paths, settings, output_path)
                except Exception as e:
                    logger.error(f"Encoding failed: {e}")
                    raise EncodeFailure(f"Encoding failed: {e}") from e
                verify_output(self._backend, output_path, len(paths))
                payload = output_path.read_bytes()
        finally:
            close = getattr(frame_iter, "close", None)
            if close is not None:
                close()

        metadata = VideoMetadata(
            width=render_config.width,
            height=render_config.height,
            fps=render_config.fps,
            frame_count=render_config.frame_count,
        )
        artifact = VideoArtifact.persist(
            payload,
            self._output_dir / f"video_{uuid.uuid4().hex[:12]}.mp4",
            metadata,
        )
        progress.update(STAGE, 1.0, "✅ Video rendered!")
        logger.info(f"Encoded {len(payload)} bytes -> {artifact.path}")
        return artifact

    def _write_frames(
        self,
        frames: Iterable[Frame],
        render_config: RenderConfig,
        scratch: ScratchSpace,
        cancel: Optional[CancellationToken],
    ) -> list[Path]:
        expected_shape = (render_config.height, render_config.width, 3)
        paths: list[Path] = []

        for frame in frames:
            if cancel is not None:
                cancel.raise_if_cancelled("encoding")
            if frame.index != len(paths):
                raise RenderFailure(
                    f"Frame sequence out of order: expected index {len(paths)}, got {frame.index}"
                )
            if frame.index >= render_config.frame_count:
                raise RenderFailure(
                    f"Frame {frame.index} beyond declared frame count {render_config.frame_count}"
                )
            if tuple(frame.pixels.shape) != expected_shape:
                raise RenderFailure(
                    f"Frame {frame.index} has shape {tuple(frame.pixels.shape)}, expected {expected_shape}"
                )

            path = scratch.file(frame_filename(frame.index, render_config.frame_count, self._settings.prefix))
            Image.fromarray(frame.pixels).save(path, compress_level=1)
            paths.append(path)

        if len(paths) != render_config.frame_count:
            raise RenderFailure(
                f"Expected {render_config.frame_count} frames, got {len(paths)}"
            )
        return paths


def verify_output(backend: EncoderBackend, output_path: Path, frame_count: int) -> None:
    """Reject a missing or empty container, or one holding the wrong number of frames."""
    if not output_path.exists() or output_path.stat().st_size == 0:
        raise EncodeFailure(f"Encoder produced no output at {output_path.name}")
    try:
        encoded = backend.count_frames(output_path)
    except Exception as e:
        raise EncodeFailure(f"Encoded video could not be read back: {e}") from e
    if encoded != frame_count:
        logger.error(f"Encoded {encoded} frames, expected {frame_count}")
        raise EncodeFailure(f"Encoded video holds {encoded} frames, expected {frame_count}")
