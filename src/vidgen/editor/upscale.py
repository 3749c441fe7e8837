"""Neural upscale pass: re-render a finished video at 2x resolution."""

import logging
import uuid
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

import numpy as np
from PIL import Image

from ..cancel import CancellationToken
from ..config import config
from ..errors import EncodeFailure, UpscaleFrameFailure
from ..models import UpscaleRequest, VideoArtifact, VideoMetadata
from ..progress import ProgressCallback, ProgressReporter, as_reporter, percent
from .encoder import (
    FRAME_PREFIX,
    HIGH_QUALITY_SETTINGS,
    EncodeSettings,
    EncoderBackend,
    MoviePyBackend,
    verify_output,
)
from .scratch import ScratchSpace

logger = logging.getLogger(__name__)


class UpscaleState(str, Enum):
    """State of an upscale call."""

    IDLE = "idle"
    EXTRACTING = "extracting"
    UPSCALING = "upscaling"
    REENCODING = "reencoding"
    DONE = "done"
    FAILED = "failed"


class FrameUpscaler(Protocol):
    """Single-image super-resolution engine."""

    def upscale_frame(self, pixels: np.ndarray) -> np.ndarray:
        """Return ``pixels`` at exactly twice the width and height."""
        ...


class LanczosUpscaler:
    """Local 2x upscaler using Lanczos resampling; needs no network or model."""

    def upscale_frame(self, pixels: np.ndarray) -> np.ndarray:
        height, width = pixels.shape[:2]
        with Image.fromarray(pixels) as image:
            with image.resize((width * 2, height * 2), Image.Resampling.LANCZOS) as resized:
                return np.array(resized.convert("RGB"), dtype=np.uint8)


def create_upscaler(name: Optional[str] = None) -> FrameUpscaler:
    """Build the engine named ``name`` (defaults to config.upscaler)."""
    name = name or config.upscaler
    if name == "lanczos":
        return LanczosUpscaler()
    if name == "imagen":
        from ..services.imagen import ImagenUpscaler

        config.validate_imagen_required()
        return ImagenUpscaler()
    raise ValueError(f"Unknown upscaler: {name}. Must be 'lanczos' or 'imagen'")


class UpscalePipeline:
    """Extracts frames, enhances each one, and re-encodes at 2x.

    States run ``extracting -> upscaling -> reencoding -> done``; any error
    moves to ``failed`` and aborts the call. No partial HD output is ever
    returned, and the scratch workspace is removed on every path.
    """

    def __init__(
        self,
        engine: Optional[FrameUpscaler] = None,
        backend: Optional[EncoderBackend] = None,
        scratch_root: Optional[Path] = None,
        output_dir: Optional[Path] = None,
        settings: EncodeSettings = HIGH_QUALITY_SETTINGS,
    ) -> None:
        self._engine = engine or LanczosUpscaler()
        self._backend = backend or MoviePyBackend()
        self._scratch_root = scratch_root
        self._output_dir = Path(output_dir) if output_dir is not None else config.output_dir
        self._settings = settings
        self._state = UpscaleState.IDLE

    @property
    def state(self) -> UpscaleState:
        """State of the most recent call."""
        return self._state

    def _enter(self, state: UpscaleState) -> None:
        logger.debug(f"Upscale state: {self._state.value} -> {state.value}")
        self._state = state

    def upscale_request(
        self,
        request: UpscaleRequest,
        on_progress: "Optional[ProgressCallback | ProgressReporter]" = None,
        cancel: Optional[CancellationToken] = None,
    ) -> VideoArtifact:
        return self.upscale(request.source_payload, request.source_metadata, on_progress, cancel)

    def upscale(
        self,
        payload: bytes,
        metadata: VideoMetadata,
        on_progress: "Optional[ProgressCallback | ProgressReporter]" = None,
        cancel: Optional[CancellationToken] = None,
    ) -> VideoArtifact:
        """Produce a new artifact at twice the source resolution.

        Args:
            payload: Source MP4 bytes.
            metadata: Source metadata; its fps is used for extraction and output.
            on_progress: Status callback or reporter.
            cancel: Optional cancellation token, checked between frames.

        Returns:
            New artifact with metadata ``{2w, 2h, fps, extracted frame count}``.

        Raises:
            UpscaleFrameFailure: If any single frame cannot be enhanced.
            EncodeFailure: If extraction or re-encoding fails.
            PipelineCancelled: If ``cancel`` is triggered.
        """
        progress = as_reporter(on_progress)
        self._enter(UpscaleState.EXTRACTING)
        progress.update(UpscaleState.EXTRACTING.value, 0.0, "🚀 Starting neural upscale...")

        try:
            with ScratchSpace("upscale", self._scratch_root) as scratch:
                originals = self._extract(payload, metadata, scratch, progress)

                self._enter(UpscaleState.UPSCALING)
                total = len(originals)
                progress.update(UpscaleState.UPSCALING.value, 0.0, f"🎨 Upscaling {total} frames...")
                enhanced: list[Path] = []
                for i, path in enumerate(originals):
                    if cancel is not None:
                        cancel.raise_if_cancelled("upscaling")
                    enhanced.append(self._enhance(i, path, metadata, scratch))
                    progress.update(
                        UpscaleState.UPSCALING.value,
                        (i + 1) / total,
                        f"🎨 Upscaling: {percent(i + 1, total)}%",
                    )

                if cancel is not None:
                    cancel.raise_if_cancelled("re-encoding")
                self._enter(UpscaleState.REENCODING)
                progress.update(UpscaleState.REENCODING.value, 0.0, "🔧 Re-encoding HD video...")
                hd_payload = self._reencode(enhanced, metadata, scratch)

            hd_metadata = replace_frame_count(metadata.doubled(), total)
            artifact = VideoArtifact.persist(
                hd_payload,
                self._output_dir / f"video_hd_{uuid.uuid4().hex[:12]}.mp4",
                hd_metadata,
            )
        except Exception as e:
            self._enter(UpscaleState.FAILED)
            logger.error(f"Upscale failed: {e}")
            progress.fail(str(e))
            raise

        self._enter(UpscaleState.DONE)
        progress.complete(UpscaleState.DONE.value, "✅ HD video complete!")
        logger.info(
            f"Upscaled {metadata.width}x{metadata.height} -> "
            f"{hd_metadata.width}x{hd_metadata.height} ({total} frames)"
        )
        return artifact

    def _extract(
        self,
        payload: bytes,
        metadata: VideoMetadata,
        scratch: ScratchSpace,
        progress: ProgressReporter,
    ) -> list[Path]:
        input_path = scratch.file("input.mp4")
        input_path.write_bytes(payload)

        progress.update(UpscaleState.EXTRACTING.value, 0.5, "📤 Extracting frames...")
        try:
            originals = self._backend.extract_frames(input_path, scratch.path, FRAME_PREFIX)
        except Exception as e:
            logger.error(f"Frame extraction failed: {e}")
            raise EncodeFailure(f"Frame extraction failed: {e}") from e
        if not originals:
            raise EncodeFailure("No frames could be extracted from the source video")
        logger.info(f"Extracted {len(originals)} frames")
        return sorted(originals, key=lambda p: p.name)

    def _enhance(self, index: int, path: Path, metadata: VideoMetadata, scratch: ScratchSpace) -> Path:
        with Image.open(path) as image:
            source = np.array(image.convert("RGB"), dtype=np.uint8)

        height, width = source.shape[:2]
        # odd sources come back padded to even dimensions
        padded = (metadata.width + metadata.width % 2, metadata.height + metadata.height % 2)
        if (width, height) == padded:
            source = np.ascontiguousarray(source[: metadata.height, : metadata.width])
            height, width = metadata.height, metadata.width
        if (width, height) != (metadata.width, metadata.height):
            raise UpscaleFrameFailure(
                f"Frame {index} is {width}x{height}, expected {metadata.width}x{metadata.height}",
                index,
            )

        try:
            result = np.asarray(self._engine.upscale_frame(source))
        except Exception as e:
            logger.error(f"Enhancement of frame {index} failed: {e}")
            raise UpscaleFrameFailure(f"Frame {index} enhancement failed: {e}", index) from e

        expected = (height * 2, width * 2, 3)
        if tuple(result.shape) != expected:
            raise UpscaleFrameFailure(
                f"Frame {index} came back as {tuple(result.shape)}, expected {expected}", index
            )

        hd_path = scratch.file(self._settings.prefix + path.name[len(FRAME_PREFIX):])
        Image.fromarray(result.astype(np.uint8, copy=False)).save(hd_path, compress_level=1)
        # drop both buffers before the next frame
        del source, result
        return hd_path

    def _reencode(self, enhanced: list[Path], metadata: VideoMetadata, scratch: ScratchSpace) -> bytes:
        settings = replace(self._settings, fps=metadata.fps)
        output_path = scratch.file(settings.output_name)
        logger.info(f"Re-encoding {len(enhanced)} frames (ffmpeg {' '.join(settings.to_ffmpeg_args(len(enhanced)))})")
        try:
            self._backend.encode_sequence(enhanced, settings, output_path)
        except Exception as e:
            logger.error(f"HD re-encode failed: {e}")
            raise EncodeFailure(f"HD re-encode failed: {e}") from e
        verify_output(self._backend, output_path, len(enhanced))
        return output_path.read_bytes()


def replace_frame_count(metadata: VideoMetadata, frame_count: int) -> VideoMetadata:
    return metadata.model_copy(update={"frame_count": frame_count})
