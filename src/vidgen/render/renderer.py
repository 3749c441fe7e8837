"""Frame renderer: scene source + config -> ordered frame sequence."""

import logging
from typing import Iterator, Optional, Union

from ..cancel import CancellationToken
from ..errors import PipelineCancelled, RenderFailure
from ..models import Frame, RenderConfig, SceneSource
from ..progress import ProgressCallback, ProgressReporter, as_reporter, percent
from .scene import RenderTarget, SceneRenderer, select_scene

logger = logging.getLogger(__name__)

STAGE = "rendering"


class FrameRenderer:
    """Produces one raster per frame index, deterministically.

    Frames are yielded lazily in increasing index order so the encoder can
    write each one out without holding the whole video in memory.
    """

    def scene_for(self, source: Union[str, SceneSource], config: RenderConfig) -> SceneRenderer:
        """Renderer variant used for ``source``."""
        return select_scene(source, config)

    def render_frame(
        self,
        source: Union[str, SceneSource],
        config: RenderConfig,
        index: int,
    ) -> Frame:
        """Render a single frame on its own render target."""
        if not 0 <= index < config.frame_count:
            raise ValueError(f"Frame index {index} outside [0, {config.frame_count})")
        scene = self.scene_for(source, config)
        target = RenderTarget(config.width, config.height)
        try:
            return self._draw(scene, target, config, index)
        finally:
            target.release()

    def render_all(
        self,
        source: Union[str, SceneSource],
        config: RenderConfig,
        on_progress: "Optional[ProgressCallback | ProgressReporter]" = None,
        cancel: Optional[CancellationToken] = None,
        scene: Optional[SceneRenderer] = None,
    ) -> Iterator[Frame]:
        """Yield frames ``0..frame_count-1`` in order.

        The off-screen target is released when the sequence ends, fails, or
        the consumer closes the iterator early. A ``scene`` already chosen
        for ``source`` is drawn as is instead of being selected again.

        Raises:
            RenderFailure: If a frame cannot be produced.
            PipelineCancelled: If ``cancel`` is triggered between frames.
        """
        progress = as_reporter(on_progress)
        progress.update(STAGE, 0.0, "🎬 Preparing render...")

        try:
            if scene is None:
                scene = self.scene_for(source, config)
            target = RenderTarget(config.width, config.height)
        except Exception as e:
            raise RenderFailure(f"Could not prepare render target: {e}") from e

        logger.info(
            f"Rendering {config.frame_count} frames at {config.width}x{config.height} "
            f"({scene.kind} scene)"
        )
        progress.update(STAGE, 0.0, "🎨 Rendering frames...")
        try:
            for index in range(config.frame_count):
                if cancel is not None:
                    cancel.raise_if_cancelled("rendering")
                yield self._draw(scene, target, config, index)
                progress.update(
                    STAGE,
                    index / config.frame_count,
                    f"🎬 Rendering: {percent(index, config.frame_count)}%",
                )
        finally:
            target.release()
            logger.debug("Render target released")

    def _draw(self, scene: SceneRenderer, target: RenderTarget, config: RenderConfig, index: int) -> Frame:
        time = config.time_at(index)
        try:
            scene.draw(target, index, time)
            pixels = target.snapshot()
        except (RenderFailure, PipelineCancelled):
            raise
        except Exception as e:
            logger.error(f"Frame {index} failed: {e}")
            raise RenderFailure(f"Frame {index} could not be rendered: {e}") from e

        expected = (config.height, config.width, 3)
        if pixels.shape != expected:
            raise RenderFailure(f"Frame {index} has shape {pixels.shape}, expected {expected}")
        return Frame(index=index, pixels=pixels, time=time)
