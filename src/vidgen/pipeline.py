"""
Pipeline: one prompt -> one encoded video artifact.

Stages run strictly in order (scene code, config, frames, encode) inside a
single call; the optional upscale pass is a separate call on the finished
artifact.
"""
import logging
from pathlib import Path
from typing import Optional, Union

from .agents import SceneAgent
from .cancel import CancellationToken
from .editor import UpscalePipeline, VideoEncoder
from .models import (
    GenerationJob,
    GenerationRequest,
    JobState,
    SceneSource,
    UpscaleRequest,
    VideoArtifact,
)
from .progress import ProgressCallback, ProgressReporter, as_reporter
from .render import FrameRenderer, extract_config

logger = logging.getLogger(__name__)


class VideoPipeline:
    """Runs the text-to-video stages for one prompt at a time per call.

    Collaborators are injectable; anything not supplied is built from
    configuration on first use. The pipeline holds no per-call state other
    than :attr:`last_job`, so one instance can serve several calls.
    """

    def __init__(
        self,
        agent: Optional[SceneAgent] = None,
        renderer: Optional[FrameRenderer] = None,
        encoder: Optional[VideoEncoder] = None,
        upscaler: Optional[UpscalePipeline] = None,
        scratch_root: Optional[Path] = None,
        output_dir: Optional[Path] = None,
    ) -> None:
        self._agent = agent
        self._renderer = renderer or FrameRenderer()
        self._encoder = encoder or VideoEncoder(scratch_root=scratch_root, output_dir=output_dir)
        self._upscaler = upscaler
        self._scratch_root = scratch_root
        self._output_dir = output_dir
        self.last_job: Optional[GenerationJob] = None

    @property
    def agent(self) -> SceneAgent:
        if self._agent is None:
            self._agent = SceneAgent()
        return self._agent

    @property
    def upscaler(self) -> UpscalePipeline:
        if self._upscaler is None:
            self._upscaler = UpscalePipeline(
                backend=self._encoder.backend,
                scratch_root=self._scratch_root,
                output_dir=self._output_dir,
            )
        return self._upscaler

    def generate_scene(
        self,
        request: Union[GenerationRequest, str],
        on_progress: "Optional[ProgressCallback | ProgressReporter]" = None,
    ) -> SceneSource:
        """Stage 1 only: prompt -> scene source."""
        return self.agent.run(request, on_progress=on_progress)

    def generate(
        self,
        request: Union[GenerationRequest, str],
        on_progress: "Optional[ProgressCallback | ProgressReporter]" = None,
        cancel: Optional[CancellationToken] = None,
    ) -> VideoArtifact:
        """Run every stage for ``request`` and return the encoded artifact.

        Raises:
            GenerationError: Scene-code generation failed.
            RenderFailure: A frame could not be produced.
            EncodeFailure: Encoding failed.
            PipelineCancelled: ``cancel`` was triggered.
        """
        if isinstance(request, str):
            request = GenerationRequest(prompt_text=request)
        progress = as_reporter(on_progress)
        job = GenerationJob(request=request)
        self.last_job = job

        try:
            job.state = JobState.GENERATING
            source = self.generate_scene(request, progress)
            if cancel is not None:
                cancel.raise_if_cancelled("generation")
            job.scene_source = source
        except Exception as e:
            self._fail(job, progress, e)
            raise

        return self._render(source, job, progress, cancel)

    def render_source(
        self,
        source: Union[SceneSource, str],
        on_progress: "Optional[ProgressCallback | ProgressReporter]" = None,
        cancel: Optional[CancellationToken] = None,
    ) -> VideoArtifact:
        """Stages 2-4 for source produced earlier (or written by hand)."""
        if isinstance(source, str):
            source = SceneSource(code=source)
        job = GenerationJob(scene_source=source)
        self.last_job = job
        return self._render(source, job, as_reporter(on_progress), cancel)

    def upscale(
        self,
        artifact: Union[VideoArtifact, UpscaleRequest],
        on_progress: "Optional[ProgressCallback | ProgressReporter]" = None,
        cancel: Optional[CancellationToken] = None,
    ) -> VideoArtifact:
        """Optional 2x enhancement pass on a finished artifact."""
        if isinstance(artifact, VideoArtifact):
            artifact = UpscaleRequest.from_artifact(artifact)
        return self.upscaler.upscale_request(artifact, on_progress, cancel)

    def _render(
        self,
        source: SceneSource,
        job: GenerationJob,
        progress: ProgressReporter,
        cancel: Optional[CancellationToken],
    ) -> VideoArtifact:
        try:
            job.state = JobState.RENDERING
            render_config = extract_config(source)
            job.render_config = render_config
            scene = self._renderer.scene_for(source, render_config)
            job.scene_kind = scene.kind
            logger.info(
                f"Render config: {render_config.frame_count} frames @ {render_config.fps} fps, "
                f"{render_config.width}x{render_config.height}"
            )

            frames = self._renderer.render_all(source, render_config, progress, cancel, scene=scene)
            artifact = self._encoder.encode(frames, render_config, progress, cancel)
        except Exception as e:
            self._fail(job, progress, e)
            raise

        job.state = JobState.COMPLETED
        progress.complete("done", "✅ Video ready!")
        return artifact

    @staticmethod
    def _fail(job: GenerationJob, progress: ProgressReporter, error: Exception) -> None:
        job.state = JobState.FAILED
        job.errors.append(str(error))
        logger.error(f"Pipeline failed: {error}")
        progress.fail(str(error))
