"""End-to-end tests for VideoPipeline with fake collaborators."""

import numpy as np
import pytest

from vidgen.agents import SceneAgent
from vidgen.cancel import CancellationToken
from vidgen.editor import UpscalePipeline, VideoEncoder
from vidgen.errors import EncodeFailure, PipelineCancelled, RenderFailure, TransportError
from vidgen.models import JobState, RenderConfig, VideoMetadata
from vidgen.pipeline import VideoPipeline
from vidgen.progress import ProgressReporter
from vidgen.render import FrameRenderer, SceneRenderer

from conftest import DoublingUpscaler, FailingBackend, FakeChatClient, NpzBackend


class BlankScene(SceneRenderer):
    """Scene that leaves the canvas black and records what was drawn."""

    kind = "blank"

    def __init__(self, config, drawn):
        super().__init__(config)
        self.drawn = drawn

    def draw(self, target, index, time):
        self.drawn.append((index, time))


class BlankRenderer(FrameRenderer):
    def __init__(self):
        self.drawn = []

    def scene_for(self, source, config):
        return BlankScene(config, self.drawn)


class CountingRenderer(FrameRenderer):
    """Counts how often a scene is selected."""

    def __init__(self):
        self.selected = 0

    def scene_for(self, source, config):
        self.selected += 1
        return super().scene_for(source, config)


class NameOnlyBackend(NpzBackend):
    """Records frame names and writes a placeholder container."""

    def encode_sequence(self, frame_paths, settings, output_path):
        self.encoded.append(([p.name for p in frame_paths], settings))
        output_path.write_bytes(b"\x00\x00\x00\x18ftypisom")

    def count_frames(self, video_path):
        return len(self.encoded[-1][0])


def make_pipeline(response, backend, scratch_root, output_dir, renderer=None, error=None):
    client = FakeChatClient(response=response, error=error)
    pipeline = VideoPipeline(
        agent=SceneAgent(client),
        renderer=renderer,
        encoder=VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir),
        scratch_root=scratch_root,
        output_dir=output_dir,
    )
    return pipeline, client


class TestVideoPipeline:
    """Tests for VideoPipeline.generate and friends."""

    def test_generate_end_to_end(self, backend, scratch_root, output_dir, scene_source):
        """A prompt becomes an artifact matching the declared config."""
        pipeline, client = make_pipeline(f"```tsx\n{scene_source}```", backend, scratch_root, output_dir)
        reporter = ProgressReporter()

        artifact = pipeline.generate("a red cube rotating", reporter)

        assert artifact.metadata == VideoMetadata(width=32, height=18, fps=3, frame_count=6)
        assert artifact.path.exists()
        with np.load(artifact.path) as data:
            assert data["frames"].shape == (6, 18, 32, 3)

        job = pipeline.last_job
        assert job.state == JobState.COMPLETED
        assert job.scene_kind == "procedural"
        assert job.render_config == RenderConfig(frame_count=6, fps=3, width=32, height=18)
        assert job.scene_source.code.startswith("import React")
        assert len(client.calls) == 1

        messages = [e.message for e in reporter.events]
        assert messages[0] == "🤖 Connecting to fake/model..."
        assert messages[-1] == "✅ Video ready!"
        assert reporter.closed
        assert list(scratch_root.iterdir()) == []

    def test_full_hd_five_second_scene(self, scratch_root, output_dir):
        """150 frames at 1920x1080 are produced in order at index / fps."""
        source = (
            "durationInFrames: 150, fps: 30, width: 1920, height: 1080\n"
            "const frame = useCurrentFrame();"
        )
        renderer = BlankRenderer()
        backend = NameOnlyBackend()
        pipeline, _ = make_pipeline(source, backend, scratch_root, output_dir, renderer=renderer)

        artifact = pipeline.generate("a red cube rotating")

        assert artifact.metadata == VideoMetadata(width=1920, height=1080, fps=30, frame_count=150)
        assert [i for i, _ in renderer.drawn] == list(range(150))
        assert [t for _, t in renderer.drawn] == [i / 30 for i in range(150)]
        names, settings = backend.encoded[0]
        assert names == [f"frame{i:05d}.png" for i in range(150)]
        assert settings.fps == 30

    def test_source_without_draw_routine_uses_placeholder(self, backend, scratch_root, output_dir):
        """Source that only declares its config still renders, on the placeholder scene."""
        source = "durationInFrames: 2, fps: 2, width: 16, height: 8"
        pipeline, _ = make_pipeline(source, backend, scratch_root, output_dir)

        artifact = pipeline.generate("a cube")

        assert artifact.metadata == VideoMetadata(width=16, height=8, fps=2, frame_count=2)
        assert pipeline.last_job.scene_kind == "placeholder"
        assert pipeline.last_job.state == JobState.COMPLETED

    def test_scene_selected_once_per_render(self, backend, scratch_root, output_dir, scene_source):
        """The scene chosen for the job is the one that draws the frames."""
        renderer = CountingRenderer()
        pipeline, _ = make_pipeline(scene_source, backend, scratch_root, output_dir, renderer=renderer)

        pipeline.render_source(scene_source)

        assert renderer.selected == 1
        assert pipeline.last_job.scene_kind == "procedural"

    def test_generation_error(self, backend, scratch_root, output_dir):
        """Transport failures fail the job; nothing is rendered or encoded."""
        pipeline, _ = make_pipeline(
            "", backend, scratch_root, output_dir, error=TransportError("OpenRouter Error: 500", 500)
        )
        reporter = ProgressReporter()
        with pytest.raises(TransportError):
            pipeline.generate("a cube", reporter)

        assert pipeline.last_job.state == JobState.FAILED
        assert pipeline.last_job.errors == ["OpenRouter Error: 500"]
        assert backend.encoded == []
        assert reporter.events[-1].stage == "failed"

    def test_render_failure(self, backend, scratch_root, output_dir, scene_source, monkeypatch):
        """A failing frame aborts the call with no artifact and empty scratch."""
        renderer = FrameRenderer()

        class Exploding(SceneRenderer):
            kind = "exploding"

            def draw(self, target, index, time):
                raise RuntimeError("bad geometry")

        monkeypatch.setattr(renderer, "scene_for", lambda source, config: Exploding(config))
        pipeline, _ = make_pipeline(scene_source, backend, scratch_root, output_dir, renderer=renderer)

        with pytest.raises(RenderFailure):
            pipeline.generate("a cube")
        assert pipeline.last_job.state == JobState.FAILED
        assert list(scratch_root.iterdir()) == []
        assert not output_dir.exists()

    def test_encode_failure(self, scratch_root, output_dir, scene_source):
        """Encoder errors fail the job as EncodeFailure."""
        pipeline, _ = make_pipeline(scene_source, FailingBackend(), scratch_root, output_dir)
        with pytest.raises(EncodeFailure):
            pipeline.generate("a cube")
        assert pipeline.last_job.state == JobState.FAILED
        assert list(scratch_root.iterdir()) == []

    def test_cancelled_before_render(self, backend, scratch_root, output_dir, scene_source):
        """Cancelling stops the call and leaves no scratch behind."""
        token = CancellationToken()
        token.cancel()
        pipeline, _ = make_pipeline(scene_source, backend, scratch_root, output_dir)
        with pytest.raises(PipelineCancelled):
            pipeline.generate("a cube", cancel=token)
        assert pipeline.last_job.state == JobState.FAILED
        assert backend.encoded == []

    def test_render_source_without_model(self, backend, scratch_root, output_dir, scene_source):
        """Hand-written source can be rendered without a model call."""
        pipeline = VideoPipeline(
            agent=SceneAgent(FakeChatClient()),
            encoder=VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir),
        )
        artifact = pipeline.render_source(scene_source)
        assert artifact.metadata.frame_count == 6
        assert pipeline.last_job.request is None
        assert pipeline.last_job.state == JobState.COMPLETED

    def test_calls_use_separate_scratch(self, backend, scratch_root, output_dir, scene_source):
        """Each call writes into its own workspace."""
        seen = []

        class SpyBackend(NpzBackend):
            def encode_sequence(self, frame_paths, settings, output_path):
                seen.append(frame_paths[0].parent)
                super().encode_sequence(frame_paths, settings, output_path)

        pipeline, _ = make_pipeline(scene_source, SpyBackend(), scratch_root, output_dir)
        first = pipeline.render_source(scene_source)
        second = pipeline.render_source(scene_source)

        assert seen[0] != seen[1]
        assert first.path != second.path

    def test_upscale_artifact(self, backend, scratch_root, output_dir, scene_source):
        """The optional pass doubles a finished artifact's resolution."""
        pipeline = VideoPipeline(
            agent=SceneAgent(FakeChatClient()),
            encoder=VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir),
            upscaler=UpscalePipeline(
                engine=DoublingUpscaler(), backend=backend, scratch_root=scratch_root, output_dir=output_dir
            ),
        )
        artifact = pipeline.render_source(scene_source)

        hd = pipeline.upscale(artifact)

        assert hd.metadata == VideoMetadata(width=64, height=36, fps=3, frame_count=6)
        assert artifact.path.exists()
        assert hd.path != artifact.path

    def test_default_upscaler_reuses_encoder_backend(self, backend, scratch_root, output_dir, scene_source):
        """Without an explicit upscaler the encoder's backend is reused."""
        pipeline, _ = make_pipeline(scene_source, backend, scratch_root, output_dir)
        artifact = pipeline.render_source(scene_source)
        pipeline.upscale(artifact)
        assert len(backend.encoded) == 2
        assert backend.extracted
