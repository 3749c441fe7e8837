"""Tests for the video encoder."""

import shutil

import numpy as np
import pytest

from vidgen.editor import (
    FAST_SETTINGS,
    HIGH_QUALITY_SETTINGS,
    EncodeSettings,
    MoviePyBackend,
    UpscalePipeline,
    VideoEncoder,
    frame_filename,
)
from vidgen.editor.upscale import LanczosUpscaler
from vidgen.errors import EncodeFailure, RenderFailure
from vidgen.models import Frame, RenderConfig
from vidgen.progress import ProgressReporter

from conftest import DroppingBackend, EmptyOutputBackend, FailingBackend, solid_frames


CONFIG = RenderConfig(frame_count=5, fps=10, width=16, height=8)


def ffmpeg_available() -> bool:
    try:
        import imageio_ffmpeg

        return bool(imageio_ffmpeg.get_ffmpeg_exe())
    except Exception:
        return shutil.which("ffmpeg") is not None


class TestEncodeSettings:
    """Tests for EncodeSettings."""

    def test_fast_preset_args(self):
        """The initial pass uses libx264, yuv420p and the fast preset over the whole sequence."""
        settings = EncodeSettings(fps=30)
        assert settings.to_ffmpeg_args(150) == [
            "-framerate", "30",
            "-start_number", "0",
            "-i", "frame%05d.png",
            "-frames:v", "150",
            "-vf", "pad=ceil(iw/2)*2:ceil(ih/2)*2",
            "-c:v", "libx264",
            "-pix_fmt", "yuv420p",
            "-preset", "fast",
            "output.mp4",
        ]

    def test_high_quality_preset(self):
        """The upscale pass is slower with a lower quality constant."""
        args = HIGH_QUALITY_SETTINGS.to_ffmpeg_args(4)
        assert args[args.index("-preset") + 1] == "slow"
        assert args[args.index("-crf") + 1] == "18"
        assert args[args.index("-i") + 1] == "hd_frame%05d.png"
        assert args[-1] == "output_hd.mp4"
        assert FAST_SETTINGS.crf is None

    def test_input_pattern_matches_frame_names(self):
        """The sequence pattern widens with the frame count, like the file names."""
        settings = EncodeSettings(fps=30)
        assert settings.input_pattern(200000) == "frame%06d.png"
        assert settings.frame_names(3) == ["frame00000.png", "frame00001.png", "frame00002.png"]
        assert settings.to_ffmpeg_args(3, "/tmp/out.mp4")[-1] == "/tmp/out.mp4"

    def test_frame_filename_padding(self):
        """Names are zero padded so sorting matches index order."""
        assert frame_filename(3, 10) == "frame00003.png"
        assert frame_filename(5, 200000) == "frame000005.png"
        names = [frame_filename(i, 120) for i in range(120)]
        assert sorted(names) == names

    def test_backend_rejects_misnamed_frames(self, tmp_path):
        """Files outside the settings' sequence pattern never reach ffmpeg."""
        paths = [tmp_path / "frame00000.png", tmp_path / "frame00002.png"]
        with pytest.raises(ValueError, match="frame%05d.png"):
            MoviePyBackend(ffmpeg_binary="ffmpeg").encode_sequence(paths, FAST_SETTINGS, tmp_path / "out.mp4")


class TestVideoEncoder:
    """Tests for VideoEncoder with an in-memory backend."""

    def test_encode_produces_artifact(self, backend, scratch_root, output_dir):
        """Encoding returns payload, file URL and resolved metadata."""
        encoder = VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir)
        artifact = encoder.encode(solid_frames(5, 16, 8), CONFIG)

        assert artifact.metadata.model_dump() == {"width": 16, "height": 8, "fps": 10, "frame_count": 5}
        assert artifact.url.startswith("file://")
        assert artifact.path.read_bytes() == artifact.payload
        assert artifact.path.parent == output_dir.resolve()

    def test_frames_written_in_index_order(self, backend, scratch_root, output_dir):
        """The backend receives every frame, in increasing index order."""
        encoder = VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir)
        encoder.encode(solid_frames(5, 16, 8), CONFIG)

        names, settings = backend.encoded[0]
        assert names == [f"frame{i:05d}.png" for i in range(5)]
        assert settings.fps == 10
        assert settings.preset == "fast"

    def test_scratch_empty_after_success(self, backend, scratch_root, output_dir):
        """No scratch files remain after a successful encode."""
        VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir).encode(
            solid_frames(5, 16, 8), CONFIG
        )
        assert list(scratch_root.iterdir()) == []

    def test_backend_failure_cleans_up(self, scratch_root, output_dir):
        """Encoder errors surface as EncodeFailure after scratch cleanup."""
        encoder = VideoEncoder(backend=FailingBackend(), scratch_root=scratch_root, output_dir=output_dir)
        with pytest.raises(EncodeFailure, match="ffmpeg exited"):
            encoder.encode(solid_frames(5, 16, 8), CONFIG)
        assert list(scratch_root.iterdir()) == []
        assert not output_dir.exists() or list(output_dir.iterdir()) == []

    def test_empty_output_is_a_failure(self, scratch_root, output_dir):
        """A backend that exits cleanly but writes nothing fails the encode."""
        encoder = VideoEncoder(backend=EmptyOutputBackend(), scratch_root=scratch_root, output_dir=output_dir)
        with pytest.raises(EncodeFailure, match="no output"):
            encoder.encode(solid_frames(5, 16, 8), CONFIG)
        assert list(scratch_root.iterdir()) == []
        assert not output_dir.exists()

    def test_lost_frame_is_a_failure(self, scratch_root, output_dir):
        """The container must decode to exactly the declared frame count."""
        encoder = VideoEncoder(backend=DroppingBackend(), scratch_root=scratch_root, output_dir=output_dir)
        with pytest.raises(EncodeFailure, match="holds 4 frames, expected 5"):
            encoder.encode(solid_frames(5, 16, 8), CONFIG)
        assert not output_dir.exists()

    def test_rejected_sequence_closes_frame_iterator(self, backend, scratch_root, output_dir):
        """The frame source is closed when the sequence is rejected mid-stream."""
        closed = []

        def frames():
            try:
                yield from solid_frames(5, 16, 8)
                yield Frame(index=5, pixels=np.zeros((8, 16, 3), dtype=np.uint8))
            finally:
                closed.append(True)

        encoder = VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir)
        with pytest.raises(RenderFailure, match="beyond declared frame count"):
            encoder.encode(frames(), CONFIG)
        assert closed == [True]
        assert backend.encoded == []

    def test_gap_in_sequence(self, backend, scratch_root, output_dir):
        """A missing index is rejected before encoding starts."""
        frames = solid_frames(5, 16, 8)
        del frames[2]
        encoder = VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir)
        with pytest.raises(RenderFailure, match="expected index 2, got 3"):
            encoder.encode(frames, CONFIG)
        assert backend.encoded == []
        assert list(scratch_root.iterdir()) == []

    def test_duplicate_frame(self, backend, scratch_root, output_dir):
        """A repeated index is rejected."""
        frames = solid_frames(5, 16, 8)
        frames.insert(1, frames[0])
        encoder = VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir)
        with pytest.raises(RenderFailure):
            encoder.encode(frames, CONFIG)

    def test_short_sequence(self, backend, scratch_root, output_dir):
        """Fewer frames than declared is rejected."""
        encoder = VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir)
        with pytest.raises(RenderFailure, match="Expected 5 frames, got 3"):
            encoder.encode(solid_frames(3, 16, 8), CONFIG)
        assert backend.encoded == []

    def test_wrong_frame_shape(self, backend, scratch_root, output_dir):
        """Frames must match the configured resolution."""
        encoder = VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir)
        with pytest.raises(RenderFailure, match="shape"):
            encoder.encode(solid_frames(5, 8, 8), CONFIG)

    def test_progress_messages(self, backend, scratch_root, output_dir):
        """Encoding reports its start and end."""
        reporter = ProgressReporter()
        VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir).encode(
            solid_frames(5, 16, 8), CONFIG, reporter
        )
        messages = [e.message for e in reporter.events]
        assert messages == ["🔧 Encoding video...", "✅ Video rendered!"]

    def test_release_removes_file(self, backend, scratch_root, output_dir):
        """Releasing the artifact deletes the file behind its URL."""
        artifact = VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir).encode(
            solid_frames(5, 16, 8), CONFIG
        )
        artifact.release()
        assert not artifact.path.exists()


@pytest.mark.skipif(not ffmpeg_available(), reason="ffmpeg not available")
class TestMoviePyBackend:
    """Round trip through ffmpeg."""

    @pytest.mark.parametrize("frames,fps", [(150, 30), (7, 3), (31, 24), (5, 10)])
    def test_every_frame_survives_encode_and_upscale(self, scratch_root, output_dir, frames, fps):
        """The MP4 holds every rendered frame, and so does its 2x version."""
        config = RenderConfig(frame_count=frames, fps=fps, width=64, height=36)
        backend = MoviePyBackend()
        artifact = VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir).encode(
            solid_frames(frames, 64, 36), config
        )
        assert artifact.payload[4:8] == b"ftyp"
        assert backend.count_frames(artifact.path) == frames

        hd = UpscalePipeline(
            engine=LanczosUpscaler(), backend=backend, scratch_root=scratch_root, output_dir=output_dir
        ).upscale(artifact.payload, artifact.metadata)

        assert (hd.metadata.width, hd.metadata.height, hd.metadata.fps) == (128, 72, fps)
        assert hd.metadata.frame_count == frames
        assert backend.count_frames(hd.path) == frames
        assert list(scratch_root.iterdir()) == []

    def test_odd_dimensions(self, scratch_root, output_dir):
        """Odd sizes still produce a playable video with every frame."""
        config = RenderConfig(frame_count=5, fps=10, width=33, height=17)
        backend = MoviePyBackend()
        artifact = VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir).encode(
            solid_frames(5, 33, 17), config
        )
        assert len(artifact.payload) > 0
        assert backend.count_frames(artifact.path) == 5

        hd = UpscalePipeline(
            engine=LanczosUpscaler(), backend=backend, scratch_root=scratch_root, output_dir=output_dir
        ).upscale(artifact.payload, artifact.metadata)
        assert (hd.metadata.width, hd.metadata.height, hd.metadata.frame_count) == (66, 34, 5)

    def test_extracted_frames_are_ordered(self, scratch_root, output_dir, tmp_path):
        """Extraction yields one zero-padded PNG per encoded frame."""
        config = RenderConfig(frame_count=12, fps=6, width=32, height=18)
        backend = MoviePyBackend()
        artifact = VideoEncoder(backend=backend, scratch_root=scratch_root, output_dir=output_dir).encode(
            solid_frames(12, 32, 18), config
        )
        dest = tmp_path / "frames"
        dest.mkdir()

        paths = backend.extract_frames(artifact.path, dest)

        assert [p.name for p in paths] == [f"frame{i:05d}.png" for i in range(12)]
        assert all(p.exists() for p in paths)
