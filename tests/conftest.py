"""Shared fixtures for vidgen tests (no API key or ffmpeg required)."""

from pathlib import Path
from typing import Optional

import numpy as np
import pytest
from PIL import Image

from vidgen.editor import EncodeSettings, frame_filename


SCENE_SOURCE = """import React from 'react';
import { useCurrentFrame, useVideoConfig, AbsoluteFill } from 'remotion';
import * as THREE from 'three';

export const compositionConfig = {
  id: 'TinyCube',
  durationInFrames: 6,
  fps: 3,
  width: 32,
  height: 18,
};

const COLORS = {
  primary: 0xff0000,
  secondary: 0x00ff00,
  background: 0x101020,
} as const;

const COUNT = 4;

export const TinyCube: React.FC = () => {
  const frame = useCurrentFrame();
  const { fps } = useVideoConfig();
  const time = frame / fps;
  renderer.render(scene, camera);
  return <AbsoluteFill />;
};
"""


class NpzBackend:
    """Encoder backend storing frames in an .npz container instead of MP4.

    Lets encoder and upscale logic run without ffmpeg while keeping a real
    round trip: whatever is encoded can be extracted again.
    """

    def __init__(self) -> None:
        self.encoded: list[tuple[list[str], EncodeSettings]] = []
        self.extracted: list[Path] = []

    def encode_sequence(self, frame_paths: list[Path], settings: EncodeSettings, output_path: Path) -> None:
        self.encoded.append(([p.name for p in frame_paths], settings))
        frames = []
        for path in frame_paths:
            with Image.open(path) as image:
                frames.append(np.array(image.convert("RGB")))
        with open(output_path, "wb") as f:
            np.savez(f, frames=np.stack(frames), fps=settings.fps)

    def extract_frames(self, video_path: Path, dest_dir: Path, prefix: str = "frame") -> list[Path]:
        self.extracted.append(video_path)
        with np.load(video_path) as data:
            frames = data["frames"]
        paths = []
        for i, frame in enumerate(frames):
            path = dest_dir / frame_filename(i, len(frames), prefix)
            Image.fromarray(frame).save(path)
            paths.append(path)
        return paths

    def count_frames(self, video_path: Path) -> int:
        with np.load(video_path) as data:
            return len(data["frames"])


class FailingBackend(NpzBackend):
    """Backend whose encode step always fails."""

    def encode_sequence(self, frame_paths, settings, output_path) -> None:
        self.encoded.append(([p.name for p in frame_paths], settings))
        raise RuntimeError("ffmpeg exited with status 1")


class EmptyOutputBackend(NpzBackend):
    """Backend that exits cleanly but leaves a zero-byte container."""

    def encode_sequence(self, frame_paths, settings, output_path) -> None:
        self.encoded.append(([p.name for p in frame_paths], settings))
        output_path.write_bytes(b"")


class DroppingBackend(NpzBackend):
    """Backend that silently loses the final frame."""

    def encode_sequence(self, frame_paths, settings, output_path) -> None:
        super().encode_sequence(frame_paths[:-1], settings, output_path)


class FakeChatClient:
    """Chat client returning a canned response and recording requests."""

    def __init__(self, response: str = "", error: Optional[Exception] = None, model: str = "fake/model") -> None:
        self.response = response
        self.error = error
        self._model = model
        self.calls: list[dict] = []

    @property
    def model(self) -> str:
        return self._model

    def create_message(self, prompt, max_tokens=4000, system=None, temperature=0.7) -> str:
        self.calls.append(
            {"prompt": prompt, "max_tokens": max_tokens, "system": system, "temperature": temperature}
        )
        if self.error is not None:
            raise self.error
        return self.response


class DoublingUpscaler:
    """Nearest-neighbour 2x engine that records the frames it saw."""

    def __init__(self, fail_at: Optional[int] = None, bad_shape_at: Optional[int] = None) -> None:
        self.fail_at = fail_at
        self.bad_shape_at = bad_shape_at
        self.seen: list[tuple[int, ...]] = []

    def upscale_frame(self, pixels: np.ndarray) -> np.ndarray:
        index = len(self.seen)
        self.seen.append(tuple(pixels.shape))
        if index == self.fail_at:
            raise RuntimeError("model out of memory")
        if index == self.bad_shape_at:
            return pixels
        return pixels.repeat(2, axis=0).repeat(2, axis=1)


def solid_frames(count: int, width: int, height: int) -> list:
    """Frames whose color encodes their index."""
    from vidgen.models import Frame

    frames = []
    for i in range(count):
        pixels = np.full((height, width, 3), (i * 40) % 256, dtype=np.uint8)
        frames.append(Frame(index=i, pixels=pixels, time=i / 10))
    return frames


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "output"


@pytest.fixture
def backend() -> NpzBackend:
    return NpzBackend()


@pytest.fixture
def scene_source() -> str:
    return SCENE_SOURCE
