"""Render configuration and frame models."""

from dataclasses import dataclass

import numpy as np
from pydantic import BaseModel, Field

DEFAULT_FRAME_COUNT = 300
DEFAULT_FPS = 30
DEFAULT_WIDTH = 1920
DEFAULT_HEIGHT = 1080


class RenderConfig(BaseModel):
    """Fully resolved numeric parameters for one generation."""

    frame_count: int = Field(default=DEFAULT_FRAME_COUNT, description="Total frames", gt=0)
    fps: int = Field(default=DEFAULT_FPS, description="Frames per second", gt=0)
    width: int = Field(default=DEFAULT_WIDTH, description="Frame width in pixels", gt=0)
    height: int = Field(default=DEFAULT_HEIGHT, description="Frame height in pixels", gt=0)

    class Config:
        """Pydantic config."""
        frozen = True

    @property
    def duration(self) -> float:
        """Video length in seconds."""
        return self.frame_count / self.fps

    def time_at(self, index: int) -> float:
        """Timestamp in seconds of frame ``index``."""
        return index / self.fps


@dataclass
class Frame:
    """One raster image at a zero-based index within a video."""

    index: int
    pixels: np.ndarray
    time: float = 0.0

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])
