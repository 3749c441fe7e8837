"""Data models for the video generator."""

from .request import GenerationRequest, SceneSource
from .render import (
    DEFAULT_FPS,
    DEFAULT_FRAME_COUNT,
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    Frame,
    RenderConfig,
)
from .artifact import UpscaleRequest, VideoArtifact, VideoMetadata
from .job import GenerationJob, JobState

__all__ = [
    "GenerationRequest",
    "SceneSource",
    "RenderConfig",
    "Frame",
    "DEFAULT_FRAME_COUNT",
    "DEFAULT_FPS",
    "DEFAULT_WIDTH",
    "DEFAULT_HEIGHT",
    "VideoArtifact",
    "VideoMetadata",
    "UpscaleRequest",
    "GenerationJob",
    "JobState",
]
