"""Video encoding and enhancement module."""

from .encoder import (
    FAST_SETTINGS,
    HIGH_QUALITY_SETTINGS,
    EncodeSettings,
    EncoderBackend,
    MoviePyBackend,
    VideoEncoder,
    frame_filename,
)
from .scratch import ScratchSpace
from .upscale import (
    FrameUpscaler,
    LanczosUpscaler,
    UpscalePipeline,
    UpscaleState,
    create_upscaler,
)

__all__ = [
    # Encoder
    "EncodeSettings",
    "EncoderBackend",
    "MoviePyBackend",
    "VideoEncoder",
    "FAST_SETTINGS",
    "HIGH_QUALITY_SETTINGS",
    "frame_filename",
    # Scratch
    "ScratchSpace",
    # Upscale
    "FrameUpscaler",
    "LanczosUpscaler",
    "UpscalePipeline",
    "UpscaleState",
    "create_upscaler",
]
