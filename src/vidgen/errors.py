"""Exception types raised by the video pipeline stages."""

from typing import Optional


class VideoPipelineError(Exception):
    """Base class for all pipeline failures."""


class GenerationError(VideoPipelineError):
    """Scene-code generation failed."""


class TransportError(GenerationError):
    """Network failure or non-success status from the generative model.

    Attributes:
        status_code: HTTP status of the failed response, or None when the
            request never produced a response.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GenerationContractError(GenerationError):
    """The model responded but without the expected content field."""


class RenderFailure(VideoPipelineError):
    """A frame could not be produced."""


class EncodeFailure(VideoPipelineError):
    """The encoding collaborator failed."""


class UpscaleFrameFailure(VideoPipelineError):
    """Enhancement of a single frame failed; the whole upscale is aborted."""

    def __init__(self, message: str, frame_index: int) -> None:
        super().__init__(message)
        self.frame_index = frame_index


class PipelineCancelled(VideoPipelineError):
    """The caller cancelled an in-flight generation or upscale."""
