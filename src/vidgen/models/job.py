"""Generation job state model."""

from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field

from .render import RenderConfig
from .request import GenerationRequest, SceneSource


class JobState(str, Enum):
    """Generation job state enum."""
    INIT = "init"
    GENERATING = "generating"
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"


class GenerationJob(BaseModel):
    """Tracks one pipeline invocation."""

    request: Optional[GenerationRequest] = Field(None, description="Originating request")
    state: JobState = Field(default=JobState.INIT, description="Current state")
    scene_source: Optional[SceneSource] = Field(None, description="Generated scene source")
    render_config: Optional[RenderConfig] = Field(None, description="Resolved render config")
    scene_kind: Optional[str] = Field(None, description="Renderer variant used")
    errors: List[str] = Field(default_factory=list, description="Error messages")

    class Config:
        """Pydantic config."""
        frozen = False
