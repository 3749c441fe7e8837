"""Video artifact data models."""

import logging
from pathlib import Path
from pydantic import BaseModel, Field
import yaml

logger = logging.getLogger(__name__)


class VideoMetadata(BaseModel):
    """Resolved properties of an encoded video."""

    width: int = Field(..., description="Width in pixels", gt=0)
    height: int = Field(..., description="Height in pixels", gt=0)
    fps: int = Field(..., description="Frames per second", gt=0)
    frame_count: int = Field(..., description="Number of frames", gt=0)

    class Config:
        """Pydantic config."""
        frozen = True

    def doubled(self) -> "VideoMetadata":
        """Metadata of the same video at 2x linear resolution."""
        return self.model_copy(update={"width": self.width * 2, "height": self.height * 2})

    @classmethod
    def from_yaml(cls, path: Path) -> "VideoMetadata":
        """Load metadata from a YAML sidecar file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save metadata to a YAML sidecar file."""
        with open(path, "w") as f:
            yaml.safe_dump(self.model_dump(), f, default_flow_style=False)


class VideoArtifact(BaseModel):
    """Encoded video produced by the encoder or the upscaler.

    The pipeline writes the payload to ``path`` so ``url`` can be opened for
    playback straight away. Whoever holds the artifact owns that file and
    calls :meth:`release` once it is no longer displayed.
    """

    payload: bytes = Field(..., description="MP4 container bytes", repr=False)
    url: str = Field(..., description="Locally resolvable file:// URL")
    path: Path = Field(..., description="File backing the URL")
    metadata: VideoMetadata = Field(..., description="Resolved video properties")

    class Config:
        """Pydantic config."""
        frozen = False

    @classmethod
    def persist(cls, payload: bytes, path: Path, metadata: VideoMetadata) -> "VideoArtifact":
        """Write ``payload`` to ``path`` and wrap it as an artifact."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
        resolved = path.resolve()
        return cls(payload=payload, url=resolved.as_uri(), path=resolved, metadata=metadata)

    def save(self, output_path: Path) -> Path:
        """Copy the payload to ``output_path`` with a metadata sidecar next to it."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(self.payload)
        self.metadata.to_yaml(output_path.with_suffix(output_path.suffix + ".yaml"))
        return output_path

    def release(self) -> None:
        """Delete the file behind :attr:`url`."""
        if self.path.exists():
            self.path.unlink()
            logger.debug(f"Released artifact {self.path}")


class UpscaleRequest(BaseModel):
    """Reference to an existing artifact's payload for the 2x pass."""

    source_payload: bytes = Field(..., description="Source MP4 bytes", repr=False)
    source_metadata: VideoMetadata = Field(..., description="Source video properties")

    class Config:
        """Pydantic config."""
        frozen = True

    @classmethod
    def from_artifact(cls, artifact: VideoArtifact) -> "UpscaleRequest":
        return cls(source_payload=artifact.payload, source_metadata=artifact.metadata)
