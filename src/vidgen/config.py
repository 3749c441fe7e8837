"""Configuration management."""

import os
import tempfile
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


class Config(BaseModel):
    """Application configuration."""

    # API Keys
    openrouter_api_key: str = Field(
        default_factory=lambda: os.getenv("OPENROUTER_API_KEY", ""),
        description="OpenRouter API key"
    )
    anthropic_api_key: str = Field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", ""),
        description="Anthropic API key (anthropic scene backend)"
    )
    google_cloud_project: str = Field(
        default_factory=lambda: os.getenv("GOOGLE_CLOUD_PROJECT", ""),
        description="Google Cloud project ID (Imagen upscaler)"
    )

    # Scene generation
    scene_backend: str = Field(
        default_factory=lambda: os.getenv("VIDGEN_SCENE_BACKEND", "openrouter"),
        description="Chat backend for scene code: 'openrouter' or 'anthropic'"
    )
    scene_model: str = Field(
        default_factory=lambda: os.getenv("VIDGEN_SCENE_MODEL", "stepfun/step-3.5-flash:free"),
        description="Model identifier sent to OpenRouter"
    )
    anthropic_model: str = Field(
        default_factory=lambda: os.getenv("VIDGEN_ANTHROPIC_MODEL", "claude-sonnet-4-20250514"),
        description="Claude model for the anthropic backend"
    )
    api_url: str = Field(
        default_factory=lambda: os.getenv("VIDGEN_API_URL", OPENROUTER_URL),
        description="Chat completions endpoint"
    )
    app_referer: str = Field(
        default_factory=lambda: os.getenv("VIDGEN_APP_REFERER", "http://localhost"),
        description="Origin hint sent as HTTP-Referer"
    )
    app_title: str = Field(
        default_factory=lambda: os.getenv("VIDGEN_APP_TITLE", "vidgen Video Generator"),
        description="Client title sent as X-Title"
    )
    request_timeout: float = Field(
        default_factory=lambda: float(os.getenv("VIDGEN_REQUEST_TIMEOUT", "120")),
        description="Seconds before a model request times out"
    )
    scene_temperature: float = Field(default=0.7, description="Sampling temperature")
    scene_max_tokens: int = Field(default=4000, description="Response length ceiling")

    # Paths
    scratch_root: Path = Field(
        default_factory=lambda: Path(
            os.getenv("VIDGEN_SCRATCH", os.path.join(tempfile.gettempdir(), "vidgen"))
        ),
        description="Parent directory for per-call scratch workspaces"
    )
    output_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("VIDGEN_OUTPUT", "./output")),
        description="Directory receiving finished artifacts"
    )

    # Upscaling
    upscaler: str = Field(
        default_factory=lambda: os.getenv("VIDGEN_UPSCALER", "lanczos"),
        description="Frame upscaler engine: 'lanczos' or 'imagen'"
    )
    imagen_upscale_model: str = Field(
        default_factory=lambda: os.getenv("VIDGEN_IMAGEN_MODEL", "imagen-4.0-upscale-preview"),
        description="Imagen model used for 2x upscaling"
    )

    class Config:
        """Pydantic config."""
        frozen = False

    def validate_required(self) -> None:
        """Validate that credentials for the selected scene backend are set."""
        if self.scene_backend == "anthropic":
            if not self.anthropic_api_key:
                raise ValueError("ANTHROPIC_API_KEY not set")
        elif self.scene_backend == "openrouter":
            if not self.openrouter_api_key:
                raise ValueError("OPENROUTER_API_KEY not set")
        else:
            raise ValueError(
                f"Unknown VIDGEN_SCENE_BACKEND: {self.scene_backend}. "
                "Must be 'openrouter' or 'anthropic'"
            )

    def validate_imagen_required(self) -> None:
        """Validate that Imagen / Google Cloud settings are set.

        Raises:
            ValueError: If any required Imagen configuration is missing.
        """
        if not self.google_cloud_project:
            raise ValueError(
                "Missing required Imagen configuration: GOOGLE_CLOUD_PROJECT. "
                "Set the corresponding environment variable."
            )


# Global config instance
config = Config()
