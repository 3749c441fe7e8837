"""Generation request and scene source models."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class GenerationRequest(BaseModel):
    """One user invocation of the text-to-video pipeline."""

    prompt_text: str = Field(..., description="Natural-language video prompt", min_length=1)

    class Config:
        """Pydantic config."""
        frozen = True

    @field_validator("prompt_text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt_text cannot be blank")
        return value.strip()


class SceneSource(BaseModel):
    """Scene code returned by the generative model.

    Treated as untrusted, opaque text; nothing about its structure is
    guaranteed.
    """

    code: str = Field(..., description="Generated scene source")
    model: Optional[str] = Field(None, description="Model that produced the source")

    class Config:
        """Pydantic config."""
        frozen = True

    def __str__(self) -> str:
        return self.code
