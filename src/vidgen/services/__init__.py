"""External service integrations."""

from typing import Optional

from ..config import config
from .anthropic import AnthropicClient
from .imagen import ImagenError, ImagenUpscaler
from .openrouter import OpenRouterClient


def create_chat_client(backend: Optional[str] = None):
    """Build the chat client for ``backend`` (defaults to config.scene_backend)."""
    backend = backend or config.scene_backend
    if backend == "openrouter":
        return OpenRouterClient()
    if backend == "anthropic":
        return AnthropicClient()
    raise ValueError(f"Unknown scene backend: {backend}. Must be 'openrouter' or 'anthropic'")


__all__ = [
    "AnthropicClient",
    "OpenRouterClient",
    "ImagenUpscaler",
    "ImagenError",
    "create_chat_client",
]
