"""Model-backed agents."""

from .base import BaseAgent, ChatClient
from .scene import SceneAgent, strip_code_fences

__all__ = ["BaseAgent", "ChatClient", "SceneAgent", "strip_code_fences"]
