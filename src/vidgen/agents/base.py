"""Base agent abstraction."""

import logging
from abc import ABC, abstractmethod
from typing import Generic, Optional, Protocol, TypeVar

from ..config import config

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")


class ChatClient(Protocol):
    """What an agent needs from a model backend."""

    @property
    def model(self) -> str: ...

    def create_message(
        self,
        prompt: str,
        max_tokens: int = ...,
        system: Optional[str] = ...,
        temperature: float = ...,
    ) -> str: ...


class BaseAgent(ABC, Generic[InputT, OutputT]):
    """Abstract base class for model-backed agents.

    Subclasses implement :meth:`run` and supply a system prompt; the chat
    backend is injected or built from configuration.
    """

    def __init__(self, client: Optional[ChatClient] = None) -> None:
        """Initialize the agent.

        Args:
            client: Chat backend. Built from config.scene_backend if not provided.
        """
        if client is None:
            from ..services import create_chat_client

            client = create_chat_client(config.scene_backend)
        self._client = client
        self._logger = logging.getLogger(f"{__name__}.{self.name}")

    @property
    @abstractmethod
    def name(self) -> str:
        """Short name used for the agent logger."""
        ...

    @property
    @abstractmethod
    def system_prompt(self) -> str:
        """Instruction text sent as the system message on every call."""
        ...

    @property
    def model(self) -> str:
        """Model identifier reported by the chat backend."""
        return self._client.model

    @abstractmethod
    def run(self, input_data: InputT) -> OutputT:
        """Turn ``input_data`` into the agent's output with one model call."""
        ...

    def _create_message(
        self,
        prompt: str,
        max_tokens: int = 4000,
        temperature: float = 0.7,
    ) -> str:
        """Send ``prompt`` with :attr:`system_prompt` and return the reply text.

        Backend errors are logged and re-raised unchanged.
        """
        self._logger.debug(f"Sending prompt ({len(prompt)} chars) to {self.model}")

        try:
            response = self._client.create_message(
                prompt=prompt,
                max_tokens=max_tokens,
                system=self.system_prompt,
                temperature=temperature,
            )
            self._logger.debug(f"Reply: {len(response)} chars")
            return response

        except Exception as e:
            self._logger.error(f"{self.name} request failed: {e}")
            raise
