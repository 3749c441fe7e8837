"""Anthropic Claude API client wrapper."""

import logging
from typing import Optional

from anthropic import Anthropic, APIConnectionError, APIStatusError

from ..config import config
from ..errors import GenerationContractError, TransportError

logger = logging.getLogger(__name__)


class AnthropicClient:
    """Scene-code backend on the Anthropic Messages API.

    Same contract as :class:`~vidgen.services.openrouter.OpenRouterClient`:
    no retries, SDK failures mapped onto the pipeline error types.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize the Anthropic client.

        Args:
            api_key: Anthropic API key. Defaults to ANTHROPIC_API_KEY env var.
            model: Model to use. Defaults to config.anthropic_model.
            timeout: Request timeout in seconds.
        """
        self._api_key = api_key or config.anthropic_api_key
        if not self._api_key:
            raise ValueError(
                "Anthropic API key not provided. Set ANTHROPIC_API_KEY env var."
            )

        self._client = Anthropic(
            api_key=self._api_key,
            max_retries=0,
            timeout=timeout if timeout is not None else config.request_timeout,
        )
        self._model = model or config.anthropic_model

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model

    def create_message(
        self,
        prompt: str,
        max_tokens: int = 4000,
        system: Optional[str] = None,
        temperature: float = 0.7,
    ) -> str:
        """Create a message using Claude.

        Args:
            prompt: The user prompt to send.
            max_tokens: Maximum tokens in the response.
            system: Optional system prompt.
            temperature: Sampling temperature (0.0-1.0).

        Returns:
            The text content of Claude's response.

        Raises:
            TransportError: On connection failure or an error status.
            GenerationContractError: If the response has no text block.
        """
        kwargs = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system

        logger.debug(f"Sending request to Claude (model={self._model})")
        try:
            response = self._client.messages.create(**kwargs)
        except APIStatusError as e:
            logger.error(f"API error: {e}")
            raise TransportError(f"Anthropic Error: {e.status_code}", status_code=e.status_code) from e
        except APIConnectionError as e:
            logger.error(f"Connection error: {e}")
            raise TransportError(f"Anthropic request failed: {e}") from e

        # Extract text content from response
        for block in response.content or []:
            text = getattr(block, "text", None)
            if isinstance(text, str):
                return text
        raise GenerationContractError("Claude response contained no text content")
