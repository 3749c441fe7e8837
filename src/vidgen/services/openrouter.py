"""OpenRouter chat-completions client."""

import logging
from typing import Optional

import requests

from ..config import config
from ..errors import GenerationContractError, TransportError

logger = logging.getLogger(__name__)


class OpenRouterClient:
    """Client for an OpenAI-compatible chat-completions endpoint.

    Holds configuration only, so one instance can be shared across pipeline
    calls. Requests are never retried: transport failures and non-2xx
    statuses surface immediately as :class:`TransportError`.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        api_url: Optional[str] = None,
        referer: Optional[str] = None,
        title: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize the OpenRouter client.

        Args:
            api_key: OpenRouter API key. Defaults to OPENROUTER_API_KEY env var.
            model: Model identifier. Defaults to config.scene_model.
            api_url: Chat completions endpoint. Defaults to config.api_url.
            referer: Origin hint sent as ``HTTP-Referer``.
            title: Client title sent as ``X-Title``.
            timeout: Request timeout in seconds.
        """
        self._api_key = api_key or config.openrouter_api_key
        if not self._api_key:
            raise ValueError(
                "OpenRouter API key not provided. Set OPENROUTER_API_KEY env var."
            )

        self._model = model or config.scene_model
        self._api_url = api_url or config.api_url
        self._referer = referer or config.app_referer
        self._title = title or config.app_title
        self._timeout = timeout if timeout is not None else config.request_timeout

    @property
    def model(self) -> str:
        """Return the model being used."""
        return self._model

    def build_payload(
        self,
        prompt: str,
        system: Optional[str],
        max_tokens: int,
        temperature: float,
    ) -> dict:
        """Build the JSON request body."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

    def build_headers(self) -> dict:
        """Build the request headers."""
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self._referer,
            "X-Title": self._title,
        }

    def create_message(
        self,
        prompt: str,
        max_tokens: int = 4000,
        system: Optional[str] = None,
        temperature: float = 0.7,
    ) -> str:
        """Send one chat request and return the assistant text.

        Args:
            prompt: The user prompt to send.
            max_tokens: Maximum tokens in the response.
            system: Optional system prompt.
            temperature: Sampling temperature.

        Returns:
            ``choices[0].message.content`` of the response.

        Raises:
            TransportError: On network failure or a non-2xx status.
            GenerationContractError: If the response lacks the content field.
        """
        payload = self.build_payload(prompt, system, max_tokens, temperature)

        logger.debug(f"POST {self._api_url} (model={self._model}, prompt length={len(prompt)})")
        try:
            response = requests.post(
                self._api_url,
                json=payload,
                headers=self.build_headers(),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Request to {self._api_url} failed: {e}")
            raise TransportError(f"OpenRouter request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error(f"OpenRouter error {response.status_code}: {response.text[:500]}")
            raise TransportError(
                f"OpenRouter Error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationContractError(f"Response is not JSON: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationContractError(
                "Response has no choices[0].message.content"
            ) from e

        if not isinstance(content, str):
            raise GenerationContractError(
                f"Expected string content, got {type(content).__name__}"
            )
        return content
