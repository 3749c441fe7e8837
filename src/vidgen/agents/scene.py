"""Scene agent: turns a user prompt into renderable scene code."""

import logging
import re
from pathlib import Path
from typing import Optional, Union

from ..config import config
from ..models import GenerationRequest, SceneSource
from ..progress import ProgressCallback, ProgressReporter, as_reporter
from .base import BaseAgent

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE_PATH = Path(__file__).parent.parent / "prompts" / "scene_system.md"

STAGE = "generating"

_FENCED_BLOCK = re.compile(r"```[\w+-]*[ \t]*\r?\n(.*?)```", re.DOTALL)
_LEADING_FENCE = re.compile(r"^\s*```[\w+-]*[ \t]*\r?\n?")
_TRAILING_FENCE = re.compile(r"\r?\n?```\s*$")


def _load_system_prompt() -> str:
    """Load the system prompt from the packaged template."""
    if PROMPT_TEMPLATE_PATH.exists():
        return PROMPT_TEMPLATE_PATH.read_text(encoding="utf-8")
    # Fallback inline prompt if template not found
    return """You write Remotion + Three.js TSX scene files.
Reply with a single TSX code block only.
Declare `export const compositionConfig = { durationInFrames, fps, width, height }`
with integer values, animate with `const time = frame / fps`, and use a seeded
random helper instead of Math.random()."""


def strip_code_fences(text: str) -> str:
    """Return the code inside a markdown fence, or ``text`` with stray fences trimmed."""
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    text = _LEADING_FENCE.sub("", text)
    text = _TRAILING_FENCE.sub("", text)
    return text.strip()


class SceneAgent(BaseAgent[GenerationRequest, SceneSource]):
    """Generates scene source for a prompt with a single model call.

    The returned code is not validated; downstream stages treat it as
    untrusted text.
    """

    @property
    def name(self) -> str:
        """Return the agent's name."""
        return "SceneAgent"

    @property
    def system_prompt(self) -> str:
        """Return the long-form scene authoring guide."""
        return _load_system_prompt()

    def run(
        self,
        input_data: Union[GenerationRequest, str],
        on_progress: "Optional[ProgressCallback | ProgressReporter]" = None,
    ) -> SceneSource:
        """Generate scene source for the request.

        Args:
            input_data: Request (or bare prompt text).
            on_progress: Status callback or reporter.

        Returns:
            The sanitized scene source.

        Raises:
            TransportError: Network failure or non-2xx status.
            GenerationContractError: Response without content.
        """
        if isinstance(input_data, str):
            input_data = GenerationRequest(prompt_text=input_data)
        progress = as_reporter(on_progress)

        self._logger.info(f"Generating scene for: '{input_data.prompt_text[:80]}'")
        progress.update(STAGE, 0.0, f"🤖 Connecting to {self.model}...")

        response = self._create_message(
            prompt=input_data.prompt_text,
            max_tokens=config.scene_max_tokens,
            temperature=config.scene_temperature,
        )

        code = strip_code_fences(response)
        progress.update(STAGE, 1.0, "✅ Scene code generated!")
        self._logger.info(f"Generated {len(code)} characters of scene code")

        return SceneSource(code=code, model=self.model)
