"""Recover composition parameters from generated scene source.

Extraction never fails. A declared ``compositionConfig`` object (or a fenced
JSON block) is read first; each field it does not provide is then searched
for on its own with a permissive pattern, and anything still missing falls
back to the defaults in :mod:`vidgen.models.render`.
"""

import json
import logging
import math
import re
from typing import Optional, Union

from ..models import (
    DEFAULT_FPS,
    DEFAULT_FRAME_COUNT,
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    RenderConfig,
    SceneSource,
)

logger = logging.getLogger(__name__)

FIELDS = ("durationInFrames", "durationInSeconds", "fps", "width", "height")

_CONFIG_START = re.compile(r"compositionConfig\s*(?::[^=]*)?=\s*\{")
_JSON_BLOCK = re.compile(r"```json\s*\n(.*?)```", re.DOTALL)


def _field_pattern(name: str, number: str = r"\d+") -> re.Pattern:
    return re.compile(rf"(?<![\w$.])[\"']?{name}[\"']?\s*[:=]\s*({number})(?![\w.])")


_PATTERNS = {
    "durationInFrames": _field_pattern("durationInFrames"),
    "durationInSeconds": _field_pattern("durationInSeconds", r"\d+(?:\.\d+)?"),
    "fps": _field_pattern("fps"),
    "width": _field_pattern("width"),
    "height": _field_pattern("height"),
}


def _balanced_object(text: str, start: int) -> Optional[str]:
    """Return the ``{...}`` literal whose opening brace is at ``start``."""
    depth = 0
    for i, char in enumerate(text[start:], start):
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _js_object_to_json(literal: str) -> str:
    """Normalise a JS object literal into something ``json.loads`` accepts."""
    text = re.sub(r"/\*.*?\*/", "", literal, flags=re.DOTALL)
    text = re.sub(r"(?<!:)//[^\n]*", "", text)
    text = re.sub(r"'((?:[^'\\]|\\.)*)'", lambda m: json.dumps(m.group(1)), text)
    text = re.sub(r"([{,]\s*)([A-Za-z_$][\w$]*)\s*:", r'\1"\2":', text)
    text = re.sub(r",\s*([}\]])", r"\1", text)
    return text


def _positive(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value if value > 0 else None


def extract_structured(code: str) -> dict:
    """Read a declared config object; returns only positive numeric fields."""
    candidates = []
    match = _CONFIG_START.search(code)
    if match:
        literal = _balanced_object(code, match.end() - 1)
        if literal:
            candidates.append(_js_object_to_json(literal))
    for block in _JSON_BLOCK.findall(code):
        candidates.append(block)

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if not isinstance(data, dict):
            continue
        fields = {}
        for name in FIELDS:
            value = _positive(data.get(name))
            if value is not None:
                fields[name] = value
        if fields:
            return fields
    return {}


def extract_patterns(code: str) -> dict:
    """Search each field independently; returns only positive values found."""
    fields = {}
    for name, pattern in _PATTERNS.items():
        match = pattern.search(code)
        if not match:
            continue
        value = _positive(float(match.group(1)) if name == "durationInSeconds" else int(match.group(1)))
        if value is not None:
            fields[name] = value
    return fields


def declared_fields(source: Union[str, SceneSource]) -> dict:
    """All config fields the source declares, structured values first."""
    code = source.code if isinstance(source, SceneSource) else (source or "")
    fields = extract_patterns(code)
    fields.update(extract_structured(code))
    return fields


def _resolve(fields: dict) -> RenderConfig:
    fps = int(fields.get("fps", DEFAULT_FPS)) or DEFAULT_FPS
    width = int(fields.get("width", DEFAULT_WIDTH)) or DEFAULT_WIDTH
    height = int(fields.get("height", DEFAULT_HEIGHT)) or DEFAULT_HEIGHT

    if "durationInFrames" in fields:
        frame_count = int(fields["durationInFrames"])
    elif "durationInSeconds" in fields:
        frame_count = round(fields["durationInSeconds"] * fps)
    else:
        frame_count = DEFAULT_FRAME_COUNT
    if frame_count < 1:
        frame_count = DEFAULT_FRAME_COUNT

    return RenderConfig(frame_count=frame_count, fps=fps, width=width, height=height)


def extract_config(source: Union[str, SceneSource]) -> RenderConfig:
    """Derive a fully resolved :class:`RenderConfig` from scene source.

    Never raises: any field that cannot be recovered takes its default.
    """
    try:
        fields = declared_fields(source)
        resolved = _resolve(fields)
    except Exception as e:  # extraction must never block the pipeline
        logger.warning(f"Config extraction failed, using defaults: {e}")
        fields = {}
        resolved = _resolve(fields)

    missing = [name for name in ("fps", "width", "height") if name not in fields]
    if "durationInFrames" not in fields and "durationInSeconds" not in fields:
        missing.append("duration")
    if missing:
        logger.debug(f"Defaulted config fields: {', '.join(missing)}")

    return resolved
