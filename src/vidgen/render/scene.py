"""
Scene interpretation: what gets drawn for a given scene source.

Generated code is never executed. A source that passes :func:`validate_scene`
is rendered by :class:`ProceduralScene`, which reads its declared palette and
element count; anything else gets the :class:`PlaceholderScene` gradient.
Both are pure functions of (source, config, frame index).
"""
import colorsys
import logging
import math
import re
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Union

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from ..models import RenderConfig, SceneSource
from .extract import _balanced_object, declared_fields

logger = logging.getLogger(__name__)

DEFAULT_PALETTE: list[tuple[int, int, int]] = [
    (0x63, 0x66, 0xF1),
    (0x8B, 0x5C, 0xF6),
    (0x06, 0xB6, 0xD4),
]
DEFAULT_BACKGROUND = (0x0F, 0x0F, 0x23)
DEFAULT_ELEMENT_COUNT = 12
MAX_ELEMENT_COUNT = 64

PLACEHOLDER_TITLE = "AI Generated Video"

_DRAW_ROUTINE = re.compile(r"useCurrentFrame\s*\(|\bframe\s*/\s*fps\b|renderer\.render\s*\(")
_COLORS_START = re.compile(r"\bCOLORS\s*(?::[^=]*)?=\s*\{")
_COLOR_ENTRY = re.compile(r"([A-Za-z_$][\w$]*)\s*:\s*(?:0x|[\"']#)([0-9a-fA-F]{6})\b")
_COUNT = re.compile(r"(?<![\w$.])(?:COUNT|count|[A-Z_]+_COUNT)\s*[:=]\s*(\d+)\b")


def seeded_random(seed: float) -> float:
    """Deterministic pseudo-random value in [0, 1) for a stable seed."""
    x = math.sin(seed * 9999) * 10000
    return x - math.floor(x)


def source_seed(code: str) -> int:
    """Stable seed derived from the source text."""
    return zlib.crc32(code.encode("utf-8")) & 0xFFFF


def _hex_rgb(value: str) -> tuple[int, int, int]:
    n = int(value, 16)
    return (n >> 16) & 0xFF, (n >> 8) & 0xFF, n & 0xFF


@dataclass
class SceneValidation:
    """Outcome of checking a source against the minimal scene contract."""

    missing: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing


def validate_scene(source: Union[str, SceneSource]) -> SceneValidation:
    """Check that the source declares its config and a per-frame draw routine."""
    code = source.code if isinstance(source, SceneSource) else (source or "")
    fields = declared_fields(code)
    missing = [name for name in ("fps", "width", "height") if name not in fields]
    if "durationInFrames" not in fields and "durationInSeconds" not in fields:
        missing.append("duration")
    if not _DRAW_ROUTINE.search(code):
        missing.append("draw routine")
    return SceneValidation(missing=missing)


@dataclass
class SceneSpec:
    """Visual parameters read from an interpretable scene source."""

    palette: list[tuple[int, int, int]] = field(default_factory=lambda: list(DEFAULT_PALETTE))
    background: tuple[int, int, int] = DEFAULT_BACKGROUND
    element_count: int = DEFAULT_ELEMENT_COUNT
    seed: int = 0


def parse_scene_spec(source: Union[str, SceneSource]) -> SceneSpec:
    """Read palette, element count and seed; missing parts keep defaults."""
    code = source.code if isinstance(source, SceneSource) else (source or "")
    spec = SceneSpec(seed=source_seed(code))

    match = _COLORS_START.search(code)
    if match:
        block = _balanced_object(code, match.end() - 1) or ""
        entries = _COLOR_ENTRY.findall(block)
        colors = {name: _hex_rgb(value) for name, value in entries}
        if "background" in colors:
            spec.background = colors.pop("background")
        if colors:
            spec.palette = list(colors.values())

    count = _COUNT.search(code)
    if count:
        spec.element_count = max(1, min(MAX_ELEMENT_COUNT, int(count.group(1))))
    return spec


class RenderTarget:
    """Off-screen RGB canvas frames are drawn into."""

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self._image = Image.new("RGB", (width, height))
        self.released = False

    @property
    def image(self) -> Image.Image:
        if self.released:
            raise RuntimeError("Render target already released")
        return self._image

    def paint(self, pixels: np.ndarray) -> None:
        """Replace the canvas contents with an ``(H, W, 3)`` array."""
        self.image.paste(Image.fromarray(pixels))

    def draw(self) -> ImageDraw.ImageDraw:
        return ImageDraw.Draw(self.image)

    def snapshot(self) -> np.ndarray:
        """Copy of the current canvas as a uint8 array."""
        return np.array(self.image, dtype=np.uint8)

    def release(self) -> None:
        if not self.released:
            self._image.close()
            self.released = True


class SceneRenderer(ABC):
    """Draws frames of one scene into a :class:`RenderTarget`."""

    kind: str = "scene"

    def __init__(self, config: RenderConfig) -> None:
        self.config = config

    @abstractmethod
    def draw(self, target: RenderTarget, index: int, time: float) -> None:
        """Draw frame ``index`` (at ``time`` seconds) onto ``target``."""
        ...


class ProceduralScene(SceneRenderer):
    """Sky gradient with orbiting soft discs, driven by the declared palette."""

    kind = "procedural"

    def __init__(self, config: RenderConfig, spec: SceneSpec) -> None:
        super().__init__(config)
        self.spec = spec
        self._rows = np.linspace(0.0, 1.0, config.height, dtype=np.float32)[:, None]
        self._elements = [self._element(i) for i in range(spec.element_count)]

    def _element(self, i: int) -> dict:
        base = self.spec.seed + i * 7
        return {
            "orbit": 0.1 + 0.35 * seeded_random(base + 1),
            "phase": 2 * math.pi * seeded_random(base + 2),
            "speed": 0.3 + 1.2 * seeded_random(base + 3),
            "size": 0.02 + 0.06 * seeded_random(base + 4),
            "delay": i * 0.1,
            "color": np.array(self.spec.palette[i % len(self.spec.palette)], dtype=np.float32),
        }

    def _sky(self, time: float) -> np.ndarray:
        top = np.array(self.spec.background, dtype=np.float32)
        bottom = np.array(self.spec.palette[0], dtype=np.float32) * 0.6 + top * 0.4
        shift = 0.1 * math.sin(time * 0.5)
        mix = np.clip(self._rows + shift, 0.0, 1.0)
        column = top * (1 - mix) + bottom * mix
        return np.broadcast_to(column[:, None, :], (self.config.height, self.config.width, 3)).copy()

    def draw(self, target: RenderTarget, index: int, time: float) -> None:
        width, height = self.config.width, self.config.height
        pixels = self._sky(time)
        unit = min(width, height)

        for element in self._elements:
            grow = min(1.0, max(0.0, (time - element["delay"]) / 0.5))
            if grow <= 0.0:
                continue
            # springy entrance
            scale = 1 - math.exp(-3 * grow) * math.cos(grow * math.pi * 1.5)
            angle = element["phase"] + element["speed"] * time
            cx = width * (0.5 + element["orbit"] * math.cos(angle))
            cy = height * (0.5 + element["orbit"] * 0.6 * math.sin(angle))
            radius = max(1.0, unit * element["size"] * scale)
            _blend_disc(pixels, cx, cy, radius, element["color"])

        target.paint(np.clip(pixels, 0, 255).astype(np.uint8))


def _blend_disc(pixels: np.ndarray, cx: float, cy: float, radius: float, color: np.ndarray) -> None:
    """Alpha-blend a soft-edged disc into ``pixels`` in place."""
    height, width = pixels.shape[:2]
    x0, x1 = max(0, int(cx - radius)), min(width, int(cx + radius) + 1)
    y0, y1 = max(0, int(cy - radius)), min(height, int(cy + radius) + 1)
    if x0 >= x1 or y0 >= y1:
        return
    yy, xx = np.mgrid[y0:y1, x0:x1].astype(np.float32)
    dist = np.sqrt((xx - cx) ** 2 + (yy - cy) ** 2) / radius
    alpha = (np.clip(1 - dist, 0, 1) ** 0.5 * 0.9)[..., None]
    region = pixels[y0:y1, x0:x1]
    pixels[y0:y1, x0:x1] = region * (1 - alpha) + color * alpha


class PlaceholderScene(SceneRenderer):
    """Hue-cycling diagonal gradient with the frame index written on it."""

    kind = "placeholder"

    def __init__(self, config: RenderConfig) -> None:
        super().__init__(config)
        width, height = config.width, config.height
        xx = np.arange(width, dtype=np.float32)[None, :]
        yy = np.arange(height, dtype=np.float32)[:, None]
        # projection onto the (0,0)->(w,h) diagonal
        self._ramp = ((xx * width + yy * height) / float(width * width + height * height))[..., None]
        self._title_size = max(12, height // 22)
        self._title_font = _font(self._title_size)
        self._label_font = _font(max(10, height // 45))

    @staticmethod
    def _hsl(hue: float, saturation: float, lightness: float) -> np.ndarray:
        r, g, b = colorsys.hls_to_rgb((hue % 360) / 360.0, lightness, saturation)
        return np.array([r * 255, g * 255, b * 255], dtype=np.float32)

    def draw(self, target: RenderTarget, index: int, time: float) -> None:
        progress = index / self.config.frame_count
        start = self._hsl(progress * 360, 0.7, 0.5)
        end = self._hsl(progress * 360 + 180, 0.7, 0.3)
        pixels = start * (1 - self._ramp) + end * self._ramp
        target.paint(np.clip(pixels, 0, 255).astype(np.uint8))

        draw = target.draw()
        cx, cy = self.config.width / 2, self.config.height / 2
        _centered_text(draw, (cx, cy), PLACEHOLDER_TITLE, self._title_font)
        _centered_text(draw, (cx, cy + self._title_size * 1.1), f"Frame {index}", self._label_font)


def _font(size: int):
    return ImageFont.load_default(size=size)


def _centered_text(draw: ImageDraw.ImageDraw, center: tuple[float, float], text: str, font) -> None:
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = center[0] - (right - left) / 2 - left
    y = center[1] - (bottom - top) / 2 - top
    draw.text((x, y), text, fill="white", font=font)


def select_scene(source: Union[str, SceneSource], config: RenderConfig) -> SceneRenderer:
    """Pick the interpretable renderer when the source validates, else the placeholder."""
    validation = validate_scene(source)
    if validation.ok:
        return ProceduralScene(config, parse_scene_spec(source))
    logger.info(f"Scene source not interpretable (missing: {', '.join(validation.missing)}); using placeholder")
    return PlaceholderScene(config)
