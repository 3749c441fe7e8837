"""Scene interpretation and frame rendering."""

from .extract import extract_config
from .renderer import FrameRenderer
from .scene import (
    PlaceholderScene,
    ProceduralScene,
    RenderTarget,
    SceneRenderer,
    SceneSpec,
    parse_scene_spec,
    seeded_random,
    select_scene,
    validate_scene,
)

__all__ = [
    "extract_config",
    "FrameRenderer",
    "SceneRenderer",
    "ProceduralScene",
    "PlaceholderScene",
    "RenderTarget",
    "SceneSpec",
    "parse_scene_spec",
    "seeded_random",
    "select_scene",
    "validate_scene",
]
