"""Per-call scratch workspaces."""

import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional

from ..config import config

logger = logging.getLogger(__name__)


class ScratchSpace:
    """A uniquely named working directory owned by one pipeline call.

    Two calls never share a directory, so concurrent generations cannot
    collide on frame filenames. The directory and everything in it is
    removed when the context exits, whether or not an error is propagating.
    """

    def __init__(self, prefix: str, root: Optional[Path] = None) -> None:
        self.root = Path(root) if root is not None else config.scratch_root
        self.call_id = uuid.uuid4().hex
        self.path = self.root / f"{prefix}-{self.call_id}"

    def __enter__(self) -> "ScratchSpace":
        self.path.mkdir(parents=True, exist_ok=False)
        logger.debug(f"Created scratch workspace {self.path}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def file(self, name: str) -> Path:
        """Path of ``name`` inside the workspace."""
        return self.path / name

    def cleanup(self) -> None:
        if not self.path.exists():
            return
        shutil.rmtree(self.path, ignore_errors=True)
        if self.path.exists():
            logger.warning(f"Scratch workspace not fully removed: {self.path}")
        else:
            logger.debug(f"Removed scratch workspace {self.path}")
