"""Text-to-video generator: prompt to scene code to rendered, encoded video."""

__version__ = "0.1.0"
