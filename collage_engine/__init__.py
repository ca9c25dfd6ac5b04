"""Collage compositing engine.

The public entry point is :class:`collage_engine.composer.CollageComposer`.
"""

__version__ = "1.0.0"
