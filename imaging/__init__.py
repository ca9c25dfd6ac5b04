"""Pillow helpers for the collage compositing engine."""

from . import collage_layouts, image_operations, image_processor, subject, validation

__all__ = ["collage_layouts", "image_operations", "image_processor", "subject", "validation"]
