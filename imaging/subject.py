"""Heuristic subject location.

Estimates where the main subject (usually a face) sits in a photo from its
orientation alone.  The locator is hidden behind the small
:class:`SubjectLocator` protocol so a real detector can replace it without
touching the cropper or the layout engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, Tuple, Union

from PIL import Image

from collage_engine import config
from .image_operations import Rect, round_half_up

ImageOrSize = Union[Image.Image, Tuple[int, int]]


@dataclass(frozen=True, slots=True)
class SubjectRegion:
    """Rectangle believed to contain the primary subject of an image."""

    x: int
    y: int
    width: int
    height: int
    confidence: float

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


class SubjectLocator(Protocol):
    """Capability interface for anything that can estimate a subject region."""

    def locate(self, image: ImageOrSize) -> SubjectRegion:
        ...


def _image_size(image: ImageOrSize) -> Tuple[int, int]:
    if isinstance(image, Image.Image):
        return image.size
    width, height = image
    return int(width), int(height)


class HeuristicSubjectLocator:
    """Orientation based subject estimate.

    Portrait images are assumed to carry the face near the top: a band over
    the middle 60% of the width, starting at 10% of the height and 40% tall.
    Landscape and square images get a centred region 30% wide, starting at
    15% of the height and 50% tall.  No pixels are inspected.
    """

    def __init__(self, confidence: float = config.SUBJECT_CONFIDENCE) -> None:
        self.confidence = confidence

    def locate(self, image: ImageOrSize) -> SubjectRegion:
        width, height = _image_size(image)
        if width <= 0 or height <= 0:
            return SubjectRegion(0, 0, 0, 0, self.confidence)

        if height > width:
            region_width = round_half_up(width * 0.6)
            region_height = round_half_up(height * 0.4)
            x = round_half_up(width * 0.2)
            y = round_half_up(height * 0.1)
        else:
            region_width = round_half_up(width * 0.3)
            region_height = round_half_up(height * 0.5)
            x = round_half_up((width - region_width) / 2)
            y = round_half_up(height * 0.15)

        # Rounding on tiny images must not push the region past the edges
        region_width = max(0, min(region_width, width - x))
        region_height = max(0, min(region_height, height - y))
        return SubjectRegion(x, y, region_width, region_height, self.confidence)


def optimal_crop(
    image_size: Tuple[int, int],
    target_size: Tuple[float, float],
    regions: Sequence[SubjectRegion],
    offset_x: float = 0.0,
    offset_y: float = 0.0,
    zoom: float = 1.0,
) -> Rect:
    """Calculate a crop that keeps the located subjects in frame.

    ``offset_x``/``offset_y`` are fractions of the image size (``-1..1``).
    For sources wider than the target the horizontal origin blends 30% of
    the user's position with 70% of a subject-centred position.  For taller
    sources the crop never starts below the top-most subject edge.
    """
    image_width, image_height = image_size
    target_width, target_height = target_size
    if image_width <= 0 or image_height <= 0 or target_width <= 0 or target_height <= 0:
        return Rect(0.0, 0.0, 0.0, 0.0)

    regions = [region for region in regions if not region.is_empty]
    zoom = zoom if zoom > 0 else 1.0
    target_ratio = target_width / target_height
    source_x = 0.0
    source_y = 0.0

    if image_width / image_height > target_ratio:
        source_width = round_half_up(image_height * target_ratio) / zoom
        source_height = image_height / zoom
        source_x = round_half_up((image_width - source_width) / 2) + offset_x * image_width
        if regions:
            mean_x = sum(region.center[0] for region in regions) / len(regions)
            ideal_x = max(0.0, min(image_width - source_width, mean_x - source_width / 2))
            source_x = round_half_up(source_x * 0.3 + ideal_x * 0.7)
        source_x = max(0.0, min(image_width - source_width, source_x))
    else:
        source_width = image_width / zoom
        source_height = round_half_up(image_width / target_ratio) / zoom
        source_y = round_half_up((image_height - source_height) / 2) + offset_y * image_height
        if regions:
            source_y = min(source_y, min(region.y for region in regions))
        source_y = max(0.0, min(image_height - source_height, source_y))

    return Rect(float(source_x), float(source_y), source_width, source_height)


__all__ = [
    "HeuristicSubjectLocator",
    "SubjectLocator",
    "SubjectRegion",
    "optimal_crop",
]
