"""Cover-fit cropping and drawing helpers.

This module centralizes the pixel-level operations the layout engine needs:
resolving which part of a source image lands in a cell, blitting it, filling
border bands and rounding the finished canvas.  Functions are intentionally
small and pure (apart from the explicit draw helpers) so they can be tested
without any runtime state.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, TYPE_CHECKING

from PIL import Image, ImageColor, ImageDraw

from collage_engine import config

if TYPE_CHECKING:
    from .subject import SubjectRegion

ColorValue = tuple[int, int, int]

_FALLBACK_COLOR: ColorValue = (255, 255, 255)


def round_half_up(value: float) -> int:
    """Round ``value`` to the nearest integer with halves rounded upwards."""

    return math.floor(value + 0.5)


@dataclass(frozen=True, slots=True)
class Rect:
    """Axis-aligned rectangle with fractional coordinates."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def to_box(self) -> tuple[int, int, int, int]:
        """Return the integer pixel box covered by the rectangle.

        The box always spans at least one pixel on each axis.
        """
        left = round_half_up(self.x)
        top = round_half_up(self.y)
        right = max(left + 1, round_half_up(self.right))
        bottom = max(top + 1, round_half_up(self.bottom))
        return left, top, right, bottom

    def overlaps(self, other: "Rect") -> bool:
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )


@dataclass(frozen=True, slots=True)
class Adjustment:
    """Per-image pan/zoom chosen by the user.

    Offsets are percentages of half the sampled source size in ``[-100, 100]``;
    ``zoom`` is in ``[0.5, 2.0]`` where values above one crop in tighter.
    """

    offset_x: float = 0.0
    offset_y: float = 0.0
    zoom: float = 1.0

    def to_dict(self) -> dict[str, float]:
        return {
            "offsetX": _plain_number(self.offset_x),
            "offsetY": _plain_number(self.offset_y),
            "zoom": _plain_number(self.zoom),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Adjustment":
        """Create an adjustment from camelCase or snake_case keys."""
        return cls(
            offset_x=float(data.get("offsetX", data.get("offset_x", 0.0))),
            offset_y=float(data.get("offsetY", data.get("offset_y", 0.0))),
            zoom=float(data.get("zoom", 1.0)),
        )


def _plain_number(value: float) -> float | int:
    """Collapse integral floats so ``10`` and ``10.0`` serialize identically."""

    value = float(value)
    return int(value) if value.is_integer() else value


@dataclass(frozen=True, slots=True)
class CropPlan:
    """Resolved source rectangle and the destination area it is scaled into."""

    source: Rect
    dest: Rect


def _bias_towards_subject(
    source_y: float,
    image_size: tuple[int, int],
    adjustment: Adjustment,
    subject: Optional["SubjectRegion"],
) -> float:
    """Limit how much of the top of the image the crop may cut away.

    Portrait sources keep the subject band near the top unless the user has
    panned downwards.  Landscape and square sources always cap the vertical
    origin, even when the user panned.
    """
    image_width, image_height = image_size
    if image_width / image_height < 1:
        if subject is not None:
            band_height = subject.height
        else:
            band_height = image_height * config.PORTRAIT_SUBJECT_HEIGHT
        if source_y > 0 and adjustment.offset_y <= 0:
            source_y = min(source_y, band_height * config.PORTRAIT_TOP_CROP_LIMIT)
    elif source_y > image_height * config.LANDSCAPE_TOP_CROP_LIMIT:
        source_y = image_height * config.LANDSCAPE_TOP_CROP_LIMIT
    return source_y


def _clamp_origin(origin: float, length: float, limit: float) -> float:
    """Translate ``origin`` so ``[origin, origin + length]`` stays inside ``[0, limit]``."""

    if origin + length > limit:
        origin = limit - length
    if origin < 0:
        origin = 0.0
    return origin


def cover_fit(
    image_size: tuple[int, int],
    dest: Rect,
    adjustment: Optional[Adjustment] = None,
    subject: Optional["SubjectRegion"] = None,
) -> CropPlan:
    """Resolve the source rectangle that fills ``dest`` with ``object-fit: cover``.

    Steps: centre a cover crop matching the destination aspect ratio, shrink
    it by ``zoom``, shift it by the pan offsets, bias it towards the likely
    subject and finally translate it back inside the image.  When ``zoom`` is
    below one the requested rectangle can be larger than the image itself;
    it is then clipped to the image and the destination shrinks in the same
    proportion, anchored at the destination's top-left corner.

    The returned ``source`` always satisfies ``0 <= x``, ``0 <= y``,
    ``x + width <= image width`` and ``y + height <= image height``.
    """
    image_width, image_height = image_size
    adj = adjustment or Adjustment()
    if image_width <= 0 or image_height <= 0 or dest.is_empty:
        return CropPlan(source=Rect(0.0, 0.0, 0.0, 0.0), dest=dest)

    image_ratio = image_width / image_height
    cell_ratio = dest.width / dest.height

    if image_ratio > cell_ratio:
        # Wider than the cell: crop the sides
        source_height = float(image_height)
        source_width = image_height * cell_ratio
    else:
        source_width = float(image_width)
        source_height = image_width / cell_ratio

    zoom = adj.zoom if adj.zoom > 0 else 1.0
    source_width /= zoom
    source_height /= zoom

    source_x = (image_width - source_width) / 2 + adj.offset_x * source_width / 200
    source_y = (image_height - source_height) / 2 + adj.offset_y * source_height / 200
    source_y = _bias_towards_subject(source_y, image_size, adj, subject)

    source_x = _clamp_origin(source_x, source_width, image_width)
    source_y = _clamp_origin(source_y, source_height, image_height)

    visible_width = min(source_width, image_width - source_x)
    visible_height = min(source_height, image_height - source_y)
    dest_rect = Rect(
        dest.x,
        dest.y,
        dest.width * visible_width / source_width,
        dest.height * visible_height / source_height,
    )
    return CropPlan(
        source=Rect(source_x, source_y, visible_width, visible_height),
        dest=dest_rect,
    )


def draw_fitted(surface: Image.Image, image: Image.Image, plan: CropPlan) -> None:
    """Sample ``plan.source`` from ``image`` and scale-blit it into ``plan.dest``."""

    if plan.source.is_empty or plan.dest.is_empty:
        return
    left, top, right, bottom = plan.dest.to_box()
    width, height = image.size
    box = (
        max(0.0, plan.source.x),
        max(0.0, plan.source.y),
        min(float(width), plan.source.right),
        min(float(height), plan.source.bottom),
    )
    tile = image.resize((right - left, bottom - top), Image.Resampling.LANCZOS, box=box)
    if "A" in tile.getbands():
        surface.paste(tile, (left, top), tile)
    else:
        surface.paste(tile, (left, top))


def fill_rect(surface: Image.Image, rect: Rect, color: ColorValue) -> None:
    """Fill ``rect`` on ``surface`` with a solid colour."""
    surface.paste(color, rect.to_box())


def apply_rounded_corners(
    surface: Image.Image, radius: float, background: ColorValue
) -> Image.Image:
    """Clip ``surface`` to a rounded rectangle over a ``background`` fill.

    Corners outside the rounded path show the background colour rather than
    transparency.  The radius is limited to half the shorter canvas side.
    """
    if radius <= 0:
        return surface
    width, height = surface.size
    radius = min(int(radius), min(width, height) // 2)
    if radius <= 0:
        return surface

    mask = Image.new("L", surface.size, 0)
    ImageDraw.Draw(mask).rounded_rectangle(
        (0, 0, width - 1, height - 1), radius=radius, fill=255
    )
    base = Image.new(surface.mode, surface.size, background)
    return Image.composite(surface, base, mask)


def parse_color(value: str, *, fallback: ColorValue = _FALLBACK_COLOR) -> ColorValue:
    """Return an RGB tuple for a CSS-style colour string.

    Unrecognised colours fall back to white with a warning to keep rendering
    going.
    """
    try:
        return ImageColor.getrgb(value)[:3]
    except (ValueError, TypeError, AttributeError):
        logging.warning("Unknown colour %r, using fallback %s", value, fallback)
        return fallback


__all__ = [
    "Adjustment",
    "CropPlan",
    "Rect",
    "apply_rounded_corners",
    "cover_fit",
    "draw_fitted",
    "fill_rect",
    "parse_color",
    "round_half_up",
]
