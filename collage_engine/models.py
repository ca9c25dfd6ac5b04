"""Data types passed through one compositing pass.

``LayoutSpec`` and ``CollageRequest`` validate themselves on construction so
that a bad layout id or a negative gap is reported before any decoding
starts; everything inside ``compose`` can then assume well-formed input.
"""

from __future__ import annotations

import base64
import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

from imaging.collage_layouts import CollageLayouts
from imaging.image_operations import Adjustment, Rect
from imaging.image_processor import ImageRef
from imaging.subject import SubjectRegion
from imaging.validation import normalize_adjustments

from . import config

AdjustmentLike = Union[Adjustment, Mapping[str, Any], None]


@dataclass(frozen=True, slots=True)
class LayoutSpec:
    """Layout id plus the styling parameters that apply to the whole canvas."""

    layout: str = config.DEFAULT_LAYOUT
    spacing: float = config.DEFAULT_SPACING
    border_width: float = config.DEFAULT_BORDER_WIDTH
    border_color: str = config.DEFAULT_BORDER_COLOR
    background_color: str = config.DEFAULT_BACKGROUND_COLOR
    corner_radius: float = config.DEFAULT_CORNER_RADIUS
    aspect_ratio: str = config.DEFAULT_ASPECT_RATIO

    def __post_init__(self) -> None:
        # Raises ValueError for unknown layout ids
        CollageLayouts.get_layout(self.layout)
        for name in ("spacing", "border_width", "corner_radius"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

    @property
    def canvas_size(self) -> Tuple[int, int]:
        """Canvas pixels for the aspect ratio; unknown ratios render square."""
        return config.CANVAS_SIZES.get(
            self.aspect_ratio, config.CANVAS_SIZES[config.DEFAULT_ASPECT_RATIO]
        )

    @classmethod
    def from_template(cls, template_id: str, **overrides: Any) -> "LayoutSpec":
        """Build a layout from a template preset, optionally overriding fields."""
        template = CollageLayouts.get_template(template_id)
        values = {
            "layout": template.layout,
            "spacing": template.spacing,
            "border_width": template.border_width,
            "border_color": template.border_color,
            "background_color": template.background_color,
        }
        values.update(overrides)
        return cls(**values)

    def replace(self, **changes: Any) -> "LayoutSpec":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True, slots=True)
class CollageRequest:
    """Everything one ``compose`` call needs.

    ``adjustments`` is normalised to exactly one clamped entry per image.
    """

    images: Tuple[ImageRef, ...]
    spec: LayoutSpec = LayoutSpec()
    adjustments: Tuple[Adjustment, ...] = ()

    def __post_init__(self) -> None:
        images = tuple(self.images)
        object.__setattr__(self, "images", images)
        object.__setattr__(
            self, "adjustments", normalize_adjustments(self.adjustments, len(images))
        )

    @classmethod
    def build(
        cls,
        images: Sequence[ImageRef],
        adjustments: Optional[Sequence[AdjustmentLike]] = None,
        **spec_fields: Any,
    ) -> "CollageRequest":
        return cls(images=tuple(images), spec=LayoutSpec(**spec_fields), adjustments=tuple(adjustments or ()))

    def with_adjustment(self, index: int, adjustment: Adjustment) -> "CollageRequest":
        """Return a copy with the adjustment at ``index`` replaced."""
        adjustments = list(self.adjustments)
        adjustments[index] = adjustment
        return dataclasses.replace(self, adjustments=tuple(adjustments))


@dataclass(frozen=True, slots=True)
class CollageOutput:
    """Encoded result of one compositing pass."""

    data: bytes
    width: int
    height: int
    fingerprint: str
    media_type: str = config.OUTPUT_MEDIA_TYPE

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"


@dataclass(frozen=True, slots=True)
class SubjectRefined:
    """Notification that a background subject pass finished for one cell.

    Listeners may recompose; the in-flight render is never changed.
    """

    image_key: str
    identity: str
    crop: Rect
    region: SubjectRegion
