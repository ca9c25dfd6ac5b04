"""Layout engine: places decoded images into layout cells on one canvas."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from PIL import Image

from imaging.collage_layouts import CellPlacement, CollageLayouts
from imaging.image_operations import (
    Adjustment,
    apply_rounded_corners,
    cover_fit,
    draw_fitted,
    fill_rect,
    parse_color,
)

from .models import LayoutSpec
from .workers import LoadedImage, SubjectRefiner

LOGGER = logging.getLogger(__name__)


class LayoutEngine:
    """Draws a full collage surface for a layout spec.

    Cells are drawn in slot order.  Image ``i`` always lands in slot ``i``;
    when fewer images than slots are supplied the trailing slots stay
    background, and extra images are ignored.  Corner rounding is applied
    once every cell is drawn.
    """

    def cells(
        self, spec: LayoutSpec, canvas_width: int, canvas_height: int
    ) -> list[CellPlacement]:
        layout = CollageLayouts.get_layout(spec.layout)
        return layout.get_cell_rects(canvas_width, canvas_height, spec.spacing, spec.border_width)

    def render(
        self,
        images: Sequence[LoadedImage],
        adjustments: Sequence[Adjustment],
        spec: LayoutSpec,
        canvas_width: int,
        canvas_height: int,
        *,
        refiner: Optional[SubjectRefiner] = None,
    ) -> Image.Image:
        background = parse_color(spec.background_color)
        surface = Image.new("RGB", (canvas_width, canvas_height), background)
        border_color = parse_color(spec.border_color) if spec.border_width > 0 else None

        placements = self.cells(spec, canvas_width, canvas_height)
        for placement, loaded in zip(placements, images):
            adjustment = (
                adjustments[placement.index]
                if placement.index < len(adjustments)
                else Adjustment()
            )
            if border_color is not None:
                fill_rect(surface, placement.frame, border_color)

            plan = cover_fit(loaded.size, placement.content, adjustment)
            draw_fitted(surface, loaded.image, plan)

            if refiner is not None:
                refiner.submit(loaded, placement.content, adjustment)

        if len(images) > len(placements):
            LOGGER.debug(
                "Layout %s holds %d images; ignoring %d extra",
                spec.layout, len(placements), len(images) - len(placements),
            )

        if spec.corner_radius > 0:
            surface = apply_rounded_corners(surface, spec.corner_radius, background)
        return surface
