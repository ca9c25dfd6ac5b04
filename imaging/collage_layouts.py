from dataclasses import dataclass, field
from typing import List, Dict
import logging
from functools import lru_cache

from collage_engine import config
from .image_operations import Rect


@dataclass(frozen=True, slots=True)
class LayoutSlot:
    """One image slot expressed in units of the layout's grid."""

    column: int
    row: int
    col_span: int = 1
    row_span: int = 1


@dataclass(frozen=True, slots=True)
class CellPlacement:
    """Pixel geometry of one populated slot.

    ``frame`` includes the border band; ``content`` is the area the image
    is drawn into.
    """

    index: int
    frame: Rect
    content: Rect


@dataclass(slots=True)
class CollageLayout:
    """Represents a collage layout as slots on a unit grid."""

    name: str
    columns: int
    rows: int
    slots: List[LayoutSlot]
    description: str = ""
    tags: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._validate_slots()

    def _validate_slots(self) -> None:
        """
        Validate the slot structure.

        Raises:
            ValueError: If the slots are out of bounds or overlap
        """
        if self.columns <= 0 or self.rows <= 0:
            raise ValueError("Layout must have positive dimensions")

        if not self.slots:
            raise ValueError("Layout must define at least one slot")

        occupied: set[tuple[int, int]] = set()
        for slot in self.slots:
            if slot.col_span <= 0 or slot.row_span <= 0:
                raise ValueError("Slot spans must be positive")
            if slot.column < 0 or slot.row < 0:
                raise ValueError("Slot positions must be non-negative")
            if slot.column + slot.col_span > self.columns or slot.row + slot.row_span > self.rows:
                raise ValueError("Slot exceeds layout bounds")
            area = {
                (r, c)
                for r in range(slot.row, slot.row + slot.row_span)
                for c in range(slot.column, slot.column + slot.col_span)
            }
            if occupied & area:
                raise ValueError("Slots must not overlap")
            occupied |= area

    @property
    def cell_count(self) -> int:
        """Number of image cells the layout offers."""
        return len(self.slots)

    def get_cell_rects(
        self,
        canvas_width: float,
        canvas_height: float,
        spacing: float = 0,
        border_width: float = 0,
    ) -> List[CellPlacement]:
        """
        Calculate the placement of every cell in the layout.

        Spacing separates cells from each other and from the canvas edges;
        each cell additionally reserves ``border_width`` on every side for
        its border band.  Cell ``i`` always maps to slot ``i``.

        Args:
            canvas_width: Width of the canvas
            canvas_height: Height of the canvas
            spacing: Gap between cells and around the edges
            border_width: Border band around each cell's image

        Returns:
            List[CellPlacement]: One placement per slot, in slot order
        """
        # Unit cell size after removing every gap and border band
        unit_width = (canvas_width - spacing * (self.columns + 1) - border_width * 2 * self.columns) / self.columns
        unit_height = (canvas_height - spacing * (self.rows + 1) - border_width * 2 * self.rows) / self.rows

        if unit_width < config.MIN_CELL_DIMENSION or unit_height < config.MIN_CELL_DIMENSION:
            logging.warning(
                "Layout '%s' is over-constrained for %sx%s (spacing=%s, border=%s); clamping cells",
                self.name, canvas_width, canvas_height, spacing, border_width,
            )
        unit_width = max(float(config.MIN_CELL_DIMENSION), unit_width)
        unit_height = max(float(config.MIN_CELL_DIMENSION), unit_height)

        pitch_x = unit_width + spacing + border_width * 2
        pitch_y = unit_height + spacing + border_width * 2

        placements = []
        for index, slot in enumerate(self.slots):
            x = spacing + slot.column * pitch_x
            y = spacing + slot.row * pitch_y

            # Spanning slots swallow the gaps and borders they cover
            width = unit_width * slot.col_span + (spacing + border_width * 2) * (slot.col_span - 1)
            height = unit_height * slot.row_span + (spacing + border_width * 2) * (slot.row_span - 1)

            placements.append(CellPlacement(
                index=index,
                frame=Rect(x, y, width + border_width * 2, height + border_width * 2),
                content=Rect(x + border_width, y + border_width, width, height),
            ))

        return placements

    def to_dict(self) -> Dict:
        """Convert the layout to a dictionary representation."""
        return {
            "name": self.name,
            "columns": self.columns,
            "rows": self.rows,
            "slots": [
                {"column": s.column, "row": s.row, "colSpan": s.col_span, "rowSpan": s.row_span}
                for s in self.slots
            ],
            "description": self.description,
            "tags": self.tags,
        }


@dataclass(frozen=True, slots=True)
class CollageTemplate:
    """Named preset pairing a layout with default styling."""

    id: str
    name: str
    layout: str
    spacing: float = config.DEFAULT_SPACING
    border_width: float = config.DEFAULT_BORDER_WIDTH
    border_color: str = config.DEFAULT_BORDER_COLOR
    background_color: str = config.DEFAULT_BACKGROUND_COLOR
    thumbnail: str = ""


def _grid(columns: int, rows: int) -> List[LayoutSlot]:
    return [LayoutSlot(column=c, row=r) for r in range(rows) for c in range(columns)]


class CollageLayouts:
    """Registry of the built-in collage layouts and templates."""

    LAYOUTS: Dict[str, CollageLayout] = {
        "grid-2x2": CollageLayout(
            "grid-2x2", 2, 2, _grid(2, 2),
            "Four equal cells in a 2x2 grid",
            ["grid"]
        ),
        "grid-3x3": CollageLayout(
            "grid-3x3", 3, 3, _grid(3, 3),
            "Nine equal cells in a 3x3 grid",
            ["grid"]
        ),
        "horizontal-2": CollageLayout(
            "horizontal-2", 2, 1, _grid(2, 1),
            "Two full-height cells side by side",
            ["strip", "horizontal"]
        ),
        "horizontal-3": CollageLayout(
            "horizontal-3", 3, 1, _grid(3, 1),
            "Three full-height cells side by side",
            ["strip", "horizontal"]
        ),
        "vertical-2": CollageLayout(
            "vertical-2", 1, 2, _grid(1, 2),
            "Two full-width cells stacked",
            ["strip", "vertical"]
        ),
        "vertical-3": CollageLayout(
            "vertical-3", 1, 3, _grid(1, 3),
            "Three full-width cells stacked",
            ["strip", "vertical"]
        ),
        "t-shape": CollageLayout(
            "t-shape", 2, 2,
            [LayoutSlot(0, 0, col_span=2), LayoutSlot(0, 1), LayoutSlot(1, 1)],
            "One full-width cell on top, two equal cells below",
            ["feature"]
        ),
        "l-shape": CollageLayout(
            "l-shape", 2, 2,
            [LayoutSlot(0, 0, row_span=2), LayoutSlot(1, 0), LayoutSlot(1, 1)],
            "One full-height cell on the left, two stacked cells on the right",
            ["feature"]
        ),
    }

    TEMPLATES: Dict[str, CollageTemplate] = {
        "grid-2x2": CollageTemplate("grid-2x2", "Grid 2x2", "grid-2x2", thumbnail="/templates/grid-2x2.jpg"),
        "grid-3x3": CollageTemplate("grid-3x3", "Grid 3x3", "grid-3x3", spacing=5, thumbnail="/templates/grid-3x3.jpg"),
        "horizontal-2": CollageTemplate("horizontal-2", "Horizontal 2", "horizontal-2", thumbnail="/templates/horizontal-2.jpg"),
        "horizontal-3": CollageTemplate("horizontal-3", "Horizontal 3", "horizontal-3", thumbnail="/templates/horizontal-3.jpg"),
        "vertical-2": CollageTemplate("vertical-2", "Vertical 2", "vertical-2", thumbnail="/templates/vertical-2.jpg"),
        "vertical-3": CollageTemplate("vertical-3", "Vertical 3", "vertical-3", thumbnail="/templates/vertical-3.jpg"),
        "t-shape": CollageTemplate("t-shape", "T-Shape", "t-shape", thumbnail="/templates/t-shape.jpg"),
        "l-shape": CollageTemplate("l-shape", "L-Shape", "l-shape", thumbnail="/templates/l-shape.jpg"),
    }

    @classmethod
    def get_layout(cls, name: str) -> CollageLayout:
        """Get a layout by name."""
        try:
            return cls.LAYOUTS[name]
        except KeyError:
            logging.error(f"Layout '{name}' not found")
            raise ValueError(f"Layout '{name}' not found")

    @classmethod
    def get_template(cls, template_id: str) -> CollageTemplate:
        """Get a template preset by id."""
        try:
            return cls.TEMPLATES[template_id]
        except KeyError:
            logging.error(f"Template '{template_id}' not found")
            raise ValueError(f"Template '{template_id}' not found")

    @classmethod
    @lru_cache(maxsize=None)
    def get_layout_names(cls) -> List[str]:
        """Get a list of all available layout names.

        Big-O:
            ``O(n log n)`` once for sorting ``n`` layouts; ``O(1)`` on
            repeated calls.
        """
        return sorted(cls.LAYOUTS.keys())

    @classmethod
    @lru_cache(maxsize=None)
    def get_layouts_by_tag(cls, tag: str) -> List[CollageLayout]:
        """Get layouts filtered by tag.

        Big-O:
            ``O(n)`` for the first call of a tag, ``O(1)`` for subsequent
            requests for the same tag.
        """
        return [
            layout for layout in cls.LAYOUTS.values()
            if tag in layout.tags
        ]
