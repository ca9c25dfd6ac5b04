"""Input validation helpers for image references and adjustments."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, Union
from urllib.parse import urlparse

from collage_engine import config
from .image_operations import Adjustment


def _has_url_scheme(path_str: str) -> bool:
    """Return True if *path_str* looks like a URL with a scheme.

    Single-letter schemes such as ``"C"`` are treated as drive letters on
    Windows and therefore ignored.
    """
    parsed = urlparse(path_str)
    return bool(parsed.scheme and len(parsed.scheme) > 1)


def is_data_url(value: Any) -> bool:
    """Return True when *value* is an inline ``data:`` image reference."""
    return isinstance(value, str) and value[:5].lower() == "data:"


def validate_image_path(path: Union[str, Path], allowed_exts: Iterable[str]) -> Path:
    """Validate a user-supplied image *path*.

    The path must point to an existing file with an allowed extension and must
    not include a URL scheme.  Returns the resolved ``Path`` object.
    """
    path_str = str(path)
    if _has_url_scheme(path_str):
        raise ValueError("URLs are not allowed")

    p = Path(path_str).expanduser()
    try:
        p = p.resolve(strict=True)
    except FileNotFoundError as exc:
        raise ValueError(f"File does not exist: {path_str}") from exc

    if not p.is_file():
        raise ValueError(f"Not a file: {path_str}")

    if p.suffix.lower() not in {ext.lower() for ext in allowed_exts}:
        raise ValueError(f"Unsupported file extension: {p.suffix}")

    return p


def validate_output_path(path: Union[str, Path], allowed_exts: Iterable[str]) -> Path:
    """Validate an output file *path*.

    Ensures the directory exists, the extension is allowed and the path does not
    contain a URL scheme.  Returns the resolved ``Path``.
    """
    path_str = str(path)
    if _has_url_scheme(path_str):
        raise ValueError("URLs are not allowed")

    p = Path(path_str).expanduser()
    p = p.resolve()

    if not p.parent.exists():
        raise ValueError(f"Directory does not exist: {p.parent}")

    if p.suffix.lower() not in {ext.lower() for ext in allowed_exts}:
        raise ValueError(f"Unsupported file extension: {p.suffix}")

    return p


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, float(value)))


def clamp_adjustment(adjustment: Adjustment) -> Adjustment:
    """Clamp offsets to ``[-100, 100]`` and zoom to ``[0.5, 2.0]``."""
    return Adjustment(
        offset_x=clamp(adjustment.offset_x, config.OFFSET_MIN, config.OFFSET_MAX),
        offset_y=clamp(adjustment.offset_y, config.OFFSET_MIN, config.OFFSET_MAX),
        zoom=clamp(adjustment.zoom, config.ZOOM_MIN, config.ZOOM_MAX),
    )


def normalize_adjustments(
    adjustments: Optional[Sequence[Union[Adjustment, Mapping[str, Any], None]]],
    count: int,
) -> tuple[Adjustment, ...]:
    """Return exactly *count* clamped adjustments.

    Missing entries default to ``Adjustment()``; mappings are accepted with
    either camelCase or snake_case keys.  Extra entries are dropped.
    """
    provided = list(adjustments or [])
    normalized = []
    for index in range(count):
        item = provided[index] if index < len(provided) else None
        if item is None:
            adjustment = Adjustment()
        elif isinstance(item, Adjustment):
            adjustment = item
        elif isinstance(item, Mapping):
            adjustment = Adjustment.from_dict(item)
        else:
            raise TypeError(f"Unsupported adjustment value: {item!r}")
        normalized.append(clamp_adjustment(adjustment))
    return tuple(normalized)
