# main.py
"""
Command-line entry point for the collage engine.
"""
import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Sequence

from imaging.collage_layouts import CollageLayouts
from imaging.image_processor import export_output
from imaging.validation import validate_output_path

from . import config
from .composer import CollageComposer


def configure_logging(log_path: Optional[Path] = None) -> logging.Logger:
    """Configure and return the application logger.

    The handler setup is idempotent to avoid duplicate handlers when called
    more than once (e.g., in tests). A rotating file handler limits on-disk
    log growth while mirroring output to stdout.
    """

    logger = logging.getLogger(config.LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    )

    log_path = Path(log_path or config.LOG_FILENAME)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=config.LOG_MAX_BYTES,
        backupCount=config.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(stream_handler)
    logger.propagate = False

    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="collage-engine",
        description="Compose images into a single collage JPEG.",
    )
    parser.add_argument("images", nargs="+", help="Image files to place, in cell order")
    parser.add_argument("-o", "--output", required=True, help="Destination .jpg file")
    parser.add_argument("--layout", default=config.DEFAULT_LAYOUT,
                        choices=CollageLayouts.get_layout_names())
    parser.add_argument("--spacing", type=float, default=config.DEFAULT_SPACING)
    parser.add_argument("--border-width", type=float, default=config.DEFAULT_BORDER_WIDTH)
    parser.add_argument("--border-color", default=config.DEFAULT_BORDER_COLOR)
    parser.add_argument("--background-color", default=config.DEFAULT_BACKGROUND_COLOR)
    parser.add_argument("--corner-radius", type=float, default=config.DEFAULT_CORNER_RADIUS)
    parser.add_argument("--aspect-ratio", default=config.DEFAULT_ASPECT_RATIO,
                        choices=sorted(config.CANVAS_SIZES))
    parser.add_argument("--log-file", default=None, help="Log file path")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = configure_logging(Path(args.log_file) if args.log_file else None)

    try:
        output_path = validate_output_path(args.output, {".jpg", ".jpeg"})
    except ValueError as exc:
        logger.error("Invalid output path %s: %s", args.output, exc)
        return 2

    with CollageComposer() as composer:
        output = composer.compose(
            args.images,
            layout=args.layout,
            spacing=args.spacing,
            border_width=args.border_width,
            border_color=args.border_color,
            background_color=args.background_color,
            corner_radius=args.corner_radius,
            aspect_ratio=args.aspect_ratio,
        )

    output_path.write_bytes(export_output(output).getvalue())
    logger.info("Saved collage to %s", output_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
