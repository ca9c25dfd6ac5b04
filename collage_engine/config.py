# config.py
"""
Configuration constants for the collage compositing engine
"""

# Canvas sizes per aspect ratio (width, height)
CANVAS_SIZES = {
    "1:1": (1200, 1200),
    "4:3": (1200, 900),
    "16:9": (1600, 900),
}
DEFAULT_ASPECT_RATIO = "1:1"

# Layout defaults
DEFAULT_LAYOUT = "grid-2x2"
DEFAULT_SPACING = 10
DEFAULT_BORDER_WIDTH = 0
DEFAULT_BORDER_COLOR = "#ffffff"
DEFAULT_BACKGROUND_COLOR = "#ffffff"
DEFAULT_CORNER_RADIUS = 0
MIN_CELL_DIMENSION = 1  # pixels; over-constrained layouts clamp to this

# Cache settings
RESULT_CACHE_SIZE = 50
DECODE_CACHE_SIZE = 20
REFINEMENT_MEMO_SIZE = 500

# Loader settings
LOADER_MAX_WORKERS = 4
COMPOSER_MAX_WORKERS = 2
PLACEHOLDER_SIZE = (300, 300)
MAX_IMAGE_DIMENSION = 4000  # Larger sources are downscaled once decoded

# Supported image formats for file references
SUPPORTED_IMAGE_FORMATS = ['png', 'jpg', 'jpeg', 'bmp', 'webp', 'gif', 'tiff']

# Output encoding
OUTPUT_FORMAT = "JPEG"
OUTPUT_MEDIA_TYPE = "image/jpeg"
OUTPUT_JPEG_QUALITY = 90
OUTPUT_FILENAME_PREFIX = "collage"

# Adjustment ranges
OFFSET_MIN = -100.0
OFFSET_MAX = 100.0
ZOOM_MIN = 0.5
ZOOM_MAX = 2.0

# Subject heuristic
SUBJECT_CONFIDENCE = 0.8
PORTRAIT_SUBJECT_HEIGHT = 0.4    # fraction of image height holding the subject band
PORTRAIT_TOP_CROP_LIMIT = 0.3    # fraction of that band that may be cropped away
LANDSCAPE_TOP_CROP_LIMIT = 0.2   # fraction of image height

# Interactive drag thresholds
ZOOM_RENDER_STEP = 0.02
OFFSET_RENDER_STEP = 2
OFFSET_RENDER_MULTIPLE = 5

# Logging
LOGGER_NAME = "collage_engine"
LOG_FILENAME = "collage_engine.log"
LOG_MAX_BYTES = 1_048_576
LOG_BACKUP_COUNT = 5
