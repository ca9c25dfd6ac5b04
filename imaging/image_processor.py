from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, Tuple, Union
import base64
import binascii
import hashlib
import io
import logging
import time
from urllib.parse import unquote_to_bytes

from PIL import Image, ImageOps, UnidentifiedImageError

from collage_engine import config
from .validation import is_data_url, validate_image_path

ImageRef = Union[str, bytes, Path]


class ImageDecodeError(Exception):
    """Raised when an image reference cannot be turned into a bitmap."""
    pass


def parse_data_url(url: str) -> Tuple[str, bytes]:
    """
    Split a ``data:`` URL into its media type and payload.

    Args:
        url: A URL of the form ``data:[<mediatype>][;base64],<data>``

    Returns:
        Tuple[str, bytes]: The media type and the decoded payload

    Raises:
        ImageDecodeError: If the URL is malformed
    """
    if not is_data_url(url):
        raise ImageDecodeError("Not a data URL")
    header, sep, data = url[5:].partition(",")
    if not sep:
        raise ImageDecodeError("Data URL is missing its payload separator")

    params = header.split(";")
    media_type = params[0] or "text/plain"
    try:
        if "base64" in (p.strip().lower() for p in params[1:]):
            payload = base64.b64decode(data, validate=False)
        else:
            payload = unquote_to_bytes(data)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Invalid data URL payload: {e}") from e
    return media_type, payload


def image_identity(ref: ImageRef) -> str:
    """Return a stable identity for an image reference.

    Inline references (data URLs and raw bytes) are hashed so the identity
    stays short; file references use their path.
    """
    if isinstance(ref, bytes):
        return "bytes:" + hashlib.md5(ref).hexdigest()
    if isinstance(ref, Path):
        return "file:" + str(ref)
    if is_data_url(ref):
        return "data:" + hashlib.md5(ref.encode()).hexdigest()
    return "file:" + str(ref)


def make_placeholder(size: Tuple[int, int] = config.PLACEHOLDER_SIZE) -> Image.Image:
    """Return a fully transparent image used in place of an undecodable source."""
    return Image.new("RGBA", size, (0, 0, 0, 0))


class ImageProcessor:
    """Decodes image references and encodes finished collages."""

    VALID_EXTENSIONS = {f".{fmt}" for fmt in config.SUPPORTED_IMAGE_FORMATS}
    MAX_IMAGE_SIZE = config.MAX_IMAGE_DIMENSION  # Maximum dimension in pixels
    QUALITY = config.OUTPUT_JPEG_QUALITY

    def decode(self, ref: ImageRef) -> Image.Image:
        """
        Decode an image reference into a fully loaded bitmap.

        Args:
            ref: A data URL, a file path or raw encoded bytes

        Returns:
            Image.Image: An ``RGB`` or ``RGBA`` image, EXIF-orientation applied

        Raises:
            ImageDecodeError: If the reference cannot be read or decoded
        """
        try:
            payload = self._read_payload(ref)
            with Image.open(io.BytesIO(payload)) as img:
                # Ask JPEG decoders to downscale early for very large inputs
                img.draft("RGB", (self.MAX_IMAGE_SIZE, self.MAX_IMAGE_SIZE))
                img = ImageOps.exif_transpose(img)
                result = img.convert(self._target_mode(img))
        except ImageDecodeError:
            raise
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageDecodeError(f"Failed to decode image: {e}") from e
        except Exception as e:
            logging.error(f"Unexpected error decoding image {image_identity(ref)}: {e}")
            raise ImageDecodeError(f"Failed to decode image: {e}") from e

        if max(result.size) > self.MAX_IMAGE_SIZE:
            result.thumbnail((self.MAX_IMAGE_SIZE, self.MAX_IMAGE_SIZE), Image.Resampling.LANCZOS)
        return result

    def _read_payload(self, ref: ImageRef) -> bytes:
        if isinstance(ref, bytes):
            return ref
        if isinstance(ref, str) and is_data_url(ref):
            _, payload = parse_data_url(ref)
            return payload
        if isinstance(ref, (str, Path)):
            try:
                path = validate_image_path(ref, self.VALID_EXTENSIONS)
            except ValueError as e:
                raise ImageDecodeError(str(e)) from e
            return path.read_bytes()
        raise ImageDecodeError(f"Unsupported image reference type: {type(ref).__name__}")

    @staticmethod
    def _target_mode(image: Image.Image) -> str:
        """Keep alpha where the source has it, otherwise decode to RGB."""
        if "A" in image.getbands() or "transparency" in image.info:
            return "RGBA"
        return "RGB"

    def encode(self, image: Image.Image, fmt: str = config.OUTPUT_FORMAT) -> bytes:
        """Serialize a finished surface with the output encoding settings."""
        fmt = fmt.upper()
        if fmt == 'JPG':
            fmt = 'JPEG'

        save_params: Dict[str, Any] = {'format': fmt}
        if fmt == 'JPEG':
            if image.mode != 'RGB':
                image = image.convert('RGB')
            save_params.update({
                'quality': self.QUALITY,
                'optimize': True,
                'progressive': True,
                'subsampling': '4:2:0',
            })
        elif fmt == 'WEBP':
            save_params.update({
                'quality': self.QUALITY,
                'method': 6,
            })
        elif fmt == 'PNG':
            save_params.update({
                'optimize': True,
                'compress_level': 6,
            })

        buffer = io.BytesIO()
        image.save(buffer, **save_params)
        return buffer.getvalue()


def export_output(output: Optional[Any]) -> BinaryIO:
    """Return a binary stream of a composed collage, ready to be saved as a JPEG file.

    An empty output (no images were composed) yields an empty stream.
    """
    data = getattr(output, "data", None) or b""
    return io.BytesIO(data)


def suggested_filename(prefix: str = config.OUTPUT_FILENAME_PREFIX) -> str:
    """Return a download name such as ``collage-1700000000000.jpg``."""
    return f"{prefix}-{int(time.time() * 1000)}.jpg"
