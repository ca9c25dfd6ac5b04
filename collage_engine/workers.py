# workers.py
"""
Background task execution for the collage engine.
Defines the parallel image loader (fan-out decode, fan-in in input order) and
the fire-and-forget subject refiner.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from PIL import Image

from imaging.image_operations import Adjustment, Rect
from imaging.image_processor import (
    ImageDecodeError,
    ImageProcessor,
    ImageRef,
    image_identity,
    make_placeholder,
)
from imaging.subject import HeuristicSubjectLocator, SubjectLocator, optimal_crop

from . import config
from .cache import BoundedCache
from .events import RefinementChannel
from .models import SubjectRefined

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoadedImage:
    """A decoded source, or the placeholder standing in for one."""

    identity: str
    image: Image.Image
    placeholder: bool = False

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size


class ImageLoader:
    """Decodes image references concurrently.

    Every reference is submitted to the pool at once; :meth:`load_all`
    returns only when each one has decoded or been replaced by a
    placeholder.  Successful decodes are kept in a bounded decode cache
    keyed by image identity.  Failures are not cached so a later call
    retries them.
    """

    def __init__(
        self,
        processor: Optional[ImageProcessor] = None,
        cache: Optional[BoundedCache[LoadedImage]] = None,
        max_workers: int = config.LOADER_MAX_WORKERS,
    ) -> None:
        self._processor = processor or ImageProcessor()
        self._cache: BoundedCache[LoadedImage] = (
            cache if cache is not None else BoundedCache(config.DECODE_CACHE_SIZE)
        )
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="collage-decode")

    @property
    def cache(self) -> BoundedCache[LoadedImage]:
        return self._cache

    def load_all(self, refs: Sequence[ImageRef]) -> List[LoadedImage]:
        """Decode every reference in parallel; results follow input order."""
        if not refs:
            return []
        futures = [self._pool.submit(self._load_one, ref) for ref in refs]
        return [future.result() for future in futures]

    def _load_one(self, ref: ImageRef) -> LoadedImage:
        identity = image_identity(ref)
        cached = self._cache.get(identity)
        if cached is not None:
            return cached
        try:
            image = self._processor.decode(ref)
        except ImageDecodeError as exc:
            LOGGER.warning("Error loading image %s, using placeholder: %s", identity[:80], exc)
            return LoadedImage(identity, make_placeholder(), placeholder=True)
        loaded = LoadedImage(identity, image)
        self._cache.put(identity, loaded)
        return loaded

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


class SubjectRefiner:
    """Runs subject analysis off the render path and publishes the result.

    Each ``(image, cell size, adjustment)`` combination is analysed at most
    once while it stays in the bounded memo.  Results never touch the render
    that triggered them; they are published on the channel for listeners
    that may recompose.
    """

    def __init__(
        self,
        channel: RefinementChannel,
        locator: Optional[SubjectLocator] = None,
        memo_size: int = config.REFINEMENT_MEMO_SIZE,
        max_workers: int = 1,
    ) -> None:
        self.channel = channel
        self._locator: SubjectLocator = locator or HeuristicSubjectLocator()
        self._processed: BoundedCache[bool] = BoundedCache(memo_size)
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="collage-refine")

    @staticmethod
    def refinement_key(identity: str, cell: Rect, adjustment: Adjustment) -> str:
        return (
            f"{identity}_{cell.width:g}x{cell.height:g}_"
            f"{adjustment.offset_x:g},{adjustment.offset_y:g},{adjustment.zoom:g}"
        )

    def submit(
        self, loaded: LoadedImage, cell: Rect, adjustment: Adjustment
    ) -> Optional[Future]:
        """Schedule analysis for one drawn cell unless it was already done."""
        if loaded.placeholder:
            return None
        key = self.refinement_key(loaded.identity, cell, adjustment)
        if not self._processed.add(key):
            return None
        return self._pool.submit(self._refine, key, loaded, cell, adjustment)

    def _refine(
        self, key: str, loaded: LoadedImage, cell: Rect, adjustment: Adjustment
    ) -> Optional[SubjectRefined]:
        try:
            region = self._locator.locate(loaded.image)
            if region.is_empty:
                return None
            crop = optimal_crop(
                loaded.size,
                (cell.width, cell.height),
                [region],
                adjustment.offset_x / 100,
                adjustment.offset_y / 100,
                adjustment.zoom,
            )
            event = SubjectRefined(image_key=key, identity=loaded.identity, crop=crop, region=region)
        except Exception as e:
            LOGGER.error("Subject refinement error: %s", e)
            return None
        self.channel.publish(event)
        return event

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
