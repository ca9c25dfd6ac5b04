"""Collage composer: the entry point of the compositing engine.

:class:`CollageComposer` owns every piece of shared state a render needs
(result cache, decode cache, refinement memo and notification channel), so
two composers never influence each other.  Interactive callers that re-render
on every slider step pass ``bypass_cache=True``; such frames neither read nor
write the result cache.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable, Optional, Sequence

from imaging.image_processor import ImageProcessor, ImageRef

from . import config
from .cache import ResultCache, fingerprint
from .events import RefinementChannel
from .layout import LayoutEngine
from .models import AdjustmentLike, CollageOutput, CollageRequest, LayoutSpec
from .workers import ImageLoader, SubjectRefiner

LOGGER = logging.getLogger(__name__)

OutputCallback = Callable[[Optional[CollageOutput]], Any]


class CollageComposer:
    """Composes collages with caching, parallel decoding and refinement events."""

    def __init__(
        self,
        *,
        processor: Optional[ImageProcessor] = None,
        loader: Optional[ImageLoader] = None,
        cache: Optional[ResultCache] = None,
        engine: Optional[LayoutEngine] = None,
        channel: Optional[RefinementChannel] = None,
        refiner: Optional[SubjectRefiner] = None,
        max_workers: int = config.COMPOSER_MAX_WORKERS,
    ) -> None:
        self.channel = channel or RefinementChannel()
        self._processor = processor or ImageProcessor()
        self._loader = loader or ImageLoader(self._processor)
        self._cache = cache if cache is not None else ResultCache()
        self._engine = engine or LayoutEngine()
        self._refiner = refiner if refiner is not None else SubjectRefiner(self.channel)
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="collage-compose")
        self._count_lock = Lock()
        self.render_count = 0

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def loader(self) -> ImageLoader:
        return self._loader

    @property
    def refiner(self) -> SubjectRefiner:
        return self._refiner

    def compose(
        self,
        images: Sequence[ImageRef],
        layout: str = config.DEFAULT_LAYOUT,
        spacing: float = config.DEFAULT_SPACING,
        border_width: float = config.DEFAULT_BORDER_WIDTH,
        border_color: str = config.DEFAULT_BORDER_COLOR,
        background_color: str = config.DEFAULT_BACKGROUND_COLOR,
        corner_radius: float = config.DEFAULT_CORNER_RADIUS,
        adjustments: Optional[Sequence[AdjustmentLike]] = None,
        aspect_ratio: str = config.DEFAULT_ASPECT_RATIO,
        *,
        bypass_cache: bool = False,
    ) -> Optional[CollageOutput]:
        """Compose ``images`` into one collage and return the encoded output.

        Returns ``None`` when no images are given.  Identical inputs return
        the cached output from the first computation unless ``bypass_cache``
        is set.
        """
        request = CollageRequest(
            images=tuple(images),
            spec=LayoutSpec(
                layout=layout,
                spacing=spacing,
                border_width=border_width,
                border_color=border_color,
                background_color=background_color,
                corner_radius=corner_radius,
                aspect_ratio=aspect_ratio,
            ),
            adjustments=tuple(adjustments or ()),
        )
        return self.compose_request(request, bypass_cache=bypass_cache)

    def compose_request(
        self, request: CollageRequest, *, bypass_cache: bool = False
    ) -> Optional[CollageOutput]:
        if not request.images:
            return None

        key = fingerprint(request)
        if not bypass_cache:
            cached = self._cache.get(key)
            if cached is not None:
                LOGGER.debug("Collage cache hit (%d entries)", len(self._cache))
                return cached

        started = time.perf_counter()
        width, height = request.spec.canvas_size
        images = self._loader.load_all(request.images)
        surface = self._engine.render(
            images,
            request.adjustments,
            request.spec,
            width,
            height,
            refiner=self._refiner,
        )
        output = CollageOutput(
            data=self._processor.encode(surface),
            width=width,
            height=height,
            fingerprint=key,
        )
        with self._count_lock:
            self.render_count += 1

        if not bypass_cache:
            self._cache.put(key, output)
        LOGGER.info(
            "Composed %s collage with %d image(s) in %.1f ms%s",
            request.spec.layout,
            len(images),
            (time.perf_counter() - started) * 1000,
            " (cache bypassed)" if bypass_cache else "",
        )
        return output

    def compose_async(
        self,
        request: CollageRequest,
        callback: Optional[OutputCallback] = None,
        *,
        bypass_cache: bool = False,
    ) -> "Future[Optional[CollageOutput]]":
        """Run :meth:`compose_request` on the composer's pool.

        ``callback`` receives the output once it is ready.  Callers that
        issue several requests are responsible for ignoring superseded
        results.
        """

        def _task() -> Optional[CollageOutput]:
            output = self.compose_request(request, bypass_cache=bypass_cache)
            if callback is not None:
                callback(output)
            return output

        return self._pool.submit(_task)

    def close(self, wait: bool = True) -> None:
        """Shut down the composer's worker pools."""
        self._pool.shutdown(wait=wait)
        self._loader.shutdown(wait=wait)
        self._refiner.shutdown(wait=wait)

    def __enter__(self) -> "CollageComposer":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def should_render_adjustment(previous: Optional[float], key: str, value: float) -> bool:
    """Decide whether a slider step during a drag deserves a new frame.

    Zoom re-renders once it moves by more than ``ZOOM_RENDER_STEP``.  Offsets
    re-render on a jump larger than ``OFFSET_RENDER_STEP`` or whenever the
    value lands on a multiple of ``OFFSET_RENDER_MULTIPLE``.  Frames rendered
    this way should be composed with ``bypass_cache=True``.
    """
    if key == "zoom":
        baseline = 1.0 if previous is None else previous
        return abs(baseline - value) > config.ZOOM_RENDER_STEP
    baseline = 0.0 if previous is None else previous
    return abs(baseline - value) > config.OFFSET_RENDER_STEP or value % config.OFFSET_RENDER_MULTIPLE == 0
