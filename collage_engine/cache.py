"""Thread-safe bounded caches used by the collage composer.

Entries are evicted in insertion order (FIFO): reading an entry does not
refresh it.  Re-putting an existing key replaces its value in place without
moving it.  The cache is implemented with ``collections.OrderedDict`` and an
``RLock`` so decoding threads and the composer can share it safely.

There is no module-level cache instance.  Each :class:`CollageComposer` owns
its caches (or has them injected), so repeated or concurrent composers never
see each other's entries.
"""

from __future__ import annotations

import json
import logging
from collections import OrderedDict
from threading import RLock
from typing import Generic, Iterator, List, Optional, TypeVar, TYPE_CHECKING

from imaging.image_processor import image_identity

from . import config

if TYPE_CHECKING:
    from .models import CollageOutput, CollageRequest

LOGGER = logging.getLogger(__name__)

V = TypeVar("V")


class BoundedCache(Generic[V]):
    """A simple thread-safe insertion-ordered cache."""

    def __init__(self, max_size: int = config.RESULT_CACHE_SIZE) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be greater than zero")
        self.max_size = max_size
        self._cache: "OrderedDict[str, V]" = OrderedDict()
        self._lock = RLock()

    def get(self, key: str) -> Optional[V]:
        """Return the value stored for *key*, or ``None`` if absent."""
        with self._lock:
            return self._cache.get(key)

    def put(self, key: str, value: V) -> None:
        """Insert *key*, evicting the oldest insertions beyond ``max_size``."""
        with self._lock:
            self._cache[key] = value
            while len(self._cache) > self.max_size:
                evicted, _ = self._cache.popitem(last=False)
                LOGGER.debug("Evicted cache entry %s", evicted[:80])

    def add(self, key: str) -> bool:
        """Record *key* as seen; return ``False`` if it was already present."""
        with self._lock:
            if key in self._cache:
                return False
            self.put(key, True)  # type: ignore[arg-type]
            return True

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._cache

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def keys(self) -> List[str]:
        """Return keys oldest first."""
        with self._lock:
            return list(self._cache.keys())

    def clear(self) -> None:
        """Remove all cached entries."""
        with self._lock:
            self._cache.clear()


class ResultCache(BoundedCache["CollageOutput"]):
    """Finished collages keyed by request fingerprint."""

    def __init__(self, max_size: int = config.RESULT_CACHE_SIZE) -> None:
        super().__init__(max_size)


def _format_number(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def fingerprint(request: "CollageRequest") -> str:
    """Return the cache key summarising every input that affects the output.

    The key joins the image identities, layout id, spacing, border width and
    colour, background colour, corner radius, aspect ratio and the serialized
    adjustments.  Numerically equal values (``10`` and ``10.0``) produce the
    same key.
    """
    spec = request.spec
    identities = "|".join(image_identity(ref) for ref in request.images)
    adjustments = json.dumps(
        [adjustment.to_dict() for adjustment in request.adjustments],
        separators=(",", ":"),
    )
    return "_".join([
        identities,
        spec.layout,
        _format_number(spec.spacing),
        _format_number(spec.border_width),
        spec.border_color,
        spec.background_color,
        _format_number(spec.corner_radius),
        spec.aspect_ratio,
        adjustments,
    ])


__all__ = ["BoundedCache", "ResultCache", "fingerprint"]
