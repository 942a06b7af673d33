"""ResultCache — caller-owned memoisation of analysis results.

Keys combine a fingerprint of the series contents, the name of the
computation and its (frozen, hashable) config.  Nothing is shared between
cache instances.
"""

import hashlib
import logging
from collections import OrderedDict
from collections.abc import Callable, Hashable, Sequence
from typing import Any

from volumelab.core.series import PointLike, normalize_series

logger = logging.getLogger("volumelab.cache")


def series_fingerprint(series: Sequence[PointLike]) -> str:
    """Stable digest of the dates, closes and volumes of *series* (order-normalised)."""
    digest = hashlib.sha1()
    for point in normalize_series(series):
        digest.update(f"{point.date}|{point.close!r}|{point.volume!r};".encode())
    return digest.hexdigest()


class ResultCache:
    """Least-recently-used cache of ``(fingerprint, name, config) → result``.

    Args:
        maxsize: Entries kept before the least recently used is evicted.
    """

    def __init__(self, maxsize: int = 64) -> None:
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")
        self._maxsize = maxsize
        self._entries: OrderedDict[tuple, Any] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get_or_compute(
        self,
        name: str,
        series: Sequence[PointLike],
        config: Hashable,
        compute: Callable[[], Any],
    ) -> Any:
        """Return the cached result for this input, computing it on a miss."""
        key = (series_fingerprint(series), name, config)
        if key in self._entries:
            self._entries.move_to_end(key)
            self.hits += 1
            return self._entries[key]

        self.misses += 1
        result = compute()
        self._entries[key] = result
        if len(self._entries) > self._maxsize:
            evicted = self._entries.popitem(last=False)[0]
            logger.debug("Evicted cached %s result", evicted[1])
        return result

    def invalidate(self, series: Sequence[PointLike] | None = None) -> int:
        """Drop entries for *series*, or everything when *series* is ``None``.

        Returns the number of entries removed.
        """
        if series is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed

        fingerprint = series_fingerprint(series)
        stale = [k for k in self._entries if k[0] == fingerprint]
        for key in stale:
            del self._entries[key]
        return len(stale)
