"""Per-surface memoization of evaluation results.

Keys are ``(round(u * 10**precision), round(v * 10**precision), order)``
integer triples, so two queries that agree to ``precision`` decimals share an
entry.  Cached numpy arrays are frozen (``writeable = False``) so a caller
cannot corrupt a stored result by modifying the value it was handed.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Hashable, Tuple

import numpy as np

CacheKey = Tuple[int, int, Hashable]


def freeze(value: Any) -> Any:
    """Make numpy arrays (also inside dicts/tuples) read-only."""

    if isinstance(value, np.ndarray):
        value.setflags(write=False)
    elif isinstance(value, dict):
        for item in value.values():
            freeze(item)
    elif isinstance(value, tuple):
        for item in value:
            freeze(item)
    return value


class EvaluationCache:
    """Unbounded dictionary cache keyed on rounded parameter values."""

    def __init__(self, precision: int = 6):
        self.precision = int(precision)
        self._scale = 10 ** self.precision
        self._store: Dict[CacheKey, Any] = {}
        self.hits = 0
        self.misses = 0

    def key(self, u: float, v: float, order: Hashable = 0) -> CacheKey:
        return (int(round(u * self._scale)), int(round(v * self._scale)), order)

    def get_or_compute(self, u: float, v: float, order: Hashable,
                       compute: Callable[[], Any]) -> Any:
        """Return the cached value for ``(u, v, order)``, computing it once."""

        k = self.key(u, v, order)
        try:
            value = self._store[k]
        except KeyError:
            self.misses += 1
            value = freeze(compute())
            self._store[k] = value
            return value
        self.hits += 1
        return value

    def clear(self) -> None:
        self._store.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._store


__all__ = ['EvaluationCache', 'freeze']
