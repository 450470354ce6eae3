"""Surfaces defined by an arbitrary Python callable ``f(u, v) -> (x, y, z)``.

Derivatives are estimated with centred finite differences.  For an order
``(m, n)`` derivative the stencil samples

    S(u + (m - 2i) h_u, v + (n - 2j) h_v),   0 <= i <= m, 0 <= j <= n

with weights ``(-1)**(i+j) * C(m, i) * C(n, j)`` and divides by the stencil
spacing ``(2 h_u)**m * (2 h_v)**n``.  The half-steps are ``fd_step`` times the
domain extent.  Near the boundary the whole stencil is shifted inwards so that
no sample leaves the domain.
"""

from __future__ import annotations

import logging
from math import comb, cos, isfinite, pi, sin
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from surfmesh.cache import EvaluationCache
from surfmesh.config import DEFAULT_SETTINGS, Settings
from surfmesh.errors import SerializationError, SurfaceConstructionError
from surfmesh.surface import BoundingBox, Derivatives, Domain, Surface

logger = logging.getLogger(__name__)

SurfaceFunction = Callable[[float, float], Sequence[float]]

FALLBACK_BOX = BoundingBox(np.array([-1.0, -1.0, -1.0]), np.array([1.0, 1.0, 1.0]))


class FunctionSurface(Surface):
    """Parametric surface backed by a callable.

    Parameters
    ----------
    function : callable
        ``function(u, v)`` returning three coordinates.
    u_range, v_range : pair of float
        Parameter domain, default ``(0, 1)`` each.
    settings : Settings, optional
        Finite-difference step, cache precision and bounding-box sampling.
    precompute : bool
        Fill the cache on the default tessellation grid right away.
    """

    def __init__(self, function: SurfaceFunction,
                 u_range: Sequence[float] = (0.0, 1.0),
                 v_range: Sequence[float] = (0.0, 1.0), *,
                 settings: Optional[Settings] = None, precompute: bool = False):
        if not callable(function):
            raise SurfaceConstructionError('surface function must be callable')
        self.function = function
        self._domain = (_as_range('u', u_range), _as_range('v', v_range))
        self.settings = settings or DEFAULT_SETTINGS
        self._cache = EvaluationCache(self.settings.evaluation.cache_precision)
        self._bbox = self._estimate_bounding_box()
        if precompute:
            self.precompute()

    @property
    def domain(self) -> Domain:
        return self._domain

    @property
    def cache(self) -> EvaluationCache:
        return self._cache

    def __repr__(self) -> str:
        name = getattr(self.function, '__name__', type(self.function).__name__)
        return f'FunctionSurface({name}, u_range={self._domain[0]}, v_range={self._domain[1]})'

    def _sample(self, u: float, v: float) -> np.ndarray:
        point = np.asarray(self.function(u, v), dtype=float).reshape(-1)
        if point.shape[0] < 3:
            raise ValueError(f'surface function returned {point.shape[0]} coordinates, need 3')
        return point[:3]

    def evaluate(self, u: float, v: float) -> np.ndarray:
        u, v = self.check_parameters(u, v)
        return self._cache.get_or_compute(u, v, 0, lambda: self._sample(u, v))

    def partial_derivatives(self, u: float, v: float, max_order: int = 2) -> Derivatives:
        """Finite-difference partials for every ``(k, l)`` with ``k + l <= max_order``."""

        max_order = int(max_order)
        if max_order < 0:
            raise ValueError('max_order must be >= 0')
        u, v = self.check_parameters(u, v)
        if max_order == 0:
            return {(0, 0): self.evaluate(u, v)}

        def compute():
            ders = {(0, 0): np.array(self.evaluate(u, v))}
            for k in range(max_order + 1):
                for l in range(max_order - k + 1):
                    if k or l:
                        ders[(k, l)] = self._difference(u, v, k, l)
            return ders

        return dict(self._cache.get_or_compute(u, v, max_order, compute))

    def _difference(self, u: float, v: float, ku: int, kv: int) -> np.ndarray:
        (u0, u1), (v0, v1) = self._domain
        step = self.settings.evaluation.fd_step
        hu = step * (u1 - u0)
        hv = step * (v1 - v0)
        cu = min(max(u, u0 + ku * hu), u1 - ku * hu)
        cv = min(max(v, v0 + kv * hv), v1 - kv * hv)
        if cu != u or cv != v:
            logger.debug('stencil for d(%d,%d) at (%g, %g) shifted to (%g, %g)',
                         ku, kv, u, v, cu, cv)

        total = np.zeros(3)
        for i in range(ku + 1):
            for j in range(kv + 1):
                coeff = (-1) ** (i + j) * comb(ku, i) * comb(kv, j)
                su = min(max(cu + (ku - 2 * i) * hu, u0), u1)
                sv = min(max(cv + (kv - 2 * j) * hv, v0), v1)
                total += coeff * self._sample(su, sv)
        return total / ((2.0 * hu) ** ku * (2.0 * hv) ** kv)

    def bounding_box(self) -> BoundingBox:
        return self._bbox

    def _estimate_bounding_box(self) -> BoundingBox:
        n = self.settings.evaluation.bbox_samples
        (u0, u1), (v0, v1) = self._domain
        points = []
        for i in range(n + 1):
            for j in range(n + 1):
                u = u0 + (u1 - u0) * i / n
                v = v0 + (v1 - v0) * j / n
                try:
                    pt = self._sample(u, v)
                except (ArithmeticError, ValueError, TypeError) as exc:
                    logger.debug('bounding box sample at (%g, %g) failed: %s', u, v, exc)
                    continue
                if all(isfinite(c) for c in pt):
                    points.append(pt)
        if not points:
            logger.warning('no bounding box sample of %r succeeded, using the unit box', self)
            return FALLBACK_BOX
        return BoundingBox.from_points(points)

    def precompute(self, u_segments: Optional[int] = None,
                   v_segments: Optional[int] = None) -> int:
        """Evaluate points on a grid so later tessellation hits the cache.

        Returns the number of cache entries afterwards.
        """

        tess = self.settings.tessellation
        nu = tess.u_segments if u_segments is None else int(u_segments)
        nv = tess.v_segments if v_segments is None else int(v_segments)
        for j in range(nv + 1):
            for i in range(nu + 1):
                self.evaluate(*self.to_domain(i / nu, j / nv))
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    def clone(self) -> 'FunctionSurface':
        return FunctionSurface(self.function, self._domain[0], self._domain[1],
                               settings=self.settings)

    def to_dict(self) -> Dict[str, Any]:
        raise SerializationError('function surfaces cannot be serialized')

    # -- presets --------------------------------------------------------------

    @classmethod
    def sphere(cls, radius: float = 1.0, u_range=(0.0, 2.0 * pi), v_range=(0.0, pi),
               **kwargs) -> 'FunctionSurface':
        def sphere(u, v):
            return (radius * sin(v) * cos(u), radius * cos(v), radius * sin(v) * sin(u))
        return cls(sphere, u_range, v_range, **kwargs)

    @classmethod
    def torus(cls, major_radius: float = 2.0, minor_radius: float = 1.0,
              u_range=(0.0, 2.0 * pi), v_range=(0.0, 2.0 * pi), **kwargs) -> 'FunctionSurface':
        def torus(u, v):
            ring = major_radius + minor_radius * cos(v)
            return (ring * cos(u), minor_radius * sin(v), ring * sin(u))
        return cls(torus, u_range, v_range, **kwargs)

    @classmethod
    def plane(cls, width: float = 1.0, height: float = 1.0, u_range=(0.0, 1.0),
              v_range=(0.0, 1.0), **kwargs) -> 'FunctionSurface':
        def plane(u, v):
            return ((u - 0.5) * width, (v - 0.5) * height, 0.0)
        return cls(plane, u_range, v_range, **kwargs)

    @classmethod
    def cylinder(cls, radius: float = 1.0, height: float = 2.0, u_range=(0.0, 2.0 * pi),
                 v_range=(0.0, 1.0), **kwargs) -> 'FunctionSurface':
        def cylinder(u, v):
            return (radius * cos(u), (v - 0.5) * height, radius * sin(u))
        return cls(cylinder, u_range, v_range, **kwargs)

    @classmethod
    def klein_bottle(cls, scale: float = 1.0, u_range=(0.0, 2.0 * pi),
                     v_range=(0.0, 2.0 * pi), **kwargs) -> 'FunctionSurface':
        """Figure-eight immersion of the Klein bottle."""

        def klein_bottle(u, v):
            tube = 2.0 + cos(u / 2) * sin(v) - sin(u / 2) * sin(2 * v)
            return (scale * tube * cos(u),
                    scale * tube * sin(u),
                    scale * (sin(u / 2) * sin(v) + cos(u / 2) * sin(2 * v)))
        return cls(klein_bottle, u_range, v_range, **kwargs)


def _as_range(name: str, rng: Sequence[float]) -> Tuple[float, float]:
    try:
        lo, hi = (float(x) for x in rng)
    except (TypeError, ValueError) as exc:
        raise SurfaceConstructionError(f'{name}_range must be a pair of numbers') from exc
    if not (isfinite(lo) and isfinite(hi)) or not lo < hi:
        raise SurfaceConstructionError(f'{name}_range ({lo}, {hi}) must be finite and increasing')
    return lo, hi


__all__ = ['FunctionSurface', 'SurfaceFunction']
