"""Parameter-space restriction of another surface."""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from surfmesh.errors import ParameterDomainError, SurfaceConstructionError
from surfmesh.nurbs import NurbsSurface
from surfmesh.surface import BoundingBox, Derivatives, Domain, Surface

SURFACE_TYPE = 'trimmed_surface'


class TrimmedSurface(Surface):
    """View of ``base`` over the rectangle ``u_range x v_range``.

    The trimmed surface has the unit domain ``[0, 1]^2``; ``(u, v)`` maps
    linearly onto the sub-rectangle of the base domain, and derivatives are
    scaled by the chain rule.  Trimming a trimmed surface composes the
    ranges and wraps the innermost base again.
    """

    def __init__(self, base: Surface, u_range: Optional[Sequence[float]] = None,
                 v_range: Optional[Sequence[float]] = None):
        if isinstance(base, TrimmedSurface):
            u_range = base._outer_range(0, u_range)
            v_range = base._outer_range(1, v_range)
            base = base.base
        (bu0, bu1), (bv0, bv1) = base.domain
        self.base = base
        self.settings = base.settings
        self._u_range = _check_range('u', u_range, bu0, bu1)
        self._v_range = _check_range('v', v_range, bv0, bv1)
        self._bbox: Optional[BoundingBox] = None

    @property
    def domain(self) -> Domain:
        return (0.0, 1.0), (0.0, 1.0)

    @property
    def u_range(self) -> Tuple[float, float]:
        return self._u_range

    @property
    def v_range(self) -> Tuple[float, float]:
        return self._v_range

    def _outer_range(self, axis: int, inner: Optional[Sequence[float]]):
        """Express a range given in this surface's ``[0, 1]`` in base parameters."""

        lo, hi = self._u_range if axis == 0 else self._v_range
        if inner is None:
            return lo, hi
        a, b = _check_range('uv'[axis], inner, 0.0, 1.0)
        return lo + (hi - lo) * a, lo + (hi - lo) * b

    def _base_parameters(self, u: float, v: float) -> Tuple[float, float]:
        u, v = self.check_parameters(u, v)
        u0, u1 = self._u_range
        v0, v1 = self._v_range
        return u0 + (u1 - u0) * u, v0 + (v1 - v0) * v

    def evaluate(self, u: float, v: float) -> np.ndarray:
        return self.base.evaluate(*self._base_parameters(u, v))

    def partial_derivatives(self, u: float, v: float, max_order: int = 2) -> Derivatives:
        ders = self.base.partial_derivatives(*self._base_parameters(u, v), max_order)
        su = self._u_range[1] - self._u_range[0]
        sv = self._v_range[1] - self._v_range[0]
        return {(k, l): val * (su ** k) * (sv ** l) for (k, l), val in ders.items()}

    def bounding_box(self) -> BoundingBox:
        """Box around a sample grid over the trimmed region.

        NURBS bases report a control-point box, which stays valid for any
        sub-region and is returned as is.
        """

        if self._bbox is None:
            if isinstance(self.base, NurbsSurface):
                self._bbox = self.base.bounding_box()
            else:
                n = self.settings.evaluation.bbox_samples
                pts = [self.evaluate(i / n, j / n) for i in range(n + 1) for j in range(n + 1)]
                self._bbox = BoundingBox.from_points(pts)
        return self._bbox

    def clone(self) -> 'TrimmedSurface':
        return TrimmedSurface(self.base.clone(), self._u_range, self._v_range)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': SURFACE_TYPE,
            'base': self.base.to_dict(),
            'u_range': list(self._u_range),
            'v_range': list(self._v_range),
        }

    def __repr__(self) -> str:
        return f'TrimmedSurface({self.base!r}, u_range={self._u_range}, v_range={self._v_range})'


def _check_range(name: str, rng: Optional[Sequence[float]], lo: float,
                 hi: float) -> Tuple[float, float]:
    if rng is None:
        return float(lo), float(hi)
    try:
        a, b = (float(x) for x in rng)
    except (TypeError, ValueError) as exc:
        raise SurfaceConstructionError(f'{name}_range must be a pair of numbers') from exc
    if not a < b:
        raise SurfaceConstructionError(f'{name}_range ({a}, {b}) is empty')
    tol = 1e-12 * max(1.0, hi - lo)
    if a < lo - tol or b > hi + tol:
        raise ParameterDomainError(f'{name}_range ({a}, {b}) outside [{lo}, {hi}]')
    return max(a, lo), min(b, hi)


__all__ = ['TrimmedSurface', 'SURFACE_TYPE']
