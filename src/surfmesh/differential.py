"""Differential geometry of parametric surfaces.

Everything here works from partial derivatives only, so the same code serves
NURBS surfaces (analytic derivatives) and function surfaces (finite
differences).
"""

from __future__ import annotations

from dataclasses import dataclass
from math import sqrt
from typing import Mapping, Optional, Tuple

import numpy as np


UP = np.array([0.0, 1.0, 0.0])
DEGENERATE_TOL = 1e-10

Derivatives = Mapping[Tuple[int, int], np.ndarray]


@dataclass(frozen=True)
class Curvatures:
    """Curvature measures at one surface point."""

    gaussian: float
    mean: float
    k1: float
    k2: float
    normal: np.ndarray
    degenerate: bool = False

    @property
    def magnitude(self) -> float:
        """``max(|K|, |H|)``, the refinement signal used by tessellation."""

        return max(abs(self.gaussian), abs(self.mean))


@dataclass(frozen=True)
class FundamentalForms:
    E: float
    F: float
    G: float
    e: float
    f: float
    g: float

    @property
    def metric_determinant(self) -> float:
        return self.E * self.G - self.F * self.F


@dataclass(frozen=True)
class TangentSpace:
    position: np.ndarray
    normal: np.ndarray
    tangent_u: np.ndarray
    tangent_v: np.ndarray


def normalize(vec: np.ndarray, fallback: Optional[np.ndarray] = None,
              tol: float = DEGENERATE_TOL) -> Tuple[np.ndarray, bool]:
    """Return ``(unit_vector, ok)``; ``ok`` is False when ``fallback`` was used."""

    length = float(np.linalg.norm(vec))
    if not np.isfinite(length) or length <= tol:
        return (UP.copy() if fallback is None else np.array(fallback, dtype=float)), False
    return vec / length, True


def normal_from_partials(su: np.ndarray, sv: np.ndarray,
                         tol: float = DEGENERATE_TOL) -> Tuple[np.ndarray, bool]:
    """Unit normal ``S_u x S_v``; falls back to +Y when the cross product vanishes.

    The test is relative to ``|S_u| |S_v|``, so it only depends on the angle
    between the partials and on their ratio, not on the scale of the
    geometry or of the parametrisation.
    """

    cross = np.cross(su, sv)
    lu = float(np.linalg.norm(su))
    lv = float(np.linalg.norm(sv))
    length = float(np.linalg.norm(cross))
    if not np.isfinite(length) or min(lu, lv) <= tol * max(lu, lv) \
       or length <= tol * lu * lv:
        return UP.copy(), False
    return cross / length, True


def fundamental_forms(ders: Derivatives, normal: np.ndarray) -> FundamentalForms:
    su, sv = ders[(1, 0)], ders[(0, 1)]
    return FundamentalForms(
        E=float(np.dot(su, su)),
        F=float(np.dot(su, sv)),
        G=float(np.dot(sv, sv)),
        e=float(np.dot(ders[(2, 0)], normal)),
        f=float(np.dot(ders[(1, 1)], normal)),
        g=float(np.dot(ders[(0, 2)], normal)),
    )


def curvatures(ders: Derivatives, tol: float = DEGENERATE_TOL) -> Curvatures:
    """Gaussian, mean and principal curvatures from second-order partials.

    ``ders`` maps ``(k, l)`` to ``d^(k+l) S / du^k dv^l`` and must contain
    all entries with ``k + l <= 2``.  A vanishing normal sets ``degenerate``
    and yields ``K = H = 0``, as does a metric determinant below
    ``tol * E * G``.
    """

    normal, ok = normal_from_partials(ders[(1, 0)], ders[(0, 1)], tol)
    forms = fundamental_forms(ders, normal)
    det = forms.metric_determinant
    if ok and det > tol * forms.E * forms.G:
        K = (forms.e * forms.g - forms.f * forms.f) / det
        H = (forms.e * forms.G - 2.0 * forms.f * forms.F + forms.g * forms.E) / (2.0 * det)
    else:
        K = H = 0.0
    disc = sqrt(max(0.0, H * H - K))
    return Curvatures(gaussian=K, mean=H, k1=H + disc, k2=H - disc,
                      normal=normal, degenerate=not ok)


def tangent_space(ders: Derivatives, tol: float = DEGENERATE_TOL) -> TangentSpace:
    """Orthonormal frame ``(tangent_u, tangent_v, normal)`` at a point."""

    normal, _ = normal_from_partials(ders[(1, 0)], ders[(0, 1)], tol)
    scale = max(float(np.linalg.norm(ders[(1, 0)])), float(np.linalg.norm(ders[(0, 1)])))
    tu, _ = normalize(ders[(1, 0)], np.array([1.0, 0.0, 0.0]), tol * scale)
    tv, ok_v = normalize(np.cross(normal, tu), None, tol)
    if not ok_v:
        # tangent parallel to the normal; pick any perpendicular axis
        axis = np.array([1.0, 0.0, 0.0]) if abs(normal[0]) < 0.9 else np.array([0.0, 0.0, 1.0])
        tv, _ = normalize(np.cross(normal, axis), None, tol)
    tu, _ = normalize(np.cross(tv, normal), None, tol)
    return TangentSpace(position=np.array(ders[(0, 0)], dtype=float), normal=normal,
                        tangent_u=tu, tangent_v=tv)


__all__ = [
    'UP',
    'Curvatures',
    'FundamentalForms',
    'TangentSpace',
    'normalize',
    'normal_from_partials',
    'fundamental_forms',
    'curvatures',
    'tangent_space',
]
