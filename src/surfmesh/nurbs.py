"""Tensor-product NURBS surfaces.

A :class:`NurbsSurface` is defined by a grid of control points (rows along
``v``, columns along ``u``), one weight per point, one knot vector per
direction and a degree pair.  Parameters ``(u, v)`` are always given in
``[0, 1] x [0, 1]`` and are mapped linearly onto the knot domains, so a
surface built with knots ``[2, 2, 3, 4, 4]`` evaluates exactly like the same
surface with knots ``[0, 0, 0.5, 1, 1]``.

Surfaces are immutable.  :meth:`NurbsSurface.insert_knot` and
:meth:`NurbsSurface.transform` return new surfaces; :meth:`NurbsSurface.trim`
returns a reparametrising wrapper around this one.

Derivatives of rational surfaces are exact: homogeneous derivatives are
projected with the quotient rule (Piegl & Tiller, A4.4) rather than
approximated by normalising derivative sums with the weight sum.
"""

from __future__ import annotations

import logging
from math import comb, cos, pi, sin
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from surfmesh.basis import basis_function_derivatives, basis_functions
from surfmesh.cache import EvaluationCache
from surfmesh.config import DEFAULT_SETTINGS, Settings
from surfmesh.control_mesh import ControlMesh
from surfmesh.errors import SerializationError, SurfaceConstructionError
from surfmesh.knots import KnotVector, as_knot_vector
from surfmesh.surface import BoundingBox, Derivatives, Domain, Surface
from surfmesh.xform import apply_matrix

logger = logging.getLogger(__name__)

WEIGHT_TOL = 1e-10
SURFACE_TYPE = 'nurbs_surface'


class NurbsSurface(Surface):
    """Rational or non-rational tensor-product B-spline surface.

    Parameters
    ----------
    control_points : grid of points or ControlMesh
        ``control_points[j][i]`` is the point with ``v`` index ``j`` and
        ``u`` index ``i``.  Points are deep-copied.
    u_knots, v_knots : sequence of float or KnotVector, optional
        Knot vectors; clamped uniform vectors are generated when omitted.
    degree_u, degree_v : int
        Polynomial degrees (default cubic).
    weights : grid of float, optional
        Positive weights, default all ``1.0`` (non-rational).
    settings : Settings, optional
        Evaluation and tessellation settings.
    """

    def __init__(self, control_points, u_knots=None, v_knots=None,
                 degree_u: int = 3, degree_v: int = 3, weights=None, *,
                 settings: Optional[Settings] = None):
        if isinstance(control_points, ControlMesh) and weights is None:
            mesh = control_points
        elif isinstance(control_points, ControlMesh):
            mesh = ControlMesh(control_points.points, weights)
        else:
            mesh = ControlMesh(control_points, weights)
        degree_u = int(degree_u)
        degree_v = int(degree_v)
        if degree_u < 1 or degree_v < 1:
            raise SurfaceConstructionError(f'degrees must be >= 1, got ({degree_u}, {degree_v})')
        mesh.check_degree(degree_u, degree_v)

        self._mesh = mesh
        self._u_knots = as_knot_vector(u_knots, mesh.cols, degree_u)
        self._v_knots = as_knot_vector(v_knots, mesh.rows, degree_v)
        self._rational = mesh.is_rational
        self.settings = settings or DEFAULT_SETTINGS
        self._cache = EvaluationCache(self.settings.evaluation.cache_precision)
        self._bbox = BoundingBox(*mesh.bounds())

    # -- properties ---------------------------------------------------------

    @property
    def domain(self) -> Domain:
        return (0.0, 1.0), (0.0, 1.0)

    @property
    def control_mesh(self) -> ControlMesh:
        return self._mesh

    @property
    def control_points(self) -> np.ndarray:
        return self._mesh.points

    @property
    def weights(self) -> np.ndarray:
        return self._mesh.weights

    @property
    def u_knots(self) -> KnotVector:
        return self._u_knots

    @property
    def v_knots(self) -> KnotVector:
        return self._v_knots

    @property
    def degree_u(self) -> int:
        return self._u_knots.degree

    @property
    def degree_v(self) -> int:
        return self._v_knots.degree

    @property
    def is_rational(self) -> bool:
        return self._rational

    @property
    def cache(self) -> EvaluationCache:
        return self._cache

    def bounding_box(self) -> BoundingBox:
        """Box around the control points; contains the whole surface."""

        return self._bbox

    def __repr__(self) -> str:
        return (f'NurbsSurface({self._mesh.rows}x{self._mesh.cols} control points, '
                f'degree=({self.degree_u}, {self.degree_v}), rational={self._rational})')

    # -- evaluation ---------------------------------------------------------

    def _active(self, u: float, v: float):
        U, V = self._u_knots, self._v_knots
        ku = U.to_parameter(u)
        kv = V.to_parameter(v)
        span_u = U.find_span(ku)
        span_v = V.find_span(kv)
        rows = slice(span_v - V.degree, span_v + 1)
        cols = slice(span_u - U.degree, span_u + 1)
        return ku, kv, span_u, span_v, rows, cols

    def evaluate(self, u: float, v: float) -> np.ndarray:
        """Surface point at ``(u, v)`` in ``[0, 1]^2``."""

        u, v = self.check_parameters(u, v)
        return self._cache.get_or_compute(u, v, 0, lambda: self._point(u, v))

    def _point(self, u: float, v: float) -> np.ndarray:
        U, V = self._u_knots, self._v_knots
        ku, kv, span_u, span_v, rows, cols = self._active(u, v)
        Nu = basis_functions(ku, span_u, U.degree, U.knots)
        Nv = basis_functions(kv, span_v, V.degree, V.knots)
        coeff = np.outer(Nv, Nu)
        pts = self._mesh.points[rows, cols]
        if not self._rational:
            return np.einsum('ji,jik->k', coeff, pts)

        coeff = coeff * self._mesh.weights[rows, cols]
        numerator = np.einsum('ji,jik->k', coeff, pts)
        wsum = float(coeff.sum())
        if abs(wsum) < WEIGHT_TOL:
            return numerator
        return numerator / wsum

    def partial_derivatives(self, u: float, v: float, max_order: int = 2) -> Derivatives:
        """Partial derivatives ``d^(k+l)S / du^k dv^l`` for ``k + l <= max_order``.

        The result is keyed by ``(k, l)``; ``(0, 0)`` is the surface point.
        """

        max_order = int(max_order)
        if max_order < 0:
            raise ValueError('max_order must be >= 0')
        u, v = self.check_parameters(u, v)
        if max_order == 0:
            return {(0, 0): self.evaluate(u, v)}
        ders = self._cache.get_or_compute(u, v, max_order,
                                          lambda: self._derivatives(u, v, max_order))
        return dict(ders)

    def _derivatives(self, u: float, v: float, d: int) -> Derivatives:
        U, V = self._u_knots, self._v_knots
        ku, kv, span_u, span_v, rows, cols = self._active(u, v)
        Nu = basis_function_derivatives(ku, span_u, U.degree, d, U.knots)
        Nv = basis_function_derivatives(kv, span_v, V.degree, d, V.knots)

        if self._rational:
            pw = np.concatenate(
                (self._mesh.points[rows, cols] * self._mesh.weights[rows, cols, None],
                 self._mesh.weights[rows, cols, None]), axis=2)
        else:
            pw = self._mesh.points[rows, cols]

        homo = {}
        for k in range(d + 1):
            for l in range(d - k + 1):
                homo[(k, l)] = np.einsum('j,i,jik->k', Nv[l], Nu[k], pw)

        if self._rational:
            ders = rational_derivatives({key: val[:3] for key, val in homo.items()},
                                        {key: float(val[3]) for key, val in homo.items()}, d)
        else:
            ders = homo

        # chain rule from knot parameters back to the normalised [0, 1] domain
        su = U.domain[1] - U.domain[0]
        sv = V.domain[1] - V.domain[0]
        if su != 1.0 or sv != 1.0:
            ders = {(k, l): val * (su ** k) * (sv ** l) for (k, l), val in ders.items()}
        return ders

    # -- editing --------------------------------------------------------------

    def insert_knot(self, direction: str = 'u', value: float = 0.5,
                    multiplicity: int = 1) -> 'NurbsSurface':
        """Return an equivalent surface with ``value`` inserted ``multiplicity`` times.

        ``value`` is a normalised parameter strictly inside ``(0, 1)``.  Each
        insertion adds one column (``'u'``) or one row (``'v'``) of control
        points; the evaluated shape is unchanged.
        """

        if direction not in ('u', 'v'):
            raise ValueError(f"direction must be 'u' or 'v', got {direction!r}")
        r = int(multiplicity)
        if r < 1:
            raise ValueError('multiplicity must be >= 1')
        knots = self._u_knots if direction == 'u' else self._v_knots
        p = knots.degree
        knot = knots.to_parameter(float(value))
        lo, hi = knots.domain
        if not lo < knot < hi:
            raise ValueError(f'knot value {value} must lie strictly inside the domain')
        s = knots.multiplicity(knot)
        if s + r > p:
            raise ValueError(
                f'inserting {value} {r} times would give multiplicity {s + r} > degree {p}')
        span = knots.find_span(knot)

        pw = self._mesh.homogeneous()
        if direction == 'v':
            pw = pw.transpose(1, 0, 2)
        qw = _insert_knot_rows(pw, knots.knots, p, knot, span, s, r)
        if direction == 'v':
            qw = qw.transpose(1, 0, 2)

        new_knots = knots.inserted(knot, r)
        logger.debug('inserted knot %g x%d in %s: %s -> %s control points',
                     knot, r, direction, self._mesh.shape, qw.shape[:2])
        return NurbsSurface(
            ControlMesh.from_homogeneous(qw),
            new_knots if direction == 'u' else self._u_knots,
            new_knots if direction == 'v' else self._v_knots,
            self.degree_u, self.degree_v, settings=self.settings)

    def transform(self, matrix) -> 'NurbsSurface':
        """Return a new surface with every control point transformed by ``matrix``."""

        points = apply_matrix(matrix, self._mesh.points)
        return NurbsSurface(points, self._u_knots, self._v_knots,
                            self.degree_u, self.degree_v, self._mesh.weights.copy(),
                            settings=self.settings)

    def clone(self) -> 'NurbsSurface':
        return NurbsSurface(self._mesh.copy(), self._u_knots, self._v_knots,
                            self.degree_u, self.degree_v, settings=self.settings)

    # -- plain data -----------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': SURFACE_TYPE,
            'control_points': self._mesh.points.tolist(),
            'weights': self._mesh.weights.tolist(),
            'u_knots': self._u_knots.to_list(),
            'v_knots': self._v_knots.to_list(),
            'degree_u': self.degree_u,
            'degree_v': self.degree_v,
            'is_rational': self._rational,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *,
                  settings: Optional[Settings] = None) -> 'NurbsSurface':
        if not isinstance(data, dict):
            raise SerializationError(f'expected a mapping, got {type(data).__name__}')
        kind = data.get('type', SURFACE_TYPE)
        if kind != SURFACE_TYPE:
            raise SerializationError(f'not a NURBS surface record: {kind!r}')
        try:
            return cls(data['control_points'], data.get('u_knots'), data.get('v_knots'),
                       data['degree_u'], data['degree_v'], data.get('weights'),
                       settings=settings)
        except KeyError as exc:
            raise SerializationError(f'NURBS surface record is missing {exc}') from exc

    # -- presets --------------------------------------------------------------

    @classmethod
    def plane(cls, width: float = 1.0, height: float = 1.0, u_segments: int = 2,
              v_segments: int = 2, *, settings: Optional[Settings] = None) -> 'NurbsSurface':
        """Bilinear patch in the XY plane centred on the origin."""

        if u_segments < 1 or v_segments < 1:
            raise SurfaceConstructionError('plane needs at least one segment per direction')
        points = [[((i / u_segments - 0.5) * width, (j / v_segments - 0.5) * height, 0.0)
                   for i in range(u_segments + 1)]
                  for j in range(v_segments + 1)]
        return cls(points, None, None, 1, 1, settings=settings)

    @classmethod
    def sphere(cls, radius: float = 1.0, u_segments: int = 8, v_segments: int = 6, *,
               settings: Optional[Settings] = None) -> 'NurbsSurface':
        """Exact rational sphere, Y up.

        ``u`` runs around the Y axis (``u_segments`` rational arcs, at least
        3) and ``v`` from the north pole ``(0, r, 0)`` to the south pole
        (``v_segments`` arcs, at least 2).
        """

        if radius <= 0:
            raise SurfaceConstructionError('radius must be positive')
        if u_segments < 3 or v_segments < 2:
            raise SurfaceConstructionError('sphere needs u_segments >= 3 and v_segments >= 2')
        profile = [(radius * sin(a) * scale, radius * cos(a) * scale, w)
                   for a, scale, w in _arc_samples(0.0, pi, v_segments)]
        return _revolve(profile, _arc_knots(v_segments), u_segments, settings)

    @classmethod
    def torus(cls, major_radius: float = 2.0, minor_radius: float = 1.0,
              u_segments: int = 8, v_segments: int = 8, *,
              settings: Optional[Settings] = None) -> 'NurbsSurface':
        """Exact rational torus around the Y axis.

        ``u`` runs around the Y axis and ``v`` around the tube; both need at
        least 3 segments.
        """

        if major_radius <= 0 or minor_radius <= 0:
            raise SurfaceConstructionError('torus radii must be positive')
        if u_segments < 3 or v_segments < 3:
            raise SurfaceConstructionError('torus needs at least 3 segments per direction')
        profile = [(major_radius + minor_radius * cos(a) * scale,
                    minor_radius * sin(a) * scale, w)
                   for a, scale, w in _arc_samples(0.0, 2.0 * pi, v_segments)]
        return _revolve(profile, _arc_knots(v_segments), u_segments, settings)


def rational_derivatives(aders: Dict[Tuple[int, int], np.ndarray],
                         wders: Dict[Tuple[int, int], float], d: int) -> Derivatives:
    """Project homogeneous derivatives to Euclidean ones (quotient rule).

    ``aders[(k, l)]`` are derivatives of the weighted point sum and
    ``wders[(k, l)]`` of the weight sum.  When the weight sum vanishes the
    unnormalised numerators are returned unchanged.
    """

    w = wders[(0, 0)]
    if abs(w) < WEIGHT_TOL:
        return {key: np.array(val) for key, val in aders.items()}
    skl: Derivatives = {}
    for k in range(d + 1):
        for l in range(d - k + 1):
            val = np.array(aders[(k, l)], dtype=float)
            for j in range(1, l + 1):
                val -= comb(l, j) * wders[(0, j)] * skl[(k, l - j)]
            for i in range(1, k + 1):
                val -= comb(k, i) * wders[(i, 0)] * skl[(k - i, l)]
                inner = np.zeros(3)
                for j in range(1, l + 1):
                    inner += comb(l, j) * wders[(i, j)] * skl[(k - i, l - j)]
                val -= comb(k, i) * inner
            skl[(k, l)] = val / w
    return skl


def _insert_knot_rows(pw: np.ndarray, knots: Sequence[float], p: int, u: float,
                      k: int, s: int, r: int) -> np.ndarray:
    """Insert ``u`` ``r`` times along axis 1 of homogeneous points ``pw``.

    Boehm's algorithm as in Piegl & Tiller A5.1, applied to every row at once.
    ``k`` is the knot span of ``u`` and ``s`` its current multiplicity.
    """

    rows, n1, dim = pw.shape
    qw = np.zeros((rows, n1 + r, dim))
    qw[:, :k - p + 1] = pw[:, :k - p + 1]
    qw[:, k - s + r:] = pw[:, k - s:]
    rw = pw[:, k - p:k - s + 1].copy()
    L = k - p + 1
    for j in range(1, r + 1):
        L = k - p + j
        for i in range(p - j - s + 1):
            alpha = (u - knots[L + i]) / (knots[i + k + 1] - knots[L + i])
            rw[:, i] = alpha * rw[:, i + 1] + (1.0 - alpha) * rw[:, i]
        qw[:, L] = rw[:, 0]
        qw[:, k + r - j - s] = rw[:, p - j - s]
    for i in range(L + 1, k - s):
        qw[:, i] = rw[:, i - L]
    return qw


def _arc_samples(start: float, sweep: float, segments: int) -> List[Tuple[float, float, float]]:
    """Angles, radial scale and weight of a degree-2 rational arc's control points.

    Each of the ``segments`` arcs contributes its start point, the corner of
    its end tangents (at radius ``1/cos(half)``, weight ``cos(half)``) and,
    for the last arc, its end point.
    """

    delta = sweep / segments
    half = 0.5 * delta
    samples = []
    for i in range(segments):
        a0 = start + i * delta
        samples.append((a0, 1.0, 1.0))
        samples.append((a0 + half, 1.0 / cos(half), cos(half)))
    samples.append((start + sweep, 1.0, 1.0))
    return samples


def _arc_knots(segments: int) -> List[float]:
    knots = [0.0, 0.0, 0.0]
    for i in range(1, segments):
        knots.extend((i / segments, i / segments))
    knots.extend((1.0, 1.0, 1.0))
    return knots


def _revolve(profile: Sequence[Tuple[float, float, float]], profile_knots: Sequence[float],
             u_segments: int, settings: Optional[Settings]) -> NurbsSurface:
    """Sweep a rational ``(radius, height, weight)`` profile around the Y axis."""

    circle = _arc_samples(0.0, 2.0 * pi, u_segments)
    points = []
    weights = []
    for rho, y, wv in profile:
        row = []
        wrow = []
        for theta, scale, wu in circle:
            row.append((rho * cos(theta) * scale, y, rho * sin(theta) * scale))
            wrow.append(wu * wv)
        points.append(row)
        weights.append(wrow)
    return NurbsSurface(points, _arc_knots(u_segments), profile_knots, 2, 2, weights,
                        settings=settings)


__all__ = ['NurbsSurface', 'rational_derivatives', 'SURFACE_TYPE']
