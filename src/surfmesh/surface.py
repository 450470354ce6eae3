"""Common capability shared by every evaluable surface.

Subclasses provide :meth:`Surface.evaluate`, :meth:`Surface.partial_derivatives`
and :attr:`Surface.domain`; everything else (normals, curvature, tangent
frames, tessellation, area, volume, ray queries) is derived from those.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from math import inf
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from surfmesh import differential, tessellate
from surfmesh.config import DEFAULT_SETTINGS, Settings
from surfmesh.errors import ParameterDomainError
from surfmesh.mesh import SurfaceMesh, intersect_mesh

Domain = Tuple[Tuple[float, float], Tuple[float, float]]
Derivatives = Dict[Tuple[int, int], np.ndarray]

_DOMAIN_TOL = 1e-12


@dataclass(frozen=True)
class BoundingBox:
    min: np.ndarray
    max: np.ndarray

    @classmethod
    def from_points(cls, points) -> 'BoundingBox':
        pts = np.asarray(points, dtype=float).reshape(-1, 3)
        return cls(pts.min(axis=0), pts.max(axis=0))

    @property
    def size(self) -> np.ndarray:
        return self.max - self.min

    @property
    def center(self) -> np.ndarray:
        return 0.5 * (self.min + self.max)

    def contains(self, point, tol: float = 1e-9) -> bool:
        p = np.asarray(point, dtype=float)[:3]
        return bool(np.all(p >= self.min - tol) and np.all(p <= self.max + tol))


@dataclass(frozen=True)
class RayHit:
    parameter: Tuple[float, float]
    point: np.ndarray
    distance: float
    normal: np.ndarray


@dataclass(frozen=True)
class PathSample:
    parameter: Tuple[float, float]
    point: np.ndarray
    normal: np.ndarray
    tangent: np.ndarray


class Surface(ABC):
    """Abstract parametric surface ``S(u, v)`` over a rectangular domain."""

    settings: Settings = DEFAULT_SETTINGS

    @property
    @abstractmethod
    def domain(self) -> Domain:
        """``((u_min, u_max), (v_min, v_max))``."""

    @abstractmethod
    def evaluate(self, u: float, v: float) -> np.ndarray:
        """Return the surface point at ``(u, v)``."""

    @abstractmethod
    def partial_derivatives(self, u: float, v: float, max_order: int = 2) -> Derivatives:
        """Return ``{(k, l): d^(k+l)S/du^k dv^l}`` for all ``k + l <= max_order``."""

    @abstractmethod
    def bounding_box(self) -> BoundingBox:
        ...

    # -- parameter handling -------------------------------------------------

    def check_parameters(self, u: float, v: float) -> Tuple[float, float]:
        """Validate ``(u, v)`` against the domain, snapping round-off at the edges."""

        (u0, u1), (v0, v1) = self.domain
        u = float(u)
        v = float(v)
        if not (u0 - _DOMAIN_TOL <= u <= u1 + _DOMAIN_TOL) or \
           not (v0 - _DOMAIN_TOL <= v <= v1 + _DOMAIN_TOL):
            raise ParameterDomainError(
                f'parameters ({u}, {v}) outside domain [{u0}, {u1}] x [{v0}, {v1}]')
        return min(max(u, u0), u1), min(max(v, v0), v1)

    def to_domain(self, s: float, t: float) -> Tuple[float, float]:
        """Map normalised ``(s, t)`` in ``[0, 1]^2`` onto the domain."""

        (u0, u1), (v0, v1) = self.domain
        return u0 + (u1 - u0) * s, v0 + (v1 - v0) * t

    def from_domain(self, u: float, v: float) -> Tuple[float, float]:
        (u0, u1), (v0, v1) = self.domain
        return (u - u0) / (u1 - u0), (v - v0) / (v1 - v0)

    # -- differential geometry ----------------------------------------------

    @property
    def _tol(self) -> float:
        return self.settings.evaluation.degenerate_tolerance

    def compute_normal(self, u: float, v: float) -> np.ndarray:
        """Unit normal ``S_u x S_v``, or ``(0, 1, 0)`` where it vanishes."""

        ders = self.partial_derivatives(u, v, 1)
        normal, _ = differential.normal_from_partials(ders[(1, 0)], ders[(0, 1)], self._tol)
        return normal

    def compute_curvatures(self, u: float, v: float) -> differential.Curvatures:
        return differential.curvatures(self.partial_derivatives(u, v, 2), self._tol)

    def compute_tangent_space(self, u: float, v: float) -> differential.TangentSpace:
        return differential.tangent_space(self.partial_derivatives(u, v, 1), self._tol)

    # -- restriction --------------------------------------------------------

    def trim(self, u_range: Optional[Sequence[float]] = None,
             v_range: Optional[Sequence[float]] = None) -> 'Surface':
        """Restrict the surface to a sub-rectangle of its domain.

        Returns ``self`` when neither range is given, otherwise a
        :class:`~surfmesh.trimmed.TrimmedSurface` over this surface.
        """

        if u_range is None and v_range is None:
            return self
        from surfmesh.trimmed import TrimmedSurface
        return TrimmedSurface(self, u_range, v_range)

    # -- tessellation -------------------------------------------------------

    def tessellate(self, u_segments: Optional[int] = None,
                   v_segments: Optional[int] = None) -> SurfaceMesh:
        tess = self.settings.tessellation
        return tessellate.tessellate_uniform(
            self,
            tess.u_segments if u_segments is None else u_segments,
            tess.v_segments if v_segments is None else v_segments,
        )

    def tessellate_adaptive(self, max_error: Optional[float] = None,
                            max_segments: Optional[int] = None) -> SurfaceMesh:
        return tessellate.tessellate_adaptive(self, max_error, max_segments,
                                              settings=self.settings)

    # -- integral properties ------------------------------------------------

    def _midpoints(self, samples: int):
        if samples < 1:
            raise ValueError('samples must be >= 1')
        (u0, u1), (v0, v1) = self.domain
        du = (u1 - u0) / samples
        dv = (v1 - v0) / samples
        for i in range(samples):
            for j in range(samples):
                yield u0 + (i + 0.5) * du, v0 + (j + 0.5) * dv, du * dv

    def compute_area(self, samples: int = 100) -> float:
        """Surface area by midpoint integration of ``|S_u x S_v|``."""

        area = 0.0
        for u, v, cell in self._midpoints(samples):
            ders = self.partial_derivatives(u, v, 1)
            area += float(np.linalg.norm(np.cross(ders[(1, 0)], ders[(0, 1)]))) * cell
        return area

    def compute_volume(self, samples: int = 50) -> float:
        """Enclosed volume of a closed surface via the divergence theorem."""

        volume = 0.0
        for u, v, cell in self._midpoints(samples):
            ders = self.partial_derivatives(u, v, 1)
            volume += float(np.dot(ders[(0, 0)], np.cross(ders[(1, 0)], ders[(0, 1)]))) * cell
        return abs(volume) / 3.0

    # -- queries --------------------------------------------------------------

    def intersect_ray(self, origin: Sequence[float], direction: Sequence[float],
                      max_distance: float = inf,
                      segments: Optional[int] = None) -> List[RayHit]:
        """Ray hits against a uniform tessellation, nearest first.

        Distances are in units of ``direction``; the surface parameter of each
        hit is interpolated from the mesh UVs.
        """

        o = np.asarray(origin, dtype=float)[:3]
        d = np.asarray(direction, dtype=float)[:3]
        if np.linalg.norm(d) < self._tol:
            raise ValueError('ray direction cannot be zero')
        mesh = self.tessellate(segments, segments)
        uvs = np.asarray(mesh.uvs, dtype=float).reshape(-1, 2)
        tris = mesh.triangles()

        hits: List[RayHit] = []
        for t, tri_index, bary in intersect_mesh(mesh, o, d, max_distance):
            if hits and abs(t - hits[-1].distance) < 1e-9:
                continue  # same hit reported by two triangles sharing an edge
            st = sum(b * uvs[i] for b, i in zip(bary, tris[tri_index]))
            s = min(max(float(st[0]), 0.0), 1.0)
            tt = min(max(float(st[1]), 0.0), 1.0)
            u, v = self.to_domain(s, tt)
            hits.append(RayHit(parameter=(u, v), point=o + t * d, distance=t,
                               normal=self.compute_normal(u, v)))
        return hits

    def sample_along_parameter(self, direction: str = 'u', samples: int = 100) -> List[PathSample]:
        """Sample the iso-line through the middle of the other parameter."""

        if direction not in ('u', 'v'):
            raise ValueError("direction must be 'u' or 'v'")
        if samples < 1:
            raise ValueError('samples must be >= 1')
        path = []
        for i in range(samples + 1):
            frac = i / samples
            s, t = (frac, 0.5) if direction == 'u' else (0.5, frac)
            u, v = self.to_domain(s, t)
            ders = self.partial_derivatives(u, v, 1)
            along = ders[(1, 0)] if direction == 'u' else ders[(0, 1)]
            scale = max(float(np.linalg.norm(ders[(1, 0)])), float(np.linalg.norm(ders[(0, 1)])))
            tangent, _ = differential.normalize(along, None, self._tol * scale)
            path.append(PathSample(parameter=(u, v), point=np.array(ders[(0, 0)]),
                                   normal=self.compute_normal(u, v), tangent=tangent))
        return path


__all__ = ['Surface', 'BoundingBox', 'RayHit', 'PathSample', 'Domain', 'Derivatives']
