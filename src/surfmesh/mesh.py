"""Triangle meshes produced by tessellation.

A :class:`SurfaceMesh` holds four parallel flat arrays, the layout GPU
buffers expect: ``positions`` (3 floats per vertex), ``normals`` (3 per
vertex), ``uvs`` (2 per vertex) and ``indices`` (3 per triangle).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

Vec3 = Tuple[float, float, float]
TriTuple = Tuple[Vec3, Vec3, Vec3, Vec3]

_RAY_TOL = 1e-12
_AREA_TOL = 1e-14


@dataclass
class SurfaceMesh:
    positions: np.ndarray
    normals: np.ndarray
    uvs: np.ndarray
    indices: np.ndarray

    @classmethod
    def from_lists(cls, positions: Sequence[float], normals: Sequence[float],
                   uvs: Sequence[float], indices: Sequence[int]) -> 'SurfaceMesh':
        return cls(
            positions=np.asarray(positions, dtype=np.float32),
            normals=np.asarray(normals, dtype=np.float32),
            uvs=np.asarray(uvs, dtype=np.float32),
            indices=np.asarray(indices, dtype=np.uint32),
        )

    def __post_init__(self) -> None:
        n = len(self.positions) // 3
        if len(self.positions) != 3 * n or len(self.normals) != 3 * n or len(self.uvs) != 2 * n:
            raise ValueError('positions, normals and uvs must describe the same vertices')
        if len(self.indices) % 3:
            raise ValueError('index count must be a multiple of three')
        if len(self.indices) and int(np.max(self.indices)) >= n:
            raise ValueError('triangle index out of range')

    @property
    def vertex_count(self) -> int:
        return len(self.positions) // 3

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    def vertices(self) -> np.ndarray:
        """Positions reshaped to ``(vertex_count, 3)``."""

        return np.asarray(self.positions, dtype=float).reshape(-1, 3)

    def triangles(self) -> np.ndarray:
        """Indices reshaped to ``(triangle_count, 3)``."""

        return np.asarray(self.indices, dtype=np.int64).reshape(-1, 3)

    def surface_area(self) -> float:
        verts = self.vertices()
        tris = self.triangles()
        if not len(tris):
            return 0.0
        a = verts[tris[:, 1]] - verts[tris[:, 0]]
        b = verts[tris[:, 2]] - verts[tris[:, 0]]
        return float(0.5 * np.linalg.norm(np.cross(a, b), axis=1).sum())


def triangle_normal(v0: Vec3, v1: Vec3, v2: Vec3) -> Optional[Vec3]:
    """Return the unit normal of a triangle or ``None`` if degenerate."""

    n = np.cross(np.subtract(v1, v0), np.subtract(v2, v0))
    length = float(np.linalg.norm(n))
    if length <= _AREA_TOL:
        return None
    return (float(n[0] / length), float(n[1] / length), float(n[2] / length))


def mesh_view(mesh: SurfaceMesh) -> Iterator[TriTuple]:
    """Yield triangles as ``(normal, v0, v1, v2)`` tuples.

    Normals are unit face normals following the triangle winding.  Faces with
    degenerate geometry (zero area) are skipped silently.
    """

    verts = mesh.vertices()
    for idx0, idx1, idx2 in mesh.triangles():
        v0 = tuple(float(c) for c in verts[idx0])
        v1 = tuple(float(c) for c in verts[idx1])
        v2 = tuple(float(c) for c in verts[idx2])
        calc_normal = triangle_normal(v0, v1, v2)
        if calc_normal is None:
            continue
        yield calc_normal, v0, v1, v2


def ray_triangle_intersection(origin, direction, v0, v1, v2, tol: float = _RAY_TOL):
    """Moller-Trumbore test; returns ``(t, (b0, b1, b2))`` or ``None``.

    ``b0..b2`` are the barycentric weights of ``v0..v2`` at the hit point.
    """

    e1 = np.subtract(v1, v0)
    e2 = np.subtract(v2, v0)
    h = np.cross(direction, e2)
    a = float(np.dot(e1, h))
    if abs(a) < tol:
        return None
    f = 1.0 / a
    s = np.subtract(origin, v0)
    u = f * float(np.dot(s, h))
    if u < -tol or u > 1.0 + tol:
        return None
    q = np.cross(s, e1)
    v = f * float(np.dot(direction, q))
    if v < -tol or u + v > 1.0 + tol:
        return None
    t = f * float(np.dot(e2, q))
    if t < -tol:
        return None
    return t, (1.0 - u - v, u, v)


def intersect_mesh(mesh: SurfaceMesh, origin, direction,
                   max_distance: float = float('inf')) -> List[Tuple[float, int, Tuple[float, float, float]]]:
    """All ray hits on ``mesh`` as ``(distance, triangle_index, barycentric)``.

    Hits are sorted by distance.  ``direction`` need not be normalised; the
    returned distance is measured in units of ``direction``.
    """

    verts = mesh.vertices()
    hits = []
    for tri_index, (i0, i1, i2) in enumerate(mesh.triangles()):
        hit = ray_triangle_intersection(origin, direction, verts[i0], verts[i1], verts[i2])
        if hit is None:
            continue
        t, bary = hit
        if t <= max_distance:
            hits.append((t, tri_index, bary))
    hits.sort(key=lambda h: h[0])
    return hits


__all__ = [
    'SurfaceMesh',
    'triangle_normal',
    'mesh_view',
    'ray_triangle_intersection',
    'intersect_mesh',
]
