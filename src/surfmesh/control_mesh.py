"""Rectangular grids of weighted control points."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from surfmesh.errors import SurfaceConstructionError


class ControlMesh:
    """A ``rows x cols`` grid of 3D points with one positive weight each.

    Rows run along ``v`` and columns along ``u``, so ``points[j][i]`` is the
    control point with ``u`` index ``i`` and ``v`` index ``j``.  The arrays are
    copied on construction and exposed read-only.
    """

    __slots__ = ('_points', '_weights')

    def __init__(self, points, weights: Optional[Sequence[Sequence[float]]] = None):
        self._points = _as_point_grid(points)
        rows, cols = self._points.shape[:2]
        if weights is None:
            w = np.ones((rows, cols))
        else:
            w = _as_weight_grid(weights, rows, cols)
        self._points.setflags(write=False)
        w.setflags(write=False)
        self._weights = w

    @classmethod
    def from_homogeneous(cls, pw: np.ndarray) -> 'ControlMesh':
        """Build a mesh from ``(w*x, w*y, w*z, w)`` coordinates."""

        pw = np.asarray(pw, dtype=float)
        w = pw[..., 3]
        if np.any(w <= 0.0):
            raise SurfaceConstructionError('homogeneous weights must be positive')
        return cls(pw[..., :3] / w[..., None], w)

    @property
    def points(self) -> np.ndarray:
        return self._points

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    @property
    def rows(self) -> int:
        return self._points.shape[0]

    @property
    def cols(self) -> int:
        return self._points.shape[1]

    @property
    def shape(self):
        return self._points.shape[:2]

    @property
    def is_rational(self) -> bool:
        return bool(np.any(self._weights != 1.0))

    def homogeneous(self) -> np.ndarray:
        """Return a writable ``(rows, cols, 4)`` array of weighted points."""

        pw = np.empty(self._points.shape[:2] + (4,))
        pw[..., :3] = self._points * self._weights[..., None]
        pw[..., 3] = self._weights
        return pw

    def bounds(self):
        flat = self._points.reshape(-1, 3)
        return flat.min(axis=0), flat.max(axis=0)

    def check_degree(self, degree_u: int, degree_v: int) -> None:
        if self.cols < degree_u + 1:
            raise SurfaceConstructionError(
                f'not enough control points in u direction: {self.cols} < {degree_u + 1}')
        if self.rows < degree_v + 1:
            raise SurfaceConstructionError(
                f'not enough control points in v direction: {self.rows} < {degree_v + 1}')

    def copy(self) -> 'ControlMesh':
        return ControlMesh(self._points.copy(), self._weights.copy())

    def __eq__(self, other) -> bool:
        if not isinstance(other, ControlMesh):
            return NotImplemented
        return (self.shape == other.shape
                and np.array_equal(self._points, other._points)
                and np.array_equal(self._weights, other._weights))

    __hash__ = None

    def __repr__(self) -> str:
        return f'ControlMesh(rows={self.rows}, cols={self.cols}, rational={self.is_rational})'


def _as_point_grid(points) -> np.ndarray:
    if isinstance(points, np.ndarray):
        if points.ndim != 3 or points.shape[2] < 3:
            raise SurfaceConstructionError(
                f'control point array must have shape (rows, cols, 3), got {points.shape}')
        grid = np.array(points[..., :3], dtype=float)
    else:
        if not isinstance(points, (list, tuple)) or len(points) == 0:
            raise SurfaceConstructionError('control points must be a non-empty 2D grid')
        cols = None
        rows = []
        for row in points:
            if isinstance(row, np.ndarray):
                row = list(row)
            if not isinstance(row, (list, tuple)) or len(row) == 0:
                raise SurfaceConstructionError('every control point row must be a non-empty sequence')
            if cols is None:
                cols = len(row)
            elif len(row) != cols:
                raise SurfaceConstructionError('control points matrix must be rectangular')
            converted = []
            for cp in row:
                if len(cp) < 3:
                    raise SurfaceConstructionError('control points must have at least 3 coordinates')
                converted.append([float(cp[0]), float(cp[1]), float(cp[2])])
            rows.append(converted)
        grid = np.array(rows, dtype=float)
    if grid.shape[0] == 0 or grid.shape[1] == 0:
        raise SurfaceConstructionError('control points must be a non-empty 2D grid')
    if not np.all(np.isfinite(grid)):
        raise SurfaceConstructionError('control points must be finite')
    return grid


def _as_weight_grid(weights, rows: int, cols: int) -> np.ndarray:
    try:
        w = np.array(weights, dtype=float)
    except ValueError as exc:
        raise SurfaceConstructionError('weights must be a rectangular grid') from exc
    if w.shape != (rows, cols):
        raise SurfaceConstructionError(
            f'weights grid has shape {w.shape}, expected {(rows, cols)}')
    if not np.all(np.isfinite(w)) or np.any(w <= 0.0):
        raise SurfaceConstructionError('weights must be finite and positive')
    return w


__all__ = ['ControlMesh']
