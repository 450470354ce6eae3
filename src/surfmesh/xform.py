## 4x4 homogeneous transformation matrices for surfmesh

# Matrices are numpy arrays of shape (4, 4) acting on column vectors,
# so a point p is transformed as M @ [x, y, z, 1].  Angles are in
# degrees.  Each builder accepts inverse=True and then returns the
# analytic inverse of the same transformation.

"""4x4 transformation matrix builders"""

from __future__ import annotations

from math import cos, radians, sin
from typing import Sequence

import numpy as np

from surfmesh.errors import SurfaceError

_EPSILON = 1e-12


def identity() -> np.ndarray:
    return np.eye(4)


def as_matrix(m) -> np.ndarray:
    """Coerce ``m`` (nested sequence, flat 16-sequence or array) to 4x4."""

    arr = np.asarray(m, dtype=float)
    if arr.shape == (16,):
        arr = arr.reshape(4, 4)
    if arr.shape != (4, 4):
        raise ValueError(f'bad thing used as a 4x4 matrix: shape {arr.shape}')
    if not np.all(np.isfinite(arr)):
        raise ValueError('matrix contains non-finite values')
    return arr


# return the generalized 4x4 arbitrary axis rotation matrix
def rotation(axis: Sequence[float], angle: float, inverse: bool = False) -> np.ndarray:
    u = np.asarray(axis, dtype=float)[:3]
    m = float(np.linalg.norm(u))
    if m < _EPSILON:
        raise ValueError('zero-length rotation axis not allowed')
    u = u / m

    if inverse:
        angle = -angle
    rad = radians(angle % 360.0)

    ux, uy, uz = u
    cang = cos(rad)
    cmin = 1.0 - cang
    sang = sin(rad)

    # see http://www.opengl-tutorial.org/assets/faq_quaternions/index.html#Q38
    return np.array([
        [cang + ux*ux*cmin, ux*uy*cmin - uz*sang, ux*uz*cmin + uy*sang, 0.0],
        [uy*ux*cmin + uz*sang, cang + uy*uy*cmin, uy*uz*cmin - ux*sang, 0.0],
        [uz*ux*cmin - uy*sang, uz*uy*cmin + ux*sang, cang + uz*uz*cmin, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ])


def translation(delta: Sequence[float], inverse: bool = False) -> np.ndarray:
    d = np.asarray(delta, dtype=float)[:3]
    if inverse:
        d = -d
    T = np.eye(4)
    T[:3, 3] = d
    return T


def scaling(x, y=None, z=None, inverse: bool = False) -> np.ndarray:
    if isinstance(x, (int, float)):
        sx = float(x)
        if y is not None and z is not None:
            sy, sz = float(y), float(z)
        else:
            sy = sz = sx
    else:
        vals = np.asarray(x, dtype=float)
        if vals.shape[0] < 3:
            raise ValueError('bad scaling values passed to scaling')
        sx, sy, sz = vals[:3]

    if min(abs(sx), abs(sy), abs(sz)) < _EPSILON:
        raise ValueError('scale factors must be non-zero')
    if inverse:
        sx, sy, sz = 1.0 / sx, 1.0 / sy, 1.0 / sz
    return np.diag([sx, sy, sz, 1.0])


def compose(*matrices) -> np.ndarray:
    """Compose matrices so that the first argument is applied last.

    ``compose(A, B)`` equals ``A @ B``: points are transformed by ``B``
    and then by ``A``.
    """

    result = np.eye(4)
    for m in matrices:
        result = result @ as_matrix(m)
    return result


def apply_matrix(matrix, points) -> np.ndarray:
    """Transform points of shape ``(..., 3)`` by a 4x4 affine matrix."""

    m = as_matrix(matrix)
    pts = np.asarray(points, dtype=float)
    if pts.shape[-1] != 3:
        raise ValueError('points must have three components')
    homo = pts @ m[:3, :3].T + m[:3, 3]
    w = pts @ m[3, :3] + m[3, 3]
    if np.any(np.abs(w) < _EPSILON):
        raise SurfaceError('projective matrix maps a point to infinity')
    if np.allclose(m[3], [0.0, 0.0, 0.0, 1.0]):
        return homo
    return homo / np.expand_dims(w, -1)


__all__ = [
    'identity',
    'as_matrix',
    'rotation',
    'translation',
    'scaling',
    'compose',
    'apply_matrix',
]
