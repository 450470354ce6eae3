"""B-spline basis functions and their derivatives.

Both routines work on a single knot span and return only the ``degree + 1``
basis functions that are non-zero there, i.e. ``N[span-degree] .. N[span]``.
The algorithms follow Piegl & Tiller, *The NURBS Book*, A2.2 and A2.3.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

_DENOM_TOL = 1e-10


def basis_functions(u: float, span: int, degree: int, knots: Sequence[float]) -> np.ndarray:
    """Return the ``degree + 1`` non-zero basis values at ``u``.

    Uses the triangular Cox-de Boor recurrence with ``left``/``right``
    scratch arrays.  The values sum to one.  A denominator smaller than
    ``1e-10`` contributes nothing instead of producing ``inf``/``nan``.
    """

    N = np.zeros(degree + 1)
    left = np.zeros(degree + 1)
    right = np.zeros(degree + 1)
    N[0] = 1.0
    for j in range(1, degree + 1):
        left[j] = u - knots[span + 1 - j]
        right[j] = knots[span + j] - u
        saved = 0.0
        for r in range(j):
            denom = right[r + 1] + left[j - r]
            temp = 0.0 if abs(denom) < _DENOM_TOL else N[r] / denom
            N[r] = saved + right[r + 1] * temp
            saved = left[j - r] * temp
        N[j] = saved
    return N


def basis_function_derivatives(u: float, span: int, degree: int, max_order: int,
                               knots: Sequence[float]) -> np.ndarray:
    """Return basis values and derivatives up to ``max_order``.

    Parameters
    ----------
    u : float
        Parameter value inside ``[knots[span], knots[span+1]]``.
    span : int
        Knot span index from :meth:`KnotVector.find_span`.
    degree : int
        Polynomial degree ``p``.
    max_order : int
        Highest derivative order ``n``.
    knots : sequence of float
        The full knot vector.

    Returns
    -------
    numpy.ndarray
        Array of shape ``(max_order + 1, degree + 1)``; row ``k`` holds the
        ``k``-th derivatives of ``N[span-p] .. N[span]``.  Rows above the
        degree are zero.
    """

    p = degree
    ders = np.zeros((max_order + 1, p + 1))
    ndu = np.zeros((p + 1, p + 1))
    left = np.zeros(p + 1)
    right = np.zeros(p + 1)

    # upper triangle holds basis values, lower triangle knot differences
    ndu[0][0] = 1.0
    for j in range(1, p + 1):
        left[j] = u - knots[span + 1 - j]
        right[j] = knots[span + j] - u
        saved = 0.0
        for r in range(j):
            ndu[j][r] = right[r + 1] + left[j - r]
            temp = 0.0 if abs(ndu[j][r]) < _DENOM_TOL else ndu[r][j - 1] / ndu[j][r]
            ndu[r][j] = saved + right[r + 1] * temp
            saved = left[j - r] * temp
        ndu[j][j] = saved

    ders[0] = ndu[:, p]
    top = min(max_order, p)
    if top == 0:
        return ders

    a = np.zeros((2, p + 1))
    for r in range(p + 1):
        s1, s2 = 0, 1
        a[0][0] = 1.0
        for k in range(1, top + 1):
            d = 0.0
            rk = r - k
            pk = p - k
            if r >= k:
                a[s2][0] = _ratio(a[s1][0], ndu[pk + 1][rk])
                d = a[s2][0] * ndu[rk][pk]
            j1 = 1 if rk >= -1 else -rk
            j2 = k - 1 if r - 1 <= pk else p - r
            for j in range(j1, j2 + 1):
                a[s2][j] = _ratio(a[s1][j] - a[s1][j - 1], ndu[pk + 1][rk + j])
                d += a[s2][j] * ndu[rk + j][pk]
            if r <= pk:
                a[s2][k] = _ratio(-a[s1][k - 1], ndu[pk + 1][r])
                d += a[s2][k] * ndu[r][pk]
            ders[k][r] = d
            s1, s2 = s2, s1

    factor = p
    for k in range(1, top + 1):
        ders[k] *= factor
        factor *= p - k
    return ders


def _ratio(num: float, denom: float) -> float:
    # repeated knots give zero-width differences; they contribute nothing
    if abs(denom) < _DENOM_TOL:
        return 0.0
    return num / denom


__all__ = ['basis_functions', 'basis_function_derivatives']
