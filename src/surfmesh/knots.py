"""Knot vectors for B-spline and NURBS surfaces.

A knot vector is a non-decreasing sequence of parameter values together with
the polynomial degree it was built for.  The number of knots always equals
``num_points + degree + 1``.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from surfmesh.errors import ParameterDomainError, SurfaceConstructionError

_KNOT_TOL = 1e-12


class KnotVector:
    """Validated, immutable knot sequence with span lookup."""

    __slots__ = ('_knots', '_degree', '_num_points')

    def __init__(self, knots: Iterable[float], degree: int, num_points: Optional[int] = None):
        values = tuple(float(k) for k in knots)
        degree = int(degree)
        if degree < 1:
            raise SurfaceConstructionError(f'degree must be >= 1, got {degree}')
        if num_points is None:
            num_points = len(values) - degree - 1
        if num_points < degree + 1:
            raise SurfaceConstructionError(
                f'not enough control points for degree {degree}: {num_points} < {degree + 1}')
        expected = num_points + degree + 1
        if len(values) != expected:
            raise SurfaceConstructionError(
                f'invalid knot vector length: {len(values)} != {expected}')
        for a, b in zip(values, values[1:]):
            if b < a:
                raise SurfaceConstructionError(f'knot vector must be non-decreasing: {list(values)}')
        if values[num_points] - values[degree] <= _KNOT_TOL:
            raise SurfaceConstructionError('knot vector has an empty parameter domain')
        self._knots = values
        self._degree = degree
        self._num_points = num_points

    @classmethod
    def uniform(cls, num_points: int, degree: int) -> 'KnotVector':
        """Return a clamped knot vector with evenly spaced interior knots."""

        num_points = int(num_points)
        degree = int(degree)
        if num_points < degree + 1:
            raise SurfaceConstructionError(
                f'not enough control points for degree {degree}: {num_points} < {degree + 1}')
        num_knots = num_points + degree + 1
        interior = num_knots - 2 * degree - 1
        knots = []
        for i in range(num_knots):
            if i <= degree:
                knots.append(0.0)
            elif i >= num_knots - degree - 1:
                knots.append(1.0)
            else:
                knots.append((i - degree) / interior)
        return cls(knots, degree, num_points)

    @property
    def degree(self) -> int:
        return self._degree

    @property
    def num_points(self) -> int:
        return self._num_points

    @property
    def knots(self) -> Tuple[float, ...]:
        return self._knots

    @property
    def domain(self) -> Tuple[float, float]:
        """Valid parameter interval ``(knot[degree], knot[n+1])``."""

        return self._knots[self._degree], self._knots[self._num_points]

    @property
    def is_clamped(self) -> bool:
        p = self._degree
        first = self._knots[:p + 1]
        last = self._knots[-(p + 1):]
        return len(set(first)) == 1 and len(set(last)) == 1

    def __len__(self) -> int:
        return len(self._knots)

    def __getitem__(self, index):
        return self._knots[index]

    def __iter__(self) -> Iterator[float]:
        return iter(self._knots)

    def __eq__(self, other) -> bool:
        if not isinstance(other, KnotVector):
            return NotImplemented
        return self._degree == other._degree and self._knots == other._knots

    def __hash__(self) -> int:
        return hash((self._degree, self._knots))

    def __repr__(self) -> str:
        return f'KnotVector({list(self._knots)}, degree={self._degree})'

    def to_list(self) -> List[float]:
        return list(self._knots)

    def find_span(self, u: float) -> int:
        """Return ``i`` such that ``knot[i] <= u < knot[i+1]``.

        ``u`` equal to the end of the domain maps to the last valid span
        ``n`` rather than past the end.
        """

        knots = self._knots
        n = self._num_points - 1
        lo_u, hi_u = knots[self._degree], knots[n + 1]
        if u < lo_u - _KNOT_TOL or u > hi_u + _KNOT_TOL:
            raise ParameterDomainError(f'parameter {u} outside knot domain [{lo_u}, {hi_u}]')
        if u >= hi_u:
            return n
        if u <= lo_u:
            u = lo_u

        low = self._degree
        high = n + 1
        mid = (low + high) // 2
        while u < knots[mid] or u >= knots[mid + 1]:
            if u < knots[mid]:
                high = mid
            else:
                low = mid
            mid = (low + high) // 2
        return mid

    def multiplicity(self, value: float) -> int:
        """Number of knots equal to ``value`` (within a tight tolerance)."""

        lo = bisect_left(self._knots, value - _KNOT_TOL)
        hi = bisect_right(self._knots, value + _KNOT_TOL)
        return hi - lo

    def to_parameter(self, t: float) -> float:
        """Map a normalised parameter in ``[0, 1]`` onto the knot domain."""

        a, b = self.domain
        return a + (b - a) * t

    def from_parameter(self, u: float) -> float:
        a, b = self.domain
        return (u - a) / (b - a)

    def inserted(self, value: float, times: int = 1) -> 'KnotVector':
        """Return a new knot vector with ``value`` inserted ``times`` times."""

        pos = bisect_right(self._knots, value)
        knots = self._knots[:pos] + (float(value),) * times + self._knots[pos:]
        return KnotVector(knots, self._degree, self._num_points + times)

    def scaled(self) -> 'KnotVector':
        """Return the knot vector affinely rescaled onto ``[0, 1]``."""

        a, b = self.domain
        return KnotVector([(k - a) / (b - a) for k in self._knots],
                          self._degree, self._num_points)


def as_knot_vector(knots: Optional[Sequence[float] | KnotVector], num_points: int,
                   degree: int) -> KnotVector:
    """Validate user supplied knots, generating clamped uniform ones if absent."""

    if knots is None:
        return KnotVector.uniform(num_points, degree)
    if isinstance(knots, KnotVector):
        if knots.degree != degree or knots.num_points != num_points:
            raise SurfaceConstructionError(
                f'knot vector built for degree {knots.degree} and {knots.num_points} points, '
                f'need degree {degree} and {num_points} points')
        return knots
    return KnotVector(knots, degree, num_points)


__all__ = ['KnotVector', 'as_knot_vector']
