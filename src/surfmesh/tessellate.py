"""Uniform and curvature-adaptive tessellation of parametric surfaces.

Both tessellators work in normalised parameter space ``(s, t)`` in
``[0, 1]^2`` and map into the surface domain through ``surface.to_domain``.
UV coordinates in the output mesh are the normalised ``(s, t)`` values.

The adaptive tessellator is a quadtree refinement driven by the curvature
magnitude ``max(|K|, |H|)``:

1. the whole parameter square is the first pending quad;
2. a quad is probed at its four corners and its centre; a probe that fails
   (degenerate normal, arithmetic or domain error) counts as a curvature
   above ``max_error`` so the quad is refined;
3. quads above ``max_error`` are split into four equal children unless the
   children would be smaller than ``min_quad_size``;
4. if more than ``max_segments ** 2`` leaves result, a merge pass collapses
   low-curvature sibling groups back into their parent;
5. leaves are emitted as two triangles each, sharing vertices by ``(s, t)``.

Pending quads live in an explicit FIFO queue, so refinement depth never
touches the Python call stack.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from math import isfinite, sqrt
from typing import TYPE_CHECKING, Dict, Iterator, List, NamedTuple, Optional, Tuple

from surfmesh.config import DEFAULT_SETTINGS, Settings
from surfmesh.mesh import SurfaceMesh

if TYPE_CHECKING:  # pragma: no cover
    from surfmesh.surface import Surface

logger = logging.getLogger(__name__)

QUAD_CORNERS = ((0, 0), (1, 0), (1, 1), (0, 1))
QUAD_TRIANGLES = ((0, 1, 3), (1, 2, 3))


class Quad(NamedTuple):
    """Axis-aligned cell ``[u1, u2] x [v1, v2]`` in normalised parameters."""

    u1: float
    u2: float
    v1: float
    v2: float

    @property
    def size(self) -> float:
        return min(self.u2 - self.u1, self.v2 - self.v1)

    @property
    def center(self) -> Tuple[float, float]:
        return (0.5 * (self.u1 + self.u2), 0.5 * (self.v1 + self.v2))

    def corners(self) -> List[Tuple[float, float]]:
        us = (self.u1, self.u2)
        vs = (self.v1, self.v2)
        return [(us[i], vs[j]) for i, j in QUAD_CORNERS]

    def split(self) -> Tuple['Quad', 'Quad', 'Quad', 'Quad']:
        um, vm = self.center
        return (Quad(self.u1, um, self.v1, vm),
                Quad(um, self.u2, self.v1, vm),
                Quad(self.u1, um, vm, self.v2),
                Quad(um, self.u2, vm, self.v2))


@dataclass
class _Node:
    quad: Quad
    depth: int
    parent: Optional[int]
    children: Optional[Tuple[int, int, int, int]] = None


@dataclass
class QuadTree:
    """Arena of quadtree nodes; node 0 is the root."""

    nodes: List[_Node] = field(default_factory=list)

    def add(self, quad: Quad, depth: int, parent: Optional[int]) -> int:
        self.nodes.append(_Node(quad, depth, parent))
        return len(self.nodes) - 1

    def leaf_ids(self) -> Iterator[int]:
        """Leaf node ids in depth-first child order."""

        if not self.nodes:
            return
        stack = [0]
        while stack:
            nid = stack.pop()
            node = self.nodes[nid]
            if node.children is None:
                yield nid
            else:
                stack.extend(reversed(node.children))

    def leaves(self) -> List[Quad]:
        return [self.nodes[nid].quad for nid in self.leaf_ids()]

    @property
    def leaf_count(self) -> int:
        return sum(1 for _ in self.leaf_ids())

    @property
    def max_depth(self) -> int:
        return max((self.nodes[nid].depth for nid in self.leaf_ids()), default=0)


class CurvatureProbe:
    """Memoised curvature magnitude at normalised parameters."""

    def __init__(self, surface: 'Surface', sentinel: float, precision: int = 6):
        self.surface = surface
        self.sentinel = sentinel
        self._scale = 10 ** precision
        self._memo: Dict[Tuple[int, int], float] = {}
        self.failures = 0

    def __call__(self, s: float, t: float) -> float:
        key = (int(round(s * self._scale)), int(round(t * self._scale)))
        try:
            return self._memo[key]
        except KeyError:
            pass
        value = self._measure(s, t)
        self._memo[key] = value
        return value

    def _measure(self, s: float, t: float) -> float:
        u, v = self.surface.to_domain(s, t)
        try:
            curv = self.surface.compute_curvatures(u, v)
        except (ArithmeticError, ValueError, TypeError) as exc:
            logger.debug('curvature probe failed at (%g, %g): %s', u, v, exc)
            self.failures += 1
            return self.sentinel
        magnitude = curv.magnitude
        if curv.degenerate or not isfinite(magnitude):
            self.failures += 1
            return self.sentinel
        return magnitude

    def quad_max(self, quad: Quad) -> float:
        samples = quad.corners() + [quad.center]
        return max(self(s, t) for s, t in samples)


def subdivide(surface: 'Surface', max_error: float, min_quad_size: float,
              probe: Optional[CurvatureProbe] = None) -> QuadTree:
    """Refine the unit parameter square by curvature; see module docs."""

    if probe is None:
        probe = CurvatureProbe(surface, sentinel=2.0 * max_error)
    tree = QuadTree()
    root = tree.add(Quad(0.0, 1.0, 0.0, 1.0), 0, None)
    pending = deque([root])
    while pending:
        nid = pending.popleft()
        node = tree.nodes[nid]
        quad = node.quad
        if 0.5 * quad.size < min_quad_size:
            continue
        if probe.quad_max(quad) <= max_error:
            continue
        children = tuple(tree.add(child, node.depth + 1, nid) for child in quad.split())
        node.children = children
        pending.extend(children)
    return tree


def merge_pass(tree: QuadTree, probe: CurvatureProbe, max_error: float,
               max_segments: int) -> int:
    """Collapse calm sibling groups until at most ``max_segments**2`` leaves.

    The threshold is relaxed by ``factor = sqrt(leaves / max_segments**2)``.
    Groups are visited deepest first; a group collapses when all four
    children are leaves and every child centre is below the relaxed
    threshold.  Returns the number of collapsed groups.
    """

    cap = max_segments * max_segments
    leaves = tree.leaf_count
    if leaves <= cap:
        return 0
    factor = sqrt(leaves / cap)
    threshold = max_error * factor

    parents = {}
    for nid in tree.leaf_ids():
        parent = tree.nodes[nid].parent
        if parent is not None:
            parents.setdefault(parent, None)

    collapsed = 0
    frontier = sorted(parents, key=lambda p: -tree.nodes[p].depth)
    while frontier and leaves > cap:
        next_frontier = []
        for pid in frontier:
            if leaves <= cap:
                break
            node = tree.nodes[pid]
            if node.children is None:
                continue
            kids = [tree.nodes[c] for c in node.children]
            if any(k.children is not None for k in kids):
                continue
            if max(probe(*k.quad.center) for k in kids) >= threshold:
                continue
            node.children = None
            leaves -= 3
            collapsed += 1
            if node.parent is not None:
                next_frontier.append(node.parent)
        frontier = sorted(set(next_frontier), key=lambda p: -tree.nodes[p].depth)

    if leaves > cap:
        logger.warning('merge pass left %d quads, above the cap of %d', leaves, cap)
    return collapsed


def _assemble(surface: 'Surface', quads: List[Quad], precision: int) -> SurfaceMesh:
    positions: List[float] = []
    normals: List[float] = []
    uvs: List[float] = []
    indices: List[int] = []
    vertex_map: Dict[Tuple[int, int], int] = {}
    scale = 10 ** precision

    for quad in quads:
        quad_vertices = []
        for s, t in quad.corners():
            key = (int(round(s * scale)), int(round(t * scale)))
            index = vertex_map.get(key)
            if index is None:
                u, v = surface.to_domain(s, t)
                pt = surface.evaluate(u, v)
                nrm = surface.compute_normal(u, v)
                positions.extend((pt[0], pt[1], pt[2]))
                normals.extend((nrm[0], nrm[1], nrm[2]))
                uvs.extend((s, t))
                index = len(vertex_map)
                vertex_map[key] = index
            quad_vertices.append(index)
        for tri in QUAD_TRIANGLES:
            indices.extend(quad_vertices[i] for i in tri)

    return SurfaceMesh.from_lists(positions, normals, uvs, indices)


def tessellate_uniform(surface: 'Surface', u_segments: int, v_segments: int) -> SurfaceMesh:
    """Regular grid with ``(u+1)(v+1)`` vertices and ``2uv`` triangles."""

    u_segments = int(u_segments)
    v_segments = int(v_segments)
    if u_segments < 1 or v_segments < 1:
        raise ValueError('segment counts must be >= 1')

    positions: List[float] = []
    normals: List[float] = []
    uvs: List[float] = []
    for j in range(v_segments + 1):
        t = j / v_segments
        for i in range(u_segments + 1):
            s = i / u_segments
            u, v = surface.to_domain(s, t)
            pt = surface.evaluate(u, v)
            nrm = surface.compute_normal(u, v)
            positions.extend((pt[0], pt[1], pt[2]))
            normals.extend((nrm[0], nrm[1], nrm[2]))
            uvs.extend((s, t))

    indices: List[int] = []
    row = u_segments + 1
    for j in range(v_segments):
        for i in range(u_segments):
            a = j * row + i
            b = a + 1
            c = b + row
            d = a + row
            corners = (a, b, c, d)
            for tri in QUAD_TRIANGLES:
                indices.extend(corners[k] for k in tri)

    return SurfaceMesh.from_lists(positions, normals, uvs, indices)


def tessellate_adaptive(surface: 'Surface', max_error: Optional[float] = None,
                        max_segments: Optional[int] = None,
                        min_quad_size: Optional[float] = None,
                        settings: Optional[Settings] = None) -> SurfaceMesh:
    """Curvature-driven tessellation; unset arguments come from ``settings``."""

    settings = settings or DEFAULT_SETTINGS
    tess = settings.tessellation
    max_error = tess.max_error if max_error is None else float(max_error)
    max_segments = tess.max_segments if max_segments is None else int(max_segments)
    min_quad_size = tess.min_quad_size if min_quad_size is None else float(min_quad_size)
    if max_error <= 0.0:
        raise ValueError('max_error must be positive')
    if max_segments < 1:
        raise ValueError('max_segments must be >= 1')
    if min_quad_size <= 0.0:
        raise ValueError('min_quad_size must be positive')

    precision = settings.evaluation.cache_precision
    probe = CurvatureProbe(surface, sentinel=2.0 * max_error, precision=precision)
    tree = subdivide(surface, max_error, min_quad_size, probe)
    refined = tree.leaf_count
    collapsed = merge_pass(tree, probe, max_error, max_segments)
    quads = tree.leaves()
    logger.debug('adaptive tessellation: %d quads after refinement, %d after merge '
                 '(%d groups collapsed, depth %d, %d failed probes)',
                 refined, len(quads), collapsed, tree.max_depth, probe.failures)
    return _assemble(surface, quads, precision)


__all__ = [
    'Quad',
    'QuadTree',
    'CurvatureProbe',
    'subdivide',
    'merge_pass',
    'tessellate_uniform',
    'tessellate_adaptive',
]
